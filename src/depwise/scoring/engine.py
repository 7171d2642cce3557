"""Risk assessment engine: dimension scores -> weighted overall assessment."""

import logging
from datetime import datetime
from typing import Optional

from depwise.catalog import Catalog, load_catalog
from depwise.licenses import UNKNOWN_SPDX, LicensePolicyResolver, default_resolver
from depwise.scoring.dimensions import (
    ABANDONED_AFTER_DAYS,
    ComplianceRisk,
    OperationalRisk,
    SecurityRisk,
    SupplyChainRisk,
)
from depwise.scoring.factors import (
    NO_CONCERN,
    PRIMARY_CONCERN_FLOOR,
    Dimension,
    DimensionScore,
    PrimaryConcern,
    RiskBreakdown,
    RiskLevel,
    clamp,
)
from depwise.scoring.metadata import AnalysisContext, Criticality, MetadataSnapshot, Usage, days_since
from depwise.scoring.weights import WeightMode, WeightSignals, select_weights

logger = logging.getLogger(__name__)


class RiskAssessmentEngine:
    """
    Multi-dimensional risk scoring.

    Overall = sum(dimension score * weight), 0-10 (higher = riskier). Weights
    come from the adaptive rule list or the fixed 5/3/1/1 profile, depending
    on ``weight_mode``.
    """

    # (security factor, operational factor) per usage / criticality
    USAGE_MODIFIERS = {
        Usage.DEV: (0.7, 0.8),
        Usage.TEST: (0.7, 0.8),
        Usage.CI_ONLY: (0.5, 0.6),
    }
    CRITICALITY_MODIFIERS = {
        Criticality.CORE: (1.2, 1.1),
    }

    POPULAR_STARS_THRESHOLD = 1000

    def __init__(
        self,
        weight_mode: WeightMode = WeightMode.ADAPTIVE,
        resolver: Optional[LicensePolicyResolver] = None,
        catalog: Optional[Catalog] = None,
        now: Optional[datetime] = None,
    ):
        self.weight_mode = WeightMode(weight_mode)
        self.catalog = catalog or load_catalog()
        self.now = now
        self.security = SecurityRisk()
        self.operational = OperationalRisk(self.catalog, now=now)
        self.compliance = ComplianceRisk(resolver or default_resolver())
        self.supply_chain = SupplyChainRisk(self.catalog)

    def score_dimensions(self, snapshot: MetadataSnapshot) -> dict[Dimension, DimensionScore]:
        return {
            Dimension.SECURITY: self.security.compute(snapshot),
            Dimension.OPERATIONAL: self.operational.compute(snapshot),
            Dimension.COMPLIANCE: self.compliance.compute(snapshot),
            Dimension.SUPPLY_CHAIN: self.supply_chain.compute(snapshot),
        }

    def weight_signals(
        self, snapshot: MetadataSnapshot, scores: dict[Dimension, DimensionScore]
    ) -> WeightSignals:
        sh = snapshot.source_host
        abandoned = sh is not None and (sh.archived or days_since(sh.last_push, self.now) > ABANDONED_AFTER_DAYS)
        compliance = scores[Dimension.COMPLIANCE]
        return WeightSignals(
            critical_count=snapshot.critical_count,
            vulnerability_count=snapshot.vulnerability_count,
            abandoned=abandoned,
            license_unknown=compliance.details.get("spdx") == UNKNOWN_SPDX,
            compliance_score=compliance.score,
            direct_dependencies=len(snapshot.direct_dependency_names),
        )

    def apply_context(
        self, scores: dict[Dimension, DimensionScore], context: Optional[AnalysisContext]
    ) -> dict[Dimension, DimensionScore]:
        """Scale security/operational scores by usage and criticality."""
        if context is None:
            return dict(scores)

        security_factor, operational_factor = 1.0, 1.0
        for modifier in (
            self.USAGE_MODIFIERS.get(context.usage),
            self.CRITICALITY_MODIFIERS.get(context.criticality),
        ):
            if modifier:
                security_factor *= modifier[0]
                operational_factor *= modifier[1]

        modified = dict(scores)
        modified[Dimension.SECURITY] = scores[Dimension.SECURITY].scaled(security_factor)
        modified[Dimension.OPERATIONAL] = scores[Dimension.OPERATIONAL].scaled(operational_factor)
        return modified

    def confidence(self, snapshot: MetadataSnapshot) -> int:
        """How much of the picture the data covers (50-100)."""
        confidence = 50
        if snapshot.vulnerabilities is not None:
            confidence += 15
        if snapshot.source_host is not None:
            confidence += 20
            if snapshot.source_host.stars > self.POPULAR_STARS_THRESHOLD:
                confidence += 10
        if self.catalog.is_well_known(snapshot.name):
            confidence += 5
        return min(100, confidence)

    @staticmethod
    def primary_concern(scores: dict[Dimension, float]) -> PrimaryConcern:
        """Highest-scoring dimension (ties in Dimension order), or "none" below the floor."""
        top = max(scores[dim] for dim in Dimension)
        if top < PRIMARY_CONCERN_FLOOR:
            return NO_CONCERN
        return next(dim for dim in Dimension if scores[dim] == top)

    def combine(
        self,
        scores: dict[Dimension, DimensionScore],
        signals: WeightSignals,
        context: Optional[AnalysisContext] = None,
        package_name: str = "",
        confidence: int = 50,
    ) -> RiskBreakdown:
        """
        Combine dimension scores into a complete breakdown.

        Args:
            scores: Score per dimension
            signals: Facts driving adaptive weight selection
            context: Optional usage/criticality context
            package_name: Name recorded on the breakdown
            confidence: Pre-computed confidence (0-100)

        Returns:
            Complete RiskBreakdown
        """
        profile = select_weights(signals, self.weight_mode)
        weights = profile.as_dict()
        modified = self.apply_context(scores, context)
        values = {dim: modified[dim].score for dim in Dimension}

        overall = round(clamp(sum(values[dim] * weights[dim] for dim in Dimension)), 1)

        breakdown = RiskBreakdown(
            package_name=package_name,
            security=values[Dimension.SECURITY],
            operational=values[Dimension.OPERATIONAL],
            compliance=values[Dimension.COMPLIANCE],
            supply_chain=values[Dimension.SUPPLY_CHAIN],
            overall=overall,
            confidence=confidence,
            risk_level=RiskLevel.from_score(overall),
            primary_concern=self.primary_concern(values),
            weights=weights,
            weight_mode=self.weight_mode.value,
            weight_profile=profile.name,
            details=modified,
        )
        logger.debug(
            f"{package_name}: overall={overall} ({breakdown.risk_level.value}), "
            f"profile={profile.name}, primary={breakdown.primary_concern}"
        )
        return breakdown

    def assess(self, snapshot: MetadataSnapshot, context: Optional[AnalysisContext] = None) -> RiskBreakdown:
        """
        Assess a package from its metadata snapshot.

        Pure and deterministic for a fixed ``now``: the snapshot is only read.
        """
        scores = self.score_dimensions(snapshot)
        return self.combine(
            scores,
            self.weight_signals(snapshot, scores),
            context=context,
            package_name=snapshot.name,
            confidence=self.confidence(snapshot),
        )
