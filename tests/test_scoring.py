"""Tests for the scoring engine."""

from datetime import datetime, timedelta, timezone

import pytest

from depwise.scoring.engine import RiskAssessmentEngine
from depwise.scoring.factors import NO_CONCERN, Dimension, DimensionScore, RiskLevel
from depwise.scoring.metadata import (
    AnalysisContext,
    Criticality,
    MetadataSnapshot,
    SourceHostSignals,
    Usage,
    VulnerabilitySummary,
    days_since,
    years_since,
)
from depwise.scoring.weights import WeightMode, WeightSignals

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)


def _healthy_snapshot(**kwargs) -> MetadataSnapshot:
    defaults = dict(
        name="example-lib",
        license="MIT",
        vulnerabilities=VulnerabilitySummary(count=0),
        source_host=SourceHostSignals(
            stars=50_000,
            archived=False,
            last_push=(NOW - timedelta(days=20)).isoformat(),
        ),
        direct_dependency_names=(),
    )
    defaults.update(kwargs)
    return MetadataSnapshot(**defaults)


def _vulnerable_agpl_snapshot() -> MetadataSnapshot:
    return MetadataSnapshot(
        name="agpl-lib",
        license="AGPL-3.0",
        vulnerabilities=VulnerabilitySummary(count=12, critical=2),
    )


class TestRiskAssessmentEngine:
    """Tests for RiskAssessmentEngine class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.engine = RiskAssessmentEngine(now=NOW)

    def test_healthy_permissive_package(self):
        breakdown = self.engine.assess(_healthy_snapshot())
        assert breakdown.security == pytest.approx(0.0)
        assert breakdown.operational < 2.0
        assert breakdown.compliance == 0.0
        assert breakdown.supply_chain == pytest.approx(0.5)
        assert breakdown.risk_level == RiskLevel.MINIMAL
        assert breakdown.primary_concern == NO_CONCERN
        assert breakdown.weight_profile == "default"

    def test_vulnerable_network_copyleft_package(self):
        breakdown = self.engine.assess(_vulnerable_agpl_snapshot())
        assert breakdown.compliance >= 7.0
        assert breakdown.security >= 8.0
        assert breakdown.weight_profile == "critical-cve"
        assert breakdown.weights[Dimension.SECURITY] == pytest.approx(0.6)
        # 0.6 * 8.0 + 0.15 * 5.5 + 0.1 * 7.0 + 0.15 * 0.5
        assert breakdown.overall == pytest.approx(6.4)
        assert breakdown.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)
        assert breakdown.primary_concern == Dimension.SECURITY

    def test_scores_stay_in_range(self):
        snapshot = MetadataSnapshot(
            name="torch",
            license="Proprietary",
            vulnerabilities=VulnerabilitySummary(count=80, critical=40),
            source_host=SourceHostSignals(stars=3, forks=0, open_issues=500, archived=True),
            direct_dependency_names=tuple(f"dep{i}" for i in range(90)),
        )
        breakdown = self.engine.assess(snapshot, AnalysisContext(criticality=Criticality.CORE))
        for dim in Dimension:
            assert 0.0 <= breakdown.score_for(dim) <= 10.0
        assert 0.0 <= breakdown.overall <= 10.0
        assert breakdown.risk_level == RiskLevel.CRITICAL

    def test_weights_sum_to_one(self):
        for snapshot in (_healthy_snapshot(), _vulnerable_agpl_snapshot()):
            assert sum(self.engine.assess(snapshot).weights.values()) == pytest.approx(1.0)

    def test_assessment_is_deterministic(self):
        snapshot = _vulnerable_agpl_snapshot()
        assert self.engine.assess(snapshot).to_dict() == self.engine.assess(snapshot).to_dict()

    def test_snapshot_is_not_mutated(self):
        snapshot = _healthy_snapshot()
        before = snapshot.to_dict()
        self.engine.assess(snapshot)
        assert snapshot.to_dict() == before

    def test_unknown_license_selects_license_profile(self):
        breakdown = self.engine.assess(_healthy_snapshot(license=""))
        assert breakdown.compliance == 10.0
        assert breakdown.weight_profile == "license-risk"
        assert breakdown.primary_concern == Dimension.COMPLIANCE

    def test_fixed_weight_mode(self):
        engine = RiskAssessmentEngine(weight_mode=WeightMode.FIXED, now=NOW)
        breakdown = engine.assess(_vulnerable_agpl_snapshot())
        assert breakdown.weight_mode == "fixed"
        assert breakdown.weights[Dimension.SECURITY] == pytest.approx(0.5)
        assert breakdown.weights[Dimension.OPERATIONAL] == pytest.approx(0.3)

    def test_weight_signals_detect_abandonment(self):
        snapshot = _healthy_snapshot(
            source_host=SourceHostSignals(stars=10, last_push=(NOW - timedelta(days=800)).isoformat())
        )
        scores = self.engine.score_dimensions(snapshot)
        signals = self.engine.weight_signals(snapshot, scores)
        assert signals.abandoned is True
        assert self.engine.assess(snapshot).weight_profile == "abandoned"


class TestContextModifiers:
    def setup_method(self):
        self.engine = RiskAssessmentEngine(now=NOW)

    def test_dev_usage_lowers_security_and_operational(self):
        breakdown = self.engine.assess(_vulnerable_agpl_snapshot(), AnalysisContext(usage=Usage.DEV))
        assert breakdown.security == pytest.approx(5.6)
        assert breakdown.operational == pytest.approx(4.4)
        # Compliance and supply chain are not modified
        assert breakdown.compliance == 7.0
        assert breakdown.supply_chain == 0.5

    def test_core_criticality_raises_scores(self):
        breakdown = self.engine.assess(_vulnerable_agpl_snapshot(), AnalysisContext(criticality=Criticality.CORE))
        assert breakdown.security == pytest.approx(9.6)
        assert breakdown.operational == pytest.approx(6.05)

    def test_modifiers_compose_multiplicatively(self):
        scores = {
            Dimension.SECURITY: DimensionScore(score=5.0),
            Dimension.OPERATIONAL: DimensionScore(score=5.0),
            Dimension.COMPLIANCE: DimensionScore(score=5.0),
            Dimension.SUPPLY_CHAIN: DimensionScore(score=5.0),
        }
        context = AnalysisContext(usage=Usage.CI_ONLY, criticality=Criticality.CORE)
        modified = self.engine.apply_context(scores, context)
        assert modified[Dimension.SECURITY].score == pytest.approx(3.0)  # 5 * 0.5 * 1.2
        assert modified[Dimension.OPERATIONAL].score == pytest.approx(3.3)  # 5 * 0.6 * 1.1
        assert modified[Dimension.COMPLIANCE].score == 5.0

    def test_support_criticality_is_neutral(self):
        plain = self.engine.assess(_vulnerable_agpl_snapshot())
        supported = self.engine.assess(
            _vulnerable_agpl_snapshot(), AnalysisContext(criticality=Criticality.SUPPORT)
        )
        assert plain.overall == supported.overall

    def test_context_from_strings(self):
        context = AnalysisContext.from_strings("ci-only", "core")
        assert context.usage == Usage.CI_ONLY
        assert context.criticality == Criticality.CORE
        assert AnalysisContext.from_strings() == AnalysisContext()


class TestPrimaryConcern:
    def test_below_floor_is_none(self):
        values = {dim: 3.9 for dim in Dimension}
        assert RiskAssessmentEngine.primary_concern(values) == NO_CONCERN

    def test_highest_dimension_wins(self):
        values = {
            Dimension.SECURITY: 1.0,
            Dimension.OPERATIONAL: 4.5,
            Dimension.COMPLIANCE: 7.0,
            Dimension.SUPPLY_CHAIN: 2.0,
        }
        assert RiskAssessmentEngine.primary_concern(values) == Dimension.COMPLIANCE

    def test_ties_follow_dimension_order(self):
        values = {
            Dimension.SECURITY: 2.0,
            Dimension.OPERATIONAL: 6.0,
            Dimension.COMPLIANCE: 6.0,
            Dimension.SUPPLY_CHAIN: 6.0,
        }
        assert RiskAssessmentEngine.primary_concern(values) == Dimension.OPERATIONAL


class TestConfidence:
    def setup_method(self):
        self.engine = RiskAssessmentEngine(now=NOW)

    def test_minimal_data(self):
        assert self.engine.confidence(MetadataSnapshot(name="obscure-lib")) == 50

    def test_full_data_for_popular_repository(self):
        assert self.engine.confidence(_healthy_snapshot()) == 95

    def test_capped_at_100(self):
        assert self.engine.confidence(_healthy_snapshot(name="requests")) == 100

    def test_stars_only_count_with_repository(self):
        snapshot = MetadataSnapshot(name="obscure-lib", vulnerabilities=VulnerabilitySummary())
        assert self.engine.confidence(snapshot) == 65


class TestCombine:
    def test_overall_is_weighted_sum(self):
        engine = RiskAssessmentEngine(now=NOW)
        scores = {
            Dimension.SECURITY: DimensionScore(score=4.0),
            Dimension.OPERATIONAL: DimensionScore(score=2.0),
            Dimension.COMPLIANCE: DimensionScore(score=0.0),
            Dimension.SUPPLY_CHAIN: DimensionScore(score=1.0),
        }
        breakdown = engine.combine(scores, WeightSignals(), package_name="pkg", confidence=70)
        # 0.4 * 4 + 0.25 * 2 + 0.15 * 0 + 0.2 * 1
        assert breakdown.overall == pytest.approx(2.3)
        assert breakdown.risk_level == RiskLevel.LOW
        assert breakdown.confidence == 70
        assert breakdown.package_name == "pkg"

    def test_only_overall_is_rounded(self):
        engine = RiskAssessmentEngine(now=NOW)
        scores = {
            Dimension.SECURITY: DimensionScore(score=5.5),
            Dimension.OPERATIONAL: DimensionScore(score=5.5),
            Dimension.COMPLIANCE: DimensionScore(score=0.0),
            Dimension.SUPPLY_CHAIN: DimensionScore(score=0.4375),
        }
        context = AnalysisContext(criticality=Criticality.CORE)
        breakdown = engine.combine(scores, WeightSignals(), context=context)
        # 0.4 * 6.6 + 0.25 * 6.05 + 0.2 * 0.4375 = 4.24; rounding 6.05 first would give 4.2525
        assert breakdown.operational == pytest.approx(6.05)
        assert breakdown.overall == 4.2


class TestNaiveReferenceTime:
    """A naive ``now`` is read as UTC."""

    def test_days_and_years_since(self):
        naive = NOW.replace(tzinfo=None)
        assert days_since("2025-05-02T00:00:00Z", naive) == 30.0
        assert years_since("2024-06-01T00:00:00+00:00", naive) == pytest.approx(1.0)

    def test_engine_accepts_naive_now(self):
        aware = RiskAssessmentEngine(now=NOW).assess(_healthy_snapshot())
        naive = RiskAssessmentEngine(now=NOW.replace(tzinfo=None)).assess(_healthy_snapshot())
        assert naive.to_dict() == aware.to_dict()
