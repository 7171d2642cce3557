"""Weight profiles for combining dimension scores."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from depwise.scoring.factors import Dimension

logger = logging.getLogger(__name__)


class WeightMode(str, Enum):
    """How dimension weights are chosen."""

    ADAPTIVE = "adaptive"  # first matching rule in ADAPTIVE_RULES
    FIXED = "fixed"  # security 5, operational 3, supply chain 1, compliance 1


@dataclass(frozen=True)
class WeightProfile:
    """Named weight vector over the four dimensions."""

    name: str
    security: float
    operational: float
    compliance: float
    supply_chain: float

    def __post_init__(self):
        total = self.security + self.operational + self.compliance + self.supply_chain
        if abs(total - 1.0) > 1e-9:
            raise ValueError(f"Weight profile {self.name!r} sums to {total}, expected 1.0")

    @classmethod
    def normalized(cls, name: str, **raw: float) -> "WeightProfile":
        """Build a profile from relative weights (e.g. 5/3/1/1)."""
        total = sum(raw.values())
        return cls(name=name, **{k: v / total for k, v in raw.items()})

    def as_dict(self) -> dict[Dimension, float]:
        return {
            Dimension.SECURITY: self.security,
            Dimension.OPERATIONAL: self.operational,
            Dimension.COMPLIANCE: self.compliance,
            Dimension.SUPPLY_CHAIN: self.supply_chain,
        }


@dataclass(frozen=True)
class WeightSignals:
    """Facts about a package that drive adaptive weight selection."""

    critical_count: int = 0
    vulnerability_count: int = 0
    abandoned: bool = False  # archived, or no push for over two years
    license_unknown: bool = False
    compliance_score: float = 0.0
    direct_dependencies: int = 0


@dataclass(frozen=True)
class WeightRule:
    name: str
    applies: Callable[[WeightSignals], bool]
    profile: WeightProfile


DEFAULT_PROFILE = WeightProfile("default", security=0.40, operational=0.25, compliance=0.15, supply_chain=0.20)

# Evaluated in order; the first rule that applies wins.
ADAPTIVE_RULES: tuple[WeightRule, ...] = (
    WeightRule(
        "critical-cve",
        lambda s: s.critical_count > 0,
        WeightProfile("critical-cve", security=0.60, operational=0.15, compliance=0.10, supply_chain=0.15),
    ),
    WeightRule(
        "vulnerable",
        lambda s: s.vulnerability_count > 0,
        WeightProfile("vulnerable", security=0.50, operational=0.20, compliance=0.10, supply_chain=0.20),
    ),
    WeightRule(
        "abandoned",
        lambda s: s.abandoned,
        WeightProfile("abandoned", security=0.30, operational=0.40, compliance=0.10, supply_chain=0.20),
    ),
    WeightRule(
        "license-risk",
        lambda s: s.license_unknown or s.compliance_score >= 6,
        WeightProfile("license-risk", security=0.35, operational=0.20, compliance=0.25, supply_chain=0.20),
    ),
    WeightRule(
        "dependency-heavy",
        lambda s: s.direct_dependencies > 20,
        WeightProfile("dependency-heavy", security=0.35, operational=0.20, compliance=0.15, supply_chain=0.30),
    ),
    WeightRule("default", lambda s: True, DEFAULT_PROFILE),
)

FIXED_PROFILE = WeightProfile.normalized("fixed", security=5, operational=3, compliance=1, supply_chain=1)


def select_weights(signals: WeightSignals, mode: WeightMode = WeightMode.ADAPTIVE) -> WeightProfile:
    """Pick the weight profile for a package."""
    if mode == WeightMode.FIXED:
        return FIXED_PROFILE

    for rule in ADAPTIVE_RULES:
        if rule.applies(signals):
            logger.debug(f"Weight profile {rule.name!r} selected")
            return rule.profile
    return DEFAULT_PROFILE
