"""Risk dimensions, levels and the assessment result structure."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class RiskLevel(str, Enum):
    """Risk level classification of an overall 0-10 score."""

    CRITICAL = "critical"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"
    MINIMAL = "minimal"

    @classmethod
    def from_score(cls, score: float) -> "RiskLevel":
        """Get risk level from an overall score."""
        if score >= 8:
            return cls.CRITICAL
        elif score >= 6:
            return cls.HIGH
        elif score >= 4:
            return cls.MODERATE
        elif score >= 2:
            return cls.LOW
        else:
            return cls.MINIMAL

    @property
    def semaphore(self) -> str:
        """Get semaphore emoji for this risk level."""
        return {
            RiskLevel.CRITICAL: "🔴",
            RiskLevel.HIGH: "🟠",
            RiskLevel.MODERATE: "🟡",
            RiskLevel.LOW: "🟢",
            RiskLevel.MINIMAL: "🟢",
        }[self]

    @property
    def description(self) -> str:
        """Human-readable description of the risk level."""
        return {
            RiskLevel.CRITICAL: "Blocking risk - replace or remediate before use",
            RiskLevel.HIGH: "Elevated risk - look for a safer alternative",
            RiskLevel.MODERATE: "Acceptable with active monitoring",
            RiskLevel.LOW: "Minor concerns, generally safe",
            RiskLevel.MINIMAL: "Safe, well-maintained dependency",
        }[self]


class Dimension(str, Enum):
    """The four risk dimensions, in tie-break order."""

    SECURITY = "security"
    OPERATIONAL = "operational"
    COMPLIANCE = "compliance"
    SUPPLY_CHAIN = "supplyChain"


# Value of ``RiskBreakdown.primary_concern`` when nothing stands out
NO_CONCERN = "none"

# Primary concern is only reported from this score upwards
PRIMARY_CONCERN_FLOOR = 4.0

PrimaryConcern = Union[Dimension, str]


def clamp(value: float, low: float = 0.0, high: float = 10.0) -> float:
    """Clamp ``value`` into [low, high]."""
    return max(low, min(high, value))


@dataclass
class DimensionScore:
    """Score and supporting evidence for a single risk dimension."""

    score: float = 0.0
    concerns: list[str] = field(default_factory=list)
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        self.score = clamp(self.score)

    def scaled(self, factor: float) -> "DimensionScore":
        """Return a copy with the score multiplied by ``factor`` (re-clamped)."""
        return DimensionScore(
            score=clamp(self.score * factor),
            concerns=list(self.concerns),
            details=dict(self.details),
        )

    def to_dict(self) -> dict:
        return {"score": self.score, "concerns": self.concerns, **self.details}


@dataclass
class RiskBreakdown:
    """Complete risk assessment result."""

    package_name: str
    security: float = 0.0
    operational: float = 0.0
    compliance: float = 0.0
    supply_chain: float = 0.0

    overall: float = 0.0
    confidence: int = 50
    risk_level: RiskLevel = RiskLevel.MINIMAL
    primary_concern: PrimaryConcern = NO_CONCERN

    # Weighting actually used
    weights: dict[Dimension, float] = field(default_factory=dict)
    weight_mode: str = "adaptive"
    weight_profile: str = "default"

    details: dict[Dimension, DimensionScore] = field(default_factory=dict)

    def score_for(self, dimension: Dimension) -> float:
        return {
            Dimension.SECURITY: self.security,
            Dimension.OPERATIONAL: self.operational,
            Dimension.COMPLIANCE: self.compliance,
            Dimension.SUPPLY_CHAIN: self.supply_chain,
        }[dimension]

    @property
    def concerns(self) -> list[str]:
        """All concerns across dimensions, in dimension order."""
        return [c for dim in Dimension for c in self.details.get(dim, DimensionScore()).concerns]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        primary = self.primary_concern
        return {
            "package": self.package_name,
            "scores": {
                "security": self.security,
                "operational": self.operational,
                "compliance": self.compliance,
                "supplyChain": self.supply_chain,
                "overall": self.overall,
            },
            "confidence": self.confidence,
            "riskLevel": self.risk_level.value,
            "primaryConcern": primary.value if isinstance(primary, Dimension) else primary,
            "weights": {
                "mode": self.weight_mode,
                "profile": self.weight_profile,
                "values": {dim.value: w for dim, w in self.weights.items()},
            },
            "details": {dim.value: ds.to_dict() for dim, ds in self.details.items()},
        }
