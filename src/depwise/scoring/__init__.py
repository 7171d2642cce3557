"""Risk scoring engine."""

from depwise.scoring.dimensions import ComplianceRisk, OperationalRisk, SecurityRisk, SupplyChainRisk
from depwise.scoring.engine import RiskAssessmentEngine
from depwise.scoring.factors import Dimension, DimensionScore, RiskBreakdown, RiskLevel
from depwise.scoring.metadata import (
    AnalysisContext,
    Criticality,
    MetadataSnapshot,
    SourceHostSignals,
    Usage,
    VulnerabilityFinding,
    VulnerabilitySummary,
)
from depwise.scoring.weights import WeightMode, WeightProfile, WeightSignals, select_weights

__all__ = [
    "AnalysisContext",
    "ComplianceRisk",
    "Criticality",
    "Dimension",
    "DimensionScore",
    "MetadataSnapshot",
    "OperationalRisk",
    "RiskAssessmentEngine",
    "RiskBreakdown",
    "RiskLevel",
    "SecurityRisk",
    "SourceHostSignals",
    "SupplyChainRisk",
    "Usage",
    "VulnerabilityFinding",
    "VulnerabilitySummary",
    "WeightMode",
    "WeightProfile",
    "WeightSignals",
    "select_weights",
]
