"""Core module containing data models, change-set helpers and the risk engine."""

from bumpguard.core.models import (
    BreakingChange,
    BreakingSeverity,
    DependencyAssessment,
    DependencyClass,
    Ecosystem,
    EvidenceBundle,
    EvidenceDepth,
    EvidenceKind,
    MigrationComplexity,
    PackageUpdate,
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    StrategyResult,
    UsageAnalysis,
    UsageContext,
    UsageKind,
    UsageLocation,
    VersionDelta,
)

__all__ = [
    "BreakingChange",
    "BreakingSeverity",
    "DependencyAssessment",
    "DependencyClass",
    "Ecosystem",
    "EvidenceBundle",
    "EvidenceDepth",
    "EvidenceKind",
    "MigrationComplexity",
    "PackageUpdate",
    "RiskAssessment",
    "RiskFactors",
    "RiskLevel",
    "StrategyResult",
    "UsageAnalysis",
    "UsageContext",
    "UsageKind",
    "UsageLocation",
    "VersionDelta",
]
