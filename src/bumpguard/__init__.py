"""bumpguard: evidence-fusion and risk scoring for dependency upgrades."""

from bumpguard.analysis.changelog_parser import extract_breaking_changes
from bumpguard.analysis.usage_finder import scan_usage
from bumpguard.config import BumpguardConfig, load_config
from bumpguard.core.change_set import is_lockfile_only_change
from bumpguard.core.engine import UpgradeRiskEngine, assess_update
from bumpguard.core.models import (
    BreakingChange,
    DependencyAssessment,
    PackageUpdate,
    RiskAssessment,
    RiskLevel,
    UsageAnalysis,
)
from bumpguard.errors import BumpguardError, InvalidPackageIdentifierError

__version__ = "0.1.0"

__all__ = [
    "BreakingChange",
    "BumpguardConfig",
    "BumpguardError",
    "DependencyAssessment",
    "InvalidPackageIdentifierError",
    "PackageUpdate",
    "RiskAssessment",
    "RiskLevel",
    "UpgradeRiskEngine",
    "UsageAnalysis",
    "assess_update",
    "extract_breaking_changes",
    "is_lockfile_only_change",
    "load_config",
    "scan_usage",
    "__version__",
]
