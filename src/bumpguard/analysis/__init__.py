"""Upgrade risk analysis.

Components:
- versions: version parsing and delta arithmetic
- changelog_parser: breaking change extraction from free-form text
- known_breaking_changes: curated breaking changes for popular packages
- static_analyzer: tree-sitter binding resolvers for JavaScript/TypeScript and Python
- usage_finder: find dependency usage locations in a codebase
- impact_calculator: calculate risk scores, levels and guidance
"""

from bumpguard.analysis.changelog_parser import (
    BreakingChangeExtractor,
    extract_breaking_changes,
    filter_by_token_limit,
    merge_breaking_changes,
)
from bumpguard.analysis.known_breaking_changes import KnowledgeBase, KnownBreakingChange
from bumpguard.analysis.impact_calculator import (
    RiskScoreWeights,
    RiskScoringEngine,
    RiskThresholds,
    assess_risk,
    build_risk_factors,
)
from bumpguard.analysis.static_analyzer import (
    BaseLanguageAnalyzer,
    JavaScriptAnalyzer,
    PythonAnalyzer,
)
from bumpguard.analysis.usage_finder import UsageScanner, classify_context, scan_usage
from bumpguard.analysis.versions import compute_version_delta, parse_version

__all__ = [
    # Versions
    "compute_version_delta",
    "parse_version",
    # Changelog parser
    "BreakingChangeExtractor",
    "extract_breaking_changes",
    "filter_by_token_limit",
    "merge_breaking_changes",
    # Known breaking changes
    "KnowledgeBase",
    "KnownBreakingChange",
    # Static analysis
    "BaseLanguageAnalyzer",
    "JavaScriptAnalyzer",
    "PythonAnalyzer",
    # Usage scanning
    "UsageScanner",
    "classify_context",
    "scan_usage",
    # Scoring
    "RiskScoreWeights",
    "RiskScoringEngine",
    "RiskThresholds",
    "assess_risk",
    "build_risk_factors",
]
