"""Risk scoring engine turning upgrade evidence into a risk verdict."""

from dataclasses import dataclass

from bumpguard.core.models import (
    BreakingChange,
    EvidenceBundle,
    EvidenceDepth,
    MigrationComplexity,
    PackageUpdate,
    RiskAssessment,
    RiskFactors,
    RiskLevel,
    UsageAnalysis,
    VersionDelta,
)

MAX_ADVISED_BREAKING_CHANGES = 3
ADVICE_EXCERPT_LENGTH = 50


@dataclass
class RiskScoreWeights:
    """Weights for risk score calculation."""

    # Version jump points per component
    major_weight: int = 20
    minor_weight: int = 5
    patch_weight: int = 1

    # Production usage (0-20 points) plus critical path bonus
    usage_weight: int = 2
    max_usage_points: int = 20
    critical_path_points: int = 10

    # Breaking changes (0-20 points)
    breaking_change_weight: int = 5
    max_breaking_change_points: int = 20

    # Evidence depth penalty
    no_evidence_penalty: int = 10
    partial_evidence_penalty: int = 5

    # Test coverage deduction (0-20 points)
    max_coverage_deduction: int = 20

    # Package class overrides
    type_definition_patch_deduction: int = 10
    type_definition_minor_deduction: int = 5
    type_definition_scale: float = 0.3
    type_definition_major_floor: float = 10.0
    dev_dependency_deduction: int = 1
    lockfile_scale: float = 0.3
    lockfile_cap: float = 10.0


@dataclass
class RiskThresholds:
    """Upper score bounds of each risk level."""

    safe: float = 1.0  # inclusive
    low: float = 10.0  # inclusive
    medium: float = 30.0  # exclusive
    high: float = 50.0  # exclusive


def evidence_depth(has_changelog: bool, has_diff: bool) -> EvidenceDepth:
    if has_changelog and has_diff:
        return EvidenceDepth.FULL
    if has_changelog or has_diff:
        return EvidenceDepth.PARTIAL
    return EvidenceDepth.NONE


def coverage_ratio(usage: UsageAnalysis | None) -> float:
    """Approximate test coverage as test usages per production usage.

    Returns:
        Percentage in [0, 100]. Unscanned codebases count as 0 and a
        scanned codebase with no production usage as 100.
    """
    if usage is None:
        return 0.0
    if usage.production_usage_count == 0:
        return 100.0
    return min(usage.test_usage_count / usage.production_usage_count * 100, 100.0)


def migration_complexity(breaking_change_count: int, usage_count: int) -> MigrationComplexity:
    if breaking_change_count == 0:
        return MigrationComplexity.SIMPLE
    if breaking_change_count > 5 or usage_count > 20:
        return MigrationComplexity.COMPLEX
    if breaking_change_count > 2 or usage_count > 10:
        return MigrationComplexity.MODERATE
    return MigrationComplexity.SIMPLE


def build_risk_factors(
    update: PackageUpdate,
    delta: VersionDelta,
    breaking_changes: list[BreakingChange],
    usage: UsageAnalysis | None = None,
    evidence: EvidenceBundle | None = None,
    test_coverage: float | None = None,
) -> RiskFactors:
    """Assemble the scoring engine's working record.

    Args:
        update: Update being assessed.
        delta: Version delta between the two versions.
        breaking_changes: Breaking changes found in the evidence.
        usage: Usage of the package in the codebase, if scanned.
        evidence: Fused evidence bundle, if gathered.
        test_coverage: Explicit coverage percentage overriding the usage ratio.

    Returns:
        Risk factors ready for scoring.
    """
    production = usage.production_usage_count if usage else 0
    has_changelog = evidence.has_changelog if evidence else False
    has_diff = evidence.has_diff if evidence else False
    coverage = test_coverage if test_coverage is not None else coverage_ratio(usage)

    return RiskFactors(
        version_delta=delta,
        production_usage_count=production,
        total_usage_count=usage.total_usage_count if usage else 0,
        critical_path_usage=bool(usage and usage.critical_paths),
        test_coverage=max(0.0, min(coverage, 100.0)),
        breaking_changes=breaking_changes,
        evidence_depth=evidence_depth(has_changelog, has_diff),
        evidence_confidence=evidence.confidence if evidence else 0.0,
        changelog_available=has_changelog,
        is_type_definition_package=update.is_type_definition_package,
        is_dev_dependency=update.is_dev_dependency,
        is_lockfile_only=update.lockfile_only,
        migration_complexity=migration_complexity(len(breaking_changes), production),
    )


class RiskScoringEngine:
    """Calculates risk scores, levels and guidance for dependency upgrades."""

    def __init__(
        self,
        weights: RiskScoreWeights | None = None,
        thresholds: RiskThresholds | None = None,
    ):
        """Initialize the scoring engine.

        Args:
            weights: Optional custom weights for scoring.
            thresholds: Optional custom level boundaries.
        """
        self._weights = weights or RiskScoreWeights()
        self._thresholds = thresholds or RiskThresholds()

    def assess(self, factors: RiskFactors) -> RiskAssessment:
        """Produce the full risk verdict for one set of factors.

        Args:
            factors: Risk factors of the update.

        Returns:
            Complete risk assessment.
        """
        score = self.calculate_score(factors)
        level = self.determine_level(score, factors)

        return RiskAssessment(
            level=level,
            score=score,
            factor_descriptions=self.describe_factors(factors),
            confidence=self.calculate_confidence(factors),
            mitigation_steps=self.mitigation_steps(factors, level),
            estimated_effort=self.estimate_effort(factors, level),
            testing_scope=self.testing_scope(factors, level),
        )

    def calculate_score(self, factors: RiskFactors) -> float:
        """Calculate the 0-100 risk score.

        Args:
            factors: Risk factors of the update.

        Returns:
            Clamped score after package class overrides.
        """
        w = self._weights
        delta = factors.version_delta

        score = float(
            delta.major * w.major_weight
            + delta.minor * w.minor_weight
            + delta.patch * w.patch_weight
        )

        score += min(factors.production_usage_count * w.usage_weight, w.max_usage_points)
        if factors.critical_path_usage:
            score += w.critical_path_points

        score += min(factors.breaking_change_count * w.breaking_change_weight, w.max_breaking_change_points)

        if factors.evidence_depth == EvidenceDepth.NONE:
            score += w.no_evidence_penalty
        elif factors.evidence_depth == EvidenceDepth.PARTIAL:
            score += w.partial_evidence_penalty

        score -= factors.test_coverage / 100 * w.max_coverage_deduction

        if factors.is_type_definition_package:
            if delta.is_patch_only:
                score = max(0.0, score - w.type_definition_patch_deduction)
            elif delta.is_minor_only:
                score = max(0.0, score - w.type_definition_minor_deduction)
            elif delta.major > 0:
                score = max(score * w.type_definition_scale, w.type_definition_major_floor)
            else:
                score *= w.type_definition_scale

        if factors.is_dev_dependency:
            score -= w.dev_dependency_deduction

        if factors.is_lockfile_only:
            score = min(score * w.lockfile_scale, w.lockfile_cap)

        return max(0.0, min(100.0, score))

    def determine_level(self, score: float, factors: RiskFactors) -> RiskLevel:
        """Map a score to a risk level.

        Type-definition packages keep their floors even without evidence;
        lockfile-only changes always use the plain score mapping. Otherwise
        an update with no evidence and no breaking changes is ``unknown``.
        """
        delta = factors.version_delta
        if factors.is_type_definition_package:
            if delta.is_patch_only:
                return RiskLevel.SAFE
            if delta.is_minor_only:
                return RiskLevel.SAFE if score <= self._thresholds.low else RiskLevel.LOW

        if not factors.is_lockfile_only and (
            factors.evidence_depth == EvidenceDepth.NONE and factors.breaking_change_count == 0
        ):
            return RiskLevel.UNKNOWN

        return self.score_to_level(score)

    def score_to_level(self, score: float) -> RiskLevel:
        t = self._thresholds
        if score <= t.safe:
            return RiskLevel.SAFE
        if score <= t.low:
            return RiskLevel.LOW
        if score < t.medium:
            return RiskLevel.MEDIUM
        if score < t.high:
            return RiskLevel.HIGH
        return RiskLevel.CRITICAL

    def calculate_confidence(self, factors: RiskFactors) -> float:
        confidence = 0.0
        if factors.changelog_available:
            confidence += 0.4
        if factors.evidence_depth == EvidenceDepth.FULL:
            confidence += 0.4
        elif factors.evidence_depth == EvidenceDepth.PARTIAL:
            confidence += 0.2
        if factors.test_coverage > 50:
            confidence += 0.2
        return min(round(confidence, 10), 1.0)

    def describe_factors(self, factors: RiskFactors) -> list[str]:
        """Human readable list of what drove the score."""
        descriptions: list[str] = []
        delta = factors.version_delta

        if delta.major > 0:
            descriptions.append(f"Major version upgrade ({delta.major} major versions)")
        elif delta.minor > 0:
            descriptions.append(f"Minor version upgrade ({delta.minor} minor versions)")

        if factors.breaking_change_count > 0:
            descriptions.append(f"{factors.breaking_change_count} breaking changes detected")

        if factors.production_usage_count > 0:
            descriptions.append(f"Used in {factors.production_usage_count} production locations")

        if factors.critical_path_usage:
            descriptions.append("Used in critical paths")

        if factors.is_type_definition_package:
            descriptions.append("Type definitions package")
        if factors.is_dev_dependency:
            descriptions.append("Development dependency")
        if factors.is_lockfile_only:
            descriptions.append("Lockfile-only change")

        if factors.evidence_depth == EvidenceDepth.NONE:
            descriptions.append("Limited information available")
        elif factors.evidence_confidence < 0.5:
            descriptions.append(f"Low evidence confidence ({round(factors.evidence_confidence * 100)}%)")

        if factors.test_coverage > 70:
            descriptions.append(f"Good test coverage ({round(factors.test_coverage)}%)")
        elif factors.test_coverage < 30 and factors.production_usage_count > 0:
            descriptions.append(f"Low test coverage ({round(factors.test_coverage)}%)")

        return descriptions

    def mitigation_steps(self, factors: RiskFactors, level: RiskLevel) -> list[str]:
        """Ordered advisory steps; informational only."""
        steps: list[str] = []

        if factors.evidence_depth == EvidenceDepth.NONE:
            steps.append("Review package documentation for migration guide")
            steps.append("Check GitHub issues for known problems")

        if factors.test_coverage < 50 and factors.production_usage_count > 0:
            steps.append("Add tests for affected functionality before upgrading")

        if factors.version_delta.major > 0:
            steps.append("Review breaking changes in release notes")
            steps.append("Update code to accommodate API changes")

        for change in factors.breaking_changes[:MAX_ADVISED_BREAKING_CHANGES]:
            lowered = change.text.lower()
            excerpt = change.text[:ADVICE_EXCERPT_LENGTH]
            if "removed" in lowered or "deleted" in lowered:
                steps.append(f"Replace removed functionality: {excerpt}...")
            elif "renamed" in lowered:
                steps.append(f"Update renamed APIs: {excerpt}...")

        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            steps.append("Prepare rollback plan in case of issues")

        return steps

    def estimate_effort(self, factors: RiskFactors, level: RiskLevel) -> str:
        if level == RiskLevel.SAFE:
            return "none"
        if level == RiskLevel.UNKNOWN:
            return "unknown"
        complexity = factors.migration_complexity
        if level == RiskLevel.CRITICAL or complexity == MigrationComplexity.COMPLEX:
            return "significant"
        if level == RiskLevel.HIGH or complexity == MigrationComplexity.MODERATE:
            return "moderate"
        if level == RiskLevel.MEDIUM and factors.production_usage_count > 5:
            return "moderate"
        return "minimal"

    def testing_scope(self, factors: RiskFactors, level: RiskLevel) -> str:
        if level == RiskLevel.SAFE:
            return "none"
        if level == RiskLevel.UNKNOWN:
            return "full regression recommended"
        if factors.critical_path_usage or level == RiskLevel.CRITICAL:
            return "full regression"
        if level == RiskLevel.HIGH or factors.production_usage_count > 10:
            return "integration"
        return "unit"


def assess_risk(factors: RiskFactors) -> RiskAssessment:
    """Convenience wrapper scoring one set of factors with default weights."""
    return RiskScoringEngine().assess(factors)
