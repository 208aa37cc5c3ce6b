"""Core data models for bumpguard.

Every record is immutable once constructed. Attributes use snake_case in
Python and serialize with camelCase aliases (``model_dump(by_alias=True)``)
so the wire shape stays stable for report renderers.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class Ecosystem(str, Enum):
    """Supported package ecosystems."""

    NPM = "npm"
    PYPI = "pypi"


class DependencyClass(str, Enum):
    """How a dependency is declared in the manifest."""

    PRODUCTION = "production"
    DEVELOPMENT = "development"
    PEER = "peer"
    OPTIONAL = "optional"


class BreakingSeverity(str, Enum):
    """Severity of a breaking-change statement.

    Breaking outranks removal, which outranks warning.
    """

    BREAKING = "breaking"
    REMOVAL = "removal"
    WARNING = "warning"

    @property
    def priority(self) -> int:
        """Sort rank, lowest first."""
        return _SEVERITY_PRIORITY[self]


_SEVERITY_PRIORITY = {
    BreakingSeverity.BREAKING: 0,
    BreakingSeverity.REMOVAL: 1,
    BreakingSeverity.WARNING: 2,
}


class UsageKind(str, Enum):
    """Syntactic role of a reference to a dependency."""

    IMPORT = "import"
    FUNCTION_CALL = "function-call"
    PROPERTY_ACCESS = "property-access"
    CONSTRUCTOR = "constructor"
    EXTENDS = "extends"
    TYPE_REFERENCE = "type-reference"
    CONFIG = "config"
    OTHER = "other"


class UsageContext(str, Enum):
    """Where in the codebase a usage lives, derived from its path."""

    PRODUCTION = "production"
    TEST = "test"
    CONFIG = "config"
    BUILD = "build"


class EvidenceDepth(str, Enum):
    """How much changelog/diff evidence backs an assessment."""

    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


class EvidenceKind(str, Enum):
    """What kind of evidence a strategy contributes."""

    CHANGELOG = "changelog"
    DIFF = "diff"


class MigrationComplexity(str, Enum):
    """Estimated effort class of a migration."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class RiskLevel(str, Enum):
    """Discrete risk verdict.

    The first five members are ordered from least to most risky.
    ``UNKNOWN`` sits outside that ordering and means no structured
    evidence was observed.
    """

    SAFE = "safe"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"

    @property
    def rank(self) -> int | None:
        """Ordinal position, or None for ``UNKNOWN``."""
        if self is RiskLevel.UNKNOWN:
            return None
        return _LEVEL_ORDER.index(self)


_LEVEL_ORDER = [
    RiskLevel.SAFE,
    RiskLevel.LOW,
    RiskLevel.MEDIUM,
    RiskLevel.HIGH,
    RiskLevel.CRITICAL,
]


class PackageUpdate(_Record):
    """A proposed bump of one dependency."""

    name: str = Field(..., description="Package name as published")
    from_version: str = Field(..., description="Version currently in use")
    to_version: str = Field(..., description="Version proposed by the change set")
    dependency_class: DependencyClass | None = Field(
        default=None, description="Manifest section declaring the dependency"
    )
    ecosystem: Ecosystem = Field(default=Ecosystem.NPM)
    lockfile_only: bool = Field(
        default=False, description="Change set touches only lockfiles"
    )

    @property
    def is_type_definition_package(self) -> bool:
        """Whether the package only ships type annotations."""
        if self.ecosystem == Ecosystem.NPM:
            return self.name.startswith("@types/")
        lowered = self.name.lower()
        return lowered.startswith("types-") or lowered.endswith("-stubs")

    @property
    def is_dev_dependency(self) -> bool:
        return self.dependency_class == DependencyClass.DEVELOPMENT

    def __str__(self) -> str:
        return f"{self.name} {self.from_version} -> {self.to_version}"


class BreakingChange(_Record):
    """A severity-classified breaking-change statement."""

    text: str
    severity: BreakingSeverity

    @property
    def key(self) -> str:
        """Identity key: whitespace collapsed, case folded."""
        return normalize_change_text(self.text)


def normalize_change_text(text: str) -> str:
    """Collapse whitespace and case fold a change statement."""
    return " ".join(text.split()).casefold()


class StrategyResult(_Record):
    """Output of a single evidence strategy invocation."""

    content: str
    breaking_change_lines: list[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    source_name: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class EvidenceBundle(_Record):
    """The fallback chain's fused evidence for one update."""

    content: str = ""
    breaking_change_lines: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    source_names: list[str] = Field(default_factory=list)
    evidence_kinds: list[EvidenceKind] = Field(
        default_factory=list, description="Kinds of the sources whose content was included"
    )

    @property
    def has_changelog(self) -> bool:
        return EvidenceKind.CHANGELOG in self.evidence_kinds

    @property
    def has_diff(self) -> bool:
        return EvidenceKind.DIFF in self.evidence_kinds


class UsageLocation(_Record):
    """One occurrence of a dependency in the codebase."""

    file: str = Field(..., description="Path relative to the scanned root")
    line: int = Field(..., ge=1)
    column: int = Field(default=0, ge=0)
    kind: UsageKind
    snippet: str = ""
    context: UsageContext = UsageContext.PRODUCTION
    symbol: str | None = Field(default=None, description="Binding or member referenced")


class UsageAnalysis(_Record):
    """Aggregate view over the usage locations of one package."""

    package_name: str
    locations: list[UsageLocation] = Field(default_factory=list)
    total_usage_count: int = 0
    production_usage_count: int = 0
    test_usage_count: int = 0
    config_usage_count: int = 0
    critical_paths: list[str] = Field(default_factory=list)
    has_dynamic_imports: bool = False
    files_scanned: int = 0
    files_skipped: int = 0

    @property
    def has_usage(self) -> bool:
        return self.total_usage_count > 0


class VersionDelta(_Record):
    """Per-component difference between two versions; may be negative."""

    major: int = 0
    minor: int = 0
    patch: int = 0

    @property
    def is_patch_only(self) -> bool:
        return self.major == 0 and self.minor == 0 and self.patch > 0

    @property
    def is_minor_only(self) -> bool:
        return self.major == 0 and self.minor > 0


class RiskFactors(_Record):
    """Working record fed into the scoring function."""

    version_delta: VersionDelta
    production_usage_count: int = 0
    total_usage_count: int = 0
    critical_path_usage: bool = False
    test_coverage: float = Field(default=0.0, ge=0.0, le=100.0)
    breaking_changes: list[BreakingChange] = Field(default_factory=list)
    evidence_depth: EvidenceDepth = EvidenceDepth.NONE
    evidence_confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    changelog_available: bool = False
    is_type_definition_package: bool = False
    is_dev_dependency: bool = False
    is_lockfile_only: bool = False
    migration_complexity: MigrationComplexity = MigrationComplexity.SIMPLE

    @computed_field
    @property
    def breaking_change_count(self) -> int:
        return len(self.breaking_changes)


class RiskAssessment(_Record):
    """Final verdict for one package update."""

    level: RiskLevel
    score: float = Field(..., ge=0.0, le=100.0)
    factor_descriptions: list[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0.0, le=1.0)
    mitigation_steps: list[str] = Field(default_factory=list)
    estimated_effort: str
    testing_scope: str


class DependencyAssessment(_Record):
    """Everything the engine produced for one update in a change set."""

    update: PackageUpdate
    assessment: RiskAssessment | None = None
    evidence: EvidenceBundle | None = None
    breaking_changes: list[BreakingChange] = Field(default_factory=list)
    migration_steps: list[str] = Field(default_factory=list)
    usage: UsageAnalysis | None = None
    error: str | None = Field(default=None, description="Hard failure for this entry, if any")

    @property
    def succeeded(self) -> bool:
        return self.assessment is not None
