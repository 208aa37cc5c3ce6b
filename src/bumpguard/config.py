"""Configuration management for bumpguard."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from bumpguard.errors import ConfigurationError

CONFIG_FILENAMES = [".bumpguard.yml", ".bumpguard.yaml"]

# Strategy keys in default priority order
STRATEGY_KEYS = ["content-diff", "release-notes", "changelog-file", "commit-history"]

DEFAULT_EXCLUDE_PATTERNS = [
    "node_modules/**",
    "vendor/**",
    ".git/**",
    "__pycache__/**",
    "*.pyc",
    ".venv/**",
    "venv/**",
    "env/**",
    ".env/**",
    "dist/**",
    "build/**",
    ".next/**",
    "coverage/**",
    ".pytest_cache/**",
    ".mypy_cache/**",
    ".ruff_cache/**",
    "*.min.js",
    "*.bundle.js",
]


class EvidenceConfig(BaseModel):
    """Configuration for evidence gathering."""

    short_circuit_confidence: float = Field(
        default=0.8,
        description="A single result above this confidence is returned without merging",
    )
    inclusion_confidence: float = Field(
        default=0.3,
        description="Merged content only includes sources above this confidence",
    )
    strategy_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds each strategy may take before it is abandoned",
    )
    enabled_strategies: list[str] = Field(
        default_factory=lambda: list(STRATEGY_KEYS),
        description="Strategies to run, in priority order",
    )

    @field_validator("short_circuit_confidence", "inclusion_confidence")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate that a confidence threshold is in [0, 1]."""
        if not 0.0 <= v <= 1.0:
            raise ValueError("confidence thresholds must be between 0 and 1")
        return v

    @field_validator("enabled_strategies")
    @classmethod
    def validate_strategies(cls, v: list[str]) -> list[str]:
        """Validate strategy names."""
        unknown = [name for name in v if name not in STRATEGY_KEYS]
        if unknown:
            raise ValueError(f"unknown strategies {unknown}; must be among: {STRATEGY_KEYS}")
        return list(dict.fromkeys(v))


class CacheConfig(BaseModel):
    """Configuration for the on-disk evidence cache."""

    enabled: bool = Field(default=False, description="Cache strategy results on disk")
    directory: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "bumpguard",
        description="Directory holding the cache database",
    )
    ttl_hours: int = Field(default=168, ge=1, description="Hours before a cached result expires")


class ScannerConfig(BaseModel):
    """Configuration for codebase usage scanning."""

    exclude_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS),
        description="Glob patterns for paths that are never scanned",
    )
    max_files: int = Field(default=5000, ge=1, description="Files scanned before stopping")
    max_file_bytes: int = Field(default=1_000_000, ge=1, description="Larger files are skipped")
    max_total_bytes: int = Field(default=50_000_000, ge=1, description="Bytes read before stopping")
    concurrency: int = Field(default=16, ge=1, description="Files analyzed at once")


class KnowledgeConfig(BaseModel):
    """Configuration for curated known breaking changes."""

    enabled: bool = Field(default=True, description="Add curated breaking changes to the evidence")
    files: list[Path] = Field(
        default_factory=list,
        description="YAML files with extra known breaking changes",
    )


class EngineConfig(BaseModel):
    """Configuration for batch assessment."""

    max_concurrency: int = Field(default=4, ge=1, description="Dependencies assessed at once")


class SourcesConfig(BaseModel):
    """Configuration for external evidence sources."""

    npm_registry_url: str = Field(default="https://registry.npmjs.org")
    pypi_url: str = Field(default="https://pypi.org")
    github_api_url: str = Field(default="https://api.github.com")
    github_token: str | None = Field(
        default=None,
        description="GitHub token (prefer GITHUB_TOKEN env var)",
    )
    request_timeout: float = Field(default=30.0, gt=0)
    npm_executable: str = Field(default="npm", description="npm binary used for package diffs")

    @field_validator("npm_registry_url", "pypi_url", "github_api_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize a service URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URLs must start with http:// or https://")
        return v.rstrip("/")


class BumpguardConfig(BaseModel):
    """Complete bumpguard configuration."""

    version: int = Field(default=1, description="Configuration file version")
    evidence: EvidenceConfig = Field(default_factory=EvidenceConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    knowledge: KnowledgeConfig = Field(default_factory=KnowledgeConfig)
    sources: SourcesConfig = Field(default_factory=SourcesConfig)


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find the nearest .bumpguard.yml configuration file.

    Searches from start_path up to the root directory.

    Args:
        start_path: Starting directory for search (defaults to cwd).

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        for filename in CONFIG_FILENAMES:
            config_path = current / filename
            if config_path.exists():
                return config_path
        current = current.parent

    return None


def load_config(config_path: Path | None = None) -> BumpguardConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file
    3. Defaults

    Args:
        config_path: Path to config file (searches if not provided).

    Returns:
        Loaded configuration.

    Raises:
        ConfigurationError: If the file is not valid YAML or holds invalid values.
    """
    config_data: dict[str, Any] = {}

    if config_path is None:
        config_path = find_config_file()

    if config_path and config_path.exists():
        try:
            with open(config_path) as f:
                file_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Could not parse {config_path}: {e}",
                hint="Check the file is valid YAML",
            ) from e
        if file_data:
            if not isinstance(file_data, dict):
                raise ConfigurationError(f"{config_path} must contain a mapping")
            config_data = file_data

    github_token = os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")
    if github_token:
        config_data.setdefault("sources", {})["github_token"] = github_token

    cache_dir = os.environ.get("BUMPGUARD_CACHE_DIR")
    if cache_dir:
        config_data.setdefault("cache", {})["directory"] = cache_dir

    try:
        return BumpguardConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e}",
            hint="Compare your file with the output of generate_example_config()",
        ) from e


def generate_example_config() -> str:
    """Generate an example configuration file.

    Returns:
        YAML string of example configuration.
    """
    example = """# Bumpguard Configuration

version: 1

# Evidence gathering
evidence:
  # A single source above this confidence wins outright
  short_circuit_confidence: 0.8
  # Sources at or below this confidence are left out of merged content
  inclusion_confidence: 0.3
  # Seconds each source may take
  strategy_timeout: 30
  # Sources to consult, in priority order
  enabled_strategies:
    - content-diff
    - release-notes
    - changelog-file
    - commit-history

# On-disk cache of source results (BUMPGUARD_CACHE_DIR overrides directory)
cache:
  enabled: false
  ttl_hours: 168

# Codebase usage scanning
scanner:
  max_files: 5000
  max_file_bytes: 1000000
  max_total_bytes: 50000000
  concurrency: 16
  exclude_patterns:
    - node_modules/**
    - vendor/**
    - .git/**
    - dist/**
    - build/**

# Batch assessment
engine:
  max_concurrency: 4

# Curated breaking changes for popular packages
knowledge:
  enabled: true
  # Extra entries: a list of {ecosystem, package, introduced_in, description, migration}
  files: []

# External sources (token via GITHUB_TOKEN env var)
sources:
  npm_registry_url: https://registry.npmjs.org
  pypi_url: https://pypi.org
  github_api_url: https://api.github.com
  request_timeout: 30
"""
    return example
