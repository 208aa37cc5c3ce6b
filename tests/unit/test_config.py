"""Tests for configuration module."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from bumpguard.config import (
    STRATEGY_KEYS,
    BumpguardConfig,
    EvidenceConfig,
    ScannerConfig,
    SourcesConfig,
    find_config_file,
    generate_example_config,
    load_config,
)
from bumpguard.errors import ConfigurationError


class TestEvidenceConfig:
    """Tests for EvidenceConfig."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        config = EvidenceConfig()
        assert config.short_circuit_confidence == 0.8
        assert config.inclusion_confidence == 0.3
        assert config.strategy_timeout == 30.0
        assert config.enabled_strategies == STRATEGY_KEYS

    def test_threshold_out_of_range(self) -> None:
        """Test that thresholds outside [0, 1] are rejected."""
        with pytest.raises(ValidationError):
            EvidenceConfig(short_circuit_confidence=1.5)
        with pytest.raises(ValidationError):
            EvidenceConfig(inclusion_confidence=-0.1)

    def test_unknown_strategy(self) -> None:
        """Test that unknown strategy names are rejected."""
        with pytest.raises(ValidationError):
            EvidenceConfig(enabled_strategies=["release-notes", "crystal-ball"])

    def test_duplicate_strategies_collapse(self) -> None:
        """Test that a repeated strategy keeps its first position."""
        config = EvidenceConfig(enabled_strategies=["commit-history", "release-notes", "commit-history"])
        assert config.enabled_strategies == ["commit-history", "release-notes"]


class TestScannerConfig:
    """Tests for ScannerConfig."""

    def test_default_exclude_patterns(self) -> None:
        """Test default exclude patterns are set."""
        config = ScannerConfig()
        assert "node_modules/**" in config.exclude_patterns
        assert ".venv/**" in config.exclude_patterns
        assert "tests/**" not in config.exclude_patterns

    def test_limits_must_be_positive(self) -> None:
        """Test that caps reject zero."""
        with pytest.raises(ValidationError):
            ScannerConfig(max_files=0)


class TestSourcesConfig:
    """Tests for SourcesConfig."""

    def test_trailing_slash_is_removed(self) -> None:
        """Test URL normalization."""
        config = SourcesConfig(npm_registry_url="https://npm.example.com/")
        assert config.npm_registry_url == "https://npm.example.com"

    def test_invalid_url(self) -> None:
        """Test that non-HTTP URLs raise error."""
        with pytest.raises(ValidationError):
            SourcesConfig(pypi_url="ftp://pypi.example.com")


class TestFindConfigFile:
    """Tests for find_config_file function."""

    def test_finds_yml_config(self, temp_dir: Path) -> None:
        """Test finding .bumpguard.yml file."""
        config_path = temp_dir / ".bumpguard.yml"
        config_path.write_text("version: 1")

        found = find_config_file(temp_dir)
        # Use resolve() to handle macOS /private/var vs /var symlink
        assert found is not None
        assert found.resolve() == config_path.resolve()

    def test_prefers_yml_over_yaml(self, temp_dir: Path) -> None:
        """Test that .yml is preferred over .yaml."""
        yml_path = temp_dir / ".bumpguard.yml"
        yaml_path = temp_dir / ".bumpguard.yaml"
        yml_path.write_text("version: 1")
        yaml_path.write_text("version: 2")

        found = find_config_file(temp_dir)
        assert found is not None
        assert found.resolve() == yml_path.resolve()

    def test_searches_parent_directories(self, temp_dir: Path) -> None:
        """Test searching parent directories for config."""
        config_path = temp_dir / ".bumpguard.yaml"
        config_path.write_text("version: 1")

        subdir = temp_dir / "src" / "app"
        subdir.mkdir(parents=True)

        found = find_config_file(subdir)
        assert found is not None
        assert found.resolve() == config_path.resolve()

    def test_returns_none_when_not_found(self, temp_dir: Path) -> None:
        """Test that None is returned when no config exists."""
        assert find_config_file(temp_dir) is None


class TestLoadConfig:
    """Tests for load_config function."""

    def test_load_default_config(self, clean_env: None) -> None:
        """Test loading default configuration when no file exists."""
        config = load_config(config_path=Path("/nonexistent"))
        assert isinstance(config, BumpguardConfig)
        assert config.version == 1
        assert config.sources.github_token is None
        assert not config.cache.enabled
        assert config.knowledge.enabled
        assert config.knowledge.files == []

    def test_load_from_file(self, sample_config: Path, clean_env: None) -> None:
        """Test loading configuration from file."""
        config = load_config(config_path=sample_config)
        assert config.evidence.short_circuit_confidence == 0.9
        assert config.evidence.enabled_strategies == ["release-notes", "commit-history"]
        assert config.scanner.max_files == 200
        assert config.engine.max_concurrency == 2

    def test_env_vars_override_file(self, sample_config: Path, env_with_tokens: None, temp_dir: Path) -> None:
        """Test that environment variables override file values."""
        config = load_config(config_path=sample_config)
        assert config.sources.github_token == "test-github-token"
        assert config.cache.directory == temp_dir / "cache"

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        """Test that unparsable YAML raises ConfigurationError."""
        config_path = temp_dir / ".bumpguard.yml"
        config_path.write_text("evidence: [unclosed")

        with pytest.raises(ConfigurationError):
            load_config(config_path=config_path)

    def test_non_mapping(self, temp_dir: Path) -> None:
        """Test that a YAML list is rejected."""
        config_path = temp_dir / ".bumpguard.yml"
        config_path.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError):
            load_config(config_path=config_path)

    def test_invalid_values(self, temp_dir: Path, clean_env: None) -> None:
        """Test that validation errors surface as ConfigurationError."""
        config_path = temp_dir / ".bumpguard.yml"
        config_path.write_text("evidence:\n  inclusion_confidence: 3\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(config_path=config_path)
        assert exc_info.value.hint

    def test_knowledge_files_from_yaml(self, temp_dir: Path, clean_env: None) -> None:
        """Test that extra knowledge files load as paths."""
        config_path = temp_dir / ".bumpguard.yml"
        config_path.write_text("knowledge:\n  enabled: false\n  files:\n    - extra.yml\n")

        config = load_config(config_path=config_path)
        assert not config.knowledge.enabled
        assert config.knowledge.files == [Path("extra.yml")]


class TestGenerateExampleConfig:
    """Tests for generate_example_config function."""

    def test_generates_valid_config(self) -> None:
        """Test that the example parses and validates."""
        parsed = yaml.safe_load(generate_example_config())

        config = BumpguardConfig(**parsed)
        assert config.version == 1
        assert config.evidence.enabled_strategies == STRATEGY_KEYS

    def test_contains_all_sections(self) -> None:
        """Test that example contains all configuration sections."""
        example = generate_example_config()
        for section in ["evidence:", "cache:", "scanner:", "engine:", "sources:", "knowledge:"]:
            assert section in example
