"""Tests for the known breaking changes registry."""

from pathlib import Path

import pytest

from bumpguard.analysis.known_breaking_changes import (
    KNOWN_BREAKING_CHANGES,
    KnowledgeBase,
    KnownBreakingChange,
    load_known_changes,
    normalize_package_name,
)
from bumpguard.config import KnowledgeConfig
from bumpguard.core.models import BreakingSeverity, Ecosystem, PackageUpdate
from bumpguard.errors import ConfigurationError


@pytest.fixture
def knowledge() -> KnowledgeBase:
    return KnowledgeBase.builtin()


class TestLookup:
    """Tests for matching entries to updates."""

    def test_major_upgrade_crosses_introducing_release(self, knowledge: KnowledgeBase) -> None:
        update = PackageUpdate(name="express", from_version="4.21.0", to_version="5.0.1")

        changes = knowledge.breaking_changes(update)

        assert len(changes) == 3
        assert all(c.severity == BreakingSeverity.BREAKING for c in changes)
        assert changes[0].text == "app.del() removed in favour of app.delete()"
        assert knowledge.migration_steps(update)[0] == "Rename app.del() calls to app.delete()"

    @pytest.mark.parametrize(
        "from_version,to_version",
        [("4.18.2", "4.21.0"), ("5.0.0", "5.1.0"), ("3.0.0", "4.0.0")],
    )
    def test_range_is_from_exclusive_to_inclusive(
        self, knowledge: KnowledgeBase, from_version: str, to_version: str
    ) -> None:
        update = PackageUpdate(name="express", from_version=from_version, to_version=to_version)
        assert knowledge.breaking_changes(update) == []

    def test_spanning_several_majors(self, knowledge: KnowledgeBase) -> None:
        update = PackageUpdate(name="jest", from_version="26.6.3", to_version="29.7.0")
        texts = [c.text for c in knowledge.breaking_changes(update)]
        assert texts[0] == "Default test environment changed from jsdom to node"
        assert len(texts) == 2

    def test_pypi_names_are_normalized(self) -> None:
        knowledge = KnowledgeBase(
            [KnownBreakingChange(Ecosystem.PYPI, "Flask_SQLAlchemy", "3.0.0", "Session scoping changed")]
        )
        update = PackageUpdate(
            name="flask-sqlalchemy", from_version="2.5.1", to_version="3.1.0", ecosystem=Ecosystem.PYPI
        )

        assert [c.text for c in knowledge.breaking_changes(update)] == ["Session scoping changed"]
        assert knowledge.migration_steps(update) == []

    def test_ecosystems_are_separate(self, knowledge: KnowledgeBase) -> None:
        update = PackageUpdate(name="pydantic", from_version="1.10.0", to_version="2.5.0")
        assert knowledge.lookup(update) == []
        assert len(knowledge.lookup(update.model_copy(update={"ecosystem": Ecosystem.PYPI}))) == 3

    def test_packages(self, knowledge: KnowledgeBase) -> None:
        packages = knowledge.packages()
        assert "express" in packages[Ecosystem.NPM]
        assert "sqlalchemy" in packages[Ecosystem.PYPI]
        assert packages[Ecosystem.NPM] == sorted(packages[Ecosystem.NPM])
        assert len(knowledge) == len(KNOWN_BREAKING_CHANGES)

    def test_normalize_package_name(self) -> None:
        assert normalize_package_name("Zope.Interface", Ecosystem.PYPI) == "zope-interface"
        assert normalize_package_name("@types/node", Ecosystem.NPM) == "@types/node"


class TestLoading:
    """Tests for YAML files and configuration."""

    def test_load_file(self, temp_dir: Path) -> None:
        path = temp_dir / "known.yml"
        path.write_text(
            "- package: left-pad\n"
            "  introduced_in: 2.0.0\n"
            "  description: Default export removed\n"
            "  migration: Use the named export\n"
            "- ecosystem: pypi\n"
            "  package: attrs\n"
            "  introduced_in: '22.1.0'\n"
            "  description: attr.s defaults changed\n"
        )

        entries = load_known_changes(path)

        assert entries[0] == KnownBreakingChange(
            Ecosystem.NPM, "left-pad", "2.0.0", "Default export removed", "Use the named export"
        )
        assert entries[1].ecosystem == Ecosystem.PYPI
        assert entries[1].introduced_in == "22.1.0"

    @pytest.mark.parametrize(
        "content",
        [
            "package: left-pad\n",
            "- package: left-pad\n  description: missing version\n",
            "- ecosystem: cargo\n  package: serde\n  introduced_in: 1.0.0\n  description: x\n",
            "- [not, a, mapping]\n",
            "- package: [unclosed\n",
        ],
    )
    def test_invalid_files(self, temp_dir: Path, content: str) -> None:
        path = temp_dir / "known.yml"
        path.write_text(content)

        with pytest.raises(ConfigurationError):
            load_known_changes(path)

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_known_changes(temp_dir / "absent.yml")

    def test_from_config_adds_files(self, temp_dir: Path) -> None:
        path = temp_dir / "known.yml"
        path.write_text("- package: express\n  introduced_in: 6.0.0\n  description: Future change\n")

        knowledge = KnowledgeBase.from_config(KnowledgeConfig(files=[path]))

        assert len(knowledge) == len(KNOWN_BREAKING_CHANGES) + 1
        update = PackageUpdate(name="express", from_version="5.1.0", to_version="6.0.0")
        assert [c.text for c in knowledge.breaking_changes(update)] == ["Future change"]

    def test_disabled_config_is_empty(self) -> None:
        assert len(KnowledgeBase.from_config(KnowledgeConfig(enabled=False))) == 0
