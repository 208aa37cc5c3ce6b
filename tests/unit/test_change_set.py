"""Tests for change set helpers and identifier validation."""

import pytest

from bumpguard.core.change_set import (
    is_lockfile,
    is_lockfile_only_change,
    validate_package_name,
    validate_update,
)
from bumpguard.core.models import Ecosystem, PackageUpdate
from bumpguard.errors import InvalidPackageIdentifierError


class TestLockfiles:
    """Tests for lockfile detection."""

    def test_is_lockfile(self) -> None:
        assert is_lockfile("package-lock.json")
        assert is_lockfile("apps/web/yarn.lock")
        assert is_lockfile("services\\api\\poetry.lock")
        assert not is_lockfile("package.json")

    def test_lockfile_only_change(self) -> None:
        assert is_lockfile_only_change(["package-lock.json", "packages/a/pnpm-lock.yaml"])
        assert not is_lockfile_only_change(["package.json", "package-lock.json"])
        assert not is_lockfile_only_change([])


class TestValidatePackageName:
    """Tests for validate_package_name."""

    @pytest.mark.parametrize("name", ["express", "@types/node", "lodash.merge", "@babel/core", "a-b_c"])
    def test_valid_npm_names(self, name: str) -> None:
        assert validate_package_name(name) == name

    @pytest.mark.parametrize(
        "name",
        ["", "Express", "has space", "../etc/passwd", "express;rm -rf /", "@scope/", "a" * 215],
    )
    def test_invalid_npm_names(self, name: str) -> None:
        with pytest.raises(InvalidPackageIdentifierError) as exc_info:
            validate_package_name(name)
        assert exc_info.value.ecosystem == "npm"

    @pytest.mark.parametrize("name", ["requests", "PyYAML", "zope.interface", "typing_extensions", "a"])
    def test_valid_pypi_names(self, name: str) -> None:
        assert validate_package_name(name, Ecosystem.PYPI) == name

    @pytest.mark.parametrize("name", ["-requests", "requests-", "re quests", "@types/node"])
    def test_invalid_pypi_names(self, name: str) -> None:
        with pytest.raises(InvalidPackageIdentifierError):
            validate_package_name(name, Ecosystem.PYPI)


class TestValidateUpdate:
    """Tests for validate_update."""

    def test_valid_update(self) -> None:
        update = PackageUpdate(name="express", from_version="4.18.2", to_version="5.0.0")
        assert validate_update(update) is update

    @pytest.mark.parametrize("version", ["", "   ", "1.0.0 --registry=evil", "--before=2020"])
    def test_rejects_unsafe_versions(self, version: str) -> None:
        update = PackageUpdate(name="express", from_version="4.18.2", to_version=version)
        with pytest.raises(InvalidPackageIdentifierError):
            validate_update(update)
