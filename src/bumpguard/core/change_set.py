"""Helpers describing a proposed change set and the packages it touches."""

import re
from collections.abc import Iterable
from pathlib import PurePosixPath

from bumpguard.core.models import Ecosystem, PackageUpdate
from bumpguard.errors import InvalidPackageIdentifierError

LOCKFILE_NAMES = frozenset(
    {
        "package-lock.json",
        "npm-shrinkwrap.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "poetry.lock",
        "Pipfile.lock",
        "uv.lock",
    }
)

NPM_NAME_PATTERN = re.compile(r"^(@[a-z0-9-~][a-z0-9-._~]*/)?[a-z0-9-~][a-z0-9-._~]*$")
NPM_NAME_MAX_LENGTH = 214

PYPI_NAME_PATTERN = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9._-]*[A-Za-z0-9])?$")


def is_lockfile(path: str) -> bool:
    return PurePosixPath(path.replace("\\", "/")).name in LOCKFILE_NAMES


def is_lockfile_only_change(filenames: Iterable[str]) -> bool:
    """Check whether a change set touches nothing but lockfiles.

    Args:
        filenames: Paths changed by the pull request.

    Returns:
        True for a non-empty list made up solely of lockfiles.
    """
    paths = list(filenames)
    return bool(paths) and all(is_lockfile(path) for path in paths)


def validate_package_name(name: str, ecosystem: Ecosystem = Ecosystem.NPM) -> str:
    """Validate a package name against its registry's naming rules.

    Names end up in URLs and subprocess arguments, so anything outside
    the registry grammar is rejected outright.

    Args:
        name: Package name.
        ecosystem: Registry the name belongs to.

    Returns:
        The name, unchanged.

    Raises:
        InvalidPackageIdentifierError: If the name is not a legal identifier.
    """
    if ecosystem == Ecosystem.NPM:
        valid = len(name) <= NPM_NAME_MAX_LENGTH and NPM_NAME_PATTERN.match(name) is not None
    else:
        valid = PYPI_NAME_PATTERN.match(name) is not None

    if not valid:
        raise InvalidPackageIdentifierError(name, ecosystem.value)
    return name


def validate_update(update: PackageUpdate) -> PackageUpdate:
    """Validate the package name and version strings of an update."""
    validate_package_name(update.name, update.ecosystem)
    for version in (update.from_version, update.to_version):
        if not version.strip() or any(c.isspace() for c in version.strip()) or version.startswith("-"):
            raise InvalidPackageIdentifierError(
                f"{update.name}@{version}",
                update.ecosystem.value,
                message=f"Invalid version {version!r} for {update.name}",
                hint="Versions must be non-empty and must not contain whitespace",
            )
    return update
