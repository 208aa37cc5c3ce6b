"""Version arithmetic for dependency upgrades.

Versions are parsed strictly as semantic versions first. Anything else is
coerced from the first dotted numeric run it contains ("^4.17" becomes
4.17.0). A pair that still cannot be read is treated as a major bump.
"""

import re
from dataclasses import dataclass

from bumpguard.core.models import VersionDelta
from bumpguard.errors import MalformedVersionError
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

SEMVER_PATTERN = re.compile(
    r"^[v=]?\s*"
    r"(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

COERCE_PATTERN = re.compile(r"(?<!\d)(\d{1,16})(?:\.(\d{1,16}))?(?:\.(\d{1,16}))?")

# Applied when neither version of a pair can be read.
CONSERVATIVE_DELTA = VersionDelta(major=1, minor=0, patch=0)


@dataclass(frozen=True)
class ParsedVersion:
    """Numeric core of a version plus its optional prerelease tag."""

    major: int
    minor: int
    patch: int
    prerelease: str | None = None

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)


def parse_semver(version: str) -> ParsedVersion:
    """Parse a strict semantic version.

    Args:
        version: Version string, optionally prefixed with ``v`` or ``=``.

    Returns:
        Parsed version.

    Raises:
        MalformedVersionError: If the string is not a semantic version.
    """
    match = SEMVER_PATTERN.match(version.strip())
    if not match:
        raise MalformedVersionError(version)
    return ParsedVersion(
        major=int(match.group(1)),
        minor=int(match.group(2)),
        patch=int(match.group(3)),
        prerelease=match.group(4),
    )


def coerce_version(version: str) -> ParsedVersion:
    """Extract a version from the first dotted numeric run in a string.

    Missing minor or patch components default to zero.

    Raises:
        MalformedVersionError: If the string holds no digits at all.
    """
    match = COERCE_PATTERN.search(version)
    if not match:
        raise MalformedVersionError(version)
    return ParsedVersion(
        major=int(match.group(1)),
        minor=int(match.group(2) or 0),
        patch=int(match.group(3) or 0),
    )


def parse_version(version: str) -> ParsedVersion:
    """Parse strictly, falling back to coercion.

    Raises:
        MalformedVersionError: If both strategies fail.
    """
    try:
        return parse_semver(version)
    except MalformedVersionError:
        return coerce_version(version)


def compute_version_delta(from_version: str, to_version: str) -> VersionDelta:
    """Compute the (major, minor, patch) difference between two versions.

    Components are plain differences and can be negative when the versions
    are given out of order. Never raises: an unreadable pair yields
    ``CONSERVATIVE_DELTA``.

    Args:
        from_version: Current version.
        to_version: Proposed version.

    Returns:
        Per-component delta.
    """
    try:
        old = parse_version(from_version)
        new = parse_version(to_version)
    except MalformedVersionError as e:
        logger.debug("Falling back to major-bump delta: %s", e)
        return CONSERVATIVE_DELTA

    return VersionDelta(
        major=new.major - old.major,
        minor=new.minor - old.minor,
        patch=new.patch - old.patch,
    )


def normalize_version(version: str) -> tuple[int, ...]:
    """Normalize a version or tag name into a comparable integer tuple.

    Args:
        version: Version string or release tag (``v1.2.3``, ``pkg@1.2.3``).

    Returns:
        Up to three numeric components, ``(0,)`` when none are present.
    """
    version = version.strip()
    if "@" in version[1:]:
        version = version.rsplit("@", 1)[1]
    version = re.sub(r"^[v=]", "", version)

    parts = re.findall(r"\d+", version)
    return tuple(int(p) for p in parts[:3]) if parts else (0,)


def _pad(*versions: tuple[int, ...]) -> list[tuple[int, ...]]:
    max_len = max(len(v) for v in versions)
    return [v + (0,) * (max_len - len(v)) for v in versions]


def version_in_range(version: str, from_version: str, to_version: str) -> bool:
    """Check whether a version lies in the half-open range (from, to].

    Args:
        version: Version or tag to test.
        from_version: Lower bound (exclusive).
        to_version: Upper bound (inclusive).

    Returns:
        True if version is in range.
    """
    v, fv, tv = _pad(
        normalize_version(version),
        normalize_version(from_version),
        normalize_version(to_version),
    )
    return fv < v <= tv


def version_sort_key(version: str) -> tuple[int, ...]:
    """Sort key for ordering versions or tags, padded to three components."""
    return _pad(normalize_version(version), (0, 0, 0))[0]


def is_major_upgrade(from_version: str, to_version: str) -> bool:
    """Check whether an upgrade crosses a major version boundary."""
    return compute_version_delta(from_version, to_version).major > 0
