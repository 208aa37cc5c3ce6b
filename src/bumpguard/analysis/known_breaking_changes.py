"""Known breaking changes for popular packages.

Release notes of widely used packages are often long, inconsistent or
hosted outside GitHub. The curated entries here come from official
migration guides and are reported as ``breaking`` whenever an upgrade
crosses the release that introduced them.

Sources:
- Official migration guides
- GitHub release notes
- Package documentation
"""

import re
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import yaml

from bumpguard.analysis.versions import version_in_range
from bumpguard.config import KnowledgeConfig
from bumpguard.core.models import BreakingChange, BreakingSeverity, Ecosystem, PackageUpdate
from bumpguard.errors import ConfigurationError
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class KnownBreakingChange:
    """A breaking change and the release that introduced it."""

    ecosystem: Ecosystem
    package: str
    introduced_in: str
    description: str
    migration: str = ""


KNOWN_BREAKING_CHANGES: list[KnownBreakingChange] = [
    # ==================== NPM ====================

    # Express 4.x -> 5.x
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="express",
        introduced_in="5.0.0",
        description="app.del() removed in favour of app.delete()",
        migration="Rename app.del() calls to app.delete()",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="express",
        introduced_in="5.0.0",
        description="req.param() removed",
        migration="Read values from req.params, req.body or req.query directly",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="express",
        introduced_in="5.0.0",
        description="Route path syntax follows path-to-regexp 8, bare * wildcards no longer match",
        migration="Rewrite wildcard routes with named wildcards such as /*splat",
    ),

    # React
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="react-dom",
        introduced_in="18.0.0",
        description="ReactDOM.render is replaced by createRoot",
        migration="Mount the app with createRoot(container).render(<App />)",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="react",
        introduced_in="18.0.0",
        description="State updates are batched automatically outside React event handlers",
        migration="Wrap updates that must apply synchronously in flushSync",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="react",
        introduced_in="19.0.0",
        description="propTypes and defaultProps on function components are ignored",
        migration="Use default parameters and TypeScript types instead",
    ),

    # axios
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="axios",
        introduced_in="1.0.0",
        description="Package exports map blocks deep imports from axios/lib",
        migration="Import everything from the axios entry point",
    ),

    # Next.js
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="next",
        introduced_in="13.0.0",
        description="next/link renders its own <a> element and rejects a nested <a> child",
        migration="Remove the <a> inside <Link> and move its props onto Link",
    ),

    # Tooling
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="jest",
        introduced_in="27.0.0",
        description="Default test environment changed from jsdom to node",
        migration="Set testEnvironment: 'jsdom' for suites that touch the DOM",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="jest",
        introduced_in="29.0.0",
        description="Snapshot format defaults changed, escapeString and printBasicPrototype are off",
        migration="Regenerate snapshots with --updateSnapshot and review the diff",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="eslint",
        introduced_in="9.0.0",
        description="Flat config is the default and .eslintrc files are ignored",
        migration="Move configuration to eslint.config.js",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="webpack",
        introduced_in="5.0.0",
        description="Automatic polyfills for Node.js core modules were removed",
        migration="Add resolve.fallback entries for the modules the bundle still needs",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.NPM,
        package="typescript",
        introduced_in="5.0.0",
        description="Options deprecated in 4.x such as importsNotUsedAsValues now error",
        migration="Replace them with verbatimModuleSyntax or drop them from tsconfig.json",
    ),

    # ==================== PYPI ====================

    # pydantic 1.x -> 2.x
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="pydantic",
        introduced_in="2.0.0",
        description="Inner Config class replaced by model_config",
        migration="Declare model_config = ConfigDict(...) on the model",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="pydantic",
        introduced_in="2.0.0",
        description="validator and root_validator replaced by field_validator and model_validator",
        migration="Port validators to field_validator / model_validator decorators",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="pydantic",
        introduced_in="2.0.0",
        description=".dict() and .json() replaced by model_dump() and model_dump_json()",
        migration="Call model_dump() and model_dump_json() instead",
    ),

    # SQLAlchemy 1.4 -> 2.0
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="sqlalchemy",
        introduced_in="2.0.0",
        description="Library-level autocommit and connectionless execution removed",
        migration="Run statements inside engine.begin() or commit the connection explicitly",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="sqlalchemy",
        introduced_in="2.0.0",
        description="select() no longer accepts a list of columns",
        migration="Pass columns positionally: select(a, b)",
    ),

    # Web frameworks
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="django",
        introduced_in="4.0.0",
        description="zoneinfo replaces pytz as the default time zone implementation",
        migration="Replace pytz localize/normalize calls with zoneinfo aware datetimes",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="django",
        introduced_in="5.0.0",
        description="USE_TZ defaults to True",
        migration="Set USE_TZ explicitly in settings",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="flask",
        introduced_in="2.3.0",
        description="app.json_encoder and app.json_decoder removed",
        migration="Subclass flask.json.provider.DefaultJSONProvider",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="httpx",
        introduced_in="0.28.0",
        description="proxies argument removed from clients",
        migration="Pass proxy= or mounts= instead",
    ),

    # Data
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="numpy",
        introduced_in="2.0.0",
        description="Aliases such as np.float_ and np.NaN removed from the main namespace",
        migration="Use np.float64 and np.nan",
    ),
    KnownBreakingChange(
        ecosystem=Ecosystem.PYPI,
        package="pandas",
        introduced_in="2.0.0",
        description="DataFrame.append and Series.append removed",
        migration="Combine frames with pd.concat",
    ),
]


def normalize_package_name(name: str, ecosystem: Ecosystem) -> str:
    """Normalize a name for lookups (PEP 503 for PyPI, unchanged for npm)."""
    if ecosystem == Ecosystem.PYPI:
        return re.sub(r"[-_.]+", "-", name).lower()
    return name


def load_known_changes(path: Path) -> list[KnownBreakingChange]:
    """Load extra entries from a YAML file.

    The file holds a list of mappings with ``package``, ``introduced_in``
    and ``description`` keys, plus optional ``ecosystem`` (npm when
    omitted) and ``migration``.

    Raises:
        ConfigurationError: If the file cannot be read or an entry is malformed.
    """
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or []
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Could not load known breaking changes from {path}: {e}",
            hint="Check the path in knowledge.files and that the file is valid YAML",
        ) from e

    if not isinstance(data, list):
        raise ConfigurationError(f"{path} must contain a list of entries")

    entries: list[KnownBreakingChange] = []
    for index, item in enumerate(data):
        try:
            entries.append(
                KnownBreakingChange(
                    ecosystem=Ecosystem(item.get("ecosystem", "npm")),
                    package=str(item["package"]),
                    introduced_in=str(item["introduced_in"]),
                    description=str(item["description"]),
                    migration=str(item.get("migration", "")),
                )
            )
        except (AttributeError, KeyError, ValueError) as e:
            raise ConfigurationError(
                f"Entry {index} in {path} is invalid: {e}",
                hint="Each entry needs package, introduced_in and description",
            ) from e

    logger.debug("Loaded %d known breaking changes from %s", len(entries), path)
    return entries


class KnowledgeBase:
    """Registry of known breaking changes, looked up per update.

    An entry applies when its ``introduced_in`` release lies in the
    upgrade's (from, to] range. Instances are built explicitly and
    passed to the engine.
    """

    def __init__(self, entries: Iterable[KnownBreakingChange] = ()) -> None:
        self._entries: dict[tuple[Ecosystem, str], list[KnownBreakingChange]] = {}
        self.extend(entries)

    @classmethod
    def builtin(cls) -> "KnowledgeBase":
        """Knowledge base holding the curated entries."""
        return cls(KNOWN_BREAKING_CHANGES)

    @classmethod
    def from_config(cls, config: KnowledgeConfig) -> "KnowledgeBase":
        """Curated entries plus any configured files, or nothing when disabled."""
        if not config.enabled:
            return cls()
        knowledge = cls.builtin()
        for path in config.files:
            knowledge.extend(load_known_changes(path))
        return knowledge

    def extend(self, entries: Iterable[KnownBreakingChange]) -> None:
        for entry in entries:
            key = (entry.ecosystem, normalize_package_name(entry.package, entry.ecosystem))
            self._entries.setdefault(key, []).append(entry)

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._entries.values())

    def lookup(self, update: PackageUpdate) -> list[KnownBreakingChange]:
        """Entries introduced between the update's two versions."""
        key = (update.ecosystem, normalize_package_name(update.name, update.ecosystem))
        return [
            entry
            for entry in self._entries.get(key, [])
            if version_in_range(entry.introduced_in, update.from_version, update.to_version)
        ]

    def breaking_changes(self, update: PackageUpdate) -> list[BreakingChange]:
        return [
            BreakingChange(text=entry.description, severity=BreakingSeverity.BREAKING)
            for entry in self.lookup(update)
        ]

    def migration_steps(self, update: PackageUpdate) -> list[str]:
        return [entry.migration for entry in self.lookup(update) if entry.migration]

    def packages(self) -> dict[Ecosystem, list[str]]:
        """Package names with known entries, grouped by ecosystem."""
        packages: dict[Ecosystem, set[str]] = {}
        for ecosystem, name in self._entries:
            packages.setdefault(ecosystem, set()).add(name)
        return {ecosystem: sorted(names) for ecosystem, names in packages.items()}
