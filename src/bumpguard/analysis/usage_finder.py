"""Usage scanner for locating dependency usage across a codebase."""

import asyncio
import fnmatch
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from bumpguard.analysis.static_analyzer import (
    BaseLanguageAnalyzer,
    FileAnalysis,
    SourceUsage,
    default_analyzers,
)
from bumpguard.config import ScannerConfig
from bumpguard.core.change_set import LOCKFILE_NAMES
from bumpguard.core.models import (
    Ecosystem,
    UsageAnalysis,
    UsageContext,
    UsageKind,
    UsageLocation,
)
from bumpguard.errors import UnscannableFileError
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

# Path heuristics, matched against the lower-cased relative POSIX path
TEST_PATH_PATTERNS = [
    re.compile(r"(^|/)(tests?|specs?|__tests__|__mocks__|e2e|integration)/"),
    re.compile(r"(^|/)test_[^/]*$"),
    re.compile(r"_test\.[^/]+$"),
    re.compile(r"\.(test|spec)\.[^/]+$"),
    re.compile(r"(^|/)conftest\.py$"),
]

CONFIG_PATH_PATTERNS = [
    re.compile(r"(^|/)(config|conf|configuration|settings)/"),
    re.compile(r"(^|/)(config|conf|configuration|settings|setup)\.[^/]+$"),
    re.compile(r"\.config\.[^/]+$"),
    re.compile(r"(^|/)\.[^/]*rc(\.[^/]+)?$"),
    re.compile(r"(^|/)\.env(\.[^/]+)?$"),
    re.compile(r"(^|/)(webpack|rollup|vite|tsconfig|jest|babel|eslint|prettier)[^/]*$"),
    re.compile(r"(^|/)(package\.json|pyproject\.toml|setup\.cfg|pipfile)$"),
    re.compile(r"(^|/)requirements[^/]*\.txt$"),
]

BUILD_PATH_PATTERNS = [
    re.compile(r"(^|/)(build|dist|out|output|\.next)/"),
    re.compile(r"(^|/)(esbuild|tsup|webpack|rollup|vite)[^/]*$"),
    re.compile(r"(^|[/._-])(bundle|compiled|transpiled|minified)[._-]"),
    re.compile(r"\.min\.[^/]+$"),
]

# Files scanned for literal mentions of the package name
CONFIG_SCAN_PATTERNS = [
    "package.json",
    "tsconfig*.json",
    ".eslintrc*",
    "eslint.config.*",
    ".babelrc*",
    "babel.config.*",
    "webpack.config.*",
    "vite.config.*",
    "jest.config.*",
    "requirements*.txt",
    "pyproject.toml",
    "setup.cfg",
    "Pipfile",
]

SCOPED_PREFIX = re.compile(r"@[\w.-]+/$")


def classify_context(relative_path: str) -> UsageContext:
    """Derive the context of a file from its path.

    Test heuristics win over config, config over build output, and
    anything unmatched is production code.

    Args:
        relative_path: Path relative to the scanned root.

    Returns:
        Context of every usage found in the file.
    """
    path = relative_path.replace("\\", "/").lower()
    if any(p.search(path) for p in TEST_PATH_PATTERNS):
        return UsageContext.TEST
    if any(p.search(path) for p in CONFIG_PATH_PATTERNS) or Path(path).name in {n.lower() for n in LOCKFILE_NAMES}:
        return UsageContext.CONFIG
    if any(p.search(path) for p in BUILD_PATH_PATTERNS):
        return UsageContext.BUILD
    return UsageContext.PRODUCTION


def is_config_scan_target(file_path: Path) -> bool:
    name = file_path.name
    return name in LOCKFILE_NAMES or any(fnmatch.fnmatch(name, pattern) for pattern in CONFIG_SCAN_PATTERNS)


def find_literal_mentions(content: str, package_name: str, ecosystem: Ecosystem) -> list[SourceUsage]:
    """Find whole-name occurrences of a package in a configuration file.

    ``express`` does not match ``express-session`` or ``@acme/express``.
    PyPI names compare case-insensitively.
    """
    flags = re.IGNORECASE if ecosystem == Ecosystem.PYPI else 0
    pattern = re.compile(r"(?<![\w.-])" + re.escape(package_name) + r"(?![\w-])", flags)

    usages: list[SourceUsage] = []
    for index, line in enumerate(content.splitlines(), start=1):
        for match in pattern.finditer(line):
            if not package_name.startswith("@") and SCOPED_PREFIX.search(line[: match.start()]):
                continue
            usages.append(
                SourceUsage(index, match.start(), UsageKind.CONFIG, line.strip()[:200], package_name)
            )
            break
    return usages


@dataclass
class ScanPlan:
    """Files selected for one scan after exclusion and caps."""

    files: list[Path] = field(default_factory=list)
    skipped: int = 0


class UsageScanner:
    """Finds dependency usage across a codebase."""

    def __init__(
        self,
        config: ScannerConfig | None = None,
        analyzers: dict[Ecosystem, BaseLanguageAnalyzer] | None = None,
    ) -> None:
        """Initialize the usage scanner.

        Args:
            config: Scanner limits and exclude patterns.
            analyzers: Language analyzers per ecosystem (built on demand).
        """
        self.config = config or ScannerConfig()
        self._analyzers = analyzers

    @property
    def analyzers(self) -> dict[Ecosystem, BaseLanguageAnalyzer]:
        if self._analyzers is None:
            self._analyzers = default_analyzers()
        return self._analyzers

    def should_exclude(self, file_path: Path, base_path: Path) -> bool:
        """Check if a file should be excluded.

        Args:
            file_path: File to check.
            base_path: Base directory for relative path calculation.

        Returns:
            True if file should be excluded.
        """
        try:
            relative_path = file_path.relative_to(base_path)
        except ValueError:
            relative_path = file_path

        path_str = relative_path.as_posix()

        for pattern in self.config.exclude_patterns:
            if fnmatch.fnmatch(path_str, pattern):
                return True
            # Directory patterns also apply below the root
            directory = pattern[:-3] if pattern.endswith("/**") else None
            for part in relative_path.parts:
                if directory is not None and part == directory:
                    return True
                if directory is None and fnmatch.fnmatch(part, pattern):
                    return True

        return False

    def find_files(self, root: Path) -> list[Path]:
        """List every candidate file below ``root`` in a stable order."""
        found: list[Path] = []
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            dirnames[:] = sorted(
                d for d in dirnames if not self.should_exclude(current / d / "_", root)
            )
            for filename in sorted(filenames):
                path = current / filename
                if not self.should_exclude(path, root):
                    found.append(path)
        return found

    def _plan(self, root: Path, analyzer: BaseLanguageAnalyzer | None) -> ScanPlan:
        plan = ScanPlan()
        total_bytes = 0

        candidates = [
            path
            for path in self.find_files(root)
            if (analyzer is not None and analyzer.can_analyze(path)) or is_config_scan_target(path)
        ]
        if len(candidates) > self.config.max_files:
            logger.warning(
                "Scan of %s limited to %d of %d files",
                root,
                self.config.max_files,
                len(candidates),
            )
            plan.skipped += len(candidates) - self.config.max_files
            candidates = candidates[: self.config.max_files]

        for index, path in enumerate(candidates):
            try:
                size = path.stat().st_size
            except OSError:
                plan.skipped += 1
                continue
            if size > self.config.max_file_bytes:
                logger.debug("Skipping %s (%d bytes)", path, size)
                plan.skipped += 1
                continue
            if total_bytes + size > self.config.max_total_bytes:
                logger.warning("Scan of %s stopped after %d bytes", root, total_bytes)
                plan.skipped += len(candidates) - index
                break
            total_bytes += size
            plan.files.append(path)

        return plan

    async def scan(
        self,
        root: Path,
        package_name: str,
        ecosystem: Ecosystem = Ecosystem.NPM,
    ) -> UsageAnalysis:
        """Scan a codebase for usage of one package.

        Files that cannot be read or parsed are skipped and counted; the
        scan itself never fails because of a single file.

        Args:
            root: Root directory of the codebase.
            package_name: Package to look for.
            ecosystem: Ecosystem the package belongs to.

        Returns:
            Aggregated usage analysis.
        """
        root = Path(root)
        if not root.is_dir():
            logger.warning("Codebase root %s is not a directory; no usage recorded", root)
            return UsageAnalysis(package_name=package_name)

        analyzer = self.analyzers.get(ecosystem)
        plan = await asyncio.to_thread(self._plan, root, analyzer)
        semaphore = asyncio.Semaphore(self.config.concurrency)

        async def scan_file(path: Path) -> tuple[Path, FileAnalysis] | None:
            async with semaphore:
                try:
                    return path, await asyncio.to_thread(self._scan_file, path, package_name, ecosystem, analyzer)
                except UnscannableFileError as e:
                    logger.debug("Skipping %s: %s", path, e.reason)
                    return None
                except Exception as e:
                    logger.warning("Error analyzing %s: %s", path, e)
                    return None

        outcomes = await asyncio.gather(*(scan_file(path) for path in plan.files))

        scanned = [outcome for outcome in outcomes if outcome is not None]
        skipped = plan.skipped + len(outcomes) - len(scanned)
        return self._aggregate(root, package_name, scanned, skipped)

    def _scan_file(
        self,
        path: Path,
        package_name: str,
        ecosystem: Ecosystem,
        analyzer: BaseLanguageAnalyzer | None,
    ) -> FileAnalysis:
        try:
            content = path.read_bytes().decode("utf-8")
        except OSError as e:
            raise UnscannableFileError(str(path), f"unreadable: {e}") from e
        except UnicodeDecodeError as e:
            raise UnscannableFileError(str(path), "not UTF-8 text") from e

        if analyzer is not None and analyzer.can_analyze(path):
            return analyzer.analyze(path, content, package_name)
        return FileAnalysis(usages=find_literal_mentions(content, package_name, ecosystem))

    def _aggregate(
        self,
        root: Path,
        package_name: str,
        scanned: list[tuple[Path, FileAnalysis]],
        skipped: int,
    ) -> UsageAnalysis:
        seen: set[tuple[str, int, UsageKind]] = set()
        locations: list[UsageLocation] = []

        for path, analysis in scanned:
            relative = path.relative_to(root).as_posix()
            context = classify_context(relative)
            for usage in analysis.usages:
                key = (relative, usage.line, usage.kind)
                if key in seen:
                    continue
                seen.add(key)
                locations.append(
                    UsageLocation(
                        file=relative,
                        line=usage.line,
                        column=usage.column,
                        kind=usage.kind,
                        snippet=usage.snippet,
                        context=context,
                        symbol=usage.symbol,
                    )
                )

        locations.sort(key=lambda loc: (loc.file, loc.line, loc.column))

        production = [loc for loc in locations if loc.context == UsageContext.PRODUCTION]
        return UsageAnalysis(
            package_name=package_name,
            locations=locations,
            total_usage_count=len(locations),
            production_usage_count=len(production),
            test_usage_count=sum(1 for loc in locations if loc.context == UsageContext.TEST),
            config_usage_count=sum(
                1 for loc in locations if loc.context in (UsageContext.CONFIG, UsageContext.BUILD)
            ),
            critical_paths=sorted({loc.file for loc in production}),
            has_dynamic_imports=any(analysis.has_dynamic_import for _, analysis in scanned),
            files_scanned=len(scanned),
            files_skipped=skipped,
        )


async def scan_usage(
    root: Path,
    package_name: str,
    ecosystem: Ecosystem = Ecosystem.NPM,
    config: ScannerConfig | None = None,
) -> UsageAnalysis:
    """Convenience wrapper to scan one codebase for one package."""
    return await UsageScanner(config).scan(root, package_name, ecosystem)
