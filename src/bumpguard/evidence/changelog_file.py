"""Evidence from a CHANGELOG file kept in the package's repository."""

from bumpguard.analysis.changelog_parser import BreakingChangeExtractor
from bumpguard.core.models import EvidenceKind, PackageUpdate, StrategyResult
from bumpguard.evidence.base import EvidenceStrategy
from bumpguard.sources.github import GitHubClient
from bumpguard.sources.resolver import RepositoryResolver
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

CHANGELOG_FILENAMES = [
    "CHANGELOG.md",
    "Changelog.md",
    "changelog.md",
    "HISTORY.md",
    "History.md",
    "CHANGES.md",
    "CHANGELOG.rst",
    "CHANGES.rst",
    "NEWS.md",
]


class ChangelogFileStrategy(EvidenceStrategy):
    """Reads the version sections of a checked-in changelog."""

    name = "Changelog File"
    kind = EvidenceKind.CHANGELOG
    confidence = 0.6

    def __init__(
        self,
        resolver: RepositoryResolver,
        github: GitHubClient,
        extractor: BreakingChangeExtractor | None = None,
    ) -> None:
        self.resolver = resolver
        self.github = github
        self.extractor = extractor or BreakingChangeExtractor()

    async def is_applicable(self, update: PackageUpdate) -> bool:
        return await self.resolver.resolve(update) is not None

    async def try_analyze(self, update: PackageUpdate) -> StrategyResult | None:
        repo = await self.resolver.resolve(update)
        if repo is None:
            return None

        for filename in CHANGELOG_FILENAMES:
            text = await self.github.get_file_text(repo, filename)
            if not text:
                continue

            section = self.extractor.extract_version_range(text, update.from_version, update.to_version)
            if not section:
                logger.debug("%s: %s has no entries in range", update, filename)
                return None

            breaking = self.extractor.extract(section)
            return self.make_result(
                section,
                [change.text for change in breaking],
                repository=repo.full_name,
                filename=filename,
            )

        return None
