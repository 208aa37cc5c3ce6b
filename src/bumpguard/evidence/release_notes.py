"""Evidence from release notes published on the package's GitHub repository."""

from typing import Any

from bumpguard.analysis.changelog_parser import BreakingChangeExtractor
from bumpguard.analysis.versions import version_in_range, version_sort_key
from bumpguard.core.models import EvidenceKind, PackageUpdate, StrategyResult
from bumpguard.evidence.base import EvidenceStrategy
from bumpguard.sources.github import GitHubClient
from bumpguard.sources.resolver import RepositoryResolver
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)


def release_tag(release: dict[str, Any]) -> str:
    return release.get("tag_name") or release.get("name") or ""


def select_releases(
    releases: list[dict[str, Any]],
    from_version: str,
    to_version: str,
) -> list[dict[str, Any]]:
    """Keep releases whose tag falls in (from, to], newest first.

    Drafts are ignored. Ties keep the API's order.
    """
    selected = [
        release
        for release in releases
        if not release.get("draft") and release_tag(release)
        and version_in_range(release_tag(release), from_version, to_version)
    ]
    return sorted(selected, key=lambda r: version_sort_key(release_tag(r)), reverse=True)


def render_releases(releases: list[dict[str, Any]]) -> str:
    return "\n\n".join(
        f"## {release_tag(release)}\n\n{(release.get('body') or 'No release notes').strip()}"
        for release in releases
    )


class ReleaseNotesStrategy(EvidenceStrategy):
    """The most trusted source: maintainers' own release notes."""

    name = "GitHub Releases"
    kind = EvidenceKind.CHANGELOG
    confidence = 0.9

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

        releases = select_releases(
            await self.github.list_releases(repo),
            update.from_version,
            update.to_version,
        )
        if not releases:
            logger.debug("%s: no releases of %s in range", update, repo)
            return None

        content = render_releases(releases)
        breaking = self.extractor.extract(content)
        return self.make_result(
            content,
            [change.text for change in breaking],
            repository=repo.full_name,
            release_count=len(releases),
            has_prerelease=any(r.get("prerelease") for r in releases),
        )
