"""Evidence gathering.

Components:
- base: EvidenceStrategy interface and the FallbackChain that fuses results
- content_diff: removed exports between two published npm tarballs
- release_notes: GitHub release bodies between two tags
- changelog_file: version sections of a checked-in changelog
- commit_history: commit messages between two release tags
- cache: sqlite write-through cache of strategy results
"""

from bumpguard.analysis.changelog_parser import BreakingChangeExtractor
from bumpguard.config import BumpguardConfig
from bumpguard.evidence.base import EvidenceStrategy, FallbackChain
from bumpguard.evidence.cache import EvidenceCache
from bumpguard.evidence.changelog_file import ChangelogFileStrategy
from bumpguard.evidence.commit_history import CommitHistoryStrategy
from bumpguard.evidence.content_diff import ContentDiffStrategy
from bumpguard.evidence.release_notes import ReleaseNotesStrategy
from bumpguard.sources.github import GitHubClient
from bumpguard.sources.npm_diff import NpmDiffClient
from bumpguard.sources.registry import PackageRegistryClient
from bumpguard.sources.resolver import RepositoryResolver


def create_default_chain(
    config: BumpguardConfig,
    registry: PackageRegistryClient,
    github: GitHubClient,
    diff_client: NpmDiffClient | None = None,
    cache: EvidenceCache | None = None,
) -> FallbackChain:
    """Build the fallback chain with the strategies enabled in ``config``.

    Args:
        config: Loaded configuration.
        registry: Open registry client.
        github: Open GitHub client.
        diff_client: npm diff runner; one bounded by the strategy timeout is
            created when omitted.
        cache: Optional evidence cache.

    Returns:
        Chain with strategies in configured priority order.
    """
    resolver = RepositoryResolver(registry, github)
    extractor = BreakingChangeExtractor()
    diff_client = diff_client or NpmDiffClient(
        npm_executable=config.sources.npm_executable,
        timeout=config.evidence.strategy_timeout,
    )

    available: dict[str, EvidenceStrategy] = {
        "content-diff": ContentDiffStrategy(registry, diff_client),
        "release-notes": ReleaseNotesStrategy(resolver, github, extractor),
        "changelog-file": ChangelogFileStrategy(resolver, github, extractor),
        "commit-history": CommitHistoryStrategy(resolver, github),
    }

    return FallbackChain(
        strategies=[available[name] for name in config.evidence.enabled_strategies],
        cache=cache,
        timeout=config.evidence.strategy_timeout,
        short_circuit_confidence=config.evidence.short_circuit_confidence,
        inclusion_confidence=config.evidence.inclusion_confidence,
    )


__all__ = [
    "ChangelogFileStrategy",
    "CommitHistoryStrategy",
    "ContentDiffStrategy",
    "EvidenceCache",
    "EvidenceStrategy",
    "FallbackChain",
    "ReleaseNotesStrategy",
    "create_default_chain",
]
