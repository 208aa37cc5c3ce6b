"""Resolve the GitHub repository that publishes a package."""

import re

from bumpguard.core.models import Ecosystem, PackageUpdate
from bumpguard.sources.github import GitHubClient, RepositoryRef, parse_github_url
from bumpguard.sources.registry import PackageRegistryClient
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

SCOPED_NAME = re.compile(r"^@([a-zA-Z0-9_.-]+)/([a-zA-Z0-9_.-]+)$")
PLAIN_NAME = re.compile(r"^([a-zA-Z0-9_.-]+)$")


class RepositoryResolver:
    """Maps packages to repositories, remembering answers for one run.

    Lookups go to the registry's declared repository first. When that
    yields nothing, ``@scope/name`` and ``name`` are tried as
    ``scope/name`` and ``name/name`` and kept only if GitHub confirms
    the repository exists.
    """

    def __init__(self, registry: PackageRegistryClient, github: GitHubClient) -> None:
        self.registry = registry
        self.github = github
        self._resolved: dict[tuple[Ecosystem, str], RepositoryRef | None] = {}

    async def resolve(self, update: PackageUpdate) -> RepositoryRef | None:
        """Return the repository for an update's package, or None."""
        key = (update.ecosystem, update.name)
        if key not in self._resolved:
            self._resolved[key] = await self._lookup(update.name, update.ecosystem)
        return self._resolved[key]

    async def _lookup(self, name: str, ecosystem: Ecosystem) -> RepositoryRef | None:
        url = await self.registry.get_repository_url(name, ecosystem)
        repo = parse_github_url(url)
        if repo:
            logger.debug("Resolved %s to %s via registry metadata", name, repo)
            return repo

        for candidate in self._guesses(name):
            if await self.github.repository_exists(candidate):
                logger.debug("Resolved %s to %s by name", name, candidate)
                return candidate

        logger.debug("No GitHub repository found for %s", name)
        return None

    def _guesses(self, name: str) -> list[RepositoryRef]:
        match = SCOPED_NAME.match(name)
        if match:
            return [RepositoryRef(match.group(1), match.group(2))]
        match = PLAIN_NAME.match(name)
        if match:
            return [RepositoryRef(name, name)]
        return []
