"""GitHub REST API client for release notes, tags, commits and files."""

import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from bumpguard.errors import NetworkError
from bumpguard.utils.http import AsyncHttpClient, create_github_rate_limiter
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
GITHUB_REPO_PATTERN = re.compile(r"github\.com[/:]([^/\s]+)/([^/\s#?]+)")
RELEASES_PER_PAGE = 100


@dataclass(frozen=True)
class RepositoryRef:
    """A GitHub repository coordinate."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def __str__(self) -> str:
        return self.full_name


def parse_github_url(url: str | None) -> RepositoryRef | None:
    """Extract owner and repository from any GitHub URL form.

    Handles ``git+https://``, ``git@github.com:`` and ``github:`` shorthands
    as long as the host name appears in the string.

    Args:
        url: Repository URL from package metadata.

    Returns:
        Repository reference, or None for non-GitHub URLs.
    """
    if not url:
        return None
    if url.startswith("github:"):
        url = "github.com/" + url[len("github:"):]
    match = GITHUB_REPO_PATTERN.search(url)
    if not match:
        return None
    owner, name = match.group(1), match.group(2)
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not owner or not name:
        return None
    return RepositoryRef(owner=owner, name=name)


class GitHubClient:
    """Thin async wrapper over the endpoints the evidence strategies need.

    Usage:
        async with GitHubClient(token=token) as github:
            releases = await github.list_releases(RepositoryRef("expressjs", "express"))
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        token: str | None = None,
        timeout: float = AsyncHttpClient.DEFAULT_TIMEOUT,
        max_release_pages: int = 10,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: GitHub API base URL.
            token: Optional token; raises the rate limit considerably.
            timeout: Request timeout in seconds.
            max_release_pages: Upper bound on release pages fetched per repository.
        """
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.max_release_pages = max_release_pages
        self._http = AsyncHttpClient(
            service="GitHub",
            base_url=api_url.rstrip("/"),
            timeout=timeout,
            rate_limiter=create_github_rate_limiter(authenticated=bool(token)),
            headers=headers,
        )

    async def __aenter__(self) -> "GitHubClient":
        await self._http.__aenter__()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self._http.__aexit__(exc_type, exc_val, exc_tb)

    async def repository_exists(self, repo: RepositoryRef) -> bool:
        data = await self._http.get_json_or_none(f"/repos/{repo.owner}/{repo.name}")
        return data is not None

    async def list_releases(self, repo: RepositoryRef) -> list[dict[str, Any]]:
        """List published releases, newest first as returned by the API.

        Args:
            repo: Repository to query.

        Returns:
            Raw release objects (``tag_name``, ``name``, ``body``, ``prerelease``...).
        """
        releases: list[dict[str, Any]] = []
        for page in range(1, self.max_release_pages + 1):
            batch = await self._http.get_json_or_none(
                f"/repos/{repo.owner}/{repo.name}/releases",
                params={"page": page, "per_page": RELEASES_PER_PAGE},
            )
            if not batch:
                break
            releases.extend(batch)
            if len(batch) < RELEASES_PER_PAGE:
                break
        return releases

    async def tag_exists(self, repo: RepositoryRef, tag: str) -> bool:
        data = await self._http.get_json_or_none(
            f"/repos/{repo.owner}/{repo.name}/git/ref/tags/{quote(tag, safe='')}"
        )
        return data is not None

    async def compare_commits(self, repo: RepositoryRef, base: str, head: str) -> list[dict[str, Any]]:
        """List commits reachable from ``head`` but not from ``base``.

        Returns:
            Raw commit objects from the compare endpoint.
        """
        data = await self._http.get_json_or_none(
            f"/repos/{repo.owner}/{repo.name}/compare/{quote(base, safe='')}...{quote(head, safe='')}"
        )
        if not data:
            return []
        return list(data.get("commits", []))

    async def get_file_text(self, repo: RepositoryRef, path: str) -> str | None:
        """Fetch a file from the default branch as text, or None if absent."""
        try:
            response = await self._http.get(
                f"/repos/{repo.owner}/{repo.name}/contents/{path}",
                headers={"Accept": "application/vnd.github.raw+json"},
            )
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                return None
            raise NetworkError("GitHub", e) from e
        return response.text
