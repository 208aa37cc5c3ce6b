"""Package registry metadata lookups (npm and PyPI)."""

from typing import Any
from urllib.parse import quote

from bumpguard.core.models import Ecosystem
from bumpguard.utils.http import AsyncHttpClient
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_NPM_REGISTRY = "https://registry.npmjs.org"
DEFAULT_PYPI_URL = "https://pypi.org"

# PyPI project_urls keys that usually point at the source repository
PYPI_REPOSITORY_KEYS = ["Source", "Source Code", "Repository", "Code", "GitHub", "Homepage"]


class PackageRegistryClient:
    """Reads package metadata from the npm registry and PyPI."""

    def __init__(
        self,
        npm_registry_url: str = DEFAULT_NPM_REGISTRY,
        pypi_url: str = DEFAULT_PYPI_URL,
        timeout: float = AsyncHttpClient.DEFAULT_TIMEOUT,
    ) -> None:
        self.npm_registry_url = npm_registry_url.rstrip("/")
        self.pypi_url = pypi_url.rstrip("/")
        self._npm = AsyncHttpClient(service="npm registry", timeout=timeout)
        self._pypi = AsyncHttpClient(service="PyPI", timeout=timeout)

    async def __aenter__(self) -> "PackageRegistryClient":
        await self._npm.__aenter__()
        await self._pypi.__aenter__()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        await self._npm.__aexit__(exc_type, exc_val, exc_tb)
        await self._pypi.__aexit__(exc_type, exc_val, exc_tb)

    async def get_metadata(self, name: str, ecosystem: Ecosystem) -> dict[str, Any] | None:
        """Fetch the registry document for a package.

        Args:
            name: Package name.
            ecosystem: Registry to ask.

        Returns:
            Parsed metadata, or None if the package is unknown.
        """
        if ecosystem == Ecosystem.NPM:
            # Scoped names keep the @ but escape the slash
            encoded = quote(name, safe="@")
            return await self._npm.get_json_or_none(f"{self.npm_registry_url}/{encoded}")
        return await self._pypi.get_json_or_none(f"{self.pypi_url}/pypi/{quote(name)}/json")

    async def package_exists(self, name: str, ecosystem: Ecosystem) -> bool:
        return await self.get_metadata(name, ecosystem) is not None

    async def get_repository_url(self, name: str, ecosystem: Ecosystem) -> str | None:
        """Return the declared source repository URL, if any."""
        metadata = await self.get_metadata(name, ecosystem)
        if not metadata:
            return None

        if ecosystem == Ecosystem.NPM:
            repository = metadata.get("repository")
            if isinstance(repository, dict):
                return repository.get("url")
            if isinstance(repository, str):
                return repository
            return None

        info = metadata.get("info") or {}
        project_urls = info.get("project_urls") or {}
        for key in PYPI_REPOSITORY_KEYS:
            url = project_urls.get(key)
            if url and "github.com" in url:
                return url
        return info.get("home_page") or None
