"""Clients for the external evidence sources: GitHub, package registries and npm."""

from bumpguard.sources.github import GitHubClient, RepositoryRef, parse_github_url
from bumpguard.sources.npm_diff import NpmDiffClient
from bumpguard.sources.registry import PackageRegistryClient
from bumpguard.sources.resolver import RepositoryResolver

__all__ = [
    "GitHubClient",
    "NpmDiffClient",
    "PackageRegistryClient",
    "RepositoryRef",
    "RepositoryResolver",
    "parse_github_url",
]
