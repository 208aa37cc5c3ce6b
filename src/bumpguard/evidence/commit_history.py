"""Evidence from the commit log between two release tags."""

import re
from typing import Any

from bumpguard.core.models import EvidenceKind, PackageUpdate, StrategyResult
from bumpguard.evidence.base import EvidenceStrategy
from bumpguard.sources.github import GitHubClient, RepositoryRef
from bumpguard.sources.resolver import RepositoryResolver
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

BREAKING_COMMIT_INDICATORS = [
    re.compile(r"BREAKING[\s-]CHANGE", re.IGNORECASE),
    re.compile(r"BREAKING:", re.IGNORECASE),
    re.compile(r"\[BREAKING\]", re.IGNORECASE),
    re.compile("\U0001F4A5"),
    re.compile(r"\bbc\b:", re.IGNORECASE),
    re.compile(r"incompatible", re.IGNORECASE),
    re.compile(r"\bmajor\b.*\bchange", re.IGNORECASE),
    re.compile(r"^\w+(?:\(.+?\))?!:"),
]

CONVENTIONAL_COMMIT = re.compile(r"^(\w+)(?:\(.+?\))?!?:")

COMMIT_TYPE_TITLES = {
    "feat": "Features",
    "fix": "Bug Fixes",
    "docs": "Documentation",
    "style": "Style Changes",
    "refactor": "Refactoring",
    "perf": "Performance",
    "test": "Tests",
    "build": "Build System",
    "ci": "CI/CD",
    "chore": "Chores",
    "revert": "Reverts",
    "other": "Other Changes",
}

COMMITS_PER_GROUP = 5


def tag_candidates(version: str) -> list[str]:
    """Tag names a release of ``version`` is commonly published under."""
    candidates = [
        version,
        f"v{version}",
        f"{version}.0",
        f"v{version}.0",
        re.sub(r"\.\d+$", "", version),
    ]
    return list(dict.fromkeys(c for c in candidates if c))


def first_line(message: str) -> str:
    return message.strip().split("\n", 1)[0].strip()


def is_breaking_commit(message: str) -> bool:
    return any(pattern.search(message) for pattern in BREAKING_COMMIT_INDICATORS)


def commit_type(message: str) -> str:
    match = CONVENTIONAL_COMMIT.match(message.strip())
    return match.group(1).lower() if match else "other"


def format_commit_type(kind: str) -> str:
    return COMMIT_TYPE_TITLES.get(kind, kind[:1].upper() + kind[1:])


class CommitHistoryStrategy(EvidenceStrategy):
    """Falls back to commit messages when no curated notes exist."""

    name = "Git Commit Analysis"
    kind = EvidenceKind.CHANGELOG
    confidence = 0.7

    def __init__(self, resolver: RepositoryResolver, github: GitHubClient) -> None:
        self.resolver = resolver
        self.github = github

    async def is_applicable(self, update: PackageUpdate) -> bool:
        return await self.resolver.resolve(update) is not None

    async def try_analyze(self, update: PackageUpdate) -> StrategyResult | None:
        repo = await self.resolver.resolve(update)
        if repo is None:
            return None

        base = await self._find_tag(repo, update.from_version)
        head = await self._find_tag(repo, update.to_version)
        if not base or not head:
            logger.debug("%s: tags not found in %s", update, repo)
            return None

        commits = [self._simplify(c) for c in await self.github.compare_commits(repo, base, head)]
        if not commits:
            return None

        breaking = [c for c in commits if is_breaking_commit(c["message"])]
        return self.make_result(
            self._summarize(commits, breaking),
            [self._headline(c) for c in breaking],
            repository=repo.full_name,
            base_tag=base,
            head_tag=head,
            total_commits=len(commits),
            breaking_commit_count=len(breaking),
            authors=sorted({c["author"] for c in commits}),
        )

    async def _find_tag(self, repo: RepositoryRef, version: str) -> str | None:
        for tag in tag_candidates(version):
            if await self.github.tag_exists(repo, tag):
                return tag
        return None

    def _simplify(self, commit: dict[str, Any]) -> dict[str, str]:
        details = commit.get("commit") or {}
        author = details.get("author") or {}
        return {
            "sha": commit.get("sha", ""),
            "message": details.get("message", ""),
            "author": author.get("name") or "unknown",
        }

    def _headline(self, commit: dict[str, str]) -> str:
        return f"{first_line(commit['message'])} ({commit['sha'][:7]})"

    def _summarize(self, commits: list[dict[str, str]], breaking: list[dict[str, str]]) -> str:
        lines = [
            "# Commit Analysis Summary",
            "",
            f"Total commits between versions: {len(commits)}",
            f"Flagged commits: {len(breaking)}",
            "",
        ]

        if breaking:
            lines.append("## Breaking Changes")
            lines.append("")
            lines.extend(f"- {self._headline(c)}" for c in breaking)
            lines.append("")

        groups: dict[str, list[dict[str, str]]] = {}
        for commit in commits:
            groups.setdefault(commit_type(commit["message"]), []).append(commit)

        lines.append("## Changes by Type")
        lines.append("")
        for kind, grouped in groups.items():
            lines.append(f"### {format_commit_type(kind)} ({len(grouped)})")
            lines.extend(f"- {first_line(c['message'])}" for c in grouped[:COMMITS_PER_GROUP])
            if len(grouped) > COMMITS_PER_GROUP:
                lines.append(f"- ... and {len(grouped) - COMMITS_PER_GROUP} more")
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"
