"""Evidence from diffing the published contents of two package versions."""

import re
from dataclasses import dataclass, field

from bumpguard.core.models import Ecosystem, EvidenceKind, PackageUpdate, StrategyResult
from bumpguard.evidence.base import EvidenceStrategy
from bumpguard.sources.npm_diff import NpmDiffClient
from bumpguard.sources.registry import PackageRegistryClient
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

# Removed lines that take a public symbol away
REMOVED_EXPORT_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^-\s*export\s+(?:default\s+)?(?:async\s+)?(?:function|class|const|let|var)\s+(\w+)"), "Removed export"),
    (re.compile(r"^-\s*module\.exports\.(\w+)"), "Removed module export"),
    (re.compile(r"^-\s*exports\.(\w+)"), "Removed export"),
    (re.compile(r"^-\s*(\w+):\s*function"), "Removed method"),
]

DIFF_FILE_HEADER = re.compile(r"^diff --git a/.+ b/(.+)$")
MAX_LISTED_FILES = 20
API_FILE_INDICATORS = ["index.js", "index.ts", "index.mjs", "index.d.ts", "main.js", "main.ts", "/lib/", "/src/", "/api/"]


@dataclass
class DiffSummary:
    """Statistics collected from a unified diff."""

    changed_files: list[str] = field(default_factory=list)
    additions: int = 0
    deletions: int = 0
    removed_exports: list[str] = field(default_factory=list)
    has_api_changes: bool = False


def summarize_diff(diff_text: str) -> DiffSummary:
    """Walk a unified diff collecting file stats and removed exports.

    Args:
        diff_text: Output of ``npm diff``.

    Returns:
        Collected statistics.
    """
    summary = DiffSummary()
    current_file = ""

    for line in diff_text.splitlines():
        header = DIFF_FILE_HEADER.match(line)
        if header:
            current_file = header.group(1)
            if current_file not in summary.changed_files:
                summary.changed_files.append(current_file)
            if any(marker in current_file for marker in API_FILE_INDICATORS):
                summary.has_api_changes = True
            continue

        if line.startswith("+") and not line.startswith("+++"):
            summary.additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            summary.deletions += 1
            for pattern, label in REMOVED_EXPORT_PATTERNS:
                match = pattern.match(line)
                if match:
                    entry = f"{label}: {match.group(1)} in {current_file or 'unknown file'}"
                    if entry not in summary.removed_exports:
                        summary.removed_exports.append(entry)
                    summary.has_api_changes = True
                    break

    if "BREAKING" in diff_text or "DEPRECATED" in diff_text:
        summary.has_api_changes = True

    return summary


def render_diff_summary(update: PackageUpdate, summary: DiffSummary) -> str:
    lines = [
        f"# Package Diff: {update.name} {update.from_version} -> {update.to_version}",
        "",
        "## Statistics",
        f"- Files changed: {len(summary.changed_files)}",
        f"- Lines added: {summary.additions}",
        f"- Lines removed: {summary.deletions}",
        f"- Public API touched: {'Yes' if summary.has_api_changes else 'No'}",
        "",
    ]

    if summary.removed_exports:
        lines.append("## Removed Exports")
        lines.extend(f"- {entry}" for entry in summary.removed_exports)
        lines.append("")

    if summary.changed_files:
        lines.append("## Changed Files")
        lines.extend(f"- {path}" for path in summary.changed_files[:MAX_LISTED_FILES])
        remaining = len(summary.changed_files) - MAX_LISTED_FILES
        if remaining > 0:
            lines.append(f"- ... and {remaining} more files")

    return "\n".join(lines).rstrip() + "\n"


class ContentDiffStrategy(EvidenceStrategy):
    """Infers breaking changes from exports removed between two tarballs."""

    name = "Package Diff Analysis"
    kind = EvidenceKind.DIFF
    confidence = 0.8

    def __init__(self, registry: PackageRegistryClient, diff_client: NpmDiffClient) -> None:
        self.registry = registry
        self.diff_client = diff_client

    async def is_applicable(self, update: PackageUpdate) -> bool:
        if update.ecosystem != Ecosystem.NPM or not self.diff_client.available:
            return False
        return await self.registry.package_exists(update.name, update.ecosystem)

    async def try_analyze(self, update: PackageUpdate) -> StrategyResult | None:
        diff_text = await self.diff_client.diff(update.name, update.from_version, update.to_version)
        if not diff_text.strip():
            logger.debug("%s: empty package diff", update)
            return None

        summary = summarize_diff(diff_text)
        return self.make_result(
            render_diff_summary(update, summary),
            list(summary.removed_exports),
            files_changed=len(summary.changed_files),
            additions=summary.additions,
            deletions=summary.deletions,
            has_api_changes=summary.has_api_changes,
        )
