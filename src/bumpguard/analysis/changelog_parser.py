"""Changelog parser for detecting breaking changes in dependency upgrades."""

import math
import re

from bumpguard.analysis.versions import version_in_range
from bumpguard.core.models import BreakingChange, BreakingSeverity, normalize_change_text

# Ordered inline markers. The first pattern matching a line decides its severity.
BREAKING_CHANGE_PATTERNS: list[tuple[re.Pattern[str], BreakingSeverity]] = [
    # Explicit breaking change markers
    (re.compile(r"BREAKING\s*CHANGE", re.IGNORECASE), BreakingSeverity.BREAKING),
    (re.compile(r"BREAKING:", re.IGNORECASE), BreakingSeverity.BREAKING),
    (re.compile(r"\[BREAKING\]", re.IGNORECASE), BreakingSeverity.BREAKING),
    (re.compile("\U0001F4A5"), BreakingSeverity.BREAKING),
    # Warnings and deprecations
    (re.compile("⚠️?"), BreakingSeverity.WARNING),
    (re.compile(r"\[WARNING\]", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"\[DEPRECATED\]", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"DEPRECATED:", re.IGNORECASE), BreakingSeverity.WARNING),
    # Removals
    (re.compile(r"\*\s*Removed", re.IGNORECASE), BreakingSeverity.REMOVAL),
    (re.compile(r"\*\s*Deleted", re.IGNORECASE), BreakingSeverity.REMOVAL),
    (re.compile(r"\[REMOVED\]", re.IGNORECASE), BreakingSeverity.REMOVAL),
    (re.compile(r"\[DELETED\]", re.IGNORECASE), BreakingSeverity.REMOVAL),
    # API changes
    (re.compile(r"API\s*CHANGE", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"INCOMPATIBLE", re.IGNORECASE), BreakingSeverity.BREAKING),
    (re.compile(r"NOT\s*BACKWARD\s*COMPATIBLE", re.IGNORECASE), BreakingSeverity.BREAKING),
    # Migration required
    (re.compile(r"MIGRATION\s*REQUIRED", re.IGNORECASE), BreakingSeverity.BREAKING),
    (re.compile(r"REQUIRES\s*MIGRATION", re.IGNORECASE), BreakingSeverity.BREAKING),
    # Renames and moves
    (re.compile(r"\*\s*Renamed", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"\*\s*Moved", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"\[RENAMED\]", re.IGNORECASE), BreakingSeverity.WARNING),
    (re.compile(r"\[MOVED\]", re.IGNORECASE), BreakingSeverity.WARNING),
]

BREAKING_SECTION_PATTERNS = [
    re.compile(r"^#+\s*Breaking\s*Changes?", re.IGNORECASE),
    re.compile(r"^Breaking\s*Changes?:", re.IGNORECASE),
    re.compile(r"^#+\s*\[Breaking\s*Changes?\]", re.IGNORECASE),
    re.compile("^#+\\s*\U0001F4A5\\s*Breaking", re.IGNORECASE),
    re.compile(r"^#+\s*Incompatible\s*Changes?", re.IGNORECASE),
    re.compile(r"^#+\s*API\s*Breaking\s*Changes?", re.IGNORECASE),
]

# "BREAKING CHANGE: text" footers open a section and are an entry themselves
INLINE_SECTION_HEADER = re.compile(r"^Breaking\s*Changes?:\s*\S", re.IGNORECASE)
LIST_ITEM = re.compile(r"^[-*•]\s")
HEADING = re.compile(r"^#+\s")
CONTINUATION = re.compile(r"^\s{2,}\S")

# Common version header patterns in changelog files
VERSION_HEADER_PATTERNS = [
    re.compile(r"^##?#?\s*\[?v?(\d+\.\d+(?:\.\d+)?(?:-[\w.]+)?)\]?", re.IGNORECASE),  # ## [1.2.3]
    re.compile(r"^v?(\d+\.\d+(?:\.\d+)?(?:-[\w.]+)?)\s*[-–—]\s*\d{4}", re.IGNORECASE),  # 1.2.3 - 2024-01-01
    re.compile(r"^Version\s+v?(\d+\.\d+(?:\.\d+)?(?:-[\w.]+)?)", re.IGNORECASE),  # Version 1.2.3
    re.compile(r"^\*\*v?(\d+\.\d+(?:\.\d+)?(?:-[\w.]+)?)\*\*", re.IGNORECASE),  # **1.2.3**
]

DEFAULT_TOKEN_LIMIT = 4000


def classify_line(line: str) -> BreakingSeverity | None:
    """Return the severity of the first inline marker found in a line."""
    for pattern, severity in BREAKING_CHANGE_PATTERNS:
        if pattern.search(line):
            return severity
    return None


def is_breaking_section_header(line: str) -> bool:
    """Check whether a stripped line opens a breaking-changes section."""
    return any(pattern.match(line) for pattern in BREAKING_SECTION_PATTERNS)


class BreakingChangeExtractor:
    """Scans free-form release text for breaking-change statements.

    Output order is scan order and every entry is unique by its
    normalized text, so running the extractor twice on the same input
    yields the same list.
    """

    def extract(self, text: str) -> list[BreakingChange]:
        """Extract deduplicated breaking changes from text.

        Args:
            text: Changelog, release body, diff summary or commit log.

        Returns:
            Breaking changes in the order they were found.
        """
        lines = text.splitlines()
        changes: list[BreakingChange] = []
        seen: set[str] = set()

        def add(entry: str, severity: BreakingSeverity) -> None:
            key = normalize_change_text(entry)
            if key and key not in seen:
                seen.add(key)
                changes.append(BreakingChange(text=entry, severity=severity))

        for i, raw in enumerate(lines):
            line = raw.strip()
            if not line:
                continue

            if is_breaking_section_header(line):
                if INLINE_SECTION_HEADER.match(line):
                    add(self._entry_at(lines, i), BreakingSeverity.BREAKING)
                for item in self._section_items(lines, i):
                    add(item, BreakingSeverity.BREAKING)
                continue

            severity = classify_line(line)
            if severity is not None:
                add(self._entry_at(lines, i), severity)

        return changes

    def _entry_at(self, lines: list[str], index: int) -> str:
        """Return the logical entry at a line, joining list-item continuations."""
        line = lines[index].strip()
        if not LIST_ITEM.match(line):
            return line

        parts = [line]
        i = index + 1
        while i < len(lines) and CONTINUATION.match(lines[i]) and not LIST_ITEM.match(lines[i].strip()):
            parts.append(lines[i].strip())
            i += 1
        return " ".join(parts)

    def _section_items(self, lines: list[str], header_index: int) -> list[str]:
        items: list[str] = []
        for i in range(header_index + 1, len(lines)):
            line = lines[i].strip()
            if HEADING.match(line):
                break
            if LIST_ITEM.match(line):
                items.append(self._entry_at(lines, i))
        return items

    def extract_version_range(
        self,
        text: str,
        from_version: str,
        to_version: str,
    ) -> str:
        """Extract changelog sections between two versions.

        Args:
            text: Full changelog text.
            from_version: Starting version (exclusive).
            to_version: Target version (inclusive).

        Returns:
            Text of every version section in range, in document order.
            Empty when no version headers are recognised.
        """
        lines = text.split("\n")
        sections: list[tuple[str, int, int]] = []  # (version, start_idx, end_idx)

        current_version: str | None = None
        current_start = 0

        for i, line in enumerate(lines):
            for pattern in VERSION_HEADER_PATTERNS:
                match = pattern.match(line.strip())
                if match:
                    if current_version is not None:
                        sections.append((current_version, current_start, i))
                    current_version = match.group(1)
                    current_start = i
                    break

        if current_version is not None:
            sections.append((current_version, current_start, len(lines)))

        relevant_lines: list[str] = []
        for version, start, end in sections:
            if version_in_range(version, from_version, to_version):
                relevant_lines.extend(lines[start:end])

        return "\n".join(relevant_lines).strip()


_default_extractor = BreakingChangeExtractor()


def extract_breaking_changes(text: str) -> list[BreakingChange]:
    """Convenience wrapper around ``BreakingChangeExtractor.extract``."""
    return _default_extractor.extract(text)


def estimate_tokens(text: str) -> int:
    """Rough token estimate at four characters per token."""
    return math.ceil(len(text) / 4)


def filter_by_token_limit(
    changes: list[BreakingChange],
    max_tokens: int = DEFAULT_TOKEN_LIMIT,
) -> list[BreakingChange]:
    """Select the most severe changes that fit a token budget.

    Changes are stably sorted by severity. Each one is kept if it still
    fits the remaining budget; changes that do not fit are skipped and
    smaller later ones may still be kept.

    Args:
        changes: Extracted breaking changes.
        max_tokens: Budget for the downstream summarizer.

    Returns:
        Selected changes in severity order.
    """
    selected: list[BreakingChange] = []
    total = 0
    for change in sorted(changes, key=lambda c: c.severity.priority):
        tokens = estimate_tokens(change.text)
        if total + tokens <= max_tokens:
            selected.append(change)
            total += tokens
    return selected


def _entry_key(text: str) -> str:
    return normalize_change_text(LIST_ITEM.sub("", text.strip(), count=1))


def merge_breaking_changes(
    extracted: list[BreakingChange],
    flagged_lines: list[str],
) -> list[BreakingChange]:
    """Combine extracted changes with lines flagged directly by strategies.

    Flagged lines keep the severity of their inline marker and default
    to ``breaking`` when they carry none. A flagged line that repeats an
    extracted entry, ignoring a leading list marker, is dropped.
    """
    merged: list[BreakingChange] = []
    seen: set[str] = set()
    for change in extracted:
        key = _entry_key(change.text)
        if key not in seen:
            seen.add(key)
            merged.append(change)
    for line in flagged_lines:
        key = _entry_key(line)
        if not key or key in seen:
            continue
        seen.add(key)
        severity = classify_line(line) or BreakingSeverity.BREAKING
        merged.append(BreakingChange(text=line.strip(), severity=severity))
    return merged
