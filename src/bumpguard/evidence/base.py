"""Evidence strategy interface and the fallback chain that fuses them."""

import asyncio
from abc import ABC, abstractmethod
from typing import ClassVar

from bumpguard.core.models import (
    EvidenceBundle,
    EvidenceKind,
    PackageUpdate,
    StrategyResult,
    normalize_change_text,
)
from bumpguard.errors import BumpguardError
from bumpguard.evidence.cache import EvidenceCache
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

SHORT_CIRCUIT_CONFIDENCE = 0.8
INCLUSION_CONFIDENCE = 0.3
DEFAULT_STRATEGY_TIMEOUT = 30.0

NO_INFORMATION = "No information available"
LIMITED_INFORMATION = "Limited information available"


class EvidenceStrategy(ABC):
    """Base class for a single evidence source.

    Implementations return None from ``try_analyze`` for every failure
    they can anticipate (network, parse, missing data) so the chain can
    move on to the next source.
    """

    name: ClassVar[str]
    """Source name recorded in results and cache keys."""

    kind: ClassVar[EvidenceKind]
    """Whether the source provides changelog or diff evidence."""

    confidence: ClassVar[float]
    """Confidence attached to successful results."""

    @abstractmethod
    async def is_applicable(self, update: PackageUpdate) -> bool:
        """Check whether this strategy can say anything about the update."""
        ...

    @abstractmethod
    async def try_analyze(self, update: PackageUpdate) -> StrategyResult | None:
        """Gather evidence for an update.

        Args:
            update: The dependency bump.

        Returns:
            A result, or None if this source has nothing to offer.
        """
        ...

    def make_result(
        self,
        content: str,
        breaking_change_lines: list[str],
        **metadata: object,
    ) -> StrategyResult:
        return StrategyResult(
            content=content,
            breaking_change_lines=breaking_change_lines,
            confidence=self.confidence,
            source_name=self.name,
            metadata=dict(metadata),
        )


class FallbackChain:
    """Runs strategies in priority order and fuses what they return.

    The first result whose confidence exceeds ``short_circuit_confidence``
    is returned as is. Otherwise all results are merged: breaking-change
    lines are unioned, content sections above ``inclusion_confidence``
    are concatenated, and the confidence is the mean over all results.
    """

    def __init__(
        self,
        strategies: list[EvidenceStrategy] | None = None,
        cache: EvidenceCache | None = None,
        timeout: float = DEFAULT_STRATEGY_TIMEOUT,
        short_circuit_confidence: float = SHORT_CIRCUIT_CONFIDENCE,
        inclusion_confidence: float = INCLUSION_CONFIDENCE,
    ) -> None:
        """Initialize the chain.

        Args:
            strategies: Strategies in priority order.
            cache: Optional write-through cache of strategy results.
            timeout: Per-strategy time limit in seconds.
            short_circuit_confidence: Confidence above which a result wins outright.
            inclusion_confidence: Confidence a result needs for its content to be merged.
        """
        self.strategies: list[EvidenceStrategy] = list(strategies or [])
        self.cache = cache
        self.timeout = timeout
        self.short_circuit_confidence = short_circuit_confidence
        self.inclusion_confidence = inclusion_confidence

    @property
    def strategy_names(self) -> list[str]:
        return [s.name for s in self.strategies]

    async def analyze(self, update: PackageUpdate) -> EvidenceBundle:
        """Gather and fuse evidence for one update.

        Never raises for evidence failures; the worst outcome is the
        empty bundle with zero confidence.
        """
        results: list[tuple[StrategyResult, EvidenceKind]] = []

        for strategy in self.strategies:
            result = await self._run_strategy(strategy, update)
            if result is None:
                continue

            if result.confidence > self.short_circuit_confidence:
                logger.debug(
                    "%s: %s answered with confidence %.2f, skipping remaining sources",
                    update.name,
                    strategy.name,
                    result.confidence,
                )
                return EvidenceBundle(
                    content=result.content,
                    breaking_change_lines=_unique(result.breaking_change_lines),
                    confidence=result.confidence,
                    source_names=[result.source_name],
                    evidence_kinds=[strategy.kind],
                )

            results.append((result, strategy.kind))

        return self._combine(results)

    async def _run_strategy(
        self,
        strategy: EvidenceStrategy,
        update: PackageUpdate,
    ) -> StrategyResult | None:
        if self.cache is not None:
            cached = self.cache.get(update.name, update.from_version, update.to_version, strategy.name)
            if cached is not None:
                logger.debug("%s: using cached %s result", update.name, strategy.name)
                return cached

        try:
            if not await asyncio.wait_for(strategy.is_applicable(update), self.timeout):
                return None
            result = await asyncio.wait_for(strategy.try_analyze(update), self.timeout)
        except asyncio.TimeoutError:
            logger.warning("%s: %s timed out after %.0fs", update.name, strategy.name, self.timeout)
            return None
        except BumpguardError as e:
            logger.warning("%s: %s failed: %s", update.name, strategy.name, e.message)
            return None
        except Exception as e:
            logger.warning("%s: %s failed unexpectedly: %s", update.name, strategy.name, e)
            return None

        if result is not None and self.cache is not None:
            self.cache.set(update.name, update.from_version, update.to_version, result)
        return result

    def _combine(self, results: list[tuple[StrategyResult, EvidenceKind]]) -> EvidenceBundle:
        if not results:
            return EvidenceBundle(content=NO_INFORMATION, confidence=0.0)

        ordered = sorted(results, key=lambda item: item[0].confidence, reverse=True)

        lines: list[str] = []
        sections: list[str] = []
        source_names: list[str] = []
        kinds: list[EvidenceKind] = []
        total_confidence = 0.0

        for result, kind in ordered:
            lines.extend(result.breaking_change_lines)
            if result.content and result.confidence > self.inclusion_confidence:
                sections.append(f"### {result.source_name}\n{result.content}")
                source_names.append(result.source_name)
                if kind not in kinds:
                    kinds.append(kind)
            total_confidence += result.confidence

        confidence = min(max(total_confidence / len(ordered), 0.0), 1.0)
        return EvidenceBundle(
            content="\n\n".join(sections) or LIMITED_INFORMATION,
            breaking_change_lines=_unique(lines),
            confidence=confidence,
            source_names=source_names,
            evidence_kinds=kinds,
        )


def _unique(lines: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for line in lines:
        key = normalize_change_text(line)
        if key and key not in seen:
            seen.add(key)
            unique.append(line)
    return unique
