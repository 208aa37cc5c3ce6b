"""Upgrade risk engine.

Coordinates the full assessment of a dependency bump:
1. Validate the package identifier
2. Gather and fuse evidence through the fallback chain
3. Extract breaking changes from the fused evidence and add known ones
4. Compute the version delta
5. Scan the codebase for usage of the package
6. Score the result into a risk verdict
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from bumpguard.analysis.changelog_parser import BreakingChangeExtractor, merge_breaking_changes
from bumpguard.analysis.impact_calculator import RiskScoringEngine, build_risk_factors
from bumpguard.analysis.known_breaking_changes import KnowledgeBase
from bumpguard.analysis.usage_finder import UsageScanner
from bumpguard.analysis.versions import compute_version_delta
from bumpguard.config import BumpguardConfig
from bumpguard.core.change_set import validate_update
from bumpguard.core.models import (
    BreakingChange,
    DependencyAssessment,
    Ecosystem,
    EvidenceBundle,
    PackageUpdate,
    RiskAssessment,
    UsageAnalysis,
)
from bumpguard.errors import InvalidPackageIdentifierError
from bumpguard.evidence import create_default_chain
from bumpguard.evidence.base import FallbackChain
from bumpguard.evidence.cache import EvidenceCache
from bumpguard.sources.github import GitHubClient
from bumpguard.sources.registry import PackageRegistryClient
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)


class UpgradeRiskEngine:
    """Assesses the risk of dependency upgrades.

    The engine never fails because an evidence source or a source file
    misbehaves; the only error it raises is
    ``InvalidPackageIdentifierError``.

    Usage:
        async with UpgradeRiskEngine(config, codebase_root=Path(".")) as engine:
            assessment = await engine.assess(PackageUpdate(name="express", from_version="4.18.2", to_version="5.0.0"))
    """

    def __init__(
        self,
        config: BumpguardConfig | None = None,
        chain: FallbackChain | None = None,
        scanner: UsageScanner | None = None,
        scorer: RiskScoringEngine | None = None,
        extractor: BreakingChangeExtractor | None = None,
        codebase_root: Path | None = None,
        knowledge_base: KnowledgeBase | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Configuration (defaults apply when omitted).
            chain: Evidence chain; built from ``config`` on context entry when omitted.
            scanner: Usage scanner for the codebase.
            scorer: Risk scoring engine.
            extractor: Breaking change extractor applied to fused evidence.
            codebase_root: Codebase to scan; usage is not scanned when omitted.
            knowledge_base: Known breaking changes; built from ``config`` when omitted.
        """
        self._config = config or BumpguardConfig()
        self._chain = chain
        self._scanner = scanner or UsageScanner(self._config.scanner)
        self._scorer = scorer or RiskScoringEngine()
        self._extractor = extractor or BreakingChangeExtractor()
        self._codebase_root = Path(codebase_root) if codebase_root else None
        if knowledge_base is None:
            knowledge_base = KnowledgeBase.from_config(self._config.knowledge)
        self._knowledge = knowledge_base

        self._registry: PackageRegistryClient | None = None
        self._github: GitHubClient | None = None
        self._cache: EvidenceCache | None = None

    async def __aenter__(self) -> UpgradeRiskEngine:
        """Open the network clients and build the default chain if needed."""
        if self._chain is None:
            sources = self._config.sources
            self._registry = PackageRegistryClient(
                npm_registry_url=sources.npm_registry_url,
                pypi_url=sources.pypi_url,
                timeout=sources.request_timeout,
            )
            self._github = GitHubClient(
                api_url=sources.github_api_url,
                token=sources.github_token,
                timeout=sources.request_timeout,
            )
            await self._registry.__aenter__()
            await self._github.__aenter__()

            if self._config.cache.enabled:
                self._cache = EvidenceCache(
                    cache_dir=self._config.cache.directory,
                    ttl_seconds=self._config.cache.ttl_hours * 3600,
                )

            self._chain = create_default_chain(
                self._config,
                self._registry,
                self._github,
                cache=self._cache,
            )
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        """Close everything opened on entry."""
        if self._github is not None:
            await self._github.__aexit__(exc_type, exc_val, exc_tb)
            self._github = None
        if self._registry is not None:
            await self._registry.__aexit__(exc_type, exc_val, exc_tb)
            self._registry = None
            self._chain = None
        if self._cache is not None:
            self._cache.close()
            self._cache = None

    @property
    def chain(self) -> FallbackChain:
        if self._chain is None:
            raise RuntimeError("No evidence chain configured. Pass one in or use async with.")
        return self._chain

    async def assess(
        self,
        update: PackageUpdate,
        usage: UsageAnalysis | None = None,
        test_coverage: float | None = None,
    ) -> RiskAssessment:
        """Assess a single dependency update.

        Args:
            update: The dependency bump.
            usage: Precomputed usage; the codebase is scanned when omitted.
            test_coverage: Explicit coverage percentage, overriding the usage ratio.

        Returns:
            The risk assessment.

        Raises:
            InvalidPackageIdentifierError: If the package name is not valid.
        """
        result = await self.analyze(update, usage=usage, test_coverage=test_coverage)
        if result.assessment is None:
            raise RuntimeError(f"No assessment produced for {update}")
        return result.assessment

    async def analyze(
        self,
        update: PackageUpdate,
        usage: UsageAnalysis | None = None,
        test_coverage: float | None = None,
    ) -> DependencyAssessment:
        """Run the full pipeline and keep every intermediate result.

        Raises:
            InvalidPackageIdentifierError: If the package name is not valid.
        """
        validate_update(update)
        logger.info("Assessing %s", update)

        evidence = await self.chain.analyze(update)
        breaking_changes = self.extract_breaking_changes(evidence, update)
        delta = compute_version_delta(update.from_version, update.to_version)

        if usage is None:
            usage = await self.scan_usage(update.name, update.ecosystem)

        factors = build_risk_factors(
            update,
            delta,
            breaking_changes,
            usage=usage,
            evidence=evidence,
            test_coverage=test_coverage,
        )
        assessment = self._scorer.assess(factors)
        logger.info(
            "%s: %s (score %.1f, confidence %.2f)",
            update,
            assessment.level.value,
            assessment.score,
            assessment.confidence,
        )

        return DependencyAssessment(
            update=update,
            assessment=assessment,
            evidence=evidence,
            breaking_changes=breaking_changes,
            usage=usage,
            migration_steps=self._knowledge.migration_steps(update),
        )

    def extract_breaking_changes(
        self,
        evidence: EvidenceBundle,
        update: PackageUpdate | None = None,
    ) -> list[BreakingChange]:
        """Combine extractor output, the strategies' own lines and known changes.

        Known breaking changes for ``update`` come last and are skipped
        when the evidence already reports the same text.
        """
        extracted = self._extractor.extract(evidence.content)
        changes = merge_breaking_changes(extracted, evidence.breaking_change_lines)
        if update is not None:
            changes = merge_breaking_changes(changes + self._knowledge.breaking_changes(update), [])
        return changes

    async def scan_usage(
        self,
        package_name: str,
        ecosystem: Ecosystem = Ecosystem.NPM,
        codebase_root: Path | None = None,
    ) -> UsageAnalysis | None:
        """Scan a codebase for usage of a package.

        Args:
            package_name: Package to look for.
            ecosystem: Ecosystem of the package.
            codebase_root: Root to scan; defaults to the engine's codebase.

        Returns:
            Usage analysis, or None when no codebase is configured.
        """
        root = codebase_root or self._codebase_root
        if root is None:
            return None
        return await self._scanner.scan(root, package_name, ecosystem)

    async def assess_many(self, updates: Sequence[PackageUpdate]) -> list[DependencyAssessment]:
        """Assess several updates concurrently.

        Each update runs its own pipeline under a bounded concurrency
        limit. Results come back in input order; an invalid identifier
        is recorded on its own entry instead of failing the batch.

        Args:
            updates: Updates in a change set.

        Returns:
            One DependencyAssessment per update, in input order.
        """
        semaphore = asyncio.Semaphore(self._config.engine.max_concurrency)

        async def run(update: PackageUpdate) -> DependencyAssessment:
            async with semaphore:
                return await self.analyze(update)

        outcomes = await asyncio.gather(*(run(u) for u in updates), return_exceptions=True)

        results: list[DependencyAssessment] = []
        for update, outcome in zip(updates, outcomes):
            if isinstance(outcome, InvalidPackageIdentifierError):
                logger.warning("Skipping %s: %s", update.name, outcome.message)
                results.append(DependencyAssessment(update=update, error=str(outcome)))
            elif isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error("Assessment of %s failed: %s", update, outcome)
                results.append(DependencyAssessment(update=update, error=str(outcome)))
            else:
                results.append(outcome)
        return results


async def assess_update(
    update: PackageUpdate,
    codebase_root: Path | None = None,
    config: BumpguardConfig | None = None,
) -> RiskAssessment:
    """Convenience function to assess one update with default collaborators.

    Args:
        update: The dependency bump.
        codebase_root: Optional codebase to scan for usage.
        config: Optional configuration.

    Returns:
        The risk assessment.
    """
    async with UpgradeRiskEngine(config, codebase_root=codebase_root) as engine:
        return await engine.assess(update)
