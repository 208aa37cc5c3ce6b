"""End-to-end tests of the upgrade risk engine.

Evidence sources are replaced with canned strategies; the usage scan,
breaking change extraction and scoring run for real against small
fixture codebases.
"""

from pathlib import Path

import pytest

from bumpguard import UpgradeRiskEngine
from bumpguard.analysis.known_breaking_changes import KnowledgeBase
from bumpguard.config import BumpguardConfig, EngineConfig
from bumpguard.core.models import (
    DependencyAssessment,
    Ecosystem,
    EvidenceKind,
    PackageUpdate,
    RiskLevel,
    UsageAnalysis,
)
from bumpguard.errors import EvidenceUnavailableError, InvalidPackageIdentifierError
from bumpguard.evidence.base import NO_INFORMATION, FallbackChain

EXPRESS_NOTES = """## v5.0.0

## Breaking Changes
- Removed app.del()
- Renamed req.param() to req.params

## Features
- Async error handling
"""


@pytest.fixture
def express_chain(make_strategy) -> FallbackChain:
    return FallbackChain(
        [
            make_strategy("Package Diff Analysis", 0.0, applicable=False, kind=EvidenceKind.DIFF),
            make_strategy(
                "GitHub Releases",
                0.9,
                content=EXPRESS_NOTES,
                lines=["- Removed app.del()", "- Renamed req.param() to req.params"],
            ),
        ]
    )


class TestExpressUpgrade:
    """A major framework upgrade used across production code."""

    @pytest.mark.asyncio
    async def test_full_analysis(self, express_chain: FallbackChain, express_codebase: Path) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")

        engine = UpgradeRiskEngine(
            chain=express_chain, codebase_root=express_codebase, knowledge_base=KnowledgeBase()
        )
        async with engine:
            result = await engine.analyze(update)

        assert result.succeeded
        assert result.evidence.source_names == ["GitHub Releases"]
        assert [c.text for c in result.breaking_changes] == [
            "- Removed app.del()",
            "- Renamed req.param() to req.params",
        ]
        assert result.usage.production_usage_count == 9
        assert result.usage.critical_paths == ["src/index.ts", "src/routes/users.js"]

        assessment = result.assessment
        # 20 + 18 + 10 + 10 + 5 - 4.44
        assert assessment.score == pytest.approx(58.56, abs=0.01)
        assert assessment.level == RiskLevel.CRITICAL
        assert assessment.confidence == 0.6
        assert assessment.estimated_effort == "significant"
        assert assessment.testing_scope == "full regression"
        assert "Prepare rollback plan in case of issues" in assessment.mitigation_steps

    @pytest.mark.asyncio
    async def test_explicit_usage_skips_scan(self, express_chain: FallbackChain) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")
        usage = UsageAnalysis(package_name="express")

        engine = UpgradeRiskEngine(
            chain=express_chain, codebase_root=Path("/nonexistent"), knowledge_base=KnowledgeBase()
        )
        assessment = await engine.assess(update, usage=usage, test_coverage=90.0)

        # 20 + 10 + 5 - 18
        assert assessment.score == pytest.approx(17.0)
        assert assessment.level == RiskLevel.MEDIUM

    @pytest.mark.asyncio
    async def test_lockfile_only_change(self, express_chain: FallbackChain, express_codebase: Path) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0", lockfile_only=True)

        engine = UpgradeRiskEngine(chain=express_chain, codebase_root=express_codebase)
        assessment = await engine.assess(update)

        assert assessment.score == 10.0
        assert assessment.level == RiskLevel.LOW


    @pytest.mark.asyncio
    async def test_without_codebase_no_coverage_credit(self, express_chain: FallbackChain) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")

        engine = UpgradeRiskEngine(chain=express_chain, knowledge_base=KnowledgeBase())
        assessment = await engine.assess(update)

        # 20 + 10 + 5, nothing deducted for coverage
        assert assessment.score == pytest.approx(35.0)
        assert assessment.level == RiskLevel.HIGH
        assert not any(d.startswith("Good test coverage") for d in assessment.factor_descriptions)


    @pytest.mark.asyncio
    async def test_known_breaking_changes_join_evidence(
        self, express_chain: FallbackChain, express_codebase: Path
    ) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")

        result = await UpgradeRiskEngine(chain=express_chain, codebase_root=express_codebase).analyze(update)

        assert [c.text for c in result.breaking_changes] == [
            "- Removed app.del()",
            "- Renamed req.param() to req.params",
            "app.del() removed in favour of app.delete()",
            "req.param() removed",
            "Route path syntax follows path-to-regexp 8, bare * wildcards no longer match",
        ]
        assert result.migration_steps[0] == "Rename app.del() calls to app.delete()"
        # 20 + 18 + 10 + 20 + 5 - 4.44
        assert result.assessment.score == pytest.approx(68.56, abs=0.01)
        assert result.assessment.level == RiskLevel.CRITICAL


class TestWithoutEvidence:
    """Updates where no evidence source produces anything."""

    @pytest.mark.asyncio
    async def test_failing_sources_give_unknown(self, make_strategy, express_codebase: Path) -> None:
        chain = FallbackChain(
            [
                make_strategy("GitHub Releases", 0.9, error=EvidenceUnavailableError("GitHub", "express")),
                make_strategy("Changelog File", 0.6, error=ValueError("bad changelog")),
            ]
        )
        update = PackageUpdate(name="express", from_version="4.18.2", to_version="4.18.3")

        result = await UpgradeRiskEngine(chain=chain, codebase_root=express_codebase).analyze(update)

        assert result.evidence.content == NO_INFORMATION
        assert result.breaking_changes == []
        assert result.assessment.level == RiskLevel.UNKNOWN
        assert result.assessment.testing_scope == "full regression recommended"

    @pytest.mark.asyncio
    async def test_type_definitions_patch_is_safe(self, express_codebase: Path) -> None:
        update = PackageUpdate(name="@types/express", from_version="4.17.21", to_version="4.17.23")

        assessment = await UpgradeRiskEngine(chain=FallbackChain([]), codebase_root=express_codebase).assess(update)

        assert assessment.level == RiskLevel.SAFE
        assert assessment.estimated_effort == "none"


class TestPythonProject:
    """A PyPI dependency scanned in a Python codebase."""

    @pytest.mark.asyncio
    async def test_requests_major(self, make_strategy, python_codebase: Path) -> None:
        chain = FallbackChain(
            [make_strategy("Git Commit Analysis", 0.7, lines=["feat!: drop Python 3.8 (abc1234)"])]
        )
        update = PackageUpdate(
            name="requests", from_version="2.0.0", to_version="3.0.0", ecosystem=Ecosystem.PYPI
        )

        result = await UpgradeRiskEngine(chain=chain, codebase_root=python_codebase).analyze(update)

        assert result.usage.production_usage_count == 9
        assert result.usage.has_dynamic_imports
        assert len(result.breaking_changes) == 1
        assert result.assessment.level == RiskLevel.CRITICAL


class TestBatchAssessment:
    """Tests for assess_many."""

    @pytest.mark.asyncio
    async def test_results_keep_input_order(self, make_strategy, express_codebase: Path) -> None:
        chain = FallbackChain([make_strategy("GitHub Releases", 0.9, lines=["BREAKING: changed"])])
        config = BumpguardConfig(engine=EngineConfig(max_concurrency=2))
        updates = [
            PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0"),
            PackageUpdate(name="Not A Package", from_version="1.0.0", to_version="2.0.0"),
            PackageUpdate(name="@types/node", from_version="24.0.6", to_version="24.0.15"),
            PackageUpdate(name="express-session", from_version="1.17.0", to_version="1.18.0"),
        ]

        async with UpgradeRiskEngine(config, chain=chain, codebase_root=express_codebase) as engine:
            results = await engine.assess_many(updates)

        assert [r.update.name for r in results] == [u.name for u in updates]
        assert [r.succeeded for r in results] == [True, False, True, True]
        assert "Not A Package" in results[1].error
        assert results[2].assessment.level == RiskLevel.SAFE

    @pytest.mark.asyncio
    async def test_single_invalid_identifier_raises(self, make_strategy) -> None:
        engine = UpgradeRiskEngine(chain=FallbackChain([make_strategy("notes", 0.9)]))

        with pytest.raises(InvalidPackageIdentifierError):
            await engine.assess(PackageUpdate(name="../../etc", from_version="1.0.0", to_version="2.0.0"))

    @pytest.mark.asyncio
    async def test_assess_raises_when_nothing_was_scored(self, make_strategy, monkeypatch) -> None:
        update = PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0")
        engine = UpgradeRiskEngine(chain=FallbackChain([make_strategy("notes", 0.9)]))

        async def unscored(*args, **kwargs) -> DependencyAssessment:
            return DependencyAssessment(update=update, error="scoring skipped")

        monkeypatch.setattr(engine, "analyze", unscored)

        with pytest.raises(RuntimeError):
            await engine.assess(update)

    @pytest.mark.asyncio
    async def test_engine_without_chain(self) -> None:
        engine = UpgradeRiskEngine()

        with pytest.raises(RuntimeError):
            await engine.assess(PackageUpdate(name="express", from_version="4.0.0", to_version="5.0.0"))
