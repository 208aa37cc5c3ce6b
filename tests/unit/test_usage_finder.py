"""Tests for the codebase usage scanner."""

from pathlib import Path

import pytest

from bumpguard.analysis.usage_finder import (
    UsageScanner,
    classify_context,
    find_literal_mentions,
    is_config_scan_target,
    scan_usage,
)
from bumpguard.config import ScannerConfig
from bumpguard.core.models import Ecosystem, UsageContext, UsageKind


class TestClassifyContext:
    """Tests for path based context classification."""

    @pytest.mark.parametrize(
        "path,expected",
        [
            ("src/app.ts", UsageContext.PRODUCTION),
            ("src/invite.ts", UsageContext.PRODUCTION),
            ("tests/app.ts", UsageContext.TEST),
            ("src/__tests__/app.tsx", UsageContext.TEST),
            ("src/app.test.ts", UsageContext.TEST),
            ("service/test_client.py", UsageContext.TEST),
            ("conftest.py", UsageContext.TEST),
            ("webpack.config.js", UsageContext.CONFIG),
            ("config/settings.py", UsageContext.CONFIG),
            ("package.json", UsageContext.CONFIG),
            ("yarn.lock", UsageContext.CONFIG),
            ("dist/index.js", UsageContext.BUILD),
            ("public/app.min.js", UsageContext.BUILD),
            ("Src\\Main.TS", UsageContext.PRODUCTION),
        ],
    )
    def test_classify(self, path: str, expected: UsageContext) -> None:
        assert classify_context(path) == expected

    def test_test_wins_over_config(self) -> None:
        assert classify_context("tests/config/setup.js") == UsageContext.TEST


class TestLiteralMentions:
    """Tests for find_literal_mentions."""

    def test_whole_name_only(self) -> None:
        content = '"express": "^4",\n"express-session": "^1",\n"@types/express": "^4"\n'
        usages = find_literal_mentions(content, "express", Ecosystem.NPM)

        assert [u.line for u in usages] == [1]
        assert usages[0].kind == UsageKind.CONFIG

    def test_scoped_package(self) -> None:
        usages = find_literal_mentions('"@types/express": "^4"', "@types/express", Ecosystem.NPM)
        assert len(usages) == 1

    def test_pypi_is_case_insensitive(self) -> None:
        usages = find_literal_mentions("Requests>=2.0\nrequests_oauthlib\n", "requests", Ecosystem.PYPI)
        assert [u.line for u in usages] == [1]

    def test_one_mention_per_line(self) -> None:
        usages = find_literal_mentions("express express express", "express", Ecosystem.NPM)
        assert len(usages) == 1

    def test_config_scan_targets(self) -> None:
        assert is_config_scan_target(Path("package.json"))
        assert is_config_scan_target(Path("requirements-dev.txt"))
        assert is_config_scan_target(Path("poetry.lock"))
        assert not is_config_scan_target(Path("README.md"))


class TestUsageScanner:
    """Tests for UsageScanner."""

    def test_should_exclude_nested_directories(self, temp_dir: Path) -> None:
        scanner = UsageScanner()

        assert scanner.should_exclude(temp_dir / "node_modules" / "x" / "index.js", temp_dir)
        assert scanner.should_exclude(temp_dir / "packages" / "a" / "node_modules" / "x.js", temp_dir)
        assert scanner.should_exclude(temp_dir / "public" / "app.min.js", temp_dir)
        assert not scanner.should_exclude(temp_dir / "src" / "app.js", temp_dir)

    def test_find_files_is_sorted_and_pruned(self, express_codebase: Path) -> None:
        files = [p.relative_to(express_codebase).as_posix() for p in UsageScanner().find_files(express_codebase)]

        assert files == [
            "package.json",
            "src/index.ts",
            "src/util.js",
            "src/routes/users.js",
            "tests/app.test.js",
        ]

    @pytest.mark.asyncio
    async def test_express_codebase(self, express_codebase: Path) -> None:
        usage = await UsageScanner().scan(express_codebase, "express")

        assert usage.production_usage_count == 9
        assert usage.test_usage_count == 2
        assert usage.config_usage_count == 1
        assert usage.total_usage_count == 12
        assert usage.critical_paths == ["src/index.ts", "src/routes/users.js"]
        assert not usage.has_dynamic_imports
        assert usage.files_scanned == 5
        assert usage.files_skipped == 0
        assert all("node_modules" not in loc.file for loc in usage.locations)

    @pytest.mark.asyncio
    async def test_locations_are_ordered_and_unique(self, express_codebase: Path) -> None:
        usage = await UsageScanner().scan(express_codebase, "express")

        keys = [(loc.file, loc.line, loc.column) for loc in usage.locations]
        assert keys == sorted(keys)
        # Both type annotations on line 7 collapse into one location
        line_seven = [loc for loc in usage.locations if loc.file == "src/index.ts" and loc.line == 7]
        assert len(line_seven) == 1
        assert line_seven[0].kind == UsageKind.TYPE_REFERENCE

    @pytest.mark.asyncio
    async def test_similar_package_names_do_not_match(self, express_codebase: Path) -> None:
        usage = await UsageScanner().scan(express_codebase, "express-session")

        assert usage.production_usage_count == 0
        assert usage.config_usage_count == 1

    @pytest.mark.asyncio
    async def test_python_codebase(self, python_codebase: Path) -> None:
        usage = await scan_usage(python_codebase, "requests", Ecosystem.PYPI)

        assert usage.production_usage_count == 9
        assert usage.test_usage_count == 2
        assert usage.config_usage_count == 1
        assert usage.critical_paths == ["service/client.py", "service/plugins.py"]
        assert usage.has_dynamic_imports
        assert all(not loc.file.startswith(".venv") for loc in usage.locations)

    @pytest.mark.asyncio
    async def test_unused_package(self, express_codebase: Path) -> None:
        usage = await UsageScanner().scan(express_codebase, "left-pad")

        assert not usage.has_usage
        assert usage.critical_paths == []
        assert usage.files_scanned == 5

    @pytest.mark.asyncio
    async def test_missing_root(self, temp_dir: Path) -> None:
        usage = await UsageScanner().scan(temp_dir / "missing", "express")

        assert usage.total_usage_count == 0
        assert usage.files_scanned == 0

    @pytest.mark.asyncio
    async def test_file_cap(self, express_codebase: Path) -> None:
        usage = await UsageScanner(ScannerConfig(max_files=2)).scan(express_codebase, "express")

        assert usage.files_scanned == 2
        assert usage.files_skipped == 3
        assert usage.critical_paths == ["src/index.ts"]

    @pytest.mark.asyncio
    async def test_large_and_undecodable_files_are_skipped(self, express_codebase: Path) -> None:
        (express_codebase / "src" / "huge.js").write_text("const express = require('express');\n" * 100)
        (express_codebase / "src" / "binary.js").write_bytes(b"\xff\xfe\x00require('express')")

        usage = await UsageScanner(ScannerConfig(max_file_bytes=500)).scan(express_codebase, "express")

        assert usage.files_skipped == 2
        assert "src/huge.js" not in usage.critical_paths
        assert "src/binary.js" not in usage.critical_paths
