"""Tests for the evidence cache."""

import time
from pathlib import Path

import pytest

from bumpguard.core.models import StrategyResult
from bumpguard.evidence.cache import EvidenceCache


class TestEvidenceCache:
    """Tests for EvidenceCache."""

    @pytest.fixture
    def cache(self, temp_dir: Path) -> EvidenceCache:
        """Create a cache instance with temp directory."""
        return EvidenceCache(cache_dir=temp_dir, ttl_seconds=3600)

    @pytest.fixture
    def sample_result(self) -> StrategyResult:
        """Create a sample strategy result."""
        return StrategyResult(
            content="## v5.0.0\n\n- Removed app.del()",
            breaking_change_lines=["- Removed app.del()"],
            confidence=0.9,
            source_name="GitHub Releases",
            metadata={"release_count": 1, "repository": "expressjs/express"},
        )

    def test_set_and_get(self, cache: EvidenceCache, sample_result: StrategyResult) -> None:
        """Test storing and retrieving a result."""
        cache.set("express", "4.0.0", "5.0.0", sample_result)

        retrieved = cache.get("express", "4.0.0", "5.0.0", "GitHub Releases")
        assert retrieved == sample_result

    def test_key_includes_source_and_versions(self, cache: EvidenceCache, sample_result: StrategyResult) -> None:
        """Test that each key component separates entries."""
        cache.set("express", "4.0.0", "5.0.0", sample_result)

        assert cache.get("express", "4.0.0", "5.0.0", "Changelog File") is None
        assert cache.get("express", "4.0.0", "5.0.1", "GitHub Releases") is None
        assert cache.get("koa", "4.0.0", "5.0.0", "GitHub Releases") is None

    def test_expired_entries_are_misses(self, temp_dir: Path, sample_result: StrategyResult) -> None:
        """Test that an expired entry is not returned and can be pruned."""
        cache = EvidenceCache(cache_dir=temp_dir, ttl_seconds=-1)
        cache.set("express", "4.0.0", "5.0.0", sample_result)

        assert cache.get("express", "4.0.0", "5.0.0", "GitHub Releases") is None
        assert cache.prune_expired() == 1
        assert cache.get_stats()["total_entries"] == 0

    def test_unreadable_entry_is_discarded(self, cache: EvidenceCache) -> None:
        """Test that a corrupt row reads as a miss and is removed."""
        now = int(time.time())
        conn = cache._get_connection()
        conn.execute(
            "INSERT INTO strategy_results VALUES (?, ?, ?, ?, ?, ?, ?)",
            ("express", "4.0.0", "5.0.0", "GitHub Releases", "{not json", now, now + 3600),
        )
        conn.commit()

        assert cache.get("express", "4.0.0", "5.0.0", "GitHub Releases") is None
        assert cache.get_stats()["total_entries"] == 0

    def test_clear(self, cache: EvidenceCache, sample_result: StrategyResult) -> None:
        """Test clearing all cache entries."""
        cache.set("express", "4.0.0", "5.0.0", sample_result)
        cache.clear()

        assert cache.get("express", "4.0.0", "5.0.0", "GitHub Releases") is None

    def test_get_stats(self, cache: EvidenceCache, sample_result: StrategyResult) -> None:
        """Test getting cache statistics."""
        cache.set("express", "4.0.0", "5.0.0", sample_result)

        stats = cache.get_stats()
        assert stats["total_entries"] == 1
        assert stats["valid_entries"] == 1
        assert stats["expired_entries"] == 0
        assert stats["ttl_seconds"] == 3600

    def test_persists_across_instances(self, temp_dir: Path, sample_result: StrategyResult) -> None:
        """Test that entries survive reopening the database."""
        first = EvidenceCache(cache_dir=temp_dir)
        first.set("express", "4.0.0", "5.0.0", sample_result)
        first.close()

        second = EvidenceCache(cache_dir=temp_dir)
        assert second.get("express", "4.0.0", "5.0.0", "GitHub Releases") == sample_result
        second.close()
