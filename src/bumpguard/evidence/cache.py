"""SQLite caching layer for evidence strategy results."""

import sqlite3
import time
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from bumpguard.core.models import StrategyResult
from bumpguard.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "bumpguard"
DEFAULT_CACHE_FILE = "evidence.db"
DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60


class EvidenceCache:
    """SQLite-based cache for strategy results.

    Entries are keyed by (package name, from version, to version, source
    name). The cache is write-through and purely an optimisation: a miss
    or an unreadable row simply means the strategy runs again.
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        """Initialize the evidence cache.

        Args:
            cache_dir: Directory for cache database.
            ttl_seconds: Time-to-live for cached entries in seconds.
        """
        self.cache_dir = cache_dir or DEFAULT_CACHE_DIR
        self.ttl_seconds = ttl_seconds
        self.db_path = self.cache_dir / DEFAULT_CACHE_FILE
        self._connection: sqlite3.Connection | None = None

        self._ensure_cache_dir()
        self._init_database()

    def _ensure_cache_dir(self) -> None:
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def _init_database(self) -> None:
        """Initialize the database schema."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS strategy_results (
                package_name TEXT NOT NULL,
                from_version TEXT NOT NULL,
                to_version TEXT NOT NULL,
                source_name TEXT NOT NULL,
                data TEXT NOT NULL,
                cached_at INTEGER NOT NULL,
                expires_at INTEGER NOT NULL,
                PRIMARY KEY (package_name, from_version, to_version, source_name)
            )
        """)

        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_strategy_expires
            ON strategy_results(expires_at)
        """)

        conn.commit()

    def get(
        self,
        package_name: str,
        from_version: str,
        to_version: str,
        source_name: str,
    ) -> StrategyResult | None:
        """Get a cached strategy result.

        Returns:
            Cached result or None if not found, expired or unreadable.
        """
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute(
            """
            SELECT data FROM strategy_results
            WHERE package_name = ? AND from_version = ? AND to_version = ?
            AND source_name = ? AND expires_at > ?
            """,
            (package_name, from_version, to_version, source_name, int(time.time())),
        )

        row = cursor.fetchone()
        if not row:
            return None

        try:
            return StrategyResult.model_validate_json(row["data"])
        except ValidationError as e:
            logger.warning(
                "Discarding unreadable cache entry for %s (%s): %s",
                package_name,
                source_name,
                e,
            )
            self.delete(package_name, from_version, to_version, source_name)
            return None

    def set(
        self,
        package_name: str,
        from_version: str,
        to_version: str,
        result: StrategyResult,
    ) -> None:
        """Store a strategy result under its source name."""
        conn = self._get_connection()
        cursor = conn.cursor()

        now = int(time.time())
        cursor.execute(
            """
            INSERT OR REPLACE INTO strategy_results
            (package_name, from_version, to_version, source_name, data, cached_at, expires_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                package_name,
                from_version,
                to_version,
                result.source_name,
                result.model_dump_json(),
                now,
                now + self.ttl_seconds,
            ),
        )
        conn.commit()

    def delete(
        self,
        package_name: str,
        from_version: str,
        to_version: str,
        source_name: str,
    ) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            DELETE FROM strategy_results
            WHERE package_name = ? AND from_version = ? AND to_version = ? AND source_name = ?
            """,
            (package_name, from_version, to_version, source_name),
        )
        conn.commit()

    def prune_expired(self) -> int:
        """Remove expired entries from cache.

        Returns:
            Number of entries removed.
        """
        conn = self._get_connection()
        cursor = conn.cursor()
        cursor.execute("DELETE FROM strategy_results WHERE expires_at <= ?", (int(time.time()),))
        removed = cursor.rowcount
        conn.commit()

        if removed > 0:
            logger.debug("Cleared %d expired evidence cache entries", removed)
        return removed

    def clear(self) -> None:
        """Clear all cache entries."""
        conn = self._get_connection()
        conn.execute("DELETE FROM strategy_results")
        conn.commit()
        logger.debug("Cleared all evidence cache entries")

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        conn = self._get_connection()
        cursor = conn.cursor()

        cursor.execute("SELECT COUNT(*) AS total FROM strategy_results")
        total = cursor.fetchone()["total"]
        cursor.execute(
            "SELECT COUNT(*) AS valid FROM strategy_results WHERE expires_at > ?",
            (int(time.time()),),
        )
        valid = cursor.fetchone()["valid"]

        return {
            "total_entries": total,
            "valid_entries": valid,
            "expired_entries": total - valid,
            "db_path": str(self.db_path),
            "ttl_seconds": self.ttl_seconds,
        }

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
