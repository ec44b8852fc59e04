"""SQLite persistent tier.

One database file holds every namespace ("audio", "images"), each exposed
as its own AssetRepository with its own capacity, plus the saved voice and
provider selection.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from ..models import CacheEntry

logger = logging.getLogger(__name__)


class AssetDatabase:
    """SQLite database shared by all asset namespaces.

    Each operation opens its own connection in WAL mode so concurrent
    readers and the eviction sweep do not block each other.
    """

    def __init__(self, path: Path):
        """Initialize the database file and schema.

        Args:
            path: Location of the SQLite file; parent directories are created
        """
        self.path = path
        path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def connect(self) -> sqlite3.Connection:
        """Get a new database connection with WAL mode for concurrency."""
        conn = sqlite3.connect(
            str(self.path),
            timeout=30.0,  # 30 second timeout if locked
            check_same_thread=False,  # used from asyncio.to_thread workers
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA busy_timeout=30000")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _init_db(self) -> None:
        """Initialize database schema with tables and indexes."""
        conn = self.connect()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    namespace TEXT NOT NULL,
                    key TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    last_used_at TEXT NOT NULL,
                    use_seq INTEGER NOT NULL,
                    PRIMARY KEY (namespace, key)
                )
            """)
            # Eviction walks entries oldest-first within a namespace
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_entries_recency
                ON entries(namespace, use_seq)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS preferences (
                    name TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def repository(self, namespace: str, capacity: int) -> "AssetRepository":
        return AssetRepository(self, namespace, capacity)

    def get_preference(self, name: str) -> str | None:
        conn = self.connect()
        try:
            row = conn.execute(
                "SELECT value FROM preferences WHERE name = ?", (name,)
            ).fetchone()
        finally:
            conn.close()
        return row["value"] if row is not None else None

    def set_preference(self, name: str, value: str) -> None:
        """Store a user preference (e.g. the selected voice) across restarts."""
        conn = self.connect()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO preferences (name, value) VALUES (?, ?)",
                (name, value),
            )
            conn.commit()
        finally:
            conn.close()


class AssetRepository:
    """Persistent tier for one namespace.

    Recency is tracked with ``use_seq``, a per-namespace counter bumped on
    every insert and read, so eviction order is exact even when two writes
    share a timestamp. ``last_used_at`` is kept for display.
    """

    def __init__(self, database: AssetDatabase, namespace: str, capacity: int):
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.database = database
        self.namespace = namespace
        self.capacity = capacity

    def get(self, key: str) -> CacheEntry | None:
        """Read an entry and mark it as most recently used."""
        conn = self.database.connect()
        try:
            row = conn.execute(
                "SELECT key, payload FROM entries WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            ).fetchone()
            if row is None:
                return None

            now = self._mark_used(conn, key)
            conn.commit()
        finally:
            conn.close()

        return CacheEntry(key=row["key"], payload=row["payload"], last_used_at=now)

    def touch(self, key: str) -> bool:
        """Mark an entry as most recently used without reading its payload.

        Returns:
            True if the entry exists
        """
        conn = self.database.connect()
        try:
            found = self._mark_used(conn, key) is not None
            conn.commit()
            return found
        finally:
            conn.close()

    def _mark_used(self, conn: sqlite3.Connection, key: str) -> datetime | None:
        now = datetime.now()
        cursor = conn.execute(
            """
            UPDATE entries
            SET last_used_at = ?,
                use_seq = (SELECT MAX(use_seq) + 1 FROM entries WHERE namespace = ?)
            WHERE namespace = ? AND key = ?
        """,
            (now.isoformat(), self.namespace, self.namespace, key),
        )
        return now if cursor.rowcount == 1 else None

    def put(self, entry: CacheEntry) -> bool:
        """Insert an entry. Existing keys are left untouched.

        Returns:
            True if a new row was written

        Raises:
            sqlite3.Error: If the write fails (e.g. disk full)
        """
        conn = self.database.connect()
        try:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO entries (namespace, key, payload, last_used_at, use_seq)
                VALUES (?, ?, ?, ?,
                        (SELECT COALESCE(MAX(use_seq), 0) + 1 FROM entries WHERE namespace = ?))
            """,
                (
                    self.namespace,
                    entry.key,
                    entry.payload,
                    entry.last_used_at.isoformat(),
                    self.namespace,
                ),
            )
            conn.commit()
            return cursor.rowcount == 1
        finally:
            conn.close()

    def delete(self, key: str) -> bool:
        conn = self.database.connect()
        try:
            cursor = conn.execute(
                "DELETE FROM entries WHERE namespace = ? AND key = ?",
                (self.namespace, key),
            )
            conn.commit()
            return cursor.rowcount > 0
        finally:
            conn.close()

    def evict(self) -> list[str]:
        """Delete the least recently used entries beyond capacity.

        Returns:
            Keys that were removed, oldest first
        """
        conn = self.database.connect()
        try:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM entries WHERE namespace = ?",
                (self.namespace,),
            ).fetchone()
            excess = count - self.capacity
            if excess <= 0:
                return []

            rows = conn.execute(
                """
                SELECT key FROM entries WHERE namespace = ?
                ORDER BY use_seq ASC LIMIT ?
            """,
                (self.namespace, excess),
            ).fetchall()
            victims = [row["key"] for row in rows]
            conn.executemany(
                "DELETE FROM entries WHERE namespace = ? AND key = ?",
                [(self.namespace, key) for key in victims],
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug(
            f"Evicted {len(victims)} '{self.namespace}' entries over capacity {self.capacity}"
        )
        return victims

    def count(self) -> int:
        conn = self.database.connect()
        try:
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM entries WHERE namespace = ?",
                (self.namespace,),
            ).fetchone()
        finally:
            conn.close()
        return count

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        conn = self.database.connect()
        try:
            rows = conn.execute(
                "SELECT key FROM entries WHERE namespace = ? ORDER BY use_seq ASC",
                (self.namespace,),
            ).fetchall()
        finally:
            conn.close()
        return [row["key"] for row in rows]

    def clear(self) -> int:
        conn = self.database.connect()
        try:
            cursor = conn.execute(
                "DELETE FROM entries WHERE namespace = ?", (self.namespace,)
            )
            conn.commit()
            return cursor.rowcount
        finally:
            conn.close()
