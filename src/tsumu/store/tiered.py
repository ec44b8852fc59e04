"""Two-tier asset store: memory LRU in front of a SQLite repository."""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass

from ..models import CacheEntry
from .memory import MemoryTier
from .persistent import AssetRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreStats:
    """Entry counts and capacities for one namespace."""

    namespace: str
    memory_entries: int
    memory_capacity: int | None
    persistent_entries: int
    persistent_capacity: int


class TieredStore:
    """Key -> payload store for one asset namespace.

    Reads check memory first and promote persistent hits into memory.
    Writes go to both tiers; a failing persistent write degrades to
    memory-only caching for the rest of the session instead of raising.

    Example:
        store = TieredStore(database.repository("audio", 200), memory_capacity=50)

        payload = await store.get("google:Aoede|こんにちは")
        if payload is None:
            payload = await pipeline.fetch(request)
            await store.set(request.key, payload)
    """

    def __init__(
        self, repository: AssetRepository, memory_capacity: int | None = None
    ) -> None:
        self.repository = repository
        self.memory = MemoryTier(memory_capacity)

    @property
    def namespace(self) -> str:
        return self.repository.namespace

    async def get(self, key: str) -> str | None:
        """Look up a payload, memory first.

        Returns:
            Payload text, or None on a miss in both tiers
        """
        payload = self.memory.get(key)
        if payload is not None:
            logger.debug(f"[{self.namespace}] memory hit: '{key[:50]}'")
            await self._touch(key)
            return payload

        try:
            entry = await asyncio.to_thread(self.repository.get, key)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"[{self.namespace}] persistent read failed for '{key[:50]}': {e}")
            return None

        if entry is None:
            logger.debug(f"[{self.namespace}] miss: '{key[:50]}'")
            return None

        logger.debug(f"[{self.namespace}] persistent hit, promoting: '{key[:50]}'")
        self.memory.put(key, entry.payload)
        return entry.payload

    async def set(self, key: str, payload: str) -> None:
        """Write a payload to both tiers and sweep the persistent tier.

        Never raises for storage failures; they are logged and the entry
        stays available from memory.
        """
        self.memory.put(key, payload)

        try:
            written = await asyncio.to_thread(
                self.repository.put, CacheEntry(key=key, payload=payload)
            )
        except (sqlite3.Error, OSError) as e:
            logger.warning(
                f"[{self.namespace}] persistent write failed for '{key[:50]}', "
                f"serving from memory only: {e}"
            )
            return

        if written:
            await self._evict()

    async def delete(self, key: str) -> None:
        """Remove a key from both tiers."""
        self.memory.delete(key)
        try:
            await asyncio.to_thread(self.repository.delete, key)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"[{self.namespace}] persistent delete failed for '{key[:50]}': {e}")

    async def clear(self) -> None:
        self.memory.clear()
        removed = await asyncio.to_thread(self.repository.clear)
        logger.info(f"[{self.namespace}] cleared {removed} persistent entries")

    async def stats(self) -> StoreStats:
        count = await asyncio.to_thread(self.repository.count)
        return StoreStats(
            namespace=self.namespace,
            memory_entries=len(self.memory),
            memory_capacity=self.memory.capacity,
            persistent_entries=count,
            persistent_capacity=self.repository.capacity,
        )

    async def _touch(self, key: str) -> None:
        """Refresh persistent recency for a key served from memory."""
        try:
            await asyncio.to_thread(self.repository.touch, key)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"[{self.namespace}] recency update failed for '{key[:50]}': {e}")

    async def _evict(self) -> None:
        """Best-effort LRU sweep of the persistent tier."""
        try:
            evicted = await asyncio.to_thread(self.repository.evict)
        except (sqlite3.Error, OSError) as e:
            logger.warning(f"[{self.namespace}] eviction sweep failed: {e}")
            return

        # Keep memory a subset of what the persistent tier still holds
        for key in evicted:
            self.memory.delete(key)
