"""Tiered asset storage for tsumu."""

from dataclasses import dataclass
from pathlib import Path

from ..config import TsumuConfig
from ..models import AssetKind
from .memory import MemoryTier
from .persistent import AssetDatabase, AssetRepository
from .tiered import StoreStats, TieredStore

__all__ = [
    "AssetDatabase",
    "AssetRepository",
    "AssetStores",
    "MemoryTier",
    "StoreStats",
    "TieredStore",
    "open_stores",
]


@dataclass(frozen=True)
class AssetStores:
    """The audio and image stores, sharing one database."""

    audio: TieredStore
    images: TieredStore

    @property
    def database(self) -> AssetDatabase:
        return self.audio.repository.database

    def for_kind(self, kind: AssetKind) -> TieredStore:
        return self.audio if kind is AssetKind.AUDIO else self.images


def open_stores(config: TsumuConfig, path: Path | None = None) -> AssetStores:
    """Open the shared database and build both namespaced stores.

    Args:
        config: Capacities are taken from the audio and images sections
        path: Override for the database location

    Returns:
        AssetStores with "audio" and "images" namespaces
    """
    database = AssetDatabase(path or config.store.path)
    return AssetStores(
        audio=TieredStore(
            database.repository(
                AssetKind.AUDIO.value, config.audio.persistent_capacity
            ),
            memory_capacity=config.audio.memory_capacity,
        ),
        images=TieredStore(
            database.repository(
                AssetKind.IMAGE.value, config.images.persistent_capacity
            ),
            memory_capacity=config.images.memory_capacity,
        ),
    )
