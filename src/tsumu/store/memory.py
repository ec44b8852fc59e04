"""In-process LRU tier."""

from collections import OrderedDict


class MemoryTier:
    """Bounded key -> payload map with least-recently-used eviction.

    Fast but lost when the process exits. A capacity of None means the
    tier is only bounded by the persistent tier behind it.
    """

    def __init__(self, capacity: int | None = None) -> None:
        if capacity is not None and capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str) -> str | None:
        payload = self._entries.get(key)
        if payload is not None:
            self._entries.move_to_end(key)
        return payload

    def put(self, key: str, payload: str) -> list[str]:
        """Insert a payload, returning the keys evicted to make room."""
        if key in self._entries:
            self._entries.move_to_end(key)
            return []
        evicted = []
        while self.capacity is not None and len(self._entries) >= self.capacity:
            old_key, _ = self._entries.popitem(last=False)
            evicted.append(old_key)
        self._entries[key] = payload
        return evicted

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def keys(self) -> list[str]:
        """Keys from least to most recently used."""
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
