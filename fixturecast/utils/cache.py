"""Keyed TTL cache for upstream API payloads.

Each entry keeps the payload and the time it was stored. Expired entries are
not evicted on read, so callers can still fall back to them after the
upstream call fails:

    _cache = TTLCache()

    # Fresh read (respects TTL)
    hit, data = _cache.get(key, ttl=3600)
    if hit:
        return data

    # Write
    _cache.set(key, payload)

    # Stale read (ignores TTL)
    hit, data = _cache.get_stale(key)

    # Invalidate everything
    _cache.clear()
"""

import json
import time


def make_cache_key(endpoint: str, params: dict | None = None) -> str:
    """Build a cache key from endpoint + params (params order-insensitive)."""
    return f"{endpoint}-{json.dumps(params or {}, sort_keys=True, default=str)}"


class CacheEntry:
    """Single cached payload with its store timestamp."""

    __slots__ = ("data", "timestamp")

    def __init__(self, data: object, timestamp: float):
        self.data = data
        self.timestamp = timestamp

    def age(self, now: float | None = None) -> float:
        return (now if now is not None else time.time()) - self.timestamp


class TTLCache:
    """Process-lifetime map of key -> CacheEntry."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str, *, ttl: float) -> tuple[bool, object]:
        """Return (hit, data) when the entry exists and is younger than ttl."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if entry.age() >= ttl:
            return False, None
        return True, entry.data

    def get_stale(self, key: str) -> tuple[bool, object]:
        """Return (hit, data) regardless of age."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        return True, entry.data

    def set(self, key: str, data: object) -> None:
        self._entries[key] = CacheEntry(data, time.time())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
