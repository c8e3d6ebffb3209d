"""Simple cache abstractions."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Protocol

from field_reporting.services.clock import Clock, utc_now


class Cache(Protocol):
    """Cache interface for configuration snapshots."""

    def get(self, key: str) -> object | None:
        """Return a cached value if present and not expired."""

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a cached value with a TTL in seconds."""

    def delete(self, key: str) -> None:
        """Drop a cached value."""


@dataclass
class _CacheEntry:
    value: object
    expires_at: datetime


@dataclass
class InMemoryCache(Cache):
    """In-memory TTL cache driven by an injectable clock."""

    clock: Clock = field(default=utc_now)
    _entries: dict[str, _CacheEntry] = field(default_factory=dict)

    def get(self, key: str) -> object | None:
        """Return a cached value if it hasn't expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() >= entry.expires_at:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: object, ttl_seconds: int) -> None:
        """Store a cached value with a TTL."""
        if ttl_seconds <= 0:
            return
        expires_at = self.clock() + timedelta(seconds=ttl_seconds)
        self._entries[key] = _CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        """Drop a cached value if present."""
        self._entries.pop(key, None)
