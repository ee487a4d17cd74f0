"""
In-memory response cache for crawl requests.

Entries are never evicted on expiry: a stale entry is still the first
fallback when a fresh crawl fails.
"""

from datetime import datetime, timedelta
from typing import Dict, Generic, Iterable, Optional, Tuple, TypeVar

from pydantic import BaseModel

from .models import utcnow

T = TypeVar("T")

CacheKey = Tuple[str, ...]


class CacheEntry(BaseModel, Generic[T]):
    value: T
    inserted_at: datetime


def is_stale(entry: CacheEntry, ttl: float, now: Optional[datetime] = None) -> bool:
    """True once ``entry`` is older than ``ttl`` seconds."""
    now = now or utcnow()
    return now - entry.inserted_at > timedelta(seconds=ttl)


def cache_key(source_ids: Iterable[str]) -> CacheKey:
    return tuple(sorted(s.lower() for s in source_ids))


class ResponseCache(Generic[T]):
    def __init__(self, ttl: float = 300.0, clock=utcnow):
        self.ttl = ttl
        self.clock = clock
        self._entries: Dict[CacheKey, CacheEntry] = {}

    def put(self, key: CacheKey, value: T) -> CacheEntry:
        entry = CacheEntry(value=value, inserted_at=self.clock())
        self._entries[key] = entry
        return entry

    def get(self, key: CacheKey) -> Optional[CacheEntry]:
        """The entry for ``key``, fresh or stale."""
        return self._entries.get(key)

    def get_fresh(self, key: CacheKey) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None or is_stale(entry, self.ttl, self.clock()):
            return None
        return entry

    def clear(self) -> None:
        self._entries.clear()
