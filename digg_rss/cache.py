"""
Response cache with a pluggable backend.

The gateway and the TL;DR fetcher only see ``CacheBackend``; the in-memory
implementation is the default and doubles as the test fake.
"""
from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

from digg_rss.storage.types import CacheEntry

logger = logging.getLogger(__name__)


class CacheBackend(ABC):
    """Abstract cache backend interface"""

    @abstractmethod
    async def get(self, key: str) -> Optional[CacheEntry]:
        """Get a fresh entry by key, or None"""

    @abstractmethod
    async def put(self, key: str, entry: CacheEntry, ttl: int) -> None:
        """Store entry for ttl seconds"""


class MemoryCache(CacheBackend):
    """Process-local TTL cache"""

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 2048):
        self._entries: Dict[str, Tuple[float, CacheEntry]] = {}
        self._clock = clock
        self._max_entries = max_entries

    def _is_expired(self, expires_at: float) -> bool:
        return self._clock() >= expires_at

    async def get(self, key: str) -> Optional[CacheEntry]:
        hit = self._entries.get(key)
        if hit is None:
            return None
        expires_at, entry = hit
        if self._is_expired(expires_at):
            del self._entries[key]
            return None
        return entry

    async def put(self, key: str, entry: CacheEntry, ttl: int) -> None:
        if ttl <= 0:
            return
        if key not in self._entries and len(self._entries) >= self._max_entries:
            self._evict()
        self._entries[key] = (self._clock() + ttl, entry)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, (exp, _) in self._entries.items() if now >= exp]
        for k in expired:
            del self._entries[k]
        if len(self._entries) >= self._max_entries:
            # Oldest insertion goes first.
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("cache full, evicted %s", oldest)

    def __len__(self) -> int:
        return len(self._entries)
