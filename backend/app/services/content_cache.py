"""
SubText Backend — Content Cache
=================================

What:  Remembers extraction results per (identity, image content) pair.
Why:   Re-uploading the same screenshot should not cost another vision call
       or another unit of monthly usage.
How:   Plain dict keyed by "{identity}_{sha256(image)}". Python dicts keep
       insertion order, which gives FIFO eviction for free: after an insert
       pushes the size past `max_entries`, the first key is removed.

Semantics:
    - An entry is valid while now - stored_at < ttl_seconds.
    - Expired entries are not removed eagerly; they miss on get() and are
      eventually pushed out by eviction.
    - Overwriting an existing key refreshes its value and timestamp but keeps
      its original position in the eviction order.
    - Only successful extractions are stored (no negative caching).
"""

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    text: str
    stored_at: float


class ContentCache:
    def __init__(
        self,
        ttl_seconds: float = 3600,
        max_entries: int = 100,
        clock: Callable[[], float] = time.time,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @staticmethod
    def make_key(identity: str, content: bytes) -> str:
        """Build the cache key for an upload. Same bytes + same user → same key."""
        digest = hashlib.sha256(content).hexdigest()
        return f"{identity}_{digest}"

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.stored_at >= self.ttl_seconds:
            return None
        return entry.text

    def put(self, key: str, text: str) -> None:
        existing = self._entries.get(key)
        if existing is not None:
            existing.text = text
            existing.stored_at = self._clock()
            return

        self._entries[key] = CacheEntry(text=text, stored_at=self._clock())
        if len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("Content cache full, evicted oldest entry")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
