"""In-process response cache for local development and tests."""

import json
import logging
import time
from typing import Any, Callable, Optional

from library_insights.domain.repositories import IResponseCache

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1024


class InMemoryResponseCache(IResponseCache):
    """Dict-backed TTL cache.

    Values are stored serialized, so a hit returns a fresh copy equal to what
    a Redis round-trip would produce.  Expired entries are purged on every
    write, and the oldest entries are evicted beyond ``max_entries``.
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self._clock = clock
        self.max_entries = max_entries
        self._entries: dict[str, tuple[float, str]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, body = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return json.loads(body)

    async def set(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        try:
            body = json.dumps(value, ensure_ascii=False)
        except TypeError as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
            return
        now = self._clock()
        self._purge_expired(now)
        # Re-inserting moves the key to the end of the eviction order
        self._entries.pop(key, None)
        self._entries[key] = (now + ttl_seconds, body)
        while len(self._entries) > self.max_entries:
            del self._entries[next(iter(self._entries))]

    def _purge_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
