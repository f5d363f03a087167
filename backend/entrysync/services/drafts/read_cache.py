"""
Cached read views (roster, confirmed records) keyed by tuples such as
``("attendance", course_id, session_date)``.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Tuple

logger = logging.getLogger(__name__)

ViewKey = Tuple[Any, ...]


class ReadCache:
    """TTL cache with prefix invalidation and de-duplicated concurrent fetches.

    Every key carries a generation that ``invalidate`` bumps. A fetch that
    started under an older generation still answers its own callers but is
    never stored, and later callers do not join it.

    Constructed explicitly and passed to whoever needs it; there is no shared
    module-level instance.
    """

    def __init__(self, ttl_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[ViewKey, Tuple[float, Any]] = {}
        self._inflight: Dict[ViewKey, asyncio.Future] = {}
        self._generations: Dict[ViewKey, int] = {}

    async def get_or_fetch(self, key: ViewKey, fetch: Callable[[], Awaitable[Any]]) -> Any:
        entry = self._entries.get(key)
        if entry is not None and self._clock() - entry[0] < self.ttl_seconds:
            return entry[1]

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        generation = self._generations.get(key, 0)
        future = asyncio.ensure_future(fetch())
        self._inflight[key] = future
        try:
            value = await asyncio.shield(future)
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

        if self._generations.get(key, 0) == generation:
            self._entries[key] = (self._clock(), value)
        else:
            logger.debug(f"Discarding view fetched before invalidation of {key}")
        return value

    def peek(self, key: ViewKey) -> Any:
        entry = self._entries.get(key)
        return entry[1] if entry is not None else None

    def invalidate(self, prefix: ViewKey) -> int:
        """Drop every entry and in-flight fetch whose key starts with ``prefix``."""
        stale = [key for key in self._entries if key[:len(prefix)] == prefix]
        for key in stale:
            del self._entries[key]

        for key in [key for key in self._inflight if key[:len(prefix)] == prefix]:
            del self._inflight[key]
            self._generations[key] = self._generations.get(key, 0) + 1

        if stale:
            logger.debug(f"Invalidated {len(stale)} cached views under {prefix}")
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()
        for key in list(self._inflight):
            self._generations[key] = self._generations.get(key, 0) + 1
        self._inflight.clear()
