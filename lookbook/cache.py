"""
Client-side entity cache.

Slots:
  • Single-entity slots — PostKey(post_id), UserProfileKey(user_id)
  • List slots          — PostListKey(query), held in an explicit registry
                          keyed by the normalized PostListQuery so callers
                          can visit every cached list without knowing which
                          filters were used to build them.

Values are frozen pydantic models; get/set are plain reference swaps and
run to completion without suspending, so no coroutine ever observes a
half-patched slot.

invalidate(key) marks a slot stale and, when a fetcher is registered for
the key type, schedules a background refetch on the running loop. The
refetch overwrites the slot with the authoritative value; if it fails the
slot keeps its current value and stays stale.

fetch(key) is the read path: a fresh entry is returned as is, a missing or
stale one (invalidated, or older than stale_time) is loaded through the
registered fetcher first.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional

from lookbook.config import settings
from lookbook.schemas import (
    CachedValue,
    CacheKey,
    PostListKey,
    PostListQuery,
    PostPage,
)
from lookbook.telemetry import CACHE_REFETCH_TOTAL

logger = logging.getLogger(__name__)

Fetcher = Callable[[CacheKey], Awaitable[CachedValue]]
ListSlotVisitor = Callable[[PostListKey, PostPage], None]


@dataclass
class CacheEntry:
    value: CachedValue
    updated_at: float
    stale: bool = False


class EntityCache:
    def __init__(self, stale_time: Optional[float] = None) -> None:
        self.stale_time = settings.cache_stale_time_seconds if stale_time is None else stale_time
        self._entities: dict[CacheKey, CacheEntry] = {}
        self._lists: dict[PostListQuery, CacheEntry] = {}
        self._fetchers: dict[type, Fetcher] = {}
        self._refetches: dict[CacheKey, asyncio.Task] = {}

    # ───────────────────────── Slot access ────────────────────────────────

    def _entry(self, key: CacheKey) -> Optional[CacheEntry]:
        if isinstance(key, PostListKey):
            return self._lists.get(key.query)
        return self._entities.get(key)

    def get(self, key: CacheKey) -> Optional[CachedValue]:
        entry = self._entry(key)
        return entry.value if entry else None

    def set(self, key: CacheKey, value: CachedValue) -> None:
        entry = CacheEntry(value=value, updated_at=time.monotonic())
        if isinstance(key, PostListKey):
            self._lists[key.query] = entry
        else:
            self._entities[key] = entry

    def remove(self, key: CacheKey) -> None:
        self.cancel_refetch(key)
        if isinstance(key, PostListKey):
            self._lists.pop(key.query, None)
        else:
            self._entities.pop(key, None)

    def keys(self) -> Iterator[CacheKey]:
        yield from self._entities
        for query in self._lists:
            yield PostListKey(query=query)

    def is_stale(self, key: CacheKey) -> bool:
        entry = self._entry(key)
        if entry is None:
            return True
        return entry.stale or (time.monotonic() - entry.updated_at) > self.stale_time

    def for_each_list_slot(self, visitor: ListSlotVisitor) -> None:
        """Call visitor(key, page) for every cached post list, in insertion order."""
        for query, entry in list(self._lists.items()):
            visitor(PostListKey(query=query), entry.value)

    # ───────────────────────── Refetching ─────────────────────────────────

    def register_fetcher(self, key_type: type, fetcher: Fetcher) -> None:
        self._fetchers[key_type] = fetcher

    async def fetch(self, key: CacheKey) -> CachedValue:
        """Return the cached value, loading it first when missing or stale."""
        entry = self._entry(key)
        if entry is not None and not self.is_stale(key):
            return entry.value

        fetcher = self._fetchers.get(type(key))
        if fetcher is None:
            raise LookupError(f"No fetcher registered for {type(key).__name__}")

        # A direct load supersedes any background refetch of the same slot
        self.cancel_refetch(key)
        value = await fetcher(key)
        self.set(key, value)
        CACHE_REFETCH_TOTAL.labels(kind=type(key).__name__, outcome="loaded").inc()
        return value

    def invalidate(self, key: CacheKey) -> None:
        entry = self._entry(key)
        if entry is None:
            return  # nothing cached, nothing to refresh
        entry.stale = True

        fetcher = self._fetchers.get(type(key))
        if fetcher is None:
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop — %s marked stale without refetch", key)
            return

        # A newer invalidation supersedes any refetch already in flight
        self.cancel_refetch(key)
        self._refetches[key] = loop.create_task(self._refetch(key, fetcher))

    def cancel_refetch(self, key: CacheKey) -> None:
        task = self._refetches.pop(key, None)
        if task is not None and not task.done():
            task.cancel()

    async def _refetch(self, key: CacheKey, fetcher: Fetcher) -> None:
        kind = type(key).__name__
        try:
            value = await fetcher(key)
        except asyncio.CancelledError:
            CACHE_REFETCH_TOTAL.labels(kind=kind, outcome="cancelled").inc()
            raise
        except Exception as exc:
            CACHE_REFETCH_TOTAL.labels(kind=kind, outcome="error").inc()
            logger.warning("Refetch of %s failed: %s — keeping stale value", key, exc)
        else:
            if self._entry(key) is not None:
                self.set(key, value)
            CACHE_REFETCH_TOTAL.labels(kind=kind, outcome="ok").inc()
        finally:
            if self._refetches.get(key) is asyncio.current_task():
                del self._refetches[key]

    def pending_refetches(self) -> int:
        return sum(1 for t in self._refetches.values() if not t.done())

    async def drain(self) -> None:
        """Wait until every scheduled refetch has finished."""
        while True:
            pending = [t for t in self._refetches.values() if not t.done()]
            if not pending:
                self._refetches.clear()
                return
            await asyncio.gather(*pending, return_exceptions=True)
