"""
Cache-aside manager with TTL expiry and single-flight fetches.
"""

import asyncio
import functools
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, TYPE_CHECKING

from shared.logging import get_logger
from .entry import CacheEntry
from .keys import CacheExpiry, CacheKey, KeyLike, composite_key
from .stores import KeyValueStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

T = TypeVar("T")


class CacheManager:
    """
    Read-through cache over a persistent key-value store.

    - Entries are JSON envelopes with their own TTL; staleness is checked
      lazily on read and stale entries are simply ignored until overwritten.
    - Concurrent ``get_or_fetch`` calls for the same composite key share one
      upstream fetch.
    - Every store failure degrades to a miss or a skipped write. Only the
      caller's fetch function can raise out of ``get_or_fetch``.

    The in-flight registry is plain loop-local state: the check and the
    registration in ``get_or_fetch`` run without an intervening ``await``,
    so an instance must only be used from a single event loop.
    """

    def __init__(
        self,
        store: KeyValueStore,
        default_ttl: float = CacheExpiry.DEFAULT,
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.default_ttl = default_ttl
        self.metrics = metrics
        self.logger = get_logger("rooms.cache_manager")
        self._clock = clock
        self._in_flight: Dict[str, "asyncio.Task[Any]"] = {}
        self._stats = {
            "hits": 0,
            "misses": 0,
            "coalesced": 0,
            "refreshes": 0,
            "fetch_errors": 0,
            "store_errors": 0,
        }

    async def get(self, key: KeyLike, scope: Optional[str] = None) -> Optional[Any]:
        """Return the cached payload, or ``None`` when absent, stale or unreadable."""
        entry = await self._read_entry(composite_key(key, scope))
        if entry is None:
            return None
        return entry.payload

    async def set(
        self,
        key: KeyLike,
        payload: Any,
        scope: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> None:
        """Store ``payload`` under the composite key. Failures are logged, never raised."""
        cache_key = composite_key(key, scope)
        entry = CacheEntry(
            payload=payload,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        try:
            await self.store.write(cache_key, entry.dumps())
        except Exception as e:
            self._record_store_error("write", cache_key, e)
            return
        self.logger.debug("Cached payload", cache_key=cache_key, ttl=entry.ttl)

    async def invalidate(self, key: KeyLike, scope: Optional[str] = None) -> None:
        """Remove one entry. Removing an absent key is a no-op."""
        cache_key = composite_key(key, scope)
        try:
            await self.store.remove(cache_key)
        except Exception as e:
            self._record_store_error("remove", cache_key, e)
            return
        self.logger.info("Invalidated cache entry", cache_key=cache_key)

    async def invalidate_scope(self, scope: str) -> int:
        """
        Remove every entry whose composite key ends with ``_{scope}``.

        Returns:
            Number of entries removed. Enumeration failure returns 0 and
            individual removal failures are not counted.
        """
        if not scope:
            raise ValueError("scope must be a non-empty string")

        suffix = f"_{scope}"
        try:
            keys = await self.store.list_keys()
        except Exception as e:
            self._record_store_error("list_keys", suffix, e)
            return 0

        targets = [k for k in keys if k.endswith(suffix)]
        results = await asyncio.gather(
            *(self.store.remove(k) for k in targets),
            return_exceptions=True,
        )

        removed = 0
        for cache_key, outcome in zip(targets, results):
            if isinstance(outcome, Exception):
                self._record_store_error("remove", cache_key, outcome)
            else:
                removed += 1

        self.logger.info("Invalidated scope", scope=scope, removed=removed, matched=len(targets))
        return removed

    async def get_or_fetch(
        self,
        key: KeyLike,
        fetch_fn: Callable[[], Awaitable[T]],
        scope: Optional[str] = None,
        ttl: Optional[float] = None,
        force_refresh: bool = False,
    ) -> T:
        """
        Serve from cache, or fetch once and cache the result.

        Args:
            key: Logical cache key
            fetch_fn: Zero-argument coroutine function producing fresh data
            scope: Optional discriminator (usually a user id)
            ttl: Seconds the fetched result stays valid; defaults to ``default_ttl``
            force_refresh: Drop the current entry and skip the cache read

        Returns:
            The cached payload or the result of the (possibly shared) fetch.

        Raises:
            Exception: Whatever ``fetch_fn`` raised, unchanged. Failures are
                not cached.
        """
        cache_key = composite_key(key, scope)

        if force_refresh:
            await self.invalidate(key, scope)
            outcome = "refresh"
        else:
            entry = await self._read_entry(cache_key)
            if entry is not None:
                self._record_request(key, "hit")
                return entry.payload
            outcome = "miss"

        # No await between lookup and registration.
        task = self._in_flight.get(cache_key)
        if task is not None and not task.done():
            self._record_request(key, "coalesced")
            self.logger.debug("Joining in-flight fetch", cache_key=cache_key)
        else:
            self._record_request(key, outcome)
            self.logger.info(
                "Fetching upstream",
                cache_key=cache_key,
                reason=outcome,
            )
            task = self._start_fetch(key, cache_key, fetch_fn, scope, ttl)

        # Shielded so a cancelled waiter does not cancel the shared fetch.
        return await asyncio.shield(task)

    def in_flight_count(self) -> int:
        """Number of fetches currently outstanding."""
        return len(self._in_flight)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        lookups = self._stats["hits"] + self._stats["misses"]
        hit_rate = (self._stats["hits"] / lookups * 100) if lookups > 0 else 0
        return {
            **self._stats,
            "hit_rate_percent": round(hit_rate, 1),
            "in_flight": self.in_flight_count(),
            "in_flight_keys": list(self._in_flight.keys()),
        }

    def _start_fetch(
        self,
        key: KeyLike,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        scope: Optional[str],
        ttl: Optional[float],
    ) -> "asyncio.Task[T]":
        task = asyncio.create_task(self._fetch_and_store(key, cache_key, fetch_fn, scope, ttl))
        self._in_flight[cache_key] = task
        task.add_done_callback(functools.partial(self._settle, cache_key))
        return task

    async def _fetch_and_store(
        self,
        key: KeyLike,
        cache_key: str,
        fetch_fn: Callable[[], Awaitable[T]],
        scope: Optional[str],
        ttl: Optional[float],
    ) -> T:
        label = _metric_label(key)
        start = time.perf_counter()
        try:
            result = await fetch_fn()
        except Exception as e:
            self._stats["fetch_errors"] += 1
            if self.metrics:
                self.metrics.increment_counter("cache_fetch_errors_total", key=label)
            self.logger.warning("Fetch failed", cache_key=cache_key, error=str(e))
            raise
        finally:
            if self.metrics:
                self.metrics.observe_histogram(
                    "cache_fetch_duration_seconds",
                    time.perf_counter() - start,
                    key=label,
                )

        await self.set(key, result, scope, ttl)
        return result

    def _settle(self, cache_key: str, task: "asyncio.Task[Any]") -> None:
        """Done-callback: deregister the fetch however it ended."""
        if self._in_flight.get(cache_key) is task:
            del self._in_flight[cache_key]
        if not task.cancelled():
            # Waiters re-raise the error themselves; this only marks it retrieved
            # for the case where every waiter was cancelled.
            task.exception()

    async def _read_entry(self, cache_key: str) -> Optional[CacheEntry[Any]]:
        """Load a valid entry or return ``None``; never raises."""
        try:
            blob = await self.store.read(cache_key)
        except Exception as e:
            self._record_store_error("read", cache_key, e)
            return None

        if blob is None:
            return None

        try:
            entry = CacheEntry.loads(blob, self.default_ttl)
        except (ValueError, TypeError) as e:
            self._record_store_error("deserialize", cache_key, e)
            return None

        now = self._clock()
        if not entry.is_valid(now):
            self.logger.info("Cache entry expired", cache_key=cache_key, age=round(entry.age(now), 1))
            return None

        self.logger.debug("Cache hit", cache_key=cache_key, age=round(entry.age(now), 1))
        return entry

    def _record_request(self, key: KeyLike, result: str) -> None:
        stat = {"hit": "hits", "miss": "misses", "coalesced": "coalesced", "refresh": "refreshes"}[result]
        self._stats[stat] += 1
        if self.metrics:
            self.metrics.increment_counter("cache_requests_total", key=_metric_label(key), result=result)

    def _record_store_error(self, operation: str, cache_key: str, error: Exception) -> None:
        self._stats["store_errors"] += 1
        if self.metrics:
            self.metrics.increment_counter("cache_store_errors_total", operation=operation)
        self.logger.error(
            "Cache store error",
            operation=operation,
            cache_key=cache_key,
            error=str(error),
        )


def _metric_label(key: KeyLike) -> str:
    """Collapse derived keys onto their logical namespace for metric labels."""
    if isinstance(key, CacheKey):
        return key.value
    for candidate in CacheKey:
        if key.startswith(candidate.value):
            return candidate.value
    return "custom"
