"""
Dashboard Aggregation - Single-Flight Cache.

============================================================
PURPOSE
============================================================
Keyed in-memory cache for expensive project aggregates.

- Fresh hits return the stored payload object
- Concurrent misses on a key share ONE computation
- A failed computation propagates to every waiter and
  leaves any previous value in place
- invalidate() bumps a per-key generation so computations
  already in flight never store a stale result

============================================================
USAGE
============================================================
    cache = SingleFlightCache(ttl_seconds=300)

    payload = await cache.get_or_compute(
        f"dashboard:{project_id}",
        lambda: build_dashboard(project_id),
    )

    cache.invalidate(f"dashboard:{project_id}")

============================================================
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from core.clock import ClockProtocol
from core.settings import get_settings


logger = logging.getLogger(__name__)


_EPOCH = datetime(1970, 1, 1)

Factory = Callable[[], Union[Any, Awaitable[Any]]]


@dataclass
class _Entry:
    value: Any
    stored_at: float


class SingleFlightCache:
    """Async TTL cache with per-key in-flight deduplication."""

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        clock: Optional[ClockProtocol] = None,
    ):
        """
        Args:
            ttl_seconds: Entry lifetime; defaults to DASHBOARD_CACHE_TTL_SECONDS
            clock: Time source for expiry; monotonic time when omitted
        """
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().cache_ttl_seconds
        self._clock = clock

        self._entries: Dict[str, _Entry] = {}
        self._in_flight: Dict[str, asyncio.Future] = {}
        self._generations: Dict[str, int] = {}

        self._hits = 0
        self._misses = 0
        self._computations = 0

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    def _now(self) -> float:
        if self._clock is None:
            return time.monotonic()
        return (self._clock.now() - _EPOCH).total_seconds()

    def _is_fresh(self, entry: _Entry) -> bool:
        return self._now() - entry.stored_at < self._ttl

    def _release(self, key: str, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]

    # =========================================================
    # READ
    # =========================================================

    def peek(self, key: str) -> Optional[Any]:
        """Stored value for key, fresh or not, without computing."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    async def get_or_compute(self, key: str, factory: Factory) -> Any:
        """
        Return the cached value for key, computing it on a miss.

        factory may be a plain callable or return an awaitable.
        Callers arriving while a computation for the same key is
        running await that computation instead of starting another.
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            self._hits += 1
            logger.debug(f"Cache hit: {key}")
            return entry.value

        self._misses += 1
        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug(f"Cache miss joined in-flight computation: {key}")
            return await asyncio.shield(pending)

        logger.debug(f"Cache miss: {key}")
        generation = self._generations.get(key, 0)
        future = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        self._computations += 1

        try:
            value = factory()
            if inspect.isawaitable(value):
                value = await value
        except asyncio.CancelledError:
            self._release(key, future)
            future.cancel()
            raise
        except Exception as e:
            self._release(key, future)
            future.set_exception(e)
            # Mark retrieved so a computation without waiters is not reported
            future.exception()
            raise

        if self._generations.get(key, 0) == generation:
            self._entries[key] = _Entry(value=value, stored_at=self._now())
        else:
            logger.debug(f"Discarded result invalidated during computation: {key}")

        self._release(key, future)
        future.set_result(value)
        return value

    # =========================================================
    # INVALIDATION
    # =========================================================

    def invalidate(self, prefix: Optional[str] = None) -> int:
        """
        Drop every key starting with prefix (all keys when None).

        In-flight computations for matching keys still resolve for
        their waiters but their results are not stored.

        Returns:
            Number of stored entries removed
        """
        keys = set(self._entries) | set(self._in_flight)
        if prefix is not None:
            keys = {key for key in keys if key.startswith(prefix)}

        removed = 0
        for key in keys:
            self._generations[key] = self._generations.get(key, 0) + 1
            self._in_flight.pop(key, None)
            if self._entries.pop(key, None) is not None:
                removed += 1

        if keys:
            logger.debug(f"Invalidated {removed} cache entries (prefix={prefix!r})")
        return removed

    def stats(self) -> Dict[str, int]:
        return {
            "hits": self._hits,
            "misses": self._misses,
            "computations": self._computations,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
        }
