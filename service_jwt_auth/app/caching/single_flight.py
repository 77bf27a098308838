"""
Get-or-load cache with single-flight de-duplication of backing loads.
"""

import asyncio
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float]


class SingleFlightCache:
    """
    In-process cache where concurrent callers asking for the same missing key
    share one load.

    Loaded values, including ``None`` (not found), are kept until they are
    invalidated or their TTL runs out. ``ttl`` applies to found values and
    ``negative_ttl`` to ``None``; either may be None for no expiry. Found
    and not-found entries are held in separate stores bounded by
    ``maxsize`` and ``negative_maxsize``; when a store is full its oldest
    entry is evicted. Load errors are handed to every waiting caller and
    are never cached.
    """

    def __init__(
        self,
        *,
        ttl: Optional[float] = None,
        negative_ttl: Optional[float] = None,
        maxsize: Optional[int] = None,
        negative_maxsize: Optional[int] = None,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.negative_ttl = negative_ttl
        self.maxsize = maxsize
        self.negative_maxsize = negative_maxsize
        self.metrics = metrics
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._negative: "OrderedDict[str, _Entry]" = OrderedDict()
        self._inflight: Dict[str, "asyncio.Future[Any]"] = {}
        self.logger = get_logger("jwt_auth.cache")

    def __len__(self) -> int:
        return len(self._entries) + len(self._negative)

    def peek(self, key: str) -> Optional[_Entry]:
        """Return the live entry for ``key`` without loading."""
        for store in (self._entries, self._negative):
            entry = store.get(key)
            if entry is None:
                continue
            if entry.expires_at is not None and entry.expires_at <= self._clock():
                del store[key]
                return None
            return entry
        return None

    async def get(self, key: str, loader: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        """Return the cached value for ``key``, calling ``loader(*args)`` on a miss."""
        entry = self.peek(key)
        if entry is not None:
            return entry.value

        load = self._inflight.get(key)
        if load is None:
            load = asyncio.ensure_future(self._load(key, loader, *args))
            self._inflight[key] = load
        # shield: a cancelled caller must not cancel the shared load
        return await asyncio.shield(load)

    async def _load(self, key: str, loader: Callable[..., Awaitable[Any]], *args: Any) -> Any:
        try:
            value = await loader(*args)
        except Exception:
            self._record_load(key, "error")
            raise
        finally:
            self._inflight.pop(key, None)
        self._put(key, value)
        self._record_load(key, "hit" if value is not None else "miss")
        return value

    def invalidate(self, key: str) -> bool:
        """Drop ``key``; returns whether an entry was present."""
        removed = self._entries.pop(key, None) is not None
        removed = self._negative.pop(key, None) is not None or removed
        if removed:
            self.logger.debug("Cache entry invalidated", key=key)
        return removed

    def invalidate_all(self) -> int:
        count = len(self)
        self._entries.clear()
        self._negative.clear()
        self.logger.info("Cache cleared", entries=count)
        return count

    def _put(self, key: str, value: Any) -> None:
        self._entries.pop(key, None)
        self._negative.pop(key, None)
        if value is None:
            store, ttl, maxsize = self._negative, self.negative_ttl, self.negative_maxsize
        else:
            store, ttl, maxsize = self._entries, self.ttl, self.maxsize

        now = self._clock()
        self._sweep(store, now)
        store[key] = _Entry(value=value, expires_at=None if ttl is None else now + ttl)
        if maxsize is not None:
            while len(store) > maxsize:
                store.popitem(last=False)

    @staticmethod
    def _sweep(store: "OrderedDict[str, _Entry]", now: float) -> None:
        # Every entry of a store shares one TTL, so insertion order is expiry order.
        while store:
            oldest = next(iter(store.values()))
            if oldest.expires_at is None or oldest.expires_at > now:
                return
            store.popitem(last=False)

    def _record_load(self, key: str, result: str) -> None:
        namespace = key.split(":", 1)[0]
        self.logger.debug("Cache load", namespace=namespace, result=result)
        if self.metrics:
            self.metrics.increment_counter(
                "credential_cache_loads_total",
                namespace=namespace,
                result=result,
            )
