"""
Client-side cache for customer lists with background refresh.

Each cache key (a list query) moves through these states:

    EMPTY -> FRESH -> STALE_BUT_SERVING -> REFRESHING -> FRESH ...
                   \\-> EXPIRED -> (blocking fetch) -> FRESH

- age < refresh_ratio * window: served from memory, no fetch
- refresh_ratio * window <= age < window: served from memory and exactly one
  background refresh is started for the key
- age >= window, or no value: the read blocks on a fetch; concurrent blocking
  readers share it

invalidate() bumps the key's generation. A fetch stores its result only if
the generation it captured at start is still current, so a slow refresh that
finishes after an explicit write cannot overwrite newer data.

The clock is injectable; tests drive it by hand instead of sleeping.
"""

from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Set, TypeVar

from customer_api.client.errors import FetchTimeoutError, UpstreamUnavailableError
from customer_api.core.logging import get_logger

__all__ = ["CacheState", "CustomerListCache"]

log = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class CacheState(str, enum.Enum):
    EMPTY = "empty"
    FRESH = "fresh"
    STALE_BUT_SERVING = "stale_but_serving"
    REFRESHING = "refreshing"
    EXPIRED = "expired"


@dataclass
class _Entry:
    value: Any = None
    fetched_at: Optional[float] = None
    generation: int = 0
    task: Optional[asyncio.Task] = None

    @property
    def has_value(self) -> bool:
        return self.fetched_at is not None


class CustomerListCache(Generic[K, V]):
    """
    In-memory cache of fetch results keyed by list query.

    Args:
        fetch: coroutine function loading the value for a key
        freshness_seconds: window after which a value is expired
        refresh_ratio: fraction of the window after which reads trigger a
            background refresh
        clock: monotonic seconds source
        fetch_timeout: optional bound applied around each fetch
    """

    def __init__(
        self,
        fetch: Callable[[K], Awaitable[V]],
        *,
        freshness_seconds: float = 300.0,
        refresh_ratio: float = 0.8,
        clock: Callable[[], float] = time.monotonic,
        fetch_timeout: Optional[float] = None,
    ) -> None:
        if freshness_seconds <= 0:
            raise ValueError("freshness_seconds must be positive")
        if not 0 < refresh_ratio <= 1:
            raise ValueError("refresh_ratio must be in (0, 1]")
        self._fetch = fetch
        self.freshness_seconds = float(freshness_seconds)
        self.refresh_after = float(freshness_seconds) * float(refresh_ratio)
        self._clock = clock
        self.fetch_timeout = fetch_timeout
        self._entries: Dict[K, _Entry] = {}
        self._tasks: Set[asyncio.Task] = set()

    # -------------------------------
    # Introspection
    # -------------------------------

    def _age(self, entry: _Entry) -> float:
        return self._clock() - entry.fetched_at  # type: ignore[operator]

    def state(self, key: K) -> CacheState:
        entry = self._entries.get(key)
        if entry is None:
            return CacheState.EMPTY
        in_flight = entry.task is not None and not entry.task.done()
        if not entry.has_value:
            return CacheState.REFRESHING if in_flight else CacheState.EMPTY
        age = self._age(entry)
        if age >= self.freshness_seconds:
            return CacheState.EXPIRED
        if in_flight:
            return CacheState.REFRESHING
        if age >= self.refresh_after:
            return CacheState.STALE_BUT_SERVING
        return CacheState.FRESH

    def generation(self, key: K) -> int:
        entry = self._entries.get(key)
        return entry.generation if entry is not None else 0

    def peek(self, key: K) -> Optional[V]:
        """Last stored value for key regardless of age (None if empty)."""
        entry = self._entries.get(key)
        return entry.value if entry is not None and entry.has_value else None

    # -------------------------------
    # Reads
    # -------------------------------

    async def get(self, key: K) -> V:
        """
        Return the value for key, fetching when empty or expired.

        A failed blocking fetch falls back to the last-known-good value when
        there is one; with nothing cached the error propagates.
        """
        entry = self._entries.setdefault(key, _Entry())

        if entry.has_value:
            age = self._age(entry)
            if age < self.freshness_seconds:
                if age >= self.refresh_after and entry.task is None:
                    self._start_fetch(key, entry)
                    log.debug("customer list refresh scheduled", extra={"cache_key": str(key), "age": age})
                return entry.value

        task = entry.task if entry.task is not None else self._start_fetch(key, entry)
        try:
            return await asyncio.shield(task)
        except UpstreamUnavailableError as exc:
            if entry.has_value:
                log.warning(
                    "customer list fetch failed, serving last known value",
                    extra={"cache_key": str(key), "error": str(exc)},
                )
                return entry.value
            raise

    def prefetch(self, key: K) -> Optional[asyncio.Task]:
        """
        Start a background fetch ahead of the first read (view mount).

        No-op while the key is fresh or a fetch is already in flight.
        """
        entry = self._entries.setdefault(key, _Entry())
        if entry.task is not None:
            return entry.task
        if entry.has_value and self._age(entry) < self.refresh_after:
            return None
        log.debug("customer list prefetch", extra={"cache_key": str(key)})
        return self._start_fetch(key, entry)

    # -------------------------------
    # Invalidation
    # -------------------------------

    def invalidate(self, key: Optional[K] = None) -> None:
        """
        Drop the value for key (every key when None) and bump its generation.
        In-flight fetches keep running but their results are discarded.
        """
        keys = [key] if key is not None else list(self._entries)
        for k in keys:
            entry = self._entries.setdefault(k, _Entry())
            entry.generation += 1
            entry.value = None
            entry.fetched_at = None
            entry.task = None
        log.debug("customer list cache invalidated", extra={"keys": [str(k) for k in keys]})

    # -------------------------------
    # Task management
    # -------------------------------

    async def drain(self) -> None:
        """Wait for every in-flight fetch, including ones already superseded."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel in-flight fetches."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _start_fetch(self, key: K, entry: _Entry) -> asyncio.Task:
        generation = entry.generation
        task = asyncio.get_running_loop().create_task(self._fetch_and_store(key, generation))
        entry.task = task
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(key, t))
        return task

    async def _call_fetch(self, key: K) -> V:
        try:
            if self.fetch_timeout is None:
                return await self._fetch(key)
            return await asyncio.wait_for(self._fetch(key), self.fetch_timeout)
        except asyncio.TimeoutError as exc:
            raise FetchTimeoutError(f"customer list fetch timed out after {self.fetch_timeout}s") from exc

    async def _fetch_and_store(self, key: K, generation: int) -> V:
        value = await self._call_fetch(key)
        entry = self._entries.get(key)
        if entry is None or entry.generation != generation:
            log.info(
                "discarding customer list fetched before invalidation",
                extra={"cache_key": str(key), "fetched_generation": generation},
            )
            return value
        entry.value = value
        entry.fetched_at = self._clock()
        return value

    def _on_done(self, key: K, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        entry = self._entries.get(key)
        if entry is not None and entry.task is task:
            entry.task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.warning(
                "customer list fetch failed",
                extra={"cache_key": str(key), "error": str(exc), "error_type": type(exc).__name__},
            )
