"""
Query cache for content fetches.

Responsibilities:
- Serve fresh entries straight from memory without calling the fetch function.
- Serve stale entries immediately and refresh them with a background task (stale-while-revalidate).
- Share one in-flight fetch between concurrent callers of the same key.
- Retry failed fetches a bounded number of times with exponential backoff (tenacity),
  each attempt bounded by a timeout, then raise FetchFailure.
- Invalidate by key prefix (entries are marked stale, not deleted) and drop entries left
  unused past their gc time.

The cache is created once at application start-up and closed at shutdown; it is handed to
services explicitly rather than living in a module global.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Literal, Optional, Set

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

from services.exceptions import FetchFailure
from services.query_keys import CacheKey, key_has_prefix, make_key

logger = logging.getLogger("query_cache")

FetchFn = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    retries: int = 2
    base_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float = 20.0

    def wait_strategy(self) -> wait_exponential:
        """Backoff before retry n (n >= 1): base * 2**(n - 1), capped at max_delay."""
        return wait_exponential(multiplier=self.base_delay, max=self.max_delay)


@dataclass(frozen=True)
class CacheOptions:
    stale_time: float = 60.0
    gc_time: float = 300.0
    # How an explicitly invalidated entry is refreshed on the next get
    revalidate: Literal["background", "blocking"] = "background"


@dataclass
class CacheEntry:
    key: CacheKey
    data: Any
    fetched_at: float
    stale_after: float
    gc_after: float
    last_accessed: float
    invalidated: bool = False

    def is_stale(self, now: float) -> bool:
        return self.invalidated or now - self.fetched_at >= self.stale_after

    def is_expired(self, now: float) -> bool:
        return now - self.last_accessed >= self.gc_after


@dataclass
class CacheStats:
    hits: int = 0
    stale_hits: int = 0
    misses: int = 0
    fetches: int = 0
    failures: int = 0
    evictions: int = 0
    invalidations: int = 0


def _as_key(key: Iterable[Any]) -> CacheKey:
    if isinstance(key, str):
        return make_key(key)
    return make_key(*key)


class QueryCache:
    def __init__(
        self,
        retry_policy: Optional[RetryPolicy] = None,
        default_options: Optional[CacheOptions] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.retry_policy = retry_policy or RetryPolicy()
        self.default_options = default_options or CacheOptions()
        self._clock = clock
        self._sleep = sleep
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._in_flight: Dict[CacheKey, asyncio.Task] = {}
        self._invalidated_in_flight: Set[CacheKey] = set()
        self._background: Set[asyncio.Task] = set()
        self._stats = CacheStats()
        self._closed = False

    # ------------------------------------------------------------------ reads

    async def get(self, key: Iterable[Any], fetch_fn: FetchFn, options: Optional[CacheOptions] = None) -> Any:
        """Return the cached value for `key`, fetching it when absent and refreshing it when stale."""
        if self._closed:
            raise RuntimeError("query cache is closed")
        cache_key = _as_key(key)
        opts = options or self.default_options
        now = self._clock()
        self.collect_garbage(now)

        entry = self._entries.get(cache_key)
        if entry is not None:
            entry.last_accessed = now
            if not entry.is_stale(now):
                self._stats.hits += 1
                return entry.data

            self._stats.stale_hits += 1
            if entry.invalidated and opts.revalidate == "blocking":
                return await self._await_fetch(cache_key, fetch_fn, opts)
            self._revalidate_in_background(cache_key, fetch_fn, opts)
            return entry.data

        self._stats.misses += 1
        return await self._await_fetch(cache_key, fetch_fn, opts)

    def get_cached(self, key: Iterable[Any]) -> Optional[Any]:
        """Cached value for `key` regardless of staleness, without fetching."""
        entry = self._entries.get(_as_key(key))
        return entry.data if entry is not None else None

    def get_entry(self, key: Iterable[Any]) -> Optional[CacheEntry]:
        return self._entries.get(_as_key(key))

    async def prefetch(self, key: Iterable[Any], fetch_fn: FetchFn, options: Optional[CacheOptions] = None) -> None:
        """Warm the cache for `key`. Failures are logged, never raised."""
        try:
            await self.get(key, fetch_fn, options)
        except FetchFailure as e:
            logger.info("prefetch_failed", extra={"cache_key": repr(e.key), "attempts": e.attempts, "error": str(e.last_error)})
        except Exception as e:
            logger.warning("prefetch_error", extra={"cache_key": repr(key), "error": str(e), "error_type": type(e).__name__})

    def schedule_prefetch(self, key: Iterable[Any], fetch_fn: FetchFn, options: Optional[CacheOptions] = None) -> Optional[asyncio.Task]:
        """Fire-and-forget prefetch; the task is tracked so close() can cancel it."""
        if self._closed:
            return None
        task = asyncio.ensure_future(self.prefetch(key, fetch_fn, options))
        self._track(task)
        return task

    # ------------------------------------------------------------- mutations

    def invalidate(self, key_prefix: Iterable[Any]) -> int:
        """Mark every entry under `key_prefix` stale. Returns the number of entries marked."""
        prefix = _as_key(key_prefix)
        matched = 0
        for cache_key, entry in self._entries.items():
            if key_has_prefix(cache_key, prefix):
                entry.invalidated = True
                matched += 1
        # A fetch already running may return data older than the invalidation
        for cache_key in self._in_flight:
            if key_has_prefix(cache_key, prefix):
                self._invalidated_in_flight.add(cache_key)
        self._stats.invalidations += matched
        logger.info("cache_invalidated", extra={"prefix": repr(prefix), "matched": matched})
        return matched

    def remove(self, key_prefix: Iterable[Any]) -> int:
        """Delete every entry under `key_prefix`."""
        prefix = _as_key(key_prefix)
        doomed = [k for k in self._entries if key_has_prefix(k, prefix)]
        for cache_key in doomed:
            del self._entries[cache_key]
        return len(doomed)

    def collect_garbage(self, now: Optional[float] = None) -> int:
        """Evict entries unused for longer than their gc time."""
        current = self._clock() if now is None else now
        expired = [
            k for k, entry in self._entries.items()
            if entry.is_expired(current) and k not in self._in_flight
        ]
        for cache_key in expired:
            del self._entries[cache_key]
        self._stats.evictions += len(expired)
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "hits": self._stats.hits,
            "stale_hits": self._stats.stale_hits,
            "misses": self._stats.misses,
            "fetches": self._stats.fetches,
            "failures": self._stats.failures,
            "evictions": self._stats.evictions,
            "invalidations": self._stats.invalidations,
            "entries": len(self._entries),
            "in_flight": len(self._in_flight),
        }

    def keys(self) -> List[CacheKey]:
        return list(self._entries)

    async def close(self) -> None:
        """Cancel background work. Called once at application shutdown."""
        self._closed = True
        pending = list(self._background) + list(self._in_flight.values())
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._background.clear()
        self._in_flight.clear()
        self._entries.clear()

    # -------------------------------------------------------------- internals

    def _start_fetch(self, cache_key: CacheKey, fetch_fn: FetchFn, options: CacheOptions) -> asyncio.Task:
        task = self._in_flight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_store(cache_key, fetch_fn, options))
            self._in_flight[cache_key] = task
            task.add_done_callback(lambda t, k=cache_key: self._clear_in_flight(k, t))
        return task

    async def _await_fetch(self, cache_key: CacheKey, fetch_fn: FetchFn, options: CacheOptions) -> Any:
        task = self._start_fetch(cache_key, fetch_fn, options)
        # One caller going away must not cancel the fetch other callers share
        return await asyncio.shield(task)

    def _revalidate_in_background(self, cache_key: CacheKey, fetch_fn: FetchFn, options: CacheOptions) -> None:
        if self._closed or cache_key in self._in_flight:
            return
        self._track(self._start_fetch(cache_key, fetch_fn, options))

    def _clear_in_flight(self, cache_key: CacheKey, task: asyncio.Task) -> None:
        if self._in_flight.get(cache_key) is task:
            del self._in_flight[cache_key]

    def _track(self, task: asyncio.Task) -> None:
        self._background.add(task)
        task.add_done_callback(self._on_background_done)

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("background_revalidation_failed", extra={"error": str(error), "error_type": type(error).__name__})

    async def _fetch_and_store(self, cache_key: CacheKey, fetch_fn: FetchFn, options: CacheOptions) -> Any:
        data = await self._fetch_with_retry(cache_key, fetch_fn)
        now = self._clock()
        self._entries[cache_key] = CacheEntry(
            key=cache_key,
            data=data,
            fetched_at=now,
            stale_after=options.stale_time,
            gc_after=options.gc_time,
            last_accessed=now,
            invalidated=cache_key in self._invalidated_in_flight,
        )
        self._invalidated_in_flight.discard(cache_key)
        return data

    def _log_retry(self, cache_key: CacheKey) -> Callable[[RetryCallState], None]:
        def _before_sleep(retry_state: RetryCallState) -> None:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning("fetch_retry", extra={
                "cache_key": repr(cache_key),
                "attempt": retry_state.attempt_number,
                "error": str(error),
                "error_type": type(error).__name__,
            })
        return _before_sleep

    async def _fetch_with_retry(self, cache_key: CacheKey, fetch_fn: FetchFn) -> Any:
        policy = self.retry_policy
        attempts = 0
        result: Any = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(policy.retries + 1),
                wait=policy.wait_strategy(),
                sleep=self._sleep,
                before_sleep=self._log_retry(cache_key),
                reraise=True,
            ):
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    self._stats.fetches += 1
                    result = await asyncio.wait_for(fetch_fn(), timeout=policy.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.failures += 1
            self._invalidated_in_flight.discard(cache_key)
            logger.error("fetch_failed", extra={
                "cache_key": repr(cache_key),
                "attempts": attempts,
                "error": str(e),
                "error_type": type(e).__name__,
            })
            raise FetchFailure(cache_key, attempts, e) from e
        return result
