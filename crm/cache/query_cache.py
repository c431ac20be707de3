"""
Process-local query cache.

Entries are keyed by tuples such as ``("clients", "ACTIVE")`` and hold the
last value a fetcher returned. Reads are served from memory while fresh;
once stale the cached value is still returned immediately and a background
fetch refreshes it (stale-while-revalidate). Entries nobody observes are
dropped after ``gc_time`` seconds of inactivity.

Everything runs on one event loop. Reads and writes are synchronous with
respect to each other; only fetches await. A fetch that completes writes its
result unconditionally, so when several fetches for one key overlap the one
that completes last wins. A fetch started on behalf of observers that have
all unmounted by the time it completes is discarded.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Iterable, Optional


logger = logging.getLogger(__name__)

QueryKey = tuple
Fetcher = Callable[[], Awaitable[Any]]
Listener = Callable[["QueryResult"], None]


class QueryStatus(str, Enum):
    """What a view should render."""
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class QueryResult:
    """
    Snapshot of one cache entry.
    
    A failed refetch keeps the last good ``data`` next to the ``error`` so
    views can keep showing it.
    """
    status: QueryStatus
    data: Any = None
    error: Optional[BaseException] = None
    is_fetching: bool = False
    
    @property
    def is_loading(self) -> bool:
        return self.status is QueryStatus.LOADING
    
    @property
    def is_success(self) -> bool:
        return self.status is QueryStatus.SUCCESS
    
    @property
    def is_error(self) -> bool:
        return self.status is QueryStatus.ERROR


@dataclass
class CacheEntry:
    key: QueryKey
    data: Any = None
    has_data: bool = False
    error: Optional[BaseException] = None
    updated_at: Optional[float] = None
    invalidated: bool = False
    last_used: float = 0.0
    fetcher: Optional[Fetcher] = None
    fetches: set = field(default_factory=set)
    
    def is_stale(self, now: float, stale_time: float) -> bool:
        if not self.has_data or self.invalidated or self.updated_at is None:
            return True
        return now - self.updated_at >= stale_time
    
    def result(self) -> QueryResult:
        if self.error is not None:
            status = QueryStatus.ERROR
        elif self.has_data:
            status = QueryStatus.SUCCESS
        else:
            status = QueryStatus.LOADING
        return QueryResult(
            status=status,
            data=self.data,
            error=self.error,
            is_fetching=bool(self.fetches),
        )


@dataclass(frozen=True)
class _Outcome:
    data: Any = None
    error: Optional[BaseException] = None


@dataclass(eq=False)
class _InFlight:
    """One running fetch and the callers waiting on it."""
    task: Optional[asyncio.Task] = None
    requesters: set = field(default_factory=set)
    unconditional: bool = False
    
    def join(self, requesters: Iterable["QueryObserver"]) -> None:
        requesters = set(requesters)
        if requesters:
            self.requesters.update(requesters)
        else:
            # An imperative caller always wants the result cached
            self.unconditional = True
    
    def wanted(self) -> bool:
        return self.unconditional or any(o.mounted for o in self.requesters)


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[:len(prefix)] == prefix


class QueryCache:
    """
    Keyed read-through cache with explicit invalidation.
    
    Args:
        clock: Monotonic time source in seconds
        stale_time: Default age after which an entry is refreshed on access
        gc_time: Idle time after which an unobserved entry is dropped
    """
    
    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        stale_time: float = 0.0,
        gc_time: float = 600.0,
    ):
        self._clock = clock
        self.stale_time = stale_time
        self.gc_time = gc_time
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._observers: dict[QueryKey, set["QueryObserver"]] = {}
        self._tasks: set[asyncio.Task] = set()
    
    # Inspection
    
    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries
    
    def keys(self) -> list[QueryKey]:
        return list(self._entries)
    
    def find_entries(self, prefix: QueryKey) -> list[CacheEntry]:
        """Entries whose key starts with ``prefix``."""
        return [entry for key, entry in self._entries.items() if _matches(key, prefix)]
    
    def get_query_data(self, key: QueryKey) -> Any:
        """Cached value for ``key`` or None. Never fetches."""
        self.collect_garbage()
        entry = self._entries.get(key)
        if entry is None or not entry.has_data:
            return None
        entry.last_used = self._clock()
        return entry.data
    
    def get_fresh_query_data(self, key: QueryKey, stale_time: Optional[float] = None) -> Any:
        """Like get_query_data, but None once the entry is stale or invalidated."""
        self.collect_garbage()
        entry = self._entries.get(key)
        now = self._clock()
        stale_time = self.stale_time if stale_time is None else stale_time
        if entry is None or entry.is_stale(now, stale_time):
            return None
        entry.last_used = now
        return entry.data
    
    def get_query_result(self, key: QueryKey) -> QueryResult:
        entry = self._entries.get(key)
        if entry is None:
            return QueryResult(status=QueryStatus.LOADING)
        return entry.result()
    
    # Writes
    
    def _entry(self, key: QueryKey) -> CacheEntry:
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key=key, last_used=self._clock())
        return entry
    
    def _write(self, entry: CacheEntry, data: Any) -> None:
        now = self._clock()
        entry.data = data
        entry.has_data = True
        entry.error = None
        entry.invalidated = False
        entry.updated_at = now
        entry.last_used = now
        self._notify(entry.key)
    
    def set_query_data(self, key: QueryKey, value: Any) -> Any:
        """
        Write a value, or apply ``value(current)`` when given a callable.
        An updater returning None leaves the entry untouched.
        """
        self.collect_garbage()
        if callable(value):
            current = self._entries.get(key)
            value = value(current.data if current and current.has_data else None)
            if value is None:
                return None
        self._write(self._entry(key), value)
        return value
    
    def invalidate_queries(self, prefix: QueryKey) -> None:
        """
        Mark matching entries stale. Entries with mounted observers are
        refreshed in the background right away, others on next access.
        """
        for entry in self.find_entries(prefix):
            entry.invalidated = True
            observers = self._mounted(entry.key)
            if observers and not entry.fetches:
                fetcher = next(iter(observers)).fetcher
                self._start_fetch(entry, fetcher, observers)
    
    def remove_queries(self, prefix: QueryKey) -> None:
        """Drop matching entries; the next access fetches from scratch."""
        for entry in self.find_entries(prefix):
            del self._entries[entry.key]
            logger.debug(f"Removed cache entry {entry.key}")
            self._notify(entry.key)
    
    def collect_garbage(self) -> None:
        """Drop entries with no observer and no fetch idle longer than gc_time."""
        now = self._clock()
        for key, entry in list(self._entries.items()):
            if self._observers.get(key) or entry.fetches:
                continue
            if now - entry.last_used >= self.gc_time:
                del self._entries[key]
                logger.debug(f"Garbage collected cache entry {key}")
    
    # Fetching
    
    def _start_fetch(
        self,
        entry: CacheEntry,
        fetcher: Fetcher,
        requesters: Iterable["QueryObserver"] = (),
    ) -> _InFlight:
        entry.fetcher = fetcher
        inflight = _InFlight()
        inflight.join(requesters)
        inflight.task = asyncio.get_running_loop().create_task(
            self._run_fetch(entry, fetcher, inflight)
        )
        entry.fetches.add(inflight)
        self._tasks.add(inflight.task)
        inflight.task.add_done_callback(self._tasks.discard)
        return inflight
    
    async def _run_fetch(
        self,
        entry: CacheEntry,
        fetcher: Fetcher,
        inflight: _InFlight,
    ) -> _Outcome:
        try:
            outcome = _Outcome(data=await fetcher())
        except Exception as exc:
            outcome = _Outcome(error=exc)
        finally:
            entry.fetches.discard(inflight)
        
        if not inflight.wanted():
            logger.debug(f"Discarded result for {entry.key}: no mounted observer left")
        elif self._entries.get(entry.key) is not entry:
            logger.debug(f"Discarded result for {entry.key}: entry was removed")
        elif outcome.error is not None:
            logger.warning(f"Fetch for {entry.key} failed: {outcome.error!r}")
            entry.error = outcome.error
            self._notify(entry.key)
        else:
            self._write(entry, outcome.data)
        return outcome
    
    async def _ensure(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        stale_time: Optional[float],
        requesters: Iterable["QueryObserver"] = (),
    ) -> _Outcome:
        self.collect_garbage()
        entry = self._entry(key)
        now = self._clock()
        entry.last_used = now
        stale_time = self.stale_time if stale_time is None else stale_time
        
        if not entry.is_stale(now, stale_time):
            logger.debug(f"Cache hit for {key}")
            return _Outcome(data=entry.data)
        
        inflight = next(iter(entry.fetches), None)
        if entry.has_data:
            # Serve what we have, refresh behind the caller's back
            if inflight is None:
                logger.debug(f"Revalidating stale entry {key}")
                self._start_fetch(entry, fetcher, requesters)
            else:
                inflight.join(requesters)
            return _Outcome(data=entry.data)
        
        logger.debug(f"Cache miss for {key}")
        if inflight is None:
            inflight = self._start_fetch(entry, fetcher, requesters)
        else:
            inflight.join(requesters)
        return await inflight.task
    
    async def fetch_query(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        stale_time: Optional[float] = None,
    ) -> Any:
        """
        Read through the cache.
        
        Returns the cached value when present (refreshing it in the
        background if stale), otherwise waits for ``fetcher``. Concurrent
        misses for one key share a single fetch.
        
        Raises:
            Exception: whatever the fetcher raised, when nothing was cached
        """
        outcome = await self._ensure(key, fetcher, stale_time)
        if outcome.error is not None:
            raise outcome.error
        return outcome.data
    
    async def refetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """Always issue a new fetch and wait for it."""
        outcome = await self._start_fetch(self._entry(key), fetcher).task
        if outcome.error is not None:
            raise outcome.error
        return outcome.data
    
    async def settle(self) -> None:
        """Wait until no fetch is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
    
    # Observers
    
    def _mounted(self, key: QueryKey) -> set["QueryObserver"]:
        return {o for o in self._observers.get(key, ()) if o.mounted}
    
    def _attach(self, observer: "QueryObserver") -> None:
        self._observers.setdefault(observer.key, set()).add(observer)
    
    def _detach(self, observer: "QueryObserver") -> None:
        observers = self._observers.get(observer.key)
        if observers is not None:
            observers.discard(observer)
            if not observers:
                del self._observers[observer.key]
        entry = self._entries.get(observer.key)
        if entry is not None:
            entry.last_used = self._clock()
    
    def _notify(self, key: QueryKey) -> None:
        result = self.get_query_result(key)
        for observer in list(self._observers.get(key, ())):
            observer._deliver(result)
    
    def observe(
        self,
        key: QueryKey,
        fetcher: Fetcher,
        stale_time: Optional[float] = None,
        listener: Optional[Listener] = None,
    ) -> "QueryObserver":
        return QueryObserver(self, key, fetcher, stale_time, listener)


class QueryObserver:
    """
    A mounted view's subscription to one key.
    
    While mounted the entry is never garbage collected and the listener
    receives every new result.
    """
    
    def __init__(
        self,
        cache: QueryCache,
        key: QueryKey,
        fetcher: Fetcher,
        stale_time: Optional[float] = None,
        listener: Optional[Listener] = None,
    ):
        self.cache = cache
        self.key = key
        self.fetcher = fetcher
        self.stale_time = stale_time
        self.listener = listener
        self.mounted = False
    
    @property
    def result(self) -> QueryResult:
        return self.cache.get_query_result(self.key)
    
    async def mount(self) -> QueryResult:
        """Subscribe and load the entry if needed."""
        self.mounted = True
        self.cache._attach(self)
        await self.cache._ensure(self.key, self.fetcher, self.stale_time, {self})
        return self.result
    
    def unmount(self) -> None:
        """Unsubscribe. Results of fetches only this observer asked for are discarded."""
        self.mounted = False
        self.cache._detach(self)
    
    async def refetch(self) -> QueryResult:
        entry = self.cache._entry(self.key)
        await self.cache._start_fetch(entry, self.fetcher, {self}).task
        return self.result
    
    def _deliver(self, result: QueryResult) -> None:
        if self.mounted and self.listener is not None:
            self.listener(result)
