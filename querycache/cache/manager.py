"""
Query Cache Manager.

Composes the entry store, eviction engine and statistics tracker into the
contract used by the query layer:
- get/set/has/delete keyed by (query, params)
- fill-on-miss through a caller-supplied fetch function
- TTL expiry and policy-driven eviction under capacity pressure
- invalidation by query-text pattern
- warm-up from a list of fetchable queries
- statistics export/import for continuity across instances

The manager caches whatever it is asked to. Deciding which queries are
safe to cache is the executor's job.
"""

import copy
import inspect
import logging
import threading
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Pattern,
    Sequence,
    Tuple,
    Union,
)

from querycache.cache.config import CacheConfig, EvictionPolicy
from querycache.cache.eviction import EVICTION_REASON_EXPIRED, EvictionEngine
from querycache.cache.statistics import CacheStatistics, StatisticsTracker
from querycache.cache.storage import CacheEntry, EntryStore, now_ms

logger = logging.getLogger(__name__)

Rows = List[Any]
FetchFn = Callable[[], Sequence[Any]]
AsyncFetchFn = Callable[[], Union[Awaitable[Sequence[Any]], Sequence[Any]]]


@dataclass
class WarmUpItem:
    """
    A query to pre-populate the cache with.

    Attributes:
        query: SQL query text
        params: Bind parameters
        fetch: Function producing the result rows
    """

    query: str
    params: Optional[Sequence[Any]] = None
    fetch: Optional[Callable[[], Any]] = None


def _as_warm_up_item(item: Union[WarmUpItem, Mapping[str, Any]]) -> WarmUpItem:
    if isinstance(item, WarmUpItem):
        return item
    return WarmUpItem(
        query=item["query"],
        params=item.get("params"),
        fetch=item.get("fetch") or item.get("loader"),
    )


def _discard_awaitable(awaitable: Any) -> None:
    """Close an awaitable that will never be awaited."""
    close = getattr(awaitable, "close", None)
    if close is not None:
        close()


class CacheManager:
    """
    In-memory cache of materialized query results.

    A single re-entrant lock covers the store and eviction engine so
    their shared invariants hold under threaded use. Fetch functions run
    outside the lock.
    """

    def __init__(self, config: Optional[CacheConfig] = None, **overrides: Any):
        """
        Initialize cache manager.

        Args:
            config: Cache configuration (defaults if None)
            **overrides: CacheConfig fields to override
        """
        config = config or CacheConfig()
        if overrides:
            config = config.replace(**overrides)

        self._config = config
        self._lock = threading.RLock()
        self._store = EntryStore(config)
        self._statistics = StatisticsTracker()
        self._eviction = EvictionEngine(self._store, on_evict=self._on_evict)

        logger.info(
            f"CacheManager initialized with max_entries={config.max_entries}, "
            f"max_size={config.max_size}, ttl={config.ttl}ms, "
            f"policy={config.policy.value}"
        )

    @property
    def config(self) -> CacheConfig:
        """Return the cache configuration."""
        return self._config

    def generate_key(self, query: str, params: Optional[Sequence[Any]] = None) -> str:
        """Generate the cache key for a query and its params."""
        return self._store.generate_key(query, params)

    def get(self, query: str, params: Optional[Sequence[Any]] = None) -> Optional[Rows]:
        """
        Look up cached rows for a query.

        Args:
            query: SQL query text
            params: Bind parameters

        Returns:
            Deep copy of the cached rows, or None on a miss
        """
        with self._lock:
            key = self.generate_key(query, params)
            entry = self._store.get(key)

            if entry is not None and self._eviction.is_expired(entry):
                self._eviction.remove(key, EVICTION_REASON_EXPIRED)
                self._refresh_gauges()
                entry = None

            if entry is None:
                self._record_miss()
                logger.debug(f"Cache miss: {key}")
                return None

            # Insertion order must not be disturbed by reads
            if self._config.policy is not EvictionPolicy.FIFO:
                self._store.touch(key)
            entry.record_access()
            self._record_hit()
            logger.debug(f"Cache hit: {key} (hits={entry.hits})")
            return copy.deepcopy(entry.data)

    def get_metadata(
        self, query: str, params: Optional[Sequence[Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """
        Return a copy of the metadata stored with a live entry.

        Pure read: access order, hit counts and statistics are untouched.
        """
        with self._lock:
            entry = self._store.get(self.generate_key(query, params))
            if entry is None or self._eviction.is_expired(entry):
                return None
            return dict(entry.metadata)

    def get_or_fetch(
        self,
        query: str,
        params: Optional[Sequence[Any]],
        fetch: FetchFn,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Rows:
        """
        Get cached rows, running ``fetch`` and caching its result on a miss.

        Exceptions raised by ``fetch`` propagate unchanged and nothing is
        cached for the failed query.

        Args:
            query: SQL query text
            params: Bind parameters
            fetch: Function producing the result rows
            metadata: Side information stored with a fresh entry

        Returns:
            Cached or freshly fetched rows
        """
        cached = self.get(query, params)
        if cached is not None:
            return cached

        rows = list(fetch())
        self.set(query, params, rows, metadata)
        return rows

    async def aget_or_fetch(
        self,
        query: str,
        params: Optional[Sequence[Any]],
        fetch: AsyncFetchFn,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Rows:
        """Async variant of ``get_or_fetch`` for awaitable fetch functions."""
        cached = self.get(query, params)
        if cached is not None:
            return cached

        result = fetch()
        if inspect.isawaitable(result):
            result = await result
        rows = list(result)
        self.set(query, params, rows, metadata)
        return rows

    def set(
        self,
        query: str,
        params: Optional[Sequence[Any]],
        data: Sequence[Any],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> CacheEntry:
        """
        Store result rows for a query.

        Args:
            query: SQL query text
            params: Bind parameters
            data: Materialized result rows
            metadata: Side information (e.g. column names)

        Returns:
            The stored CacheEntry (rows are deep-copied on the way in)
        """
        rows = copy.deepcopy(list(data))
        with self._lock:
            key = self.generate_key(query, params)
            size = self._store.estimate_size(rows)

            # Drop the entry being replaced, if any
            self._eviction.evict_entry(key)
            self._eviction.evict_if_needed(size)

            now = now_ms()
            entry = CacheEntry(
                query=query,
                params=list(params) if params is not None else None,
                data=rows,
                timestamp=now,
                last_accessed=now,
                hits=0,
                size=size,
                metadata=dict(metadata) if metadata else {},
            )
            self._store.set(key, entry)
            self._eviction.update_size(size)
            self._refresh_gauges()

            logger.debug(f"Cached entry: {key} ({len(rows)} rows, ~{size} bytes)")
            return entry

    def has(self, query: str, params: Optional[Sequence[Any]] = None) -> bool:
        """
        Check if a live entry exists for a query.

        Expired entries are reported as absent but left in place.
        """
        with self._lock:
            entry = self._store.get(self.generate_key(query, params))
            return entry is not None and not self._eviction.is_expired(entry)

    def delete(self, query: str, params: Optional[Sequence[Any]] = None) -> bool:
        """
        Delete the entry for a query.

        Returns:
            True if an entry was deleted
        """
        with self._lock:
            key = self.generate_key(query, params)
            deleted = self._eviction.evict_entry(key)
            if deleted:
                self._refresh_gauges()
                logger.debug(f"Deleted cache entry: {key}")
            return deleted

    def clear(self) -> None:
        """
        Remove all entries.

        Size gauges are reset; cumulative hit/miss/eviction counters are
        kept until ``reset_stats()``.
        """
        with self._lock:
            count = self._store.size()
            self._store.clear()
            self._eviction.reset()
            self._statistics.reset_gauges()
        logger.info(f"Cleared {count} cache entries")

    def reset_stats(self) -> None:
        """Zero all statistics counters and refresh the gauges."""
        with self._lock:
            self._statistics.reset()
            self._refresh_gauges()

    def invalidate(self, pattern: Union[str, Pattern[str]]) -> int:
        """
        Remove entries whose query text matches a pattern.

        Args:
            pattern: Literal substring, or a compiled regular expression
                matched with ``search``

        Returns:
            Number of entries removed
        """
        if isinstance(pattern, str):
            matches = lambda query: pattern in query  # noqa: E731
        else:
            matches = lambda query: pattern.search(query) is not None  # noqa: E731

        with self._lock:
            keys = [key for key, entry in self._store.entries() if matches(entry.query)]
            for key in keys:
                self._eviction.evict_entry(key)
            self._refresh_gauges()

        if keys:
            label = pattern if isinstance(pattern, str) else pattern.pattern
            logger.info(f"Invalidated {len(keys)} entries matching: {label}")
        return len(keys)

    def warm_up(self, items: Iterable[Union[WarmUpItem, Mapping[str, Any]]]) -> int:
        """
        Pre-populate the cache.

        Items are fetched one after another; a failing item is logged and
        skipped without affecting the rest. Async fetch functions need
        ``awarm_up``; here they are closed unawaited and counted as failed.

        Args:
            items: WarmUpItem objects or mappings with query/params/fetch

        Returns:
            Number of items stored
        """
        stored = 0
        failed = 0
        for raw in items:
            item = _as_warm_up_item(raw)
            try:
                rows = item.fetch()
                if inspect.isawaitable(rows):
                    _discard_awaitable(rows)
                    failed += 1
                    logger.warning(
                        f"Cache warm-up skipped async fetch for query {item.query!r}; "
                        f"use awarm_up"
                    )
                    continue
                self.set(item.query, item.params, rows)
                stored += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Cache warm-up failed for query {item.query!r}: {e}")

        logger.info(f"Cache warm-up stored {stored} entries ({failed} failed)")
        return stored

    async def awarm_up(
        self, items: Iterable[Union[WarmUpItem, Mapping[str, Any]]]
    ) -> int:
        """Async variant of ``warm_up``; items are still fetched sequentially."""
        stored = 0
        failed = 0
        for raw in items:
            item = _as_warm_up_item(raw)
            try:
                rows = item.fetch()
                if inspect.isawaitable(rows):
                    rows = await rows
                self.set(item.query, item.params, rows)
                stored += 1
            except Exception as e:
                failed += 1
                logger.warning(f"Cache warm-up failed for query {item.query!r}: {e}")

        logger.info(f"Cache warm-up stored {stored} entries ({failed} failed)")
        return stored

    def cleanup_expired(self) -> int:
        """
        Remove expired entries now rather than at the next insertion.

        Returns:
            Number of entries removed
        """
        with self._lock:
            removed = self._eviction.sweep_expired()
            self._refresh_gauges()
        if removed:
            logger.info(f"Cleaned up {removed} expired cache entries")
        return removed

    def get_stats(self) -> CacheStatistics:
        """Return a snapshot of cache statistics."""
        with self._lock:
            return self._statistics.get_stats()

    def export_stats(self) -> str:
        """Serialize statistics to JSON (entry payloads are not included)."""
        with self._lock:
            return self._statistics.export()

    def import_stats(self, data: Union[str, Mapping[str, Any]]) -> None:
        """Merge previously exported statistics into this manager."""
        with self._lock:
            self._statistics.import_(data)

    def size(self) -> int:
        """Return the number of cached entries."""
        return self._store.size()

    def entries(self) -> List[Tuple[str, Dict[str, Any]]]:
        """List (key, entry summary) pairs in access order, oldest first."""
        with self._lock:
            return [
                (key, self._store.get(key).to_dict())
                for key in self._store.access_order()
            ]

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, query: object) -> bool:
        return isinstance(query, str) and self.has(query)

    def _on_evict(self, key: str, entry: CacheEntry, reason: str) -> None:
        if self._config.enable_stats:
            self._statistics.record_eviction()

    def _record_hit(self) -> None:
        if self._config.enable_stats:
            self._statistics.record_hit()

    def _record_miss(self) -> None:
        if self._config.enable_stats:
            self._statistics.record_miss()

    def _refresh_gauges(self) -> None:
        self._statistics.update_size(self._eviction.current_size, self._store.size())
