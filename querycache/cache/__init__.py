"""
Query Result Cache.

Memoizes materialized results of read-only queries in front of a query
executor.

Components:
- Key generation from (query, params)
- Entry store with an access-order ledger
- Eviction engine (LRU, LFU, FIFO) with TTL expiry
- Statistics tracking with export/import
- Cache manager composing the above

Example usage:
    from querycache.cache import CacheConfig, CacheManager, EvictionPolicy

    cache = CacheManager(
        CacheConfig(max_entries=500, ttl=60_000, policy=EvictionPolicy.LFU)
    )

    rows = cache.get_or_fetch(
        "SELECT * FROM users WHERE id = ?",
        [42],
        fetch=lambda: run_query("SELECT * FROM users WHERE id = ?", [42]),
    )

    cache.invalidate("FROM users")
    print(cache.get_stats().hit_rate)
"""

from querycache.cache.config import (
    CacheConfig,
    EvictionPolicy,
    load_config,
)

from querycache.cache.keys import (
    KeyGenerator,
    PARAMS_DELIMITER,
    default_key_generator,
)

from querycache.cache.storage import (
    CacheEntry,
    EntryStore,
    estimate_size,
)

from querycache.cache.eviction import (
    EvictionEngine,
    select_victim,
)

from querycache.cache.statistics import (
    CacheStatistics,
    StatisticsTracker,
)

from querycache.cache.manager import (
    CacheManager,
    WarmUpItem,
)

__all__ = [
    # Config
    "CacheConfig",
    "EvictionPolicy",
    "load_config",
    # Keys
    "KeyGenerator",
    "PARAMS_DELIMITER",
    "default_key_generator",
    # Storage
    "CacheEntry",
    "EntryStore",
    "estimate_size",
    # Eviction
    "EvictionEngine",
    "select_victim",
    # Statistics
    "CacheStatistics",
    "StatisticsTracker",
    # Manager
    "CacheManager",
    "WarmUpItem",
]
