"""
Cache Eviction Engine.

Decides when capacity is exceeded and which entry to remove. Admission
runs in two phases before every insertion:

1. Expiry sweep: every entry past its TTL is removed, whether or not the
   cache is under pressure.
2. Capacity loop: one entry at a time is evicted according to the active
   policy until the candidate fits or the store is empty.

Eviction is best effort and never raises. When nothing is left to evict
the insertion proceeds and the configured limits may be exceeded.
"""

import logging
from typing import Callable, Dict, Optional

from querycache.cache.config import EvictionPolicy
from querycache.cache.storage import CacheEntry, EntryStore, now_ms

logger = logging.getLogger(__name__)

EVICTION_REASON_EXPIRED = "expired"
EVICTION_REASON_CAPACITY = "capacity"

EvictionCallback = Callable[[str, CacheEntry, str], None]


def _select_lru(engine: "EvictionEngine") -> Optional[str]:
    """Least recently used entry that has not already expired."""
    order = engine.store.access_order()
    for key in order:
        entry = engine.store.get(key)
        if entry is not None and not engine.is_expired(entry):
            return key
    # Only expired entries left
    return order[0] if order else None


def _select_lfu(engine: "EvictionEngine") -> Optional[str]:
    """Lowest hit count; ties go to the oldest ledger position."""
    candidate = None
    min_hits = None
    for key in engine.store.access_order():
        entry = engine.store.get(key)
        if entry is None:
            continue
        if min_hits is None or entry.hits < min_hits:
            min_hits = entry.hits
            candidate = key
    return candidate


def _select_fifo(engine: "EvictionEngine") -> Optional[str]:
    """Oldest ledger entry, unconditionally."""
    order = engine.store.access_order()
    return order[0] if order else None


_SELECTORS: Dict[EvictionPolicy, Callable[["EvictionEngine"], Optional[str]]] = {
    EvictionPolicy.LRU: _select_lru,
    EvictionPolicy.LFU: _select_lfu,
    EvictionPolicy.FIFO: _select_fifo,
}


def select_victim(engine: "EvictionEngine") -> Optional[str]:
    """
    Pick the key to evict under the engine's active policy.

    Args:
        engine: Eviction engine whose store is scanned

    Returns:
        Key to evict, or None if the store is empty
    """
    selector = _SELECTORS.get(engine.policy, _select_fifo)
    return selector(engine)


class EvictionEngine:
    """
    Capacity and expiry decisions for an entry store.

    Tracks the aggregate estimated size of live entries. The manager
    adds to it on insertion; removals made through the engine subtract
    the removed entry's recorded size.
    """

    def __init__(
        self,
        store: EntryStore,
        on_evict: Optional[EvictionCallback] = None,
    ):
        """
        Initialize the eviction engine.

        Args:
            store: Entry store to evict from
            on_evict: Called with (key, entry, reason) after each removal
        """
        self.store = store
        self.on_evict = on_evict
        self._current_size = 0

    @property
    def policy(self) -> EvictionPolicy:
        """Return the active eviction policy."""
        return self.store.config.policy

    @property
    def current_size(self) -> int:
        """Return the aggregate size of live entries in bytes."""
        return self._current_size

    def is_expired(self, entry: CacheEntry, now: Optional[float] = None) -> bool:
        """Check if an entry is older than the TTL."""
        ttl = self.store.config.ttl
        if ttl <= 0:
            return False
        current = now if now is not None else now_ms()
        return current - entry.timestamp > ttl

    def should_evict(self, candidate_size: int) -> bool:
        """Check if admitting a candidate of the given size exceeds capacity."""
        config = self.store.config
        return (
            self._current_size + candidate_size > config.max_size
            or self.store.size() >= config.max_entries
        )

    def sweep_expired(self) -> int:
        """
        Remove every expired entry.

        Returns:
            Number of entries removed
        """
        now = now_ms()
        removed = 0
        for key, entry in self.store.entries():
            if self.is_expired(entry, now):
                self.remove(key, EVICTION_REASON_EXPIRED)
                removed += 1
        if removed:
            logger.debug(f"Swept {removed} expired cache entries")
        return removed

    def evict_if_needed(self, candidate_size: int) -> int:
        """
        Make room for a candidate entry.

        Args:
            candidate_size: Estimated size of the entry about to be stored

        Returns:
            Number of entries removed (expired and evicted)
        """
        removed = self.sweep_expired()

        while self.should_evict(candidate_size):
            if not self.evict_one():
                logger.debug(
                    f"Nothing left to evict; admitting {candidate_size} bytes "
                    f"over capacity"
                )
                break
            removed += 1

        return removed

    def evict_one(self) -> bool:
        """
        Evict one entry according to the active policy.

        Returns:
            True if an entry was evicted, False if the store is empty
        """
        key = select_victim(self)
        if key is None:
            return False
        return self.remove(key, EVICTION_REASON_CAPACITY)

    def evict_entry(self, key: str) -> bool:
        """
        Remove a named entry and subtract its recorded size.

        Returns:
            True if the entry existed
        """
        entry = self.store.get(key)
        if entry is None:
            return False
        self._current_size -= entry.size
        self.store.delete(key)
        return True

    def update_size(self, delta: int) -> None:
        """Adjust the aggregate size tracker."""
        self._current_size += delta

    def reset(self) -> None:
        """Zero the aggregate size tracker."""
        self._current_size = 0

    def remove(self, key: str, reason: str) -> bool:
        """Evict a key and notify the eviction callback."""
        entry = self.store.get(key)
        if entry is None or not self.evict_entry(key):
            return False

        logger.debug(f"Evicted cache entry ({reason}): {key}")
        if self.on_evict is not None:
            self.on_evict(key, entry, reason)
        return True
