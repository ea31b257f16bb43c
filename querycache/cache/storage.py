"""
Cache Entry Storage.

Holds cache entries keyed by cache key together with an access-order
ledger (oldest first) used by the recency and insertion-order eviction
policies. The entry map and the ledger are kept in lock-step: every
stored key appears in the ledger exactly once.

The store knows nothing about its byte footprint; aggregate size is
tracked by the eviction engine.
"""

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from querycache.cache.config import CacheConfig
from querycache.cache.keys import default_key_generator

logger = logging.getLogger(__name__)

# Size heuristic constants: serialized text is assumed to be held as
# 2-byte characters, plus a fixed per-entry bookkeeping overhead.
CHAR_WIDTH_BYTES = 2
ENTRY_OVERHEAD_BYTES = 100
FALLBACK_SIZE_BYTES = 1024


def now_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


@dataclass
class CacheEntry:
    """
    Represents an entry in the cache.

    Attributes:
        query: Original query text
        params: Bind parameters the query was run with
        data: Materialized result rows
        timestamp: Creation time (epoch ms)
        last_accessed: Most recent read time (epoch ms)
        hits: Number of reads since creation
        size: Estimated byte footprint, computed at insertion
        metadata: Free-form side information (e.g. column names)
    """

    query: str
    params: Optional[List[Any]]
    data: List[Any]
    timestamp: float
    last_accessed: float
    hits: int = 0
    size: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def access_count(self) -> int:
        """Alias for ``hits``."""
        return self.hits

    def record_access(self, at: Optional[float] = None) -> None:
        """Update read bookkeeping after a cache hit."""
        self.hits += 1
        self.last_accessed = at if at is not None else now_ms()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (payload rows excluded)."""
        return {
            "query": self.query,
            "params": self.params,
            "row_count": len(self.data),
            "timestamp": self.timestamp,
            "last_accessed": self.last_accessed,
            "hits": self.hits,
            "size": self.size,
            "metadata": self.metadata,
        }


def estimate_size(payload: Any) -> int:
    """
    Estimate the in-memory footprint of a payload in bytes.

    This is an approximation for admission control, not a measurement:
    the payload is serialized to JSON, the text length is multiplied by
    a per-character width, and a fixed overhead is added. Shared
    substructure and compact numeric types are not accounted for.

    Args:
        payload: Result rows or any JSON-like value

    Returns:
        Estimated size in bytes
    """
    try:
        text = json.dumps(payload, default=str)
    except (TypeError, ValueError):
        # Circular references and similar
        return FALLBACK_SIZE_BYTES
    return len(text) * CHAR_WIDTH_BYTES + ENTRY_OVERHEAD_BYTES


class EntryStore:
    """
    In-memory entry map with an access-order ledger.

    Not thread-safe on its own; the cache manager serializes access.
    """

    def __init__(self, config: Optional[CacheConfig] = None):
        """
        Initialize the entry store.

        Args:
            config: Cache configuration (defaults if None)
        """
        self._config = config or CacheConfig()
        self._key_generator = self._config.key_generator or default_key_generator
        self._entries: Dict[str, CacheEntry] = {}
        # Ordered oldest-first; values unused
        self._ledger: "OrderedDict[str, None]" = OrderedDict()

    @property
    def config(self) -> CacheConfig:
        """Return the configuration the store was built with."""
        return self._config

    def generate_key(self, query: str, params: Optional[Sequence[Any]] = None) -> str:
        """Generate the cache key for a query and its params."""
        return self._key_generator(query, params)

    def estimate_size(self, payload: Any) -> int:
        """Estimate the byte footprint of a payload."""
        return estimate_size(payload)

    def get(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for a key without touching the ledger."""
        return self._entries.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        """
        Insert or replace an entry.

        The key always ends up at the most-recent end of the ledger.
        """
        self._ledger.pop(key, None)
        self._entries[key] = entry
        self._ledger[key] = None

    def delete(self, key: str) -> bool:
        """
        Remove an entry and its ledger position.

        Returns:
            True if the key existed
        """
        self._ledger.pop(key, None)
        return self._entries.pop(key, None) is not None

    def has(self, key: str) -> bool:
        """Check if a key is stored (expiry is not considered)."""
        return key in self._entries

    def touch(self, key: str) -> None:
        """Move a key to the most-recently-used ledger position."""
        if key in self._ledger:
            self._ledger.move_to_end(key)

    def clear(self) -> None:
        """Remove all entries and ledger positions."""
        self._entries = {}
        self._ledger = OrderedDict()

    def size(self) -> int:
        """Return the number of stored entries."""
        return len(self._entries)

    def entries(self) -> Iterator[Tuple[str, CacheEntry]]:
        """Iterate over (key, entry) pairs from a snapshot."""
        return iter(list(self._entries.items()))

    def keys(self) -> Iterator[str]:
        """Iterate over keys from a snapshot."""
        return iter(list(self._entries.keys()))

    def access_order(self) -> List[str]:
        """Return ledger keys oldest-first (a copy)."""
        return list(self._ledger.keys())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[str]:
        return self.keys()
