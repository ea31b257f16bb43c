"""
Cache Statistics Tracking.

Counts hits, misses and evictions, derives the hit rate, and keeps
point-in-time gauges for entry count and aggregate size. Counters can be
exported to JSON and merged back into another tracker so statistics
survive across manager instances.
"""

import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Union

from querycache.exceptions import StatisticsImportError

logger = logging.getLogger(__name__)


@dataclass
class CacheStatistics:
    """Statistics about cache usage."""

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    total_queries: int = 0
    hit_rate: float = 0.0
    entries: int = 0
    size: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return dataclasses.asdict(self)


_FIELDS = {f.name for f in dataclasses.fields(CacheStatistics)}


class StatisticsTracker:
    """Accumulates cache statistics for one manager."""

    def __init__(self):
        self._stats = CacheStatistics()

    def record_hit(self) -> None:
        """Record a cache hit."""
        self._stats.hits += 1
        self._stats.total_queries += 1
        self._update_hit_rate()

    def record_miss(self) -> None:
        """Record a cache miss."""
        self._stats.misses += 1
        self._stats.total_queries += 1
        self._update_hit_rate()

    def record_eviction(self) -> None:
        """Record an eviction."""
        self._stats.evictions += 1

    def update_size(self, size: int, entries: int) -> None:
        """Set the size and entry-count gauges."""
        self._stats.size = size
        self._stats.entries = entries

    def get_stats(self) -> CacheStatistics:
        """Return a snapshot of the current statistics."""
        return dataclasses.replace(self._stats)

    def reset(self) -> None:
        """Zero all counters and gauges."""
        self._stats = CacheStatistics()

    def reset_gauges(self) -> None:
        """Zero the gauges, keeping cumulative counters."""
        self.update_size(0, 0)

    def export(self) -> str:
        """Serialize the statistics to JSON."""
        return json.dumps(self._stats.to_dict(), indent=2)

    def import_(self, data: Union[str, Mapping[str, Any]]) -> None:
        """
        Merge exported statistics over the current state.

        Args:
            data: JSON text from ``export()`` or a (partial) mapping

        Raises:
            StatisticsImportError: If JSON text cannot be parsed
        """
        if isinstance(data, str):
            try:
                data = json.loads(data)
            except json.JSONDecodeError as e:
                raise StatisticsImportError(str(e)) from e
        if not isinstance(data, Mapping):
            raise StatisticsImportError(f"expected a mapping, got {type(data).__name__}")

        for name, value in data.items():
            if name in _FIELDS:
                setattr(self._stats, name, value)
            else:
                logger.debug(f"Ignoring unknown statistics field: {name}")

        # Older exports carry only hits/misses
        if "total_queries" not in data and ("hits" in data or "misses" in data):
            self._stats.total_queries = self._stats.hits + self._stats.misses

        self._update_hit_rate()

    def _update_hit_rate(self) -> None:
        total = self._stats.total_queries
        self._stats.hit_rate = self._stats.hits / total if total > 0 else 0.0
