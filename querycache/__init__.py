"""
querycache - in-memory result cache for read-only database queries.
"""

from querycache.cache import CacheConfig, CacheManager, EvictionPolicy
from querycache.executor import QueryExecutor, QueryResult, is_read_only_query

__version__ = "0.1.0"

__all__ = [
    "CacheConfig",
    "CacheManager",
    "EvictionPolicy",
    "QueryExecutor",
    "QueryResult",
    "is_read_only_query",
    "__version__",
]
