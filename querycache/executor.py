"""
Cached Query Executor.

Runs SQL against a DB-API connection (sqlite3 in practice) and routes
read-only queries through a CacheManager. Only queries recognized as
read-only by a textual prefix check are cached; everything else goes
straight to the database.
"""

import logging
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from querycache.cache.manager import CacheManager
from querycache.exceptions import QueryExecutionError

logger = logging.getLogger(__name__)

READ_ONLY_PREFIXES = ("SELECT", "WITH", "DESCRIBE", "SHOW", "PRAGMA", "EXPLAIN")


def is_read_only_query(query: str) -> bool:
    """
    Check if a query is read-only by its leading keyword.

    This is a prefix check, not a parse: a WITH clause feeding an
    UPDATE would be misclassified.
    """
    return query.strip().upper().startswith(READ_ONLY_PREFIXES)


@dataclass
class QueryResult:
    """
    Materialized query result.

    Attributes:
        rows: Result rows as column-name -> value dicts
        columns: Column names in select order
        row_count: Rows returned (or affected, for writes)
        from_cache: Whether the rows were served from the cache
        elapsed_ms: Wall time spent producing the result
    """

    rows: List[Dict[str, Any]] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    row_count: int = 0
    from_cache: bool = False
    elapsed_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rows": self.rows,
            "columns": self.columns,
            "row_count": self.row_count,
            "from_cache": self.from_cache,
            "elapsed_ms": round(self.elapsed_ms, 3),
        }


class QueryExecutor:
    """
    Executes queries with transparent result caching.

    The cache is optional and can be swapped at runtime with
    ``update_cache``.
    """

    def __init__(self, connection: Any, cache: Optional[CacheManager] = None):
        """
        Initialize query executor.

        Args:
            connection: DB-API connection
            cache: Cache manager for read-only results (None disables caching)
        """
        self.connection = connection
        self.cache = cache

    @classmethod
    def from_path(
        cls,
        db_path: Union[str, Path],
        cache: Optional[CacheManager] = None,
    ) -> "QueryExecutor":
        """Open a sqlite3 database and wrap it in an executor."""
        conn = sqlite3.connect(str(db_path), timeout=30.0)
        logger.debug(f"Opened database {db_path}")
        return cls(conn, cache)

    def update_cache(self, cache: Optional[CacheManager]) -> None:
        """Replace or detach the cache manager."""
        self.cache = cache

    def execute(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
    ) -> QueryResult:
        """
        Execute a query, serving read-only queries from the cache when possible.

        Args:
            query: SQL query text
            params: Bind parameters

        Returns:
            QueryResult

        Raises:
            QueryExecutionError: If the database rejects the query
        """
        start = time.perf_counter()
        cacheable = self.cache is not None and is_read_only_query(query)

        if cacheable:
            cached = self.cache.get(query, params)
            if cached is not None:
                metadata = self.cache.get_metadata(query, params) or {}
                columns = metadata.get("columns") or _columns_from_rows(cached)
                logger.debug(f"Cache hit for query: {query}")
                return QueryResult(
                    rows=cached,
                    columns=list(columns),
                    row_count=len(cached),
                    from_cache=True,
                    elapsed_ms=(time.perf_counter() - start) * 1000,
                )

        result = self._run(query, params)

        if cacheable:
            self.cache.set(query, params, result.rows, metadata={"columns": result.columns})
            logger.debug(f"Cached query result: {query}")

        result.elapsed_ms = (time.perf_counter() - start) * 1000
        return result

    def close(self) -> None:
        """Close the underlying connection."""
        self.connection.close()

    def __enter__(self) -> "QueryExecutor":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _run(self, query: str, params: Optional[Sequence[Any]]) -> QueryResult:
        """Execute against the database and materialize the rows."""
        try:
            cursor = self.connection.execute(query, list(params or []))
            if cursor.description is None:
                # Statement without a result set
                if not is_read_only_query(query):
                    self.connection.commit()
                return QueryResult(row_count=max(cursor.rowcount, 0))

            columns = [d[0] for d in cursor.description]
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
            # Writes with RETURNING produce rows too
            if not is_read_only_query(query):
                self.connection.commit()
        except sqlite3.Error as e:
            raise QueryExecutionError(query, params, e) from e

        return QueryResult(rows=rows, columns=columns, row_count=len(rows))


def _columns_from_rows(rows: List[Any]) -> List[str]:
    if rows and isinstance(rows[0], dict):
        return list(rows[0].keys())
    return []
