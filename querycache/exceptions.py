"""
Custom Exceptions for the Query Cache.

The cache operations themselves never raise: capacity pressure is handled
by best-effort eviction and fetch errors are passed through untouched.
These exceptions cover the surrounding layers (configuration files,
statistics import, query execution).
"""

from typing import Any, Optional, Sequence


class QueryCacheError(Exception):
    """
    Base exception for query cache failures.

    Attributes:
        message: Human-readable error description
        details: Additional context about the failure
    """

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


class ConfigurationError(QueryCacheError):
    """
    Cache configuration could not be loaded.

    Raised for unreadable or malformed configuration files. Values inside
    a well-formed configuration are never range-checked.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        details = {"path": path} if path else {}
        super().__init__(message, details)
        self.path = path


class StatisticsImportError(QueryCacheError):
    """Exported statistics text could not be parsed."""

    def __init__(self, reason: str):
        super().__init__(f"Cannot import cache statistics: {reason}")
        self.reason = reason


class QueryExecutionError(QueryCacheError):
    """
    Query failed inside the database driver.

    Attributes:
        query: SQL text that failed
        params: Bind parameters passed with the query
        original_error: Driver exception that caused the failure
    """

    def __init__(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
        original_error: Optional[BaseException] = None,
    ):
        reason = str(original_error) if original_error else "unknown error"
        super().__init__(
            f"Query execution failed: {reason}",
            {"query": query, "params": list(params) if params else []},
        )
        self.query = query
        self.params = params
        self.original_error = original_error
