"""
Cache key generation.

Maps a (query text, bind parameters) pair to a deterministic cache key.
"""

import json
from typing import Any, Callable, Optional, Sequence

KeyGenerator = Callable[[str, Optional[Sequence[Any]]], str]

# Separates query text from serialized params. NUL never occurs in SQL
# text, so a params-free key cannot collide with a parameterized one.
PARAMS_DELIMITER = "\x00"


def serialize_params(params: Sequence[Any]) -> str:
    """
    Serialize bind parameters to stable text.

    Dict keys are sorted and values JSON cannot represent (dates,
    decimals, bytes) fall back to ``str()``.
    """
    return json.dumps(
        list(params),
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def default_key_generator(query: str, params: Optional[Sequence[Any]] = None) -> str:
    """
    Generate a cache key for a query.

    Args:
        query: SQL query text
        params: Ordered bind parameters

    Returns:
        The query text verbatim when there are no params, otherwise the
        query followed by the delimiter and the serialized params.
    """
    if not params:
        return query
    return f"{query}{PARAMS_DELIMITER}{serialize_params(params)}"
