"""
Run Command - Execute a query through the result cache.

Usage:
    querycache run --db app.db "SELECT * FROM users WHERE id = ?" 42
    querycache run --db app.db --repeat 3 --format json "SELECT count(*) FROM orders"
"""

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from querycache.cache import CacheStatistics
from querycache.exceptions import QueryExecutionError
from querycache.executor import QueryExecutor, QueryResult

logger = logging.getLogger("querycache.run")

# Decimal and exponent notation only; float() would also take nan and inf
FLOAT_PATTERN = re.compile(r"[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?")


def parse_param(raw: str) -> Any:
    """Interpret a command-line parameter as int, float, NULL or text."""
    if raw.upper() == "NULL":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    if FLOAT_PATTERN.fullmatch(raw):
        return float(raw)
    return raw


@click.command("run")
@click.option(
    "--db",
    "db_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="SQLite database file.",
)
@click.option(
    "--repeat",
    "-n",
    type=click.IntRange(min=1),
    default=1,
    help="Number of times to run the query (default: 1).",
)
@click.option(
    "--limit",
    "-l",
    type=int,
    default=10,
    help="Maximum rows to print (default: 10).",
)
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
@click.option(
    "--policy",
    type=click.Choice(["lru", "lfu", "fifo"], case_sensitive=False),
    default=None,
    help="Override the eviction policy.",
)
@click.option("--ttl", type=float, default=None, help="Override TTL in milliseconds.")
@click.argument("query")
@click.argument("params", nargs=-1)
@click.pass_obj
def run(
    ctx,
    db_path: Path,
    repeat: int,
    limit: int,
    output_format: str,
    policy: Optional[str],
    ttl: Optional[float],
    query: str,
    params: Tuple[str, ...],
):
    """
    Execute QUERY through the cache.

    Positional PARAMS are bound to the query's placeholders in order.
    Read-only queries are served from the cache after the first run.

    \b
    Examples:
        querycache run --db app.db "SELECT * FROM users WHERE id = ?" 42
        querycache run --db app.db --repeat 5 "SELECT count(*) FROM orders"
    """
    cache = ctx.create_cache(policy=policy, ttl=ttl)
    bound = [parse_param(p) for p in params]
    results: List[QueryResult] = []

    with QueryExecutor.from_path(db_path, cache) as executor:
        for i in range(repeat):
            try:
                results.append(executor.execute(query, bound))
            except QueryExecutionError as e:
                raise click.ClickException(str(e)) from e
            logger.debug(
                f"Run {i + 1}/{repeat}: {results[-1].row_count} rows "
                f"(cached={results[-1].from_cache})"
            )

    stats = cache.get_stats()
    last = results[-1]

    if output_format == "json":
        payload = {
            "query": query,
            "params": bound,
            "runs": [
                {"from_cache": r.from_cache, "elapsed_ms": round(r.elapsed_ms, 3)}
                for r in results
            ],
            "columns": last.columns,
            "rows": last.rows[:limit],
            "row_count": last.row_count,
            "stats": stats.to_dict(),
        }
        click.echo(json.dumps(payload, indent=2, default=str))
        return

    click.echo(f"\n{'=' * 50}")
    click.echo("  Query Result")
    click.echo(f"{'=' * 50}")
    click.echo(f"\n  Rows: {last.row_count}")
    if last.columns:
        click.echo(f"  Columns: {', '.join(last.columns)}")

    for row in last.rows[:limit]:
        click.echo(f"    {row}")
    if last.row_count > limit:
        click.echo(f"    ... {last.row_count - limit} more")

    click.echo("\n  Runs:")
    for i, r in enumerate(results, 1):
        source = "cache" if r.from_cache else "database"
        click.echo(f"    [{i}] {source} ({r.elapsed_ms:.2f} ms)")

    output_text_stats(stats)


def output_text_stats(stats: CacheStatistics) -> None:
    """Print cache statistics as formatted text."""
    click.echo("\n  Cache:")
    click.echo(f"    Hits: {stats.hits}")
    click.echo(f"    Misses: {stats.misses}")
    click.echo(f"    Hit rate: {stats.hit_rate:.1%}")
    click.echo(f"    Evictions: {stats.evictions}")
    click.echo(f"    Entries: {stats.entries}")
    click.echo(f"    Size: {stats.size} bytes")
    click.echo()


def stats_summary(stats: CacheStatistics) -> Dict[str, Any]:
    """Statistics as a plain dictionary with a rounded hit rate."""
    summary = stats.to_dict()
    summary["hit_rate"] = round(stats.hit_rate, 4)
    return summary
