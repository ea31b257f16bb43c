"""
Bench Command - Replay a query file through one cache.

Usage:
    querycache bench --db app.db --file queries.sql --rounds 5
"""

import json
import logging
import time
from pathlib import Path
from typing import List, Optional

import click

from querycache.cli.commands.run import output_text_stats, stats_summary
from querycache.exceptions import QueryExecutionError
from querycache.executor import QueryExecutor

logger = logging.getLogger("querycache.bench")


def load_statements(path: Path) -> List[str]:
    """
    Read semicolon-separated statements from a file.

    Lines starting with ``--`` are dropped. Semicolons inside string
    literals are not handled.
    """
    lines = [
        line for line in path.read_text().splitlines()
        if not line.strip().startswith("--")
    ]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


@click.command("bench")
@click.option(
    "--db",
    "db_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="SQLite database file.",
)
@click.option(
    "--file",
    "queries_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="File of semicolon-separated SQL statements.",
)
@click.option(
    "--rounds",
    "-r",
    type=click.IntRange(min=1),
    default=3,
    help="Number of passes over the file (default: 3).",
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
@click.option(
    "--max-entries",
    type=int,
    default=None,
    help="Override the maximum number of entries.",
)
@click.option(
    "--continue-on-error/--stop-on-error",
    default=True,
    help="Keep going when a statement fails (default: continue).",
)
@click.pass_obj
def bench(
    ctx,
    db_path: Path,
    queries_file: Path,
    rounds: int,
    output_format: str,
    policy: Optional[str],
    max_entries: Optional[int],
    continue_on_error: bool,
):
    """
    Replay every statement in a file for several rounds through one cache.

    Reports how many executions were served from the cache and the final
    cache statistics.

    \b
    Examples:
        querycache bench --db app.db --file queries.sql
        querycache bench --db app.db --file queries.sql --policy lfu --max-entries 10
    """
    statements = load_statements(queries_file)
    if not statements:
        raise click.ClickException(f"No statements found in {queries_file}")

    cache = ctx.create_cache(policy=policy, max_entries=max_entries)
    executions = 0
    cached = 0
    failures = 0
    start = time.perf_counter()

    with QueryExecutor.from_path(db_path, cache) as executor:
        for round_no in range(1, rounds + 1):
            for statement in statements:
                executions += 1
                try:
                    result = executor.execute(statement)
                except QueryExecutionError as e:
                    failures += 1
                    logger.warning(f"Round {round_no}: statement failed: {e}")
                    if not continue_on_error:
                        raise click.ClickException(str(e)) from e
                    continue
                if result.from_cache:
                    cached += 1

    elapsed_ms = (time.perf_counter() - start) * 1000
    stats = cache.get_stats()

    if output_format == "json":
        click.echo(
            json.dumps(
                {
                    "statements": len(statements),
                    "rounds": rounds,
                    "executions": executions,
                    "served_from_cache": cached,
                    "failures": failures,
                    "elapsed_ms": round(elapsed_ms, 3),
                    "stats": stats_summary(stats),
                },
                indent=2,
            )
        )
        return

    click.echo(f"\n{'=' * 50}")
    click.echo("  Cache Benchmark")
    click.echo(f"{'=' * 50}")
    click.echo(f"\n  Statements: {len(statements)}")
    click.echo(f"  Rounds: {rounds}")
    click.echo(f"  Executions: {executions}")
    click.echo(f"  Served from cache: {cached}")
    if failures:
        click.echo(f"  Failures: {failures}")
    click.echo(f"  Elapsed: {elapsed_ms:.2f} ms")

    output_text_stats(stats)
