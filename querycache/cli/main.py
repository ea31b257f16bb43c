"""
querycache CLI - Main Entry Point

Command-line interface for running queries through the result cache and
inspecting its behaviour. Built with Click.
"""

import json
import logging
import sys
from pathlib import Path
from typing import Optional

import click

from querycache.cache import CacheConfig, CacheManager, load_config
from querycache.exceptions import QueryCacheError

# Configure logging for CLI
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("querycache")


class QueryCacheContext:
    """Context object for passing global options to subcommands."""

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        config_path: Optional[Path] = None,
    ):
        self.verbose = verbose
        self.quiet = quiet
        self.config_path = config_path
        self._config: Optional[CacheConfig] = None

        # Configure logging based on verbosity
        if quiet:
            logger.setLevel(logging.WARNING)
        elif verbose:
            logger.setLevel(logging.DEBUG)
        else:
            logger.setLevel(logging.INFO)

    @property
    def config(self) -> CacheConfig:
        """Lazy load cache configuration."""
        if self._config is None:
            self._config = load_config(self.config_path)
            if self.verbose:
                logger.debug(f"Effective cache config: {self._config.to_dict()}")
        return self._config

    def create_cache(self, **overrides) -> CacheManager:
        """Build a cache manager from the loaded configuration."""
        overrides = {k: v for k, v in overrides.items() if v is not None}
        return CacheManager(self.config, **overrides)


class QueryCacheGroup(click.Group):
    """Custom Click group with improved help formatting."""

    def format_help(self, ctx, formatter):
        """Format help with banner and examples."""
        formatter.write_paragraph()
        formatter.write_text("querycache - result cache for read-only SQL queries")
        formatter.write_paragraph()

        super().format_help(ctx, formatter)

        formatter.write_paragraph()
        formatter.write_text("Examples:")
        formatter.indent()

        examples = [
            "# Run a query three times and show cache statistics",
            "querycache run --db app.db --repeat 3 'SELECT * FROM users WHERE id = ?' 42",
            "",
            "# Replay a file of queries through an LFU cache",
            "querycache bench --db app.db --file queries.sql --rounds 5 --policy lfu",
            "",
            "# Show the effective configuration",
            "querycache -c querycache.yaml info",
        ]

        for line in examples:
            formatter.write_text(line)

        formatter.dedent()


pass_context = click.make_pass_decorator(QueryCacheContext, ensure=True)


@click.group(cls=QueryCacheGroup)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Enable verbose output (debug logging).",
)
@click.option(
    "-q",
    "--quiet",
    is_flag=True,
    default=False,
    help="Quiet mode (only warnings and errors).",
)
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Path to YAML configuration file.",
)
@click.version_option(
    version="0.1.0",
    prog_name="querycache",
    message="%(prog)s version %(version)s",
)
@click.pass_context
def app(ctx, verbose: bool, quiet: bool, config_path: Optional[Path]):
    """
    querycache - memoize read-only query results in front of a database.
    """
    if verbose and quiet:
        raise click.UsageError("Cannot use both --verbose and --quiet")

    ctx.obj = QueryCacheContext(
        verbose=verbose,
        quiet=quiet,
        config_path=config_path,
    )


def register_commands():
    """Register all subcommands."""
    from querycache.cli.commands import bench, run

    app.add_command(run.run)
    app.add_command(bench.bench)


@app.command("info")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"], case_sensitive=False),
    default="text",
    help="Output format (default: text).",
)
@pass_context
def info(ctx, output_format: str):
    """Display the effective cache configuration."""
    config = ctx.config.to_dict()

    if output_format == "json":
        click.echo(json.dumps(config, indent=2))
        return

    click.echo("\n=== querycache configuration ===\n")
    click.echo(f"  Max entries: {config['max_entries']}")
    click.echo(f"  Max size: {format_bytes(config['max_size'])}")
    click.echo(f"  TTL: {config['ttl']} ms")
    click.echo(f"  Eviction policy: {config['policy']}")
    click.echo(f"  Statistics: {'enabled' if config['enable_stats'] else 'disabled'}")
    click.echo()


def format_bytes(num: float) -> str:
    """Human-readable byte count."""
    for unit in ("B", "KB", "MB", "GB"):
        if abs(num) < 1024:
            return f"{num:.1f} {unit}" if unit != "B" else f"{int(num)} B"
        num /= 1024
    return f"{num:.1f} TB"


register_commands()


def main():
    """Main entry point for the CLI."""
    try:
        app()
    except QueryCacheError as e:
        logger.error(f"Error: {e}")
        if "--verbose" in sys.argv or "-v" in sys.argv:
            import traceback

            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
