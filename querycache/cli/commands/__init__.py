"""
querycache CLI Commands

This package contains all CLI subcommands for the querycache tool.

Commands:
    run   - Execute a query through the cache, optionally repeated
    bench - Replay a file of queries through one cache and report statistics
"""

from querycache.cli.commands import bench, run

__all__ = [
    "bench",
    "run",
]
