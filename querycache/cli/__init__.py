"""
querycache CLI Package

Command-line interface for the query result cache.
"""

from querycache.cli.main import app, main

__all__ = ["app", "main"]
