"""
Pytest configuration and fixtures for querycache tests.

Markers:
    @pytest.mark.cache - Cache subsystem tests
    @pytest.mark.executor - Query executor tests
    @pytest.mark.cli - Command-line interface tests
    @pytest.mark.slow - Tests that take longer to run

Usage:
    pytest -m cache              # Run only cache tests
    pytest -m "not slow"         # Skip slow tests
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "cache: Cache subsystem tests")
    config.addinivalue_line("markers", "executor: Query executor tests")
    config.addinivalue_line("markers", "cli: Command-line interface tests")
    config.addinivalue_line("markers", "slow: Slow-running tests")


def pytest_collection_modifyitems(config, items):
    """Auto-apply markers based on test file names and test names."""
    for item in items:
        basename = item.fspath.basename
        if "cache" in basename or "config" in basename:
            item.add_marker(pytest.mark.cache)
        if "executor" in basename:
            item.add_marker(pytest.mark.executor)
        if "cli" in basename:
            item.add_marker(pytest.mark.cli)

        test_name = item.name.lower()
        if "stress" in test_name or "concurrent" in test_name or "randomized" in test_name:
            item.add_marker(pytest.mark.slow)


@pytest.fixture
def sample_db(tmp_path):
    """Provide a small SQLite database with a users table."""
    db_path = tmp_path / "sample.db"
    conn = sqlite3.connect(str(db_path))
    conn.execute(
        "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL, role TEXT)"
    )
    conn.executemany(
        "INSERT INTO users (id, name, role) VALUES (?, ?, ?)",
        [
            (1, "ada", "admin"),
            (2, "grace", "analyst"),
            (3, "linus", "analyst"),
        ],
    )
    conn.commit()
    conn.close()
    return db_path


@pytest.fixture
def sample_rows():
    """Provide result rows shaped like a materialized query result."""
    return [
        {"id": 1, "name": "ada", "role": "admin"},
        {"id": 2, "name": "grace", "role": "analyst"},
    ]
