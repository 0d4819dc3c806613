"""Pytest configuration for the test suite."""

import contextlib
import sys
from pathlib import Path
from typing import Generator, Optional

import pytest

project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from sqlbind import SqliteConnection
from sqlbind.config import get_postgres_dsn
from sqlbind.debug_util import DebugUtil
from sqlbind.postgres import PostgresConnection

SIMPLE_TABLE_DDL = "CREATE TABLE simple (id INTEGER NOT NULL, name VARCHAR(64), age INTEGER)"
SIMPLE_ROWS = [
    (1, "Alice", 30),
    (2, "Bob", 25),
    (3, "Charlie", None),
    (4, "Dora  ", 41),
    (5, None, 19),
    (6, "O'Brien", 52),
]


def fill_simple(connection) -> None:
    """Create and fill the ``simple`` table on ``connection``."""
    assert connection.update_structure(SIMPLE_TABLE_DDL), connection.get_error_description()
    for row_id, name, age in SIMPLE_ROWS:
        name_sql = "NULL" if name is None else f"'{connection.clean_str(name)}'"
        age_sql = "NULL" if age is None else str(age)
        assert connection.execute_modify(
            f"INSERT INTO simple (id, name, age) VALUES ({row_id}, {name_sql}, {age_sql})"
        ) == 1


@pytest.fixture
def debug_util() -> DebugUtil:
    """DebugUtil in quiet mode so SQL traces go to the log only."""
    return DebugUtil("quiet")


@pytest.fixture
def sqlite_conn(tmp_path: Path, debug_util: DebugUtil) -> Generator[SqliteConnection, None, None]:
    """Connected SQLite connection on a fresh database file."""
    conn = SqliteConnection(debug_util)
    assert conn.connect(str(tmp_path / "test.db")), conn.get_error_description()
    try:
        yield conn
    finally:
        conn.disconnect()


@pytest.fixture
def simple_db(sqlite_conn: SqliteConnection) -> SqliteConnection:
    """SQLite connection with the ``simple`` table created and filled."""
    fill_simple(sqlite_conn)
    return sqlite_conn


@pytest.fixture(scope="session")
def pg_dsn() -> Generator[str, None, None]:
    """libpq connection string for a live PostgreSQL server.

    Uses SQLBIND_PG_DSN when set; otherwise starts a throwaway container through
    the Docker SDK. Skips when neither is available.
    """
    dsn: Optional[str] = get_postgres_dsn()
    if dsn:
        yield dsn
        return
    try:
        from postgres_container import PostgresContainer

        container = PostgresContainer()
    except Exception as exc:  # docker missing or daemon not reachable
        pytest.skip(f"PostgreSQL not available: {exc}")
    try:
        settings = container.start()
    except Exception as exc:
        container.remove()
        pytest.skip(f"Could not start PostgreSQL container: {exc}")
    try:
        yield settings.to_dsn()
    finally:
        container.remove()


@pytest.fixture
def pg_conn(pg_dsn: str, debug_util: DebugUtil) -> Generator[PostgresConnection, None, None]:
    """Connected PostgreSQL connection with no ``simple`` table."""
    conn = PostgresConnection(debug_util)
    if not conn.connect(pg_dsn):
        pytest.skip(f"PostgreSQL connection failed: {conn.get_error_description()}")
    conn.update_structure("DROP TABLE IF EXISTS simple")
    try:
        yield conn
    finally:
        with contextlib.suppress(Exception):
            if conn.is_transaction:
                conn.rollback()
            conn.update_structure("DROP TABLE IF EXISTS simple")
        conn.disconnect()
