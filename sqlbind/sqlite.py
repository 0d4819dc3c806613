"""SQLite implementation of the Connection and Cursor interfaces.

The database is opened with ``isolation_level=None`` so every statement
commits on its own. Transactions are not offered by this backend.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Optional, Tuple

from .connection import Connection, ScalarRow
from .cursor import Cursor, StepResult
from .debug_util import DebugUtil
from .errors import ErrorKind
from .interfaces import NativeCursorProtocol
from .types import BackendType, Feature

logger = logging.getLogger(__name__)

_BUSY_MARKERS = ("locked", "busy")


class SqliteConnection(Connection):
    """Connection to an SQLite database file.

    The connect target is a file name, ``:memory:`` or a ``file:`` URI.
    """

    backend_type = BackendType.SQLITE
    SUPPORTED_FEATURES = Feature.AUTOTRIM
    DEFAULT_FEATURES = Feature.AUTOTRIM

    def __init__(self, debug_util: Optional[DebugUtil] = None) -> None:
        self._conn: Optional[sqlite3.Connection] = None
        super().__init__(debug_util)

    @property
    def native(self) -> Optional[sqlite3.Connection]:
        """The underlying sqlite3 connection, None when disconnected."""
        return self._conn

    def _classify(self, exc: Exception, default: ErrorKind) -> ErrorKind:
        if isinstance(exc, sqlite3.OperationalError):
            message = str(exc).lower()
            if any(marker in message for marker in _BUSY_MARKERS):
                return ErrorKind.BUSY
        if isinstance(exc, sqlite3.ProgrammingError) and "closed" in str(exc).lower():
            self._mark_lost()
            return ErrorKind.NOT_CONNECTED
        return default

    def _run(
        self,
        sql: str,
        what: str,
        params: Tuple[object, ...] = (),
        kind: ErrorKind = ErrorKind.QUERY_ERROR,
        cursor: Optional[Cursor] = None,
    ) -> Optional[NativeCursorProtocol]:
        """Execute one statement, returning the native cursor or None on failure."""
        if self._conn is None:
            self._report(ErrorKind.NOT_CONNECTED, f"{what}: no connection to the database", cursor=cursor)
            return None
        native = None
        try:
            native = self._conn.cursor()
            native.execute(sql, params)
        except sqlite3.Error as exc:
            if native is not None:
                native.close()
            logger.error("%s failed: %s", what, exc)
            self._report(self._classify(exc, kind), f"{what} failed", exc, cursor=cursor)
            return None
        return native

    def _open(self, target: str) -> bool:
        try:
            self._conn = sqlite3.connect(
                target, isolation_level=None, uri=target.startswith("file:")
            )
        except sqlite3.Error as exc:
            logger.error("SQLite open failed: %s", exc)
            self._report(ErrorKind.CONNECTION_FAILED, f"Connect: cannot open {target}", exc)
            return False
        return True

    def _close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except sqlite3.Error as exc:
            logger.error("Error closing SQLite database: %s", exc)

    def _new_cursor(self) -> Cursor:
        return SqliteCursor(self)

    def _not_supported(self, what: str) -> bool:
        self.errors.set(ErrorKind.NOT_SUPPORTED, f"{what}: transactions are not supported by SQLite")
        return False

    def _begin(self) -> bool:
        return self._not_supported("StartTransaction")

    def _commit(self) -> bool:
        return self._not_supported("Commit")

    def _rollback(self) -> bool:
        return self._not_supported("RollBack")

    def _fetch_scalar(self, query: str) -> ScalarRow:
        native = self._run(query, "ExecuteScalar")
        if native is None:
            return False, None
        try:
            return True, native.fetchone()
        except sqlite3.Error as exc:
            self._report(self._classify(exc, ErrorKind.QUERY_ERROR), "ExecuteScalar: step failed", exc)
            return False, None
        finally:
            native.close()

    def _modify(self, sql: str) -> int:
        native = self._run(sql, "ExecuteModify")
        if native is None:
            return -1
        try:
            return max(native.rowcount, 0)
        finally:
            native.close()

    def _update_structure(self, sql: str) -> bool:
        if self._conn is None:
            self._report(ErrorKind.NOT_CONNECTED, "UpdateStructure: no connection to the database")
            return False
        try:
            self._conn.executescript(sql)
        except sqlite3.Error as exc:
            logger.error("UpdateStructure failed: %s", exc)
            self._report(self._classify(exc, ErrorKind.QUERY_ERROR), "UpdateStructure failed", exc)
            return False
        return True

    def _insert_id(self) -> int:
        native = self._run("SELECT last_insert_rowid()", "GetInsertId")
        if native is None:
            return 0
        try:
            row = native.fetchone()
        finally:
            native.close()
        return int(row[0]) if row and row[0] is not None else 0

    def _table_exists(self, name: str) -> bool:
        native = self._run(
            "SELECT rowid FROM sqlite_master WHERE type = 'table' AND tbl_name = ?",
            "FindSchemaItem",
            params=(name,),
            kind=ErrorKind.SCHEMA_ERROR,
        )
        if native is None:
            return False
        try:
            return native.fetchone() is not None
        finally:
            native.close()

    def is_connect_ok(self) -> bool:
        """True while the database handle is open."""
        return self._conn is not None

    def reset_connection(self) -> bool:
        """Nothing to re-establish for a local file; reports the connection state."""
        return self.is_connected

    def _server_name(self) -> str:
        return ""

    def _db_name(self) -> str:
        return self._target

    def _port(self) -> int:
        return 0


class SqliteCursor(Cursor):
    """Cursor stepping through an SQLite result one row at a time."""

    def __init__(self, connection: SqliteConnection) -> None:
        super().__init__(connection)
        self._lite = connection
        self._native: Optional[NativeCursorProtocol] = None
        self._handle: Optional[sqlite3.Connection] = None
        self._current: Tuple[object, ...] = ()

    def _execute(self, sql: str) -> bool:
        self._native = self._lite._run(sql, "Query", cursor=self)
        self._handle = self._lite._conn if self._native is not None else None
        return self._native is not None

    def _is_stale(self) -> bool:
        """True when the statement belongs to a database handle since closed."""
        return self._handle is not self._lite._conn

    def _step(self) -> StepResult:
        if self._native is None:
            return StepResult.DONE
        if self._is_stale():
            self._lite._report(
                ErrorKind.NOT_CONNECTED, "GetNext: statement belongs to a closed connection", cursor=self
            )
            return StepResult.ERROR
        try:
            row = self._native.fetchone()
        except sqlite3.Error as exc:
            kind = self._lite._classify(exc, ErrorKind.QUERY_ERROR)
            self._lite._report(kind, "GetNext: step failed", exc, cursor=self)
            return StepResult.BUSY if kind == ErrorKind.BUSY else StepResult.ERROR
        if row is None:
            return StepResult.DONE
        self._current = tuple(row)
        return StepResult.ROW

    def _column(self, index: int) -> object:
        return self._current[index]

    def _column_count(self) -> int:
        if self._native is None or self._native.description is None:
            return 0
        return len(self._native.description)

    def _release(self) -> None:
        stale = self._is_stale()
        native, self._native = self._native, None
        self._current = ()
        self._handle = None
        if native is None or stale:
            return
        try:
            native.close()
        except sqlite3.Error as exc:
            logger.error("Error closing SQLite cursor: %s", exc)
