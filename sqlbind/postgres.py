"""PostgreSQL implementation of the Connection and Cursor interfaces.

Uses psycopg2 in autocommit mode; transactions are explicit BEGIN, COMMIT and
ROLLBACK commands. A query result is read completely into a row buffer that
get_next() walks through until the cursor is reset.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence, Tuple

import psycopg2

from .connection import Connection, ScalarRow
from .cursor import Cursor, StepResult
from .debug_util import DebugUtil
from .errors import ErrorKind
from .interfaces import NativeCursorProtocol
from .types import BackendType, Feature

logger = logging.getLogger(__name__)

_INSERT_ID_SAVEPOINT = "sqlbind_insert_id"


class PostgresConnection(Connection):
    """Connection to a PostgreSQL server.

    Example:
        >>> db = PostgresConnection()
        >>> db.connect("host=localhost dbname=app user=app connect_timeout=10")
    """

    backend_type = BackendType.POSTGRES
    SUPPORTED_FEATURES = Feature.AUTOTRIM | Feature.TRANSACTIONS
    DEFAULT_FEATURES = Feature.AUTOTRIM | Feature.TRANSACTIONS

    def __init__(self, debug_util: Optional[DebugUtil] = None) -> None:
        """Initialize a disconnected PostgreSQL connection."""
        self._conn: Optional["psycopg2.extensions.connection"] = None
        super().__init__(debug_util)

    @property
    def native(self) -> Optional["psycopg2.extensions.connection"]:
        """The underlying psycopg2 connection, None when disconnected."""
        return self._conn

    # ------------------------------------------------------------------
    # Native plumbing
    # ------------------------------------------------------------------
    def _classify(self, exc: Exception, default: ErrorKind) -> ErrorKind:
        """Map a psycopg2 exception onto an error kind.

        A connection the server closed is forgotten so that later calls fail
        with NOT_CONNECTED until connect() succeeds again.
        """
        if isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError)):
            if self._conn is None or self._conn.closed:
                self._mark_lost()
                return ErrorKind.NOT_CONNECTED
        return default

    def _drain_notices(self) -> None:
        """Log and discard server notices collected by psycopg2."""
        if self._conn is None or not self._conn.notices:
            return
        for notice in self._conn.notices:
            logger.info("PostgreSQL: %s", notice.strip())
        del self._conn.notices[:]

    def _run(
        self,
        sql: str,
        what: str,
        params: Tuple[object, ...] = (),
        kind: ErrorKind = ErrorKind.QUERY_ERROR,
        cursor: Optional[Cursor] = None,
    ) -> Optional[NativeCursorProtocol]:
        """Execute ``sql`` on a fresh native cursor.

        Returns:
            The executed native cursor (caller closes it), or None after
            recording the failure.
        """
        if self._conn is None:
            self._report(ErrorKind.NOT_CONNECTED, f"{what}: no connection to the database", cursor=cursor)
            return None
        native = None
        try:
            native = self._conn.cursor()
            if params:
                native.execute(sql, params)
            else:
                native.execute(sql)
        except psycopg2.Error as exc:
            if native is not None:
                native.close()
            logger.error("%s failed: %s", what, exc)
            self._report(self._classify(exc, kind), f"{what} failed", exc, cursor=cursor)
            return None
        finally:
            self._drain_notices()
        return native

    # ------------------------------------------------------------------
    # Connection hooks
    # ------------------------------------------------------------------
    def _open(self, target: str) -> bool:
        try:
            conn = psycopg2.connect(target)
        except psycopg2.Error as exc:
            logger.error("PostgreSQL connection failed: %s", exc)
            self._report(ErrorKind.CONNECTION_FAILED, "Connect: connection failure", exc)
            return False
        if conn.closed:
            self._report(ErrorKind.CONNECTION_FAILED, "Connect: server closed the connection")
            return False
        conn.autocommit = True
        self._conn = conn
        logger.info("PostgreSQL client encoding %s", conn.encoding)
        return True

    def _close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is None:
            return
        try:
            conn.close()
        except psycopg2.Error as exc:
            logger.error("Error closing PostgreSQL connection: %s", exc)

    def _new_cursor(self) -> Cursor:
        return PostgresCursor(self)

    def _simple_command(self, sql: str, what: str) -> bool:
        native = self._run(sql, what)
        if native is None:
            return False
        native.close()
        return True

    def _begin(self) -> bool:
        return self._simple_command("BEGIN", "StartTransaction")

    def _commit(self) -> bool:
        return self._simple_command("COMMIT", "Commit")

    def _rollback(self) -> bool:
        return self._simple_command("ROLLBACK", "RollBack")

    def _fetch_scalar(self, query: str) -> ScalarRow:
        native = self._run(query, "ExecuteScalar")
        if native is None:
            return False, None
        try:
            if native.description is None:
                self._report(ErrorKind.QUERY_ERROR, "ExecuteScalar: statement returned no tuples")
                return False, None
            return True, native.fetchone()
        except psycopg2.Error as exc:
            self._report(self._classify(exc, ErrorKind.QUERY_ERROR), "ExecuteScalar: fetch failed", exc)
            return False, None
        finally:
            native.close()

    def _modify(self, sql: str) -> int:
        native = self._run(sql, "ExecuteModify")
        if native is None:
            return -1
        try:
            if native.description is not None:
                self._report(ErrorKind.QUERY_ERROR, "ExecuteModify: statement returned tuples")
                return -1
            return max(native.rowcount, 0)
        finally:
            native.close()

    def _update_structure(self, sql: str) -> bool:
        native = self._run(sql, "UpdateStructure")
        if native is None:
            return False
        try:
            if native.description is not None:
                self._report(ErrorKind.QUERY_ERROR, "UpdateStructure: statement returned tuples")
                return False
            return True
        finally:
            native.close()

    def _insert_id(self) -> int:
        # lastval() fails when no sequence was used in this session; inside a
        # transaction that failure must not abort the caller's work.
        guarded = self.is_transaction
        if guarded and not self._simple_command(f"SAVEPOINT {_INSERT_ID_SAVEPOINT}", "GetInsertId"):
            return 0
        native = self._run("SELECT lastval()", "GetInsertId")
        if native is None:
            if guarded:
                self._simple_command(f"ROLLBACK TO SAVEPOINT {_INSERT_ID_SAVEPOINT}", "GetInsertId")
            return 0
        try:
            row = native.fetchone()
        finally:
            native.close()
        if guarded:
            self._simple_command(f"RELEASE SAVEPOINT {_INSERT_ID_SAVEPOINT}", "GetInsertId")
        if not row or row[0] is None:
            return 0
        return int(row[0])

    def _table_exists(self, name: str) -> bool:
        native = self._run(
            "SELECT 1 FROM information_schema.tables "
            "WHERE table_schema = current_schema() AND table_name = %s "
            "AND table_type = 'BASE TABLE'",
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
        """True if psycopg2 still considers the connection open."""
        return self._conn is not None and self._conn.closed == 0

    def reset_connection(self) -> bool:
        """Close and reopen the connection with the last connection string.

        Any active transaction is lost.
        """
        if not self._target:
            self._report(ErrorKind.NOT_CONNECTED, "ResetConnection: never connected")
            return False
        return self.connect(self._target) and self.is_connect_ok()

    def _server_name(self) -> str:
        return self._conn.info.host if self._conn is not None else ""

    def _db_name(self) -> str:
        return self._conn.info.dbname if self._conn is not None else ""

    def _port(self) -> int:
        return int(self._conn.info.port) if self._conn is not None else 0


class PostgresCursor(Cursor):
    """Cursor over a fully buffered PostgreSQL result."""

    def __init__(self, connection: PostgresConnection) -> None:
        """Attach the cursor to a PostgreSQL connection."""
        super().__init__(connection)
        self._pg = connection
        self._rows: List[Sequence[object]] = []
        self._columns = 0
        self._index = 0
        self._current: Sequence[object] = ()

    def _execute(self, sql: str) -> bool:
        native = self._pg._run(sql, "Query", cursor=self)
        if native is None:
            return False
        try:
            if native.description is None:
                self._pg._report(ErrorKind.QUERY_ERROR, "Query: statement returned no tuples", cursor=self)
                return False
            self._rows = list(native.fetchall())
            self._columns = len(native.description)
        except psycopg2.Error as exc:
            self._pg._report(
                self._pg._classify(exc, ErrorKind.QUERY_ERROR), "Query: fetch failed", exc, cursor=self
            )
            self._release()
            return False
        finally:
            native.close()
        self._index = 0
        return True

    def _step(self) -> StepResult:
        if self._index >= len(self._rows):
            return StepResult.DONE
        self._current = self._rows[self._index]
        self._index += 1
        return StepResult.ROW

    def _column(self, index: int) -> object:
        return self._current[index]

    def _column_count(self) -> int:
        return self._columns

    def _release(self) -> None:
        self._rows = []
        self._columns = 0
        self._index = 0
        self._current = ()
