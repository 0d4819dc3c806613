"""Connection base class: connection and transaction state, scalar helpers.

A Connection creates cursors, runs single value queries, modifications and
structure (DDL) commands, and owns the error accumulator every failing call
writes into. Fallible calls return False, -1 or a (False, value) pair and
leave a description readable through get_error_description().

Connections are not thread safe. Use each one from a single thread.
"""

from __future__ import annotations

import abc
import contextlib
import logging
from types import TracebackType
from typing import Callable, Optional, Sequence, Tuple, Type, cast

from .convert import ConvertedValue, convert, zero_value
from .cursor import Cursor, RecordSet
from .debug_util import DebugUtil
from .errors import ErrorAccumulator, ErrorKind
from .textutil import (
    ScratchBuffer,
    clean_html,
    clean_reverse,
    clean_str,
    clean_str_into,
    is_comma_decimal,
    print_number,
)
from .types import (
    BackendType,
    ConnectionState,
    Feature,
    LogicalType,
    SchemaType,
    TimeStruct,
)

logger = logging.getLogger(__name__)

NO_CONNECTION = "<No connection>"

# Native scalar fetch result: (ok, first row or None when the query gave no rows)
ScalarRow = Tuple[bool, Optional[Sequence[object]]]


class Connection(abc.ABC):
    """Connection to one relational engine.

    Subclasses implement the native hooks for their client library and set
    ``backend_type``, ``SUPPORTED_FEATURES`` and ``DEFAULT_FEATURES``.
    """

    backend_type: BackendType
    SUPPORTED_FEATURES: Feature = Feature.NONE
    DEFAULT_FEATURES: Feature = Feature.NONE

    def __init__(self, debug_util: Optional[DebugUtil] = None) -> None:
        """Initialize a disconnected connection.

        Args:
            debug_util: Optional DebugUtil instance for SQL trace output.
        """
        self.feat_support: Feature = self.SUPPORTED_FEATURES
        self.feat_on: Feature = self.DEFAULT_FEATURES
        self.errors = ErrorAccumulator()
        self.scratch = ScratchBuffer()
        self.debug_util = debug_util or DebugUtil()
        self._state = ConnectionState.DISCONNECTED
        self._target = ""

        # Databases expect a decimal point whatever the client locale says.
        self.comma_decimal = is_comma_decimal()
        if self.comma_decimal:
            logger.warning("Current locale has , as decimal separator")

    # ------------------------------------------------------------------
    # Native hooks
    # ------------------------------------------------------------------
    @abc.abstractmethod
    def _open(self, target: str) -> bool:
        """Open the native connection, recording CONNECTION_FAILED on failure."""

    @abc.abstractmethod
    def _close(self) -> None:
        """Close the native connection. Must not fail."""

    @abc.abstractmethod
    def _new_cursor(self) -> Cursor:
        """Return a backend cursor bound to this connection."""

    @abc.abstractmethod
    def _begin(self) -> bool:
        """Issue the engine's begin-transaction command."""

    @abc.abstractmethod
    def _commit(self) -> bool:
        """Issue the engine's commit command."""

    @abc.abstractmethod
    def _rollback(self) -> bool:
        """Issue the engine's rollback command."""

    @abc.abstractmethod
    def _fetch_scalar(self, query: str) -> ScalarRow:
        """Run ``query`` and return its first row."""

    @abc.abstractmethod
    def _modify(self, sql: str) -> int:
        """Run a modification, returning the affected row count or -1."""

    @abc.abstractmethod
    def _update_structure(self, sql: str) -> bool:
        """Run structure (DDL) commands."""

    @abc.abstractmethod
    def _insert_id(self) -> int:
        """Return the engine's most recently generated identifier or 0."""

    @abc.abstractmethod
    def _table_exists(self, name: str) -> bool:
        """Look the table ``name`` up in the engine's catalog."""

    @abc.abstractmethod
    def is_connect_ok(self) -> bool:
        """Check the native connection status."""

    @abc.abstractmethod
    def reset_connection(self) -> bool:
        """Re-establish the native connection with the last target."""

    @abc.abstractmethod
    def _server_name(self) -> str:
        ...

    @abc.abstractmethod
    def _db_name(self) -> str:
        ...

    @abc.abstractmethod
    def _port(self) -> int:
        ...

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------
    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True when connected, with or without an active transaction."""
        return self._state != ConnectionState.DISCONNECTED

    @property
    def is_transaction(self) -> bool:
        """True while a transaction is active."""
        return self._state == ConnectionState.TRANSACTION_ACTIVE

    @property
    def server_name(self) -> str:
        """Server host name, or "<No connection>"."""
        return self._server_name() if self.is_connected else NO_CONNECTION

    @property
    def db_name(self) -> str:
        """Database name, or "<No connection>"."""
        return self._db_name() if self.is_connected else NO_CONNECTION

    @property
    def port(self) -> int:
        """Server port, 0 when not applicable or not connected."""
        return self._port() if self.is_connected else 0

    def trace(self, sql: str) -> None:
        """Send a statement to the debug channel."""
        dbg_sql = sql.replace("\n", " ").strip()
        self.debug_util.debug_message(f"Executing SQL ({self.backend_type.value}): {dbg_sql}")

    def _report(
        self,
        kind: ErrorKind,
        text: str,
        exc: Optional[BaseException] = None,
        cursor: Optional[Cursor] = None,
    ) -> None:
        """Record a failure, appending native diagnostic text from ``exc``."""
        self.errors.set(kind, text, cursor=cursor)
        if exc is not None:
            self.errors.append(str(exc).strip() or type(exc).__name__, cursor=cursor)

    def _require_connection(self, what: str) -> bool:
        if self.is_connected:
            return True
        self.errors.set(ErrorKind.NOT_CONNECTED, f"{what}: no connection to the database")
        return False

    def _mark_lost(self) -> None:
        """Forget a native connection the engine reported as gone."""
        logger.error("Connection to %s lost", self.backend_type.value)
        self._close()
        self._state = ConnectionState.DISCONNECTED

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------
    def connect(self, target: Optional[str]) -> bool:
        """Connect to the database.

        Args:
            target: Backend specific connection target: a libpq connection
                string for PostgreSQL, a file name for SQLite.

        Returns:
            True on success. False if the target is empty or the engine refused
            the connection; see get_error_description().
        """
        if not target:
            self.errors.set(ErrorKind.INVALID_TARGET, "Connect: empty or missing connection target")
            return False
        if self.is_connected:
            self.disconnect()
        if not self._open(target):
            self._state = ConnectionState.DISCONNECTED
            return False
        self._target = target
        self._state = ConnectionState.CONNECTED
        self.feat_on = self.DEFAULT_FEATURES
        logger.info("Connected to %s database %s", self.backend_type.value, self._db_name())
        return True

    def disconnect(self) -> bool:
        """Close the connection. Always succeeds and may be called repeatedly."""
        self._close()
        self._state = ConnectionState.DISCONNECTED
        return True

    def create_cursor(self) -> Optional[Cursor]:
        """Create a cursor sharing this connection.

        The connection does not keep track of the cursors it creates.

        Returns:
            The cursor, or None when not connected.
        """
        if not self._require_connection("CreateCursor"):
            return None
        return self._new_cursor()

    def create_record_cursor(self, record: RecordSet) -> bool:
        """Create a cursor and hand it to ``record`` so it can bind its fields."""
        cursor = self.create_cursor()
        if cursor is None:
            return False
        record.attach(cursor)
        return True

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def start_transaction(self) -> bool:
        """Start a transaction.

        There can be only one transaction per connection. A second call fails
        and leaves the current transaction running.

        Returns:
            True if the transaction was started.
        """
        if not self._require_connection("StartTransaction"):
            return False
        if not self.is_feature_on(Feature.TRANSACTIONS):
            self.errors.set(
                ErrorKind.NOT_SUPPORTED,
                f"Transactions are not supported by the {self.backend_type.value} backend",
            )
            return False
        if self.is_transaction:
            self.errors.set(ErrorKind.TRANSACTION_ALREADY_ACTIVE, "Transaction is already on")
            return False
        self.trace("BEGIN")
        if not self._begin():
            return False
        self._state = ConnectionState.TRANSACTION_ACTIVE
        return True

    def commit(self) -> bool:
        """Commit the active transaction.

        The transaction ends whether or not the engine accepted the commit.
        """
        return self._end_transaction("Commit", self._commit)

    def rollback(self) -> bool:
        """Roll the active transaction back.

        The transaction ends whether or not the engine accepted the rollback.
        """
        return self._end_transaction("RollBack", self._rollback)

    def _end_transaction(self, what: str, operation: Callable[[], bool]) -> bool:
        if not self._require_connection(what):
            return False
        if not self.is_feature_supported(Feature.TRANSACTIONS):
            self.errors.set(
                ErrorKind.NOT_SUPPORTED,
                f"Transactions are not supported by the {self.backend_type.value} backend",
            )
            return False
        if not self.is_transaction:
            self.errors.set(ErrorKind.NO_ACTIVE_TRANSACTION, f"{what}: the transaction has not been started")
            return False
        self.trace(what.upper())
        ok = operation()
        if self.is_connected:
            self._state = ConnectionState.CONNECTED
        return ok

    # ------------------------------------------------------------------
    # Single statement helpers
    # ------------------------------------------------------------------
    def execute_scalar(self, logical_type: LogicalType, query: str) -> Tuple[bool, ConvertedValue]:
        """Run a query expected to return one row with one column.

        Args:
            logical_type: Type the value is converted to.
            query: SELECT statement.

        Returns:
            (ok, value). On failure, an empty result or a NULL value, ok is
            False and value is the zero value of the type.

        Raises:
            ConversionError: If ``logical_type`` is not a LogicalType.
        """
        zero = zero_value(logical_type)
        if not query:
            self.errors.set(ErrorKind.EMPTY_STATEMENT, "ExecuteScalar: empty query")
            return False, zero
        if not self._require_connection("ExecuteScalar"):
            return False, zero
        self.trace(query)
        ok, row = self._fetch_scalar(query)
        if not ok:
            return False, zero
        if not row:
            self.errors.set(ErrorKind.QUERY_ERROR, "ExecuteScalar: query returned no rows")
            return False, zero
        try:
            counted, value = convert(
                logical_type,
                row[0],
                autotrim=self.is_feature_on(Feature.AUTOTRIM),
                comma_decimal=self.comma_decimal,
            )
        except (ValueError, OverflowError) as exc:
            self._report(ErrorKind.CONVERSION_ERROR, "ExecuteScalar: conversion failed", exc)
            return False, zero
        if not counted:
            self.errors.set(ErrorKind.QUERY_ERROR, "ExecuteScalar: query returned NULL")
            return False, zero
        return True, value

    def execute_int(self, query: str) -> Tuple[bool, int]:
        """Run a query returning a single 32 bit integer."""
        return cast(Tuple[bool, int], self.execute_scalar(LogicalType.INT32, query))

    def execute_long(self, query: str) -> Tuple[bool, int]:
        """Run a query returning a single 64 bit integer."""
        return cast(Tuple[bool, int], self.execute_scalar(LogicalType.INT64, query))

    def execute_double(self, query: str) -> Tuple[bool, float]:
        """Run a query returning a single numeric value."""
        return cast(Tuple[bool, float], self.execute_scalar(LogicalType.NUMERIC, query))

    def execute_bool(self, query: str) -> Tuple[bool, bool]:
        """Run a query returning a single boolean."""
        return cast(Tuple[bool, bool], self.execute_scalar(LogicalType.BOOL, query))

    def execute_str(self, query: str) -> Tuple[bool, str]:
        """Run a query returning a single text value, trimmed when AUTOTRIM is on."""
        return cast(Tuple[bool, str], self.execute_scalar(LogicalType.TEXT, query))

    def execute_date(self, query: str) -> Tuple[bool, TimeStruct]:
        """Run a query returning a single date or timestamp."""
        return cast(Tuple[bool, TimeStruct], self.execute_scalar(LogicalType.TIMESTAMP, query))

    def execute_modify(self, sql: str) -> int:
        """Run an INSERT, UPDATE or DELETE statement.

        Returns:
            Number of affected rows (0 is a valid result), or -1 on error.
        """
        if not sql:
            self.errors.set(ErrorKind.EMPTY_STATEMENT, "ExecuteModify: empty statement")
            return -1
        if not self._require_connection("ExecuteModify"):
            return -1
        self.trace(sql)
        return self._modify(sql)

    def update_structure(self, sql: str) -> bool:
        """Run CREATE, DROP or ALTER commands.

        Returns:
            True if the engine accepted the command.
        """
        if not sql:
            self.errors.set(ErrorKind.EMPTY_STATEMENT, "UpdateStructure: empty command")
            return False
        if not self._require_connection("UpdateStructure"):
            return False
        self.trace(sql)
        return self._update_structure(sql)

    def get_insert_id(self) -> int:
        """Return the identifier generated by the last INSERT, or 0 if unavailable."""
        if not self._require_connection("GetInsertId"):
            return 0
        return self._insert_id()

    def find_schema_item(self, kind: SchemaType, name: str) -> bool:
        """Check whether a schema item exists.

        Only tables are looked up; views always give False.
        """
        if not self._require_connection("FindSchemaItem"):
            return False
        if kind != SchemaType.TABLE:
            logger.debug("FindSchemaItem: %s lookup is not implemented", kind.value)
            return False
        if not name:
            self.errors.set(ErrorKind.SCHEMA_ERROR, "FindSchemaItem: empty name")
            return False
        return self._table_exists(name)

    def get_error_description(self, cursor: Optional[Cursor] = None) -> str:
        """Describe the most recent failure.

        Args:
            cursor: Cursor whose own last failure should be described instead.

        Returns:
            The description, empty if nothing has failed.
        """
        if cursor is not None:
            return cursor.last_error.description if cursor.last_error else ""
        return self.errors.description

    @property
    def last_error_kind(self) -> Optional[ErrorKind]:
        """Kind of the most recent failure."""
        return self.errors.kind

    # ------------------------------------------------------------------
    # Features
    # ------------------------------------------------------------------
    def is_feature_supported(self, feature: Feature) -> bool:
        """True if the backend supports every feature in ``feature``."""
        return bool(feature) and (self.feat_support & feature) == feature

    def is_feature_on(self, feature: Feature) -> bool:
        """True if every feature in ``feature`` is currently enabled."""
        return bool(feature) and (self.feat_on & feature) == feature

    def set_feature(self, feature: Feature) -> bool:
        """Enable supported features. Unsupported features change nothing.

        Returns:
            True if every requested feature is supported and now enabled.
        """
        if not self.is_feature_supported(feature):
            return False
        self.feat_on |= feature
        return True

    def unset_feature(self, feature: Feature) -> bool:
        """Disable features. Returns False if a feature is not supported."""
        if not self.is_feature_supported(feature):
            return False
        self.feat_on &= ~feature
        return True

    # ------------------------------------------------------------------
    # Text helpers
    # ------------------------------------------------------------------
    def clean_str(self, text: str) -> str:
        """Escape text for a quoted SQL literal using the scratch buffer."""
        return clean_str_into(text, self.scratch)

    @staticmethod
    def clean_str_copy(text: str) -> str:
        """Escape text for a quoted SQL literal without touching any buffer."""
        return clean_str(text)

    @staticmethod
    def clean_html(text: str) -> str:
        """Double single quotes only, keeping carriage returns."""
        return clean_html(text)

    @staticmethod
    def clean_reverse(text: str) -> str:
        """Turn backslash escapes back into the characters they stand for."""
        return clean_reverse(text)

    def print_number(self, number: float, fmt: str = "%f") -> str:
        """Format a float as a SQL numeric literal regardless of locale."""
        return print_number(number, fmt, self.comma_decimal)

    # ------------------------------------------------------------------
    # Python protocols
    # ------------------------------------------------------------------
    def __enter__(self) -> "Connection":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.disconnect()

    def __del__(self) -> None:
        with contextlib.suppress(Exception):
            self._close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self._state.value})"
