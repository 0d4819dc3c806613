"""Thin database abstraction binding query results to typed fields.

One API over a transactional PostgreSQL backend and an embedded SQLite
backend: connections, typed scalar queries, bound-field cursors, explicit
transactions and error reporting through return values plus a last-error
description.
"""

from .binding import BoundField, FieldBindingList, Slot, bind_attribute
from .config import PostgresSettings
from .connection import NO_CONNECTION, Connection
from .cursor import Cursor, RecordSet, StepResult
from .debug_util import DebugUtil
from .errors import ErrorAccumulator, ErrorKind, ErrorRecord, exception_for
from .exceptions import (
    BindingError,
    BusyError,
    ConversionError,
    DatabaseError,
    DBConnectionError,
    NotConnectedError,
    NotSupportedError,
    QueryError,
    SchemaError,
    TransactionError,
)
from .factory import connect, create_connection
from .postgres import PostgresConnection, PostgresCursor
from .sqlite import SqliteConnection, SqliteCursor
from .types import (
    BackendType,
    ConnectionState,
    CursorState,
    Feature,
    LogicalType,
    SchemaType,
    TimeStruct,
)

__all__ = [
    "BackendType",
    "BindingError",
    "BoundField",
    "BusyError",
    "Connection",
    "ConnectionState",
    "ConversionError",
    "Cursor",
    "CursorState",
    "DatabaseError",
    "DBConnectionError",
    "DebugUtil",
    "ErrorAccumulator",
    "ErrorKind",
    "ErrorRecord",
    "Feature",
    "FieldBindingList",
    "LogicalType",
    "NO_CONNECTION",
    "NotConnectedError",
    "NotSupportedError",
    "PostgresConnection",
    "PostgresCursor",
    "PostgresSettings",
    "QueryError",
    "RecordSet",
    "SchemaError",
    "SchemaType",
    "Slot",
    "SqliteConnection",
    "SqliteCursor",
    "StepResult",
    "TimeStruct",
    "TransactionError",
    "bind_attribute",
    "connect",
    "create_connection",
    "exception_for",
]
