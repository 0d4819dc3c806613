"""Error kinds and the connection-owned error accumulator.

Every fallible connection or cursor operation reports failure through its
return value and writes a human readable description here. The accumulator
keeps only the most recent failure (last writer wins).
"""

from __future__ import annotations

import enum
import io
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, NoReturn, Optional, Type

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

if TYPE_CHECKING:
    from .cursor import Cursor

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    """Kinds of failure reported by connections and cursors."""

    NOT_CONNECTED = "not_connected"
    INVALID_TARGET = "invalid_target"
    CONNECTION_FAILED = "connection_failed"
    TRANSACTION_ALREADY_ACTIVE = "transaction_already_active"
    NO_ACTIVE_TRANSACTION = "no_active_transaction"
    UNBOUND_QUERY = "unbound_query"
    EMPTY_STATEMENT = "empty_statement"
    QUERY_ERROR = "query_error"
    CONVERSION_ERROR = "conversion_error"
    SCHEMA_ERROR = "schema_error"
    INVALID_BINDING = "invalid_binding"
    NOT_SUPPORTED = "not_supported"
    BUSY = "busy"


_EXCEPTIONS: Dict[ErrorKind, Type[DatabaseError]] = {
    ErrorKind.NOT_CONNECTED: NotConnectedError,
    ErrorKind.INVALID_TARGET: DBConnectionError,
    ErrorKind.CONNECTION_FAILED: DBConnectionError,
    ErrorKind.TRANSACTION_ALREADY_ACTIVE: TransactionError,
    ErrorKind.NO_ACTIVE_TRANSACTION: TransactionError,
    ErrorKind.UNBOUND_QUERY: BindingError,
    ErrorKind.EMPTY_STATEMENT: QueryError,
    ErrorKind.QUERY_ERROR: QueryError,
    ErrorKind.CONVERSION_ERROR: ConversionError,
    ErrorKind.SCHEMA_ERROR: SchemaError,
    ErrorKind.INVALID_BINDING: BindingError,
    ErrorKind.NOT_SUPPORTED: NotSupportedError,
    ErrorKind.BUSY: BusyError,
}


def exception_for(kind: ErrorKind) -> Type[DatabaseError]:
    """Return the exception class matching an error kind."""
    return _EXCEPTIONS.get(kind, DatabaseError)


@dataclass(frozen=True)
class ErrorRecord:
    """Snapshot of one reported failure."""

    kind: ErrorKind
    description: str


class ErrorAccumulator:
    """Growable last-error text buffer shared by a connection and its cursors."""

    def __init__(self) -> None:
        """Create an empty accumulator."""
        self._buffer = io.StringIO()
        self._kind: Optional[ErrorKind] = None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Kind of the most recent failure, or None if nothing has failed."""
        return self._kind

    @property
    def description(self) -> str:
        """Accumulated description of the most recent failure."""
        return self._buffer.getvalue()

    @property
    def has_error(self) -> bool:
        """True if a failure has been recorded since the last clear()."""
        return self._kind is not None

    def set(self, kind: ErrorKind, text: str, cursor: Optional["Cursor"] = None) -> ErrorRecord:
        """Replace the current error with a new one.

        Args:
            kind: Kind of the failure.
            text: Human readable description.
            cursor: Cursor that caused the failure. The record is also stored on
                the cursor so it can be looked up per cursor later.

        Returns:
            The stored record.
        """
        self._buffer = io.StringIO()
        self._buffer.write(text)
        self._kind = kind
        record = self.snapshot()
        if cursor is not None:
            cursor.last_error = record
        logger.warning("%s: %s", kind.value, text)
        return record

    def append(self, text: str, cursor: Optional["Cursor"] = None) -> None:
        """Append native diagnostic text to the current description."""
        if not text:
            return
        if self._buffer.tell() > 0:
            self._buffer.write("\n")
        self._buffer.write(text.rstrip("\n"))
        if cursor is not None and self._kind is not None:
            cursor.last_error = self.snapshot()

    def clear(self) -> None:
        """Forget the recorded failure."""
        self._buffer = io.StringIO()
        self._kind = None

    def snapshot(self) -> ErrorRecord:
        """Return the current state as an immutable record.

        Raises:
            ValueError: If no failure has been recorded.
        """
        if self._kind is None:
            raise ValueError("No error has been recorded")
        return ErrorRecord(kind=self._kind, description=self.description)

    def raise_last(self) -> NoReturn:
        """Raise the exception matching the recorded failure.

        Raises:
            DatabaseError: Subclass chosen by the recorded kind.
            ValueError: If no failure has been recorded.
        """
        record = self.snapshot()
        raise exception_for(record.kind)(record.description)
