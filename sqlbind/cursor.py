"""Cursor (row set) state machine shared by all backends.

Use the bind / query / get_next sequence to read rows::

    id_slot, name_slot = Slot(LogicalType.INT32), Slot(LogicalType.TEXT)
    cursor = connection.create_cursor()
    cursor.bind(LogicalType.INT32, id_slot)
    cursor.bind(LogicalType.TEXT, name_slot)
    if cursor.query("SELECT id, name FROM simple"):
        while cursor.get_next():
            print(id_slot.value, name_slot.value)

Backends implement the native hooks (_execute, _step, _column, _column_count,
_release); everything else, including the type conversion loop, lives here.
"""

from __future__ import annotations

import abc
import enum
import io
import logging
from types import TracebackType
from typing import TYPE_CHECKING, Iterator, Optional, Type

from .binding import BindTarget, FieldBindingList, bind_attribute
from .convert import convert
from .errors import ErrorKind, ErrorRecord
from .exceptions import ConversionError
from .types import CursorState, Feature, LogicalType

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)


class StepResult(enum.Enum):
    """Outcome of advancing the native result by one row."""

    ROW = "row"
    DONE = "done"
    BUSY = "busy"
    ERROR = "error"


class Cursor(abc.ABC):
    """Executes queries on its connection and yields rows into bound fields.

    Cursors are created by Connection.create_cursor() and keep a reference to
    that connection. A cursor holds at most one open native result at a time.
    Not safe for concurrent use from several threads.
    """

    def __init__(self, connection: "Connection") -> None:
        """Attach the cursor to ``connection``."""
        self._connection = connection
        self._fields = FieldBindingList()
        self._state = CursorState.UNBOUND
        self._open = False
        self._row_count = 0
        self._last_step: Optional[StepResult] = None
        self.statement = io.StringIO()
        self.last_error: Optional[ErrorRecord] = None

    # ------------------------------------------------------------------
    # Native hooks
    # ------------------------------------------------------------------
    @abc.abstractmethod
    def _execute(self, sql: str) -> bool:
        """Send ``sql`` to the engine and keep the native result.

        Implementations record the failure on the connection and return False
        when the engine rejects the statement.
        """

    @abc.abstractmethod
    def _step(self) -> StepResult:
        """Advance the native result to the next row."""

    @abc.abstractmethod
    def _column(self, index: int) -> object:
        """Return the native value of column ``index`` in the current row."""

    @abc.abstractmethod
    def _column_count(self) -> int:
        """Return the number of columns in the native result."""

    @abc.abstractmethod
    def _release(self) -> None:
        """Release the native result."""

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------
    @property
    def connection(self) -> "Connection":
        """Connection this cursor runs on."""
        return self._connection

    @property
    def state(self) -> CursorState:
        """Current cursor state."""
        return self._state

    @property
    def field_count(self) -> int:
        """Number of bound fields."""
        return len(self._fields)

    @property
    def row_count(self) -> int:
        """Number of rows fetched from the current or last result."""
        return self._row_count

    @property
    def is_open(self) -> bool:
        """True while a native result is held."""
        return self._open

    # ------------------------------------------------------------------
    # Binding and statement text
    # ------------------------------------------------------------------
    def bind(self, logical_type: LogicalType, target: Optional[BindTarget]) -> bool:
        """Bind the next SELECT column to ``target``.

        Args:
            logical_type: Type the column is converted to.
            target: Slot or writer callable receiving the value.

        Returns:
            True on success, False if the type or target is invalid.
        """
        if not self._fields.bind(logical_type, target):
            self._connection.errors.set(
                ErrorKind.INVALID_BINDING,
                f"Invalid binding: type={logical_type!r} target={target!r}",
                cursor=self,
            )
            return False
        if self._state == CursorState.UNBOUND:
            self._state = CursorState.BOUND
        return True

    def unbind_all(self) -> None:
        """Drop every bound field and release any open result."""
        self.reset()
        self._fields.clear()
        self._state = CursorState.UNBOUND

    def set_statement(self, sql: str) -> None:
        """Replace the query buffer with ``sql``."""
        self.statement = io.StringIO()
        self.statement.write(sql)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------
    def query(self, sql: Optional[str] = None) -> bool:
        """Send the query to the engine.

        This does not move any row into the bound fields; call get_next() for
        that. An open result from an earlier query is released first.

        Args:
            sql: Statement text. When None the text already written to
                ``statement`` is used.

        Returns:
            True on success, False on error. See Connection.get_error_description().
        """
        if sql is not None:
            self.set_statement(sql)
        errors = self._connection.errors
        if not self._fields:
            errors.set(ErrorKind.UNBOUND_QUERY, "Query called without bound fields", cursor=self)
            return False
        text = self.statement.getvalue()
        if not text.strip():
            errors.set(ErrorKind.EMPTY_STATEMENT, "Empty query statement", cursor=self)
            return False
        if not self._connection.is_connected:
            errors.set(ErrorKind.NOT_CONNECTED, "Query called without a connection", cursor=self)
            return False
        if self._open:
            self.reset()

        self._connection.trace(text)
        if not self._execute(text):
            self.reset()
            return False
        self._open = True
        self._row_count = 0
        self._last_step = None
        self._state = CursorState.EXECUTING
        return True

    def get_next(self) -> int:
        """Move the next row of the result into the bound fields.

        Fields are filled in bind order. A NULL column leaves the zero value of
        its type in the field and is not counted. When the result has fewer
        columns than bound fields the extra fields are left alone.

        Returns:
            Number of non-NULL fields converted. 0 when there are no more rows,
            in which case the result is released and the bound fields are left
            unaltered.
        """
        if not self._open:
            return 0
        step = self._step()
        self._last_step = step
        if step == StepResult.BUSY:
            return 0
        if step != StepResult.ROW:
            self._finish()
            return 0
        self._row_count += 1
        return self._convert_row()

    def reset(self) -> None:
        """Release the open result, if any. Safe to call in any state."""
        if self._open:
            self._release()
            self._open = False
            self._state = CursorState.RESET
        elif self._state == CursorState.EXHAUSTED:
            self._state = CursorState.RESET
        self._row_count = 0

    def _finish(self) -> None:
        self._release()
        self._open = False
        self._state = CursorState.EXHAUSTED

    def _convert_row(self) -> int:
        autotrim = self._connection.is_feature_on(Feature.AUTOTRIM)
        comma_decimal = self._connection.comma_decimal
        available = self._column_count()
        count = 0
        for index, field in enumerate(self._fields):
            if index >= available:
                break
            try:
                counted, value = convert(
                    field.logical_type,
                    self._column(index),
                    autotrim=autotrim,
                    comma_decimal=comma_decimal,
                )
            except (ConversionError, ValueError, OverflowError) as exc:
                self._connection.errors.set(
                    ErrorKind.CONVERSION_ERROR,
                    f"Column {index} ({field.logical_type.name}): {exc}",
                    cursor=self,
                )
                continue
            field.write(value)
            if counted:
                count += 1
        return count

    # ------------------------------------------------------------------
    # Python protocols
    # ------------------------------------------------------------------
    def __iter__(self) -> Iterator[int]:
        """Yield the converted field count of every remaining row.

        Unlike a plain get_next() loop this also visits rows where every
        bound column is NULL. Stops on exhaustion or when the engine is busy.
        """
        while self._open:
            count = self.get_next()
            if self._last_step != StepResult.ROW:
                return
            yield count

    def __enter__(self) -> "Cursor":
        return self

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.reset()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(state={self._state.value}, "
            f"fields={len(self._fields)}, rows={self._row_count})"
        )


class RecordSet(abc.ABC):
    """Base class for record objects that bind their own attributes.

    Subclasses bind attributes in post_create() and are attached with
    Connection.create_record_cursor()::

        class Simple(RecordSet):
            def __init__(self):
                super().__init__()
                self.id = 0
                self.name = ""

            def post_create(self, cursor):
                self.bind_field(LogicalType.INT32, "id")
                self.bind_field(LogicalType.TEXT, "name")
    """

    def __init__(self) -> None:
        self.rs: Optional[Cursor] = None

    @abc.abstractmethod
    def post_create(self, cursor: Cursor) -> None:
        """Bind fields on the freshly created cursor."""

    def attach(self, cursor: Cursor) -> None:
        """Take ownership of ``cursor`` and let the subclass bind its fields."""
        if self.rs is not None:
            self.rs.reset()
        self.rs = cursor
        self.post_create(cursor)

    def bind_field(self, logical_type: LogicalType, attribute: str) -> bool:
        """Bind the next column to attribute ``attribute`` of this record."""
        if self.rs is None:
            return False
        return self.rs.bind(logical_type, bind_attribute(self, attribute))

    def query(self, sql: Optional[str] = None) -> bool:
        """Run ``sql`` on the attached cursor."""
        return self.rs.query(sql) if self.rs is not None else False

    def get_next(self) -> int:
        """Fetch the next row into this record's attributes."""
        return self.rs.get_next() if self.rs is not None else 0

    def reset(self) -> None:
        """Release the attached cursor's open result."""
        if self.rs is not None:
            self.rs.reset()

    @property
    def field_count(self) -> int:
        """Number of fields bound on the attached cursor."""
        return self.rs.field_count if self.rs is not None else 0
