"""Shared enumerations and value types for the sqlbind package.

Defines the fixed set of logical data types understood by cursors, the
feature flags negotiated by connections, and the broken-down time structure
used for TIMESTAMP and DATE fields.
"""

from __future__ import annotations

import datetime
import enum
from typing import Optional

from pydantic import BaseModel, Field


class LogicalType(enum.Enum):
    """Logical data types a cursor can convert native column values into."""

    INT32 = "int32"
    INT64 = "int64"
    TEXT = "text"
    BOOL = "bool"
    BIT = "bit"  # converted to a single character
    CHAR = "char"
    TIMESTAMP = "timestamp"
    DATE = "date"
    NUMERIC = "numeric"  # double


class SchemaType(enum.Enum):
    """Schema item kinds accepted by Connection.find_schema_item()."""

    TABLE = "table"
    VIEW = "view"


class Feature(enum.IntFlag):
    """Connection features. Combine with ``|``."""

    NONE = 0
    AUTOTRIM = 0x0001  # right trim fetched strings
    TRANSACTIONS = 0x0002


class BackendType(enum.Enum):
    """Relational engines with a Connection implementation."""

    POSTGRES = "postgres"
    SQLITE = "sqlite"


class ConnectionState(enum.Enum):
    """Connection state machine."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    TRANSACTION_ACTIVE = "transaction_active"


class CursorState(enum.Enum):
    """Cursor (row set) state machine."""

    UNBOUND = "unbound"
    BOUND = "bound"
    EXECUTING = "executing"
    EXHAUSTED = "exhausted"
    RESET = "reset"


class TimeStruct(BaseModel):
    """Broken-down date and time, zeroed when the source value is NULL.

    Attributes:
        year: Full year, e.g. 2024.
        month: Month of the year counted from zero (January = 0).
        day: Day of the month.
        hour: Hour of the day.
        minute: Minute of the hour.
        second: Second of the minute.
    """

    year: int = Field(default=0, ge=0)
    month: int = Field(default=0, ge=0)
    day: int = Field(default=0, ge=0)
    hour: int = Field(default=0, ge=0)
    minute: int = Field(default=0, ge=0)
    second: int = Field(default=0, ge=0)

    model_config = {
        "validate_assignment": True,
    }

    def is_zero(self) -> bool:
        """Return True if every field is zero."""
        return not any(
            (self.year, self.month, self.day, self.hour, self.minute, self.second)
        )

    def clear(self) -> None:
        """Reset every field to zero."""
        self.year = 0
        self.month = 0
        self.day = 0
        self.hour = 0
        self.minute = 0
        self.second = 0

    def to_datetime(self) -> Optional[datetime.datetime]:
        """Convert to a naive datetime.

        Returns:
            The datetime, or None if the structure is zeroed or does not hold a
            valid calendar date.
        """
        if self.is_zero():
            return None
        try:
            return datetime.datetime(
                self.year, self.month + 1, self.day, self.hour, self.minute, self.second
            )
        except ValueError:
            return None

    @classmethod
    def from_datetime(cls, value: datetime.date) -> "TimeStruct":
        """Build a TimeStruct from a date or datetime."""
        if isinstance(value, datetime.datetime):
            return cls(
                year=value.year,
                month=value.month - 1,
                day=value.day,
                hour=value.hour,
                minute=value.minute,
                second=value.second,
            )
        return cls(year=value.year, month=value.month - 1, day=value.day)
