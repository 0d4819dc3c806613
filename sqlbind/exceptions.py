"""
Exception classes for callers that prefer raising over sentinel checks.

The connection and cursor API never raises these on its own; they are produced
by ErrorAccumulator.raise_last() after a call has reported failure.
"""


class DatabaseError(Exception):
    """Base class for all sqlbind exceptions."""


class DBConnectionError(DatabaseError):
    """Raised when there are issues connecting to the database."""


class NotConnectedError(DBConnectionError):
    """Raised when an operation needs a connection that is not established."""


class TransactionError(DatabaseError):
    """Raised when a transaction is started twice or ended without being started."""


class QueryError(DatabaseError):
    """Raised when the backend rejects or fails a statement."""


class BindingError(DatabaseError, TypeError):
    """Raised when a cursor field binding is invalid or missing."""


class ConversionError(DatabaseError, TypeError):
    """Raised when a native value cannot be converted to the requested type."""


class SchemaError(DatabaseError):
    """Raised when there are schema-related issues."""


class NotSupportedError(DatabaseError):
    """Raised when the backend does not support the requested feature."""


class BusyError(DatabaseError):
    """Raised when the backend reports it is busy and the call may be retried."""
