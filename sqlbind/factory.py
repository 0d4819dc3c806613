"""Connection factory keyed by backend type."""

import logging
from typing import Dict, Optional, Type

from .connection import Connection
from .debug_util import DebugUtil
from .postgres import PostgresConnection
from .sqlite import SqliteConnection
from .types import BackendType

logger = logging.getLogger(__name__)

_BACKENDS: Dict[BackendType, Type[Connection]] = {
    BackendType.POSTGRES: PostgresConnection,
    BackendType.SQLITE: SqliteConnection,
}


def create_connection(
    backend_type: BackendType, debug_util: Optional[DebugUtil] = None
) -> Connection:
    """Create a disconnected connection for ``backend_type``.

    Args:
        backend_type: Engine to create a connection for.
        debug_util: Optional DebugUtil shared for SQL trace output.

    Returns:
        The new Connection.

    Raises:
        ValueError: If no implementation exists for ``backend_type``.
    """
    try:
        connection_class = _BACKENDS[backend_type]
    except KeyError:
        raise ValueError(f"Unsupported backend type: {backend_type!r}") from None
    return connection_class(debug_util)


def connect(
    backend_type: BackendType, target: str, debug_util: Optional[DebugUtil] = None
) -> Connection:
    """Create a connection and connect it to ``target``.

    The connection is returned even when connecting fails so the caller can
    read get_error_description(); check ``is_connected``.
    """
    connection = create_connection(backend_type, debug_util)
    if not connection.connect(target):
        logger.error(
            "Could not connect to %s: %s",
            backend_type.value,
            connection.get_error_description(),
        )
    return connection
