"""Typing protocols for the native client library handles.

Both psycopg2 and sqlite3 follow DB-API 2.0 closely enough that the adapters
only rely on the small surface described here.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, Sequence, Tuple


class NativeCursorProtocol(Protocol):
    """Minimal DB-API cursor protocol used by the adapters."""

    def execute(self, query: str, params: Tuple[object, ...] = ...) -> Any:
        """Execute a single SQL statement with optional parameters."""
        ...

    def fetchone(self) -> Optional[Tuple[object, ...]]:
        """Fetch the next row of a query result."""
        ...

    def fetchall(self) -> Sequence[Tuple[object, ...]]:
        """Fetch all remaining rows of a query result."""
        ...

    def close(self) -> None:
        """Close the cursor."""
        ...

    @property
    def description(self) -> Optional[Sequence[Sequence[object]]]:
        """DB-API cursor description: column metadata or None for non queries."""
        ...

    @property
    def rowcount(self) -> int:
        """Rows affected by the last statement, -1 if not applicable."""
        ...
