"""Environment-variable-based configuration."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

DEBUG_MODES = ("quiet", "loud")


def get_debug_mode() -> str:
    """Return the debug output mode from SQLBIND_DEBUG_MODE ("quiet" or "loud")."""
    mode = os.environ.get("SQLBIND_DEBUG_MODE", "quiet").lower()
    return mode if mode in DEBUG_MODES else "quiet"


def get_connect_timeout() -> int:
    """Return the PostgreSQL connect timeout in seconds from SQLBIND_CONNECT_TIMEOUT."""
    return int(os.environ.get("SQLBIND_CONNECT_TIMEOUT", "10"))


def get_postgres_dsn() -> Optional[str]:
    """Return an explicit libpq connection string from SQLBIND_PG_DSN, if set."""
    return os.environ.get("SQLBIND_PG_DSN") or None


class PostgresSettings(BaseModel):
    """Connection attributes for the PostgreSQL backend.

    Attributes:
        host: Server host name, address or socket directory.
        port: Server port.
        database: Database name.
        user: Role to connect as.
        password: Password, empty for trust/peer authentication.
        connect_timeout: Seconds to wait for the connection.
        sslmode: libpq sslmode, None to use the libpq default.
    """

    host: str = "localhost"
    port: int = Field(default=5432, gt=0, lt=65536)
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""
    connect_timeout: int = Field(default=10, ge=0)
    sslmode: Optional[str] = None

    @classmethod
    def from_env(cls) -> "PostgresSettings":
        """Build settings from SQLBIND_PG_* environment variables."""
        return cls(
            host=os.environ.get("SQLBIND_PG_HOST", "localhost"),
            port=int(os.environ.get("SQLBIND_PG_PORT", "5432")),
            database=os.environ.get("SQLBIND_PG_DB", "postgres"),
            user=os.environ.get("SQLBIND_PG_USER", "postgres"),
            password=os.environ.get("SQLBIND_PG_PASSWORD", ""),
            connect_timeout=get_connect_timeout(),
        )

    def to_dsn(self) -> str:
        """Return a libpq keyword/value connection string."""
        parts = [
            f"host={_quote(self.host)}",
            f"port={self.port}",
            f"dbname={_quote(self.database)}",
            f"user={_quote(self.user)}",
            f"connect_timeout={self.connect_timeout}",
        ]
        if self.password:
            parts.append(f"password={_quote(self.password)}")
        if self.sslmode:
            parts.append(f"sslmode={_quote(self.sslmode)}")
        return " ".join(parts)


def _quote(value: str) -> str:
    """Quote a libpq connection string value when needed."""
    if value and not any(ch in value for ch in " '\\"):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"
