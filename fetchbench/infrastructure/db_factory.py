"""
Database connection factory for fetchbench.

Builds the DSN from settings and opens autocommit psycopg connections with
retry logic (tenacity) for transient connection failures. Autocommit keeps
every statement its own round-trip; writes that must be atomic open an
explicit transaction (see `TrackedConnection.transaction`).
"""

from __future__ import annotations

from typing import Optional

import psycopg
from psycopg import Connection
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from fetchbench.config import Settings, get_settings
from fetchbench.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[Settings] = None) -> str:
    """Compose a DSN string from settings."""
    settings = settings or get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """Set a per-session statement timeout; 0 leaves the server default."""
    if timeout_ms > 0:
        conn.execute(f"SET statement_timeout = {int(timeout_ms)}")


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn_override: Optional[str] = None) -> Connection:
    """
    Open a dedicated autocommit connection with automatic retry.

    Retries up to 3 times with exponential backoff for transient connection errors.

    Parameters
    ----------
    dsn_override : str, optional
        Connect here instead of the DSN built from settings (tests, ad-hoc runs).

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    settings = get_settings()
    conn = psycopg.connect(dsn_override or build_dsn(settings), autocommit=True)
    apply_statement_timeout(conn, settings.db_statement_timeout_ms)
    log.debug("Opened database connection", extra={"host": settings.db_host})
    return conn


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "get_sync_connection",
]
