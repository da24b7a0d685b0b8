"""
Request-scoped dependencies for the API.

Provides a get_db() dependency that opens a per-request SQLite connection and
closes it after the response is sent, and a get_vocabulary() dependency that
hands routes the vocabulary built at startup.  The database path is resolved
once from the APP_DB_PATH environment variable (default: bhajans.sqlite) and
can be overridden by create_app(db_path=...).
"""

import os
import sqlite3
from collections.abc import Generator
from pathlib import Path

from fastapi import Request

from utils.errors import UpstreamError
from utils.vocabulary import Vocabulary

_DB_PATH: Path = Path(os.getenv("APP_DB_PATH", "bhajans.sqlite"))


def get_db_path() -> Path:
    """Return the configured database path."""
    return _DB_PATH


def _make_conn(db_path: Path) -> sqlite3.Connection:
    """Open a single SQLite connection with WAL and a busy timeout."""
    conn = sqlite3.connect(str(db_path), check_same_thread=False,
                           timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA busy_timeout=5000")
    return conn


def get_db() -> Generator[sqlite3.Connection, None, None]:
    """FastAPI dependency: yield a SQLite connection, close on exit.

    Raises UpstreamError (500) when the database file is missing, instead of
    letting sqlite3 silently create an empty one.

    Usage in a route::

        from api.database import get_db
        from fastapi import Depends

        @router.get("/example")
        def example(conn=Depends(get_db)):
            ...
    """
    if not _DB_PATH.exists():
        raise UpstreamError(
            "Failed to connect to database",
            f"Database not found at '{_DB_PATH}'. "
            "Run 'python main.py --init-db' to create it.",
        )
    conn = _make_conn(_DB_PATH)
    try:
        yield conn
    finally:
        conn.close()


def get_vocabulary(request: Request) -> Vocabulary:
    """FastAPI dependency: the vocabulary stored on app.state at startup."""
    return request.app.state.vocabulary
