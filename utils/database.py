"""Database utilities for the bhajan signup API.

Provides:
- Connection pragmas and the table schema
- ``Table``: runs a ``utils.query.QueryPlan`` against one SQLite table and
  inserts single rows
- Small query helpers shared by the API and the tests

Datastore errors are left as ``sqlite3.Error`` for the routes to wrap, with
one exception: a UNIQUE / PRIMARY KEY violation on insert is raised as
``utils.errors.DuplicateEntry`` so it can be answered with 409 instead of 500.
"""

import logging
import sqlite3
from typing import Any, Dict, List, Sequence

from utils.errors import DuplicateEntry
from utils.query import (
    CATALOG_TABLE,
    SIGNUPS_TABLE,
    QueryPlan,
    build_limit_clause,
    build_order_clause,
    build_where_clause,
    quote_identifier,
)

logger = logging.getLogger("bhajan_api.database")

# Largest value SQLite can bind as an INTEGER.
SQLITE_MAX_INT = 2**63 - 1

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS "{SIGNUPS_TABLE}" (
    id TEXT PRIMARY KEY,
    created_at TEXT NOT NULL,
    title TEXT,
    position INTEGER NOT NULL DEFAULT 0,
    singer TEXT,
    details TEXT,
    "signedUp" INTEGER NOT NULL DEFAULT 0,
    tempo TEXT NOT NULL,
    diety TEXT NOT NULL,
    offering_on TEXT,
    "offeringStatus" TEXT NOT NULL DEFAULT 'PENDING',
    UNIQUE (singer, title, offering_on)
);
CREATE INDEX IF NOT EXISTS idx_signups_offering_on
    ON "{SIGNUPS_TABLE}" (offering_on);

CREATE TABLE IF NOT EXISTS "{CATALOG_TABLE}" (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    lyrics TEXT,
    meaning TEXT,
    deity TEXT,
    tempo TEXT,
    language TEXT,
    level TEXT,
    raga TEXT,
    beat TEXT,
    gents_pitch TEXT,
    ladies_pitch TEXT,
    lyrics_link TEXT,
    audio_link TEXT
);
"""


def init_pragmas(conn: sqlite3.Connection) -> None:
    """Initialize SQLite reliability pragmas.

    - WAL mode so readers are not blocked by the occasional signup insert
    - NORMAL synchronous mode for speed without data loss
    - busy_timeout so concurrent requests wait instead of failing

    Args:
        conn: SQLite connection to configure
    """
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    conn.execute("PRAGMA busy_timeout=5000")


def init_schema(conn: sqlite3.Connection) -> None:
    """Create the Bhajan_Signups and Bhajans tables if they do not exist."""
    conn.executescript(SCHEMA_SQL)
    conn.commit()


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check if a table exists in the database.

    Args:
        conn: SQLite connection
        table: Table name

    Returns:
        True if table exists, False otherwise
    """
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' AND name=?",
        (table,)
    )
    return cursor.fetchone() is not None


def query_to_dicts(conn: sqlite3.Connection, query: str,
                   params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    """Execute query and return results as list of dicts.

    Args:
        conn: SQLite connection (must have row_factory set)
        query: SQL query string
        params: Query parameters

    Returns:
        List of row dicts
    """
    cursor = conn.execute(query, tuple(params))
    return [dict(row) for row in cursor.fetchall()]


def batch_insert(conn: sqlite3.Connection, table: str,
                 rows: List[Dict[str, Any]]) -> int:
    """Insert many rows (dicts sharing the same keys) in one transaction.

    Used to seed the catalog and test databases.

    Returns:
        Number of rows inserted
    """
    if not rows:
        return 0
    columns = list(rows[0].keys())
    cols_str = ", ".join(quote_identifier(c) for c in columns)
    placeholders = ", ".join("?" * len(columns))
    conn.executemany(
        f"INSERT INTO {quote_identifier(table)} ({cols_str}) VALUES ({placeholders})",
        [tuple(row[c] for c in columns) for row in rows],
    )
    conn.commit()
    return len(rows)


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc)
    return "UNIQUE constraint failed" in message or "PRIMARY KEY" in message


class Table:
    """One datastore table, queried through QueryPlans.

    Usage::

        table = Table(conn, "Bhajan_Signups")
        rows, total = table.select(plan, count=True)
        row = table.insert({"id": "...", "title": "...", ...})
    """

    def __init__(self, conn: sqlite3.Connection, name: str,
                 key: str = "id") -> None:
        self._conn = conn
        self.name = name
        self.key = key

    def select(
        self,
        plan: QueryPlan | None = None,
        columns: Sequence[str] | None = None,
        count: bool = False,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Run *plan* and return (rows, total).

        Args:
            plan: Filters, ordering and page slice. None selects everything.
            columns: Columns to project; all columns when None.
            count: Also return the number of rows matching the filters,
                ignoring the page slice.

        Returns:
            Tuple of (list of row dicts, total or None when not counted).
            A page that starts past the last match (or past SQLITE_MAX_INT)
            yields no rows and runs no page query.
        """
        plan = plan or QueryPlan()
        table = quote_identifier(self.name)
        cols = ", ".join(quote_identifier(c) for c in columns) if columns else "*"
        where, params = build_where_clause(plan.filters)
        order = build_order_clause(plan.ordering, tiebreaker=self.key)
        limit, limit_params = build_limit_clause(plan.page)

        total = None
        if count:
            total = self._conn.execute(
                f"SELECT COUNT(*) FROM {table} {where}", params
            ).fetchone()[0]

        if plan.page is not None and (
                plan.page.offset > SQLITE_MAX_INT
                or (total is not None and plan.page.offset >= total)):
            logger.debug("offset=%d past the end (total=%s)", plan.page.offset, total)
            return [], total

        sql = " ".join(part for part in (
            f"SELECT {cols} FROM {table}", where, order, limit) if part)
        logger.debug("sql=%s params=%s", sql, params + limit_params)
        rows = query_to_dicts(self._conn, sql, params + limit_params)
        return rows, total

    def get(self, key_value: Any) -> dict[str, Any] | None:
        """Return the row whose key column equals *key_value*, or None."""
        rows = query_to_dicts(
            self._conn,
            f"SELECT * FROM {quote_identifier(self.name)} "
            f"WHERE {quote_identifier(self.key)} = ?",
            (key_value,),
        )
        return rows[0] if rows else None

    def insert(self, row: Dict[str, Any]) -> dict[str, Any]:
        """Insert one row and return it as stored.

        Raises:
            DuplicateEntry: The row breaks a UNIQUE or PRIMARY KEY constraint.
            sqlite3.Error: Any other datastore failure.
        """
        columns = list(row.keys())
        cols_str = ", ".join(quote_identifier(c) for c in columns)
        placeholders = ", ".join("?" * len(columns))
        try:
            cursor = self._conn.execute(
                f"INSERT INTO {quote_identifier(self.name)} ({cols_str}) "
                f"VALUES ({placeholders})",
                [row[c] for c in columns],
            )
            self._conn.commit()
        except sqlite3.IntegrityError as exc:
            self._conn.rollback()
            if _is_unique_violation(exc):
                raise DuplicateEntry(str(exc)) from exc
            raise
        stored = self.get(row[self.key]) if self.key in row else self.get(cursor.lastrowid)
        return stored if stored is not None else dict(row)
