"""PostgreSQL compatibility layer: wraps psycopg2 to match the sqlite3 API.

When the configured DATABASE starts with postgresql://, connections come from a
shared psycopg2 ThreadedConnectionPool and SQL written for SQLite is
translated on the fly:
  - ? placeholders → %s
  - LIKE → ILIKE (SQLite LIKE is case-insensitive for ASCII)
  - INSERT OR IGNORE → INSERT ... ON CONFLICT DO NOTHING
  - INSERT → INSERT ... RETURNING id (every table has an id column)
  - executescript() → split and execute
  - Row factory → dict-like Row objects
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Any

logger = logging.getLogger(__name__)

_pools: dict[str, Any] = {}
_pools_lock = threading.Lock()


class PgRow:
    """Dict-like row that mimics sqlite3.Row."""

    def __init__(self, columns: list[str], values: tuple):
        self._data = dict(zip(columns, values))

    def __getitem__(self, key: str | int) -> Any:
        if isinstance(key, int):
            return list(self._data.values())[key]
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def __iter__(self):
        return iter(self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def keys(self) -> list[str]:
        return list(self._data.keys())

    def values(self) -> list[Any]:
        return list(self._data.values())

    def items(self) -> list[tuple[str, Any]]:
        return list(self._data.items())

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __repr__(self) -> str:
        return f"PgRow({self._data})"


def _translate_sql(sql: str) -> str:
    """Translate SQLite SQL to PostgreSQL SQL."""
    translated = sql.replace("%", "%%").replace("?", "%s")

    translated = re.sub(r"\bLIKE\b", "ILIKE", translated)

    translated = re.sub(
        r"INSERT\s+OR\s+IGNORE\s+INTO",
        "INSERT INTO",
        translated,
        flags=re.IGNORECASE,
    )
    if re.search(r"INSERT\s+OR\s+IGNORE", sql, flags=re.IGNORECASE) and "ON CONFLICT" not in translated.upper():
        translated = translated.rstrip().rstrip(";") + " ON CONFLICT DO NOTHING"

    return translated


def _translate_schema(sql: str) -> str:
    """Translate SQLite schema DDL to PostgreSQL DDL."""
    translated = re.sub(
        r"(\w+)\s+INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        r"\1 SERIAL PRIMARY KEY",
        sql,
        flags=re.IGNORECASE,
    )
    translated = re.sub(r"PRAGMA\s+\w+\s*=\s*\w+\s*;?", "", translated, flags=re.IGNORECASE)
    translated = re.sub(r"INSERT\s+OR\s+IGNORE\s+INTO", "INSERT INTO", translated, flags=re.IGNORECASE)
    return translated


class PgCursorWrapper:
    """Wraps a psycopg2 cursor to match sqlite3.Cursor interface."""

    def __init__(self, cursor):
        self._cursor = cursor
        self._last_id: int | None = None

    @property
    def lastrowid(self) -> int | None:
        """Return last inserted row ID (captured with RETURNING id)."""
        return self._last_id

    @property
    def rowcount(self) -> int:
        return self._cursor.rowcount

    @property
    def description(self):
        return self._cursor.description

    def execute(self, sql: str, params: tuple | list = ()) -> "PgCursorWrapper":
        translated = _translate_sql(sql)
        self._last_id = None

        upper = translated.strip().upper()
        if upper.startswith("INSERT") and "RETURNING" not in upper and "ON CONFLICT" not in upper:
            self._cursor.execute(translated + " RETURNING id", tuple(params))
            rows = self._cursor.fetchall()
            if rows:
                self._last_id = rows[-1][0]
            return self

        self._cursor.execute(translated, tuple(params))
        return self

    def fetchone(self) -> PgRow | None:
        if not self._cursor.description:
            return None
        row = self._cursor.fetchone()
        if row is None:
            return None
        columns = [desc[0] for desc in self._cursor.description]
        return PgRow(columns, row)

    def fetchall(self) -> list[PgRow]:
        if not self._cursor.description:
            return []
        rows = self._cursor.fetchall()
        columns = [desc[0] for desc in self._cursor.description]
        return [PgRow(columns, row) for row in rows]

    def close(self):
        self._cursor.close()


class PgConnectionWrapper:
    """Wraps a pooled psycopg2 connection to match sqlite3.Connection interface."""

    def __init__(self, conn, pool=None):
        self._conn = conn
        self._pool = pool
        self._conn.autocommit = False
        self.row_factory = None  # Compatibility with sqlite3

    @property
    def in_transaction(self) -> bool:
        import psycopg2.extensions
        status = self._conn.get_transaction_status()
        return status != psycopg2.extensions.TRANSACTION_STATUS_IDLE

    def execute(self, sql: str, params: tuple | list = ()) -> PgCursorWrapper:
        cursor = PgCursorWrapper(self._conn.cursor())
        cursor.execute(sql, params)
        return cursor

    def executescript(self, sql: str) -> None:
        """Execute multiple SQL statements (PostgreSQL equivalent)."""
        translated = _translate_schema(sql)
        statements = [s.strip() for s in translated.split(";") if s.strip()]
        cursor = self._conn.cursor()
        for stmt in statements:
            if stmt.upper().startswith("INSERT") and "ON CONFLICT" not in stmt.upper():
                stmt += " ON CONFLICT DO NOTHING"
            try:
                cursor.execute(stmt)
                self._conn.commit()
            except Exception as e:
                err_msg = str(e).lower()
                if any(phrase in err_msg for phrase in [
                    "already exists", "duplicate column",
                ]):
                    self._conn.rollback()
                    logger.debug("Skipping schema statement: %s", e)
                else:
                    raise
        cursor.close()

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        """Return the connection to its pool (or close it when unpooled)."""
        if self._pool is not None:
            if self.in_transaction:
                self._conn.rollback()
            self._pool.putconn(self._conn)
        else:
            self._conn.close()

    def cursor(self):
        return PgCursorWrapper(self._conn.cursor())


def _get_pool(database_url: str, maxconn: int, connect_timeout: int):
    from psycopg2.pool import ThreadedConnectionPool

    with _pools_lock:
        pool = _pools.get(database_url)
        if pool is None:
            pool = ThreadedConnectionPool(
                1, maxconn, database_url, connect_timeout=connect_timeout,
            )
            _pools[database_url] = pool
            logger.info("PostgreSQL pool created (max %d connections)", maxconn)
        return pool


def connect_pg(database_url: str, maxconn: int = 20, connect_timeout: int = 2) -> PgConnectionWrapper:
    """Check out a pooled PostgreSQL connection with a sqlite3-compatible interface."""
    pool = _get_pool(database_url, maxconn, connect_timeout)
    return PgConnectionWrapper(pool.getconn(), pool)


def close_pools() -> None:
    """Close every pooled connection."""
    with _pools_lock:
        for pool in _pools.values():
            pool.closeall()
        _pools.clear()


def is_postgres_url(url: str) -> bool:
    """Check if a database URL is a PostgreSQL URL."""
    return url.startswith("postgresql://") or url.startswith("postgres://")
