"""
Low-level database helpers.

DATABASE_URL picks the backend:
  - postgres:// or postgresql://  -> psycopg (rows as dicts)
  - sqlite:///relative/or/absolute/path.db -> sqlite3 (rows as sqlite3.Row)

SQL in the stores is written with `?` placeholders; they are rewritten to `%s`
for Postgres. The URL is resolved on every connect so tests (and operators)
can point the process at another database without re-importing.
"""
from __future__ import annotations

import os
import sqlite3
from pathlib import Path
from typing import Iterable

try:
    import psycopg
    from psycopg.rows import dict_row
except Exception as exc:  # pragma: no cover - required dependency
    raise RuntimeError("psycopg is required for Postgres") from exc


DEFAULT_DATABASE_URL = "sqlite:///data/subscriptions.db"

# Driver-level failures from either backend.
DatabaseError = (sqlite3.Error, psycopg.Error)


def resolve_database_url() -> str:
    url = (os.getenv("DATABASE_URL") or "").strip() or DEFAULT_DATABASE_URL
    if url.startswith("postgres://") or url.startswith("postgresql://"):
        return url
    if url.startswith("sqlite:///"):
        return url
    raise RuntimeError("DATABASE_URL must start with postgres://, postgresql:// or sqlite:///")


def database_dialect(url: str | None = None) -> str:
    url = url or resolve_database_url()
    return "sqlite" if url.startswith("sqlite:///") else "postgres"


def sqlite_path(url: str) -> Path:
    return Path(url[len("sqlite:///"):])


def _convert_qmarks(sql: str) -> str:
    if "?" not in sql:
        return sql
    return sql.replace("?", "%s")


class _CursorWrapper:
    def __init__(self, cursor, dialect: str):
        self._cursor = cursor
        self._dialect = dialect

    def execute(self, sql: str, params: Iterable | None = None):
        if self._dialect == "postgres":
            sql = _convert_qmarks(sql)
        if params is None:
            return self._cursor.execute(sql)
        return self._cursor.execute(sql, params)

    def fetchone(self):
        return self._cursor.fetchone()

    def fetchall(self):
        return self._cursor.fetchall()

    @property
    def rowcount(self):
        return getattr(self._cursor, "rowcount", 0)


class _ConnWrapper:
    def __init__(self, conn, dialect: str):
        self._conn = conn
        self.dialect = dialect

    def cursor(self):
        return _CursorWrapper(self._conn.cursor(), self.dialect)

    def commit(self):
        return self._conn.commit()

    def rollback(self):
        return self._conn.rollback()

    def close(self):
        return self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.rollback()
        self.close()
        return False


def get_conn():
    """
    Return a fresh DB connection for the configured DATABASE_URL.
    """
    url = resolve_database_url()
    if database_dialect(url) == "postgres":
        conn = psycopg.connect(url, row_factory=dict_row)
        return _ConnWrapper(conn, "postgres")

    path = sqlite_path(url)
    if path.parent and str(path.parent) not in ("", "."):
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return _ConnWrapper(conn, "sqlite")
