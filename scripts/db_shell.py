"""
Quick helper to run a query against the configured database (DATABASE_URL).

Usage:
  python -m scripts.db_shell                                     # list tables
  python -m scripts.db_shell "SELECT * FROM subscriptions"         # run a custom query
"""
from __future__ import annotations

import sys

from core.db.base import DatabaseError, get_conn, resolve_database_url

_LIST_TABLES = {
    "postgres": "SELECT tablename AS name FROM pg_tables WHERE schemaname='public' ORDER BY tablename",
    "sqlite": "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name",
}


def main() -> None:
    conn = get_conn()
    query = " ".join(sys.argv[1:]).strip() or _LIST_TABLES[conn.dialect]

    print(f"Using DB: {conn.dialect} ({resolve_database_url()})", file=sys.stderr)

    try:
        cur = conn.cursor()
        cur.execute(query)
        if query.lstrip().lower().startswith(("select", "with", "pragma")):
            for row in cur.fetchall():
                print(dict(row))
        else:
            conn.commit()
            print(f"OK ({cur.rowcount} row(s) affected)")
    except DatabaseError as exc:
        raise SystemExit(f"Error running query: {exc}") from exc
    finally:
        conn.close()


if __name__ == "__main__":
    main()
