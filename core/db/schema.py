"""
Schema helpers for Postgres and SQLite.
"""
from __future__ import annotations

from core.db.base import get_conn


def init_db() -> None:
    """Create the subscriptions table if it doesn't exist."""
    conn = get_conn()
    cur = conn.cursor()

    if conn.dialect == "postgres":
        id_column = "id SERIAL PRIMARY KEY"
    else:
        id_column = "id INTEGER PRIMARY KEY AUTOINCREMENT"

    cur.execute(
        f"""
        CREATE TABLE IF NOT EXISTS subscriptions(
            {id_column},
            phone TEXT NOT NULL,
            species_code TEXT NOT NULL,
            species_common_name TEXT NOT NULL,
            location_label TEXT NOT NULL,
            latitude DOUBLE PRECISION NOT NULL,
            longitude DOUBLE PRECISION NOT NULL,
            radius_miles INTEGER NOT NULL,
            look_back_days INTEGER NOT NULL,
            created_at TEXT NOT NULL,
            last_observation_id TEXT,
            last_notified_at TEXT
        )
        """
    )
    cur.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_subscriptions_created_at
        ON subscriptions (created_at)
        """
    )

    conn.commit()
    conn.close()


__all__ = ["init_db"]
