"""
Subscription storage helpers (data-level only).

The cursor columns (last_observation_id, last_notified_at) are written only by
update_subscription_cursor, always together in one statement.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from core.db.base import DatabaseError, get_conn
from core.errors import StoreError
from core.models import Subscription, format_timestamp, utc_now

log = logging.getLogger(__name__)

_COLUMNS = """
    id, phone, species_code, species_common_name, location_label,
    latitude, longitude, radius_miles, look_back_days, created_at,
    last_observation_id, last_notified_at
"""


def add_subscription(
    *,
    phone: str,
    species_code: str,
    species_common_name: str,
    location_label: str,
    latitude: float,
    longitude: float,
    radius_miles: int,
    look_back_days: int = 3,
) -> Subscription:
    """Insert a new subscription with an empty cursor and return it."""
    now = format_timestamp(utc_now())

    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO subscriptions (
            phone, species_code, species_common_name, location_label,
            latitude, longitude, radius_miles, look_back_days, created_at,
            last_observation_id, last_notified_at
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, NULL)
        RETURNING id
        """,
        (
            phone.strip(),
            species_code.strip(),
            species_common_name.strip(),
            location_label.strip(),
            float(latitude),
            float(longitude),
            int(radius_miles),
            int(look_back_days),
            now,
        ),
    )
    new_id = int(cur.fetchone()["id"])
    conn.commit()
    conn.close()

    return get_subscription(new_id)


def get_subscription(sub_id: int) -> Optional[Subscription]:
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(f"SELECT {_COLUMNS} FROM subscriptions WHERE id = ?", (int(sub_id),))
    row = cur.fetchone()
    conn.close()
    return Subscription.from_row(row) if row else None


def list_subscriptions() -> List[Subscription]:
    """
    Return all subscriptions, newest first.

    Always reads through a new connection so each cycle sees every committed write.
    """
    conn = get_conn()
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_COLUMNS}
        FROM subscriptions
        ORDER BY created_at DESC, id DESC
        """
    )
    rows = cur.fetchall()
    conn.close()
    return [Subscription.from_row(r) for r in rows]


def delete_subscription(sub_id: int) -> bool:
    """Delete a subscription. Returns True if a row was removed."""
    conn = get_conn()
    cur = conn.cursor()
    cur.execute("DELETE FROM subscriptions WHERE id = ?", (int(sub_id),))
    deleted = cur.rowcount
    conn.commit()
    conn.close()
    return deleted > 0


def update_subscription_cursor(sub_id: int, observation_id: str, notified_at: datetime) -> bool:
    """
    Advance a subscription's cursor to (observation_id, notified_at).

    Both columns are written in a single statement. The update only applies when
    the stored last_notified_at is empty or not newer than notified_at, so the
    cursor never moves backward. Returns False (and logs) when no row matched,
    e.g. the subscription was deleted mid-cycle; that is not an error.
    Raises StoreError if the database write fails.
    """
    notified_text = format_timestamp(notified_at)
    try:
        # rolls back on error, always closes
        with get_conn() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                UPDATE subscriptions
                SET last_observation_id = ?, last_notified_at = ?
                WHERE id = ?
                  AND (last_notified_at IS NULL OR last_notified_at <= ?)
                """,
                (observation_id, notified_text, int(sub_id), notified_text),
            )
            updated = cur.rowcount
            conn.commit()
    except DatabaseError as exc:
        raise StoreError(f"cursor update failed for subscription {sub_id}: {exc}") from exc

    if updated == 0:
        log.info(
            "Cursor update skipped (subscription deleted or cursor already ahead)",
            extra={"subscription_id": sub_id, "observation_id": observation_id},
        )
        return False
    return True


__all__ = [
    "add_subscription",
    "get_subscription",
    "list_subscriptions",
    "delete_subscription",
    "update_subscription_cursor",
]
