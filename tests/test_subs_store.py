import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from core.db.base import _ConnWrapper
from core.db.subscriptions import subs_store
from core.errors import StoreError
from core.models import Cursor

T = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)


def _add(**overrides):
    fields = dict(
        phone="+1 (555) 123-4567",
        species_code="amerob",
        species_common_name="American Robin",
        location_label="Portland, OR",
        latitude=45.52,
        longitude=-122.68,
        radius_miles=15,
    )
    fields.update(overrides)
    return subs_store.add_subscription(**fields)


def test_add_subscription_starts_with_empty_cursor():
    sub = _add()

    assert sub.id > 0
    assert sub.look_back_days == 3
    assert sub.cursor == Cursor()
    assert sub.created_at is not None
    assert sub.created_at.tzinfo is not None


def test_list_returns_newest_first_and_reflects_writes():
    first = _add(species_code="amerob")
    second = _add(species_code="snoowl1")

    listed = subs_store.list_subscriptions()
    assert [s.id for s in listed] == [second.id, first.id]

    subs_store.update_subscription_cursor(first.id, "S1", T)
    by_id = {s.id: s for s in subs_store.list_subscriptions()}
    assert by_id[first.id].cursor == Cursor("S1", T)


def test_update_cursor_writes_both_fields():
    sub = _add()

    assert subs_store.update_subscription_cursor(sub.id, "S42", T) is True

    stored = subs_store.get_subscription(sub.id)
    assert stored.cursor.last_observation_id == "S42"
    assert stored.cursor.last_notified_at == T


def test_update_cursor_on_deleted_subscription_is_noop(caplog):
    sub = _add()
    assert subs_store.delete_subscription(sub.id) is True

    with caplog.at_level("INFO"):
        assert subs_store.update_subscription_cursor(sub.id, "S1", T) is False

    assert subs_store.get_subscription(sub.id) is None
    assert subs_store.list_subscriptions() == []
    assert any("Cursor update skipped" in rec.message for rec in caplog.records)


def test_cursor_never_moves_backward():
    sub = _add()
    later = T + timedelta(hours=2)
    subs_store.update_subscription_cursor(sub.id, "S2", later)

    assert subs_store.update_subscription_cursor(sub.id, "S1", T) is False
    assert subs_store.get_subscription(sub.id).cursor == Cursor("S2", later)

    # Same instant is allowed (at or after the current cursor).
    assert subs_store.update_subscription_cursor(sub.id, "S3", later) is True


def test_update_cursor_wraps_driver_errors(monkeypatch):
    sub = _add()

    def _broken_conn():
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(subs_store, "get_conn", _broken_conn)

    with pytest.raises(StoreError):
        subs_store.update_subscription_cursor(sub.id, "S1", T)


def test_failed_cursor_update_closes_its_connection(monkeypatch):
    # A connection with no subscriptions table makes the UPDATE itself fail.
    raw = sqlite3.connect(":memory:")
    monkeypatch.setattr(subs_store, "get_conn", lambda: _ConnWrapper(raw, "sqlite"))

    with pytest.raises(StoreError):
        subs_store.update_subscription_cursor(1, "S1", T)

    with pytest.raises(sqlite3.ProgrammingError):
        raw.execute("SELECT 1")


def test_delete_missing_subscription_returns_false():
    assert subs_store.delete_subscription(999) is False
