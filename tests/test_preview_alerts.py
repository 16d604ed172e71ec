import asyncio
from datetime import datetime, timezone

import scripts.preview_alerts as preview_alerts
from core.database import add_subscription, update_subscription_cursor
from core.models import Observation

T = datetime(2024, 5, 1, 8, 30, tzinfo=timezone.utc)


class _FakeClient:
    def __init__(self, api_key):
        self.api_key = api_key

    async def fetch_recent_observations(self, species_code, latitude, longitude, radius_miles, look_back_days):
        return [Observation(species_code=species_code, submission_id="S42", observed_at=T, location_name="Jamaica Bay")]


def _add(species_code):
    return add_subscription(
        phone="+15551230000",
        species_code=species_code,
        species_common_name="Snowy Owl",
        location_label="Queens, NY",
        latitude=40.62,
        longitude=-73.82,
        radius_miles=20,
    )


def test_preview_prints_pending_alert_without_moving_cursor(monkeypatch, capsys):
    monkeypatch.setattr(preview_alerts, "EBirdClient", _FakeClient)
    sub = _add("snoowl1")

    asyncio.run(preview_alerts.preview())

    out = capsys.readouterr().out
    assert f"#{sub.id} Snowy Owl" in out
    assert "WOULD SEND" in out
    assert "Jamaica Bay" in out


def test_preview_reports_nothing_new_for_caught_up_subscription(monkeypatch, capsys):
    monkeypatch.setattr(preview_alerts, "EBirdClient", _FakeClient)
    sub = _add("snoowl1")
    update_subscription_cursor(sub.id, "S42", T)

    asyncio.run(preview_alerts.preview([sub.id]))

    assert "nothing new (1 in feed)" in capsys.readouterr().out
