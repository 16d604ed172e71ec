import asyncio
from datetime import datetime, timezone
from urllib.parse import parse_qs

import httpx
import pytest

from core.errors import DispatchError
from core.models import Observation, Subscription
from worker.alerts import AlertDispatcher, LogOnlyTransport, TwilioTransport, build_alert_message


def _make_sub(**overrides):
    fields = dict(
        id=7,
        phone="+15551234567",
        species_code="snoowl1",
        species_common_name="Snowy Owl",
        location_label="Boston, MA",
        latitude=42.36,
        longitude=-71.06,
        radius_miles=25,
        look_back_days=3,
    )
    fields.update(overrides)
    return Subscription(**fields)


def _make_obs(sub_id, hour=10, loc="Plum Island"):
    return Observation(
        species_code="snoowl1",
        submission_id=sub_id,
        observed_at=datetime(2024, 1, 1, hour, 5, tzinfo=timezone.utc),
        location_name=loc,
    )


class _RecordingTransport:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send(self, destination, body):
        if self.fail:
            raise DispatchError("carrier rejected")
        self.sent.append((destination, body))


def test_message_describes_primary_sighting_only():
    body = build_alert_message(_make_sub(), [_make_obs("S1")])

    assert body.startswith("BirdTrail alert: Snowy Owl.")
    assert "Latest at Plum Island (2024-01-01 10:05 local time)." in body
    assert "more sighting" not in body
    assert "Search radius 25mi around Boston, MA." in body
    assert body.endswith("Reply STOP to unsubscribe.")


def test_message_prints_ebird_time_as_local_time():
    obs = Observation.from_ebird(
        {"subId": "S1", "obsDt": "2024-01-01 07:30", "speciesCode": "snoowl1", "locName": "Cherry Creek"}
    )

    body = build_alert_message(_make_sub(location_label="Denver, CO", radius_miles=10), [obs])

    assert "Latest at Cherry Creek (2024-01-01 07:30 local time)." in body
    assert "UTC" not in body


def test_message_counts_additional_sightings():
    sightings = [_make_obs("S1"), _make_obs("S2", 11, "Logan"), _make_obs("S3", 12, "Revere")]

    body = build_alert_message(_make_sub(), sightings)

    assert "Latest at Plum Island" in body
    assert "2 more sightings nearby in the last check." in body
    assert "Logan" not in body


def test_dispatcher_sends_exactly_one_message_per_batch():
    transport = _RecordingTransport()
    dispatcher = AlertDispatcher(transport)
    batch = [_make_obs(f"S{i}") for i in range(6)]

    ok = asyncio.run(dispatcher.send(_make_sub(), batch))

    assert ok is True
    assert len(transport.sent) == 1
    assert transport.sent[0][0] == "+15551234567"


def test_dispatcher_reports_failure_and_logs(caplog):
    dispatcher = AlertDispatcher(_RecordingTransport(fail=True))

    with caplog.at_level("ERROR"):
        ok = asyncio.run(dispatcher.send(_make_sub(), [_make_obs("S1")]))

    assert ok is False
    assert any("Failed to send alert" in rec.message for rec in caplog.records)


def test_log_only_transport_succeeds_without_sending():
    dispatcher = AlertDispatcher(LogOnlyTransport())
    assert asyncio.run(dispatcher.send(_make_sub(), [_make_obs("S1")])) is True


def test_twilio_transport_posts_form_with_basic_auth():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("authorization")
        captured["form"] = parse_qs(request.content.decode())
        return httpx.Response(201, json={"sid": "SM123"})

    transport = TwilioTransport("AC1", "secret", "+15550000000", transport=httpx.MockTransport(handler))
    asyncio.run(transport.send("+15551234567", "hello"))

    assert captured["url"] == "https://api.twilio.com/2010-04-01/Accounts/AC1/Messages.json"
    assert captured["auth"].startswith("Basic ")
    assert captured["form"] == {"To": ["+15551234567"], "From": ["+15550000000"], "Body": ["hello"]}


def test_twilio_transport_raises_on_error_status():
    transport = TwilioTransport(
        "AC1", "secret", "+15550000000",
        transport=httpx.MockTransport(lambda request: httpx.Response(400, json={"message": "bad To"})),
    )

    with pytest.raises(DispatchError):
        asyncio.run(transport.send("+1", "hello"))


def test_twilio_transport_raises_on_network_error():
    def handler(request):
        raise httpx.ConnectError("no route", request=request)

    transport = TwilioTransport("AC1", "secret", "+15550000000", transport=httpx.MockTransport(handler))

    with pytest.raises(DispatchError):
        asyncio.run(transport.send("+1", "hello"))
