"""
Alert formatting and delivery.

One call to AlertDispatcher.send produces exactly one outbound message, no
matter how many sightings qualified. Nothing here retries: a failed send
leaves the cursor alone and the worker tries the same batch next cycle.
"""
from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence

import httpx

from core.errors import DispatchError
from core.models import Observation, Subscription

log = logging.getLogger("worker.alerts")

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class AlertTransport(Protocol):
    async def send(self, destination: str, body: str) -> None:
        ...


class TwilioTransport:
    """Send SMS through the Twilio Messages REST endpoint."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        timeout: float = 15.0,
        base_url: str = TWILIO_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    async def send(self, destination: str, body: str) -> None:
        url = f"{self.base_url}/Accounts/{self.account_sid}/Messages.json"
        data = {"To": destination, "From": self.from_number, "Body": body}
        try:
            async with httpx.AsyncClient(
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(url, data=data)
        except httpx.HTTPError as exc:
            raise DispatchError(f"Twilio request failed: {exc}") from exc

        if not resp.is_success:
            raise DispatchError(f"Twilio returned {resp.status_code}: {resp.text[:200]}")
        log.info("SMS sent", extra={"to": destination})


class LogOnlyTransport:
    """Used when SMS credentials are missing: the alert is logged, not sent."""

    async def send(self, destination: str, body: str) -> None:
        log.info("SMS disabled; alert not sent", extra={"to": destination, "body": body})


def build_alert_message(subscription: Subscription, sightings: Sequence[Observation]) -> str:
    primary = sightings[0]
    extras = len(sightings) - 1
    # eBird reports obsDt in the observer's local time; print it as given
    observed = primary.observed_at.strftime("%Y-%m-%d %H:%M")
    location = primary.location_name or "an unnamed location"

    parts = [
        f"BirdTrail alert: {subscription.species_common_name}.",
        f"Latest at {location} ({observed} local time).",
    ]
    if extras > 0:
        noun = "sighting" if extras == 1 else "sightings"
        parts.append(f"{extras} more {noun} nearby in the last check.")
    parts.append(f"Search radius {subscription.radius_miles}mi around {subscription.location_label}.")
    parts.append("Reply STOP to unsubscribe.")
    return " ".join(parts)


class AlertDispatcher:
    def __init__(self, transport: AlertTransport):
        self.transport = transport

    async def send(self, subscription: Subscription, sightings: Sequence[Observation]) -> bool:
        """Send one alert for this batch. Returns True on success, False on failure."""
        if not sightings:
            return False
        body = build_alert_message(subscription, sightings)
        try:
            await self.transport.send(subscription.phone, body)
        except DispatchError as exc:
            log.error(
                "Failed to send alert",
                extra={"subscription_id": subscription.id, "error": str(exc)},
            )
            return False
        return True


__all__ = [
    "AlertDispatcher",
    "AlertTransport",
    "LogOnlyTransport",
    "TwilioTransport",
    "build_alert_message",
]
