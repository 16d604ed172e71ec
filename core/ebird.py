"""
eBird API 2.0 client.

Only the two endpoints BirdTrail needs: recent nearby observations of one
species, and the full taxonomy (for species search). No caching and no
retries here; the worker retries on its next cycle.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx

from core.errors import ConfigurationError, FetchError
from core.models import Observation

log = logging.getLogger(__name__)

EBIRD_API_BASE = "https://api.ebird.org/v2"
KM_PER_MILE = 1.609344
# Hard limits of the geo/recent endpoint.
MAX_DIST_KM = 50
MAX_BACK_DAYS = 30


def sort_observations(observations: List[Observation]) -> List[Observation]:
    """Nearest first when every row carries a distance, otherwise newest first."""
    if observations and all(o.distance is not None for o in observations):
        return sorted(observations, key=lambda o: o.distance)
    return sorted(observations, key=lambda o: o.observed_at, reverse=True)


class EBirdClient:
    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = EBIRD_API_BASE,
        timeout: float = 20.0,
        max_results: int = 10,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError("EBIRD_API_KEY is required to query eBird")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_results = max_results
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"X-eBirdApiToken": self.api_key, "Accept": "application/json"},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def _get(self, path: str, params: Dict) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise FetchError(f"eBird request to {path} failed: {exc}") from exc

    async def fetch_recent_observations(
        self,
        species_code: str,
        latitude: float,
        longitude: float,
        radius_miles: float,
        look_back_days: int,
        max_results: Optional[int] = None,
    ) -> List[Observation]:
        """
        Return recent observations of one species around a point.

        404 means eBird knows nothing for that species/area and is returned as [].
        Any other non-success status raises FetchError.
        """
        dist_km = max(1, min(MAX_DIST_KM, round(float(radius_miles) * KM_PER_MILE)))
        back = max(1, min(MAX_BACK_DAYS, int(look_back_days)))
        params = {
            "lat": f"{float(latitude):.4f}",
            "lng": f"{float(longitude):.4f}",
            "dist": dist_km,
            "back": back,
            "maxResults": int(max_results or self.max_results),
        }
        path = f"/data/obs/geo/recent/{species_code}"
        resp = await self._get(path, params)

        if resp.status_code == 404:
            return []
        if not resp.is_success:
            raise FetchError(
                f"eBird API returned {resp.status_code} {resp.reason_phrase}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(f"eBird returned invalid JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise FetchError("eBird returned an unexpected payload for recent observations")

        observations: List[Observation] = []
        for item in payload:
            try:
                observations.append(Observation.from_ebird(item))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Skipping unreadable observation", extra={"species": species_code, "error": str(exc)})
        return sort_observations(observations)

    async def fetch_taxonomy(self) -> List[Dict]:
        resp = await self._get("/ref/taxonomy/ebird", {"fmt": "json"})
        if not resp.is_success:
            raise FetchError(
                f"Unable to load the eBird species catalog ({resp.status_code})",
                status_code=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            raise FetchError(f"eBird returned invalid taxonomy JSON: {exc}") from exc
        if not isinstance(payload, list):
            raise FetchError("Received an unexpected response from the eBird taxonomy API")
        return payload


__all__ = ["EBirdClient", "EBIRD_API_BASE", "sort_observations"]
