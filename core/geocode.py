"""
Location lookup for anchoring a search: US ZIP codes via Zippopotam,
anything else via OpenStreetMap Nominatim.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx

from core.errors import LocationLookupError

ZIP_API_BASE = "https://api.zippopotam.us/us"
NOMINATIM_BASE = "https://nominatim.openstreetmap.org/search"
USER_AGENT = "BirdTrail/1.0"


@dataclass(frozen=True)
class LocationResult:
    latitude: float
    longitude: float
    label: str
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None

    def to_json(self) -> Dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "label": self.label,
            "city": self.city,
            "state": self.state,
            "postalCode": self.postal_code,
        }


class LocationLookup:
    def __init__(
        self,
        *,
        contact_email: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.contact_email = contact_email
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"Accept": "application/json", "Accept-Language": "en", "User-Agent": USER_AGENT},
            timeout=self.timeout,
            transport=self._transport,
        )

    async def lookup_zip(self, zip_code: str) -> LocationResult:
        try:
            async with self._client() as client:
                resp = await client.get(f"{ZIP_API_BASE}/{zip_code}")
        except httpx.HTTPError as exc:
            raise LocationLookupError(f"ZIP lookup failed: {exc}") from exc
        if not resp.is_success:
            raise LocationLookupError("We could not locate that ZIP code.")

        try:
            payload = resp.json() or {}
        except ValueError as exc:
            raise LocationLookupError(f"ZIP lookup returned invalid JSON: {exc}") from exc
        places = payload.get("places") or []
        if not places:
            raise LocationLookupError("No places were returned for that ZIP code.")
        first = places[0]
        city = first.get("place name")
        state = first.get("state abbreviation")
        return LocationResult(
            latitude=float(first["latitude"]),
            longitude=float(first["longitude"]),
            label=", ".join(p for p in (city, state) if p),
            city=city,
            state=state,
            postal_code=zip_code,
        )

    async def lookup_place(self, query: str, limit: int = 5) -> List[LocationResult]:
        params = {"format": "json", "limit": limit, "addressdetails": 1, "q": query}
        if self.contact_email:
            params["email"] = self.contact_email
        try:
            async with self._client() as client:
                resp = await client.get(NOMINATIM_BASE, params=params)
        except httpx.HTTPError as exc:
            raise LocationLookupError(f"Location lookup failed: {exc}") from exc

        if resp.status_code == 429:
            raise LocationLookupError(
                "The geocoding service rate-limited the request. Please try again shortly.",
                rate_limited=True,
            )
        if not resp.is_success:
            raise LocationLookupError("We could not look up that location right now.")

        try:
            payload = resp.json() or []
        except ValueError as exc:
            raise LocationLookupError(f"Location lookup returned invalid JSON: {exc}") from exc

        results: List[LocationResult] = []
        for item in payload:
            if not item.get("lat") or not item.get("lon"):
                continue
            address = item.get("address") or {}
            city = (
                address.get("city")
                or address.get("town")
                or address.get("village")
                or address.get("hamlet")
                or address.get("county")
            )
            state = address.get("state") or address.get("region") or address.get("state_district")
            display = ", ".join(part.strip() for part in (item.get("display_name") or "").split(",")[:3]).strip(", ")
            label = display or ", ".join(p for p in (city, state) if p) or query
            results.append(
                LocationResult(
                    latitude=float(item["lat"]),
                    longitude=float(item["lon"]),
                    label=label,
                    city=city,
                    state=state,
                    postal_code=address.get("postcode"),
                )
            )
        return results[:limit]

    async def search(self, query: str, limit: int = 5) -> List[LocationResult]:
        """
        - 5 digits: ZIP lookup (an unknown ZIP yields []).
        - fewer than 3 characters: [].
        - anything else: Nominatim free-text search.
        """
        normalized = (query or "").strip()
        if not normalized:
            return []
        if re.fullmatch(r"\d{5}", normalized):
            try:
                return [await self.lookup_zip(normalized)]
            except LocationLookupError:
                return []
        if len(normalized) < 3:
            return []
        return await self.lookup_place(normalized, limit)


__all__ = ["LocationLookup", "LocationResult"]
