"""
Plain data types passed between the store, the feed client and the worker.

Timestamps are always timezone-aware UTC datetimes in memory and ISO-8601
text (second precision, explicit +00:00 offset) in the database, so string
comparison in SQL matches time order.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored or feed timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without a trailing "Z") and
    eBird's "YYYY-MM-DD HH:MM" local form. Naive values are read as UTC.
    Returns None for empty input; raises ValueError for garbage.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return parse_timestamp(value).isoformat(timespec="seconds")


@dataclass(frozen=True)
class Cursor:
    """Last notified sighting for a subscription."""

    last_observation_id: Optional[str] = None
    last_notified_at: Optional[datetime] = None


@dataclass(frozen=True)
class Subscription:
    id: int
    phone: str
    species_code: str
    species_common_name: str
    location_label: str
    latitude: float
    longitude: float
    radius_miles: int
    look_back_days: int
    created_at: Optional[datetime] = None
    cursor: Cursor = field(default_factory=Cursor)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Subscription":
        row = dict(row)
        return cls(
            id=int(row["id"]),
            phone=row["phone"],
            species_code=row["species_code"],
            species_common_name=row["species_common_name"],
            location_label=row["location_label"],
            latitude=float(row["latitude"]),
            longitude=float(row["longitude"]),
            radius_miles=int(row["radius_miles"]),
            look_back_days=int(row["look_back_days"]),
            created_at=parse_timestamp(row.get("created_at")),
            cursor=Cursor(
                last_observation_id=row.get("last_observation_id") or None,
                last_notified_at=parse_timestamp(row.get("last_notified_at")),
            ),
        )

    def to_json(self) -> Dict[str, Any]:
        """Public (camelCase) representation used by the management API."""
        return {
            "id": self.id,
            "phone": self.phone,
            "speciesCode": self.species_code,
            "speciesCommonName": self.species_common_name,
            "locationLabel": self.location_label,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radiusMiles": self.radius_miles,
            "lookBackDays": self.look_back_days,
            "createdAt": format_timestamp(self.created_at),
            "lastObservationId": self.cursor.last_observation_id,
            "lastNotifiedAt": format_timestamp(self.cursor.last_notified_at),
        }


@dataclass(frozen=True)
class Observation:
    species_code: str
    submission_id: str
    observed_at: datetime
    location_name: str = ""
    common_name: str = ""
    scientific_name: str = ""
    location_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    count: Optional[int] = None
    distance: Optional[float] = None

    @classmethod
    def from_ebird(cls, item: Mapping[str, Any]) -> "Observation":
        """
        Build an Observation from one eBird JSON record.
        Raises ValueError/KeyError when subId or obsDt is missing or unreadable.
        """
        submission_id = str(item["subId"] or "").strip()
        if not submission_id:
            raise ValueError("observation has no subId")
        observed_at = parse_timestamp(item["obsDt"])
        if observed_at is None:
            raise ValueError("observation has no obsDt")

        how_many = item.get("howMany")
        distance = item.get("distance")
        return cls(
            species_code=item.get("speciesCode") or "",
            submission_id=submission_id,
            observed_at=observed_at,
            location_name=item.get("locName") or "",
            common_name=item.get("comName") or "",
            scientific_name=item.get("sciName") or "",
            location_id=item.get("locId"),
            latitude=item.get("lat"),
            longitude=item.get("lng"),
            count=int(how_many) if how_many is not None else None,
            distance=float(distance) if distance is not None else None,
        )

    def to_json(self) -> Dict[str, Any]:
        return {
            "speciesCode": self.species_code,
            "comName": self.common_name,
            "sciName": self.scientific_name,
            "locId": self.location_id,
            "locName": self.location_name,
            "lat": self.latitude,
            "lng": self.longitude,
            "obsDt": format_timestamp(self.observed_at),
            "howMany": self.count,
            "distance": self.distance,
            "subId": self.submission_id,
        }


__all__ = [
    "Cursor",
    "Observation",
    "Subscription",
    "format_timestamp",
    "parse_timestamp",
    "utc_now",
]
