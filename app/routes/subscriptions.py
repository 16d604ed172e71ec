import re
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Body, Request
from fastapi.responses import JSONResponse, Response

from app.security import CREATE_LIMIT, CREATE_WINDOW_SECONDS, allow_request, client_key
from core.database import add_subscription, delete_subscription, list_subscriptions

router = APIRouter()

_PHONE_RE = re.compile(r"\+?[0-9\s\-().]+")
_ID_RE = re.compile(r"[0-9]+")
DEFAULT_LOOK_BACK_DAYS = 3


def _is_valid_phone(phone: Any) -> bool:
    if not isinstance(phone, str):
        return False
    if not 5 <= len(phone) <= 20:
        return False
    return bool(_PHONE_RE.fullmatch(phone))


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _as_int(value: Any) -> Optional[int]:
    number = _as_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def _text_field(payload: Dict, name: str, errors: Dict[str, str]) -> Optional[str]:
    value = payload.get(name)
    if not isinstance(value, str) or len(value.strip()) < 2:
        errors[name] = "Must be a string of at least 2 characters"
        return None
    return value.strip()


def validate_subscription_payload(payload: Any) -> Tuple[Optional[Dict], Dict[str, str]]:
    """
    Validate a create-subscription body.
    Returns (clean kwargs for add_subscription, {}) or (None, {field: message}).
    """
    if not isinstance(payload, dict):
        return None, {"body": "Expected a JSON object"}

    errors: Dict[str, str] = {}

    phone = payload.get("phone")
    if not _is_valid_phone(phone):
        errors["phone"] = "Invalid phone number"

    species_code = _text_field(payload, "speciesCode", errors)
    species_common_name = _text_field(payload, "speciesCommonName", errors)
    location_label = _text_field(payload, "locationLabel", errors)

    latitude = _as_number(payload.get("latitude"))
    if latitude is None or not -90 <= latitude <= 90:
        errors["latitude"] = "Must be a number between -90 and 90"

    longitude = _as_number(payload.get("longitude"))
    if longitude is None or not -180 <= longitude <= 180:
        errors["longitude"] = "Must be a number between -180 and 180"

    radius_miles = _as_int(payload.get("radiusMiles"))
    if radius_miles is None or not 0 < radius_miles <= 200:
        errors["radiusMiles"] = "Must be a whole number of miles between 1 and 200"

    raw_days = payload.get("lookBackDays")
    look_back_days = DEFAULT_LOOK_BACK_DAYS if raw_days is None else _as_int(raw_days)
    if look_back_days is None or not 0 < look_back_days <= 30:
        errors["lookBackDays"] = "Must be a whole number of days between 1 and 30"

    if errors:
        return None, errors

    return {
        "phone": phone,
        "species_code": species_code,
        "species_common_name": species_common_name,
        "location_label": location_label,
        "latitude": latitude,
        "longitude": longitude,
        "radius_miles": radius_miles,
        "look_back_days": look_back_days,
    }, {}


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/api/subscriptions")
def get_subscriptions():
    return [sub.to_json() for sub in list_subscriptions()]


@router.post("/api/subscriptions")
def create_subscription(request: Request, payload: Any = Body(None)):
    if not allow_request(client_key(request, "subscribe"), limit=CREATE_LIMIT, window_seconds=CREATE_WINDOW_SECONDS):
        return JSONResponse({"error": "Too many requests. Please try again later."}, status_code=429)

    clean, errors = validate_subscription_payload(payload)
    if errors:
        return JSONResponse(
            {"error": "Invalid subscription payload", "details": errors},
            status_code=400,
        )

    subscription = add_subscription(**clean)
    return JSONResponse(subscription.to_json(), status_code=201)


@router.delete("/api/subscriptions/{sub_id}")
def remove_subscription(sub_id: str):
    if not _ID_RE.fullmatch(sub_id):
        return JSONResponse({"error": "Invalid id parameter"}, status_code=400)
    delete_subscription(int(sub_id))
    return Response(status_code=204)
