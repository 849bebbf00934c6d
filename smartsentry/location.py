"""SmartSentry — Location normalization

Emergency records arrive with their location in one of several shapes:

    {"coordinates": {"latitude": 12.9, "longitude": 77.5}}
    {"location": {"latitude": 12.9, "longitude": 77.5, "address": "..."}}
    {"latitude": 12.9, "longitude": 77.5}
    {"location": "12.9, 77.5"}  or  {"location": "MG Road"}

normalize_location() collapses all of them into a NormalizedLocation and
never raises.
"""

import re
from typing import Any, Optional

from smartsentry.models import NormalizedLocation

UNKNOWN_LOCATION = "Unknown location"

# Whole text must be "lat, lng" (or "lat; lng"), optionally in parentheses
_COORD_PATTERN = re.compile(r"\(?\s*(-?\d+(?:\.\d+)?)\s*[,;]\s*(-?\d+(?:\.\d+)?)\s*\)?")


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if f != f:  # NaN
        return None
    return f


def _pair(lat: Any, lng: Any) -> Optional[tuple[float, float]]:
    lat_f, lng_f = _to_float(lat), _to_float(lng)
    if lat_f is None or lng_f is None:
        return None
    if not (-90.0 <= lat_f <= 90.0 and -180.0 <= lng_f <= 180.0):
        return None
    return lat_f, lng_f


def _from_mapping(obj: Any) -> Optional[tuple[float, float]]:
    if not isinstance(obj, dict):
        return None
    lat = obj.get("latitude", obj.get("lat"))
    lng = obj.get("longitude", obj.get("lng", obj.get("lon")))
    return _pair(lat, lng)


def _parse_coordinate_text(text: str) -> Optional[tuple[float, float]]:
    m = _COORD_PATTERN.fullmatch(text.strip())
    if not m:
        return None
    return _pair(m.group(1), m.group(2))


def _address_of(raw: dict) -> Optional[str]:
    loc = raw.get("location")
    if isinstance(loc, dict):
        addr = loc.get("address")
        if isinstance(addr, str) and addr.strip():
            return addr.strip()
    if isinstance(loc, str) and loc.strip():
        return loc.strip()
    addr = raw.get("address")
    if isinstance(addr, str) and addr.strip():
        return addr.strip()
    return None


def normalize_location(raw: Any) -> NormalizedLocation:
    """Normalize a record (or bare location value) into latitude/longitude/address.

    Priority: ``coordinates`` object > ``location`` object > direct
    latitude/longitude fields > "lat, lng" text > fallback with the original
    text (or 'Unknown location') as the address.
    """
    if isinstance(raw, str):
        raw = {"location": raw}
    if not isinstance(raw, dict):
        return NormalizedLocation(address=UNKNOWN_LOCATION)

    address = _address_of(raw) or UNKNOWN_LOCATION

    pair = (
        _from_mapping(raw.get("coordinates"))
        or _from_mapping(raw.get("location"))
        or _from_mapping(raw)
    )
    if pair is None and isinstance(raw.get("location"), str):
        pair = _parse_coordinate_text(raw["location"])

    if pair is None:
        return NormalizedLocation(latitude=None, longitude=None, address=address)
    return NormalizedLocation(latitude=pair[0], longitude=pair[1], address=address)
