"""SmartSentry — Offline emergency points of interest

Bundled hospitals, police stations and safe zones so the map can point to
help without network access. Additional POIs fetched while online can be
merged in with add().
"""

import math
import logging
from typing import Iterable, Optional

from smartsentry.models import NearbyPOI

logger = logging.getLogger("smartsentry.pois")

POI_ICONS = {"hospital": "🏥", "police": "🚔", "safe_zone": "🛡️"}

# Seed data for the default offline region (Bengaluru)
SEED_POIS = [
    {"name": "Victoria Hospital", "type": "hospital", "lat": 12.9634, "lng": 77.5733,
     "address": "Fort Road, Kalasipalya", "phone": "080-26701150"},
    {"name": "Bowring and Lady Curzon Hospital", "type": "hospital", "lat": 12.9822, "lng": 77.6044,
     "address": "Shivajinagar", "phone": "080-25591325"},
    {"name": "St. John's Medical College Hospital", "type": "hospital", "lat": 12.9298, "lng": 77.6195,
     "address": "Sarjapur Road, Koramangala", "phone": "080-22065000"},
    {"name": "NIMHANS", "type": "hospital", "lat": 12.9431, "lng": 77.5964,
     "address": "Hosur Road, Lakkasandra", "phone": "080-26995000"},
    {"name": "Cubbon Park Police Station", "type": "police", "lat": 12.9767, "lng": 77.5993,
     "address": "Kasturba Road", "phone": "100"},
    {"name": "Koramangala Police Station", "type": "police", "lat": 12.9352, "lng": 77.6245,
     "address": "80 Feet Road, Koramangala", "phone": "100"},
    {"name": "Jayanagar Police Station", "type": "police", "lat": 12.9299, "lng": 77.5826,
     "address": "11th Main, Jayanagar", "phone": "100"},
    {"name": "Upparpet Police Station", "type": "police", "lat": 12.9771, "lng": 77.5733,
     "address": "Gandhi Nagar", "phone": "100"},
    {"name": "Kempegowda Bus Station", "type": "safe_zone", "lat": 12.9779, "lng": 77.5724,
     "address": "Majestic", "phone": ""},
    {"name": "MG Road Metro Station", "type": "safe_zone", "lat": 12.9755, "lng": 77.6068,
     "address": "Mahatma Gandhi Road", "phone": ""},
]


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points in meters."""
    R = 6371000.0  # Earth radius in meters
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class OfflineEmergencyPOIs:
    def __init__(self, pois: Optional[Iterable[dict]] = None):
        self._pois: list[dict] = []
        self.add(SEED_POIS if pois is None else pois)

    def add(self, pois: Iterable[dict]) -> int:
        """Merge POIs, skipping ones already known by (type, name)."""
        known = {(p["type"], p["name"]) for p in self._pois}
        added = 0
        for p in pois:
            try:
                entry = {
                    "name": str(p["name"]), "type": str(p["type"]),
                    "lat": float(p["lat"]), "lng": float(p["lng"]),
                    "address": str(p.get("address", "")), "phone": str(p.get("phone", "")),
                }
            except (KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed POI {p!r}: {e}")
                continue
            if (entry["type"], entry["name"]) in known:
                continue
            known.add((entry["type"], entry["name"]))
            self._pois.append(entry)
            added += 1
        return added

    def nearby(self, kind: str, lat: float, lng: float,
               radius_km: float = 10.0, limit: int = 5) -> list[NearbyPOI]:
        results = []
        for p in self._pois:
            if p["type"] != kind:
                continue
            dist = haversine_meters(lat, lng, p["lat"], p["lng"])
            if dist <= radius_km * 1000:
                results.append(NearbyPOI(
                    name=p["name"], type=p["type"], lat=p["lat"], lng=p["lng"],
                    distance=round(dist, 1), icon=POI_ICONS.get(p["type"], "📍"),
                    address=p["address"], phone=p["phone"],
                ))
        results.sort(key=lambda r: r.distance)
        return results[:limit]

    def hospitals(self, lat: float, lng: float, radius_km: float = 10.0, limit: int = 5) -> list[NearbyPOI]:
        return self.nearby("hospital", lat, lng, radius_km, limit)

    def police_stations(self, lat: float, lng: float, radius_km: float = 10.0, limit: int = 5) -> list[NearbyPOI]:
        return self.nearby("police", lat, lng, radius_km, limit)

    def safe_zones(self, lat: float, lng: float, radius_km: float = 5.0, limit: int = 5) -> list[NearbyPOI]:
        return self.nearby("safe_zone", lat, lng, radius_km, limit)

    def emergency_summary(self, lat: float, lng: float) -> dict:
        """Nearest help of each kind, for display when the network is down."""
        hospitals = self.hospitals(lat, lng, limit=1)
        police = self.police_stations(lat, lng, limit=1)
        safe = self.safe_zones(lat, lng, limit=1)
        lines = []
        for label, found in (("Hospital", hospitals), ("Police", police), ("Safe zone", safe)):
            if found:
                lines.append(f"{label}: {found[0].name} ({found[0].distance / 1000:.1f} km)")
        return {
            "nearestHospital": hospitals[0] if hospitals else None,
            "nearestPolice": police[0] if police else None,
            "nearestSafeZone": safe[0] if safe else None,
            "summary": "\n".join(lines) if lines else "No emergency services found nearby.",
        }
