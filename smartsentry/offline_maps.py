"""SmartSentry — Offline satellite map provider

Chooses between online satellite imagery and locally generated placeholder
tiles, caches tiles in the key-value store, and remembers which city
regions were pre-cached. Storage failures are logged and degrade to
None/False; the map keeps working without a cache.
"""

import base64
import json
import logging
from typing import Optional

from smartsentry.config import (
    CITY_CENTERS, DEFAULT_CITY, OFFLINE_TILE_KEY, SATELLITE_CACHE_KEY,
    TILE_CACHE_MAX_ENTRIES, TILE_URLS,
)
from smartsentry.network import NetworkStatus
from smartsentry.storage import KeyValueStore

logger = logging.getLogger("smartsentry.maps")

TILE_SIZE = 256
GRID_SIZE = 32
BASE_COLORS = ["#3d4d3d", "#4a4a4a", "#424242", "#5a5a5a", "#454545"]


def format_coordinates(latitude: float, longitude: float) -> dict:
    lat_dir = "N" if latitude >= 0 else "S"
    lng_dir = "E" if longitude >= 0 else "W"
    return {
        "decimal": f"{latitude:.6f}, {longitude:.6f}",
        "dms": f"{abs(latitude):.6f}°{lat_dir}, {abs(longitude):.6f}°{lng_dir}",
        "short": f"{latitude:.4f}, {longitude:.4f}",
    }


def location_geojson(latitude: float, longitude: float, accuracy: float = 30) -> dict:
    """GeoJSON FeatureCollection with the position and its accuracy circle."""
    point = {"type": "Point", "coordinates": [longitude, latitude]}
    return {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"type": "location", "accuracy": accuracy}, "geometry": point},
            {"type": "Feature", "properties": {"type": "accuracy_circle", "radius": accuracy}, "geometry": dict(point)},
        ],
    }


def generate_offline_tile(z: int, x: int, y: int) -> str:
    """SVG placeholder tile (as a data URL) with a faint grid and the zoom level."""
    color = BASE_COLORS[(x + y + z) % len(BASE_COLORS)]
    lines = []
    for i in range(0, TILE_SIZE + 1, GRID_SIZE):
        lines.append(f'<line x1="0" y1="{i}" x2="{TILE_SIZE}" y2="{i}" stroke="#666" stroke-width="0.5" opacity="0.3"/>')
        lines.append(f'<line x1="{i}" y1="0" x2="{i}" y2="{TILE_SIZE}" stroke="#666" stroke-width="0.5" opacity="0.3"/>')
    svg = (
        f'<svg width="{TILE_SIZE}" height="{TILE_SIZE}" xmlns="http://www.w3.org/2000/svg">'
        f'<rect width="{TILE_SIZE}" height="{TILE_SIZE}" fill="{color}"/>'
        f'{"".join(lines)}'
        f'<text x="12" y="24" fill="#888" font-size="12" opacity="0.5">z{z}</text>'
        f'</svg>'
    )
    return "data:image/svg+xml;base64," + base64.b64encode(svg.encode()).decode()


class OfflineSatelliteMapProvider:
    def __init__(self, store: KeyValueStore, network: NetworkStatus,
                 max_tiles: int = TILE_CACHE_MAX_ENTRIES):
        self.store = store
        self.network = network
        self.max_tiles = max_tiles
        self.current_city = DEFAULT_CITY
        # Insertion order of cached tile keys, oldest first; loaded from the store on first use
        self._tile_keys: list[str] = []
        self._tile_keys_loaded = False

    @staticmethod
    def _tile_key(z: int, x: int, y: int) -> str:
        return f"{SATELLITE_CACHE_KEY}:{z}:{x}:{y}"

    async def _load_tile_keys(self):
        if self._tile_keys_loaded:
            return
        prefix = f"{SATELLITE_CACHE_KEY}:"
        self._tile_keys = [k for k in await self.store.get_all_keys() if k.startswith(prefix)]
        self._tile_keys_loaded = True
        logger.debug(f"Found {len(self._tile_keys)} tiles cached by earlier sessions")

    def _use_online(self, is_offline: bool) -> bool:
        return not is_offline and self.network.is_online

    def tile_url(self, is_offline: bool = False) -> str:
        if self._use_online(is_offline):
            return TILE_URLS["satellite"]
        return TILE_URLS["offline_gray"]

    def map_provider(self, is_offline_mode: bool = False) -> dict:
        if self._use_online(is_offline_mode):
            return {
                "urlTemplate": TILE_URLS["satellite"],
                "attribution": "© Esri, DigitalGlobe, Earthstar Geographics",
                "tileSize": TILE_SIZE,
                "maxZoom": 18,
                "isOffline": False,
            }
        return {
            "urlTemplate": None,
            "attribution": "Offline Map • GPS Location",
            "tileSize": TILE_SIZE,
            "maxZoom": 16,
            "isOffline": True,
        }

    async def cache_tile(self, z: int, x: int, y: int, tile_data: str) -> bool:
        key = self._tile_key(z, x, y)
        try:
            await self._load_tile_keys()
            await self.store.set_item(key, tile_data)
            if key in self._tile_keys:
                self._tile_keys.remove(key)
            self._tile_keys.append(key)
            while len(self._tile_keys) > self.max_tiles:
                oldest = self._tile_keys.pop(0)
                await self.store.remove_item(oldest)
            return True
        except Exception as e:
            logger.warning(f"Tile cache error for {key}: {e}")
            return False

    async def get_cached_tile(self, z: int, x: int, y: int) -> Optional[str]:
        try:
            return await self.store.get_item(self._tile_key(z, x, y))
        except Exception as e:
            logger.warning(f"Tile read error: {e}")
            return None

    async def tile(self, z: int, x: int, y: int) -> str:
        """Cached tile if present, else a generated placeholder."""
        cached = await self.get_cached_tile(z, x, y)
        return cached if cached is not None else generate_offline_tile(z, x, y)

    async def _cached_regions(self) -> list[str]:
        raw = await self.store.get_item(OFFLINE_TILE_KEY)
        if not raw:
            return []
        regions = json.loads(raw)
        return regions if isinstance(regions, list) else []

    async def pre_cache_region(self, city: str = DEFAULT_CITY) -> bool:
        if city not in CITY_CENTERS:
            return False
        try:
            regions = await self._cached_regions()
            if city not in regions:
                regions.append(city)
                await self.store.set_item(OFFLINE_TILE_KEY, json.dumps(regions))
        except Exception as e:
            logger.warning(f"Region cache error for {city}: {e}")
            return False
        self.current_city = city
        return True

    async def is_region_cached(self, city: str) -> bool:
        try:
            return city in await self._cached_regions()
        except Exception as e:
            logger.warning(f"Region lookup error: {e}")
            return False

    def city_center(self, city: str = DEFAULT_CITY) -> dict:
        return CITY_CENTERS.get(city, CITY_CENTERS[DEFAULT_CITY])

    def offline_map_style(self) -> dict:
        return {
            "mapType": "satellite",
            "backgroundColor": "#3d4d3d",
            "customMapStyle": [
                {"elementType": "geometry", "stylers": [{"color": "#3d4d3d"}]},
                {"elementType": "labels.text.stroke", "stylers": [{"color": "#242f3e"}]},
                {"elementType": "labels.text.fill", "stylers": [{"color": "#746855"}]},
            ],
        }

    async def clear_cache(self) -> bool:
        try:
            keys = await self.store.get_all_keys()
            await self.store.multi_remove([k for k in keys if k.startswith(SATELLITE_CACHE_KEY)])
        except Exception as e:
            logger.warning(f"Tile cache clear failed: {e}")
            return False
        self._tile_keys = []
        self._tile_keys_loaded = True
        return True

    def status(self) -> dict:
        online = self.network.is_online
        return {
            "isOnline": online,
            "currentCity": self.current_city,
            "cachedTiles": len(self._tile_keys),
            "maxCache": self.max_tiles,
            "mapProvider": self.map_provider(not online),
        }
