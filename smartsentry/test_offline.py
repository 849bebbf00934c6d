"""Tests for NetworkStatus, the offline map provider and offline POIs."""

import asyncio
import base64

import pytest

from smartsentry.config import CITY_CENTERS, OFFLINE_TILE_KEY, TILE_URLS
from smartsentry.models import NetworkState
from smartsentry.network import NetworkStatus
from smartsentry.offline_maps import (
    OfflineSatelliteMapProvider, format_coordinates, generate_offline_tile, location_geojson,
)
from smartsentry.pois import OfflineEmergencyPOIs, haversine_meters

OFFLINE = NetworkState(isConnected=False, isInternetReachable=False)
ONLINE = NetworkState(isConnected=True, isInternetReachable=True)


def run(coro):
    return asyncio.run(coro)


class TestNetworkStatus:
    def test_listeners_fire_on_change_until_unsubscribed(self):
        network = NetworkStatus()
        seen = []
        unsubscribe = network.on_change(seen.append)

        network.update(OFFLINE)
        network.update(OFFLINE)  # no change, no notification
        unsubscribe()
        network.update(ONLINE)

        assert seen == [OFFLINE]
        assert network.current() == ONLINE

    def test_unreachable_internet_counts_as_offline(self):
        network = NetworkStatus(NetworkState(isConnected=True, isInternetReachable=False))
        assert network.is_online is False

    def test_failing_listener_does_not_block_others(self):
        network = NetworkStatus()
        seen = []

        def broken(state):
            raise RuntimeError("boom")

        network.on_change(broken)
        network.on_change(seen.append)
        network.update(OFFLINE)
        assert seen == [OFFLINE]


class TestMapProvider:
    def test_tile_url_follows_network(self, store):
        network = NetworkStatus()
        maps = OfflineSatelliteMapProvider(store, network)
        assert maps.tile_url() == TILE_URLS["satellite"]
        assert maps.tile_url(is_offline=True) == TILE_URLS["offline_gray"]

        network.update(OFFLINE)
        assert maps.tile_url() == TILE_URLS["offline_gray"]
        assert maps.map_provider()["isOffline"] is True
        assert maps.map_provider()["maxZoom"] == 16
        assert maps.status()["isOnline"] is False

    def test_generated_tile_is_svg_data_url(self):
        tile = generate_offline_tile(13, 5, 7)
        prefix = "data:image/svg+xml;base64,"
        assert tile.startswith(prefix)
        svg = base64.b64decode(tile[len(prefix):]).decode()
        assert 'fill="#3d4d3d"' in svg  # (5 + 7 + 13) % 5 == 0
        assert ">z13<" in svg

    def test_tile_cache_evicts_oldest(self, store):
        maps = OfflineSatelliteMapProvider(store, NetworkStatus(), max_tiles=3)

        async def fill():
            for x in range(5):
                assert await maps.cache_tile(10, x, 0, f"tile-{x}")
            return [await maps.get_cached_tile(10, x, 0) for x in range(5)]

        assert run(fill()) == [None, None, "tile-2", "tile-3", "tile-4"]
        assert maps.status()["cachedTiles"] == 3

    def test_tile_cap_counts_tiles_from_earlier_sessions(self, store):
        earlier = OfflineSatelliteMapProvider(store, NetworkStatus(), max_tiles=3)
        for x in range(3):
            run(earlier.cache_tile(10, x, 0, f"old-{x}"))

        restarted = OfflineSatelliteMapProvider(store, NetworkStatus(), max_tiles=3)
        assert run(restarted.cache_tile(10, 9, 0, "new"))

        assert run(restarted.get_cached_tile(10, 0, 0)) is None
        assert run(restarted.get_cached_tile(10, 1, 0)) == "old-1"
        assert run(restarted.get_cached_tile(10, 9, 0)) == "new"
        assert restarted.status()["cachedTiles"] == 3

    def test_tile_falls_back_to_generated(self, store):
        maps = OfflineSatelliteMapProvider(store, NetworkStatus())
        assert run(maps.tile(3, 1, 1)) == generate_offline_tile(3, 1, 1)

    def test_region_pre_cache(self, store):
        maps = OfflineSatelliteMapProvider(store, NetworkStatus())
        assert run(maps.pre_cache_region("mumbai")) is True
        assert run(maps.pre_cache_region("mumbai")) is True
        assert run(maps.pre_cache_region("atlantis")) is False
        assert run(maps.is_region_cached("mumbai")) is True
        assert run(maps.is_region_cached("delhi")) is False
        assert run(store.get_item(OFFLINE_TILE_KEY)) == '["mumbai"]'
        assert maps.current_city == "mumbai"

    def test_clear_cache_only_removes_tiles(self, store):
        maps = OfflineSatelliteMapProvider(store, NetworkStatus())
        run(maps.cache_tile(1, 1, 1, "t"))
        run(maps.pre_cache_region("delhi"))
        run(store.set_item("token", "tok"))

        assert run(maps.clear_cache()) is True
        assert sorted(run(store.get_all_keys())) == sorted([OFFLINE_TILE_KEY, "token"])
        assert maps.status()["cachedTiles"] == 0

    def test_storage_failure_degrades(self):
        class BrokenStore:
            async def set_item(self, key, value):
                raise OSError("disk full")

            async def get_item(self, key):
                raise OSError("disk gone")

            async def get_all_keys(self):
                return []

        maps = OfflineSatelliteMapProvider(BrokenStore(), NetworkStatus())
        assert run(maps.cache_tile(1, 1, 1, "t")) is False
        assert run(maps.get_cached_tile(1, 1, 1)) is None
        assert run(maps.is_region_cached("delhi")) is False
        assert run(maps.pre_cache_region("delhi")) is False

    def test_city_center_defaults_to_bengaluru(self, store):
        maps = OfflineSatelliteMapProvider(store, NetworkStatus())
        assert maps.city_center("hyderabad") == CITY_CENTERS["hyderabad"]
        assert maps.city_center("nowhere") == CITY_CENTERS["bengaluru"]


def test_format_coordinates():
    formatted = format_coordinates(12.9716, -77.5946)
    assert formatted["decimal"] == "12.971600, -77.594600"
    assert formatted["dms"] == "12.971600°N, 77.594600°W"
    assert formatted["short"] == "12.9716, -77.5946"


def test_location_geojson_uses_lng_lat_order():
    geo = location_geojson(12.97, 77.59, accuracy=15)
    assert geo["type"] == "FeatureCollection"
    assert [f["properties"]["type"] for f in geo["features"]] == ["location", "accuracy_circle"]
    assert geo["features"][0]["geometry"]["coordinates"] == [77.59, 12.97]
    assert geo["features"][1]["properties"]["radius"] == 15


class TestPOIs:
    def test_haversine_known_distance(self):
        # MG Road metro to Cubbon Park police station is roughly 0.8 km
        d = haversine_meters(12.9755, 77.6068, 12.9767, 77.5993)
        assert 700 < d < 900

    def test_nearby_sorted_and_limited(self):
        pois = OfflineEmergencyPOIs()
        found = pois.police_stations(12.9716, 77.5946, limit=2)
        assert len(found) == 2
        assert found[0].distance <= found[1].distance
        assert all(p.type == "police" and p.icon == "🚔" for p in found)

    def test_radius_filters_far_pois(self):
        pois = OfflineEmergencyPOIs()
        assert pois.hospitals(28.7041, 77.1025) == []  # Delhi: nothing bundled within 10 km

    def test_add_skips_duplicates_and_malformed(self):
        pois = OfflineEmergencyPOIs(pois=[])
        added = pois.add([
            {"name": "AIIMS", "type": "hospital", "lat": 28.5672, "lng": 77.2100},
            {"name": "AIIMS", "type": "hospital", "lat": 28.5672, "lng": 77.2100},
            {"name": "Broken", "type": "hospital", "lat": "north"},
        ])
        assert added == 1
        assert [p.name for p in pois.hospitals(28.5672, 77.21)] == ["AIIMS"]

    def test_emergency_summary(self):
        summary = OfflineEmergencyPOIs().emergency_summary(12.9716, 77.5946)
        assert summary["nearestHospital"] is not None
        assert summary["nearestPolice"] is not None
        assert "Hospital:" in summary["summary"]

    def test_emergency_summary_without_data(self):
        summary = OfflineEmergencyPOIs(pois=[]).emergency_summary(0, 0)
        assert summary["summary"] == "No emergency services found nearby."
