from __future__ import annotations

import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from common.errors import RouteUnavailableError
from models import METERS_PER_MILE, CameraRef, ResolvedLocation, RouteGeometry, WeatherObservation
from route_geometry import haversine_miles

from .contracts import (
    CameraProvider,
    DirectionsProvider,
    GeocodeProvider,
    PlacesProvider,
    WeatherProvider,
)

FIXTURES_ROOT = Path(__file__).parent.parent / "fixtures" / "demo"

# Synthetic routes for endpoints not covered by a fixture
SYNTHETIC_ROUTE_STEPS = 20
SYNTHETIC_DETOUR_FACTOR = 1.2
SYNTHETIC_SPEED_MPH = 55.0


class _FixtureLoader:
    def __init__(self, fixture_name: str):
        self.path = FIXTURES_ROOT / fixture_name / "data.json"
        with self.path.open("r", encoding="utf-8") as f:
            self.data = json.load(f)


def _near(a: Dict[str, float], lat: float, lon: float, tolerance: float) -> bool:
    return abs(a["lat"] - lat) < tolerance and abs(a["lon"] - lon) < tolerance


class FakeGeocodeProvider(GeocodeProvider, _FixtureLoader):
    REVERSE_TOLERANCE_DEG = 0.75

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "geocode")

    async def geocode(self, query: str) -> Optional[ResolvedLocation]:
        key = query.strip().lower()
        entry = self.data.get("locations", {}).get(key)
        if entry:
            return ResolvedLocation(lat=entry["lat"], lon=entry["lon"], display_name=entry["display_name"])
        return None

    async def reverse_geocode(self, lat: float, lon: float, full: bool = False) -> Optional[str]:
        best = None
        best_distance = float("inf")
        for city in self.data.get("cities", []):
            if not _near(city, lat, lon, self.REVERSE_TOLERANCE_DEG):
                continue
            distance = haversine_miles(lat, lon, city["lat"], city["lon"])
            if distance < best_distance:
                best, best_distance = city, distance
        if best is None:
            return None
        if full:
            return best.get("address") or best["name"]
        return best["name"]


class FakeDirectionsProvider(DirectionsProvider, _FixtureLoader):
    ENDPOINT_TOLERANCE_DEG = 0.05

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "directions")

    async def route(
        self,
        origin: Dict[str, float],
        dest: Dict[str, float],
        alternatives: bool = False,
    ) -> List[RouteGeometry]:
        for route in self.data.get("routes", []):
            if _near(route["origin"], origin["lat"], origin["lon"], self.ENDPOINT_TOLERANCE_DEG) and _near(
                route["dest"], dest["lat"], dest["lon"], self.ENDPOINT_TOLERANCE_DEG
            ):
                geometries = [self._to_geometry(route)]
                if alternatives:
                    geometries.extend(self._to_geometry(alt) for alt in route.get("alternatives", []))
                return geometries
        return [self._synthetic_route(origin, dest)]

    @staticmethod
    def _to_geometry(route: Dict[str, Any]) -> RouteGeometry:
        return RouteGeometry(
            coordinates=route["coordinates"],
            distance_meters=route["distance_meters"],
            duration_seconds=route["duration_seconds"],
        )

    @staticmethod
    def _synthetic_route(origin: Dict[str, float], dest: Dict[str, float]) -> RouteGeometry:
        """Straight-line route; identical endpoints yield a single point."""
        if origin["lat"] == dest["lat"] and origin["lon"] == dest["lon"]:
            return RouteGeometry(coordinates=[[origin["lon"], origin["lat"]]])

        coordinates = []
        for step in range(SYNTHETIC_ROUTE_STEPS + 1):
            f = step / SYNTHETIC_ROUTE_STEPS
            coordinates.append([
                round(origin["lon"] + (dest["lon"] - origin["lon"]) * f, 5),
                round(origin["lat"] + (dest["lat"] - origin["lat"]) * f, 5),
            ])
        miles = haversine_miles(origin["lat"], origin["lon"], dest["lat"], dest["lon"]) * SYNTHETIC_DETOUR_FACTOR
        return RouteGeometry(
            coordinates=coordinates,
            distance_meters=miles * METERS_PER_MILE,
            duration_seconds=miles / SYNTHETIC_SPEED_MPH * 3600,
        )


class FakeWeatherProvider(WeatherProvider, _FixtureLoader):
    POINT_TOLERANCE_DEG = 1.0
    DIURNAL_AMPLITUDE_C = 5.0
    PEAK_HOUR = 15

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "weather")

    async def get_weather(
        self,
        lat: float,
        lon: float,
        date_str: Optional[str] = None,
        hour: Optional[int] = None,
    ) -> Optional[WeatherObservation]:
        hour_index = hour if hour is not None and 0 <= hour <= 23 else 12

        entry = None
        best_distance = float("inf")
        for point in self.data.get("points", []):
            if not _near(point, lat, lon, self.POINT_TOLERANCE_DEG):
                continue
            distance = haversine_miles(lat, lon, point["lat"], point["lon"])
            if distance < best_distance:
                entry, best_distance = point, distance

        if entry is None:
            base = dict(self.data.get("default", {}))
            rain_hours: List[int] = []
        else:
            base = dict(entry["base"])
            rain_hours = entry.get("rain_hours", [])

        swing = math.cos((hour_index - self.PEAK_HOUR) / 24 * 2 * math.pi)
        base["temperature_c"] = round(base.get("temperature_c", 15.0) + self.DIURNAL_AMPLITUDE_C * swing, 1)
        if hour_index in rain_hours:
            base["weather_code"] = 61
            base["precip_probability_pct"] = 70
        return WeatherObservation(**base)

    async def utc_offset_seconds(self, lat: float, lon: float) -> Optional[int]:
        return self.data.get("utc_offset_seconds")


class FakePlacesProvider(PlacesProvider, _FixtureLoader):
    SEARCH_RADIUS_MILES = 9.5

    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "places")

    async def query_near(self, lat: float, lon: float, mirror: int = 0) -> List[Dict[str, Any]]:
        return [
            element
            for element in self.data.get("elements", [])
            if haversine_miles(lat, lon, element["lat"], element["lon"]) <= self.SEARCH_RADIUS_MILES
        ]


class FakeCameraProvider(CameraProvider, _FixtureLoader):
    def __init__(self) -> None:
        _FixtureLoader.__init__(self, "cameras")

    async def nearest_camera(self, lat: float, lon: float, radius_miles: float = 5) -> Optional[CameraRef]:
        for cam in self.data.get("cameras", []):
            if haversine_miles(lat, lon, cam["lat"], cam["lon"]) <= radius_miles:
                return CameraRef(
                    id=cam["id"],
                    name=cam["name"],
                    url=cam["url"],
                    video_url=cam.get("video_url"),
                    timestamp=datetime.now(timezone.utc).isoformat(),
                )
        return None
