from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol

from models import CameraRef, ResolvedLocation, RouteGeometry, WeatherObservation


class GeocodeProvider(Protocol):
    async def geocode(self, query: str) -> Optional[ResolvedLocation]:
        ...

    async def reverse_geocode(self, lat: float, lon: float, full: bool = False) -> Optional[str]:
        ...


class DirectionsProvider(Protocol):
    async def route(
        self,
        origin: Dict[str, float],
        dest: Dict[str, float],
        alternatives: bool = False,
    ) -> List[RouteGeometry]:
        """Primary route first, then any alternatives. Raises on failure."""
        ...


class WeatherProvider(Protocol):
    async def get_weather(
        self,
        lat: float,
        lon: float,
        date_str: Optional[str] = None,
        hour: Optional[int] = None,
    ) -> Optional[WeatherObservation]:
        ...

    async def utc_offset_seconds(self, lat: float, lon: float) -> Optional[int]:
        """Current UTC offset of the coordinate's local time zone."""
        ...


class PlacesProvider(Protocol):
    async def query_near(self, lat: float, lon: float, mirror: int = 0) -> List[Dict[str, Any]]:
        """Raw OSM-style elements (``{"id", "lat", "lon", "tags"}``). Raises on failure."""
        ...


class CameraProvider(Protocol):
    async def nearest_camera(self, lat: float, lon: float, radius_miles: float = 5) -> Optional[CameraRef]:
        ...
