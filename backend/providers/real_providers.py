from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

from common.errors import RouteUnavailableError
from common.settings import (
    ARCGIS_BASE_URL,
    NY_511_API_KEY,
    OPEN_METEO_URL,
    OSRM_BASE_URL,
    OVERPASS_MIRRORS,
    USER_AGENT,
)
from models import CameraRef, ResolvedLocation, RouteGeometry, WeatherObservation
from route_geometry import decode_polyline, haversine_miles

from .contracts import (
    CameraProvider,
    DirectionsProvider,
    GeocodeProvider,
    PlacesProvider,
    WeatherProvider,
)

logger = logging.getLogger(__name__)

GEOCODE_TIMEOUT = 3.0
REVERSE_GEOCODE_TIMEOUT = 6.0
ROUTING_TIMEOUT = 15.0
WEATHER_TIMEOUT = 10.0
PLACES_TIMEOUT = 15.0
CAMERA_TIMEOUT = 3.0

NY_511_CAMERAS_URL = "https://511ny.org/api/getcameras"

OPEN_METEO_CURRENT = "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m"
OPEN_METEO_HOURLY = (
    "temperature_2m,relative_humidity_2m,weather_code,wind_speed_10m,"
    "precipitation_probability,wind_direction_10m"
)

# Common stops (food/fuel) are dense, so a tight radius is enough; the sparse
# categories need a wider net.
OVERPASS_QUERY = """
[out:json][timeout:15];
(
  node["amenity"~"cafe|fast_food|restaurant|diner|fuel"](around:5000, {lat}, {lon});
);
out center 20;
(
  node["amenity"~"charging_station|rest_area"](around:15000, {lat}, {lon});
  node["highway"~"rest_area"](around:15000, {lat}, {lon});
  node["tourism"~"viewpoint|museum|park|theme_park"](around:15000, {lat}, {lon});
  node["historic"~"memorial|monument|castle|ruins"](around:15000, {lat}, {lon});
);
out center 100;
"""


def _format_address(address: Dict[str, Any], full: bool) -> Optional[str]:
    if full and address.get("Match_addr"):
        return address["Match_addr"]
    if address.get("City") and address.get("RegionAbbr"):
        return f"{address['City']}, {address['RegionAbbr']}"
    if address.get("City") and address.get("Region"):
        return f"{address['City']}, {address['Region']}"
    if address.get("Subregion") and address.get("RegionAbbr"):
        return f"{address['Subregion']}, {address['RegionAbbr']}"
    return address.get("Match_addr") or None


class ArcGISGeocodeProvider(GeocodeProvider):
    async def geocode(self, query: str) -> Optional[ResolvedLocation]:
        try:
            async with httpx.AsyncClient(timeout=GEOCODE_TIMEOUT) as client:
                url = f"{ARCGIS_BASE_URL}/findAddressCandidates"
                params = {"f": "json", "SingleLine": query, "maxLocations": 1}
                response = await client.get(url, params=params)
                response.raise_for_status()
                data = response.json()
        except Exception as e:
            logger.error(f"Geocoding failed for '{query}': {e}")
            return None

        candidates = data.get("candidates") or []
        if not candidates:
            logger.warning(f"Geocoding returned no results for '{query}'")
            return None
        candidate = candidates[0]
        location = candidate.get("location", {})
        return ResolvedLocation(
            lat=location["y"],
            lon=location["x"],
            display_name=candidate.get("address") or query,
        )

    async def reverse_geocode(self, lat: float, lon: float, full: bool = False) -> Optional[str]:
        try:
            data = await self._reverse(lat, lon)
        except Exception as e:
            logger.error(f"Reverse geocoding failed for {lat},{lon}: {e}")
            return None
        address = data.get("address")
        if not address:
            return None
        return _format_address(address, full)

    @retry(
        stop=stop_after_attempt(2),
        wait=wait_fixed(0.5),
        retry=retry_if_exception_type(httpx.HTTPError),
        reraise=True,
    )
    async def _reverse(self, lat: float, lon: float) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=REVERSE_GEOCODE_TIMEOUT) as client:
            url = f"{ARCGIS_BASE_URL}/reverseGeocode"
            params = {"f": "json", "location": f"{lon},{lat}", "distance": 10000}
            response = await client.get(url, params=params)
            response.raise_for_status()
            return response.json()


class OSRMDirectionsProvider(DirectionsProvider):
    async def route(
        self,
        origin: Dict[str, float],
        dest: Dict[str, float],
        alternatives: bool = False,
    ) -> List[RouteGeometry]:
        coords_str = f"{origin['lon']},{origin['lat']};{dest['lon']},{dest['lat']}"
        params = {
            "overview": "full",
            "geometries": "polyline",
            "alternatives": "true" if alternatives else "false",
        }
        try:
            async with httpx.AsyncClient(timeout=ROUTING_TIMEOUT) as client:
                response = await client.get(f"{OSRM_BASE_URL}/{coords_str}", params=params)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            logger.error(f"OSRM request failed: {e}")
            raise RouteUnavailableError(f"Routing engine unavailable: {e}") from e

        if data.get("code") != "Ok" or not data.get("routes"):
            logger.error(f"OSRM returned code {data.get('code')}")
            raise RouteUnavailableError(f"No drivable route found ({data.get('code')})")

        return [
            RouteGeometry(
                coordinates=decode_polyline(route["geometry"]),
                distance_meters=route.get("distance", 0),
                duration_seconds=route.get("duration", 0),
            )
            for route in data["routes"]
        ]


def _series_value(series: Optional[List[Any]], index: int) -> Optional[float]:
    if not series or index >= len(series):
        return None
    return series[index]


def _clamp_pct(value: Optional[float]) -> float:
    return max(0.0, min(100.0, float(value or 0)))


class OpenMeteoWeatherProvider(WeatherProvider):
    async def get_weather(
        self,
        lat: float,
        lon: float,
        date_str: Optional[str] = None,
        hour: Optional[int] = None,
    ) -> Optional[WeatherObservation]:
        params: Dict[str, Any] = {
            "latitude": lat,
            "longitude": lon,
            "current": OPEN_METEO_CURRENT,
            "hourly": OPEN_METEO_HOURLY,
            "timezone": "auto",
        }
        if date_str:
            params["start_date"] = date_str
            params["end_date"] = date_str
        else:
            params["forecast_days"] = 1

        try:
            data = await self._fetch(params)
        except Exception as e:
            logger.error(f"Weather fetch failed for {lat},{lon} on {date_str or 'today'}: {e}")
            return None

        hour_index = hour if hour is not None else 12
        if not 0 <= hour_index <= 23:
            hour_index = 12
        use_hourly = hour is not None or bool(date_str)

        hourly = data.get("hourly") or {}
        current = data.get("current") or {}
        if use_hourly:
            temperature = _series_value(hourly.get("temperature_2m"), hour_index)
            code = _series_value(hourly.get("weather_code"), hour_index)
            wind = _series_value(hourly.get("wind_speed_10m"), hour_index)
            humidity = _series_value(hourly.get("relative_humidity_2m"), hour_index)
        else:
            temperature = current.get("temperature_2m")
            code = current.get("weather_code")
            wind = current.get("wind_speed_10m")
            humidity = current.get("relative_humidity_2m")

        if temperature is None:
            return None

        return WeatherObservation(
            temperature_c=temperature,
            weather_code=int(code or 0),
            wind_speed_kmh=max(0.0, float(wind or 0)),
            humidity_pct=_clamp_pct(humidity),
            precip_probability_pct=_clamp_pct(
                _series_value(hourly.get("precipitation_probability"), hour_index)
            ),
            wind_direction_deg=float(_series_value(hourly.get("wind_direction_10m"), hour_index) or 0),
        )

    async def utc_offset_seconds(self, lat: float, lon: float) -> Optional[int]:
        params = {
            "latitude": lat,
            "longitude": lon,
            "current": "temperature_2m",
            "timezone": "auto",
            "forecast_days": 1,
        }
        try:
            data = await self._fetch(params)
        except Exception as e:
            logger.error(f"Time zone lookup failed for {lat},{lon}: {e}")
            return None
        offset = data.get("utc_offset_seconds")
        return int(offset) if offset is not None else None

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.HTTPError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _fetch(self, params: Dict[str, Any]) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=WEATHER_TIMEOUT) as client:
            response = await client.get(OPEN_METEO_URL, params=params)
            response.raise_for_status()
            return response.json()


class OverpassPlacesProvider(PlacesProvider):
    async def query_near(self, lat: float, lon: float, mirror: int = 0) -> List[Dict[str, Any]]:
        host = OVERPASS_MIRRORS[mirror % len(OVERPASS_MIRRORS)]
        query = OVERPASS_QUERY.format(lat=lat, lon=lon)
        async with httpx.AsyncClient(timeout=PLACES_TIMEOUT) as client:
            response = await client.get(
                f"https://{host}/api/interpreter",
                params={"data": query},
                headers={"User-Agent": USER_AGENT},
            )
            response.raise_for_status()
            data = response.json()
        return data.get("elements", [])


class NY511CameraProvider(CameraProvider):
    async def nearest_camera(self, lat: float, lon: float, radius_miles: float = 5) -> Optional[CameraRef]:
        if not NY_511_API_KEY:
            return None
        try:
            async with httpx.AsyncClient(timeout=CAMERA_TIMEOUT) as client:
                params = {"key": NY_511_API_KEY, "format": "json"}
                response = await client.get(NY_511_CAMERAS_URL, params=params)
                response.raise_for_status()
                cameras = response.json()
        except Exception as e:
            logger.error(f"Failed to fetch 511NY cameras: {e}")
            return None

        best = None
        best_distance = radius_miles
        for cam in cameras:
            if cam.get("Latitude") is None or cam.get("Longitude") is None:
                continue
            distance = haversine_miles(lat, lon, cam["Latitude"], cam["Longitude"])
            if distance <= best_distance:
                best, best_distance = cam, distance
        if best is None:
            return None
        return CameraRef(
            id=str(best.get("Id")),
            name=best.get("Name", "Traffic Camera"),
            url=best.get("Url", ""),
            video_url=best.get("VideoUrl"),
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
