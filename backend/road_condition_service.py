"""
Road Condition Service

Maps WMO weather codes to a road status tier and builds the four road
segments shown per leg (start, ~33%, ~66%, destination), each with a camera.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from geocoding_service import reverse_resolve
from models import CameraRef, Coordinate, RoadConditionSegment, RouteGeometry
from providers import ProviderSet, get_providers
from route_geometry import progress_fraction
from weather_service import FOG_CODES, RAIN_CODES, SNOW_ICE_CODES, eta_at, fetch_weather

logger = logging.getLogger(__name__)

SEGMENT_FRACTIONS = (0.33, 0.66)
CAMERA_RADIUS_MILES = 5
SIMULATED_CAMERA_URL = "https://placehold.co/1280x720/1a1a1a/1a1a1a"


@dataclass(frozen=True)
class RoadStatus:
    status: str  # good | moderate | poor
    description: str


GOOD_ROADS = RoadStatus("good", "Clear roads, normal traffic flow")


def classify_road_condition(weather_code: Optional[int]) -> RoadStatus:
    """Snow/ice is poor, rain and fog are moderate, everything else is good."""
    if weather_code in SNOW_ICE_CODES:
        return RoadStatus("poor", "Snow/Ice detected.")
    if weather_code in RAIN_CODES:
        return RoadStatus("moderate", "Wet roads.")
    if weather_code in FOG_CODES:
        return RoadStatus("moderate", "Foggy conditions.")
    return GOOD_ROADS


def segment_indices(coordinate_count: int) -> List[int]:
    """Indices of the road segments along the full route, duplicates dropped."""
    if coordinate_count <= 0:
        return []
    raw = [0] + [int(coordinate_count * f) for f in SEGMENT_FRACTIONS] + [coordinate_count - 1]
    return list(dict.fromkeys(raw))


def default_segment_label(position: int, total: int) -> str:
    if position == 0:
        return "Start Area"
    if position == total - 1:
        return "Destination Area"
    return f"Segment {position + 1}"


def simulated_camera(index: int, label: str) -> CameraRef:
    return CameraRef(
        id=f"sim-cam-{index}",
        name=f"{label} Traffic Cam (Simulated)",
        url=SIMULATED_CAMERA_URL,
        timestamp=datetime.now(timezone.utc).isoformat(),
        simulated=True,
    )


async def _find_camera(lat: float, lon: float, providers: ProviderSet) -> Optional[CameraRef]:
    try:
        return await providers.cameras.nearest_camera(lat, lon, radius_miles=CAMERA_RADIUS_MILES)
    except Exception as e:
        logger.warning(f"Camera lookup failed near {lat},{lon}: {e}")
        return None


async def _build_segment(
    position: int,
    index: int,
    total_segments: int,
    route: RouteGeometry,
    departure: datetime,
    providers: ProviderSet,
) -> RoadConditionSegment:
    lng, lat = route.coordinates[index][:2]
    count = len(route.coordinates)

    label = await reverse_resolve(lat, lng, providers=providers)
    label = label or default_segment_label(position, total_segments)

    eta = eta_at(departure, route.duration_seconds, progress_fraction(index, count))
    weather = await fetch_weather(lat, lng, eta.strftime("%Y-%m-%d"), eta.hour, providers=providers)
    road = classify_road_condition(weather.weather_code if weather else None)

    camera = await _find_camera(lat, lng, providers) or simulated_camera(index, label)

    return RoadConditionSegment(
        segment_label=label,
        status=road.status,
        description=road.description,
        distance_label=f"{round(index / count * route.distance_miles)} mi",
        location=Coordinate(lat=lat, lon=lng),
        camera=camera,
    )


async def build_road_conditions(
    route: RouteGeometry,
    departure: datetime,
    providers: Optional[ProviderSet] = None,
) -> List[RoadConditionSegment]:
    """
    Build the road segments for a leg, all segments in parallel.

    Each segment's weather is looked up at that segment's own ETA.
    """
    providers = providers or get_providers()
    indices = segment_indices(len(route.coordinates))
    return list(await asyncio.gather(*[
        _build_segment(position, index, len(indices), route, departure, providers)
        for position, index in enumerate(indices)
    ]))
