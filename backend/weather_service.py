"""
Weather Service

Time-aligned weather lookups along a route.

Each sampled point is queried for the hour the driver is expected to reach
it (departure + progress x route duration), not for the request time.
Lookups run in small concurrent chunks with a pause in between to stay under
upstream rate limits; a missing observation is filled from the nearest
neighbour afterwards.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence

from common import settings
from models import WeatherObservation
from providers import ProviderSet, get_providers
from route_geometry import progress_fraction

logger = logging.getLogger(__name__)

MAX_BATCH_POINTS = 50
CHUNK_SIZE = 5

# WMO weather interpretation codes
SNOW_ICE_CODES = frozenset({56, 57, 66, 67, 71, 73, 75, 77, 85, 86})
RAIN_CODES = frozenset({51, 53, 55, 61, 63, 65, 80, 81, 82, 95, 96, 99})
FOG_CODES = frozenset({45, 48})
PRECIP_CODES = SNOW_ICE_CODES | RAIN_CODES

NEUTRAL_WEATHER = WeatherObservation(
    temperature_c=20.0,
    weather_code=0,
    wind_speed_kmh=5.0,
    humidity_pct=50.0,
    precip_probability_pct=0.0,
    wind_direction_deg=0.0,
    description="Estimated",
)


@dataclass(frozen=True)
class TimedPoint:
    """A sampled route point paired with the date/hour we expect to be there."""
    lat: float
    lng: float
    date_str: str  # YYYY-MM-DD
    target_hour: int  # 0-23


async def local_time_at(
    lat: float,
    lon: float,
    instant: Optional[datetime] = None,
    providers: Optional[ProviderSet] = None,
) -> datetime:
    """
    Wall-clock time at a coordinate, as an aware datetime in that place's offset.

    Forecast hours are local to the point queried, so "now" must be expressed
    in the start point's local time before ETAs and hours are derived from it.
    A naive ``instant`` is taken as server-local time. If the offset cannot be
    looked up, the server's own offset is kept.
    """
    providers = providers or get_providers()
    instant = instant or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.astimezone()

    try:
        offset = await providers.weather.utc_offset_seconds(lat, lon)
    except Exception as e:
        logger.warning(f"UTC offset lookup failed for {lat},{lon}: {e}")
        offset = None

    if offset is None:
        return instant.astimezone()
    return instant.astimezone(timezone(timedelta(seconds=offset)))


def eta_at(departure: datetime, duration_seconds: float, progress: float) -> datetime:
    return departure + timedelta(seconds=progress * (duration_seconds or 0))


def build_timed_points(
    points: Sequence[Sequence[float]],
    departure: datetime,
    duration_seconds: float,
) -> List[TimedPoint]:
    """
    Attach an ETA-derived date and hour to each sampled point.

    Args:
        points: Sampled route points as [lon, lat]
        departure: Departure wall-clock time
        duration_seconds: Total route duration

    Returns:
        One TimedPoint per input point, same order
    """
    timed = []
    for i, (lng, lat) in enumerate(p[:2] for p in points):
        eta = eta_at(departure, duration_seconds, progress_fraction(i, len(points)))
        timed.append(TimedPoint(lat=lat, lng=lng, date_str=eta.strftime("%Y-%m-%d"), target_hour=eta.hour))
    return timed


async def fetch_weather(
    lat: float,
    lon: float,
    date_str: Optional[str] = None,
    hour: Optional[int] = None,
    providers: Optional[ProviderSet] = None,
) -> Optional[WeatherObservation]:
    """Hourly observation for a point, or None when unavailable. Never raises."""
    providers = providers or get_providers()
    try:
        return await providers.weather.get_weather(lat, lon, date_str=date_str, hour=hour)
    except Exception as e:
        logger.error(f"Weather provider error for {lat},{lon}: {e}")
        return None


async def fetch_weather_batch(
    timed_points: Sequence[TimedPoint],
    providers: Optional[ProviderSet] = None,
) -> List[Optional[WeatherObservation]]:
    """
    Fetch weather for many points, chunk by chunk.

    Output order matches input order regardless of completion order within a
    chunk. A failed point yields None without affecting its neighbours.
    """
    providers = providers or get_providers()
    if len(timed_points) > MAX_BATCH_POINTS:
        logger.warning(f"Weather batch of {len(timed_points)} points truncated to {MAX_BATCH_POINTS}")
    limited = list(timed_points[:MAX_BATCH_POINTS])

    results: List[Optional[WeatherObservation]] = []
    for start in range(0, len(limited), CHUNK_SIZE):
        chunk = limited[start:start + CHUNK_SIZE]
        chunk_results = await asyncio.gather(*[
            fetch_weather(p.lat, p.lng, p.date_str, p.target_hour, providers=providers)
            for p in chunk
        ])
        results.extend(chunk_results)

        if start + CHUNK_SIZE < len(limited):
            await asyncio.sleep(settings.WEATHER_CHUNK_DELAY_SECONDS)

    return results


def fill_weather_gaps(
    observations: Sequence[Optional[WeatherObservation]],
) -> List[WeatherObservation]:
    """
    Replace missing observations with the nearest available neighbour.

    Scans outward one step at a time; at equal distance the left (earlier)
    neighbour wins. If nothing is available the neutral estimate is used for
    every point.
    """
    filled = []
    n = len(observations)
    for idx, obs in enumerate(observations):
        if obs is not None:
            filled.append(obs)
            continue

        replacement = None
        for distance in range(1, n):
            left, right = idx - distance, idx + distance
            if left < 0 and right >= n:
                break
            if left >= 0 and observations[left] is not None:
                replacement = observations[left]
                break
            if right < n and observations[right] is not None:
                replacement = observations[right]
                break

        filled.append(replacement if replacement is not None else NEUTRAL_WEATHER)

    missing = sum(1 for obs in observations if obs is None)
    if missing:
        logger.info(f"Filled {missing}/{n} missing weather observations")
    return filled
