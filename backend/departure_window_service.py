"""
Departure Window Service ("Smart Departure")

For trips leaving today, re-scores the leg as if it left 1, 2 or 3 hours
from now, using the start point's forecast for that hour and a time-of-day
traffic heuristic.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from models import DepartureOption, ResolvedLocation
from providers import ProviderSet, get_providers
from trip_score_service import LegContext, score_trip
from weather_service import fetch_weather, local_time_at

logger = logging.getLogger(__name__)

DEPARTURE_OFFSETS_HOURS = (1, 2, 3)
KMH_TO_MPH = 0.621371


def estimate_traffic(hour: int, base_delay_min: int) -> Tuple[int, str]:
    """
    Traffic delay and label for a departure hour.

    Rush hours (7-9, 16-19) add 15 minutes, late night (22-5) clears the
    delay entirely, any other hour adds 5.

    Returns:
        (delay_minutes, label)
    """
    if 7 <= hour <= 9 or 16 <= hour <= 19:
        return base_delay_min + 15, "Heavy"
    if hour >= 22 or hour <= 5:
        return 0, "Clear"
    delay = base_delay_min + 5
    return delay, "Busy" if delay > 10 else "Normal"


def format_clock(moment: datetime) -> str:
    """12-hour clock label, e.g. "9:05 AM"."""
    return f"{moment.hour % 12 or 12}:{moment.minute:02d} {'AM' if moment.hour < 12 else 'PM'}"


async def _option_for_offset(
    offset: int,
    start: ResolvedLocation,
    context: LegContext,
    now: datetime,
    providers: ProviderSet,
) -> Optional[DepartureOption]:
    future = now + timedelta(hours=offset)
    weather = await fetch_weather(start.lat, start.lon, future.strftime("%Y-%m-%d"), future.hour, providers=providers)
    if weather is None:
        logger.info(f"No forecast for +{offset}h departure, skipping")
        return None

    delay, traffic_label = estimate_traffic(future.hour, context.traffic_delay_min)
    temp_f = round(weather.temperature_c * 9 / 5 + 32)
    future_context = dataclasses.replace(
        context,
        traffic_delay_min=delay,
        precip_chance_pct=round(weather.precip_probability_pct),
        max_wind_mph=round(weather.wind_speed_kmh * KMH_TO_MPH),
        min_temp_f=temp_f,
    )
    trip_score = score_trip(future_context)

    return DepartureOption(
        offset_hours=offset,
        time_label=format_clock(future),
        timestamp_ms=int(future.timestamp() * 1000),
        score=trip_score.score,
        label=trip_score.label,
        precip_probability_pct=weather.precip_probability_pct,
        temperature_c=weather.temperature_c,
        traffic_label=traffic_label,
    )


async def advise_departure_windows(
    start: ResolvedLocation,
    context: LegContext,
    now: Optional[datetime] = None,
    providers: Optional[ProviderSet] = None,
) -> List[DepartureOption]:
    """
    Departure options at +1h/+2h/+3h; offsets without a forecast are dropped.

    ``now`` is the wall-clock time at the start point. When omitted it is
    looked up, so forecast hours and rush-hour windows are local to the start.
    """
    providers = providers or get_providers()
    now = now or await local_time_at(start.lat, start.lon, providers=providers)
    options = await asyncio.gather(*[
        _option_for_offset(offset, start, context, now, providers)
        for offset in DEPARTURE_OFFSETS_HOURS
    ])
    return [option for option in options if option is not None]
