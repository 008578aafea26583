"""
Trip Processor

Builds fully enriched trip legs and assembles them into a trip plan.

A leg is: route -> sampled points -> three independent enrichment branches
(weather series, road segments, place recommendations) run concurrently ->
aggregated context -> score + narrative -> optional departure advice.
Only geocoding and routing failures are fatal; every enrichment branch
degrades to an empty result.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from common.errors import LocationResolutionError
from departure_window_service import advise_departure_windows, format_clock
from geocoding_service import resolve_location, reverse_resolve
from models import (
    EnrichedWeatherPoint,
    LegMetrics,
    LegPair,
    PlaceRecommendation,
    ResolvedLocation,
    RoadConditionSegment,
    RouteGeometry,
    RouteRequest,
    TripLeg,
    TripPlan,
    WeatherObservation,
)
from places_service import build_context_points, recommend
from providers import ProviderSet, get_providers
from road_condition_service import build_road_conditions
from route_geometry import progress_fraction, sample_route, sampling_interval
from routing_service import fetch_route
from trip_score_service import LegContext, generate_narrative, score_trip
from weather_service import (
    NEUTRAL_WEATHER,
    PRECIP_CODES,
    build_timed_points,
    eta_at,
    fetch_weather_batch,
    fill_weather_gaps,
    local_time_at,
)

logger = logging.getLogger(__name__)

DEFAULT_DEPARTURE_TIME = "12:00"

FUEL_COST_PER_MILE = 0.15
EV_COST_PER_MILE = 0.10
BASELINE_SPEED_MPH = 50.0
KMH_TO_MPH = 0.621371

GAS_PRICE_RANGE = (2.90, 3.60)
MAX_CITIES = 3
MAX_STOPS = 3


def resolve_departure(
    departure_date: Optional[str],
    departure_time: Optional[str],
    now: datetime,
) -> datetime:
    """
    Departure wall-clock time; anything unparseable falls back to ``now``.

    A requested date and time are read in the same time zone as ``now``,
    which is the start point's local time.
    """
    if not departure_date:
        return now
    try:
        parsed = datetime.strptime(f"{departure_date} {departure_time or DEFAULT_DEPARTURE_TIME}", "%Y-%m-%d %H:%M")
        return parsed.replace(tzinfo=now.tzinfo)
    except ValueError:
        logger.warning(f"Unparseable departure '{departure_date} {departure_time}', using current time")
        return now


def format_duration(duration_seconds: float) -> str:
    minutes = round(duration_seconds / 60)
    hours, mins = divmod(minutes, 60)
    return f"{hours} hr {mins} min" if hours > 0 else f"{mins} min"


def _to_f(celsius: float) -> int:
    return round(celsius * 9 / 5 + 32)


async def _weather_series(
    start: ResolvedLocation,
    end: ResolvedLocation,
    sampled: List[List[float]],
    route: RouteGeometry,
    departure: datetime,
    providers: ProviderSet,
    rng: random.Random,
) -> List[EnrichedWeatherPoint]:
    timed = build_timed_points(sampled, departure, route.duration_seconds)
    observations = fill_weather_gaps(await fetch_weather_batch(timed, providers=providers))
    count = len(observations)
    total_miles = route.distance_miles

    async def enrich(i: int, point, obs: WeatherObservation) -> EnrichedWeatherPoint:
        progress = progress_fraction(i, count)
        miles = round(progress * total_miles)
        eta = eta_at(departure, route.duration_seconds, progress)

        if i == 0:
            location = start.short_name
        elif i == count - 1:
            location = end.short_name
        else:
            location = await reverse_resolve(point.lat, point.lng, providers=providers) or f"Mile {miles}"

        return EnrichedWeatherPoint(
            **obs.model_dump(),
            location=location,
            lat=point.lat,
            lng=point.lng,
            distance_from_start_miles=miles,
            eta_label=f"ETA {format_clock(eta)}",
            gas_price_estimate=f"{rng.uniform(*GAS_PRICE_RANGE):.2f}",
        )

    return list(await asyncio.gather(*[
        enrich(i, point, obs) for i, (point, obs) in enumerate(zip(timed, observations))
    ]))


def _representative_cities(weather: Sequence[EnrichedWeatherPoint]) -> Tuple[str, ...]:
    unique = list(dict.fromkeys(w.location for w in weather if w.location and "Mile" not in w.location))
    if len(unique) > 2:
        return (unique[0], unique[len(unique) // 2], unique[-1])
    return tuple(unique)


def _distinct_stops(recommendations: Sequence[PlaceRecommendation]) -> Tuple[Tuple[str, str], ...]:
    stops = []
    seen = set()
    for rec in recommendations:
        city = rec.location_label.split("•")[0].strip()
        if city in seen:
            continue
        seen.add(city)
        stops.append((city, rec.category))
        if len(stops) >= MAX_STOPS:
            break
    return tuple(stops)


def build_leg_context(
    start: ResolvedLocation,
    end: ResolvedLocation,
    route: RouteGeometry,
    weather: Sequence[EnrichedWeatherPoint],
    road_conditions: Sequence[RoadConditionSegment],
    recommendations: Sequence[PlaceRecommendation],
    departure: datetime,
) -> LegContext:
    """
    Aggregate the enrichment branches into the signals the scorer reads.

    Traffic delay is the route's duration beyond what a steady 50 mph would
    take. Precipitation chance is the share of sampled points reporting a
    precipitation weather code.
    """
    miles = route.distance_miles
    temps = [w.temperature_c for w in weather] or [NEUTRAL_WEATHER.temperature_c]
    baseline_minutes = miles / BASELINE_SPEED_MPH * 60
    precip_points = sum(1 for w in weather if w.weather_code in PRECIP_CODES)

    return LegContext(
        origin_name=start.display_name,
        destination_name=end.display_name,
        distance_label=f"{miles:.1f} miles",
        duration_label=format_duration(route.duration_seconds),
        duration_seconds=route.duration_seconds,
        fuel_cost_label=f"${miles * FUEL_COST_PER_MILE:.0f}",
        ev_cost_label=f"${miles * EV_COST_PER_MILE:.0f}",
        min_temp_f=_to_f(min(temps)),
        max_temp_f=_to_f(max(temps)),
        traffic_delay_min=max(0, round(route.duration_seconds / 60 - baseline_minutes)),
        max_wind_mph=round(max([w.wind_speed_kmh for w in weather] + [0]) * KMH_TO_MPH),
        precip_chance_pct=round(precip_points / max(1, len(weather)) * 100),
        cities=_representative_cities(weather),
        road_statuses=tuple(r.status for r in road_conditions),
        road_segment_labels=tuple(r.segment_label for r in road_conditions),
        stops=_distinct_stops(recommendations),
        departure_date=departure.strftime("%Y-%m-%d"),
        departure_time=departure.strftime("%H:%M"),
    )


def _branch_result(name: str, result) -> list:
    if isinstance(result, BaseException):
        logger.error(f"{name} enrichment failed: {result}", exc_info=result)
        return []
    return result


async def process_leg(
    start: ResolvedLocation,
    end: ResolvedLocation,
    departure_date: Optional[str] = None,
    departure_time: Optional[str] = None,
    scenic: bool = False,
    providers: Optional[ProviderSet] = None,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> TripLeg:
    """
    Build one fully enriched trip leg.

    Args:
        start: Resolved start location
        end: Resolved destination
        departure_date: YYYY-MM-DD, or None for now
        departure_time: HH:MM, defaults to noon when only a date is given
        scenic: Prefer the routing engine's first alternative route
        now: Current instant (naive means server-local); converted to the
            start point's local time before any hour is derived

    Returns:
        TripLeg

    Raises:
        RouteUnavailableError: No route could be fetched
    """
    providers = providers or get_providers()
    rng = rng or random.Random()
    local_now = await local_time_at(start.lat, start.lon, now, providers=providers)
    departure = resolve_departure(departure_date, departure_time, local_now)

    route = await fetch_route(start, end, scenic=scenic, providers=providers)
    sampled = sample_route(route.coordinates, sampling_interval(route.distance_miles))
    logger.info(
        f"Leg {start.short_name} -> {end.short_name}: {route.distance_miles:.1f} mi, "
        f"{len(route.coordinates)} coords, {len(sampled)} samples"
    )

    weather, road_conditions, recommendations = await asyncio.gather(
        _weather_series(start, end, sampled, route, departure, providers, rng),
        build_road_conditions(route, departure, providers=providers),
        recommend(build_context_points(route.coordinates, route.distance_miles), providers=providers),
        return_exceptions=True,
    )
    weather = _branch_result("Weather", weather)
    road_conditions = _branch_result("Road condition", road_conditions)
    recommendations = _branch_result("Places", recommendations)

    context = build_leg_context(start, end, route, weather, road_conditions, recommendations, departure)
    trip_score = score_trip(context)
    narrative = generate_narrative(context, trip_score, rng=rng)

    departure_insights = []
    if not departure_date or departure_date == local_now.strftime("%Y-%m-%d"):
        try:
            departure_insights = await advise_departure_windows(start, context, now=local_now, providers=providers)
        except Exception as e:
            logger.error(f"Departure insights error: {e}")

    return TripLeg(
        route=route,
        metrics=LegMetrics(
            distance_label=context.distance_label,
            duration_label=context.duration_label,
            fuel_cost_label=context.fuel_cost_label,
            ev_cost_label=context.ev_cost_label,
        ),
        weather=weather,
        road_conditions=road_conditions,
        recommendations=recommendations,
        trip_score=trip_score,
        narrative=narrative,
        departure_insights=departure_insights,
    )


async def leg_variants(
    start: ResolvedLocation,
    end: ResolvedLocation,
    departure_date: Optional[str],
    departure_time: Optional[str],
    providers: Optional[ProviderSet] = None,
    now: Optional[datetime] = None,
) -> Tuple[TripLeg, TripLeg]:
    """
    Fastest and scenic versions of a leg, computed concurrently.

    If one variant fails the other stands in for both; if both fail the
    fastest variant's error propagates.
    """
    fastest, scenic = await asyncio.gather(
        process_leg(start, end, departure_date, departure_time, scenic=False, providers=providers, now=now),
        process_leg(start, end, departure_date, departure_time, scenic=True, providers=providers, now=now),
        return_exceptions=True,
    )
    if isinstance(fastest, BaseException) and isinstance(scenic, BaseException):
        raise fastest
    if isinstance(fastest, BaseException):
        logger.warning(f"Fastest variant failed, using scenic: {fastest}")
        fastest = scenic
    elif isinstance(scenic, BaseException):
        logger.warning(f"Scenic variant failed, using fastest: {scenic}")
        scenic = fastest
    return fastest, scenic


async def plan_trip(
    request: RouteRequest,
    providers: Optional[ProviderSet] = None,
    now: Optional[datetime] = None,
) -> TripPlan:
    """
    Resolve endpoints and build the outbound (and optional return) legs.

    Raises:
        LocationResolutionError: Start or end could not be geocoded
        RouteUnavailableError: The outbound leg could not be routed
    """
    providers = providers or get_providers()
    start, end = await asyncio.gather(
        resolve_location(request.start, request.start_coords, providers=providers),
        resolve_location(request.end, request.end_coords, providers=providers),
    )
    if start is None or end is None:
        raise LocationResolutionError("Could not resolve locations.")

    outbound_fastest, outbound_scenic = await leg_variants(
        start, end, request.departure_date, request.departure_time, providers=providers, now=now
    )

    return_fastest = return_scenic = None
    if request.round_trip:
        try:
            return_fastest, return_scenic = await leg_variants(
                end,
                start,
                request.return_date or request.departure_date,
                request.return_time or request.departure_time,
                providers=providers,
                now=now,
            )
        except Exception as e:
            logger.error(f"Return leg failed for {end.short_name} -> {start.short_name}: {e}")

    variants = {
        "fastest": LegPair(outbound=outbound_fastest, return_leg=return_fastest),
        "scenic": LegPair(outbound=outbound_scenic, return_leg=return_scenic),
    }
    primary = variants["scenic" if request.preference == "scenic" else "fastest"]

    plan = TripPlan(
        is_round_trip=request.round_trip,
        outbound=primary.outbound,
        return_leg=primary.return_leg,
        variants=variants,
    )
    if not request.round_trip:
        leg = primary.outbound
        plan.route = leg.route
        plan.metrics = leg.metrics
        plan.weather = leg.weather
        plan.road_conditions = leg.road_conditions
        plan.ai_analysis = leg.narrative
        plan.recommendations = leg.recommendations
        plan.trip_score = leg.trip_score
        plan.departure_insights = leg.departure_insights
    return plan
