"""
Tests for Trip Processor

End-to-end leg and trip assembly against the demo fixtures (WAYVUE_MODE=test),
plus the degradation paths: missing weather, failed branches, failed legs.
"""

import os
import random
import time
from datetime import datetime, timedelta, timezone

import pytest

from common.errors import LocationResolutionError, RouteUnavailableError
from models import ClientCoords, ResolvedLocation, RouteGeometry, RouteRequest
from providers.registry import ProviderSet, get_providers
from trip_processor import (
    build_leg_context,
    format_duration,
    plan_trip,
    process_leg,
    resolve_departure,
)

NYC = ResolvedLocation(lat=40.7128, lon=-74.006, display_name="New York, New York, USA")
BUFFALO = ResolvedLocation(lat=42.8864, lon=-78.8784, display_name="Buffalo, New York, USA")
MID_ATLANTIC = ResolvedLocation(lat=30.0, lon=-60.0, display_name="Open Water")

# 08:00 in New York (EDT)
NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)
EDT = timezone(timedelta(hours=-4))


class _NoWeather:
    async def get_weather(self, lat, lon, date_str=None, hour=None):
        return None

    async def utc_offset_seconds(self, lat, lon):
        return -14400


class _RecordingWeather:
    """Fixture weather that records every (lat, date, hour) asked for."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    async def get_weather(self, lat, lon, date_str=None, hour=None):
        self.calls.append((lat, date_str, hour))
        return await self.inner.get_weather(lat, lon, date_str, hour)

    async def utc_offset_seconds(self, lat, lon):
        return await self.inner.utc_offset_seconds(lat, lon)

    def hours_at(self, lat):
        return sorted(hour for call_lat, _, hour in self.calls if call_lat == lat)


class _BrokenPlaces:
    async def query_near(self, lat, lon, mirror=0):
        raise RuntimeError("overpass down")


class _DirectionsFailingFrom:
    """Delegates to the fixture provider except for routes leaving ``lat``."""

    def __init__(self, inner, lat):
        self.inner = inner
        self.lat = lat

    async def route(self, origin, dest, alternatives=False):
        if abs(origin["lat"] - self.lat) < 0.01:
            raise RouteUnavailableError("no route from here")
        return await self.inner.route(origin, dest, alternatives=alternatives)


def _providers(**swaps) -> ProviderSet:
    base = get_providers()
    parts = dict(
        geocode=base.geocode,
        directions=base.directions,
        weather=base.weather,
        places=base.places,
        cameras=base.cameras,
    )
    parts.update(swaps)
    return ProviderSet(**parts)


class TestResolveDeparture:
    LOCAL_NOW = datetime(2026, 5, 1, 8, 0, tzinfo=EDT)

    def test_date_and_time(self):
        assert resolve_departure("2026-05-01", "09:15", self.LOCAL_NOW) == datetime(2026, 5, 1, 9, 15, tzinfo=EDT)

    def test_date_only_defaults_to_noon(self):
        assert resolve_departure("2026-05-03", None, self.LOCAL_NOW) == datetime(2026, 5, 3, 12, 0, tzinfo=EDT)

    def test_parsed_departure_keeps_local_offset(self):
        departure = resolve_departure("2026-05-01", "09:15", self.LOCAL_NOW)
        assert departure.utcoffset() == timedelta(hours=-4)
        assert departure.hour == 9

    def test_no_date_is_now(self):
        assert resolve_departure(None, "09:15", self.LOCAL_NOW) == self.LOCAL_NOW

    @pytest.mark.parametrize("date_str,time_str", [("05/01/2026", "09:00"), ("2026-05-01", "9am"), ("2026-13-40", "09:00")])
    def test_unparseable_falls_back_to_now(self, date_str, time_str):
        assert resolve_departure(date_str, time_str, self.LOCAL_NOW) == self.LOCAL_NOW


class TestFormatDuration:
    CASES = [(23100, "6 hr 25 min"), (3600, "1 hr 0 min"), (1500, "25 min"), (0, "0 min")]

    @pytest.mark.parametrize("seconds,expected", CASES)
    def test_label(self, seconds, expected):
        assert format_duration(seconds) == expected


class TestBuildLegContext:
    def test_empty_branches_use_neutral_temperature(self):
        route = RouteGeometry(coordinates=[[-74.0, 40.7]], distance_meters=0, duration_seconds=0)
        context = build_leg_context(NYC, BUFFALO, route, [], [], [], datetime(2026, 5, 1, 9, 0))

        assert context.min_temp_f == context.max_temp_f == 68
        assert context.precip_chance_pct == 0
        assert context.max_wind_mph == 0
        assert context.traffic_delay_min == 0
        assert context.road_statuses == ()
        assert context.departure_time == "09:00"

    def test_traffic_delay_against_fifty_mph_baseline(self):
        # 100 miles at 50 mph is 120 minutes; the route takes 150
        route = RouteGeometry(coordinates=[[-74.0, 40.7]], distance_meters=160934, duration_seconds=150 * 60)
        context = build_leg_context(NYC, BUFFALO, route, [], [], [], NOW)
        assert context.traffic_delay_min == 30
        assert context.fuel_cost_label == "$15"
        assert context.ev_cost_label == "$10"


class TestProcessLeg:
    @pytest.mark.asyncio
    async def test_nyc_to_buffalo(self):
        leg = await process_leg(NYC, BUFFALO, "2026-05-01", "09:00", now=NOW, rng=random.Random(7))

        assert 370 <= leg.route.distance_miles <= 400
        assert leg.metrics.distance_label == "375.3 miles"
        assert leg.metrics.duration_label == "6 hr 25 min"

        assert leg.weather[0].location == "New York"
        assert leg.weather[-1].location == "Buffalo"
        assert leg.weather[0].eta_label == "ETA 9:00 AM"
        assert leg.weather[-1].eta_label == "ETA 3:25 PM"
        assert leg.weather[0].distance_from_start_miles == 0
        assert leg.weather[-1].distance_from_start_miles == 375
        miles = [w.distance_from_start_miles for w in leg.weather]
        assert miles == sorted(miles)
        assert all(2.90 <= float(w.gas_price_estimate) <= 3.60 for w in leg.weather)

        assert len(leg.road_conditions) == 4
        assert leg.road_conditions[0].distance_label == "0 mi"

        titles = [r.title for r in leg.recommendations]
        assert len(titles) == len(set(titles))

        assert 0 <= leg.trip_score.score <= 100
        assert leg.narrative.structured.overview.distance == "375.3 miles"
        assert len(leg.narrative.insights.bullets) <= 4

        # Leaving today, so three departure alternatives
        assert [o.offset_hours for o in leg.departure_insights] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_future_date_has_no_departure_insights(self):
        leg = await process_leg(NYC, BUFFALO, "2026-05-04", "09:00", now=NOW)
        assert leg.departure_insights == []

    @pytest.mark.asyncio
    async def test_scenic_takes_alternative(self):
        fastest = await process_leg(NYC, BUFFALO, now=NOW)
        scenic = await process_leg(NYC, BUFFALO, scenic=True, now=NOW)
        assert fastest.route.distance_meters == 604000
        assert scenic.route.distance_meters == 756000

    @pytest.mark.asyncio
    async def test_identical_endpoints_single_point_route(self):
        leg = await process_leg(MID_ATLANTIC, MID_ATLANTIC, "2026-05-01", "09:00", now=NOW)

        assert len(leg.route.coordinates) == 1
        assert len(leg.weather) == 1
        assert leg.weather[0].location == "Open Water"
        assert leg.weather[0].distance_from_start_miles == 0
        assert len(leg.road_conditions) == 1
        assert len(leg.recommendations) == 3
        assert 0 <= leg.trip_score.score <= 100

    @pytest.mark.asyncio
    async def test_all_weather_missing_uses_neutral_values(self):
        providers = _providers(weather=_NoWeather())
        leg = await process_leg(NYC, BUFFALO, "2026-05-04", "09:00", providers=providers, now=NOW)

        assert leg.weather
        assert all(w.temperature_c == 20 for w in leg.weather)
        assert all(w.description == "Estimated" for w in leg.weather)
        assert leg.narrative.structured.weather.temp_range == "68° - 68°"
        assert 0 <= leg.trip_score.score <= 100

    @pytest.mark.asyncio
    async def test_places_failure_still_yields_fallbacks(self):
        providers = _providers(places=_BrokenPlaces())
        leg = await process_leg(NYC, BUFFALO, "2026-05-04", "09:00", providers=providers, now=NOW)
        assert len(leg.recommendations) == 5
        assert all(r.id.startswith("fallback-") for r in leg.recommendations)

    @pytest.mark.asyncio
    async def test_route_failure_propagates(self):
        providers = _providers(directions=_DirectionsFailingFrom(get_providers().directions, NYC.lat))
        with pytest.raises(RouteUnavailableError):
            await process_leg(NYC, BUFFALO, now=NOW, providers=providers)


@pytest.fixture
def utc_server_clock():
    """Run the test with the process time zone set to UTC."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is unavailable on this platform")
    previous = os.environ.get("TZ")
    os.environ["TZ"] = "UTC"
    time.tzset()
    yield
    if previous is None:
        del os.environ["TZ"]
    else:
        os.environ["TZ"] = previous
    time.tzset()


class TestStartLocalTime:
    """Departure hours are read in the start point's time zone, not the server's."""

    # 09:00 in New York (EDT)
    INSTANT = datetime(2026, 5, 1, 13, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_no_date_departs_at_start_local_hour(self):
        recorder = _RecordingWeather(get_providers().weather)
        leg = await process_leg(NYC, BUFFALO, now=self.INSTANT, providers=_providers(weather=recorder))

        assert leg.weather[0].eta_label == "ETA 9:00 AM"
        assert [o.time_label for o in leg.departure_insights] == ["10:00 AM", "11:00 AM", "12:00 PM"]
        start_hours = recorder.hours_at(NYC.lat)
        assert {10, 11, 12} <= set(start_hours)
        assert max(start_hours) == 12
        assert all(date_str == "2026-05-01" for _, date_str, _ in recorder.calls)

    @pytest.mark.asyncio
    async def test_rush_hour_uses_start_local_hour(self):
        # 12:00 UTC is 08:00 in New York, so +1h lands at 9 (rush) and +3h at 11
        leg = await process_leg(NYC, BUFFALO, now=datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc))
        labels = {o.offset_hours: o.traffic_label for o in leg.departure_insights}
        assert labels[1] == "Heavy"
        assert labels[3] != "Heavy"

    @pytest.mark.asyncio
    async def test_naive_now_on_utc_server(self, utc_server_clock):
        recorder = _RecordingWeather(get_providers().weather)
        leg = await process_leg(NYC, BUFFALO, now=datetime(2026, 5, 1, 13, 0), providers=_providers(weather=recorder))

        assert leg.weather[0].eta_label == "ETA 9:00 AM"
        assert max(recorder.hours_at(NYC.lat)) == 12

    @pytest.mark.asyncio
    async def test_today_is_the_start_local_date(self):
        # 02:00 UTC on May 2 is still the evening of May 1 in New York
        late = datetime(2026, 5, 2, 2, 0, tzinfo=timezone.utc)
        leg = await process_leg(NYC, BUFFALO, "2026-05-01", "23:00", now=late)
        assert [o.offset_hours for o in leg.departure_insights] == [1, 2, 3]
        assert leg.departure_insights[0].time_label == "11:00 PM"

    @pytest.mark.asyncio
    async def test_departure_timestamp_is_absolute(self):
        leg = await process_leg(NYC, BUFFALO, now=self.INSTANT)
        first = leg.departure_insights[0]
        assert first.timestamp_ms == int((self.INSTANT + timedelta(hours=1)).timestamp() * 1000)


class TestPlanTrip:
    @pytest.mark.asyncio
    async def test_one_way_flattens_primary_leg(self):
        plan = await plan_trip(
            RouteRequest(start="New York, NY", end="Buffalo, NY", departure_date="2026-05-01", departure_time="09:00"),
            now=NOW,
        )

        assert plan.is_round_trip is False
        assert plan.return_leg is None
        assert plan.route == plan.outbound.route
        assert plan.weather == plan.outbound.weather
        assert plan.ai_analysis == plan.outbound.narrative
        assert plan.trip_score == plan.outbound.trip_score
        assert set(plan.variants) == {"fastest", "scenic"}
        assert plan.variants["fastest"].outbound.route.distance_meters == 604000
        assert plan.variants["scenic"].outbound.route.distance_meters == 756000

    @pytest.mark.asyncio
    async def test_scenic_preference_selects_scenic_variant(self):
        plan = await plan_trip(RouteRequest(start="nyc", end="buffalo", preference="scenic"), now=NOW)
        assert plan.outbound.route.distance_meters == 756000

    @pytest.mark.asyncio
    async def test_round_trip_builds_return_leg(self):
        plan = await plan_trip(
            RouteRequest(start="New York", end="Buffalo", round_trip=True, departure_date="2026-05-04"),
            now=NOW,
        )

        assert plan.is_round_trip is True
        assert plan.return_leg is not None
        assert plan.return_leg.weather[0].location == "Buffalo"
        assert plan.return_leg.weather[-1].location == "New York"
        assert plan.route is None
        assert plan.weather is None

        dumped = plan.model_dump(by_alias=True)
        assert "return" in dumped
        assert "return" in dumped["variants"]["fastest"]

    @pytest.mark.asyncio
    async def test_failed_return_leg_is_none(self):
        providers = _providers(directions=_DirectionsFailingFrom(get_providers().directions, BUFFALO.lat))
        plan = await plan_trip(
            RouteRequest(start="New York", end="Buffalo", round_trip=True),
            providers=providers,
            now=NOW,
        )
        assert plan.outbound is not None
        assert plan.return_leg is None

    @pytest.mark.asyncio
    async def test_unresolvable_location(self):
        with pytest.raises(LocationResolutionError) as exc_info:
            await plan_trip(RouteRequest(start="Atlantis", end="Buffalo"), now=NOW)
        assert exc_info.value.message == "Could not resolve locations."

    @pytest.mark.asyncio
    async def test_client_coordinates_skip_geocoding(self):
        plan = await plan_trip(
            RouteRequest(
                start="My Spot",
                end="Buffalo",
                start_coords=ClientCoords(lat=40.7128, lng=-74.006),
            ),
            now=NOW,
        )
        assert plan.outbound.weather[0].location == "My Spot"
        assert plan.outbound.route.distance_meters == 604000

    @pytest.mark.asyncio
    async def test_outbound_failure_raises(self):
        providers = _providers(directions=_DirectionsFailingFrom(get_providers().directions, NYC.lat))
        with pytest.raises(RouteUnavailableError):
            await plan_trip(RouteRequest(start="New York", end="Buffalo"), providers=providers, now=NOW)
