"""
Tests for Departure Window Service

Traffic heuristic, clock labels, and the +1h/+2h/+3h option list.
"""

from datetime import datetime, timedelta, timezone

import pytest

from departure_window_service import advise_departure_windows, estimate_traffic, format_clock
from models import ResolvedLocation, WeatherObservation
from providers.registry import ProviderSet, get_providers
from trip_score_service import LegContext

START = ResolvedLocation(lat=40.7128, lon=-74.006, display_name="New York, New York, USA")


def _context(**overrides) -> LegContext:
    values = dict(
        origin_name="New York, New York, USA",
        destination_name="Buffalo, New York, USA",
        distance_label="375.3 miles",
        duration_label="6 hr 25 min",
        duration_seconds=23100,
        fuel_cost_label="$56",
        ev_cost_label="$38",
        min_temp_f=60,
        max_temp_f=70,
        traffic_delay_min=0,
        max_wind_mph=5,
        precip_chance_pct=0,
    )
    values.update(overrides)
    return LegContext(**values)


class _HourlyWeather:
    def __init__(self, by_hour=None, fail_hours=(), default=None, utc_offset=None):
        self.by_hour = by_hour or {}
        self.fail_hours = set(fail_hours)
        self.default = default or WeatherObservation(temperature_c=20, wind_speed_kmh=8)
        self.requests = []
        self.utc_offset = utc_offset

    async def get_weather(self, lat, lon, date_str=None, hour=None):
        self.requests.append((date_str, hour))
        if hour in self.fail_hours:
            raise RuntimeError("forecast unavailable")
        return self.by_hour.get(hour, self.default)

    async def utc_offset_seconds(self, lat, lon):
        return self.utc_offset


def _providers(weather) -> ProviderSet:
    base = get_providers()
    return ProviderSet(
        geocode=base.geocode,
        directions=base.directions,
        weather=weather,
        places=base.places,
        cameras=base.cameras,
    )


class TestEstimateTraffic:
    CASES = [
        # (name, hour, base, expected_delay, expected_label)
        ("morning_rush_start", 7, 0, 15, "Heavy"),
        ("morning_rush_end", 9, 10, 25, "Heavy"),
        ("evening_rush", 17, 5, 20, "Heavy"),
        ("late_night", 23, 30, 0, "Clear"),
        ("midnight", 0, 12, 0, "Clear"),
        ("early_morning", 5, 8, 0, "Clear"),
        ("midday_normal", 12, 0, 5, "Normal"),
        ("midday_busy", 13, 6, 11, "Busy"),
        ("evening_after_rush", 20, 5, 10, "Normal"),
    ]

    @pytest.mark.parametrize("name,hour,base,delay,label", CASES, ids=[c[0] for c in CASES])
    def test_heuristic(self, name, hour, base, delay, label):
        assert estimate_traffic(hour, base) == (delay, label)


class TestFormatClock:
    CASES = [
        (datetime(2026, 5, 1, 0, 5), "12:05 AM"),
        (datetime(2026, 5, 1, 9, 0), "9:00 AM"),
        (datetime(2026, 5, 1, 12, 30), "12:30 PM"),
        (datetime(2026, 5, 1, 15, 25), "3:25 PM"),
        (datetime(2026, 5, 1, 23, 59), "11:59 PM"),
    ]

    @pytest.mark.parametrize("moment,expected", CASES)
    def test_label(self, moment, expected):
        assert format_clock(moment) == expected


class TestAdviseDepartureWindows:
    @pytest.mark.asyncio
    async def test_three_options_in_offset_order(self):
        weather = _HourlyWeather()
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 5, 30), providers=_providers(weather)
        )

        assert [o.offset_hours for o in options] == [1, 2, 3]
        assert [o.time_label for o in options] == ["6:30 AM", "7:30 AM", "8:30 AM"]
        assert [o.traffic_label for o in options] == ["Normal", "Heavy", "Heavy"]
        assert sorted(weather.requests) == [("2026-05-01", 6), ("2026-05-01", 7), ("2026-05-01", 8)]

    @pytest.mark.asyncio
    async def test_rush_hour_option_scores_lower(self):
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 5, 30), providers=_providers(_HourlyWeather())
        )
        normal, heavy = options[0], options[1]
        assert normal.score == 100
        assert heavy.score == 95
        assert heavy.label == "Excellent"

    @pytest.mark.asyncio
    async def test_future_wind_converted_to_mph(self):
        # 50 km/h is 31 mph: gusty, not high wind
        weather = _HourlyWeather(default=WeatherObservation(temperature_c=20, wind_speed_kmh=50))
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 11, 0), providers=_providers(weather)
        )
        assert [o.score for o in options] == [90, 90, 90]

    @pytest.mark.asyncio
    async def test_future_forecast_drives_precip_and_cold(self):
        weather = _HourlyWeather(by_hour={
            13: WeatherObservation(temperature_c=-5, precip_probability_pct=70),
        })
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 11, 0), providers=_providers(weather)
        )
        by_offset = {o.offset_hours: o for o in options}
        assert by_offset[2].precip_probability_pct == 70
        assert by_offset[2].temperature_c == -5
        # heavy rain -25, freezing -15, midday traffic 5 min is no deduction
        assert by_offset[2].score == 60

    @pytest.mark.asyncio
    async def test_offset_without_forecast_is_dropped(self):
        weather = _HourlyWeather(fail_hours={7})
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 5, 30), providers=_providers(weather)
        )
        assert [o.offset_hours for o in options] == [1, 3]

    @pytest.mark.asyncio
    async def test_crosses_midnight(self):
        weather = _HourlyWeather()
        options = await advise_departure_windows(
            START, _context(), now=datetime(2026, 5, 1, 22, 15), providers=_providers(weather)
        )
        assert [o.time_label for o in options] == ["11:15 PM", "12:15 AM", "1:15 AM"]
        assert ("2026-05-02", 0) in weather.requests
        assert all(o.traffic_label == "Clear" for o in options)

    @pytest.mark.asyncio
    async def test_fixture_provider(self):
        options = await advise_departure_windows(START, _context(), now=datetime(2026, 5, 1, 9, 0))
        assert len(options) == 3
        assert all(0 <= o.score <= 100 for o in options)

    @pytest.mark.asyncio
    async def test_omitted_now_is_start_local(self):
        local_zone = timezone(timedelta(hours=5, minutes=30))
        weather = _HourlyWeather(utc_offset=19800)

        before = datetime.now(local_zone)
        options = await advise_departure_windows(START, _context(), providers=_providers(weather))
        after = datetime.now(local_zone)

        requested_hours = {hour for _, hour in weather.requests}
        assert any((moment + timedelta(hours=1)).hour in requested_hours for moment in (before, after))
        assert any(options[0].time_label == format_clock(moment + timedelta(hours=1)) for moment in (before, after))
