"""
Tests for the derived weather queries.

The fixture forecast has sunrise 06:00 / sunset 18:00 on 2025-06-01 and
06:01 / 18:01 the day after, with one hourly sample per local hour.

Run with: python -m pytest tests/test_weather_queries.py -v
"""

import logging
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from conftest import FakeFetcher, make_payload, make_record
from twin_sun.cache_manager import WeatherCache
from twin_sun.clock import LocationPanel, format_panel
from twin_sun.config import LOCATIONS
from twin_sun.providers.open_meteo import parse_forecast
from twin_sun.weather_queries import (
    UNAVAILABLE_CONDITIONS,
    UNAVAILABLE_PRECIPITATION,
    UNAVAILABLE_SUN_EVENT,
    SunEventKind,
    WeatherCondition,
    conditions_from_record,
    condition_for_code,
    current_conditions,
    next_sun_event,
    precipitation_probability,
    sun_event_from_record,
)

logger = logging.getLogger(__name__)

DRESDEN = LOCATIONS[1]


@pytest.fixture
def cache(fetcher, locations, clock):
    return WeatherCache(fetcher, locations, clock=clock)


class TestNextSunEvent:

    def test_before_sunrise(self):
        event = sun_event_from_record(make_record(DRESDEN), datetime(2025, 6, 1, 5, 59))
        assert event.kind == SunEventKind.SUNRISE
        assert event.remaining == timedelta(minutes=1)
        assert event.remaining_label == "0:01"

    def test_during_the_day(self):
        event = sun_event_from_record(make_record(DRESDEN), datetime(2025, 6, 1, 12, 0))
        assert event.kind == SunEventKind.SUNSET
        assert event.remaining_label == "6:00"
        assert event.icon == "🌙"

    def test_after_sunset_uses_tomorrows_sunrise(self):
        event = sun_event_from_record(make_record(DRESDEN), datetime(2025, 6, 1, 18, 1))
        logger.info(f"[TEST] After sunset: {event}")
        assert event.kind == SunEventKind.SUNRISE
        assert event.at.day == 2
        assert event.remaining_label == "12:00"

    def test_aware_now_is_converted_to_local(self):
        # 10:00 UTC is 12:00 in Dresden (CEST)
        now = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)
        event = sun_event_from_record(make_record(DRESDEN), now)
        assert event.kind == SunEventKind.SUNSET
        assert event.remaining == timedelta(hours=6)

    def test_remaining_across_spring_forward(self):
        # Dresden skips 02:00-03:00 on 2025-03-30; 22:00 CET to 06:01 CEST is 7:01
        record = make_record(DRESDEN, day="2025-03-29")
        event = sun_event_from_record(record, datetime(2025, 3, 29, 21, 0, tzinfo=timezone.utc))
        logger.info(f"[TEST] Across DST: {event}")
        assert event.kind == SunEventKind.SUNRISE
        assert (event.at.day, event.at.hour, event.at.minute) == (30, 6, 1)
        assert event.remaining == timedelta(hours=7, minutes=1)
        assert event.remaining_label == "7:01"

    def test_remaining_across_fall_back(self):
        # 01:00 CEST to 06:00 CET on 2025-10-26 spans the repeated hour: 6 hours
        record = make_record(DRESDEN, day="2025-10-26")
        event = sun_event_from_record(record, datetime(2025, 10, 25, 23, 0, tzinfo=timezone.utc))
        assert event.kind == SunEventKind.SUNRISE
        assert event.remaining == timedelta(hours=6)
        assert event.remaining_label == "6:00"

    @pytest.mark.asyncio
    async def test_through_the_cache(self, cache):
        event = await next_sun_event(cache, "Dresden", datetime(2025, 6, 1, 12, 0))
        assert event.available
        assert event.kind == SunEventKind.SUNSET

    @pytest.mark.asyncio
    async def test_unknown_location(self, cache):
        assert await next_sun_event(cache, "Atlantis") is UNAVAILABLE_SUN_EVENT

    @pytest.mark.asyncio
    async def test_fetch_failure(self, locations, clock):
        cache = WeatherCache(FakeFetcher(fail_with=httpx.ConnectError("down")), locations, clock=clock)
        event = await next_sun_event(cache, "Dresden")
        assert event is UNAVAILABLE_SUN_EVENT
        assert event.remaining_label == "--:--"

    @pytest.mark.asyncio
    async def test_no_tomorrow_after_sunset(self, locations, clock):
        cache = WeatherCache(FakeFetcher(payload_kwargs={"days": 1}), locations, clock=clock)
        event = await next_sun_event(cache, "Dresden", datetime(2025, 6, 1, 19, 0))
        assert event is UNAVAILABLE_SUN_EVENT


class TestCurrentConditions:

    def test_latest_sample_at_or_before_now(self):
        current = conditions_from_record(make_record(DRESDEN), datetime(2025, 6, 1, 10, 30))
        logger.info(f"[TEST] Current: {current}")
        assert current.sample_time.hour == 10
        assert current.temperature == 20
        assert current.feels_like_delta == -2
        assert current.temperature_label == "20°C (-2)"
        assert current.condition == WeatherCondition.CLEAR_DAY
        assert current.precipitation == 0.0
        assert current.is_day

    def test_clear_sky_at_night(self):
        current = conditions_from_record(make_record(DRESDEN), datetime(2025, 6, 1, 22, 30))
        assert current.temperature == 32
        assert current.condition == WeatherCondition.CLEAR_NIGHT
        assert current.is_day is False

    def test_sample_scan_on_spring_forward_day(self):
        # 04:30 UTC is 06:30 CEST: the 06:00 sample, after sunrise
        record = make_record(DRESDEN, day="2025-03-30")
        current = conditions_from_record(record, datetime(2025, 3, 30, 4, 30, tzinfo=timezone.utc))
        assert current.sample_time.hour == 6
        assert current.temperature == 16
        assert current.is_day

    def test_missing_precipitation_stays_unavailable(self):
        payload = make_payload(zone=DRESDEN.zone)
        del payload["hourly"]["precipitation"]
        current = conditions_from_record(parse_forecast(DRESDEN, payload), datetime(2025, 6, 1, 10, 30))

        assert current.temperature == 20
        assert current.precipitation is None
        line = format_panel(LocationPanel(DRESDEN, current=current), datetime(2025, 6, 1, 8, 30, tzinfo=timezone.utc))
        assert "💧 N/A," in line

    def test_before_first_sample(self):
        current = conditions_from_record(make_record(DRESDEN), datetime(2025, 5, 31, 23, 30))
        assert current is UNAVAILABLE_CONDITIONS
        assert current.temperature_label == "N/A"

    @pytest.mark.asyncio
    async def test_through_the_cache(self, cache):
        current = await current_conditions(cache, "Dresden", datetime(2025, 6, 1, 10, 30))
        assert current.temperature == 20

    @pytest.mark.asyncio
    async def test_unknown_location(self, cache):
        assert await current_conditions(cache, "Atlantis") is UNAVAILABLE_CONDITIONS


class TestPrecipitationProbability:

    @pytest.mark.asyncio
    async def test_today_and_tomorrow(self, cache):
        today = await precipitation_probability(cache, "Dresden", datetime(2025, 6, 1, 12, 0))
        tomorrow = await precipitation_probability(cache, "Dresden", datetime(2025, 6, 2, 12, 0))
        assert today.probability == 40
        assert today.label == "40%"
        assert tomorrow.probability == 10

    @pytest.mark.asyncio
    async def test_missing_value(self, locations, clock):
        fetcher = FakeFetcher(payload_kwargs={"precip_probability": (None, None)})
        cache = WeatherCache(fetcher, locations, clock=clock)
        result = await precipitation_probability(cache, "Dresden", datetime(2025, 6, 1, 12, 0))
        assert result is UNAVAILABLE_PRECIPITATION
        assert result.label == "N/A"

    @pytest.mark.asyncio
    async def test_queries_share_one_fetch(self, cache, fetcher):
        now = datetime(2025, 6, 1, 12, 0)
        await next_sun_event(cache, "Tambopata", now)
        await current_conditions(cache, "Dresden", now)
        await precipitation_probability(cache, "Tambopata", now)
        assert fetcher.calls == 1


class TestConditionForCode:

    @pytest.mark.parametrize("code,is_day,expected", [
        (0, True, WeatherCondition.CLEAR_DAY),
        (0, False, WeatherCondition.CLEAR_NIGHT),
        (2, True, WeatherCondition.CLOUDY),
        (45, True, WeatherCondition.FOG),
        (53, True, WeatherCondition.DRIZZLE),
        (63, False, WeatherCondition.RAIN),
        (75, True, WeatherCondition.SNOW),
        (81, True, WeatherCondition.RAIN_SHOWERS),
        (86, True, WeatherCondition.SNOW_SHOWERS),
        (99, True, WeatherCondition.THUNDERSTORM),
        (42, True, WeatherCondition.UNKNOWN),
        (None, True, WeatherCondition.UNKNOWN),
    ])
    def test_mapping(self, code, is_day, expected):
        assert condition_for_code(code, is_day) == expected
