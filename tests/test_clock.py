"""
Tests for the clock helpers, countdown and panel formatting.

Run with: python -m pytest tests/test_clock.py -v
"""

from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from twin_sun.clock import (
    LocationPanel,
    countdown_parts,
    format_countdown,
    format_panel,
    local_time,
    utc_offset_difference_hours,
)
from twin_sun.config import LOCATIONS
from twin_sun.weather_queries import (
    CurrentConditions,
    PrecipitationChance,
    SunEvent,
    SunEventKind,
    WeatherCondition,
)

LIMA = ZoneInfo("America/Lima")
NOON_UTC = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestLocalTime:

    def test_both_locations(self):
        assert local_time(NOON_UTC, "Europe/Berlin") == "14:00"
        assert local_time(NOON_UTC, "America/Lima") == "07:00"

    def test_offset_difference_follows_daylight_saving(self):
        winter = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
        assert utc_offset_difference_hours(NOON_UTC, "Europe/Berlin", "America/Lima") == 7
        assert utc_offset_difference_hours(winter, "Europe/Berlin", "America/Lima") == 6
        assert utc_offset_difference_hours(winter, "America/Lima", "Europe/Berlin") == -6


class TestCountdown:

    def test_months_weeks_days(self):
        now = datetime(2025, 1, 15, 9, 0, tzinfo=LIMA)
        target = datetime(2025, 3, 1, 9, 0, tzinfo=LIMA)
        parts = countdown_parts(now, target)
        assert parts == {"months": 1, "weeks": 2, "days": 0}
        assert format_countdown(parts) == "1 month, 2 weeks, 0 days"

    def test_month_end_is_clamped(self):
        now = datetime(2025, 1, 31, tzinfo=LIMA)
        target = datetime(2025, 3, 10, tzinfo=LIMA)
        assert countdown_parts(now, target) == {"months": 1, "weeks": 1, "days": 3}

    def test_zero_once_passed(self):
        target = datetime(2025, 3, 1, tzinfo=LIMA)
        parts = countdown_parts(target + timedelta(days=3), target)
        assert parts == {"months": 0, "weeks": 0, "days": 0}
        assert format_countdown(parts) == "0 months, 0 weeks, 0 days"

    def test_now_in_another_zone(self):
        target = datetime(2025, 6, 9, 0, 0, tzinfo=LIMA)
        assert countdown_parts(NOON_UTC, target) == {"months": 0, "weeks": 1, "days": 0}


class TestFormatPanel:

    def test_unavailable_panel(self):
        line = format_panel(LocationPanel(location=LOCATIONS[1]), NOON_UTC)
        assert line.startswith("14:00 Dresden, Germany")
        assert "--:--" in line
        assert "N/A" in line

    def test_filled_panel(self):
        panel = LocationPanel(
            location=LOCATIONS[0],
            sun=SunEvent(SunEventKind.SUNSET, timedelta(hours=3, minutes=5)),
            current=CurrentConditions(
                temperature=27,
                condition=WeatherCondition.RAIN,
                precipitation=1.3,
                feels_like_delta=3,
            ),
            precipitation=PrecipitationChance(80),
        )
        line = format_panel(panel, NOON_UTC)
        assert line == "07:00 Tambopata, Peru | 🌙 in 3:05 h | 🌧️ 27°C (+3) | 💧 1.3 mm, 80%"
