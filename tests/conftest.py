"""
Shared fixtures for the Twin Sun test suite.

Forecast payloads mimic Open-Meteo responses: two days of data, sunrise at
06:00 and sunset at 18:00 on the first day, hourly temperature 10.0 + index.
"""

import asyncio
import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from twin_sun.config import LOCATIONS
from twin_sun.providers.open_meteo import parse_forecast

logging.basicConfig(level=logging.DEBUG)


def make_payload(zone="Europe/Berlin", day="2025-06-01", days=2, precip_probability=(40, 10)):
    start = datetime.fromisoformat(day)
    dates = [(start + timedelta(days=i)).strftime("%Y-%m-%d") for i in range(days)]
    hours = [
        (start + timedelta(hours=h)).strftime("%Y-%m-%dT%H:%M")
        for h in range(24 * days)
    ]
    temps = [10.0 + i for i in range(len(hours))]
    return {
        "timezone": zone,
        "daily": {
            "time": dates,
            "sunrise": [f"{d}T06:0{i}" for i, d in enumerate(dates)],
            "sunset": [f"{d}T18:0{i}" for i, d in enumerate(dates)],
            "precipitation_probability_max": list(precip_probability[:days]),
            "temperature_2m_max": [25.0] * days,
            "temperature_2m_min": [12.0] * days,
        },
        "hourly": {
            "time": hours,
            "temperature_2m": temps,
            "apparent_temperature": [t - 2.4 for t in temps],
            "weathercode": [0] * len(hours),
            "precipitation": [0.0] * len(hours),
        },
    }


def make_record(location, **kwargs):
    kwargs.setdefault("zone", location.zone)
    return parse_forecast(location, make_payload(**kwargs))


class FakeClock:
    """Settable clock for cache and scheduler tests."""

    def __init__(self, start=None):
        self.now = start or datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeFetcher:
    """Stands in for fetch_all_forecasts; counts calls, can fail or block."""

    def __init__(self, payload_kwargs=None, fail_with=None, drop_location=None):
        self.calls = 0
        self.payload_kwargs = payload_kwargs or {}
        self.fail_with = fail_with
        self.drop_location = drop_location
        self.gate = None

    async def __call__(self, locations):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        return [
            make_record(loc, **self.payload_kwargs)
            for loc in locations
            if loc.name != self.drop_location
        ]


@pytest.fixture
def locations():
    return list(LOCATIONS)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fetcher():
    return FakeFetcher()
