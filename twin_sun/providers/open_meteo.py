"""
Open-Meteo Weather Provider for Twin Sun

Fetches a two day forecast (today + tomorrow) for every configured
location. Open-Meteo resolves each location's time zone itself
(timezone=auto), so all returned timestamps are local wall-clock times.
"""

import asyncio
import httpx
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from twin_sun.config import FORECAST_DAYS, FORECAST_URL, Location

# Get logger (configuration is done in the entry point)
logger = logging.getLogger(__name__)

DAILY_FIELDS = [
    "sunrise",
    "sunset",
    "precipitation_probability_max",
    "temperature_2m_max",
    "temperature_2m_min",
]
HOURLY_FIELDS = [
    "temperature_2m",
    "apparent_temperature",
    "weathercode",
    "precipitation",
]


@dataclass(frozen=True)
class DailySeries:
    time: Tuple[str, ...]
    sunrise: Tuple[str, ...]
    sunset: Tuple[str, ...]
    precipitation_probability_max: Tuple[Optional[float], ...]
    temperature_max: Tuple[Optional[float], ...]
    temperature_min: Tuple[Optional[float], ...]


@dataclass(frozen=True)
class HourlySeries:
    time: Tuple[str, ...]
    temperature: Tuple[Optional[float], ...]
    apparent_temperature: Tuple[Optional[float], ...]
    weather_code: Tuple[Optional[int], ...]
    precipitation: Tuple[Optional[float], ...]


@dataclass(frozen=True)
class ForecastRecord:
    """One location's forecast. Never modified after parsing."""
    name: str
    latitude: float
    longitude: float
    timezone: str
    daily: DailySeries
    hourly: HourlySeries
    fetched_at: str


def _series(block: dict, key: str, length: int) -> tuple:
    values = block.get(key)
    if values is None:
        return (None,) * length
    if len(values) != length:
        raise ValueError(f"'{key}' has {len(values)} values, expected {length}")
    return tuple(values)


def parse_forecast(location: Location, payload: dict) -> ForecastRecord:
    """
    Turn an Open-Meteo JSON response into a ForecastRecord.

    Raises:
        KeyError/ValueError if required fields are missing or inconsistent
    """
    daily = payload["daily"]
    hourly = payload["hourly"]

    day_count = len(daily["sunrise"])
    if day_count == 0 or len(daily["sunset"]) != day_count:
        raise ValueError(f"sunrise/sunset arrays missing or mismatched for {location.name}")

    hour_count = len(hourly["time"])
    if hour_count == 0:
        raise ValueError(f"no hourly samples for {location.name}")

    return ForecastRecord(
        name=location.name,
        latitude=location.latitude,
        longitude=location.longitude,
        timezone=payload.get("timezone") or location.zone,
        daily=DailySeries(
            time=_series(daily, "time", day_count),
            sunrise=tuple(daily["sunrise"]),
            sunset=tuple(daily["sunset"]),
            precipitation_probability_max=_series(daily, "precipitation_probability_max", day_count),
            temperature_max=_series(daily, "temperature_2m_max", day_count),
            temperature_min=_series(daily, "temperature_2m_min", day_count),
        ),
        hourly=HourlySeries(
            time=tuple(hourly["time"]),
            temperature=_series(hourly, "temperature_2m", hour_count),
            apparent_temperature=_series(hourly, "apparent_temperature", hour_count),
            weather_code=_series(hourly, "weathercode", hour_count),
            precipitation=_series(hourly, "precipitation", hour_count),
        ),
        fetched_at=datetime.now().isoformat(),
    )


async def fetch_location_forecast(
    client: httpx.AsyncClient,
    location: Location,
    url: str = FORECAST_URL,
    days: int = FORECAST_DAYS,
) -> ForecastRecord:
    """
    Fetch and parse the forecast for one location.

    Raises:
        httpx.HTTPError on transport failure or non-2xx status
    """
    params = {
        "latitude": location.latitude,
        "longitude": location.longitude,
        "daily": ",".join(DAILY_FIELDS),
        "hourly": ",".join(HOURLY_FIELDS),
        "timezone": "auto",
        "forecast_days": days,
    }

    logger.debug(f"[fetch_location_forecast] {location.name} params: {params}")

    resp = await client.get(url, params=params)
    logger.info(f"[fetch_location_forecast] {location.name} response status: {resp.status_code}")
    resp.raise_for_status()
    data = resp.json()

    logger.info(
        f"[fetch_location_forecast] {location.name}: "
        f"{len(data.get('hourly', {}).get('time', []))} hourly records, tz={data.get('timezone')}"
    )
    return parse_forecast(location, data)


async def fetch_all_forecasts(
    locations: Sequence[Location],
    client: Optional[httpx.AsyncClient] = None,
    url: str = FORECAST_URL,
    timeout: float = 30.0,
) -> List[ForecastRecord]:
    """
    Fetch every location in parallel.

    All or nothing: if any location fails the exception propagates and no
    partial result is returned.
    """
    logger.info(f"[fetch_all_forecasts] Fetching {len(locations)} locations from Open-Meteo...")

    if client is not None:
        return list(await asyncio.gather(
            *(fetch_location_forecast(client, loc, url) for loc in locations)
        ))

    async with httpx.AsyncClient(timeout=timeout) as own_client:
        return list(await asyncio.gather(
            *(fetch_location_forecast(own_client, loc, url) for loc in locations)
        ))


if __name__ == "__main__":
    # Test the provider directly
    from twin_sun.config import LOCATIONS

    logging.basicConfig(level=logging.INFO)

    async def test():
        records = await fetch_all_forecasts(LOCATIONS)
        for r in records:
            print(f"{r.name} ({r.timezone}): sunrise={r.daily.sunrise}, sunset={r.daily.sunset}")

    asyncio.run(test())
