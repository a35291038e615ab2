"""
Derived weather queries for Twin Sun

Every query reads the shared forecast set from a WeatherCache and answers
for one named location:

- next_sun_event:            which of sunrise/sunset comes next, and when
- current_conditions:        latest hourly sample at or before now
- precipitation_probability: today's maximum precipitation probability

The dashboard must always have something to draw, so a failed fetch, a
missing location, a malformed payload or a lookup miss is logged and turned
into the UNAVAILABLE result of that query. Nothing here raises.
"""

import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple
from zoneinfo import ZoneInfo

from twin_sun.cache_manager import WeatherCache
from twin_sun.providers.open_meteo import ForecastRecord
from twin_sun.resilience import categorize_error

logger = logging.getLogger(__name__)

PARSE_ERRORS = (KeyError, ValueError, TypeError, IndexError)


class SunEventKind(Enum):
    SUNRISE = "sunrise"
    SUNSET = "sunset"
    UNKNOWN = "unknown"

    @property
    def icon(self) -> str:
        return {"sunrise": "🌅", "sunset": "🌙"}.get(self.value, "❓")


class WeatherCondition(Enum):
    """Display categories for WMO weather codes."""
    CLEAR_DAY = "clear_day"
    CLEAR_NIGHT = "clear_night"
    CLOUDY = "cloudy"
    FOG = "fog"
    DRIZZLE = "drizzle"
    RAIN = "rain"
    SNOW = "snow"
    RAIN_SHOWERS = "rain_showers"
    SNOW_SHOWERS = "snow_showers"
    THUNDERSTORM = "thunderstorm"
    UNKNOWN = "unknown"

    @property
    def icon(self) -> str:
        return CONDITION_ICONS[self]


CONDITION_ICONS = {
    WeatherCondition.CLEAR_DAY: "☀️",
    WeatherCondition.CLEAR_NIGHT: "🌙",
    WeatherCondition.CLOUDY: "☁️",
    WeatherCondition.FOG: "🌫️",
    WeatherCondition.DRIZZLE: "💧",
    WeatherCondition.RAIN: "🌧️",
    WeatherCondition.SNOW: "❄️",
    WeatherCondition.RAIN_SHOWERS: "🌦️",
    WeatherCondition.SNOW_SHOWERS: "🌨️",
    WeatherCondition.THUNDERSTORM: "⛈️",
    WeatherCondition.UNKNOWN: "❓",
}


def condition_for_code(code: Optional[int], is_day: bool) -> WeatherCondition:
    """Map a WMO weather code (plus day/night for clear sky) to a category."""
    if code is None:
        return WeatherCondition.UNKNOWN
    if code == 0:
        return WeatherCondition.CLEAR_DAY if is_day else WeatherCondition.CLEAR_NIGHT
    if 1 <= code <= 3:
        return WeatherCondition.CLOUDY       # Mainly clear, partly cloudy, overcast
    if 45 <= code <= 48:
        return WeatherCondition.FOG
    if 51 <= code <= 57:
        return WeatherCondition.DRIZZLE
    if 61 <= code <= 67:
        return WeatherCondition.RAIN
    if 71 <= code <= 77:
        return WeatherCondition.SNOW
    if 80 <= code <= 82:
        return WeatherCondition.RAIN_SHOWERS
    if 85 <= code <= 86:
        return WeatherCondition.SNOW_SHOWERS
    if code == 95 or 96 <= code <= 99:
        return WeatherCondition.THUNDERSTORM  # incl. hail
    return WeatherCondition.UNKNOWN


@dataclass(frozen=True)
class SunEvent:
    kind: SunEventKind
    remaining: Optional[timedelta] = None
    at: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.kind is not SunEventKind.UNKNOWN

    @property
    def icon(self) -> str:
        return self.kind.icon

    @property
    def remaining_label(self) -> str:
        """Remaining time as h:mm, '--:--' when unavailable."""
        if self.remaining is None:
            return "--:--"
        total_minutes = int(self.remaining.total_seconds() // 60)
        sign = "-" if total_minutes < 0 else ""
        hours, minutes = divmod(abs(total_minutes), 60)
        return f"{sign}{hours}:{minutes:02d}"


@dataclass(frozen=True)
class CurrentConditions:
    temperature: Optional[int]
    condition: WeatherCondition
    precipitation: Optional[float]
    feels_like_delta: Optional[int] = None
    is_day: Optional[bool] = None
    sample_time: Optional[datetime] = None

    @property
    def available(self) -> bool:
        return self.temperature is not None

    @property
    def icon(self) -> str:
        return self.condition.icon

    @property
    def temperature_label(self) -> str:
        if self.temperature is None:
            return "N/A"
        label = f"{self.temperature}°C"
        if self.feels_like_delta:
            label += f" ({self.feels_like_delta:+d})"
        return label


@dataclass(frozen=True)
class PrecipitationChance:
    probability: Optional[int]

    @property
    def available(self) -> bool:
        return self.probability is not None

    @property
    def label(self) -> str:
        return "N/A" if self.probability is None else f"{self.probability}%"


UNAVAILABLE_SUN_EVENT = SunEvent(kind=SunEventKind.UNKNOWN)
UNAVAILABLE_CONDITIONS = CurrentConditions(
    temperature=None, condition=WeatherCondition.UNKNOWN, precipitation=None
)
UNAVAILABLE_PRECIPITATION = PrecipitationChance(probability=None)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _local_now(now: Optional[datetime], tz: ZoneInfo) -> datetime:
    """Current time in the location's zone; naive values are taken as local already."""
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def _parse_local(stamp: str, tz: ZoneInfo) -> datetime:
    return datetime.fromisoformat(stamp).replace(tzinfo=tz)


def _utc(moment: datetime) -> datetime:
    # Same-tzinfo arithmetic is wall-clock; compare and subtract as instants
    return moment.astimezone(timezone.utc)


def _today_index(record: ForecastRecord, local_now: datetime) -> int:
    """Index of today's daily entry; the first entry when dates are unknown."""
    today = local_now.date().isoformat()
    for i, day in enumerate(record.daily.time):
        if day == today:
            return i
    return 0


async def _find_record(cache: WeatherCache, location_name: str, query: str) -> Optional[ForecastRecord]:
    try:
        records = await cache.get_shared_forecasts()
    except Exception as e:
        error_type, error_msg = categorize_error(e)
        logger.error(f"[{query}] Forecast data unavailable ({error_type.value}): {error_msg}")
        return None

    record = next((r for r in records if r.name == location_name), None)
    if record is None:
        logger.error(f"[{query}] Weather data for '{location_name}' could not be found")
    return record


def _sun_times(record: ForecastRecord, index: int, tz: ZoneInfo) -> Tuple[datetime, datetime]:
    return (
        _parse_local(record.daily.sunrise[index], tz),
        _parse_local(record.daily.sunset[index], tz),
    )


def sun_event_from_record(record: ForecastRecord, now: Optional[datetime] = None) -> SunEvent:
    """Next sunrise or sunset for an already fetched record."""
    tz = ZoneInfo(record.timezone)
    local_now = _local_now(now, tz)
    today = _today_index(record, local_now)
    sunrise, sunset = _sun_times(record, today, tz)

    now_utc = _utc(local_now)
    if now_utc < _utc(sunrise):
        return SunEvent(SunEventKind.SUNRISE, _utc(sunrise) - now_utc, sunrise)
    if now_utc < _utc(sunset):
        return SunEvent(SunEventKind.SUNSET, _utc(sunset) - now_utc, sunset)

    # Past today's sunset: tomorrow's sunrise
    next_sunrise = _parse_local(record.daily.sunrise[today + 1], tz)
    return SunEvent(SunEventKind.SUNRISE, _utc(next_sunrise) - now_utc, next_sunrise)


def conditions_from_record(record: ForecastRecord, now: Optional[datetime] = None) -> CurrentConditions:
    """Current conditions for an already fetched record."""
    tz = ZoneInfo(record.timezone)
    local_now = _local_now(now, tz)
    sunrise, sunset = _sun_times(record, _today_index(record, local_now), tz)
    now_utc = _utc(local_now)
    is_day = _utc(sunrise) < now_utc < _utc(sunset)

    hourly = record.hourly
    index = None
    for i in range(len(hourly.time) - 1, -1, -1):
        if _utc(_parse_local(hourly.time[i], tz)) <= now_utc:
            index = i
            break

    if index is None:
        logger.error(f"[current_conditions] No hourly sample at or before {local_now:%Y-%m-%dT%H:%M} for {record.name}")
        return UNAVAILABLE_CONDITIONS

    temperature = hourly.temperature[index]
    if temperature is None:
        logger.warning(f"[current_conditions] Missing temperature at {hourly.time[index]} for {record.name}")
        return UNAVAILABLE_CONDITIONS

    apparent = hourly.apparent_temperature[index]
    feels_like_delta = None
    if apparent is not None:
        feels_like_delta = _round_half_up(apparent - temperature) or None

    precipitation = hourly.precipitation[index]

    return CurrentConditions(
        temperature=_round_half_up(temperature),
        condition=condition_for_code(hourly.weather_code[index], is_day),
        precipitation=precipitation,
        feels_like_delta=feels_like_delta,
        is_day=is_day,
        sample_time=_parse_local(hourly.time[index], tz),
    )


def precipitation_from_record(record: ForecastRecord, now: Optional[datetime] = None) -> PrecipitationChance:
    tz = ZoneInfo(record.timezone)
    index = _today_index(record, _local_now(now, tz))
    value = record.daily.precipitation_probability_max[index]
    if value is None:
        return UNAVAILABLE_PRECIPITATION
    return PrecipitationChance(probability=_round_half_up(value))


async def next_sun_event(cache: WeatherCache, location_name: str,
                         now: Optional[datetime] = None) -> SunEvent:
    """Next sun event for a location, UNAVAILABLE_SUN_EVENT on any failure."""
    record = await _find_record(cache, location_name, "next_sun_event")
    if record is None:
        return UNAVAILABLE_SUN_EVENT
    try:
        return sun_event_from_record(record, now)
    except PARSE_ERRORS as e:
        logger.error(f"[next_sun_event] Error processing sun times for {location_name}: {e}")
        return UNAVAILABLE_SUN_EVENT


async def current_conditions(cache: WeatherCache, location_name: str,
                             now: Optional[datetime] = None) -> CurrentConditions:
    """Current weather for a location, UNAVAILABLE_CONDITIONS on any failure."""
    record = await _find_record(cache, location_name, "current_conditions")
    if record is None:
        return UNAVAILABLE_CONDITIONS
    try:
        return conditions_from_record(record, now)
    except PARSE_ERRORS as e:
        logger.error(f"[current_conditions] Error processing current weather for {location_name}: {e}")
        return UNAVAILABLE_CONDITIONS


async def precipitation_probability(cache: WeatherCache, location_name: str,
                                    now: Optional[datetime] = None) -> PrecipitationChance:
    """Today's max precipitation probability, UNAVAILABLE_PRECIPITATION on any failure."""
    record = await _find_record(cache, location_name, "precipitation_probability")
    if record is None:
        return UNAVAILABLE_PRECIPITATION
    try:
        return precipitation_from_record(record, now)
    except PARSE_ERRORS as e:
        logger.error(f"[precipitation_probability] Error reading precipitation for {location_name}: {e}")
        return UNAVAILABLE_PRECIPITATION
