"""
Clock helpers and panel state for the dashboard.

Local times for both locations, their UTC offset difference, the
countdown to a target date and a plain text rendering of one location's
panel for the terminal.
"""

import calendar
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional
from zoneinfo import ZoneInfo

from twin_sun.config import Location
from twin_sun.weather_queries import (
    UNAVAILABLE_CONDITIONS,
    UNAVAILABLE_PRECIPITATION,
    UNAVAILABLE_SUN_EVENT,
    CurrentConditions,
    PrecipitationChance,
    SunEvent,
)


@dataclass(frozen=True)
class LocationPanel:
    """Everything the presentation layer shows for one location."""
    location: Location
    sun: SunEvent = UNAVAILABLE_SUN_EVENT
    current: CurrentConditions = UNAVAILABLE_CONDITIONS
    precipitation: PrecipitationChance = UNAVAILABLE_PRECIPITATION


def local_time(now: datetime, zone: str) -> str:
    return now.astimezone(ZoneInfo(zone)).strftime("%H:%M")


def utc_offset_difference_hours(now: datetime, zone_a: str, zone_b: str) -> float:
    """Hours that zone_a is ahead of zone_b at this instant."""
    offset_a = now.astimezone(ZoneInfo(zone_a)).utcoffset()
    offset_b = now.astimezone(ZoneInfo(zone_b)).utcoffset()
    return (offset_a - offset_b).total_seconds() / 3600


def _add_months(moment: datetime, months: int) -> datetime:
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def countdown_parts(now: datetime, target: datetime) -> Dict[str, int]:
    """
    Whole months, weeks and days from now until target.

    Months are calendar months; the remainder is split into weeks and days.
    Everything is zero once the target has passed.
    """
    now = now.astimezone(target.tzinfo) if target.tzinfo else now
    if target <= now:
        return {"months": 0, "weeks": 0, "days": 0}

    months = 0
    while _add_months(now, months + 1) <= target:
        months += 1

    remaining_days = (target - _add_months(now, months)).days
    weeks, days = divmod(remaining_days, 7)
    return {"months": months, "weeks": weeks, "days": days}


def format_unit(value: int, singular: str, plural: str) -> str:
    return f"{value} {singular if value == 1 else plural}"


def format_countdown(parts: Dict[str, int]) -> str:
    return ", ".join([
        format_unit(parts["months"], "month", "months"),
        format_unit(parts["weeks"], "week", "weeks"),
        format_unit(parts["days"], "day", "days"),
    ])


def format_panel(panel: LocationPanel, now: Optional[datetime] = None) -> str:
    """One line per location, e.g. '07:42 Dresden, Germany | 🌙 in 9:12 h | ☁️ 14°C (-2) | 💧 0.0 mm, 40%'."""
    now = now or datetime.now(panel.location.tz)
    loc = panel.location
    current = panel.current
    precip_mm = "N/A" if current.precipitation is None else f"{current.precipitation:.1f} mm"
    return (
        f"{local_time(now, loc.zone)} {loc.label or loc.name} | "
        f"{panel.sun.icon} in {panel.sun.remaining_label} h | "
        f"{current.icon} {current.temperature_label} | "
        f"💧 {precip_mm}, {panel.precipitation.label}"
    )
