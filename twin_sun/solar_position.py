"""
Solar Position Module for Twin Sun

Computes the sun sub-point (the spot on Earth directly beneath the sun)
for a UTC instant. Both coordinates are low-precision approximations:

- Longitude: the sub-solar point moves westward 15 degrees per hour.
  Convention: UTC noon -> 0 deg, UTC midnight -> -180 deg (date line),
  06:00 UTC -> +90 deg.
- Latitude: solar declination from a single sinusoid,
  23.45 * sin(360/365 * (N - 81)), no leap year or equation of time.

Good enough for a whole-globe view refreshed once per minute.
"""

import math
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Tuple

logger = logging.getLogger(__name__)

# Earth's axial tilt, the bound on solar declination
OBLIQUITY_DEG = 23.45

# Shifts the instant before computing; 0 in normal operation
LONGITUDE_OFFSET_HOURS = 0


@dataclass(frozen=True)
class SunSubPoint:
    longitude: float
    latitude: float

    def to_cartesian(self) -> Tuple[float, float, float]:
        """Unit vector in the globe frame (y up, see shading.polar_to_cartesian)."""
        theta = math.radians(90.0 - self.longitude)
        phi = math.radians(90.0 - self.latitude)
        return (
            math.sin(phi) * math.cos(theta),
            math.cos(phi),
            math.sin(phi) * math.sin(theta),
        )


def normalize_longitude(lon: float) -> float:
    """Wrap a longitude into [-180, 180]."""
    if lon < -180:
        lon += 360
    if lon > 180:
        lon -= 360
    return lon


def to_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None or instant.tzinfo.utcoffset(instant) is None:
        raise ValueError(f"instant must be timezone-aware, got naive {instant!r}")
    return instant.astimezone(timezone.utc)


def solar_declination(day_of_year: int) -> float:
    """Approximate solar declination in degrees for a 1-indexed ordinal day."""
    return OBLIQUITY_DEG * math.sin(math.radians(360 / 365 * (day_of_year - 81)))


def compute_sun_sub_point(instant: datetime) -> SunSubPoint:
    """
    Calculate the sun sub-point for an instant.

    Args:
        instant: Timezone-aware datetime, converted to UTC first

    Returns:
        SunSubPoint with longitude in [-180, 180], latitude in [-23.45, 23.45]
    """
    adjusted = to_utc(instant) + timedelta(hours=LONGITUDE_OFFSET_HOURS)
    hours = adjusted.hour + adjusted.minute / 60

    longitude = normalize_longitude(((-hours) / 24) * 360 - 180)

    day_of_year = adjusted.timetuple().tm_yday
    latitude = solar_declination(day_of_year)

    logger.debug(
        f"[compute_sun_sub_point] Sun @ {adjusted:%Y-%m-%d %H:%M:%S} UTC | "
        f"Day {day_of_year} | Lon {longitude:.2f} | Lat {latitude:.2f}"
    )
    return SunSubPoint(longitude=longitude, latitude=latitude)


def utc_label(instant: datetime) -> str:
    """Format an instant as 'HH:MM:SS UTC' for display next to the globe."""
    return to_utc(instant).strftime("%H:%M:%S UTC")
