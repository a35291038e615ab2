"""
Configuration for Twin Sun

The two dashboard locations are fixed. Everything else can be tuned from
the environment (or a .env file loaded by the entry point).
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from zoneinfo import ZoneInfo

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Location:
    """A named point on the globe with its home time zone."""
    name: str
    latitude: float
    longitude: float
    zone: str
    label: str = ""

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.zone)


# Tambopata, Peru and Dresden, Germany
LOCATIONS: List[Location] = [
    Location("Tambopata", -12.8617, -69.4948, "America/Lima", "Tambopata, Peru"),
    Location("Dresden", 51.0504, 13.7373, "Europe/Berlin", "Dresden, Germany"),
]

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
CLOUDS_URL = "https://clouds.matteason.co.uk/images/2048x1024/clouds-alpha.png"

# Forecast data older than this is refetched
CACHE_TTL_MINUTES = 15

# today + tomorrow, so the next sunrise is known after today's sunset
FORECAST_DAYS = 2


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return float(raw)


@dataclass
class Settings:
    """Runtime settings read from environment variables."""
    cache_ttl_minutes: float = CACHE_TTL_MINUTES
    http_timeout: float = 30.0
    forecast_url: str = FORECAST_URL
    clouds_url: str = CLOUDS_URL
    texture_dir: Path = PROJECT_ROOT / "assets" / "worldGlobe"
    target_date: Optional[datetime] = None
    log_level: str = "INFO"
    locations: List[Location] = field(default_factory=lambda: list(LOCATIONS))

    @classmethod
    def from_env(cls) -> "Settings":
        target = os.getenv("TWIN_SUN_TARGET_DATE")
        target_date = None
        if target:
            # Interpreted in the first location's zone, like the countdown it feeds
            target_date = datetime.fromisoformat(target)
            if target_date.tzinfo is None:
                target_date = target_date.replace(tzinfo=LOCATIONS[0].tz)

        return cls(
            cache_ttl_minutes=_env_float("TWIN_SUN_CACHE_TTL_MINUTES", CACHE_TTL_MINUTES),
            http_timeout=_env_float("TWIN_SUN_HTTP_TIMEOUT", 30.0),
            forecast_url=os.getenv("TWIN_SUN_FORECAST_URL", FORECAST_URL),
            clouds_url=os.getenv("TWIN_SUN_CLOUDS_URL", CLOUDS_URL),
            texture_dir=Path(os.getenv("TWIN_SUN_TEXTURE_DIR", str(PROJECT_ROOT / "assets" / "worldGlobe"))),
            target_date=target_date,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )
