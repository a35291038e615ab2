"""
Providers package for Twin Sun

Open-Meteo is the only forecast source: one request per location,
two forecast days, time zone resolved by the API.
"""

from twin_sun.providers.open_meteo import (
    fetch_all_forecasts,
    fetch_location_forecast,
    parse_forecast,
    ForecastRecord,
    DailySeries,
    HourlySeries,
)

__all__ = [
    "fetch_all_forecasts",
    "fetch_location_forecast",
    "parse_forecast",
    "ForecastRecord",
    "DailySeries",
    "HourlySeries",
]
