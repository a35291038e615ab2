"""
Forecast Cache for Twin Sun

Single-flight, time-boxed in-memory cache for the forecasts of all
configured locations.

States:
- IDLE:     no fetch running; readers get cached data if it is fresh
- FETCHING: one shared fetch task; every reader that needs fresh data
            awaits that same task

Tiers:
- EMPTY: nothing fetched yet
- FRESH: younger than the TTL (15 minutes by default)
- STALE: at or past the TTL, or explicitly invalidated

The record set is replaced as a whole after a successful fetch, so a reader
never sees some locations from one fetch and some from another. A failed
fetch is reported to every waiter and leaves the old data in place; the
next call starts a new fetch.
"""

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from twin_sun.config import CACHE_TTL_MINUTES, Location
from twin_sun.providers.open_meteo import ForecastRecord
from twin_sun.resilience import categorize_error

logger = logging.getLogger(__name__)

Fetcher = Callable[[Sequence[Location]], Awaitable[List[ForecastRecord]]]
Clock = Callable[[], datetime]


class CacheState(Enum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"


class CacheTier(Enum):
    """Data freshness tiers."""
    EMPTY = "EMPTY"
    FRESH = "FRESH"
    STALE = "STALE"


@dataclass(frozen=True)
class CacheEntry:
    """A complete record set with the time it was fetched."""
    records: Tuple[ForecastRecord, ...]
    fetched_at: datetime
    invalidated: bool = False

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class WeatherCache:
    """
    Owns the forecast data for one set of locations.

    Args:
        fetcher: Coroutine function fetching all locations at once
        locations: Configured locations; every fetch must cover all of them
        ttl: Age at which cached data becomes stale
        clock: Returns the current aware datetime (injectable for tests)
    """

    def __init__(
        self,
        fetcher: Fetcher,
        locations: Sequence[Location],
        ttl: timedelta = timedelta(minutes=CACHE_TTL_MINUTES),
        clock: Clock = _utc_now,
    ):
        self._fetcher = fetcher
        self.locations = list(locations)
        self.ttl = ttl
        self._clock = clock
        self._entry: Optional[CacheEntry] = None
        self._inflight: Optional["asyncio.Task[Tuple[ForecastRecord, ...]]"] = None
        self._stats: Dict[str, Any] = {
            "requests": 0,
            "cache_hits": 0,
            "shared_waits": 0,
            "network_fetches": 0,
            "failures": 0,
            "error_types": {},
        }

    @property
    def state(self) -> CacheState:
        return CacheState.FETCHING if self._inflight is not None else CacheState.IDLE

    @property
    def tier(self) -> CacheTier:
        if self._entry is None:
            return CacheTier.EMPTY
        return CacheTier.STALE if self._is_stale(self._entry) else CacheTier.FRESH

    @property
    def fetched_at(self) -> Optional[datetime]:
        return self._entry.fetched_at if self._entry else None

    def _is_stale(self, entry: CacheEntry) -> bool:
        return entry.invalidated or entry.age(self._clock()) >= self.ttl

    def invalidate(self) -> None:
        """Mark cached data stale without dropping it."""
        if self._entry is not None:
            self._entry = replace(self._entry, invalidated=True)
            logger.info("[WeatherCache] Cache invalidated")

    async def get_shared_forecasts(self) -> Tuple[ForecastRecord, ...]:
        """
        Return forecasts for all locations, fetching at most once at a time.

        Raises:
            Whatever the fetch raised, if no fresh data was available
        """
        self._stats["requests"] += 1

        entry = self._entry
        if entry is not None and not self._is_stale(entry):
            self._stats["cache_hits"] += 1
            logger.debug(f"[WeatherCache] Cache hit ({entry.age(self._clock()).total_seconds():.0f}s old)")
            return entry.records

        if self._inflight is None:
            logger.info("[WeatherCache] Fetching new forecast data...")
            self._stats["network_fetches"] += 1
            self._inflight = asyncio.create_task(self._fetch())
            self._inflight.add_done_callback(self._consume_result)
        else:
            self._stats["shared_waits"] += 1
            logger.info("[WeatherCache] Waiting for the fetch already in flight...")

        # A cancelled waiter must not cancel the fetch other readers share
        return await asyncio.shield(self._inflight)

    async def _fetch(self) -> Tuple[ForecastRecord, ...]:
        try:
            records = tuple(await self._fetcher(self.locations))
            self._check_complete(records)
            self._entry = CacheEntry(records=records, fetched_at=self._clock())
            logger.info(f"[WeatherCache] Fetch successful, cached {len(records)} locations")
            return records
        except Exception as e:
            error_type, error_msg = categorize_error(e)
            self._stats["failures"] += 1
            errors = self._stats["error_types"]
            errors[error_type.value] = errors.get(error_type.value, 0) + 1
            logger.error(f"[WeatherCache] Fetch failed ({error_type.value}): {error_msg}")
            raise
        finally:
            self._inflight = None

    def _check_complete(self, records: Tuple[ForecastRecord, ...]) -> None:
        expected = {loc.name for loc in self.locations}
        received = {r.name for r in records}
        if received != expected or len(records) != len(expected):
            raise ValueError(
                f"incomplete forecast set: expected {sorted(expected)}, got {sorted(received)}"
            )

    @staticmethod
    def _consume_result(task: "asyncio.Task") -> None:
        # Marks the exception as retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()

    def get_stats(self) -> Dict[str, Any]:
        """Summary of cache behaviour since start."""
        requests = self._stats["requests"]
        hit_rate = self._stats["cache_hits"] / requests * 100 if requests else 0.0
        return {
            **self._stats,
            "error_types": dict(self._stats["error_types"]),
            "hit_rate": round(hit_rate, 1),
            "tier": self.tier.value,
            "state": self.state.value,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
        }
