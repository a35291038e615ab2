"""
Twin Sun Scheduler

Drives the dashboard with two wall-clock aligned ticks:
1. Minute tick: next sun event for every location + new sun sub-point
2. Hour tick:   current weather and precipitation probability for every
                location (the forecast API has hourly resolution)

Each tick recomputes its delay to the next boundary instead of sleeping a
fixed interval, so it never drifts away from the wall clock. A tick that
raises is logged and the next one still runs. Cancelling a subscription
stops its future ticks; a fetch it started keeps running and still fills
the cache.
"""

import asyncio
import functools
import inspect
import logging
import os
import sys
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

from dotenv import load_dotenv

from twin_sun.cache_manager import WeatherCache
from twin_sun.clock import LocationPanel, format_panel
from twin_sun.config import Location, Settings
from twin_sun.globe import Frame, FrameClock, GlobeScene, camera_position
from twin_sun.providers.open_meteo import fetch_all_forecasts
from twin_sun.shading import GlobeOrientation
from twin_sun.solar_position import SunSubPoint, compute_sun_sub_point, utc_label
from twin_sun.textures import load_textures
from twin_sun.weather_queries import (
    current_conditions,
    next_sun_event,
    precipitation_probability,
)

logger = logging.getLogger(__name__)

BOUNDARY_SECONDS = {
    "minute": 60,
    "hour": 3600,
}

Callback = Callable[[], Union[None, Awaitable[None]]]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def next_boundary(now: datetime, boundary: str) -> datetime:
    """
    The next minute or hour boundary strictly after now.

    Exactly on a boundary, the next one is a full period away.
    """
    if boundary not in BOUNDARY_SECONDS:
        raise ValueError(f"unknown boundary {boundary!r}, expected one of {sorted(BOUNDARY_SECONDS)}")

    start = now.replace(second=0, microsecond=0)
    if boundary == "hour":
        start = start.replace(minute=0)
    return start + timedelta(seconds=BOUNDARY_SECONDS[boundary])


def seconds_until_boundary(now: datetime, boundary: str) -> float:
    """Seconds from now until the next minute or hour boundary."""
    return (next_boundary(now, boundary) - now).total_seconds()


class Subscription:
    """Handle for one aligned periodic callback."""

    def __init__(self, boundary: str, task: "asyncio.Task[None]"):
        self.boundary = boundary
        self.task = task

    @property
    def active(self) -> bool:
        return not self.task.done()

    def cancel(self) -> None:
        self.task.cancel()


class AlignedScheduler:
    """
    Runs callbacks on minute or hour boundaries.

    Args:
        clock: Returns the current aware datetime
        sleep: Coroutine used to wait (asyncio.sleep; injectable for tests)
    """

    def __init__(
        self,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._clock = clock
        self._sleep = sleep
        self._subscriptions: List[Subscription] = []

    @property
    def subscriptions(self) -> List[Subscription]:
        return [s for s in self._subscriptions if s.active]

    def schedule_aligned(self, boundary: str, callback: Callback,
                         run_immediately: bool = False) -> Subscription:
        """Call callback on every boundary ('minute' or 'hour') until cancelled."""
        if boundary not in BOUNDARY_SECONDS:
            raise ValueError(f"unknown boundary {boundary!r}, expected one of {sorted(BOUNDARY_SECONDS)}")

        name = getattr(callback, "__name__", repr(callback))
        task = asyncio.create_task(
            self._loop(boundary, callback, run_immediately, name),
            name=f"aligned-{boundary}-{name}",
        )
        subscription = Subscription(boundary, task)
        self._subscriptions.append(subscription)
        logger.info(f"[AlignedScheduler] Scheduled {name} on every {boundary}")
        return subscription

    async def _loop(self, boundary: str, callback: Callback, run_immediately: bool, name: str) -> None:
        period = timedelta(seconds=BOUNDARY_SECONDS[boundary])
        last_fired: Optional[datetime] = None
        if run_immediately:
            await self._fire(callback, name)
        while True:
            now = self._clock()
            target = next_boundary(now, boundary)
            # The loop clock may wake slightly before the wall-clock boundary
            if last_fired is not None and target <= last_fired:
                target = last_fired + period
            delay = (target - now).total_seconds()
            logger.debug(f"[AlignedScheduler] {name}: next {boundary} tick in {delay:.3f}s")
            await self._sleep(delay)
            last_fired = target
            await self._fire(callback, name)

    async def _fire(self, callback: Callback, name: str) -> None:
        try:
            result = callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(f"[AlignedScheduler] Tick {name} failed: {e}", exc_info=True)

    async def shutdown(self) -> None:
        """Cancel every subscription and wait for the loops to stop."""
        tasks = [s.task for s in self._subscriptions]
        for s in self._subscriptions:
            s.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._subscriptions.clear()
        logger.info("[AlignedScheduler] All subscriptions cancelled")


class Dashboard:
    """
    Presentation state for both locations plus the globe.

    Owns its WeatherCache. Results of one tick are applied together once all
    per-location queries have finished.
    """

    def __init__(
        self,
        cache: WeatherCache,
        locations: Sequence[Location],
        scene: Optional[GlobeScene] = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self.cache = cache
        self.locations = list(locations)
        self.scene = scene
        self._clock = clock
        self.frame_clock = FrameClock()
        self.panels: Dict[str, LocationPanel] = {
            loc.name: LocationPanel(location=loc) for loc in self.locations
        }
        self.sun_sub_point: Optional[SunSubPoint] = None
        self.orientation = GlobeOrientation(
            longitude=self.locations[0].longitude if self.locations else 0.0,
            latitude=self.locations[0].latitude if self.locations else 0.0,
        )

    async def refresh_sun_events(self) -> None:
        now = self._clock()
        self.sun_sub_point = compute_sun_sub_point(now)
        results = await asyncio.gather(
            *(next_sun_event(self.cache, loc.name, now) for loc in self.locations)
        )
        for loc, sun in zip(self.locations, results):
            self.panels[loc.name] = replace(self.panels[loc.name], sun=sun)
        logger.info(
            f"[Dashboard] Sun events refreshed at {utc_label(now)}: "
            + ", ".join(f"{loc.name}={sun.kind.value} in {sun.remaining_label}" for loc, sun in zip(self.locations, results))
        )

    async def refresh_weather(self, invalidate: bool = True) -> None:
        if invalidate:
            self.cache.invalidate()
        now = self._clock()
        current_results, precip_results = await asyncio.gather(
            asyncio.gather(*(current_conditions(self.cache, loc.name, now) for loc in self.locations)),
            asyncio.gather(*(precipitation_probability(self.cache, loc.name, now) for loc in self.locations)),
        )
        for loc, current, precip in zip(self.locations, current_results, precip_results):
            self.panels[loc.name] = replace(self.panels[loc.name], current=current, precipitation=precip)
        logger.info(f"[Dashboard] Weather refreshed for {len(self.locations)} locations")

    def render(self, camera=None) -> Optional[Frame]:
        """Render one globe frame; camera defaults to facing the current orientation."""
        if self.scene is None:
            return None
        camera = camera if camera is not None else camera_position(self.orientation)
        state = self.frame_clock.state_for(self._clock(), camera)
        self.orientation = state.globe_orientation
        return self.scene.render_frame(state)

    def start(self, scheduler: AlignedScheduler) -> List[Subscription]:
        return [
            scheduler.schedule_aligned("minute", self.refresh_sun_events, run_immediately=True),
            # First run uses whatever the cache holds; later hours force a refetch
            scheduler.schedule_aligned("hour", self.refresh_weather, run_immediately=False),
        ]

    def snapshot(self) -> List[str]:
        now = self._clock()
        return [format_panel(self.panels[loc.name], now) for loc in self.locations]


def configure_logging(level: str = "INFO") -> None:
    """Log to logs/twin_sun.log and stdout."""
    os.makedirs("logs", exist_ok=True)
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler("logs/twin_sun.log", mode='a', encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )


def build_dashboard(settings: Settings, scene: Optional[GlobeScene] = None) -> Dashboard:
    fetcher = functools.partial(
        fetch_all_forecasts,
        url=settings.forecast_url,
        timeout=settings.http_timeout,
    )
    cache = WeatherCache(
        fetcher,
        settings.locations,
        ttl=timedelta(minutes=settings.cache_ttl_minutes),
    )
    return Dashboard(cache, settings.locations, scene=scene)


async def run(settings: Settings, once: bool = False, render_globe: bool = True) -> int:
    """Run the dashboard until cancelled (or a single refresh with once=True)."""
    scene = None
    if render_globe:
        textures = await asyncio.to_thread(
            load_textures, settings.texture_dir, settings.clouds_url, settings.http_timeout
        )
        scene = GlobeScene(textures, settings.locations)

    dashboard = build_dashboard(settings, scene)

    if once:
        await dashboard.refresh_sun_events()
        await dashboard.refresh_weather(invalidate=False)
        _report(dashboard)
        return 0

    scheduler = AlignedScheduler()
    dashboard.start(scheduler)
    await dashboard.refresh_weather(invalidate=False)
    scheduler.schedule_aligned("minute", lambda: _report(dashboard))

    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.shutdown()
    return 0


def _report(dashboard: Dashboard) -> None:
    for line in dashboard.snapshot():
        logger.info(f"[report] {line}")

    frame = dashboard.render()
    sun = dashboard.sun_sub_point
    if sun is not None:
        logger.info(f"[report] Sun sub-point: lon={sun.longitude:.2f}, lat={sun.latitude:.2f}")
    if frame is not None and frame.shaded:
        logger.info(f"[report] Globe frame: {frame.daylit_fraction:.0%} of vertices in daylight")

    stats = dashboard.cache.get_stats()
    logger.info(
        f"[report] Cache: {stats['tier']}, {stats['network_fetches']} fetches, "
        f"{stats['hit_rate']}% hits, {stats['failures']} failures"
    )


async def main() -> int:
    """Scheduler entry point."""
    load_dotenv()
    settings = Settings.from_env()
    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info("Twin Sun dashboard starting")
    logger.info(f"Locations: {', '.join(loc.name for loc in settings.locations)}")
    logger.info("=" * 60)

    try:
        return await run(settings)
    except asyncio.CancelledError:
        logger.info("Twin Sun dashboard stopped")
        return 0


if __name__ == "__main__":
    try:
        exit_code = asyncio.run(main())
    except KeyboardInterrupt:
        exit_code = 0
    sys.exit(exit_code)
