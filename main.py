"""
Twin Sun: Two-Location Day/Night Dashboard

Shows local time, next sunrise/sunset, current weather and precipitation
chance for two places, next to a day/night shaded globe whose terminator
follows the sun sub-point.

Locations: Tambopata, Peru + Dresden, Germany
Weather:   Open-Meteo, cached 15 minutes, one shared fetch at a time
Refresh:   sun events every minute, weather every hour (wall-clock aligned)
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone

from colorama import init, Fore, Style
from dotenv import load_dotenv

from twin_sun.clock import countdown_parts, format_countdown, local_time, utc_offset_difference_hours
from twin_sun.config import Settings
from twin_sun.scheduler import configure_logging, run
from twin_sun.solar_position import compute_sun_sub_point, utc_label

init()

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Twin Sun - two-location time, weather and day/night dashboard'
    )
    parser.add_argument('--once', action='store_true',
                        help='Refresh everything once, print the panels and exit')
    parser.add_argument('--no-globe', action='store_true',
                        help='Skip texture loading and globe rendering')
    return parser.parse_args(argv)


def print_banner(settings: Settings):
    """Print the system banner with the clock line."""
    now = datetime.now(timezone.utc)
    first, second = settings.locations[0], settings.locations[1]
    sun = compute_sun_sub_point(now)
    diff = utc_offset_difference_hours(now, second.zone, first.zone)

    print(f"\n{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}   TWIN SUN: {first.label.upper()} <-> {second.label.upper()}{Style.RESET_ALL}")
    print(f"{Fore.CYAN}{'=' * 60}{Style.RESET_ALL}")
    print(f"{Fore.WHITE}   [TIME] {first.name} {local_time(now, first.zone)} | "
          f"{second.name} {local_time(now, second.zone)} | {diff:+g}h difference{Style.RESET_ALL}")
    print(f"{Fore.WHITE}   [SUN]  {utc_label(now)} | sub-point lon {sun.longitude:.2f}, "
          f"lat {sun.latitude:.2f}{Style.RESET_ALL}")
    if settings.target_date is not None:
        parts = countdown_parts(now, settings.target_date)
        print(f"{Fore.YELLOW}   [HOME] Back home in {format_countdown(parts)}{Style.RESET_ALL}")
    print()


def main(argv=None) -> int:
    args = parse_args(argv)
    load_dotenv()

    try:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        print_banner(settings)
        return asyncio.run(run(settings, once=args.once, render_globe=not args.no_globe))
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}Stopped.{Style.RESET_ALL}")
        return 0
    except Exception as e:
        logger.error(f"FAILED: {e}", exc_info=True)
        print(f"\n{Fore.RED}ERROR: {e}{Style.RESET_ALL}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
