"""
AstroPhoto - Command Line Entry Point

Loads configuration, starts the coordinator and prints the day's solar and
lunar times, the month calendar and current space weather.

Usage:
    astrophoto                       # today at the configured location
    astrophoto --date 2024-06-21 --latitude 50.0755 --longitude 14.4378
    astrophoto --month 2024-02 -c ~/.astrophoto/config.yaml
    astrophoto --watch               # keep running until SIGINT/SIGTERM
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import date, datetime
from typing import Dict, Optional

from astrophoto.config import load_config
from astrophoto.constants import ASTROPHOTO_VERSION
from astrophoto.coordinator import AstroCoordinator, create_coordinator
from astrophoto.exceptions import ConfigurationError
from astrophoto.logging_config import LOG_LEVELS, setup_logging
from astrophoto.models import CalendarDayData, DailySnapshot
from astrophoto.preferences import JsonPreferenceStore, MemoryPreferenceStore
from services.space_weather import kp_activity_label

logger = logging.getLogger("astrophoto.main")


# =============================================================================
# ARGUMENTS
# =============================================================================


def _parse_day(value: str) -> date:
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}")


def _parse_month(value: str) -> tuple[int, int]:
    try:
        parsed = datetime.strptime(value, "%Y-%m")
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM, got {value!r}")
    return parsed.year, parsed.month


def create_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="astrophoto",
        description="Sun, moon and sky times for astrophotography planning",
    )
    parser.add_argument("-c", "--config", default=None, help="Path to YAML configuration file")
    parser.add_argument(
        "--log-level",
        default=None,
        choices=sorted(LOG_LEVELS),
        help="Override the configured log level",
    )
    parser.add_argument("--date", type=_parse_day, default=None, help="Day to compute (YYYY-MM-DD)")
    parser.add_argument("--month", type=_parse_month, default=None, help="Calendar month (YYYY-MM)")
    parser.add_argument("--latitude", type=float, default=None, help="Observer latitude in degrees")
    parser.add_argument("--longitude", type=float, default=None, help="Observer longitude in degrees")
    parser.add_argument("--name", default="Custom location", help="Label for --latitude/--longitude")
    parser.add_argument(
        "--prefs",
        default=None,
        help="Preferences JSON file (location and night mode are not persisted without it)",
    )
    parser.add_argument("--watch", action="store_true", help="Keep running until interrupted")
    parser.add_argument("--version", action="version", version=f"%(prog)s {ASTROPHOTO_VERSION}")
    return parser


# =============================================================================
# SHUTDOWN HANDLING
# =============================================================================


class GracefulShutdown:
    """Turns SIGINT/SIGTERM into an asyncio event."""

    def __init__(self):
        self.shutdown_requested = False
        self._event: Optional[asyncio.Event] = None
        self._previous: Dict[int, object] = {}

    def get_shutdown_event(self) -> asyncio.Event:
        if self._event is None:
            self._event = asyncio.Event()
            if self.shutdown_requested:
                self._event.set()
        return self._event

    def _handle_signal(self, signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        self.shutdown_requested = True
        if self._event is not None:
            self._event.set()

    def install_handlers(self):
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous[sig] = signal.signal(sig, self._handle_signal)

    def restore_handlers(self):
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()


# =============================================================================
# OUTPUT
# =============================================================================


def format_snapshot(snapshot: DailySnapshot) -> str:
    """Human readable block for one day's snapshot."""
    location = snapshot.location.label if snapshot.location else "?"
    lines = [
        f"{location} - {snapshot.day}",
        f"  Sunrise {snapshot.sunrise}   Solar noon {snapshot.solar_noon}   Sunset {snapshot.sunset}",
        f"  Golden hour  {snapshot.golden_hour_dawn_start}-{snapshot.golden_hour_dawn_end}"
        f"   {snapshot.golden_hour_dusk_start}-{snapshot.golden_hour_dusk_end}",
        f"  Blue hour    {snapshot.blue_hour_dawn_start}-{snapshot.blue_hour_dawn_end}"
        f"   {snapshot.blue_hour_dusk_start}-{snapshot.blue_hour_dusk_end}",
        f"  Dawn  astro {snapshot.astronomical_dawn}  nautical {snapshot.nautical_dawn}"
        f"  civil {snapshot.civil_dawn}",
        f"  Dusk  civil {snapshot.civil_dusk}  nautical {snapshot.nautical_dusk}"
        f"  astro {snapshot.astronomical_dusk}",
        f"  Moonrise {snapshot.moonrise}   Moonset {snapshot.moonset}"
        f"   {snapshot.moon_phase} ({snapshot.illumination})",
        f"  Day {snapshot.day_length}   Night {snapshot.night_length}",
    ]
    return "\n".join(lines)


def format_calendar(year: int, month: int, table: Dict[int, CalendarDayData]) -> str:
    lines = [f"{year}-{month:02d}", "  Day  Civil  Rise   Set    Civil  Moon+  Moon-  Illum"]
    for day in sorted(table):
        d = table[day]
        lines.append(
            f"  {day:>3}  {d.civil_dawn}  {d.sunrise}  {d.sunset}  {d.civil_dusk}"
            f"  {d.moonrise}  {d.moonset}  {d.moon_illumination:>4}%"
        )
    return "\n".join(lines)


def print_report(coordinator: AstroCoordinator, show_calendar: bool) -> None:
    print(format_snapshot(coordinator.snapshot))

    reading = coordinator.polaris_reading()
    print(f"  LST {reading.lst_hms}   Polaris HA {reading.hour_angle_hms}   Reticle {reading.clock_hms}")

    kp = coordinator.kp_index
    if kp is not None:
        print(f"  Kp {kp:.2f} ({kp_activity_label(kp)})   Sunspot regions {len(coordinator.sunspots)}")

    if show_calendar:
        print()
        print(format_calendar(coordinator.calendar_year, coordinator.calendar_month, coordinator.calendar_data))


# =============================================================================
# MAIN
# =============================================================================


async def async_main(args: argparse.Namespace, shutdown: Optional[GracefulShutdown] = None) -> int:
    """Run the coordinator once (or until shutdown with ``--watch``).

    Returns:
        Process exit code
    """
    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(args.log_level or config.log_level, config.log_file)
    logger.info(f"AstroPhoto {ASTROPHOTO_VERSION}")

    preferences = JsonPreferenceStore(args.prefs) if args.prefs else MemoryPreferenceStore()
    coordinator = create_coordinator(config, preferences)

    try:
        await coordinator.start()
        if args.latitude is not None or args.longitude is not None:
            if args.latitude is None or args.longitude is None:
                print("--latitude and --longitude must be given together", file=sys.stderr)
                return 2
            try:
                coordinator.update_location(args.latitude, args.longitude, args.name)
            except ValueError as e:
                print(f"Invalid location: {e}", file=sys.stderr)
                return 2
        if args.date is not None:
            coordinator.calculate_astro_data(args.date)
        if args.month is not None:
            coordinator.compute_calendar(*args.month)

        await coordinator.wait_idle()
        print_report(coordinator, show_calendar=args.month is not None)

        if args.watch:
            shutdown = shutdown or GracefulShutdown()
            logger.info("Watching; press Ctrl+C to stop")
            await shutdown.get_shutdown_event().wait()
    finally:
        await coordinator.shutdown()

    return 0


def main(argv=None) -> int:
    args = create_parser().parse_args(argv)
    shutdown = GracefulShutdown()
    shutdown.install_handlers()
    try:
        return asyncio.run(async_main(args, shutdown))
    finally:
        shutdown.restore_handlers()


if __name__ == "__main__":
    sys.exit(main())
