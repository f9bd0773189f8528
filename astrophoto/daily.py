"""
Daily astro snapshot.

Turns one local day's solar and lunar event sequences into a DailySnapshot:
formatted event times, day and night length, and the moon phase.

The day starts at local midnight (wall clock of the configured zone, or of
the host when none is configured) and spans exactly one day from there.
"""

import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Optional, Sequence

from astrophoto.constants import (
    MINUTES_PER_DAY,
    TIME_FORMAT,
    UNKNOWN_DURATION,
    UNKNOWN_TIME,
)
from astrophoto.events import EventSource, first_event_time
from astrophoto.models import (
    LUNAR_HORIZON_KINDS,
    SOLAR_KINDS,
    AstroEvent,
    DailySnapshot,
    EventKind,
    Location,
)
from astrophoto.phase import PhaseResolver

logger = logging.getLogger("astrophoto.daily")

__all__ = [
    "DailyAstroCalculator",
    "start_of_local_day",
    "format_local_time",
    "format_duration",
    "day_length_minutes",
]

ONE_DAY = timedelta(days=1)


def start_of_local_day(day: date, tz: Optional[tzinfo] = None) -> datetime:
    """UTC instant of local midnight starting ``day``.

    In UTC, so ``+ ONE_DAY`` is 24 elapsed hours on DST change days too.

    Args:
        day: Calendar date
        tz: Zone of the wall clock; None uses the host's local zone
    """
    midnight = datetime(day.year, day.month, day.day)
    local = midnight.astimezone() if tz is None else midnight.replace(tzinfo=tz)
    return local.astimezone(timezone.utc)


def format_local_time(when: Optional[datetime], tz: Optional[tzinfo] = None) -> str:
    """``HH:MM`` in the local zone, or ``"--:--"`` when the event is missing."""
    if when is None:
        return UNKNOWN_TIME
    return when.astimezone(tz).strftime(TIME_FORMAT)


def format_duration(minutes: Optional[int]) -> str:
    """``"{h}h {m}m"``, or ``"--"`` when undefined."""
    if minutes is None:
        return UNKNOWN_DURATION
    return f"{minutes // 60}h {minutes % 60}m"


def day_length_minutes(sunrise: Optional[datetime], sunset: Optional[datetime]) -> Optional[int]:
    """Whole minutes from sunrise to sunset, None unless sunset follows sunrise."""
    if sunrise is None or sunset is None or sunset <= sunrise:
        return None
    return int((sunset - sunrise).total_seconds() // 60)


class DailyAstroCalculator:
    """Compute the DailySnapshot for a date and location.

    Args:
        source: Event source (ephemeris adapter)
        resolver: Phase resolver; built on ``source`` when omitted
        tz: Local zone for the day boundary and formatting
    """

    def __init__(
        self,
        source: EventSource,
        resolver: Optional[PhaseResolver] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.source = source
        self.resolver = resolver or PhaseResolver(source)
        self.tz = tz

    def calculate(self, day: date, location: Location, token=None) -> DailySnapshot:
        """Build the snapshot for ``day`` at ``location``.

        Event source errors propagate unchanged. When ``token`` is cancelled
        the computation stops at the next checkpoint with
        ComputationCancelled.
        """
        start = start_of_local_day(day, self.tz)
        logger.debug(f"Daily snapshot for {day} at {location.label or location} from {start.isoformat()}")

        solar = self.source.solar_events(
            start, location.latitude, location.longitude, ONE_DAY, kinds=SOLAR_KINDS
        )
        _checkpoint(token)

        lunar = self.source.lunar_events(
            start, location.latitude, location.longitude, ONE_DAY, kinds=LUNAR_HORIZON_KINDS
        )
        _checkpoint(token)

        phase = self.resolver.resolve(start, location, token=token)
        _checkpoint(token)

        return self.build_snapshot(day, location, solar, lunar, phase.label, phase.illumination_percent)

    def build_snapshot(
        self,
        day: date,
        location: Location,
        solar: Sequence[AstroEvent],
        lunar: Sequence[AstroEvent],
        moon_phase: str,
        illumination_percent: int,
    ) -> DailySnapshot:
        """Format raw event sequences into a DailySnapshot."""

        def fmt(kind: EventKind) -> str:
            events = lunar if kind in LUNAR_HORIZON_KINDS else solar
            return format_local_time(first_event_time(events, kind), self.tz)

        minutes = day_length_minutes(
            first_event_time(solar, EventKind.SUNRISE),
            first_event_time(solar, EventKind.SUNSET),
        )
        night_minutes = None if minutes is None else MINUTES_PER_DAY - minutes

        times = {kind.value: fmt(kind) for kind in SOLAR_KINDS | LUNAR_HORIZON_KINDS}
        return DailySnapshot(
            location=location,
            day=day,
            moon_phase=moon_phase,
            illumination_percent=max(0, min(100, illumination_percent)),
            day_length_minutes=minutes,
            day_length=format_duration(minutes),
            night_length=format_duration(night_minutes),
            **times,
        )


def _checkpoint(token) -> None:
    if token is not None:
        token.raise_if_cancelled()
