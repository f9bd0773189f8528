"""
Month calendar aggregation.

Computes a reduced CalendarDayData for every day of a month: sunrise, sunset,
civil dawn/dusk, moonrise, moonset and the moon illumination sampled at local
noon. The daily snapshot samples illumination at local midnight; the two are
kept deliberately different.
"""

import calendar
import logging
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional

from astrophoto.constants import CALENDAR_SAMPLE_OFFSET_HOURS, PHASE_LOOKBACK_DAYS
from astrophoto.daily import ONE_DAY, format_local_time, start_of_local_day
from astrophoto.events import EventSource, first_event_time
from astrophoto.logging_config import log_timing
from astrophoto.models import CalendarDayData, EventKind, LUNAR_HORIZON_KINDS, Location
from astrophoto.phase import PhaseResolver, resolve_from_events

logger = logging.getLogger("astrophoto.calendar")

__all__ = ["CalendarAggregator", "days_in_month", "month_add", "CALENDAR_SOLAR_KINDS"]

CALENDAR_SOLAR_KINDS = frozenset({
    EventKind.SUNRISE,
    EventKind.SUNSET,
    EventKind.CIVIL_DAWN,
    EventKind.CIVIL_DUSK,
})


def days_in_month(year: int, month: int) -> int:
    """Gregorian month length, 29 for February of a leap year."""
    return calendar.monthrange(year, month)[1]


def month_add(year: int, month: int, delta: int) -> tuple[int, int]:
    """Shift (year, month) by ``delta`` months, rolling over years."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


class CalendarAggregator:
    """Build the day-keyed table for one month.

    Args:
        source: Event source (ephemeris adapter)
        resolver: Phase resolver used for the month's phase events
        tz: Local zone for day boundaries and formatting
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

    def compute_month(
        self, year: int, month: int, location: Location, token=None
    ) -> dict[int, CalendarDayData]:
        """Compute every day of ``year``-``month``.

        Cancellation is checked once per day; a cancelled run raises
        ComputationCancelled and its partial table is dropped.

        Returns:
            Mapping with keys exactly ``1..days_in_month(year, month)``
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month out of range: {month}")
        n_days = days_in_month(year, month)

        with log_timing(logger, f"month {year}-{month:02d}"):
            phase_events = self._month_phase_events(year, month, n_days, location)

            result: dict[int, CalendarDayData] = {}
            for day in range(1, n_days + 1):
                if token is not None:
                    token.raise_if_cancelled()
                start = start_of_local_day(date(year, month, day), self.tz)
                result[day] = self._compute_day(start, location, phase_events)

        if token is not None:
            token.raise_if_cancelled()
        return result

    def _month_phase_events(self, year: int, month: int, n_days: int, location: Location):
        """Phase events covering every day's noon ±15 day window in one fetch."""
        first_noon = self._sample_instant(start_of_local_day(date(year, month, 1), self.tz))
        last_noon = self._sample_instant(start_of_local_day(date(year, month, n_days), self.tz))
        start = first_noon - timedelta(days=PHASE_LOOKBACK_DAYS)
        end = last_noon + timedelta(days=PHASE_LOOKBACK_DAYS)
        return self.resolver.fetch_phase_events(start, end - start, location)

    def _sample_instant(self, start: datetime) -> datetime:
        return start + timedelta(hours=CALENDAR_SAMPLE_OFFSET_HOURS)

    def _compute_day(self, start: datetime, location: Location, phase_events) -> CalendarDayData:
        solar = self.source.solar_events(
            start, location.latitude, location.longitude, ONE_DAY, kinds=CALENDAR_SOLAR_KINDS
        )
        lunar = self.source.lunar_events(
            start, location.latitude, location.longitude, ONE_DAY, kinds=LUNAR_HORIZON_KINDS
        )
        phase = resolve_from_events(self._sample_instant(start), phase_events)

        def fmt(events, kind: EventKind) -> str:
            return format_local_time(first_event_time(events, kind), self.tz)

        return CalendarDayData(
            sunrise=fmt(solar, EventKind.SUNRISE),
            sunset=fmt(solar, EventKind.SUNSET),
            civil_dawn=fmt(solar, EventKind.CIVIL_DAWN),
            civil_dusk=fmt(solar, EventKind.CIVIL_DUSK),
            moonrise=fmt(lunar, EventKind.MOONRISE),
            moonset=fmt(lunar, EventKind.MOONSET),
            moon_illumination=phase.illumination_percent,
        )
