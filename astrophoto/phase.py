"""
Moon phase label and illumination.

Two illumination models live here:

- PhaseResolver: looks at the cardinal phase events (new, first quarter,
  full, last quarter) in a 30-day window around the instant and applies a
  cosine model from the most recent New Moon.
- moon_illumination_pct: the same cosine model anchored to a fixed reference
  New Moon, needing no event source at all.

Both assume a constant synodic month, which drifts by hours over long spans.
That is accurate enough for an at-a-glance percentage.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, Optional, Sequence

from astrophoto.constants import (
    PHASE_LOOKBACK_DAYS,
    PHASE_WINDOW_DAYS,
    REFERENCE_NEW_MOON_MS,
    SECONDS_PER_DAY,
    SYNODIC_MONTH_DAYS,
    SYNODIC_MONTH_MS,
)
from astrophoto.events import EventSource
from astrophoto.models import (
    LUNAR_PHASE_KINDS,
    AstroEvent,
    EventKind,
    Location,
    MoonPhase,
    PhaseInfo,
)

logger = logging.getLogger("astrophoto.phase")

__all__ = [
    "PhaseResolver",
    "phase_label",
    "illumination_from_new_moon",
    "resolve_from_events",
    "phase_window",
    "moon_illumination_pct",
]

# Exact label when a cardinal phase happens during the day itself
_EXACT_PHASE = {
    EventKind.NEW_MOON: MoonPhase.NEW_MOON,
    EventKind.FIRST_QUARTER: MoonPhase.FIRST_QUARTER,
    EventKind.FULL_MOON: MoonPhase.FULL_MOON,
    EventKind.LAST_QUARTER: MoonPhase.LAST_QUARTER,
}

# Phase following the most recent cardinal event
_AFTER_PHASE = {
    EventKind.NEW_MOON: MoonPhase.WAXING_CRESCENT,
    EventKind.FIRST_QUARTER: MoonPhase.WAXING_GIBBOUS,
    EventKind.FULL_MOON: MoonPhase.WANING_GIBBOUS,
    EventKind.LAST_QUARTER: MoonPhase.WANING_CRESCENT,
}

# Phase preceding the next cardinal event
_BEFORE_PHASE = {
    EventKind.NEW_MOON: MoonPhase.WANING_CRESCENT,
    EventKind.FIRST_QUARTER: MoonPhase.WAXING_CRESCENT,
    EventKind.FULL_MOON: MoonPhase.WAXING_GIBBOUS,
    EventKind.LAST_QUARTER: MoonPhase.WANING_GIBBOUS,
}


def _clamp_percent(value: float) -> int:
    return max(0, min(100, int(round(value))))


def _cosine_illumination(days_since_new: float, period_days: float) -> float:
    angle = days_since_new / period_days * 2 * math.pi
    return (1 - math.cos(angle)) / 2 * 100


def phase_window(instant: datetime) -> tuple[datetime, timedelta]:
    """Start and length of the phase-event window around ``instant``."""
    return instant - timedelta(days=PHASE_LOOKBACK_DAYS), timedelta(days=PHASE_WINDOW_DAYS)


def phase_label(
    instant: datetime,
    phase_events: Sequence[AstroEvent],
    day_length: timedelta = timedelta(days=1),
) -> Optional[MoonPhase]:
    """Qualitative phase at ``instant``.

    A cardinal phase inside ``[instant, instant + day_length)`` names the day
    exactly. Otherwise the label follows from the latest phase at or before
    the instant, or failing that from the earliest phase after it. Returns
    None when the window holds no phase events at all.
    """
    day_end = instant + day_length
    for event in phase_events:
        if instant <= event.time < day_end:
            return _EXACT_PHASE[event.kind]

    prev_phase = None
    next_phase = None
    for event in phase_events:
        if event.time <= instant:
            prev_phase = event
        elif next_phase is None:
            next_phase = event

    if prev_phase is not None:
        return _AFTER_PHASE[prev_phase.kind]
    if next_phase is not None:
        return _BEFORE_PHASE[next_phase.kind]
    return None


def illumination_from_new_moon(instant: datetime, phase_events: Iterable[AstroEvent]) -> int:
    """Illumination percent from the most recent New Moon at or before ``instant``.

    Returns 0 when the window holds no such New Moon. That is a known gap
    for instants more than about 15 days past any New Moon in the window,
    not a real zero illumination.
    """
    new_moon = None
    for event in phase_events:
        if event.kind is EventKind.NEW_MOON and event.time <= instant:
            new_moon = event
    if new_moon is None:
        logger.debug(f"No New Moon reference before {instant.isoformat()}")
        return 0

    days_from_new = (instant - new_moon.time).total_seconds() / SECONDS_PER_DAY
    return _clamp_percent(_cosine_illumination(days_from_new, SYNODIC_MONTH_DAYS))


def resolve_from_events(instant: datetime, events: Iterable[AstroEvent]) -> PhaseInfo:
    """Phase and illumination at ``instant`` from an arbitrary event list.

    Only cardinal phase events inside the instant's own ±15 day window are
    considered, so a wider pre-fetched window gives the same result as a
    per-instant fetch.
    """
    start, length = phase_window(instant)
    end = start + length
    window = sorted(
        (e for e in events if e.kind in LUNAR_PHASE_KINDS and start <= e.time < end),
        key=lambda e: e.time,
    )
    return PhaseInfo(
        phase=phase_label(instant, window),
        illumination_percent=illumination_from_new_moon(instant, window),
    )


class PhaseResolver:
    """Resolve moon phase and illumination using an event source."""

    def __init__(self, source: EventSource):
        self.source = source

    def fetch_phase_events(
        self, start: datetime, length: timedelta, location: Location
    ) -> list[AstroEvent]:
        events = self.source.lunar_events(
            start,
            location.latitude,
            location.longitude,
            length,
            kinds=LUNAR_PHASE_KINDS,
        )
        return [e for e in events if e.kind in LUNAR_PHASE_KINDS]

    def resolve(self, instant: datetime, location: Location, token=None) -> PhaseInfo:
        """Phase label and illumination at ``instant`` for ``location``.

        Args:
            instant: Usually local midnight of the day being described
            location: Observer location passed through to the event source
            token: Optional CancellationToken checked after the fetch
        """
        start, length = phase_window(instant)
        events = self.fetch_phase_events(start, length, location)
        if token is not None:
            token.raise_if_cancelled()
        return resolve_from_events(instant, events)


def moon_illumination_pct(when: datetime | int) -> int:
    """Illumination percent from a fixed reference New Moon.

    Args:
        when: Aware datetime or epoch milliseconds

    Returns:
        0 at New Moon, 100 half a synodic month later
    """
    if isinstance(when, datetime):
        epoch_ms = round(when.timestamp() * 1000)
    else:
        epoch_ms = when
    age_ms = (epoch_ms - REFERENCE_NEW_MOON_MS) % SYNODIC_MONTH_MS  # floored modulo
    illumination = (1 - math.cos(age_ms / SYNODIC_MONTH_MS * 2 * math.pi)) / 2 * 100
    return _clamp_percent(illumination)

