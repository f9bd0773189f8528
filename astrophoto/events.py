"""
Event source contract and helpers for picking events out of a sequence.

An event source wraps an ephemeris and produces the discrete solar and lunar
events for a location over a time window. ``services.ephemeris`` provides the
Skyfield implementation; tests substitute scripted sources.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Protocol, Sequence

from astrophoto.models import AstroEvent, EventKind

__all__ = ["EventSource", "first_event_time"]


class EventSource(Protocol):
    """Protocol every ephemeris adapter implements.

    Both methods return events ordered by time, restricted to
    ``[start, start + window)``. When ``kinds`` is given only those kinds are
    produced. Implementations must be deterministic and side-effect free.
    """

    def solar_events(
        self,
        start: datetime,
        latitude: float,
        longitude: float,
        window: timedelta,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> Sequence[AstroEvent]:
        ...

    def lunar_events(
        self,
        start: datetime,
        latitude: float,
        longitude: float,
        window: timedelta,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> Sequence[AstroEvent]:
        ...


def first_event_time(events: Iterable[AstroEvent], kind: EventKind) -> Optional[datetime]:
    """Time of the first event of ``kind``, or None when absent."""
    for event in events:
        if event.kind is kind:
            return event.time
    return None

