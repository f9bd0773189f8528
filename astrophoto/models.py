"""
AstroPhoto Data Models

Value types shared between the event source, the calculators, the
coordinator and the presentation layer. Everything here is immutable and is
replaced wholesale, never mutated in place.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from astrophoto.constants import UNKNOWN_DURATION, UNKNOWN_PHASE, UNKNOWN_TIME, MINUTES_PER_DAY

__all__ = [
    "Location",
    "EventKind",
    "AstroEvent",
    "DailySnapshot",
    "CalendarDayData",
    "SunspotRegion",
    "LocationResult",
    "MoonPhase",
    "PhaseInfo",
    "SOLAR_KINDS",
    "LUNAR_HORIZON_KINDS",
    "LUNAR_PHASE_KINDS",
]


@dataclass(frozen=True)
class Location:
    """Observer location on Earth."""

    latitude: float   # Degrees, -90 to +90
    longitude: float  # Degrees, -180 to +180 (negative = West)
    label: str = ""

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"Longitude out of range: {self.longitude}")


class EventKind(Enum):
    """Named solar and lunar events produced by the event source."""

    SUNRISE = "sunrise"
    SUNSET = "sunset"
    SOLAR_NOON = "solar_noon"
    CIVIL_DAWN = "civil_dawn"
    NAUTICAL_DAWN = "nautical_dawn"
    ASTRONOMICAL_DAWN = "astronomical_dawn"
    CIVIL_DUSK = "civil_dusk"
    NAUTICAL_DUSK = "nautical_dusk"
    ASTRONOMICAL_DUSK = "astronomical_dusk"
    GOLDEN_HOUR_DAWN_START = "golden_hour_dawn_start"
    GOLDEN_HOUR_DAWN_END = "golden_hour_dawn_end"
    GOLDEN_HOUR_DUSK_START = "golden_hour_dusk_start"
    GOLDEN_HOUR_DUSK_END = "golden_hour_dusk_end"
    BLUE_HOUR_DAWN_START = "blue_hour_dawn_start"
    BLUE_HOUR_DAWN_END = "blue_hour_dawn_end"
    BLUE_HOUR_DUSK_START = "blue_hour_dusk_start"
    BLUE_HOUR_DUSK_END = "blue_hour_dusk_end"
    MOONRISE = "moonrise"
    MOONSET = "moonset"
    NEW_MOON = "new_moon"
    FIRST_QUARTER = "first_quarter"
    FULL_MOON = "full_moon"
    LAST_QUARTER = "last_quarter"


LUNAR_HORIZON_KINDS = frozenset({EventKind.MOONRISE, EventKind.MOONSET})
LUNAR_PHASE_KINDS = frozenset({
    EventKind.NEW_MOON,
    EventKind.FIRST_QUARTER,
    EventKind.FULL_MOON,
    EventKind.LAST_QUARTER,
})
SOLAR_KINDS = frozenset(set(EventKind) - LUNAR_HORIZON_KINDS - LUNAR_PHASE_KINDS)


@dataclass(frozen=True)
class AstroEvent:
    """A discrete named instant."""

    kind: EventKind
    time: datetime  # timezone-aware, UTC


class MoonPhase(Enum):
    """The eight qualitative moon phases."""

    NEW_MOON = "New Moon"
    WAXING_CRESCENT = "Waxing Crescent"
    FIRST_QUARTER = "First Quarter"
    WAXING_GIBBOUS = "Waxing Gibbous"
    FULL_MOON = "Full Moon"
    WANING_GIBBOUS = "Waning Gibbous"
    LAST_QUARTER = "Last Quarter"
    WANING_CRESCENT = "Waning Crescent"


@dataclass(frozen=True)
class PhaseInfo:
    """Phase resolver output."""

    phase: Optional[MoonPhase]
    illumination_percent: int

    @property
    def label(self) -> str:
        return self.phase.value if self.phase else UNKNOWN_PHASE


@dataclass(frozen=True)
class DailySnapshot:
    """Formatted solar and lunar times for one day at one location.

    Times are local ``HH:MM`` strings; events that do not occur that day
    (polar day or night, no moonrise) hold ``"--:--"``.
    """

    location: Optional[Location] = None
    day: Optional[date] = None

    sunrise: str = UNKNOWN_TIME
    sunset: str = UNKNOWN_TIME
    solar_noon: str = UNKNOWN_TIME

    # Photography
    golden_hour_dawn_start: str = UNKNOWN_TIME
    golden_hour_dawn_end: str = UNKNOWN_TIME
    golden_hour_dusk_start: str = UNKNOWN_TIME
    golden_hour_dusk_end: str = UNKNOWN_TIME
    blue_hour_dawn_start: str = UNKNOWN_TIME
    blue_hour_dawn_end: str = UNKNOWN_TIME
    blue_hour_dusk_start: str = UNKNOWN_TIME
    blue_hour_dusk_end: str = UNKNOWN_TIME

    # Twilight
    civil_dawn: str = UNKNOWN_TIME
    nautical_dawn: str = UNKNOWN_TIME
    astronomical_dawn: str = UNKNOWN_TIME
    civil_dusk: str = UNKNOWN_TIME
    nautical_dusk: str = UNKNOWN_TIME
    astronomical_dusk: str = UNKNOWN_TIME

    # Moon
    moonrise: str = UNKNOWN_TIME
    moonset: str = UNKNOWN_TIME
    moon_phase: str = UNKNOWN_PHASE
    illumination_percent: int = 0

    # Day/night length
    day_length_minutes: Optional[int] = None
    day_length: str = UNKNOWN_DURATION
    night_length: str = UNKNOWN_DURATION

    @property
    def illumination(self) -> str:
        return f"{self.illumination_percent}%"

    @property
    def night_length_minutes(self) -> Optional[int]:
        if self.day_length_minutes is None:
            return None
        return MINUTES_PER_DAY - self.day_length_minutes

    def time_of(self, kind: EventKind) -> str:
        """Formatted time for a solar or lunar horizon event kind."""
        if kind in LUNAR_PHASE_KINDS:
            raise KeyError(f"{kind.name} is not a daily time field")
        return getattr(self, kind.value)


@dataclass(frozen=True)
class CalendarDayData:
    """Reduced per-day record shown in the month calendar."""

    sunrise: str = UNKNOWN_TIME
    sunset: str = UNKNOWN_TIME
    civil_dawn: str = UNKNOWN_TIME
    civil_dusk: str = UNKNOWN_TIME
    moonrise: str = UNKNOWN_TIME
    moonset: str = UNKNOWN_TIME
    moon_illumination: int = 0


@dataclass(frozen=True)
class SunspotRegion:
    """Active region from NOAA, heliographic coordinates in degrees."""

    latitude: float
    longitude: float
    area: int  # millionths of a solar hemisphere


@dataclass(frozen=True)
class LocationResult:
    """One geocoding search hit."""

    display_name: str
    short_name: str
    latitude: float
    longitude: float

    def to_location(self) -> Location:
        return Location(self.latitude, self.longitude, self.short_name)
