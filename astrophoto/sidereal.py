"""
Local sidereal time and the Polaris clock.

A polar scope reticle is a 12-hour dial; aligning a mount means placing
Polaris at the dial position for the current hour angle. Everything here is
pure arithmetic on epoch milliseconds, cheap enough to call every second.

Polaris' right ascension is modeled as a linear drift from its J2000 value.
That approximates precession well for a few decades either side of 2000, and
is not a rigorous precession model.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from astrophoto.constants import (
    DAYS_PER_JULIAN_CENTURY,
    GMST_AT_J2000_DEG,
    GMST_RATE_DEG_PER_DAY,
    GMST_T2_COEFF,
    GMST_T3_DIVISOR,
    J2000_EPOCH_MS,
    J2000_JD,
    JULIAN_YEAR_MS,
    MS_PER_DAY,
    POLARIS_RA_DRIFT_DEG_PER_YEAR,
    POLARIS_RA_J2000_DEG,
    UNIX_EPOCH_JD,
)

__all__ = [
    "PolarisReading",
    "normalize_degrees",
    "normalize_clock",
    "julian_date",
    "calculate_lst",
    "polaris_ra_degrees",
    "polaris_hour_angle_hours",
    "polaris_clock_hours",
    "polaris_reading",
    "lst_to_hms",
    "hours_to_hms",
    "clock_to_hms",
    "decimal_to_dms",
    "to_epoch_ms",
    "from_epoch_ms",
]

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def to_epoch_ms(when: datetime) -> int:
    """Epoch milliseconds of an aware datetime."""
    return (when - _UNIX_EPOCH) // timedelta(milliseconds=1)


def from_epoch_ms(epoch_ms: int) -> datetime:
    return _UNIX_EPOCH + timedelta(milliseconds=epoch_ms)


def normalize_degrees(angle: float) -> float:
    """Map any angle into [0, 360) with floored modulo."""
    return angle % 360.0


def normalize_clock(hours: float) -> float:
    """Map any clock reading into [0, 12)."""
    return hours % 12.0


def julian_date(epoch_ms: float) -> float:
    return epoch_ms / MS_PER_DAY + UNIX_EPOCH_JD


def calculate_lst(longitude_deg: float, epoch_ms: float) -> float:
    """Local sidereal time in degrees.

    GMST from the standard polynomial in days and centuries since J2000,
    shifted by the observer's east longitude.

    Args:
        longitude_deg: Observer longitude (positive = East)
        epoch_ms: Instant as Unix epoch milliseconds

    Returns:
        LST in [0, 360)
    """
    jd = julian_date(epoch_ms)
    d = jd - J2000_JD
    t = d / DAYS_PER_JULIAN_CENTURY
    gmst = (
        GMST_AT_J2000_DEG
        + GMST_RATE_DEG_PER_DAY * d
        + GMST_T2_COEFF * t * t
        - t * t * t / GMST_T3_DIVISOR
    )
    return normalize_degrees(gmst + longitude_deg)


def polaris_ra_degrees(epoch_ms: float) -> float:
    years_since_j2000 = (epoch_ms - J2000_EPOCH_MS) / JULIAN_YEAR_MS
    return POLARIS_RA_J2000_DEG + POLARIS_RA_DRIFT_DEG_PER_YEAR * years_since_j2000


def polaris_hour_angle_hours(lst_deg: float, epoch_ms: float) -> float:
    """Hour angle of Polaris in hours, [0, 24)."""
    return normalize_degrees(lst_deg - polaris_ra_degrees(epoch_ms)) / 15.0


def polaris_clock_hours(hour_angle_hours: float) -> float:
    """Reticle dial position for a given hour angle.

    ``clock = (12 - HA/2 + 6) mod 12``: the dial has 12 hours for a full
    24-hour rotation, runs opposite to the hour angle, and puts HA = 0 at
    the 6 o'clock position.
    """
    return normalize_clock(12.0 - hour_angle_hours / 2.0 + 6.0)


@dataclass(frozen=True)
class PolarisReading:
    """Sidereal time, hour angle and reticle position at one instant."""

    lst_degrees: float
    hour_angle_hours: float
    clock_hours: float

    @property
    def lst_hms(self) -> str:
        return lst_to_hms(self.lst_degrees)

    @property
    def hour_angle_hms(self) -> str:
        return hours_to_hms(self.hour_angle_hours)

    @property
    def clock_hms(self) -> str:
        return clock_to_hms(self.clock_hours)


def polaris_reading(longitude_deg: float, when: Optional[datetime | int] = None) -> PolarisReading:
    """Compute the full Polaris reading for a longitude.

    Args:
        longitude_deg: Observer longitude (positive = East)
        when: Aware datetime or epoch milliseconds (default: now)
    """
    if when is None:
        when = datetime.now(timezone.utc)
    epoch_ms = to_epoch_ms(when) if isinstance(when, datetime) else when

    lst = calculate_lst(longitude_deg, epoch_ms)
    ha = polaris_hour_angle_hours(lst, epoch_ms)
    return PolarisReading(
        lst_degrees=lst,
        hour_angle_hours=ha,
        clock_hours=polaris_clock_hours(ha),
    )


# =============================================================================
# Formatting
# =============================================================================


def _split_hms(hours: float) -> tuple[int, int, int]:
    h = int(hours)
    m = int((hours - h) * 60)
    s = int((hours - h) * 3600 - m * 60)
    return h, m, s


def hours_to_hms(hours: float) -> str:
    """Hours as ``HH:MM:SS`` (truncated)."""
    return "%02d:%02d:%02d" % _split_hms(hours)


def lst_to_hms(lst_deg: float) -> str:
    return hours_to_hms(lst_deg / 15.0)


def clock_to_hms(clock_hours: float) -> str:
    """Reticle position as ``H:MM:SS``, e.g. ``4:07:33``."""
    return "%d:%02d:%02d" % _split_hms(clock_hours)


def decimal_to_dms(decimal: float, is_latitude: bool) -> str:
    """Signed decimal degrees as ``DD° MM' SS.SS" H``."""
    if is_latitude:
        direction = "N" if decimal >= 0 else "S"
    else:
        direction = "E" if decimal >= 0 else "W"
    abs_val = abs(decimal)
    deg = int(abs_val)
    min_full = (abs_val - deg) * 60
    minutes = int(min_full)
    sec = (min_full - minutes) * 60
    return f"{deg}° {minutes:02d}' {sec:05.2f}\" {direction}"
