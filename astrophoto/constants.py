"""
AstroPhoto Shared Constants

Centralizes the astronomical constants and default values used across the
astrophoto core.

Constants are organized by category:
    - Version and identity
    - Time units
    - Lunar phase model
    - Sidereal time and Polaris
    - Solar altitude thresholds
    - Formatting sentinels
    - External data sources
"""

from typing import Final

# =============================================================================
# Version and Identity
# =============================================================================

ASTROPHOTO_VERSION: Final[str] = "0.3.0"

# =============================================================================
# Time Units
# =============================================================================

MS_PER_DAY: Final[int] = 86_400_000
MINUTES_PER_DAY: Final[int] = 1440
SECONDS_PER_DAY: Final[float] = 86400.0

# =============================================================================
# Lunar Phase Model
# =============================================================================

# Phase resolver window: 15 days back, 30 days total
PHASE_LOOKBACK_DAYS: Final[int] = 15
PHASE_WINDOW_DAYS: Final[int] = 30

SYNODIC_MONTH_DAYS: Final[float] = 29.53

# Fixed-epoch illumination model
REFERENCE_NEW_MOON_MS: Final[int] = 1_738_154_100_000  # 2025-01-29 12:35 UTC
SYNODIC_MONTH_MS: Final[float] = 2_551_442_976.0

# Calendar illumination is sampled at local noon
CALENDAR_SAMPLE_OFFSET_HOURS: Final[int] = 12

# =============================================================================
# Sidereal Time and Polaris
# =============================================================================

UNIX_EPOCH_JD: Final[float] = 2440587.5
J2000_JD: Final[float] = 2451545.0
DAYS_PER_JULIAN_CENTURY: Final[float] = 36525.0

GMST_AT_J2000_DEG: Final[float] = 280.46061837
GMST_RATE_DEG_PER_DAY: Final[float] = 360.98564736629
GMST_T2_COEFF: Final[float] = 0.000387933
GMST_T3_DIVISOR: Final[float] = 38710000.0

J2000_EPOCH_MS: Final[int] = 946_728_000_000  # 2000-01-01T12:00:00 UTC
JULIAN_YEAR_MS: Final[float] = 31_557_600_000.0
SIDEREAL_DAY_MS: Final[int] = 86_164_090

# Linear drift of Polaris RA from its J2000 value
POLARIS_RA_J2000_DEG: Final[float] = 37.946
POLARIS_RA_DRIFT_DEG_PER_YEAR: Final[float] = 0.3337

# =============================================================================
# Solar Altitude Thresholds (degrees)
# =============================================================================

SUN_ALTITUDE_HORIZON_DEG: Final[float] = -0.8333  # refraction + semidiameter
SUN_ALTITUDE_CIVIL_DEG: Final[float] = -6.0
SUN_ALTITUDE_NAUTICAL_DEG: Final[float] = -12.0
SUN_ALTITUDE_ASTRONOMICAL_DEG: Final[float] = -18.0

# Golden hour spans -4 to +6 degrees, blue hour -6 to -4 degrees
SUN_ALTITUDE_GOLDEN_HIGH_DEG: Final[float] = 6.0
SUN_ALTITUDE_BLUE_GOLDEN_DEG: Final[float] = -4.0

# =============================================================================
# Formatting Sentinels
# =============================================================================

TIME_FORMAT: Final[str] = "%H:%M"
UNKNOWN_TIME: Final[str] = "--:--"
UNKNOWN_DURATION: Final[str] = "--"
UNKNOWN_PHASE: Final[str] = "Unknown"

# =============================================================================
# External Data Sources
# =============================================================================

NOAA_KP_INDEX_URL: Final[str] = (
    "https://services.swpc.noaa.gov/products/noaa-planetary-k-index.json"
)
NOAA_SOLAR_REGIONS_URL: Final[str] = "https://services.swpc.noaa.gov/json/solar_regions.json"
NOMINATIM_SEARCH_URL: Final[str] = "https://nominatim.openstreetmap.org/search"
HTTP_USER_AGENT: Final[str] = f"AstroPhoto/{ASTROPHOTO_VERSION}"
DEFAULT_HTTP_TIMEOUT_SEC: Final[float] = 10.0
GEOCODING_RESULT_LIMIT: Final[int] = 5

# =============================================================================
# Default Location
# =============================================================================

DEFAULT_LATITUDE: Final[float] = 50.0755
DEFAULT_LONGITUDE: Final[float] = 14.4378
DEFAULT_LOCATION_LABEL: Final[str] = "Prague, CZ"
