"""
AstroPhoto Ephemeris Service
Skyfield-based Solar and Lunar Event Source

This module finds the discrete events the astrophoto core works with:
- Sunrise, sunset and solar noon
- Civil, nautical and astronomical twilight
- Golden hour (sun between -4° and +6°) and blue hour (-6° to -4°)
- Moonrise and moonset
- The four cardinal moon phases

Uses the Skyfield library with JPL DE440s ephemeris data. Each event is
found with ``almanac.find_discrete`` over a step function that flips when
the sun crosses a threshold altitude or the moon changes phase quadrant.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from skyfield import almanac
from skyfield.api import Loader, wgs84

from astrophoto.constants import (
    SUN_ALTITUDE_ASTRONOMICAL_DEG,
    SUN_ALTITUDE_BLUE_GOLDEN_DEG,
    SUN_ALTITUDE_CIVIL_DEG,
    SUN_ALTITUDE_GOLDEN_HIGH_DEG,
    SUN_ALTITUDE_HORIZON_DEG,
    SUN_ALTITUDE_NAUTICAL_DEG,
)
from astrophoto.exceptions import EphemerisError
from astrophoto.models import (
    LUNAR_HORIZON_KINDS,
    LUNAR_PHASE_KINDS,
    SOLAR_KINDS,
    AstroEvent,
    EventKind,
)

logger = logging.getLogger("astrophoto.services.ephemeris")

K = EventKind

# (altitude threshold, kinds when the sun climbs through it, kinds when it sinks)
SOLAR_THRESHOLDS: Tuple[Tuple[float, Tuple[EventKind, ...], Tuple[EventKind, ...]], ...] = (
    (SUN_ALTITUDE_ASTRONOMICAL_DEG, (K.ASTRONOMICAL_DAWN,), (K.ASTRONOMICAL_DUSK,)),
    (SUN_ALTITUDE_NAUTICAL_DEG, (K.NAUTICAL_DAWN,), (K.NAUTICAL_DUSK,)),
    (
        SUN_ALTITUDE_CIVIL_DEG,
        (K.CIVIL_DAWN, K.BLUE_HOUR_DAWN_START),
        (K.CIVIL_DUSK, K.BLUE_HOUR_DUSK_END),
    ),
    (
        SUN_ALTITUDE_BLUE_GOLDEN_DEG,
        (K.BLUE_HOUR_DAWN_END, K.GOLDEN_HOUR_DAWN_START),
        (K.BLUE_HOUR_DUSK_START, K.GOLDEN_HOUR_DUSK_END),
    ),
    (SUN_ALTITUDE_HORIZON_DEG, (K.SUNRISE,), (K.SUNSET,)),
    (SUN_ALTITUDE_GOLDEN_HIGH_DEG, (K.GOLDEN_HOUR_DAWN_END,), (K.GOLDEN_HOUR_DUSK_START,)),
)

# almanac.moon_phases() codes 0..3
MOON_PHASE_KINDS = (K.NEW_MOON, K.FIRST_QUARTER, K.FULL_MOON, K.LAST_QUARTER)

# Search step for altitude crossings, about one hour
ALTITUDE_STEP_DAYS = 0.04


class SkyfieldEventSource:
    """
    Skyfield-backed event source for the astrophoto core.

    Implements the ``EventSource`` protocol. Ephemeris data is loaded lazily
    on first use and cached under ``data_dir``.
    """

    def __init__(self, ephemeris_file: str = "de440s.bsp", data_dir: Optional[str | Path] = None):
        """
        Initialize the event source.

        Args:
            ephemeris_file: JPL kernel name (downloaded on first use)
            data_dir: Skyfield cache directory (defaults to ./skyfield-data)
        """
        self.ephemeris_file = ephemeris_file
        self.data_dir = Path(data_dir).expanduser() if data_dir else Path("skyfield-data")
        self._ts = None
        self._eph = None
        self._earth = None
        self._sun = None
        self._moon = None
        self._init_lock = threading.Lock()
        self._initialized = False

    def initialize(self):
        """Load timescale and ephemeris data (can be slow on first run)."""
        with self._init_lock:
            if self._initialized:
                return
            try:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                loader = Loader(str(self.data_dir))
                self._ts = loader.timescale()
                self._eph = loader(self.ephemeris_file)
            except (OSError, ValueError) as e:
                raise EphemerisError(f"Cannot load ephemeris {self.ephemeris_file}: {e}") from e

            self._earth = self._eph["earth"]
            self._sun = self._eph["sun"]
            self._moon = self._eph["moon"]
            self._initialized = True
            logger.info(f"Ephemeris loaded: {self.ephemeris_file} from {self.data_dir}")

    def _ensure_initialized(self):
        if not self._initialized:
            self.initialize()

    def _time_range(self, start: datetime, window: timedelta):
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        return self._ts.from_datetime(start), self._ts.from_datetime(start + window)

    def _sun_above(self, topos, threshold_deg: float):
        """Step function: True while the sun is above ``threshold_deg``."""
        observer = self._earth + topos
        sun = self._sun

        def is_sun_above(t):
            alt, _, _ = observer.at(t).observe(sun).apparent().altaz()
            return alt.degrees > threshold_deg

        is_sun_above.step_days = ALTITUDE_STEP_DAYS
        return is_sun_above

    @staticmethod
    def _utc(t) -> datetime:
        return t.utc_datetime().astimezone(timezone.utc)

    # =========================================================================
    # EVENT SOURCE PROTOCOL
    # =========================================================================

    def solar_events(
        self,
        start: datetime,
        latitude: float,
        longitude: float,
        window: timedelta,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> List[AstroEvent]:
        """
        Find solar events in ``[start, start + window)``.

        Args:
            start: Aware start instant
            latitude: Observer latitude in degrees
            longitude: Observer longitude in degrees (negative = West)
            window: Search length
            kinds: Solar kinds to produce (default: all)

        Returns:
            Events ordered by time
        """
        self._ensure_initialized()
        wanted = set(kinds) & SOLAR_KINDS if kinds is not None else set(SOLAR_KINDS)
        t0, t1 = self._time_range(start, window)
        topos = wgs84.latlon(latitude, longitude)
        events: List[AstroEvent] = []

        for threshold, rising, setting in SOLAR_THRESHOLDS:
            if not wanted.intersection(rising + setting):
                continue
            times, above = almanac.find_discrete(t0, t1, self._sun_above(topos, threshold))
            for t, is_above in zip(times, above):
                for kind in (rising if is_above else setting):
                    if kind in wanted:
                        events.append(AstroEvent(kind, self._utc(t)))

        if K.SOLAR_NOON in wanted:
            transits = almanac.meridian_transits(self._eph, self._sun, topos)
            times, codes = almanac.find_discrete(t0, t1, transits)
            for t, code in zip(times, codes):
                if code == 1:
                    events.append(AstroEvent(K.SOLAR_NOON, self._utc(t)))

        events.sort(key=lambda e: e.time)
        return events

    def lunar_events(
        self,
        start: datetime,
        latitude: float,
        longitude: float,
        window: timedelta,
        kinds: Optional[Iterable[EventKind]] = None,
    ) -> List[AstroEvent]:
        """
        Find moonrise/moonset and cardinal phase events in ``[start, start + window)``.

        Phase events do not depend on the observer; latitude and longitude
        only matter for moonrise and moonset.
        """
        self._ensure_initialized()
        lunar_kinds = LUNAR_HORIZON_KINDS | LUNAR_PHASE_KINDS
        wanted = set(kinds) & lunar_kinds if kinds is not None else set(lunar_kinds)
        t0, t1 = self._time_range(start, window)
        events: List[AstroEvent] = []

        if wanted & LUNAR_HORIZON_KINDS:
            topos = wgs84.latlon(latitude, longitude)
            f = almanac.risings_and_settings(self._eph, self._moon, topos)
            times, rises = almanac.find_discrete(t0, t1, f)
            for t, is_rise in zip(times, rises):
                kind = K.MOONRISE if is_rise else K.MOONSET
                if kind in wanted:
                    events.append(AstroEvent(kind, self._utc(t)))

        if wanted & LUNAR_PHASE_KINDS:
            times, phases = almanac.find_discrete(t0, t1, almanac.moon_phases(self._eph))
            for t, code in zip(times, phases):
                kind = MOON_PHASE_KINDS[int(code)]
                if kind in wanted:
                    events.append(AstroEvent(kind, self._utc(t)))

        events.sort(key=lambda e: e.time)
        return events


# =============================================================================
# MAIN (for manual checks)
# =============================================================================

if __name__ == "__main__":
    from astrophoto.constants import DEFAULT_LATITUDE, DEFAULT_LONGITUDE, DEFAULT_LOCATION_LABEL

    print("AstroPhoto Ephemeris Service Test\n")
    source = SkyfieldEventSource()
    print("Initializing (may download ephemeris data)...")
    source.initialize()

    now = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    print(f"Location: {DEFAULT_LOCATION_LABEL} ({DEFAULT_LATITUDE}, {DEFAULT_LONGITUDE})\n")

    for event in source.solar_events(now, DEFAULT_LATITUDE, DEFAULT_LONGITUDE, timedelta(days=1)):
        print(f"  {event.time:%H:%M} UTC  {event.kind.value}")
    for event in source.lunar_events(now, DEFAULT_LATITUDE, DEFAULT_LONGITUDE, timedelta(days=30)):
        print(f"  {event.time:%Y-%m-%d %H:%M} UTC  {event.kind.value}")
