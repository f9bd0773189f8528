"""
AstroPhoto Coordinator
Owns the app state and the background recomputations behind it.

The coordinator is responsible for:
- The current observing location, persisted through a PreferenceStore
- The daily snapshot stream and the month calendar stream
- Night mode, space weather values and location search results
- Lifecycle of the worker pool (start, shutdown)

Architecture:
    +--------------------+
    |  Presentation      |  reads PublishedValue cells, calls operations
    +---------+----------+
              |
    +---------v----------+
    |  AstroCoordinator  |<---> PreferenceStore
    +----+----------+----+
         |          |
    +----v---+  +---v------+
    | daily  |  | calendar |   StreamCoordinator, one in-flight job each
    +----+---+  +---+------+
         |          |
    +----v----------v----+
    |  ThreadPoolExecutor |  DailyAstroCalculator / CalendarAggregator
    +---------------------+

Every operation is called from the event loop thread. Location and date are
captured when an operation is called; a later location change starts a new
job instead of altering the running one.

Usage:
    from astrophoto.config import load_config
    from astrophoto.coordinator import create_coordinator

    coordinator = create_coordinator(load_config())
    await coordinator.start()

    coordinator.update_location(48.8566, 2.3522, "Paris, France")
    await coordinator.wait_idle()
    print(coordinator.snapshot.sunrise)

    await coordinator.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Set

from astrophoto.config import AstroConfig
from astrophoto.concurrency import PublishedValue, StreamCoordinator
from astrophoto.daily import DailyAstroCalculator
from astrophoto.events import EventSource
from astrophoto.exceptions import DataSourceError
from astrophoto.models import (
    CalendarDayData,
    DailySnapshot,
    Location,
    LocationResult,
    SunspotRegion,
)
from astrophoto.month_calendar import CalendarAggregator, month_add
from astrophoto.phase import PhaseResolver
from astrophoto.preferences import (
    KEY_LOCATION_IS_MANUAL,
    KEY_LOCATION_LAT,
    KEY_LOCATION_LON,
    KEY_LOCATION_NAME,
    KEY_NIGHT_MODE,
    MemoryPreferenceStore,
    PreferenceStore,
)
from astrophoto.sidereal import PolarisReading, polaris_reading
from services.ephemeris import SkyfieldEventSource
from services.geocoding import search_location as geocode
from services.space_weather import fetch_kp_index, fetch_sunspots

logger = logging.getLogger("astrophoto.coordinator")

__all__ = ["AstroCoordinator", "create_coordinator", "restore_location"]


def restore_location(preferences: PreferenceStore, fallback: Location) -> Location:
    """Saved location, or ``fallback`` when none (or an invalid one) is stored."""
    name = preferences.get(KEY_LOCATION_NAME)
    lat = preferences.get(KEY_LOCATION_LAT)
    lon = preferences.get(KEY_LOCATION_LON)
    if name is None or lat is None or lon is None:
        return fallback
    try:
        return Location(float(lat), float(lon), str(name))
    except (TypeError, ValueError) as e:
        logger.warning(f"Ignoring saved location {name!r}: {e}")
        return fallback


class AstroCoordinator:
    """
    App state plus the daily and calendar recomputation streams.

    Read state through the properties (``snapshot``, ``calendar_data``, ...)
    or subscribe to a cell with ``subscribe(name, callback)``.
    """

    def __init__(
        self,
        config: AstroConfig,
        source: EventSource,
        preferences: Optional[PreferenceStore] = None,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        """
        Initialize the coordinator.

        Args:
            config: Loaded configuration
            source: Event source the calculators query
            preferences: Settings backend (in-memory when omitted)
            executor: Worker pool; one sized by ``config.ephemeris.workers``
                is created and owned when omitted
        """
        self.config = config
        self.source = source
        self.preferences = preferences or MemoryPreferenceStore()
        self.tz = config.location.tz()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.ephemeris.workers,
            thread_name_prefix="astro-worker",
        )

        resolver = PhaseResolver(source)
        self._daily_calculator = DailyAstroCalculator(source, resolver, tz=self.tz)
        self._calendar_aggregator = CalendarAggregator(source, resolver, tz=self.tz)

        today = self._today()
        initial_location = restore_location(self.preferences, config.location.to_location())

        self.cells: Dict[str, PublishedValue] = {
            "location": PublishedValue("location", initial_location),
            "snapshot": PublishedValue("snapshot", DailySnapshot()),
            "calendar_data": PublishedValue("calendar_data", {}),
            "calendar_loading": PublishedValue("calendar_loading", False),
            "calendar_month": PublishedValue("calendar_month", (today.year, today.month)),
            "night_mode": PublishedValue("night_mode", bool(self.preferences.get(KEY_NIGHT_MODE, False))),
            "kp_index": PublishedValue("kp_index", None),
            "sunspots": PublishedValue("sunspots", []),
            "location_search_results": PublishedValue("location_search_results", []),
        }

        warn_sec = config.ephemeris.slow_job_warning_sec
        self.daily_stream: StreamCoordinator[DailySnapshot] = StreamCoordinator(
            "daily", self._executor, self.cells["snapshot"], warn_threshold_sec=warn_sec
        )
        self.calendar_stream: StreamCoordinator[Dict[int, CalendarDayData]] = StreamCoordinator(
            "calendar",
            self._executor,
            self.cells["calendar_data"],
            loading=self.cells["calendar_loading"],
            warn_threshold_sec=warn_sec,
        )

        self._background: Set[asyncio.Task] = set()
        self._running = False

        logger.debug(f"Coordinator initialized at {initial_location.label or initial_location}")

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def location(self) -> Location:
        return self.cells["location"].value

    @property
    def snapshot(self) -> DailySnapshot:
        return self.cells["snapshot"].value

    @property
    def calendar_data(self) -> Dict[int, CalendarDayData]:
        return self.cells["calendar_data"].value

    @property
    def calendar_loading(self) -> bool:
        return self.cells["calendar_loading"].value

    @property
    def calendar_year(self) -> int:
        return self.cells["calendar_month"].value[0]

    @property
    def calendar_month(self) -> int:
        return self.cells["calendar_month"].value[1]

    @property
    def night_mode(self) -> bool:
        return self.cells["night_mode"].value

    @property
    def kp_index(self) -> Optional[float]:
        return self.cells["kp_index"].value

    @property
    def sunspots(self) -> List[SunspotRegion]:
        return self.cells["sunspots"].value

    @property
    def location_search_results(self) -> List[LocationResult]:
        return self.cells["location_search_results"].value

    @property
    def is_running(self) -> bool:
        return self._running

    def subscribe(self, name: str, callback: Callable[[Any], Any]) -> Callable[[], None]:
        """Register ``callback`` for new values of cell ``name``. Returns unsubscribe."""
        if name not in self.cells:
            raise KeyError(f"Unknown state cell: {name}")
        return self.cells[name].subscribe(callback)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        """Kick off the initial computations and space weather downloads."""
        if self._running:
            logger.warning("Coordinator already running")
            return

        logger.info("Starting coordinator...")
        self._running = True
        self.calculate_astro_data()
        self.compute_calendar()
        self._spawn(self.refresh_sunspots())
        self._spawn(self.refresh_kp_index())
        logger.info("Coordinator started")

    async def shutdown(self) -> None:
        """Cancel in-flight work and release the worker pool."""
        if not self._running and not self._background:
            return

        logger.info("Shutting down coordinator...")
        self.daily_stream.cancel()
        self.calendar_stream.cancel()
        for task in list(self._background):
            task.cancel()

        await self.daily_stream.wait()
        await self.calendar_stream.wait()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

        self._running = False
        logger.info("Coordinator shutdown complete")

    async def wait_idle(self) -> None:
        """Wait until neither stream nor any download has work in flight."""
        await self.daily_stream.wait()
        await self.calendar_stream.wait()
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _today(self) -> date:
        return datetime.now(self.tz).date() if self.tz is not None else date.today()

    # =========================================================================
    # LOCATION
    # =========================================================================

    def update_location(self, latitude: float, longitude: float, name: str) -> None:
        """Set a location chosen by the user and recompute.

        The location is marked manual, so automatic GPS updates at startup
        should leave it alone.

        Raises:
            ValueError: If the coordinates are out of range (nothing changes)
        """
        self._set_location(Location(latitude, longitude, name), manual=True)

    def update_location_from_gps(self, latitude: float, longitude: float, name: str) -> None:
        """Set a GPS fix as the location and clear the manual flag."""
        self._set_location(Location(latitude, longitude, name), manual=False)

    def is_location_manually_set(self) -> bool:
        return bool(self.preferences.get(KEY_LOCATION_IS_MANUAL, False))

    def _set_location(self, location: Location, manual: bool) -> None:
        self.cells["location"].publish(location)
        self.preferences.update({
            KEY_LOCATION_LAT: location.latitude,
            KEY_LOCATION_LON: location.longitude,
            KEY_LOCATION_NAME: location.label,
            KEY_LOCATION_IS_MANUAL: manual,
        })
        logger.info(
            f"Location set to {location.label} ({location.latitude:.4f}, {location.longitude:.4f})"
            f"{' [manual]' if manual else ' [gps]'}"
        )
        self.calculate_astro_data()
        self.compute_calendar()

    # =========================================================================
    # RECOMPUTATION
    # =========================================================================

    def calculate_astro_data(self, day: Optional[date] = None) -> asyncio.Task:
        """Recompute the daily snapshot for ``day`` (default: today).

        Supersedes any daily computation still running.
        """
        day = day or self._today()
        return self.daily_stream.submit(self._daily_calculator.calculate, day, self.location)

    def compute_calendar(self, year: Optional[int] = None, month: Optional[int] = None) -> asyncio.Task:
        """Recompute the calendar table (default: the month on display).

        Raises:
            ValueError: If ``month`` is not 1..12
        """
        if year is None or month is None:
            shown_year, shown_month = self.cells["calendar_month"].value
            year = shown_year if year is None else year
            month = shown_month if month is None else month
        if not 1 <= month <= 12:
            raise ValueError(f"Month out of range: {month}")

        if (year, month) != self.cells["calendar_month"].value:
            self.cells["calendar_month"].publish((year, month))
        return self.calendar_stream.submit(
            self._calendar_aggregator.compute_month, year, month, self.location
        )

    def calendar_prev_month(self) -> asyncio.Task:
        return self._shift_calendar(-1)

    def calendar_next_month(self) -> asyncio.Task:
        return self._shift_calendar(1)

    def _shift_calendar(self, delta: int) -> asyncio.Task:
        year, month = month_add(self.calendar_year, self.calendar_month, delta)
        self.cells["calendar_month"].publish((year, month))
        self.cells["calendar_data"].publish({})
        return self.compute_calendar(year, month)

    # =========================================================================
    # DISPLAY
    # =========================================================================

    def toggle_night_mode(self) -> bool:
        """Flip night mode, persist it and return the new value."""
        enabled = not self.night_mode
        self.cells["night_mode"].publish(enabled)
        self.preferences.set(KEY_NIGHT_MODE, enabled)
        return enabled

    def polaris_reading(self, when: Optional[datetime | int] = None) -> PolarisReading:
        """Polaris reticle position for the current location (cheap, synchronous)."""
        return polaris_reading(self.location.longitude, when)

    # =========================================================================
    # SPACE WEATHER & SEARCH
    # =========================================================================

    async def refresh_kp_index(self) -> Optional[float]:
        """Download the latest Kp. On failure the previous value stays."""
        settings = self.config.space_weather
        try:
            kp = await fetch_kp_index(settings.kp_index_url, timeout=settings.timeout)
        except DataSourceError as e:
            logger.warning(f"Kp index refresh failed: {e}")
            return self.kp_index
        self.cells["kp_index"].publish(kp)
        return kp

    async def refresh_sunspots(self) -> List[SunspotRegion]:
        """Download the latest solar regions. On failure the previous list stays."""
        settings = self.config.space_weather
        try:
            regions = await fetch_sunspots(settings.solar_regions_url, timeout=settings.timeout)
        except DataSourceError as e:
            logger.warning(f"Sunspot refresh failed: {e}")
            return self.sunspots
        self.cells["sunspots"].publish(regions)
        return regions

    async def search_location(self, query: str) -> List[LocationResult]:
        """Search places by name and publish the hits.

        A blank query does nothing. On failure the previous results stay.
        """
        if not query or not query.strip():
            return self.location_search_results

        settings = self.config.geocoding
        try:
            results = await geocode(
                query,
                url=settings.search_url,
                limit=settings.limit,
                user_agent=settings.user_agent,
                timeout=settings.timeout,
            )
        except DataSourceError as e:
            logger.warning(f"Location search '{query}' failed: {e}")
            return self.location_search_results
        self.cells["location_search_results"].publish(results)
        return results

    def clear_location_search(self) -> None:
        self.cells["location_search_results"].publish([])


def create_coordinator(
    config: Optional[AstroConfig] = None,
    preferences: Optional[PreferenceStore] = None,
) -> AstroCoordinator:
    """Build a coordinator backed by the Skyfield event source."""
    config = config or AstroConfig()
    source = SkyfieldEventSource(config.ephemeris.ephemeris_file, config.ephemeris.data_dir)
    return AstroCoordinator(config, source, preferences)
