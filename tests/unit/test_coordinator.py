"""
AstroPhoto Unit Tests - Coordinator

Tests for astrophoto/coordinator.py with a scripted event source and
patched network clients.

Run:
    pytest tests/unit/test_coordinator.py -v
"""

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from unittest.mock import AsyncMock, patch

import pytest

from astrophoto.config import AstroConfig
from astrophoto.coordinator import AstroCoordinator, restore_location
from astrophoto.exceptions import DataSourceError, EphemerisError
from astrophoto.models import Location, LocationResult, SunspotRegion
from astrophoto.preferences import MemoryPreferenceStore
from astrophoto.sidereal import polaris_reading
from tests.fixtures import ScriptedEventSource

PRAGUE = Location(50.0755, 14.4378, "Prague, CZ")
SOLSTICE = date(2024, 6, 21)


@pytest.fixture
def source():
    return ScriptedEventSource()


@pytest.fixture
def preferences():
    return MemoryPreferenceStore()


@pytest.fixture
def network():
    """Patch the space weather and geocoding clients used by the coordinator."""
    with patch("astrophoto.coordinator.fetch_kp_index", new=AsyncMock(return_value=3.33)) as kp, \
         patch("astrophoto.coordinator.fetch_sunspots", new=AsyncMock(return_value=[])) as spots, \
         patch("astrophoto.coordinator.geocode", new=AsyncMock(return_value=[])) as geocode:
        yield {"kp": kp, "sunspots": spots, "geocode": geocode}


@pytest.fixture
def coordinator(source, preferences, network):
    pool = ThreadPoolExecutor(max_workers=4)
    yield AstroCoordinator(AstroConfig(), source, preferences, executor=pool)
    pool.shutdown(wait=True)


async def wait_for_call(source):
    while not source.call_started.is_set():
        await asyncio.sleep(0.005)


# =============================================================================
# Location
# =============================================================================


class TestLocation:

    def test_default_location_from_config(self, coordinator):
        assert coordinator.location == PRAGUE

    def test_restored_from_preferences(self):
        prefs = MemoryPreferenceStore({
            "location_lat": 64.1466,
            "location_lon": -21.9426,
            "location_name": "Reykjavik, IS",
        })
        assert restore_location(prefs, PRAGUE) == Location(64.1466, -21.9426, "Reykjavik, IS")

    def test_invalid_saved_location_falls_back(self):
        prefs = MemoryPreferenceStore({
            "location_lat": "north",
            "location_lon": 10.0,
            "location_name": "Broken",
        })
        assert restore_location(prefs, PRAGUE) == PRAGUE

    @pytest.mark.asyncio
    async def test_manual_update_persists(self, coordinator, preferences):
        coordinator.update_location(48.8566, 2.3522, "Paris, France")
        await coordinator.wait_idle()

        assert coordinator.location == Location(48.8566, 2.3522, "Paris, France")
        assert preferences.get("location_lat") == 48.8566
        assert preferences.get("location_name") == "Paris, France"
        assert coordinator.is_location_manually_set() is True
        assert coordinator.snapshot.location == coordinator.location

    @pytest.mark.asyncio
    async def test_gps_update_clears_manual_flag(self, coordinator):
        coordinator.update_location(48.8566, 2.3522, "Paris, France")
        coordinator.update_location_from_gps(49.1951, 16.6068, "Brno")
        await coordinator.wait_idle()

        assert coordinator.is_location_manually_set() is False
        assert coordinator.location.label == "Brno"

    def test_invalid_coordinates_change_nothing(self, coordinator, preferences):
        with pytest.raises(ValueError):
            coordinator.update_location(123.0, 14.0, "Nowhere")

        assert coordinator.location == PRAGUE
        assert preferences.get("location_lat") is None
        assert coordinator.daily_stream.generation == 0

    @pytest.mark.asyncio
    async def test_update_during_computation_publishes_once(self, coordinator, source):
        """Only the snapshot for the last requested location is ever published."""
        published = []
        coordinator.subscribe("snapshot", published.append)
        gate = threading.Event()
        source.gate = gate

        coordinator.calculate_astro_data(SOLSTICE)
        await wait_for_call(source)
        coordinator.update_location(48.8566, 2.3522, "Paris, France")
        gate.set()
        await coordinator.wait_idle()

        assert len(published) == 1
        assert published[0].location.label == "Paris, France"
        assert coordinator.cells["snapshot"].version == 1


# =============================================================================
# Recomputation
# =============================================================================


class TestDailySnapshot:

    @pytest.mark.asyncio
    async def test_calculate_publishes(self, coordinator):
        coordinator.calculate_astro_data(SOLSTICE)
        await coordinator.wait_idle()

        assert coordinator.snapshot.day == SOLSTICE
        assert coordinator.snapshot.location == PRAGUE

    @pytest.mark.asyncio
    async def test_failure_keeps_previous_snapshot(self, coordinator, source):
        coordinator.calculate_astro_data(SOLSTICE)
        await coordinator.wait_idle()
        previous = coordinator.snapshot

        source.fail_with = EphemerisError("kernel unreadable")
        coordinator.calculate_astro_data(date(2024, 6, 22))
        await coordinator.wait_idle()

        assert coordinator.snapshot is previous
        assert coordinator.cells["snapshot"].version == 1


class TestCalendar:

    @pytest.mark.asyncio
    async def test_compute_explicit_month(self, coordinator):
        coordinator.compute_calendar(2024, 2)
        await coordinator.wait_idle()

        assert (coordinator.calendar_year, coordinator.calendar_month) == (2024, 2)
        assert sorted(coordinator.calendar_data) == list(range(1, 30))
        assert coordinator.calendar_loading is False

    @pytest.mark.asyncio
    async def test_next_month_rolls_year_and_clears_table(self, coordinator):
        coordinator.compute_calendar(2024, 12)
        await coordinator.wait_idle()

        coordinator.calendar_next_month()
        assert coordinator.calendar_data == {}
        assert coordinator.calendar_loading is True
        await coordinator.wait_idle()

        assert (coordinator.calendar_year, coordinator.calendar_month) == (2025, 1)
        assert len(coordinator.calendar_data) == 31
        assert coordinator.calendar_loading is False

    @pytest.mark.asyncio
    async def test_prev_month_rolls_year(self, coordinator):
        coordinator.compute_calendar(2024, 1)
        coordinator.calendar_prev_month()
        await coordinator.wait_idle()

        assert (coordinator.calendar_year, coordinator.calendar_month) == (2023, 12)
        assert len(coordinator.calendar_data) == 31

    def test_invalid_month(self, coordinator):
        with pytest.raises(ValueError):
            coordinator.compute_calendar(2024, 0)


# =============================================================================
# Display state
# =============================================================================


class TestDisplay:

    def test_toggle_night_mode_persists(self, coordinator, preferences):
        assert coordinator.night_mode is False
        assert coordinator.toggle_night_mode() is True
        assert preferences.get("night_mode") is True
        assert coordinator.toggle_night_mode() is False

    def test_night_mode_restored(self, source, network):
        prefs = MemoryPreferenceStore({"night_mode": True})
        coordinator = AstroCoordinator(AstroConfig(), source, prefs)
        try:
            assert coordinator.night_mode is True
        finally:
            coordinator._executor.shutdown(wait=False)

    def test_polaris_uses_current_longitude(self, coordinator):
        epoch_ms = 1_738_154_100_000
        assert coordinator.polaris_reading(epoch_ms) == polaris_reading(PRAGUE.longitude, epoch_ms)

    def test_subscribe_unknown_cell(self, coordinator):
        with pytest.raises(KeyError):
            coordinator.subscribe("weather", print)


# =============================================================================
# Space weather and search
# =============================================================================


class TestSpaceWeather:

    @pytest.mark.asyncio
    async def test_refresh_kp(self, coordinator, network):
        assert await coordinator.refresh_kp_index() == 3.33
        assert coordinator.kp_index == 3.33

    @pytest.mark.asyncio
    async def test_kp_failure_keeps_previous(self, coordinator, network):
        await coordinator.refresh_kp_index()
        network["kp"].side_effect = DataSourceError("HTTP 503")

        assert await coordinator.refresh_kp_index() == 3.33
        assert coordinator.kp_index == 3.33

    @pytest.mark.asyncio
    async def test_refresh_sunspots(self, coordinator, network):
        regions = [SunspotRegion(-12.0, 40.0, 230)]
        network["sunspots"].return_value = regions

        await coordinator.refresh_sunspots()
        assert coordinator.sunspots == regions

        network["sunspots"].side_effect = DataSourceError("timeout")
        await coordinator.refresh_sunspots()
        assert coordinator.sunspots == regions


class TestLocationSearch:

    @pytest.mark.asyncio
    async def test_blank_query_sends_nothing(self, coordinator, network):
        assert await coordinator.search_location("   ") == []
        network["geocode"].assert_not_called()

    @pytest.mark.asyncio
    async def test_results_published_and_cleared(self, coordinator, network):
        hits = [LocationResult("Prague, Czechia", "Prague, Czechia", 50.0875, 14.4214)]
        network["geocode"].return_value = hits

        assert await coordinator.search_location("Prague") == hits
        assert coordinator.location_search_results == hits

        coordinator.clear_location_search()
        assert coordinator.location_search_results == []

    @pytest.mark.asyncio
    async def test_search_failure_keeps_results(self, coordinator, network):
        hits = [LocationResult("Brno, Czechia", "Brno, Czechia", 49.19, 16.61)]
        network["geocode"].return_value = hits
        await coordinator.search_location("Brno")

        network["geocode"].side_effect = DataSourceError("HTTP 429")
        await coordinator.search_location("Ostrava")

        assert coordinator.location_search_results == hits


# =============================================================================
# Lifecycle
# =============================================================================


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_runs_initial_work(self, coordinator, network):
        await coordinator.start()
        await coordinator.wait_idle()

        assert coordinator.is_running
        assert coordinator.cells["snapshot"].version == 1
        assert len(coordinator.calendar_data) >= 28
        assert coordinator.kp_index == 3.33
        network["sunspots"].assert_awaited_once()

        await coordinator.shutdown()
        assert not coordinator.is_running

    @pytest.mark.asyncio
    async def test_shutdown_cancels_in_flight(self, coordinator, source):
        source.gate = threading.Event()
        await coordinator.start()
        await wait_for_call(source)

        await coordinator.shutdown()
        source.gate.set()

        assert coordinator.cells["snapshot"].version == 0
        assert coordinator.calendar_loading is False
