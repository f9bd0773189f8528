"""
AstroPhoto Unit Tests - Month Calendar

Unit tests for astrophoto/month_calendar.py.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from astrophoto.concurrency import CancellationToken
from astrophoto.daily import start_of_local_day
from astrophoto.exceptions import ComputationCancelled
from astrophoto.models import LUNAR_PHASE_KINDS, AstroEvent, CalendarDayData, EventKind, Location
from astrophoto.month_calendar import CalendarAggregator, days_in_month, month_add
from astrophoto.phase import PhaseResolver
from tests.fixtures import ScriptedEventSource, local_event

CET = timezone(timedelta(hours=1), "CET")
UTC = timezone.utc
PRAGUE = Location(50.0755, 14.4378, "Prague, CZ")

WINTER_PHASES = [
    AstroEvent(EventKind.NEW_MOON, datetime(2024, 1, 11, 11, 57, tzinfo=UTC)),
    AstroEvent(EventKind.FIRST_QUARTER, datetime(2024, 1, 18, 3, 53, tzinfo=UTC)),
    AstroEvent(EventKind.FULL_MOON, datetime(2024, 1, 25, 17, 54, tzinfo=UTC)),
    AstroEvent(EventKind.LAST_QUARTER, datetime(2024, 2, 2, 23, 18, tzinfo=UTC)),
    AstroEvent(EventKind.NEW_MOON, datetime(2024, 2, 9, 22, 59, tzinfo=UTC)),
    AstroEvent(EventKind.FIRST_QUARTER, datetime(2024, 2, 16, 15, 1, tzinfo=UTC)),
    AstroEvent(EventKind.FULL_MOON, datetime(2024, 2, 24, 12, 30, tzinfo=UTC)),
    AstroEvent(EventKind.LAST_QUARTER, datetime(2024, 3, 3, 15, 23, tzinfo=UTC)),
    AstroEvent(EventKind.NEW_MOON, datetime(2024, 3, 10, 9, 0, tzinfo=UTC)),
    AstroEvent(EventKind.FIRST_QUARTER, datetime(2024, 3, 17, 4, 11, tzinfo=UTC)),
]


@pytest.fixture
def source():
    day = date(2024, 2, 10)
    return ScriptedEventSource(WINTER_PHASES + [
        local_event(EventKind.CIVIL_DAWN, day, "06:46", CET),
        local_event(EventKind.SUNRISE, day, "07:20", CET),
        local_event(EventKind.SUNSET, day, "17:13", CET),
        local_event(EventKind.CIVIL_DUSK, day, "17:47", CET),
        local_event(EventKind.MOONRISE, day, "08:12", CET),
        local_event(EventKind.MOONSET, day, "19:02", CET),
        local_event(EventKind.SOLAR_NOON, day, "12:16", CET),
    ])


@pytest.fixture
def aggregator(source):
    return CalendarAggregator(source, tz=CET)


class TestMonthArithmetic:

    @pytest.mark.parametrize(
        "year, month, expected",
        [(2024, 2, 29), (2023, 2, 28), (2000, 2, 29), (2100, 2, 28), (2024, 4, 30), (2024, 12, 31)],
    )
    def test_days_in_month(self, year, month, expected):
        assert days_in_month(year, month) == expected

    @pytest.mark.parametrize(
        "year, month, delta, expected",
        [
            (2024, 1, -1, (2023, 12)),
            (2024, 12, 1, (2025, 1)),
            (2024, 6, 0, (2024, 6)),
            (2024, 3, -14, (2023, 1)),
        ],
    )
    def test_month_add(self, year, month, delta, expected):
        assert month_add(year, month, delta) == expected


class TestComputeMonth:

    def test_leap_february_has_29_days(self, aggregator):
        table = aggregator.compute_month(2024, 2, PRAGUE)
        assert sorted(table) == list(range(1, 30))
        assert all(isinstance(v, CalendarDayData) for v in table.values())

    def test_common_february_has_28_days(self, aggregator):
        table = aggregator.compute_month(2023, 2, PRAGUE)
        assert sorted(table) == list(range(1, 29))

    def test_day_fields(self, aggregator):
        day = aggregator.compute_month(2024, 2, PRAGUE)[10]

        assert day.civil_dawn == "06:46"
        assert day.sunrise == "07:20"
        assert day.sunset == "17:13"
        assert day.civil_dusk == "17:47"
        assert day.moonrise == "08:12"
        assert day.moonset == "19:02"

    def test_days_without_events_use_sentinels(self, aggregator):
        day = aggregator.compute_month(2024, 2, PRAGUE)[11]
        assert day.sunrise == "--:--"
        assert day.moonset == "--:--"

    def test_illumination_sampled_at_local_noon(self, aggregator):
        table = aggregator.compute_month(2024, 2, PRAGUE)

        # Noon on the 9th precedes that evening's New Moon, and the January
        # New Moon lies outside the window
        assert table[9].moon_illumination == 0
        assert table[10].moon_illumination == 0
        assert table[24].moon_illumination == 100
        assert all(0 <= d.moon_illumination <= 100 for d in table.values())

    def test_matches_per_day_resolution(self, source, aggregator):
        table = aggregator.compute_month(2024, 2, PRAGUE)
        resolver = PhaseResolver(source)

        for day_number, data in table.items():
            noon = datetime(2024, 2, day_number, 12, 0, tzinfo=CET)
            expected = resolver.resolve(noon, PRAGUE).illumination_percent
            assert data.moon_illumination == expected, day_number

    def test_dst_end_day_spans_24_hours_and_samples_12_hours_in(self):
        source = ScriptedEventSource()
        CalendarAggregator(source, tz=ZoneInfo("Europe/Prague")).compute_month(2024, 10, PRAGUE)

        day_27 = source.calls_to("solar")[26]
        assert day_27[1] == datetime(2024, 10, 26, 22, 0, tzinfo=UTC)
        assert day_27[4] == timedelta(days=1)

        phase_call = next(c for c in source.calls_to("lunar") if set(c[5]) == LUNAR_PHASE_KINDS)
        first_noon = datetime(2024, 9, 30, 22, 0, tzinfo=UTC) + timedelta(hours=12)
        last_noon = datetime(2024, 10, 30, 23, 0, tzinfo=UTC) + timedelta(hours=12)
        assert phase_call[1] == first_noon - timedelta(days=15)
        assert phase_call[1] + phase_call[4] == last_noon + timedelta(days=15)

    def test_sample_instant_is_12_elapsed_hours_after_midnight(self):
        aggregator = CalendarAggregator(ScriptedEventSource(), tz=ZoneInfo("Europe/Prague"))
        start = start_of_local_day(date(2024, 10, 27), ZoneInfo("Europe/Prague"))

        noon = aggregator._sample_instant(start)

        assert noon - start == timedelta(hours=12)
        assert noon == datetime(2024, 10, 27, 10, 0, tzinfo=UTC)

    def test_phase_events_fetched_once(self, source, aggregator):
        aggregator.compute_month(2024, 2, PRAGUE)

        phase_calls = [c for c in source.calls_to("lunar") if set(c[5]) == LUNAR_PHASE_KINDS]
        assert len(phase_calls) == 1
        assert len(source.calls_to("solar")) == 29

    def test_invalid_month(self, aggregator):
        with pytest.raises(ValueError):
            aggregator.compute_month(2024, 13, PRAGUE)

    def test_cancelled_before_first_day(self, source, aggregator):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(ComputationCancelled):
            aggregator.compute_month(2024, 2, PRAGUE, token=token)
        assert source.calls_to("solar") == []
