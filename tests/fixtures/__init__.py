"""
AstroPhoto Test Fixtures Package.

Provides a scripted event source and canned event sets so the calculators
and the coordinator can be tested without downloading ephemeris data.

Available fixtures:
- ScriptedEventSource: EventSource over a fixed event list, with call
  recording, an in-flight gate and failure injection
- prague_summer_day: full solar/lunar horizon events for a June day in Prague
- june_2024_phases: cardinal moon phases around June 2024

Usage:
    from tests.fixtures import ScriptedEventSource, prague_summer_day

    def test_snapshot():
        source = ScriptedEventSource(prague_summer_day(day, CEST))
        snapshot = DailyAstroCalculator(source, tz=CEST).calculate(day, prague)
        assert snapshot.sunrise == "04:45"
"""

from tests.fixtures.mock_event_source import (
    ScriptedEventSource,
    june_2024_phases,
    local_event,
    prague_summer_day,
)

__all__ = [
    "ScriptedEventSource",
    "june_2024_phases",
    "local_event",
    "prague_summer_day",
]
