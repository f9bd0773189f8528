"""
AstroPhoto Space Weather Service

Reads NOAA SWPC products used for aurora and solar imaging:
- Planetary K-index (latest 3-hour Kp value)
- Active solar regions (sunspot positions for the most recent observation day)
"""

import logging
from typing import Any, Iterable, List, Optional

from astrophoto.constants import (
    DEFAULT_HTTP_TIMEOUT_SEC,
    NOAA_KP_INDEX_URL,
    NOAA_SOLAR_REGIONS_URL,
)
from astrophoto.exceptions import DataSourceError
from astrophoto.models import SunspotRegion
from services import http_client

logger = logging.getLogger("astrophoto.services.space_weather")

# Upper bounds (exclusive) of each Kp activity band, NOAA G-scale
KP_ACTIVITY_LEVELS = (
    (3.0, "Quiet"),
    (4.0, "Unsettled"),
    (5.0, "Active"),
    (6.0, "Minor Storm (G1)"),
    (7.0, "Moderate Storm (G2)"),
    (8.0, "Strong Storm (G3)"),
    (9.0, "Severe Storm (G4)"),
)
KP_EXTREME_LABEL = "Extreme Storm (G5)"


def kp_activity_label(kp: float) -> str:
    """Geomagnetic activity label for a Kp value."""
    for upper, label in KP_ACTIVITY_LEVELS:
        if kp < upper:
            return label
    return KP_EXTREME_LABEL


def parse_kp_index(rows: List[List[Any]]) -> Optional[float]:
    """Kp from the planetary K-index table.

    The product is a list of rows with a header row first; the last row is
    the most recent and column 1 holds Kp as a string.

    Returns:
        Kp value, or None when the last row's value is not numeric

    Raises:
        DataSourceError: When the table is empty or malformed
    """
    if not isinstance(rows, list) or not rows:
        raise DataSourceError("Empty K-index table")
    last = rows[-1]
    if not isinstance(last, (list, tuple)) or len(last) < 2:
        raise DataSourceError(f"Malformed K-index row: {last!r}")
    try:
        return float(last[1])
    except (TypeError, ValueError):
        logger.debug(f"Non-numeric Kp value: {last[1]!r}")
        return None


def parse_sunspots(entries: Iterable[dict]) -> List[SunspotRegion]:
    """Active regions from the most recent ``observed_date``.

    Older observations in the feed are discarded. Entries without a date
    never match the latest date unless no entry has one.

    Raises:
        DataSourceError: When a kept entry lacks position or area
    """
    entries = [e for e in entries if isinstance(e, dict)]
    dates = [e.get("observed_date") or "" for e in entries]
    latest = max((d for d in dates if d), default="")

    regions = []
    for entry, observed in zip(entries, dates):
        if observed != latest:
            continue
        try:
            regions.append(SunspotRegion(
                latitude=float(entry["latitude"]),
                longitude=float(entry["longitude"]),
                area=int(entry["area"]),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed solar region: {entry!r}") from e
    return regions


async def fetch_kp_index(
    url: str = NOAA_KP_INDEX_URL,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SEC,
    session=None,
) -> Optional[float]:
    """Download and parse the current planetary Kp."""
    rows = await http_client.fetch_json(url, timeout=timeout, session=session)
    kp = parse_kp_index(rows)
    logger.info(f"Kp index: {kp}")
    return kp


async def fetch_sunspots(
    url: str = NOAA_SOLAR_REGIONS_URL,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SEC,
    session=None,
) -> List[SunspotRegion]:
    """Download and parse the latest active solar regions."""
    entries = await http_client.fetch_json(url, timeout=timeout, session=session)
    if not isinstance(entries, list):
        raise DataSourceError("Solar regions feed is not a list", url=url)
    regions = parse_sunspots(entries)
    logger.info(f"Solar regions: {len(regions)} on latest observation day")
    return regions
