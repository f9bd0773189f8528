"""
AstroPhoto Geocoding Service

Place name search against OpenStreetMap Nominatim.
"""

import logging
from typing import Iterable, List, Optional

from astrophoto.constants import (
    DEFAULT_HTTP_TIMEOUT_SEC,
    GEOCODING_RESULT_LIMIT,
    NOMINATIM_SEARCH_URL,
)
from astrophoto.exceptions import DataSourceError
from astrophoto.models import LocationResult
from services import http_client

logger = logging.getLogger("astrophoto.services.geocoding")


def short_name(display_name: str) -> str:
    """First two comma-separated parts, e.g. ``"Prague, Czechia"``."""
    return ",".join(display_name.split(",")[:2]).strip()


def parse_search_results(entries: Iterable[dict]) -> List[LocationResult]:
    """Convert Nominatim search hits to LocationResult.

    Raises:
        DataSourceError: When a hit lacks a name or coordinates
    """
    results = []
    for entry in entries:
        try:
            display = entry["display_name"]
            results.append(LocationResult(
                display_name=display,
                short_name=short_name(display),
                latitude=float(entry["lat"]),
                longitude=float(entry["lon"]),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise DataSourceError(f"Malformed search result: {entry!r}") from e
    return results


async def search_location(
    query: str,
    url: str = NOMINATIM_SEARCH_URL,
    limit: int = GEOCODING_RESULT_LIMIT,
    user_agent: Optional[str] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SEC,
    session=None,
) -> List[LocationResult]:
    """Search places by free-text name.

    A blank query returns an empty list without any request.
    """
    if not query or not query.strip():
        return []

    headers = {"User-Agent": user_agent} if user_agent else None
    entries = await http_client.fetch_json(
        url,
        params={"q": query, "format": "json", "limit": str(limit)},
        headers=headers,
        timeout=timeout,
        session=session,
    )
    if not isinstance(entries, list):
        raise DataSourceError("Search response is not a list", url=url)
    results = parse_search_results(entries)
    logger.debug(f"Location search '{query}': {len(results)} results")
    return results
