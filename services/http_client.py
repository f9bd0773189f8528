"""
AstroPhoto HTTP Client

Single helper for the JSON web services the app reads (NOAA, Nominatim).
Every transport or decoding failure surfaces as DataSourceError.
"""

import asyncio
import logging
import time
from typing import Any, Optional

import aiohttp

from astrophoto.constants import DEFAULT_HTTP_TIMEOUT_SEC, HTTP_USER_AGENT
from astrophoto.exceptions import DataSourceError

logger = logging.getLogger("astrophoto.services.http")


async def fetch_json(
    url: str,
    params: Optional[dict] = None,
    headers: Optional[dict] = None,
    timeout: float = DEFAULT_HTTP_TIMEOUT_SEC,
    session: Optional[aiohttp.ClientSession] = None,
) -> Any:
    """GET ``url`` and decode the JSON body.

    Args:
        url: Endpoint URL
        params: Query parameters
        headers: Extra request headers (User-Agent is always set)
        timeout: Total request timeout in seconds
        session: Existing session to reuse; a short-lived one is opened otherwise

    Raises:
        DataSourceError: On HTTP error status, timeout, connection or JSON failure
    """
    request_headers = {"User-Agent": HTTP_USER_AGENT}
    if headers:
        request_headers.update(headers)

    start = time.monotonic()
    try:
        if session is None:
            async with aiohttp.ClientSession() as own_session:
                return await _get(own_session, url, params, request_headers, timeout)
        return await _get(session, url, params, request_headers, timeout)
    except asyncio.TimeoutError as e:
        raise DataSourceError(f"HTTP timeout after {timeout}s", url=url) from e
    except aiohttp.ContentTypeError as e:
        raise DataSourceError(f"Unexpected content type: {e.message}", url=url) from e
    except aiohttp.ClientResponseError as e:
        raise DataSourceError(f"HTTP {e.status}", url=url) from e
    except aiohttp.ClientError as e:
        raise DataSourceError(f"HTTP error: {e}", url=url) from e
    except ValueError as e:
        raise DataSourceError(f"Invalid JSON: {e}", url=url) from e
    finally:
        logger.debug(f"GET {url} took {(time.monotonic() - start) * 1000:.0f}ms")


async def _get(session, url, params, headers, timeout):
    async with session.get(
        url,
        params=params,
        headers=headers,
        timeout=aiohttp.ClientTimeout(total=timeout),
        raise_for_status=True,
    ) as resp:
        return await resp.json(content_type=None)
