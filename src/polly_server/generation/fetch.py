"""JSON resource fetching for the bank and rule stores."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from polly_server.generation.errors import FetchError

logger = logging.getLogger(__name__)


async def fetch_json(
    url: str, *, timeout: float, http_client: httpx.AsyncClient | None = None
) -> Any:
    """GET ``url`` and decode its JSON body.

    A short-lived ``httpx.AsyncClient`` is opened when none is supplied.

    Raises:
        FetchError: On transport failure, non-2xx status or invalid JSON.
    """
    try:
        if http_client is not None:
            response = await http_client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.warning("fetch failed for %s: %s", url, exc)
        raise FetchError(url=url, detail=str(exc) or type(exc).__name__) from exc

    if not response.is_success:
        logger.warning("fetch %s returned HTTP %d", url, response.status_code)
        raise FetchError(url=url, status_code=response.status_code, detail=response.text[:200])

    try:
        return response.json()
    except ValueError as exc:
        raise FetchError(url=url, detail="invalid JSON") from exc
