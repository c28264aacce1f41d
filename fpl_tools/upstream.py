"""
Upstream client for the Fantasy Premier League API.

One request per call. Caching lives in fpl_tools.cache; nothing here retries.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from config.settings import settings

logger = logging.getLogger("upstream")


class UpstreamError(Exception):
    """Non-success response or transport failure while fetching from FPL."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def _get_headers() -> dict:
    return {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }


def create_http_client() -> httpx.AsyncClient:
    """Build an AsyncClient with the upstream defaults."""
    return httpx.AsyncClient(
        timeout=settings.upstream_timeout_seconds,
        headers=_get_headers(),
        follow_redirects=True,
    )


async def _get_json(path: str, label: str) -> Any:
    url = f"{settings.fpl_api_base_url.rstrip('/')}/{path.lstrip('/')}"
    try:
        async with create_http_client() as client:
            response = await client.get(url)
    except httpx.HTTPError as e:
        logger.error(f"{label} request failed: {type(e).__name__}: {e}")
        raise UpstreamError(f"Upstream FPL error: {e}") from e

    if not response.is_success:
        logger.error(f"{label} returned HTTP {response.status_code}")
        raise UpstreamError(
            f"{label} error: {response.status_code}",
            status_code=response.status_code,
        )

    try:
        return response.json()
    except ValueError as e:
        raise UpstreamError(f"{label} returned invalid JSON") from e


async def fetch_bootstrap() -> Dict[str, Any]:
    """Fetch the bootstrap-static snapshot (players, teams, events)."""
    data = await _get_json("bootstrap-static/", "Upstream FPL")
    logger.info(f"Fetched bootstrap-static: {len(data.get('elements', []))} players")
    return data


async def fetch_fixtures() -> List[Dict[str, Any]]:
    """Fetch the full fixture list."""
    return await _get_json("fixtures/", "Fixtures API")
