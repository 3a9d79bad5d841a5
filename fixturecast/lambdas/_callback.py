"""Shared plumbing for the scheduled Lambda handlers that call back into the app."""

import logging
import time
from typing import Optional

import httpx

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)


def batched(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def callback_client(transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = 120.0) -> httpx.AsyncClient:
    """AsyncClient bound to APP_BASE_URL, carrying the admin API key."""
    settings = get_settings()
    headers = {"Accept": "application/json"}
    if settings.API_KEY:
        headers[settings.API_KEY_HEADER] = settings.API_KEY
    return httpx.AsyncClient(
        base_url=settings.APP_BASE_URL.rstrip("/"),
        headers=headers,
        timeout=timeout,
        transport=transport,
    )


async def upcoming_match_ids(client: httpx.AsyncClient, league_ids: Optional[list] = None) -> list[str]:
    """Ids of the dashboard's upcoming fixtures, optionally restricted to league ids."""
    response = await client.get("/fixtures/upcoming")
    response.raise_for_status()
    wanted = {int(x) for x in league_ids or []}
    ids = []
    for fixture in response.json().get("fixtures") or []:
        if wanted and fixture.get("league_id") not in wanted:
            continue
        ids.append(str(fixture["id"]))
    return ids


def elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def alert_if_needed(kind: str, error_count: int, total: int, threshold: float, summary: dict) -> bool:
    """Log an ERROR-level alert when error_count exceeds threshold * total."""
    if error_count > total * threshold:
        logger.error(f"[ALERT] {kind}: {error_count} errors out of {total} matches: {summary}")
        return True
    return False
