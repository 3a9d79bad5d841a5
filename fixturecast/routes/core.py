"""Core routes: health, telemetry, metrics.

Auth per-endpoint:
- /health: public, rate limited
- /telemetry: public (aggregated counters only)
- /metrics: Bearer token when METRICS_BEARER_TOKEN is set
"""

from fastapi import APIRouter, Header, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from fixturecast.config import get_settings
from fixturecast.etl.api_football import get_api_usage
from fixturecast.predictions.rate_limit import get_all_statuses
from fixturecast.security import limiter
from fixturecast.state import _telemetry, dashboard, recent_errors
from fixturecast.telemetry import get_metrics_text

router = APIRouter(tags=["core"])
settings = get_settings()


class HealthResponse(BaseModel):
    status: str
    fixtures_loaded: int
    live_matches: int


def _rate(hits: int, misses: int) -> float:
    total = hits + misses
    return round(hits / total, 3) if total > 0 else 0


@router.get("/health", response_model=HealthResponse)
@limiter.limit("120/minute")
async def health_check(request: Request):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        fixtures_loaded=len(dashboard.fixtures),
        live_matches=len(dashboard.live_matches),
    )


@router.get("/telemetry")
async def get_telemetry():
    """
    Aggregated telemetry counters and the most recent service errors.

    Counters reset on restart. For persistent metrics scrape /metrics.
    """
    return {
        "predictions": {
            "cache_hit": _telemetry["predictions_cache_hit"],
            "cache_miss": _telemetry["predictions_cache_miss"],
            "hit_rate": _rate(_telemetry["predictions_cache_hit"], _telemetry["predictions_cache_miss"]),
            "generated": _telemetry["predictions_generated"],
            "failed": _telemetry["predictions_failed"],
        },
        "api_cache": {
            "hit": _telemetry["api_cache_hit"],
            "miss": _telemetry["api_cache_miss"],
            "stale_served": _telemetry["api_cache_stale_served"],
            "hit_rate": _rate(_telemetry["api_cache_hit"], _telemetry["api_cache_miss"]),
        },
        "api_usage": get_api_usage(),
        "llm_rate_limits": get_all_statuses(),
        "state": {
            "fixtures_updated_at": dashboard.fixtures_updated_at,
            "live_updated_at": dashboard.live_updated_at,
        },
        "recent_errors": recent_errors(),
    }


@router.get("/metrics")
async def prometheus_metrics(
    authorization: str = Header(None, alias="Authorization"),
):
    """
    Prometheus metrics endpoint.

    Requires Bearer token authentication when METRICS_BEARER_TOKEN is set.
    """
    expected_token = settings.METRICS_BEARER_TOKEN
    if expected_token:
        if not authorization:
            return PlainTextResponse(
                content="# Unauthorized: Missing Authorization header\n",
                status_code=401,
                media_type="text/plain",
            )
        parts = authorization.split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return PlainTextResponse(
                content="# Unauthorized: Invalid Authorization format\n",
                status_code=401,
                media_type="text/plain",
            )
        if parts[1] != expected_token:
            return PlainTextResponse(
                content="# Unauthorized: Invalid token\n",
                status_code=401,
                media_type="text/plain",
            )

    content, content_type = get_metrics_text()
    return PlainTextResponse(content=content, media_type=content_type)
