"""API-Football request wrapper: response cache, retry with backoff, soft daily budget."""

import asyncio
import logging
import random
import time
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

import httpx

from fixturecast.config import Settings, get_settings
from fixturecast.state import _incr, record_error
from fixturecast.telemetry import (
    record_cache_lookup,
    record_provider_error,
    record_provider_request,
    record_provider_retry,
    set_budget_used,
)
from fixturecast.utils.cache import TTLCache, make_cache_key

logger = logging.getLogger(__name__)


class FootballAPIError(RuntimeError):
    """Upstream football API failure, classified by kind.

    Kinds: network, cors, rate_limit, api, config, generic.
    """

    def __init__(self, message: str, kind: str = "generic", status_code: Optional[int] = None):
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


# =============================================================================
# SOFT DAILY BUDGET (process-wide, advisory)
# =============================================================================
# Callers issuing batches consult has_budget() before each step. Nothing in the
# request path refuses a call because of the budget.
_budget_day: Optional[date] = None
_budget_used: int = 0


def _roll_budget_day() -> None:
    global _budget_day, _budget_used
    today = datetime.now(timezone.utc).date()
    if _budget_day != today:
        _budget_day = today
        _budget_used = 0


def record_api_call(cost: int = 1) -> None:
    """Count a successful upstream call against today's budget."""
    global _budget_used
    _roll_budget_day()
    _budget_used += cost
    set_budget_used(_budget_used)


def has_budget(estimated_calls: int = 1) -> bool:
    """True while used + estimated stays within the soft limit (80% of the daily budget)."""
    settings = get_settings()
    _roll_budget_day()
    soft_limit = int(settings.API_DAILY_BUDGET * settings.API_BUDGET_SOFT_LIMIT)
    return _budget_used + estimated_calls <= soft_limit


def get_api_usage() -> dict:
    """Expose current budget status for the dashboard and monitoring."""
    settings = get_settings()
    _roll_budget_day()
    daily_budget = settings.API_DAILY_BUDGET
    return {
        "callsUsed": _budget_used,
        "callsRemaining": daily_budget - _budget_used,
        "percentageUsed": round(_budget_used / daily_budget * 100) if daily_budget else 0,
        "softLimit": int(daily_budget * settings.API_BUDGET_SOFT_LIMIT),
        "budgetDay": _budget_day.isoformat() if _budget_day else None,
    }


def reset_api_usage() -> None:
    global _budget_used
    _roll_budget_day()
    _budget_used = 0
    set_budget_used(0)


# =============================================================================
# HELPERS
# =============================================================================


def classify_error(message: str) -> FootballAPIError:
    """Map a raw failure message to a user-facing FootballAPIError."""
    lowered = (message or "").lower()
    if "fetch" in lowered or "connect" in lowered or "network" in lowered:
        return FootballAPIError("Network error: Check if proxy server is running", kind="network")
    if "cors" in lowered:
        return FootballAPIError("CORS error: API access blocked", kind="cors")
    return FootballAPIError(f"API connection failed: {message}", kind="generic")


def parse_retry_after(value: Optional[str], now: Optional[datetime] = None) -> Optional[float]:
    """Parse a Retry-After header (delta seconds or HTTP date) into seconds to wait."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return max(0.0, (when - now).total_seconds())


def resolve_api_target(settings: Settings) -> tuple[str, dict, str]:
    """
    Pick base URL + headers from the runtime environment.

    Returns (base_url, headers, platform) where platform is one of
    "proxy" (no key header, the proxy injects it), "direct" (API-Sports)
    or "rapidapi".
    """
    proxy = (settings.FOOTBALL_PROXY_URL or "").strip()
    if proxy:
        return proxy.rstrip("/"), {"Accept": "application/json"}, "proxy"

    host = settings.API_FOOTBALL_HOST
    if "api-sports.io" in host:
        return (
            f"https://{host}",
            {"Accept": "application/json", "x-apisports-key": settings.API_FOOTBALL_KEY},
            "direct",
        )
    return (
        f"https://{host}/v3",
        {
            "Accept": "application/json",
            "X-RapidAPI-Key": settings.API_FOOTBALL_KEY,
            "X-RapidAPI-Host": host,
        },
        "rapidapi",
    )


def _endpoint_label(endpoint: str) -> str:
    """Low-cardinality metric label: first path segment ("fixtures", "teams")."""
    return endpoint.strip("/").split("/")[0] or "root"


class FootballAPIClient:
    """API-Football client with TTL cache, retry/backoff and stale fallback."""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        settings = get_settings()
        self.base_url, headers, self.platform = resolve_api_target(settings)
        self.api_key = settings.API_FOOTBALL_KEY
        self.client = httpx.AsyncClient(
            headers=headers,
            timeout=settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )
        self.cache = TTLCache()
        self.cache_ttl = settings.CACHE_TTL_SECONDS
        self.team_cache_ttl = settings.TEAM_CACHE_TTL_SECONDS
        self.max_retries = settings.API_MAX_RETRIES
        self.backoff_base = settings.API_BACKOFF_BASE_SECONDS
        self.backoff_jitter = settings.API_BACKOFF_JITTER_SECONDS
        self.request_delay = settings.API_REQUEST_DELAY_SECONDS

    def ttl_for(self, endpoint: str) -> float:
        """12h for team endpoints, 1h for everything else."""
        return self.team_cache_ttl if "/teams" in endpoint else self.cache_ttl

    def backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Seconds to wait before retry number attempt + 1."""
        if retry_after is not None:
            return retry_after
        return self.backoff_base * (2**attempt) + random.uniform(0, self.backoff_jitter)

    async def request(self, endpoint: str, params: Optional[dict] = None, ttl: Optional[float] = None) -> dict:
        """
        GET an API-Football endpoint and return the parsed JSON payload.

        Serves fresh cache hits without a network call. Retries 429/5xx and
        transport errors with exponential backoff (honoring Retry-After).
        ttl overrides the endpoint TTL (live feeds use a short one).
        After the last attempt, serves a stale cache entry if one exists,
        otherwise raises FootballAPIError.
        """
        endpoint = "/" + endpoint.lstrip("/")
        params = params or {}
        cache_key = make_cache_key(endpoint, params)

        hit, cached = self.cache.get(cache_key, ttl=ttl if ttl is not None else self.ttl_for(endpoint))
        if hit:
            logger.debug(f"Using cached data for {endpoint}")
            record_cache_lookup("hit")
            _incr("api_cache_hit")
            return cached
        record_cache_lookup("miss")
        _incr("api_cache_miss")

        if self.platform != "proxy" and not self.api_key:
            raise FootballAPIError("API-Football key not configured", kind="config")

        url = f"{self.base_url}{endpoint}"
        label = _endpoint_label(endpoint)
        last_error: Optional[FootballAPIError] = None

        for attempt in range(self.max_retries + 1):
            retryable = False
            retry_after = None
            start_time = time.time()

            try:
                response = await self.client.get(url, params=params)
            except httpx.TimeoutException as e:
                record_provider_error("api_football", "timeout")
                last_error = FootballAPIError(f"Network error: request timed out ({e})", kind="network")
                retryable = True
            except httpx.RequestError as e:
                record_provider_error("api_football", "request_error")
                last_error = classify_error(f"{type(e).__name__}: {e}")
                retryable = True
            else:
                latency_ms = (time.time() - start_time) * 1000
                status = response.status_code
                record_provider_request("api_football", label, status, latency_ms)

                if status == 429 or status >= 500:
                    retry_after = parse_retry_after(response.headers.get("Retry-After"))
                    kind = "rate_limit" if status == 429 else "api"
                    record_provider_error("api_football", "rate_limit" if status == 429 else "http_5xx")
                    last_error = classify_error(f"{status} {response.reason_phrase}")
                    last_error.kind = kind
                    last_error.status_code = status
                    retryable = True
                elif status >= 400:
                    record_provider_error("api_football", "http_4xx")
                    last_error = FootballAPIError(
                        f"API request failed: {status} {response.reason_phrase}", kind="api", status_code=status
                    )
                else:
                    payload, last_error, retryable = self._validate_payload(response)
                    if payload is not None:
                        self.cache.set(cache_key, payload)
                        record_api_call()
                        if self.request_delay > 0:
                            await asyncio.sleep(self.request_delay)
                        return payload

            if not retryable or attempt >= self.max_retries:
                break

            wait = self.backoff_delay(attempt, retry_after)
            record_provider_retry("api_football", last_error.kind)
            logger.warning(
                f"{endpoint} failed ({last_error}); retry {attempt + 1}/{self.max_retries} in {wait:.2f}s"
            )
            await asyncio.sleep(wait)

        hit, stale = self.cache.get_stale(cache_key)
        if hit:
            logger.warning(f"Serving stale cache for {endpoint} after failure: {last_error}")
            record_cache_lookup("stale")
            _incr("api_cache_stale_served")
            return stale

        logger.error(f"API request failed for {endpoint}: {last_error}")
        record_error("api_football", str(last_error), last_error.kind)
        raise last_error

    def _validate_payload(self, response: httpx.Response) -> tuple[Optional[dict], Optional[FootballAPIError], bool]:
        """Return (payload, error, retryable) for a 2xx response."""
        try:
            data = response.json()
        except ValueError:
            return None, FootballAPIError("API returned a non-JSON payload", kind="api"), False

        if not isinstance(data, dict):
            return None, FootballAPIError("API returned null/undefined data", kind="api"), False

        errors = data.get("errors")
        if isinstance(errors, dict) and errors.get("rateLimit"):
            record_provider_error("api_football", "rate_limit")
            return None, FootballAPIError(f"Rate limit exceeded: {errors['rateLimit']}", kind="rate_limit"), True
        if errors:
            record_provider_error("api_football", "api_error_response")
            return None, FootballAPIError(f"API error: {errors}", kind="api"), False

        if "response" not in data:
            return None, FootballAPIError("API returned payload without response property", kind="api"), False

        return data, None, False

    def clear_cache(self) -> None:
        """Drop all cached payloads and reset the daily call counter."""
        self.cache.clear()
        reset_api_usage()

    async def close(self) -> None:
        await self.client.aclose()
