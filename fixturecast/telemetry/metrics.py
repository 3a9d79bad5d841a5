"""
Prometheus metrics for upstream providers, cache, LLM and jobs.

Design principles:
- Low cardinality (controlled labels)
- Best-effort (never block main flow)

=============================================================================
CARDINALITY CONTROL
=============================================================================

ALLOWED LABELS (bounded sets):
- provider:     "api_football", "gemini"
- endpoint:     "fixtures", "standings", "teams", "injuries", ... (max ~20)
- status_code:  "200", "429", "500", "0" (max ~10)
- error_code:   "timeout", "rate_limit", "api_error", "http_5xx" (max ~15)
- result:       "hit", "miss", "stale"
- status:       "ok", "error", "rate_limited", "parse_error"
- job:          scheduler job ids

FORBIDDEN AS LABELS: match ids, team names, URLs, raw error messages.
Use logs for those.
=============================================================================
"""

import time
import logging

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
    REGISTRY,
)

logger = logging.getLogger(__name__)

# =============================================================================
# UPSTREAM API METRICS
# =============================================================================

provider_requests_total = Counter(
    "fixturecast_provider_requests_total",
    "Total requests to data providers",
    ["provider", "endpoint", "status_code"],
)

provider_errors_total = Counter(
    "fixturecast_provider_errors_total",
    "Total errors from data providers",
    ["provider", "error_code"],
)

provider_retries_total = Counter(
    "fixturecast_provider_retries_total",
    "Retries issued after 429/5xx/transport errors",
    ["provider", "reason"],
)

provider_latency_ms = Histogram(
    "fixturecast_provider_latency_ms",
    "Request latency in milliseconds",
    ["provider", "endpoint"],
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

cache_lookups_total = Counter(
    "fixturecast_cache_lookups_total",
    "Response cache lookups by result",
    ["result"],
)

api_budget_used = Gauge(
    "fixturecast_api_budget_used",
    "Upstream calls counted against today's soft budget",
)

# =============================================================================
# LLM METRICS
# =============================================================================

llm_requests_total = Counter(
    "fixturecast_llm_requests_total",
    "Total LLM prediction requests",
    ["provider", "status"],
)

llm_latency_ms = Histogram(
    "fixturecast_llm_latency_ms",
    "LLM request latency in milliseconds",
    ["provider"],
    buckets=[250, 500, 1000, 2500, 5000, 10000, 20000, 60000],
)

llm_tokens_total = Counter(
    "fixturecast_llm_tokens_total",
    "LLM tokens consumed",
    ["provider", "direction"],
)

# =============================================================================
# JOB METRICS
# =============================================================================

job_runs_total = Counter(
    "fixturecast_job_runs_total",
    "Scheduler job runs by status",
    ["job", "status"],
)

job_duration_ms = Histogram(
    "fixturecast_job_duration_ms",
    "Scheduler job duration in milliseconds",
    ["job"],
    buckets=[100, 500, 1000, 5000, 15000, 60000, 300000],
)

job_last_success_timestamp = Gauge(
    "fixturecast_job_last_success_timestamp",
    "Unix timestamp of last successful job run",
    ["job"],
)


def record_provider_request(
    provider: str,
    endpoint: str,
    status_code: int,
    latency_ms: float,
) -> None:
    """Record a provider request with its latency."""
    try:
        provider_requests_total.labels(
            provider=provider,
            endpoint=endpoint,
            status_code=str(status_code),
        ).inc()
        provider_latency_ms.labels(provider=provider, endpoint=endpoint).observe(latency_ms)
    except Exception as e:
        logger.warning(f"Failed to record provider request metric: {e}")


def record_provider_error(provider: str, error_code: str) -> None:
    """Record a provider error."""
    try:
        provider_errors_total.labels(provider=provider, error_code=error_code).inc()
    except Exception as e:
        logger.warning(f"Failed to record provider error metric: {e}")


def record_provider_retry(provider: str, reason: str) -> None:
    try:
        provider_retries_total.labels(provider=provider, reason=reason).inc()
    except Exception as e:
        logger.warning(f"Failed to record provider retry metric: {e}")


def record_cache_lookup(result: str) -> None:
    """Record a cache lookup: "hit", "miss" or "stale"."""
    try:
        cache_lookups_total.labels(result=result).inc()
    except Exception as e:
        logger.warning(f"Failed to record cache metric: {e}")


def set_budget_used(used: int) -> None:
    try:
        api_budget_used.set(used)
    except Exception as e:
        logger.warning(f"Failed to set budget metric: {e}")


def record_llm_request(
    provider: str,
    status: str,
    latency_ms: float,
    input_tokens: int = 0,
    output_tokens: int = 0,
) -> None:
    """
    Record a complete LLM request.

    Args:
        provider: "gemini"
        status: "ok", "error", "rate_limited", "parse_error"
        latency_ms: End-to-end latency in milliseconds
        input_tokens: Number of input tokens (0 if unknown)
        output_tokens: Number of output tokens (0 if unknown)
    """
    try:
        llm_requests_total.labels(provider=provider, status=status).inc()
        if latency_ms > 0:
            llm_latency_ms.labels(provider=provider).observe(latency_ms)
        if input_tokens > 0:
            llm_tokens_total.labels(provider=provider, direction="input").inc(input_tokens)
        if output_tokens > 0:
            llm_tokens_total.labels(provider=provider, direction="output").inc(output_tokens)
    except Exception as e:
        logger.warning(f"Failed to record LLM request metric: {e}")


def record_job_run(job: str, status: str, duration_ms: float) -> None:
    """
    Record a job run with status and duration.

    Args:
        job: Job identifier (live_refresh, fixtures_refresh, results_check)
        status: "ok" or "error"
        duration_ms: Job duration in milliseconds
    """
    try:
        job_runs_total.labels(job=job, status=status).inc()
        if duration_ms > 0:
            job_duration_ms.labels(job=job).observe(duration_ms)
        if status == "ok":
            job_last_success_timestamp.labels(job=job).set(time.time())
    except Exception as e:
        logger.warning(f"Failed to record job run metric: {e}")


def get_metrics_text() -> tuple[str, str]:
    """
    Generate Prometheus metrics text output.

    Returns:
        Tuple of (content, content_type)
    """
    return generate_latest(REGISTRY).decode("utf-8"), CONTENT_TYPE_LATEST
