"""
Telemetry Module

Prometheus metrics for:
- Upstream API requests (requests, errors, retries, latency)
- Response cache hit/miss/stale
- LLM prediction requests
- Scheduler jobs
"""

from fixturecast.telemetry.metrics import (
    provider_requests_total,
    provider_errors_total,
    provider_retries_total,
    provider_latency_ms,
    cache_lookups_total,
    llm_requests_total,
    llm_latency_ms,
    job_runs_total,
    # Helpers
    record_provider_request,
    record_provider_error,
    record_provider_retry,
    record_cache_lookup,
    set_budget_used,
    record_llm_request,
    record_job_run,
    get_metrics_text,
)

__all__ = [
    "provider_requests_total",
    "provider_errors_total",
    "provider_retries_total",
    "provider_latency_ms",
    "cache_lookups_total",
    "llm_requests_total",
    "llm_latency_ms",
    "job_runs_total",
    "record_provider_request",
    "record_provider_error",
    "record_provider_retry",
    "record_cache_lookup",
    "set_budget_used",
    "record_llm_request",
    "record_job_run",
    "get_metrics_text",
]
