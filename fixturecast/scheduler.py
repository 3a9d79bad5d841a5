"""Background scheduler: live scores, fixture list and result checking."""

import logging
import os
import time
import uuid

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from fixturecast.config import get_settings
from fixturecast.database import AsyncSessionLocal
from fixturecast.etl.live import get_live_matches
from fixturecast.predictions.store import check_and_update_match_results
from fixturecast.services import get_api_client, get_data_service
from fixturecast.state import Alert, dashboard
from fixturecast.telemetry import record_job_run
from fixturecast.telemetry.sentry import capture_exception as sentry_capture_exception
from fixturecast.telemetry.sentry import sentry_job_context

logger = logging.getLogger(__name__)

# Flag to prevent multiple scheduler instances (e.g., with --reload)
_scheduler_started = False
scheduler = AsyncIOScheduler()


def _goal_alerts(previous: dict, current: list) -> list[Alert]:
    """Alerts for score changes in live matches involving a favorite team."""
    alerts = []
    favorites = set(dashboard.favorite_teams)
    for match in current:
        if match.home_team not in favorites and match.away_team not in favorites:
            continue
        before = previous.get(match.id)
        if before is None:
            continue
        if (before.home_score, before.away_score) != (match.home_score, match.away_score):
            alerts.append(
                Alert(
                    id=uuid.uuid4().hex,
                    message=f"GOAL! {match.home_team} {match.home_score}-{match.away_score} {match.away_team}",
                    kind="goal",
                    match_id=match.id,
                )
            )
    return alerts


async def live_refresh() -> dict:
    """Refresh in-play matches (every LIVE_POLL_SECONDS)."""
    start_time = time.time()
    with sentry_job_context("live_refresh"):
        try:
            previous = {m.id: m for m in dashboard.live_matches}
            matches = await get_live_matches(get_api_client())
            for alert in _goal_alerts(previous, matches):
                dashboard.add_alert(alert)
            dashboard.set_live_matches(matches)
            record_job_run(job="live_refresh", status="ok", duration_ms=(time.time() - start_time) * 1000)
            return {"live": len(matches)}
        except Exception as e:
            logger.error(f"Live refresh failed: {e}")
            sentry_capture_exception(e, job_id="live_refresh")
            record_job_run(job="live_refresh", status="error", duration_ms=(time.time() - start_time) * 1000)
            return {"error": str(e)}


async def fixtures_refresh() -> dict:
    """Reload the upcoming fixture list (hourly)."""
    start_time = time.time()
    with sentry_job_context("fixtures_refresh"):
        try:
            fixtures = await get_data_service().get_all_upcoming_fixtures()
            dashboard.set_fixtures(fixtures)
            logger.info(f"Fixtures refresh complete: {len(fixtures)} fixtures")
            record_job_run(job="fixtures_refresh", status="ok", duration_ms=(time.time() - start_time) * 1000)
            return {"fixtures": len(fixtures)}
        except Exception as e:
            logger.error(f"Fixtures refresh failed: {e}")
            sentry_capture_exception(e, job_id="fixtures_refresh")
            record_job_run(job="fixtures_refresh", status="error", duration_ms=(time.time() - start_time) * 1000)
            return {"error": str(e)}


async def results_check() -> dict:
    """Score stored predictions against recently finished matches (every 15 min)."""
    start_time = time.time()
    with sentry_job_context("results_check"):
        try:
            finished = await get_data_service().get_finished_fixtures()
            async with AsyncSessionLocal() as session:
                written = await check_and_update_match_results(session, finished)
            if written:
                logger.info(f"Results check: {written} predictions scored")
            record_job_run(job="results_check", status="ok", duration_ms=(time.time() - start_time) * 1000)
            return {"checked": len(finished), "scored": written}
        except Exception as e:
            logger.error(f"Results check failed: {e}")
            sentry_capture_exception(e, job_id="results_check")
            record_job_run(job="results_check", status="error", duration_ms=(time.time() - start_time) * 1000)
            return {"error": str(e)}


def start_scheduler():
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload or multiple workers.
    """
    global _scheduler_started
    settings = get_settings()

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    scheduler.add_job(
        live_refresh,
        trigger=IntervalTrigger(seconds=settings.LIVE_POLL_SECONDS),
        id="live_refresh",
        name="Live matches refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        fixtures_refresh,
        trigger=IntervalTrigger(minutes=settings.FIXTURES_REFRESH_MINUTES),
        id="fixtures_refresh",
        name="Upcoming fixtures refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        results_check,
        trigger=IntervalTrigger(minutes=settings.RESULTS_CHECK_MINUTES),
        id="results_check",
        name="Prediction results check",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    _scheduler_started = True

    logger.info(
        f"Scheduler started:\n"
        f"  - Live refresh: Every {settings.LIVE_POLL_SECONDS}s\n"
        f"  - Fixtures refresh: Every {settings.FIXTURES_REFRESH_MINUTES} min\n"
        f"  - Results check: Every {settings.RESULTS_CHECK_MINUTES} min"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")
