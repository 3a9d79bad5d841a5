"""FastAPI application for FixtureCast."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fixturecast.config import get_settings
from fixturecast.database import close_db, init_db
from fixturecast.routes.api import router as api_router
from fixturecast.routes.core import router as core_router
from fixturecast.scheduler import start_scheduler, stop_scheduler
from fixturecast.security import limiter
from fixturecast.services import close_services
from fixturecast.state import dashboard
from fixturecast.telemetry.sentry import init_sentry

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Only activates if SENTRY_DSN is set in environment
init_sentry()

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting FixtureCast...")
    await init_db()

    for team in filter(None, (t.strip() for t in settings.DEFAULT_FAVORITE_TEAMS.split(","))):
        dashboard.add_favorite(team)

    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    else:
        logger.info("Scheduler disabled (SCHEDULER_ENABLED=false)")

    yield

    logger.info("Shutting down FixtureCast...")
    stop_scheduler()
    await close_services()
    await close_db()


app = FastAPI(
    title="FixtureCast",
    description="Football fixtures, live scores and AI match predictions",
    version="1.0.0",
    lifespan=lifespan,
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.include_router(core_router)
app.include_router(api_router)


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("fixturecast.main:app", host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))


if __name__ == "__main__":
    run()
