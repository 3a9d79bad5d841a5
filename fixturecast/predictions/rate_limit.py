"""
Per-service limiter for LLM calls.

Calls to one service are serialized (hold `limiter.lock` around the request),
spaced by a minimum interval derived from the per-minute limit, capped per
UTC day, and paused after upstream rate-limit responses.
"""

import asyncio
import logging
import math
import time
from datetime import date, datetime, timezone
from typing import Callable, Optional

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)

QUOTA_BLOCK_SECONDS = 24 * 60 * 60


class RateLimitExceeded(RuntimeError):
    """The service is blocked for longer than a caller should wait."""

    def __init__(self, service: str, wait_seconds: float):
        super().__init__(
            f"{service} rate limit exceeded. Please try again in {math.ceil(wait_seconds / 60)} minutes."
        )
        self.service = service
        self.wait_seconds = wait_seconds


class ServiceRateLimiter:
    def __init__(
        self,
        service: str,
        requests_per_minute: int,
        daily_limit: int,
        base_backoff_seconds: float,
        max_backoff_seconds: float,
        min_interval_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep=asyncio.sleep,
    ):
        self.service = service
        self.requests_per_minute = requests_per_minute
        self.daily_limit = daily_limit
        self.base_backoff = base_backoff_seconds
        self.max_backoff = max_backoff_seconds
        if min_interval_seconds is None:
            # RPM 4 -> 15s spacing plus a small buffer
            min_interval_seconds = (math.ceil(60 / requests_per_minute) + 0.25) if requests_per_minute > 0 else 15.25
        self.min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self.lock = asyncio.Lock()

        self.minute_count = 0
        self.minute_started = clock()
        self.daily_count = 0
        self.day: date = datetime.now(timezone.utc).date()
        self.blocked_until = 0.0
        self.last_call_at: Optional[float] = None

    def _roll_windows(self) -> None:
        now = self._clock()
        today = datetime.now(timezone.utc).date()
        if today != self.day:
            logger.info(f"{self.service} daily counter reset")
            self.day = today
            self.daily_count = 0
        if now - self.minute_started >= 60:
            self.minute_started = now
            self.minute_count = 0

    def block(self, seconds: float) -> None:
        self.blocked_until = max(self.blocked_until, self._clock() + seconds)
        logger.warning(f"{self.service} blocked for {math.ceil(seconds / 60)} minutes")

    def blocked_for(self) -> float:
        return max(0.0, self.blocked_until - self._clock())

    def can_make_request(self) -> bool:
        self._roll_windows()
        if self.blocked_for() > 0:
            return False
        if self.daily_count >= self.daily_limit:
            return False
        return self.minute_count < self.requests_per_minute

    async def acquire(self) -> None:
        """
        Wait until a request may be issued and count it.

        Raises RateLimitExceeded when the daily limit is spent or the service
        is blocked for longer than the maximum backoff (e.g. quota exhaustion).
        """
        if self.last_call_at is not None:
            elapsed = self._clock() - self.last_call_at
            if elapsed < self.min_interval:
                await self._sleep(self.min_interval - elapsed)

        wait = self.blocked_for()
        if wait > self.max_backoff:
            raise RateLimitExceeded(self.service, wait)
        if wait > 0:
            logger.info(f"Waiting {math.ceil(wait)}s for {self.service} availability...")
            await self._sleep(wait)

        self._roll_windows()
        if self.daily_count >= self.daily_limit:
            logger.warning(f"{self.service} daily limit reached ({self.daily_limit})")
            self.block(QUOTA_BLOCK_SECONDS)
            raise RateLimitExceeded(self.service, QUOTA_BLOCK_SECONDS)

        if self.minute_count >= self.requests_per_minute:
            wait = max(0.0, 60 - (self._clock() - self.minute_started))
            logger.info(f"{self.service} per-minute limit reached, waiting {math.ceil(wait)}s")
            await self._sleep(wait)
            self._roll_windows()
            self.minute_started = self._clock()
            self.minute_count = 0

        self.minute_count += 1
        self.daily_count += 1
        self.last_call_at = self._clock()

    def handle_rate_limit(self, message: str = "", retry_after: Optional[float] = None, attempt: int = 0) -> float:
        """Block after an upstream rate-limit response; returns the block length in seconds."""
        if retry_after is not None:
            wait = retry_after
        elif "quota" in (message or "").lower():
            wait = QUOTA_BLOCK_SECONDS
        else:
            wait = min(self.base_backoff * (2**attempt), self.max_backoff)
        self.block(wait)
        return wait

    def status(self) -> dict:
        can_request = self.can_make_request()
        wait = self.blocked_for()
        return {
            "canMakeRequest": can_request,
            "requestsThisMinute": self.minute_count,
            "requestsToday": self.daily_count,
            "dailyLimit": self.daily_limit,
            "waitTimeMs": int(wait * 1000),
        }


_limiters: dict[str, ServiceRateLimiter] = {}


def get_limiter(service: str = "gemini") -> ServiceRateLimiter:
    """Process-wide limiter per service."""
    limiter = _limiters.get(service)
    if limiter is None:
        settings = get_settings()
        limiter = ServiceRateLimiter(
            service,
            requests_per_minute=settings.GEMINI_REQUESTS_PER_MINUTE,
            daily_limit=settings.GEMINI_DAILY_LIMIT,
            base_backoff_seconds=settings.GEMINI_BACKOFF_MS / 1000,
            max_backoff_seconds=90.0,
        )
        _limiters[service] = limiter
    return limiter


def get_all_statuses() -> dict[str, dict]:
    return {name: limiter.status() for name, limiter in _limiters.items()}
