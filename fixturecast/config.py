"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (predictions + accuracy records)
    DATABASE_URL: str = "sqlite:///./fixturecast.db"

    # API-Football (API-Sports direct, RapidAPI, or a proxy in front of either)
    API_FOOTBALL_KEY: str = ""
    API_FOOTBALL_HOST: str = "v3.football.api-sports.io"
    FOOTBALL_PROXY_URL: str = ""  # e.g. http://localhost:3001/api (no key header sent)
    API_TIMEOUT_SECONDS: float = 30.0
    API_REQUEST_DELAY_SECONDS: float = 0.5  # Pacing after each successful call

    # Retry policy for 429 / 5xx / transport errors
    API_MAX_RETRIES: int = 3
    API_BACKOFF_BASE_SECONDS: float = 1.0
    API_BACKOFF_JITTER_SECONDS: float = 0.3

    # Response cache
    CACHE_TTL_SECONDS: int = 3600  # 1 hour
    TEAM_CACHE_TTL_SECONDS: int = 43200  # 12 hours for /teams* endpoints

    # Soft daily budget (advisory, consulted by batch callers)
    API_DAILY_BUDGET: int = 75000
    API_BUDGET_SOFT_LIMIT: float = 0.8

    # Gemini LLM
    GEMINI_API_KEY: str = ""
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_TOKENS: int = 2048
    GEMINI_TEMPERATURE: float = 0.4
    GEMINI_TOP_P: float = 0.9
    GEMINI_TIMEOUT_SECONDS: float = 60.0
    GEMINI_RETRIES: int = 2
    GEMINI_BACKOFF_MS: int = 1500
    GEMINI_REQUESTS_PER_MINUTE: int = 4
    GEMINI_DAILY_LIMIT: int = 500

    # Rate limiting for our own API
    RATE_LIMIT_PER_MINUTE: str = "60/minute"

    # API Security
    API_KEY: str = ""  # Optional API key for admin endpoints
    API_KEY_HEADER: str = "X-API-Key"
    METRICS_BEARER_TOKEN: str = ""

    # Ops endpoints
    WORKER_BASE_URL: str = "https://fixturecast-cron-worker.btltech.workers.dev"
    APP_BASE_URL: str = "http://localhost:8000"

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    LIVE_POLL_SECONDS: int = 30
    FIXTURES_REFRESH_MINUTES: int = 60
    RESULTS_CHECK_MINUTES: int = 15

    # Favorite teams seeded at startup (comma separated)
    DEFAULT_FAVORITE_TEAMS: str = ""

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
