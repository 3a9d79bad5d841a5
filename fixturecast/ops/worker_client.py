"""
Client for the scheduled-prediction cron worker and health report helpers.

Worker endpoints:
- GET /prediction-health
- GET /trigger-predictions?resume=true&wave=N&model=...
- GET /clear-predictions?date=YYYY-MM-DD&confirm=true
"""

import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from fixturecast.config import get_settings

logger = logging.getLogger(__name__)


class WorkerError(RuntimeError):
    """Cron worker request failed."""

    pass


class WorkerClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 60.0,
    ):
        self.base_url = (base_url or get_settings().WORKER_BASE_URL).rstrip("/")
        self.client = httpx.AsyncClient(
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def _get(self, path: str, params: Optional[dict] = None) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(url, params=params)
        except httpx.RequestError as e:
            raise WorkerError(f"Request to {path} failed: {e}")
        if response.status_code >= 400:
            raise WorkerError(f"{path} failed: {response.status_code} {response.reason_phrase}")
        try:
            return response.json()
        except ValueError:
            raise WorkerError(f"{path} returned a non-JSON payload")

    @property
    def trigger_url(self) -> str:
        return f"{self.base_url}/trigger-predictions"

    async def prediction_health(self) -> dict:
        return await self._get("/prediction-health")

    async def trigger_predictions(
        self,
        resume: bool = True,
        wave: int = 20,
        model: Optional[str] = None,
        force: bool = False,
    ) -> dict:
        params = {"resume": str(resume).lower(), "wave": wave}
        if model:
            params["model"] = model
        if force:
            params["force"] = "true"
        logger.info(f"Triggering predictions (resume={resume}, wave={wave}, model={model or 'default'})")
        return await self._get("/trigger-predictions", params)

    async def clear_predictions(self, date: Optional[str] = None) -> dict:
        date = date or datetime.now(timezone.utc).date().isoformat()
        logger.info(f"Clearing predictions for {date}")
        return await self._get("/clear-predictions", {"date": date, "confirm": "true"})

    async def close(self) -> None:
        await self.client.aclose()


def analyze_health(health: dict, trigger_url: str) -> dict:
    """Completion rate, issues and recommended follow-up commands from a health payload."""
    progress = health.get("progress") or {}
    keys = health.get("keys") or {}
    featured = progress.get("featuredMatches") or 0
    predicted = progress.get("predicted") or 0
    failures = progress.get("failures") or 0
    remaining = progress.get("remaining") or 0
    rate_pressure = health.get("ratePressure") or 0

    completion_rate = predicted / featured * 100 if featured else 0.0

    issues = []
    if failures > 0:
        issues.append(f"{failures} failures detected")
    if remaining > 0:
        issues.append(f"{remaining} matches still pending")
    if rate_pressure > 0:
        issues.append(f"Rate limit pressure: {rate_pressure}")
    if not keys.get("football", True):
        issues.append("Football API key missing - fixtures cannot be fetched")
    if not keys.get("gemini", True):
        issues.append("Gemini API key missing - predictions cannot be generated")

    recommendations = []
    if remaining > 0:
        recommendations.append(f"Run: curl -s '{trigger_url}?resume=true&wave=20' to complete remaining predictions")
    if failures > 0:
        recommendations.append(f"Run: curl -s '{trigger_url}?resume=true&wave=10' to retry failed predictions")
    if rate_pressure > 2:
        recommendations.append("Consider reducing wave size or increasing delays due to rate limiting")
    if featured and completion_rate >= 100 and failures == 0:
        recommendations.append("All predictions are complete and successful!")

    return {
        "completion_rate": round(completion_rate, 1),
        "issues": issues,
        "recommendations": recommendations,
    }


def check_probability_sums(predictions: list[dict], tolerance: int = 2) -> list[dict]:
    """Predictions whose 1X2 probabilities do not sum to ~100."""
    problems = []
    for item in predictions:
        prediction = item.get("prediction") or item
        total = sum(
            prediction.get(key) or 0
            for key in ("homeWinProbability", "drawProbability", "awayWinProbability")
        )
        if abs(total - 100) > tolerance:
            problems.append({"matchId": item.get("matchId"), "sum": total})
    return problems


def format_health_report(health: dict, analysis: dict) -> str:
    progress = health.get("progress") or {}
    lines = [
        "PREDICTION SYSTEM DIAGNOSTIC",
        "=" * 50,
        f"Date: {health.get('date', 'unknown')}",
        f"Status: {health.get('status', 'unknown')}",
        f"Model: {health.get('model', 'unknown')}",
        "",
        "Progress:",
        f"  Featured Matches: {progress.get('featuredMatches', 0)}",
        f"  Predicted: {progress.get('predicted', 0)}",
        f"  Remaining: {progress.get('remaining', 0)}",
        f"  Failures: {progress.get('failures', 0)}",
        f"  Completion: {'Complete' if progress.get('done') else 'In Progress'} ({analysis['completion_rate']}%)",
    ]
    if analysis["issues"]:
        lines += ["", "Issues:"] + [f"  - {issue}" for issue in analysis["issues"]]
    if analysis["recommendations"]:
        lines += ["", "Recommendations:"] + [f"  - {rec}" for rec in analysis["recommendations"]]
    suggestions = health.get("suggestions") or []
    if suggestions:
        lines += ["", "System Suggestions:"] + [f"  - {s}" for s in suggestions]
    lines.append("=" * 50)
    return "\n".join(lines)


async def fetch_app_predictions(
    base_url: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> list[dict]:
    """Stored predictions for the dashboard's upcoming fixtures, as {matchId, prediction}."""
    results = []
    async with httpx.AsyncClient(base_url=base_url.rstrip("/"), timeout=30, transport=transport) as client:
        response = await client.get("/fixtures/upcoming")
        if response.status_code != 200:
            raise WorkerError(f"/fixtures/upcoming failed: {response.status_code}")
        for fixture in response.json().get("fixtures") or []:
            match_id = str(fixture.get("id"))
            stored = await client.get(f"/predictions/{match_id}")
            if stored.status_code == 404:
                continue
            if stored.status_code != 200:
                logger.warning(f"Prediction lookup for {match_id} failed: {stored.status_code}")
                continue
            results.append({"matchId": match_id, "prediction": stored.json().get("prediction") or {}})
    return results
