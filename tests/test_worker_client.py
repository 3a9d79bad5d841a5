"""Tests for the cron worker client and diagnostic helpers."""

import httpx
import pytest

from fixturecast.ops.worker_client import (
    WorkerClient,
    WorkerError,
    analyze_health,
    check_probability_sums,
    fetch_app_predictions,
    format_health_report,
)

TRIGGER = "http://worker.test/trigger-predictions"


def health(featured=10, predicted=10, remaining=0, failures=0, rate_pressure=0, keys=None):
    return {
        "date": "2025-09-20",
        "status": "ok",
        "model": "gemini-2.5-flash",
        "keys": keys or {"football": True, "gemini": True, "deepseek": False},
        "progress": {
            "totalMatches": featured + 5,
            "featuredMatches": featured,
            "predicted": predicted,
            "remaining": remaining,
            "failures": failures,
            "done": remaining == 0,
        },
        "ratePressure": rate_pressure,
        "suggestions": [],
    }


class TestAnalyzeHealth:
    def test_all_complete(self):
        analysis = analyze_health(health(), TRIGGER)
        assert analysis["completion_rate"] == 100.0
        assert analysis["issues"] == []
        assert analysis["recommendations"] == ["All predictions are complete and successful!"]

    def test_remaining_and_failures(self):
        analysis = analyze_health(health(featured=20, predicted=12, remaining=6, failures=2), TRIGGER)
        assert analysis["completion_rate"] == 60.0
        assert "2 failures detected" in analysis["issues"]
        assert "6 matches still pending" in analysis["issues"]
        assert any("wave=20" in r for r in analysis["recommendations"])
        assert any("wave=10" in r for r in analysis["recommendations"])

    def test_rate_pressure(self):
        analysis = analyze_health(health(rate_pressure=3), TRIGGER)
        assert "Rate limit pressure: 3" in analysis["issues"]
        assert any("reducing wave size" in r for r in analysis["recommendations"])

    def test_missing_keys(self):
        analysis = analyze_health(health(keys={"football": False, "gemini": False}), TRIGGER)
        assert len([i for i in analysis["issues"] if "key missing" in i]) == 2

    def test_no_featured_matches(self):
        assert analyze_health(health(featured=0, predicted=0), TRIGGER)["completion_rate"] == 0.0

    def test_report_lists_issues(self):
        h = health(featured=20, predicted=12, remaining=8)
        report = format_health_report(h, analyze_health(h, TRIGGER))
        assert "Featured Matches: 20" in report
        assert "8 matches still pending" in report


class TestProbabilitySums:
    def test_flags_bad_sums(self):
        predictions = [
            {"matchId": "1", "prediction": {"homeWinProbability": 50, "drawProbability": 25, "awayWinProbability": 25}},
            {"matchId": "2", "prediction": {"homeWinProbability": 60, "drawProbability": 30, "awayWinProbability": 30}},
            {"matchId": "3", "prediction": {"homeWinProbability": 33, "drawProbability": 33, "awayWinProbability": 33}},
        ]
        assert check_probability_sums(predictions) == [{"matchId": "2", "sum": 120}]


class TestWorkerClient:
    @pytest.mark.asyncio
    async def test_trigger_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        client = WorkerClient(transport=httpx.MockTransport(handler))
        try:
            assert await client.trigger_predictions(wave=10, model="deepseek-chat") == {"ok": True}
        finally:
            await client.close()

        assert seen[0].url.path == "/trigger-predictions"
        assert seen[0].url.params["resume"] == "true"
        assert seen[0].url.params["wave"] == "10"
        assert seen[0].url.params["model"] == "deepseek-chat"
        assert "force" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_clear_requires_confirm_flag(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"success": True, "clearedKeys": ["a"], "date": "2025-09-20"})

        client = WorkerClient(transport=httpx.MockTransport(handler))
        try:
            result = await client.clear_predictions("2025-09-20")
        finally:
            await client.close()
        assert result["success"]
        assert seen[0].url.params["confirm"] == "true"
        assert seen[0].url.params["date"] == "2025-09-20"

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        client = WorkerClient(transport=httpx.MockTransport(lambda r: httpx.Response(500)))
        try:
            with pytest.raises(WorkerError):
                await client.prediction_health()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_fetch_app_predictions_skips_missing(self):
        def handler(request):
            if request.url.path == "/fixtures/upcoming":
                return httpx.Response(200, json={"fixtures": [{"id": "1"}, {"id": "2"}], "count": 2})
            if request.url.path == "/predictions/1":
                return httpx.Response(200, json={"match_id": "1", "prediction": {"homeWinProbability": 50}})
            return httpx.Response(404, json={"detail": "No prediction for this match today"})

        predictions = await fetch_app_predictions("http://app.test", transport=httpx.MockTransport(handler))
        assert predictions == [{"matchId": "1", "prediction": {"homeWinProbability": 50}}]
