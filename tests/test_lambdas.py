"""Tests for the scheduled Lambda handlers (app callbacks mocked with MockTransport)."""

import json

import httpx
import pytest

from fixturecast.lambdas import match_check, prediction_update


class TestPredictionUpdate:
    @pytest.mark.asyncio
    async def test_batches_of_ten(self):
        batches = []

        def handler(request):
            body = json.loads(request.content)
            batches.append(body)
            return httpx.Response(
                200, json={"processed": len(body["matchIds"]), "total": len(body["matchIds"]), "errors": []}
            )

        event = {"matchIds": [str(i) for i in range(23)], "forceUpdate": True}
        result = await prediction_update.run(event, transport=httpx.MockTransport(handler))

        assert result["statusCode"] == 200
        body = json.loads(result["body"])
        assert body["success"] is True
        assert body["processedMatches"] == 23
        assert body["totalMatches"] == 23
        assert body["errors"] == 0
        assert [len(b["matchIds"]) for b in batches] == [10, 10, 3]
        assert all(b["forceUpdate"] for b in batches)

    @pytest.mark.asyncio
    async def test_uses_upcoming_fixtures_filtered_by_league(self):
        posted = []

        def handler(request):
            if request.url.path == "/fixtures/upcoming":
                fixtures = [{"id": "1", "league_id": 39}, {"id": "2", "league_id": 140}]
                return httpx.Response(200, json={"fixtures": fixtures, "count": 2})
            posted.append(json.loads(request.content))
            return httpx.Response(200, json={"processed": 1, "total": 1, "errors": []})

        result = await prediction_update.run({"leagueIds": [39]}, transport=httpx.MockTransport(handler))
        assert json.loads(result["body"])["totalMatches"] == 1
        assert posted[0]["matchIds"] == ["1"]

    @pytest.mark.asyncio
    async def test_failed_batch_counts_every_match(self, caplog):
        def handler(request):
            return httpx.Response(500)

        result = await prediction_update.run({"matchIds": ["1", "2"]}, transport=httpx.MockTransport(handler))
        body = json.loads(result["body"])
        assert result["statusCode"] == 200
        assert body["processedMatches"] == 0
        assert body["errors"] == 2
        assert "[ALERT] prediction-update" in caplog.text

    @pytest.mark.asyncio
    async def test_fixture_listing_failure_is_500(self):
        result = await prediction_update.run({}, transport=httpx.MockTransport(lambda r: httpx.Response(503)))
        assert result["statusCode"] == 500
        assert json.loads(result["body"])["success"] is False


class TestMatchCheck:
    @pytest.mark.asyncio
    async def test_batches_of_fifteen_and_totals(self):
        batches = []

        def handler(request):
            ids = json.loads(request.content)["matchIds"]
            batches.append(ids)
            return httpx.Response(
                200, json={"checked": len(ids), "updated": 1, "live": 2, "errors": []}
            )

        result = await match_check.run(
            {"matchIds": [str(i) for i in range(31)]}, transport=httpx.MockTransport(handler)
        )
        body = json.loads(result["body"])
        assert [len(b) for b in batches] == [15, 15, 1]
        assert body["checkedMatches"] == 31
        assert body["updatedMatches"] == 3
        assert body["liveMatches"] == 6
        assert body["errors"] == 0

    @pytest.mark.asyncio
    async def test_error_rate_alert_threshold(self, caplog):
        def handler(request):
            ids = json.loads(request.content)["matchIds"]
            errors = [{"matchId": ids[0], "error": "Match not found"}]
            return httpx.Response(200, json={"checked": len(ids) - 1, "updated": 0, "live": 0, "errors": errors})

        ids = [str(i) for i in range(10)]
        result = await match_check.run({"matchIds": ids}, transport=httpx.MockTransport(handler))
        assert json.loads(result["body"])["errors"] == 1
        # 1 of 10 is under the 15% threshold
        assert "[ALERT]" not in caplog.text
