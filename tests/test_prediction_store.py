"""Tests for prediction persistence, staleness rules and result scoring."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import DateTime

from fixturecast.models import AccuracyRecord, StoredPrediction
from fixturecast.predictions.models import Prediction
from fixturecast.predictions.service import PredictionService
from fixturecast.predictions.store import (
    check_and_update_match_results,
    delete_all_predictions,
    get_accuracy_stats,
    get_prediction,
    is_prediction_valid,
    list_accuracy_records,
    save_prediction,
    should_regenerate_prediction,
)
from fixturecast.state import _telemetry, dashboard

NOON = datetime(2025, 9, 20, 12, 0)


class TestStalenessRules:
    def test_valid_same_utc_day(self):
        assert is_prediction_valid(datetime(2025, 9, 20, 0, 5), now=datetime(2025, 9, 20, 23, 55))

    def test_invalid_next_day(self):
        assert not is_prediction_valid(datetime(2025, 9, 19, 23, 55), now=datetime(2025, 9, 20, 0, 5))

    def test_aware_datetimes_compared_in_utc(self):
        created = datetime(2025, 9, 20, 1, 0, tzinfo=timezone(timedelta(hours=3)))  # 2025-09-19 22:00 UTC
        assert not is_prediction_valid(created, now=NOON)

    def test_regenerate_near_kickoff_when_old(self):
        assert should_regenerate_prediction(NOON + timedelta(hours=1), NOON - timedelta(hours=5), now=NOON)

    def test_keep_recent_near_kickoff(self):
        assert not should_regenerate_prediction(NOON + timedelta(hours=1), NOON - timedelta(hours=3), now=NOON)

    def test_keep_when_kickoff_far(self):
        assert not should_regenerate_prediction(NOON + timedelta(hours=3), NOON - timedelta(hours=10), now=NOON)


class TestStore:
    @pytest.mark.asyncio
    async def test_save_and_read_same_day(self, db_session, make_match, prediction_payload):
        match = make_match(date=NOON + timedelta(hours=6))
        prediction = Prediction.model_validate(prediction_payload)
        await save_prediction(db_session, match, prediction, model_version="gemini-test", now=NOON)

        hits = _telemetry["predictions_cache_hit"]
        row = await get_prediction(db_session, match.id, now=NOON + timedelta(hours=2))
        assert row is not None
        assert row.payload["homeWinProbability"] == 50
        assert row.payload["goalLine"]["overProbability"] == 60
        assert row.model_version == "gemini-test"
        assert _telemetry["predictions_cache_hit"] == hits + 1

    @pytest.mark.asyncio
    async def test_save_replaces_existing(self, db_session, make_match, prediction_payload):
        match = make_match(date=NOON + timedelta(hours=6))
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload), now=NOON)
        prediction_payload["predictedScoreline"] = "0-0"
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload), now=NOON)

        row = await get_prediction(db_session, match.id, now=NOON)
        assert row.payload["predictedScoreline"] == "0-0"

    @pytest.mark.asyncio
    async def test_stale_row_for_future_match_deleted(self, db_session, make_match, prediction_payload):
        match = make_match(date=NOON + timedelta(days=3))
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload), now=NOON)

        assert await get_prediction(db_session, match.id, now=NOON + timedelta(days=1)) is None
        assert await db_session.get(StoredPrediction, match.id) is None

    @pytest.mark.asyncio
    async def test_stale_row_for_started_match_kept(self, db_session, make_match, prediction_payload):
        match = make_match(date=NOON + timedelta(hours=10))
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload), now=NOON)

        assert await get_prediction(db_session, match.id, now=NOON + timedelta(days=1)) is None
        assert await db_session.get(StoredPrediction, match.id) is not None

    def test_datetime_columns_are_plain_datetime(self):
        for table in (StoredPrediction.__table__, AccuracyRecord.__table__):
            for column in table.columns:
                if isinstance(column.type, DateTime):
                    assert type(column.type) is DateTime, column.name
                    assert column.type.timezone is False

    @pytest.mark.asyncio
    async def test_aware_kickoff_round_trips_as_naive_utc(self, db_session, make_match, prediction_payload):
        kickoff = datetime(2025, 9, 20, 21, 0, tzinfo=timezone(timedelta(hours=2)))
        match = make_match(date=kickoff)
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload), now=NOON)
        db_session.expire_all()

        row = await db_session.get(StoredPrediction, match.id)
        assert row.match_date == datetime(2025, 9, 20, 19, 0)
        assert row.created_at == NOON

        finished = make_match(date=kickoff, status="FT", home_score=1, away_score=1)
        assert await check_and_update_match_results(db_session, [finished]) == 1
        record = (await list_accuracy_records(db_session))[0]
        assert record.prediction_time == NOON

    @pytest.mark.asyncio
    async def test_missing(self, db_session):
        assert await get_prediction(db_session, "nope") is None

    @pytest.mark.asyncio
    async def test_delete_all(self, db_session, make_match, prediction_payload):
        prediction = Prediction.model_validate(prediction_payload)
        await save_prediction(db_session, make_match(match_id="1"), prediction)
        await save_prediction(db_session, make_match(match_id="2"), prediction)
        assert await delete_all_predictions(db_session) == 2


class TestResultScoring:
    @pytest.mark.asyncio
    async def test_scores_finished_match_once(self, db_session, make_match, prediction_payload):
        await save_prediction(db_session, make_match(match_id="500"), Prediction.model_validate(prediction_payload))
        finished = make_match(match_id="500", status="FT", home_score=2, away_score=1)

        assert await check_and_update_match_results(db_session, [finished]) == 1
        assert await check_and_update_match_results(db_session, [finished]) == 0

        records = await list_accuracy_records(db_session)
        assert len(records) == 1
        assert records[0].accuracy["outcome"] is True
        assert records[0].accuracy["scoreline"] is True
        assert records[0].calibration["actualOutcome"] == "home"

        stats = await get_accuracy_stats(db_session)
        assert stats.total_predictions == 1
        assert stats.correct_outcomes == 1
        assert stats.overall_accuracy == 100

    @pytest.mark.asyncio
    async def test_skips_unfinished_and_unpredicted(self, db_session, make_match, prediction_payload):
        await save_prediction(db_session, make_match(match_id="600"), Prediction.model_validate(prediction_payload))
        in_play = make_match(match_id="600", status="2H", home_score=1, away_score=0)
        no_prediction = make_match(match_id="601", status="FT", home_score=0, away_score=0)

        assert await check_and_update_match_results(db_session, [in_play, no_prediction]) == 0
        assert await list_accuracy_records(db_session) == []


def _data_service():
    ds = MagicMock()
    ds.get_league_id.return_value = 39
    ds.get_league_table = AsyncMock(return_value=[])
    ds.get_head_to_head = AsyncMock(return_value=[])
    ds.get_team_stats = AsyncMock(return_value=None)
    ds.get_injuries = AsyncMock(return_value=[])
    ds.get_recent_team_form = AsyncMock(return_value=[])
    return ds


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_stored_prediction_served_without_llm(self, db_session, make_match, prediction_payload):
        match = make_match(date=datetime.now(timezone.utc) + timedelta(days=2))
        await save_prediction(db_session, match, Prediction.model_validate(prediction_payload))

        llm = MagicMock()
        llm.generate = AsyncMock()
        service = PredictionService(_data_service(), llm=llm, limiter=MagicMock())
        payload = await service.get_or_create(db_session, match)

        assert payload["predictedScoreline"] == "2-1"
        llm.generate.assert_not_called()
        assert dashboard.predictions[match.id] == payload

    @pytest.mark.asyncio
    async def test_generates_saves_and_alerts_favorites(self, db_session, make_match, prediction_payload):
        match = make_match(date=datetime.now(timezone.utc) + timedelta(days=2))
        dashboard.add_favorite("Arsenal")

        service = PredictionService(_data_service(), limiter=MagicMock())
        service.generate = AsyncMock(return_value=Prediction.model_validate(prediction_payload))
        payload = await service.get_or_create(db_session, match)

        assert payload["homeWinProbability"] == 50
        assert (await db_session.get(StoredPrediction, match.id)) is not None
        assert dashboard.alerts[-1].kind == "prediction"
        assert dashboard.alerts[-1].match_id == match.id
        await service.close()

    @pytest.mark.asyncio
    async def test_kicked_off_prediction_never_regenerated(self, db_session, make_match, prediction_payload):
        kickoff = datetime.now(timezone.utc) - timedelta(days=1)
        match = make_match(date=kickoff)
        await save_prediction(
            db_session, match, Prediction.model_validate(prediction_payload), now=kickoff - timedelta(hours=6)
        )

        service = PredictionService(_data_service(), limiter=MagicMock())
        service.generate = AsyncMock()
        payload = await service.get_or_create(db_session, match, force=True)

        assert payload["predictedScoreline"] == "2-1"
        service.generate.assert_not_awaited()
        row = await db_session.get(StoredPrediction, match.id)
        assert row.payload["predictedScoreline"] == "2-1"
        assert row.created_at == (kickoff - timedelta(hours=6)).replace(tzinfo=None)
        await service.close()
