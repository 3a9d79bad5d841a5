"""
Prediction persistence and result scoring.

Predictions are cached per fixture for the UTC day they were generated.
Finished fixtures with a stored prediction are scored once into
AccuracyRecord rows, which feed the accuracy stats and confidence.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from fixturecast.etl.base import Match
from fixturecast.models import AccuracyRecord, StoredPrediction
from fixturecast.predictions.accuracy import (
    AccuracyStats,
    MarketAccuracy,
    calculate_accuracy_stats,
    calculate_prediction_accuracy,
    compute_calibration_metrics,
)
from fixturecast.predictions.models import Prediction
from fixturecast.state import _incr

logger = logging.getLogger(__name__)

REGENERATE_WITHIN_HOURS = 2
REGENERATE_OLDER_THAN_HOURS = 4


def _naive_utc(value: datetime) -> datetime:
    """DB columns are plain DateTime holding naive UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_prediction_valid(created_at: datetime, now: Optional[datetime] = None) -> bool:
    """A stored prediction is served only on the UTC day it was created."""
    now = _naive_utc(now) if now else _utcnow()
    return _naive_utc(created_at).date() == now.date()


def should_regenerate_prediction(
    match_date: datetime,
    created_at: datetime,
    now: Optional[datetime] = None,
) -> bool:
    """Kickoff is less than 2h away and the prediction is more than 4h old."""
    now = _naive_utc(now) if now else _utcnow()
    hours_until_match = (_naive_utc(match_date) - now).total_seconds() / 3600
    if hours_until_match >= REGENERATE_WITHIN_HOURS:
        return False
    age_hours = (now - _naive_utc(created_at)).total_seconds() / 3600
    return age_hours > REGENERATE_OLDER_THAN_HOURS


async def get_prediction(
    session: AsyncSession,
    match_id: str,
    now: Optional[datetime] = None,
) -> Optional[StoredPrediction]:
    """
    Today's stored prediction for a fixture, or None.

    Stale rows for fixtures that have not kicked off are deleted. Rows for
    fixtures already under way are kept so the results checker can score them.
    """
    row = await session.get(StoredPrediction, match_id)
    if row is None:
        _incr("predictions_cache_miss")
        return None

    if is_prediction_valid(row.created_at, now):
        _incr("predictions_cache_hit")
        return row

    _incr("predictions_cache_miss")
    current = _naive_utc(now) if now else _utcnow()
    if _naive_utc(row.match_date) > current:
        logger.info(f"Dropping stale prediction for match {match_id} (created {row.created_at.isoformat()})")
        await session.delete(row)
        await session.commit()
    return None


async def get_kicked_off_prediction(
    session: AsyncSession,
    match: Match,
    now: Optional[datetime] = None,
) -> Optional[StoredPrediction]:
    """Stored prediction for a fixture already under way; it is final and never replaced."""
    current = _naive_utc(now) if now else _utcnow()
    if _naive_utc(match.date) > current:
        return None
    return await session.get(StoredPrediction, match.id)


async def save_prediction(
    session: AsyncSession,
    match: Match,
    prediction: Prediction,
    model_version: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StoredPrediction:
    """Insert or replace the stored prediction for a fixture."""
    row = await session.get(StoredPrediction, match.id)
    if row is None:
        row = StoredPrediction(
            match_id=match.id,
            home_team=match.home_team,
            away_team=match.away_team,
            league=match.league,
            match_date=_naive_utc(match.date),
            payload=prediction.to_payload(),
        )
    else:
        row.match_date = _naive_utc(match.date)
        row.payload = prediction.to_payload()

    row.model_version = model_version
    row.created_at = _naive_utc(now) if now else _utcnow()
    session.add(row)
    await session.commit()
    await session.refresh(row)
    return row


async def delete_all_predictions(session: AsyncSession) -> int:
    rows = (await session.execute(select(StoredPrediction))).scalars().all()
    for row in rows:
        await session.delete(row)
    await session.commit()
    return len(rows)


async def list_accuracy_records(session: AsyncSession) -> list[AccuracyRecord]:
    """All scored predictions, oldest first."""
    result = await session.execute(select(AccuracyRecord).order_by(AccuracyRecord.created_at, AccuracyRecord.id))
    return list(result.scalars().all())


async def get_accuracy_stats(session: AsyncSession) -> AccuracyStats:
    records = await list_accuracy_records(session)
    return calculate_accuracy_stats([MarketAccuracy.from_dict(r.accuracy) for r in records])


async def check_and_update_match_results(session: AsyncSession, results: list[Match]) -> int:
    """
    Score finished fixtures that have a stored prediction.

    Each fixture is scored at most once. Returns the number of new
    accuracy records written.
    """
    written = 0
    for match in results:
        if match.status != "FT" or match.home_score is None or match.away_score is None:
            continue

        existing = await session.execute(select(AccuracyRecord).where(AccuracyRecord.match_id == match.id))
        if existing.scalars().first() is not None:
            continue

        stored = await session.get(StoredPrediction, match.id)
        if stored is None:
            continue

        prediction = Prediction.model_validate(stored.payload)
        accuracy = calculate_prediction_accuracy(prediction, match.home_score, match.away_score)
        calibration = compute_calibration_metrics(prediction, match.home_score, match.away_score)

        session.add(
            AccuracyRecord(
                match_id=match.id,
                home_team=stored.home_team,
                away_team=stored.away_team,
                league=stored.league,
                match_date=stored.match_date,
                prediction_time=stored.created_at,
                prediction=stored.payload,
                home_score=match.home_score,
                away_score=match.away_score,
                accuracy=accuracy.to_dict(),
                calibration=calibration,
            )
        )
        written += 1
        logger.info(
            f"Match result verified: {stored.home_team} vs {stored.away_team} "
            f"{match.home_score}-{match.away_score} (outcome correct: {accuracy.outcome})"
        )

    if written:
        await session.commit()
    return written
