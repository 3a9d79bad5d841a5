"""Database models using SQLModel."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

# Timestamps are stored as naive UTC.


class StoredPrediction(SQLModel, table=True):
    """Latest generated prediction per fixture (valid for the UTC day it was created)."""

    __tablename__ = "predictions"

    match_id: str = Field(primary_key=True, max_length=50, description="API-Football fixture ID")
    home_team: str = Field(max_length=255)
    away_team: str = Field(max_length=255)
    league: str = Field(max_length=255)
    match_date: datetime = Field(sa_type=DateTime, index=True, description="Kickoff (UTC)")
    payload: dict = Field(sa_column=Column(JSON, nullable=False), description="Prediction in wire shape")
    model_version: Optional[str] = Field(default=None, max_length=100)
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_type=DateTime, index=True)


class AccuracyRecord(SQLModel, table=True):
    """Scored prediction for a finished match; at most one per fixture."""

    __tablename__ = "accuracy_records"

    id: Optional[int] = Field(default=None, primary_key=True)
    match_id: str = Field(unique=True, index=True, max_length=50)
    home_team: str = Field(max_length=255)
    away_team: str = Field(max_length=255)
    league: str = Field(max_length=255)
    match_date: datetime = Field(sa_type=DateTime)
    prediction_time: datetime = Field(sa_type=DateTime, description="When the scored prediction was generated")
    prediction: dict = Field(sa_column=Column(JSON, nullable=False))
    home_score: int
    away_score: int
    accuracy: dict = Field(sa_column=Column(JSON, nullable=False), description="Per-market hit/miss")
    calibration: Optional[dict] = Field(default=None, sa_column=Column(JSON))
    created_at: datetime = Field(default_factory=datetime.utcnow, sa_type=DateTime, index=True)
