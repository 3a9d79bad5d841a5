"""Confidence percentage for a prediction, from track record plus match context."""

import math
from dataclasses import dataclass
from typing import Optional

from fixturecast.predictions.accuracy import AccuracyStats
from fixturecast.predictions.models import Prediction

HIGH_QUALITY_LEAGUES = {
    "Premier League",
    "La Liga",
    "Serie A",
    "Bundesliga",
    "Ligue 1",
    "UEFA Champions League",
    "UEFA Europa League",
}

TYPE_WEIGHTS = {
    "outcome": 0.4,
    "btts": 0.2,
    "goal_line": 0.2,
    "score_range": 0.1,
    "clean_sheet": 0.1,
}


@dataclass
class ConfidenceContext:
    league: str
    is_rivalry: bool = False
    is_prime_time: bool = False
    has_recent_form: bool = False
    has_head_to_head: bool = False


@dataclass
class ConfidenceAnalysis:
    percentage: int
    level: str  # High, Medium, Low
    reason: str


def is_high_quality_league(league: str) -> bool:
    return league in HIGH_QUALITY_LEAGUES


def confidence_level(percentage: float) -> str:
    if percentage >= 75:
        return "High"
    if percentage >= 60:
        return "Medium"
    return "Low"


def prediction_type_accuracy(prediction: Prediction, stats: AccuracyStats) -> float:
    """Track record weighted by the markets this prediction actually carries."""
    total = stats.total_predictions
    if total <= 0:
        return 50.0

    weighted = stats.correct_outcomes / total * 100 * TYPE_WEIGHTS["outcome"]
    if prediction.btts:
        weighted += stats.correct_btts / total * 100 * TYPE_WEIGHTS["btts"]
    if prediction.goal_line:
        weighted += stats.correct_goal_line / total * 100 * TYPE_WEIGHTS["goal_line"]
    if prediction.score_range:
        weighted += stats.correct_score_range / total * 100 * TYPE_WEIGHTS["score_range"]
    if prediction.clean_sheet:
        weighted += stats.correct_clean_sheet / total * 100 * TYPE_WEIGHTS["clean_sheet"]
    return weighted


def calculate_prediction_confidence(
    prediction: Prediction,
    stats: AccuracyStats,
    context: Optional[ConfidenceContext] = None,
) -> ConfidenceAnalysis:
    base = float(stats.overall_accuracy) if stats.total_predictions else 50.0

    last10 = stats.recent_accuracy.get("last10", 0)
    if last10 > 0:
        base = (base + last10) / 2

    base = (base + prediction_type_accuracy(prediction, stats)) / 2

    multiplier = 1.0
    reasons = []
    if context:
        if is_high_quality_league(context.league):
            multiplier += 0.1
            reasons.append("high-quality league data")
        if context.is_rivalry:
            multiplier += 0.05
            reasons.append("rivalry match patterns")
        if context.is_prime_time:
            multiplier += 0.05
            reasons.append("prime time performance")
        if context.has_recent_form:
            multiplier += 0.1
            reasons.append("recent form data")
        if context.has_head_to_head:
            multiplier += 0.1
            reasons.append("head-to-head history")

    final = min(95.0, max(25.0, base * multiplier))

    reason = (
        f"Based on {stats.total_predictions} historical predictions "
        f"with {stats.overall_accuracy}% accuracy"
    )
    if reasons:
        reason += f" and enhanced by {', '.join(reasons)}"
    elif last10 > stats.overall_accuracy:
        reason += f" with improving recent performance ({last10}% in last 10)"

    return ConfidenceAnalysis(
        percentage=int(math.floor(final + 0.5)),
        level=confidence_level(final),
        reason=reason,
    )


def format_confidence_display(percentage: int) -> str:
    return f"{confidence_level(percentage)} Confidence ({percentage}%)"
