"""
Prediction accuracy scoring.

Per-market hit/miss for a finished match, aggregate stats over stored records
(oldest first), and 1X2 calibration diagnostics.
"""

import math
from dataclasses import asdict, dataclass, field

from fixturecast.predictions.models import Prediction

OUTCOMES = ("home", "draw", "away")


def _pct(correct: int, total: int) -> int:
    """Percentage rounded half-up; 0 when total is 0."""
    if total <= 0:
        return 0
    return int(math.floor(correct / total * 100 + 0.5))


def actual_outcome(home_score: int, away_score: int) -> str:
    if home_score > away_score:
        return "home"
    if home_score < away_score:
        return "away"
    return "draw"


def predicted_outcome(prediction: Prediction) -> str:
    home = prediction.home_win_probability
    draw = prediction.draw_probability
    away = prediction.away_win_probability
    if home > draw and home > away:
        return "home"
    if away > draw:
        return "away"
    return "draw"


@dataclass
class MarketAccuracy:
    outcome: bool = False
    scoreline: bool = False
    btts: bool = False
    goal_line: bool = False
    htft: bool = False  # needs half-time score, never scored
    score_range: bool = False
    first_goalscorer: bool = False  # needs first scorer, never scored
    clean_sheet: bool = False
    corners: bool = False  # needs corner counts, never scored

    def to_dict(self) -> dict:
        return {
            "outcome": self.outcome,
            "scoreline": self.scoreline,
            "btts": self.btts,
            "goalLine": self.goal_line,
            "htft": self.htft,
            "scoreRange": self.score_range,
            "firstGoalscorer": self.first_goalscorer,
            "cleanSheet": self.clean_sheet,
            "corners": self.corners,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarketAccuracy":
        return cls(
            outcome=bool(data.get("outcome")),
            scoreline=bool(data.get("scoreline")),
            btts=bool(data.get("btts")),
            goal_line=bool(data.get("goalLine")),
            htft=bool(data.get("htft")),
            score_range=bool(data.get("scoreRange")),
            first_goalscorer=bool(data.get("firstGoalscorer")),
            clean_sheet=bool(data.get("cleanSheet")),
            corners=bool(data.get("corners")),
        )


def calculate_prediction_accuracy(prediction: Prediction, home_score: int, away_score: int) -> MarketAccuracy:
    total_goals = home_score + away_score
    result = MarketAccuracy(
        outcome=actual_outcome(home_score, away_score) == predicted_outcome(prediction),
        scoreline=prediction.predicted_scoreline == f"{home_score}-{away_score}",
    )

    if prediction.btts:
        yes, no = prediction.btts.yes_probability, prediction.btts.no_probability
        result.btts = yes > no if (home_score > 0 and away_score > 0) else no > yes

    if prediction.goal_line:
        line = prediction.goal_line
        if total_goals > line.line:
            result.goal_line = line.over_probability > line.under_probability
        else:
            result.goal_line = line.under_probability > line.over_probability

    if prediction.score_range:
        low = prediction.score_range.zero_to_one
        mid = prediction.score_range.two_to_three
        high = prediction.score_range.four_plus
        if total_goals <= 1:
            result.score_range = low > mid and low > high
        elif total_goals <= 3:
            result.score_range = mid > low and mid > high
        else:
            result.score_range = high > low and high > mid

    if prediction.clean_sheet:
        home_cs = prediction.clean_sheet.home_team
        away_cs = prediction.clean_sheet.away_team
        home_hit = home_cs > 100 - home_cs if away_score == 0 else home_cs < 100 - home_cs
        away_hit = away_cs > 100 - away_cs if home_score == 0 else away_cs < 100 - away_cs
        result.clean_sheet = home_hit or away_hit

    return result


@dataclass
class AccuracyStats:
    total_predictions: int = 0
    correct_outcomes: int = 0
    correct_scorelines: int = 0
    correct_btts: int = 0
    correct_goal_line: int = 0
    correct_htft: int = 0
    correct_score_range: int = 0
    correct_first_goalscorer: int = 0
    correct_clean_sheet: int = 0
    correct_corners: int = 0
    recent_accuracy: dict = field(default_factory=lambda: {"last10": 0, "last20": 0, "last50": 0})
    overall_accuracy: int = 0

    def to_dict(self) -> dict:
        data = asdict(self)
        return {
            "totalPredictions": data["total_predictions"],
            "correctOutcomes": data["correct_outcomes"],
            "correctScorelines": data["correct_scorelines"],
            "correctBtts": data["correct_btts"],
            "correctGoalLine": data["correct_goal_line"],
            "correctHtft": data["correct_htft"],
            "correctScoreRange": data["correct_score_range"],
            "correctFirstGoalscorer": data["correct_first_goalscorer"],
            "correctCleanSheet": data["correct_clean_sheet"],
            "correctCorners": data["correct_corners"],
            "recentAccuracy": data["recent_accuracy"],
            "overallAccuracy": data["overall_accuracy"],
        }


def calculate_accuracy_stats(records: list[MarketAccuracy]) -> AccuracyStats:
    """Aggregate per-market hits. records must be ordered oldest first."""
    if not records:
        return AccuracyStats()

    def count(attr: str, subset: list[MarketAccuracy] = records) -> int:
        return sum(1 for r in subset if getattr(r, attr))

    total = len(records)
    recent = {}
    for n in (10, 20, 50):
        window = records[-n:]
        recent[f"last{n}"] = _pct(count("outcome", window), len(window))

    correct_outcomes = count("outcome")
    return AccuracyStats(
        total_predictions=total,
        correct_outcomes=correct_outcomes,
        correct_scorelines=count("scoreline"),
        correct_btts=count("btts"),
        correct_goal_line=count("goal_line"),
        correct_htft=count("htft"),
        correct_score_range=count("score_range"),
        correct_first_goalscorer=count("first_goalscorer"),
        correct_clean_sheet=count("clean_sheet"),
        correct_corners=count("corners"),
        recent_accuracy=recent,
        overall_accuracy=_pct(correct_outcomes, total),
    )


def get_accuracy_percentage(correct: int, total: int) -> int:
    return _pct(correct, total)


def format_accuracy_display(stats: AccuracyStats) -> str:
    if stats.total_predictions == 0:
        return "Predictions will appear after first matchday"
    return (
        f"Last 10: {stats.recent_accuracy['last10']}% | Overall: {stats.overall_accuracy}% "
        f"({stats.correct_outcomes}/{stats.total_predictions})"
    )


def _prob(value: float) -> float:
    return max(0.0, min(100.0, value)) / 100


def compute_calibration_metrics(prediction: Prediction, home_score: int, away_score: int) -> dict:
    """Multi-class Brier score, log loss and top-pick margin for the 1X2 market."""
    outcome = actual_outcome(home_score, away_score)
    probs = {
        "home": _prob(prediction.home_win_probability),
        "draw": _prob(prediction.draw_probability),
        "away": _prob(prediction.away_win_probability),
    }

    brier = sum((probs[o] - (1.0 if o == outcome else 0.0)) ** 2 for o in OUTCOMES) / 3
    log_loss = -math.log(max(1e-9, probs[outcome]))
    ranked = sorted(probs.values(), reverse=True)

    return {
        "brierScore": brier,
        "logLoss": log_loss,
        "predicted": probs,
        "actualOutcome": outcome,
        "topProbability": ranked[0],
        "topMargin": ranked[0] - ranked[1],
    }
