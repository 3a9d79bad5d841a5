"""Prediction payload models (camelCase on the wire, snake_case in Python)."""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


class KeyFactor(CamelModel):
    category: str
    points: list[str] = []


class GoalLine(CamelModel):
    line: float = 2.5
    over_probability: int
    under_probability: int


class BTTS(CamelModel):
    yes_probability: int
    no_probability: int


class HTFT(CamelModel):
    home_home: int = 0
    home_draw: int = 0
    home_away: int = 0
    draw_home: int = 0
    draw_draw: int = 0
    draw_away: int = 0
    away_home: int = 0
    away_draw: int = 0
    away_away: int = 0


class ScoreRange(CamelModel):
    zero_to_one: int
    two_to_three: int
    four_plus: int


class FirstGoalscorer(CamelModel):
    home_team: int
    away_team: int
    no_goalscorer: int


class CleanSheet(CamelModel):
    home_team: int
    away_team: int


class Corners(CamelModel):
    over: int  # Over 9.5
    under: int


class ExpectedGoals(CamelModel):
    home_xg: float
    away_xg: float


class ModelWeights(CamelModel):
    xgboost: int = 0
    poisson: int = 0
    neural_net: int = 0
    bayesian: int = 0


class UncertaintyMetrics(CamelModel):
    prediction_variance: int = 50
    data_quality: str = "Medium"  # High, Medium, Low
    model_agreement: int = 75


class Prediction(CamelModel):
    home_win_probability: int
    draw_probability: int
    away_win_probability: int
    predicted_scoreline: str
    confidence: str = "Medium"  # High, Medium, Low
    key_factors: list[KeyFactor] = []
    goal_line: Optional[GoalLine] = None
    btts: Optional[BTTS] = None
    htft: Optional[HTFT] = None
    score_range: Optional[ScoreRange] = None
    first_goalscorer: Optional[FirstGoalscorer] = None
    clean_sheet: Optional[CleanSheet] = None
    corners: Optional[Corners] = None
    expected_goals: Optional[ExpectedGoals] = None
    model_weights: Optional[ModelWeights] = None
    uncertainty_metrics: Optional[UncertaintyMetrics] = None
    confidence_percentage: Optional[int] = None
    confidence_reason: Optional[str] = None

    def to_payload(self) -> dict:
        """JSON-ready dict in the wire (camelCase) shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


# Schema sent as generationConfig.responseSchema (OpenAPI subset Gemini accepts)
_INT = {"type": "INTEGER"}
_NUM = {"type": "NUMBER"}


def _obj(properties: dict, required: Optional[list[str]] = None) -> dict:
    return {"type": "OBJECT", "properties": properties, "required": required or list(properties)}


PREDICTION_RESPONSE_SCHEMA = _obj(
    {
        "homeWinProbability": _INT,
        "drawProbability": _INT,
        "awayWinProbability": _INT,
        "predictedScoreline": {"type": "STRING"},
        "confidence": {"type": "STRING", "enum": ["High", "Medium", "Low"]},
        "keyFactors": {
            "type": "ARRAY",
            "items": _obj({"category": {"type": "STRING"}, "points": {"type": "ARRAY", "items": {"type": "STRING"}}}),
        },
        "goalLine": _obj({"line": _NUM, "overProbability": _INT, "underProbability": _INT}),
        "btts": _obj({"yesProbability": _INT, "noProbability": _INT}),
        "htft": _obj(
            {
                k: _INT
                for k in (
                    "homeHome", "homeDraw", "homeAway",
                    "drawHome", "drawDraw", "drawAway",
                    "awayHome", "awayDraw", "awayAway",
                )
            }
        ),
        "scoreRange": _obj({"zeroToOne": _INT, "twoToThree": _INT, "fourPlus": _INT}),
        "firstGoalscorer": _obj({"homeTeam": _INT, "awayTeam": _INT, "noGoalscorer": _INT}),
        "cleanSheet": _obj({"homeTeam": _INT, "awayTeam": _INT}),
        "corners": _obj({"over": _INT, "under": _INT}),
        "expectedGoals": _obj({"homeXg": _NUM, "awayXg": _NUM}),
        "uncertaintyMetrics": _obj(
            {
                "predictionVariance": _INT,
                "dataQuality": {"type": "STRING", "enum": ["High", "Medium", "Low"]},
                "modelAgreement": _INT,
            }
        ),
    },
    required=[
        "homeWinProbability",
        "drawProbability",
        "awayWinProbability",
        "predictedScoreline",
        "confidence",
        "keyFactors",
        "goalLine",
        "btts",
    ],
)
