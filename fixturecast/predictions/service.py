"""
Match prediction orchestration.

Flow: gather context from the football data service (concurrently, a failed
piece is left empty) -> build prompt -> Gemini call (serialized and
rate-limited, retried on transient failures) -> parse + normalize JSON ->
attach confidence -> persist.

Failures raise PredictionError. There is no placeholder prediction.
"""

import asyncio
import json
import logging
import math
import random
import re
import time
import uuid
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.config import get_settings
from fixturecast.etl.api_football import parse_retry_after
from fixturecast.etl.base import Match
from fixturecast.etl.football_data import FootballDataService
from fixturecast.llm.gemini_client import GeminiClient, GeminiError, GeminiResult
from fixturecast.predictions.accuracy import AccuracyStats
from fixturecast.predictions.confidence import ConfidenceContext, calculate_prediction_confidence
from fixturecast.predictions.context import MatchContext, build_context_for_match
from fixturecast.predictions.models import PREDICTION_RESPONSE_SCHEMA, Prediction
from fixturecast.predictions.rate_limit import RateLimitExceeded, ServiceRateLimiter, get_limiter
from fixturecast.predictions.store import (
    get_accuracy_stats,
    get_kicked_off_prediction,
    get_prediction,
    save_prediction,
    should_regenerate_prediction,
)
from fixturecast.scoring.match_of_the_day import get_prime_time_score, is_rivalry
from fixturecast.state import Alert, _incr, dashboard, record_error
from fixturecast.telemetry import record_llm_request

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "API rate limit exceeded. Please try again later."
RETRYABLE_PATTERN = re.compile(r"quota|rate|429|unavailable|timeout", re.IGNORECASE)
PRIME_TIME_THRESHOLD = 50


class PredictionError(RuntimeError):
    """Prediction could not be produced.

    Kinds: config, rate_limit, llm, parse.
    """

    def __init__(self, message: str, kind: str = "llm"):
        super().__init__(message)
        self.kind = kind


# =============================================================================
# PARSING / NORMALIZATION
# =============================================================================

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def parse_prediction_json(text: str) -> dict:
    """Parse model output: plain JSON, fenced JSON, or the first {...} block in prose."""
    cleaned = _FENCE_RE.sub("", (text or "").strip()).strip()
    if not cleaned:
        raise PredictionError("Empty response from model", kind="parse")
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise PredictionError("Model response contained no JSON object", kind="parse")
        try:
            data = json.loads(cleaned[start : end + 1])
        except json.JSONDecodeError as e:
            raise PredictionError(f"Invalid JSON in model response: {e}", kind="parse")
    if not isinstance(data, dict):
        raise PredictionError("Model response is not a JSON object", kind="parse")
    return data


def _round(value: float) -> int:
    return int(math.floor(value + 0.5))


def _num(value) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _clamp(value, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, _num(value)))


def _scale_group(group: dict, keys: list[str], remainder_key: Optional[str]) -> None:
    """
    Rescale keys to integers summing to 100; remainder_key absorbs rounding.

    An all-zero group becomes an even split (34/33/33). When rounding
    overshoots, the excess comes off the largest rounded key.
    """
    values = {k: _clamp(group.get(k)) for k in keys}
    total = sum(values.values())
    if total <= 0:
        share, extra = divmod(100, len(keys))
        for index, k in enumerate(keys):
            group[k] = share + (1 if index < extra else 0)
        return
    for k in keys:
        if k != remainder_key:
            group[k] = _round(values[k] / total * 100)
    if remainder_key:
        others = [k for k in keys if k != remainder_key]
        remainder = 100 - sum(group[k] for k in others)
        if remainder < 0:
            largest = max(others, key=lambda k: group[k])
            group[largest] += remainder
            remainder = 0
        group[remainder_key] = remainder


HTFT_KEYS = [
    "homeHome", "homeDraw", "homeAway",
    "drawHome", "drawDraw", "drawAway",
    "awayHome", "awayDraw", "awayAway",
]


def normalize_prediction_data(data: dict) -> dict:
    """
    Make the model output internally consistent (in place, also returned).

    1X2 becomes integers summing to 100 with draw taking the remainder; the
    two-way and three-way sub-markets are clamped to 0-100 and rescaled the
    same way; expected goals are clamped to 0-5.
    """
    _scale_group(data, ["homeWinProbability", "awayWinProbability", "drawProbability"], "drawProbability")

    if isinstance(data.get("btts"), dict):
        _scale_group(data["btts"], ["yesProbability", "noProbability"], "noProbability")
    if isinstance(data.get("goalLine"), dict):
        data["goalLine"].setdefault("line", 2.5)
        _scale_group(data["goalLine"], ["overProbability", "underProbability"], "underProbability")
    if isinstance(data.get("htft"), dict):
        _scale_group(data["htft"], HTFT_KEYS, None)
    if isinstance(data.get("scoreRange"), dict):
        _scale_group(data["scoreRange"], ["zeroToOne", "twoToThree", "fourPlus"], "fourPlus")
    if isinstance(data.get("firstGoalscorer"), dict):
        _scale_group(data["firstGoalscorer"], ["homeTeam", "awayTeam", "noGoalscorer"], "noGoalscorer")
    if isinstance(data.get("cleanSheet"), dict):
        sheet = data["cleanSheet"]
        sheet["homeTeam"] = _round(_clamp(sheet.get("homeTeam")))
        sheet["awayTeam"] = _round(_clamp(sheet.get("awayTeam")))
    if isinstance(data.get("corners"), dict):
        _scale_group(data["corners"], ["over", "under"], "under")
    if isinstance(data.get("modelWeights"), dict):
        _scale_group(data["modelWeights"], ["xgboost", "poisson", "neuralNet", "bayesian"], "bayesian")

    if isinstance(data.get("expectedGoals"), dict):
        xg = data["expectedGoals"]
        xg["homeXg"] = _clamp(xg.get("homeXg"), 0, 5)
        xg["awayXg"] = _clamp(xg.get("awayXg"), 0, 5)

    if isinstance(data.get("uncertaintyMetrics"), dict):
        um = data["uncertaintyMetrics"]
        um["predictionVariance"] = _round(_clamp(um.get("predictionVariance") or 50))
        um["modelAgreement"] = _round(_clamp(um.get("modelAgreement") or 75))

    if data.get("confidence") not in ("High", "Medium", "Low"):
        data["confidence"] = "Medium"
    data.setdefault("keyFactors", [])
    return data


# =============================================================================
# PROMPT
# =============================================================================

PROMPT_TEMPLATE = """You are a football prediction engine. Generate precise, probabilistically calibrated predictions.

SAFETY AND FORMAT GUARDRAILS:
- Use ONLY the data provided in the Context section below. If a field is missing, treat it as "Not available" and lower confidence accordingly. Do NOT fabricate data.
- Return ONLY JSON that conforms to the response schema; no extra keys, markdown, or text outside JSON.
- Each probability group must sum to 100 after rounding (1X2, BTTS, HT/FT, score ranges). Keep scorelines consistent with expected goals and outcome probabilities.

Match:
- League: {league}
- Home Team: {home}
- Away Team: {away}
- Date: {date}

Context (provided):
{context}

Market views required: 1X2, predicted scoreline, O/U 2.5, BTTS, HT/FT, score ranges, first team to score, clean sheets, corners (9.5), expected goals.
Label confidence High/Medium/Low depending on data richness.
"""


def format_context(match: Match, context: Optional[MatchContext]) -> str:
    if context is None:
        return "Not available"
    lines = []
    if context.league_table:
        lines.append(f"- Current League Standings: {context.league_table}")
    lines.append(f"- {match.home_team} Recent Form (Last 5): {context.home_form}")
    lines.append(f"- {match.away_team} Recent Form (Last 5): {context.away_form}")
    lines.append(f"- Head-to-Head: {context.head_to_head}")
    if context.home_stats:
        lines.append(f"- {match.home_team} Season Stats: {context.home_stats}")
    if context.away_stats:
        lines.append(f"- {match.away_team} Season Stats: {context.away_stats}")
    if context.btts_historic:
        lines.append(f"- BTTS History: {context.btts_historic}")
    if context.home_injuries:
        lines.append(f"- {match.home_team} Injuries: {context.home_injuries}")
    if context.away_injuries:
        lines.append(f"- {match.away_team} Injuries: {context.away_injuries}")
    return "\n".join(lines)


def build_prompt(match: Match, context: Optional[MatchContext] = None) -> str:
    return PROMPT_TEMPLATE.format(
        league=match.league,
        home=match.home_team,
        away=match.away_team,
        date=match.date.isoformat(),
        context=format_context(match, context),
    )


def is_retryable(result: GeminiResult) -> bool:
    if result.status == "TIMEOUT":
        return True
    if result.status_code in (429, 500, 502, 503, 504):
        return True
    return bool(RETRYABLE_PATTERN.search(result.error or ""))


# =============================================================================
# SERVICE
# =============================================================================


class PredictionService:
    """Generates predictions for fixtures; one instance per process."""

    def __init__(
        self,
        data_service: FootballDataService,
        llm: Optional[GeminiClient] = None,
        limiter: Optional[ServiceRateLimiter] = None,
        sleep=asyncio.sleep,
    ):
        settings = get_settings()
        self.data_service = data_service
        self.llm = llm or GeminiClient()
        self.limiter = limiter or get_limiter("gemini")
        self.retries = settings.GEMINI_RETRIES
        self.backoff_ms = settings.GEMINI_BACKOFF_MS
        self._sleep = sleep

    async def gather_context(self, match: Match) -> MatchContext:
        """Fetch table, H2H, stats, injuries and form concurrently; failed pieces stay empty."""
        ds = self.data_service
        league_id = match.league_id or ds.get_league_id(match.league)
        home_id, away_id = match.home_team_id, match.away_team_id

        async def _empty():
            return None

        tasks = {
            "table": ds.get_league_table(match.league),
            "h2h": ds.get_head_to_head(home_id, away_id) if home_id and away_id else _empty(),
            "home_stats": ds.get_team_stats(home_id, league_id) if home_id and league_id else _empty(),
            "away_stats": ds.get_team_stats(away_id, league_id) if away_id and league_id else _empty(),
            "home_injuries": ds.get_injuries(home_id, league_id) if home_id else _empty(),
            "away_injuries": ds.get_injuries(away_id, league_id) if away_id else _empty(),
            "home_form": ds.get_recent_team_form(home_id) if home_id else _empty(),
            "away_form": ds.get_recent_team_form(away_id) if away_id else _empty(),
        }
        results = await asyncio.gather(*tasks.values(), return_exceptions=True)

        gathered = {}
        for name, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.warning(f"Context piece {name} failed for match {match.id}: {result}")
                result = None
            gathered[name] = result

        return build_context_for_match(
            match,
            table=gathered["table"],
            h2h=gathered["h2h"],
            home_stats=gathered["home_stats"],
            away_stats=gathered["away_stats"],
            home_injuries=gathered["home_injuries"],
            away_injuries=gathered["away_injuries"],
            home_form=", ".join(gathered["home_form"]) if gathered["home_form"] else None,
            away_form=", ".join(gathered["away_form"]) if gathered["away_form"] else None,
        )

    async def _call_llm(self, prompt: str) -> GeminiResult:
        """Serialized, rate-limited call with retry on transient failures."""
        async with self.limiter.lock:
            for attempt in range(self.retries + 1):
                try:
                    await self.limiter.acquire()
                except RateLimitExceeded as e:
                    record_llm_request("gemini", "rate_limited", 0)
                    raise PredictionError(str(e), kind="rate_limit")

                try:
                    result = await self.llm.generate(prompt, response_schema=PREDICTION_RESPONSE_SCHEMA)
                except GeminiError as e:
                    raise PredictionError(str(e), kind="config")

                if result.status == "COMPLETED":
                    record_llm_request("gemini", "ok", result.exec_ms, result.tokens_in, result.tokens_out)
                    return result

                error = result.error or result.status
                if "RESOURCE_EXHAUSTED" in error:
                    self.limiter.handle_rate_limit("quota")
                    record_llm_request("gemini", "rate_limited", result.exec_ms)
                    raise PredictionError(RATE_LIMIT_MESSAGE, kind="rate_limit")

                record_llm_request("gemini", "rate_limited" if result.status_code == 429 else "error", result.exec_ms)
                if not is_retryable(result) or attempt >= self.retries:
                    kind = "rate_limit" if result.status_code == 429 else "llm"
                    message = RATE_LIMIT_MESSAGE if kind == "rate_limit" else f"Gemini request failed: {error}"
                    raise PredictionError(message, kind=kind)

                if result.status_code == 429:
                    self.limiter.handle_rate_limit(error, parse_retry_after(result.retry_after), attempt)
                wait_ms = self.backoff_ms * (2**attempt) + random.randint(0, 249)
                logger.warning(f"Gemini retry ({attempt + 1}/{self.retries}) after {wait_ms}ms: {error}")
                await self._sleep(wait_ms / 1000)

        raise PredictionError("Gemini request failed", kind="llm")

    async def generate(
        self,
        match: Match,
        context: Optional[MatchContext] = None,
        accuracy_stats: Optional[AccuracyStats] = None,
    ) -> Prediction:
        """Produce a normalized prediction for one fixture or raise PredictionError."""
        if not self.llm.configured:
            raise PredictionError("Gemini API key not configured. Set GEMINI_API_KEY in environment.", kind="config")

        start_time = time.time()
        try:
            result = await self._call_llm(build_prompt(match, context))
            data = normalize_prediction_data(parse_prediction_json(result.text))
            try:
                prediction = Prediction.model_validate(data)
            except ValidationError as e:
                raise PredictionError(f"Prediction did not match schema: {e.error_count()} errors", kind="parse")
        except PredictionError as e:
            if e.kind == "parse":
                record_llm_request("gemini", "parse_error", 0)
            _incr("predictions_failed")
            record_error("predictions", f"{match.home_team} vs {match.away_team}: {e}", e.kind)
            logger.error(f"Prediction failed for {match.home_team} vs {match.away_team}: {e}")
            raise

        if accuracy_stats is not None:
            analysis = calculate_prediction_confidence(
                prediction,
                accuracy_stats,
                ConfidenceContext(
                    league=match.league,
                    is_rivalry=is_rivalry(match.home_team, match.away_team),
                    is_prime_time=get_prime_time_score(match) >= PRIME_TIME_THRESHOLD,
                    has_recent_form=bool(context and context.home_form != "No recent matches found"),
                    has_head_to_head=bool(context and context.head_to_head != "No H2H data available."),
                ),
            )
            prediction.confidence_percentage = analysis.percentage
            prediction.confidence_reason = analysis.reason

        _incr("predictions_generated")
        logger.info(
            f"Prediction generated for {match.home_team} vs {match.away_team} "
            f"in {int((time.time() - start_time) * 1000)}ms"
        )
        return prediction

    async def get_or_create(self, session: AsyncSession, match: Match, force: bool = False) -> dict:
        """
        Stored prediction for today, regenerated when forced or when kickoff is
        near and the stored one is old. Returns the wire-shape payload.

        Once the fixture has kicked off a stored prediction is returned as is,
        even when forced, so results are scored against the pre-match call.
        """
        kicked_off = await get_kicked_off_prediction(session, match)
        if kicked_off is not None:
            logger.info(f"Match {match.id} has kicked off; serving the stored pre-match prediction")
            dashboard.predictions[match.id] = kicked_off.payload
            return kicked_off.payload

        if not force:
            stored = await get_prediction(session, match.id)
            if stored and not should_regenerate_prediction(stored.match_date, stored.created_at):
                dashboard.predictions[match.id] = stored.payload
                return stored.payload

        context = await self.gather_context(match)
        stats = await get_accuracy_stats(session)
        prediction = await self.generate(match, context, stats)
        row = await save_prediction(session, match, prediction, model_version=self.llm.model)

        dashboard.predictions[match.id] = row.payload
        if match.home_team in dashboard.favorite_teams or match.away_team in dashboard.favorite_teams:
            dashboard.add_alert(
                Alert(
                    id=uuid.uuid4().hex,
                    message=f"Prediction ready: {match.home_team} vs {match.away_team}",
                    kind="prediction",
                    match_id=match.id,
                )
            )
        return row.payload

    async def close(self) -> None:
        await self.llm.close()
