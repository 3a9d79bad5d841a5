"""Dashboard API: fixtures, live scores, tables, teams, predictions, favorites, alerts.

Auth: public reads; verify_api_key on /admin/* and the Lambda callbacks
(/api/predictions/update, /api/matches/check).
"""

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from fixturecast.config import get_settings
from fixturecast.database import get_async_session
from fixturecast.etl.api_football import FootballAPIError
from fixturecast.etl.base import Match
from fixturecast.etl.football_data import FootballDataService
from fixturecast.etl.live import get_live_match, get_live_matches, is_match_live
from fixturecast.predictions.accuracy import format_accuracy_display
from fixturecast.predictions.rate_limit import get_all_statuses
from fixturecast.predictions.service import PredictionError, PredictionService
from fixturecast.predictions.store import (
    check_and_update_match_results,
    get_accuracy_stats,
    get_prediction,
)
from fixturecast.scoring.match_of_the_day import get_match_score_breakdown, select_match_of_the_day
from fixturecast.security import limiter, verify_api_key
from fixturecast.services import get_api_client, get_data_service, get_prediction_service
from fixturecast.state import dashboard

router = APIRouter(tags=["api"])

logger = logging.getLogger(__name__)
settings = get_settings()


class FavoriteRequest(BaseModel):
    team: str = Field(min_length=1, max_length=255)


class PredictionUpdateRequest(BaseModel):
    matchIds: list[str] = []
    forceUpdate: bool = False


class MatchCheckRequest(BaseModel):
    matchIds: list[str] = []


def _prediction_http_error(e: PredictionError) -> HTTPException:
    if e.kind == "config":
        return HTTPException(status_code=503, detail=str(e))
    if e.kind == "rate_limit":
        return HTTPException(status_code=429, detail=str(e))
    return HTTPException(status_code=502, detail=str(e))


def _config_error(e: FootballAPIError) -> HTTPException:
    return HTTPException(status_code=503, detail=str(e))


async def _find_match(match_id: str, data_service: FootballDataService) -> Optional[Match]:
    match = dashboard.find_match(match_id)
    if match is None:
        match = await data_service.get_fixture(match_id)
    return match


# =============================================================================
# FIXTURES
# =============================================================================


@router.get("/fixtures/upcoming")
async def upcoming_fixtures(
    league: Optional[str] = None,
    limit: int = Query(10, ge=1, le=50),
    data_service: FootballDataService = Depends(get_data_service),
):
    """Upcoming fixtures for one league, or the aggregated dashboard list."""
    try:
        if league:
            fixtures = await data_service.get_upcoming_fixtures(league, limit)
        else:
            if not dashboard.fixtures:
                dashboard.set_fixtures(await data_service.get_all_upcoming_fixtures())
            fixtures = dashboard.fixtures
    except FootballAPIError as e:
        raise _config_error(e)
    return {"fixtures": [asdict(m) for m in fixtures], "count": len(fixtures)}


@router.get("/fixtures/today")
async def todays_fixtures(
    league: str,
    data_service: FootballDataService = Depends(get_data_service),
):
    try:
        fixtures = await data_service.get_todays_fixtures(league)
    except FootballAPIError as e:
        raise _config_error(e)
    return {"fixtures": [asdict(m) for m in fixtures], "count": len(fixtures)}


@router.get("/fixtures/finished")
async def finished_fixtures(
    days_back: int = Query(3, ge=1, le=14),
    data_service: FootballDataService = Depends(get_data_service),
):
    try:
        fixtures = await data_service.get_finished_fixtures(days_back)
    except FootballAPIError as e:
        raise _config_error(e)
    return {"fixtures": [asdict(m) for m in fixtures], "count": len(fixtures)}


@router.get("/fixtures/live")
async def live_fixtures(refresh: bool = False):
    """In-play matches from shared state; refresh=true polls upstream first."""
    if refresh or dashboard.live_updated_at is None:
        try:
            dashboard.set_live_matches(await get_live_matches(get_api_client()))
        except FootballAPIError as e:
            raise _config_error(e)
    return {
        "matches": [asdict(m) for m in dashboard.live_matches],
        "count": len(dashboard.live_matches),
        "updated_at": dashboard.live_updated_at,
    }


@router.get("/fixtures/live/{match_id}")
async def live_fixture(match_id: str):
    """One in-play match, polled from upstream."""
    try:
        match = await get_live_match(get_api_client(), match_id)
    except FootballAPIError as e:
        raise _config_error(e)
    if match is None:
        raise HTTPException(status_code=404, detail="Match is not live")
    return asdict(match)


@router.get("/match-of-the-day")
async def match_of_the_day(data_service: FootballDataService = Depends(get_data_service)):
    if not dashboard.fixtures:
        try:
            dashboard.set_fixtures(await data_service.get_all_upcoming_fixtures())
        except FootballAPIError as e:
            raise _config_error(e)
    match = select_match_of_the_day(dashboard.fixtures)
    if match is None:
        raise HTTPException(status_code=404, detail="No fixtures available")
    return {"match": asdict(match), "breakdown": get_match_score_breakdown(match)}


# =============================================================================
# TABLES / TEAMS / H2H
# =============================================================================


@router.get("/leagues/{league}/table")
async def league_table(league: str, data_service: FootballDataService = Depends(get_data_service)):
    try:
        table = await data_service.get_league_table(league)
    except FootballAPIError as e:
        raise _config_error(e)
    if not table:
        raise HTTPException(status_code=404, detail=f"No table available for {league}")
    return {"league": league, "table": [asdict(row) for row in table]}


@router.get("/leagues/tables")
async def all_league_tables(data_service: FootballDataService = Depends(get_data_service)):
    """Tables for every supported league (stops early when the API budget runs low)."""
    try:
        tables = await data_service.get_all_league_tables()
    except FootballAPIError as e:
        raise _config_error(e)
    return {"tables": {league: [asdict(row) for row in rows] for league, rows in tables.items()}}


@router.get("/leagues/{league}/teams")
async def league_teams(league: str, data_service: FootballDataService = Depends(get_data_service)):
    try:
        teams = await data_service.get_teams_by_league(league)
    except FootballAPIError as e:
        raise _config_error(e)
    return {"league": league, "teams": [asdict(t) for t in teams.values()], "count": len(teams)}


@router.get("/teams")
async def all_teams(data_service: FootballDataService = Depends(get_data_service)):
    try:
        teams = await data_service.get_all_teams()
    except FootballAPIError as e:
        raise _config_error(e)
    return {"teams": [asdict(t) for t in teams.values()], "count": len(teams)}


@router.get("/teams/search")
async def search_team(name: str, data_service: FootballDataService = Depends(get_data_service)):
    try:
        team = await data_service.get_team_info(name)
    except FootballAPIError as e:
        raise _config_error(e)
    if team is None:
        raise HTTPException(status_code=404, detail=f"No team found for {name}")
    return asdict(team)


@router.get("/teams/{team_id}")
async def team_details(
    team_id: int,
    league: Optional[str] = None,
    data_service: FootballDataService = Depends(get_data_service),
):
    try:
        team = await data_service.get_team_details(team_id, league)
    except FootballAPIError as e:
        raise _config_error(e)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return asdict(team)


@router.get("/head-to-head")
async def head_to_head(
    home_id: int,
    away_id: int,
    last: int = Query(5, ge=1, le=20),
    data_service: FootballDataService = Depends(get_data_service),
):
    try:
        fixtures = await data_service.get_head_to_head(home_id, away_id, last)
    except FootballAPIError as e:
        raise _config_error(e)
    return {"fixtures": fixtures, "count": len(fixtures)}


# =============================================================================
# PREDICTIONS
# =============================================================================


@router.get("/predictions/accuracy")
async def prediction_accuracy(session: AsyncSession = Depends(get_async_session)):
    stats = await get_accuracy_stats(session)
    return {"stats": stats.to_dict(), "display": format_accuracy_display(stats)}


@router.get("/predictions/{match_id}")
async def cached_prediction(match_id: str, session: AsyncSession = Depends(get_async_session)):
    """Today's stored prediction; never triggers generation."""
    stored = await get_prediction(session, match_id)
    if stored is None:
        raise HTTPException(status_code=404, detail="No prediction for this match today")
    return {
        "match_id": stored.match_id,
        "prediction": stored.payload,
        "created_at": stored.created_at,
        "model_version": stored.model_version,
    }


@router.post("/predictions/{match_id}")
@limiter.limit(settings.RATE_LIMIT_PER_MINUTE)
async def generate_prediction(
    request: Request,
    match_id: str,
    force: bool = False,
    session: AsyncSession = Depends(get_async_session),
    data_service: FootballDataService = Depends(get_data_service),
    prediction_service: PredictionService = Depends(get_prediction_service),
):
    """Return today's prediction, generating it when missing, stale or forced."""
    try:
        match = await _find_match(match_id, data_service)
        if match is None:
            raise HTTPException(status_code=404, detail="Match not found")
        payload = await prediction_service.get_or_create(session, match, force=force)
    except PredictionError as e:
        raise _prediction_http_error(e)
    except FootballAPIError as e:
        raise _config_error(e)
    return {"match_id": match_id, "prediction": payload}


# =============================================================================
# FAVORITES / ALERTS / USAGE
# =============================================================================


@router.get("/favorites")
async def list_favorites():
    return {"teams": dashboard.favorite_teams}


@router.post("/favorites", status_code=201)
async def add_favorite(body: FavoriteRequest):
    if not dashboard.add_favorite(body.team):
        raise HTTPException(status_code=409, detail=f"{body.team} is already a favorite")
    return {"teams": dashboard.favorite_teams}


@router.delete("/favorites/{team}")
async def remove_favorite(team: str):
    if not dashboard.remove_favorite(team):
        raise HTTPException(status_code=404, detail=f"{team} is not a favorite")
    return {"teams": dashboard.favorite_teams}


@router.get("/alerts")
async def list_alerts(unread_only: bool = False):
    alerts = [a for a in dashboard.alerts if not (unread_only and a.read)]
    return {"alerts": [asdict(a) for a in reversed(alerts)], "unread": sum(1 for a in dashboard.alerts if not a.read)}


@router.post("/alerts/{alert_id}/read")
async def mark_alert_read(alert_id: str):
    if not dashboard.mark_alert_read(alert_id):
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"ok": True}


@router.get("/api/usage")
async def api_usage(data_service: FootballDataService = Depends(get_data_service)):
    return {"football_api": data_service.get_api_usage(), "llm": get_all_statuses()}


# =============================================================================
# ADMIN / CALLBACKS (X-API-Key)
# =============================================================================


@router.post("/admin/cache/clear")
async def clear_cache(
    _: bool = Depends(verify_api_key),
    data_service: FootballDataService = Depends(get_data_service),
):
    data_service.clear_cache()
    dashboard.set_fixtures([])
    logger.info("API cache cleared by admin request")
    return {"ok": True, "usage": data_service.get_api_usage()}


@router.post("/admin/predictions/check-results")
async def check_results(
    days_back: int = Query(3, ge=1, le=14),
    _: bool = Depends(verify_api_key),
    session: AsyncSession = Depends(get_async_session),
    data_service: FootballDataService = Depends(get_data_service),
):
    finished = await data_service.get_finished_fixtures(days_back)
    scored = await check_and_update_match_results(session, finished)
    return {"checked": len(finished), "scored": scored}


@router.post("/api/predictions/update")
async def update_predictions(
    body: PredictionUpdateRequest,
    _: bool = Depends(verify_api_key),
    session: AsyncSession = Depends(get_async_session),
    data_service: FootballDataService = Depends(get_data_service),
    prediction_service: PredictionService = Depends(get_prediction_service),
):
    """Batch generation callback used by the prediction-update Lambda."""
    processed = 0
    errors = []
    for match_id in body.matchIds:
        try:
            match = await _find_match(match_id, data_service)
            if match is None:
                errors.append({"matchId": match_id, "error": "Match not found"})
                continue
            await prediction_service.get_or_create(session, match, force=body.forceUpdate)
            processed += 1
        except (PredictionError, FootballAPIError) as e:
            errors.append({"matchId": match_id, "error": str(e)})
    return {"processed": processed, "total": len(body.matchIds), "errors": errors}


@router.post("/api/matches/check")
async def check_matches(
    body: MatchCheckRequest,
    _: bool = Depends(verify_api_key),
    session: AsyncSession = Depends(get_async_session),
    data_service: FootballDataService = Depends(get_data_service),
):
    """Status callback used by the match-check Lambda."""
    matches = []
    errors = []
    for match_id in body.matchIds:
        try:
            match = await data_service.get_fixture(match_id)
        except FootballAPIError as e:
            errors.append({"matchId": match_id, "error": str(e)})
            continue
        if match is None:
            errors.append({"matchId": match_id, "error": "Match not found"})
            continue
        matches.append(match)

    updated = await check_and_update_match_results(session, matches)
    live = sum(1 for m in matches if is_match_live(m.status))
    return {"checked": len(matches), "updated": updated, "live": live, "errors": errors}
