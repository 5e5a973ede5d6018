"""Player Router - schedule, teams and statistics of the current player"""
from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import require_player
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.stats import PlayerStatsResponse
from app.players.crud.players import player_schedule, player_teams, player_own_stats
from app.players.schemas.schedule import ScheduleResponse, PlayerTeamsResponse

router = APIRouter(prefix="/player", tags=["Player"])


@router.get("/schedule", response_model=ScheduleResponse)
@limiter.limit("30/minute")
async def get_my_schedule(
    request: Request,
    upcoming_only: bool = Query(True, description="Hide events that already started"),
    actor: CurrentUser = Depends(require_player),
    db: AsyncSession = Depends(get_session),
):
    """
    Events the current player is linked to, with own attendance status.
    """
    events = await player_schedule(db, actor, upcoming_only=upcoming_only)
    return ScheduleResponse(events=events, total=len(events))


@router.get("/teams", response_model=PlayerTeamsResponse)
@limiter.limit("30/minute")
async def get_my_teams(
    request: Request,
    actor: CurrentUser = Depends(require_player),
    db: AsyncSession = Depends(get_session),
):
    """All team memberships of the current player, active first."""
    return await player_teams(db, actor)


@router.get("/stats", response_model=PlayerStatsResponse)
@limiter.limit("30/minute")
async def get_my_stats(
    request: Request,
    actor: CurrentUser = Depends(require_player),
    db: AsyncSession = Depends(get_session),
):
    """Own overall statistics and game log."""
    return await player_own_stats(db, actor)
