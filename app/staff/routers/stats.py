from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import require_admin, require_staff
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.stats import (
    TeamStatsRow,
    PlayerStatsRow,
    PlayerStatsResponse,
    StatsSyncRequest,
    StatsSyncResponse,
)
from app.staff.crud.stats import (
    team_stats_list,
    players_stats_list,
    get_player_stats,
    sync_team_stats,
)

router = APIRouter(prefix="/stats", tags=["Statistics"])


@router.get("/teams", response_model=List[TeamStatsRow])
@limiter.limit("30/minute")
async def get_team_stats(
    request: Request,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Team statistics from stored counters.

    **win_percentage** = 100 * wins / games_played (0 without games).
    """
    return await team_stats_list(db, actor)


@router.get("/players", response_model=List[PlayerStatsRow])
@limiter.limit("30/minute")
async def get_players_stats(
    request: Request,
    team_id: Optional[int] = Query(None, gt=0, description="Only players of this team"),
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """Overall statistics per player. COACH sees players of own teams only."""
    return await players_stats_list(db, actor, team_id=team_id)


@router.get("/players/{player_id}", response_model=PlayerStatsResponse)
@limiter.limit("30/minute")
async def get_player_stats_endpoint(
    request: Request,
    player_id: int,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Player statistics.

    - **overall_stats**: per game averages, shooting percentages, efficiency
    - **game_stats**: one row per completed match, newest first
    """
    return await get_player_stats(db, player_id, actor)


@router.post("/sync", response_model=StatsSyncResponse)
@limiter.limit("5/minute")
async def sync_stats(
    request: Request,
    sync_data: Optional[StatsSyncRequest] = None,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Recompute stored team counters from completed matches (ADMIN only).

    Without **team_id** all teams are recomputed.
    """
    team_id = sync_data.team_id if sync_data else None
    teams = await sync_team_stats(db, actor, team_id=team_id)
    return StatsSyncResponse(message=f"Recomputed {len(teams)} team(s)", teams=teams)
