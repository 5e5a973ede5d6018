from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import get_actor, require_admin, require_staff
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.teams import (
    TeamCreate,
    TeamUpdate,
    CoachAssign,
    TeamRead,
    TeamDeleteResponse,
)
from app.staff.crud.teams import (
    list_teams,
    team_summary,
    create_team,
    update_team,
    assign_coach,
    delete_team,
)

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.get("", response_model=List[TeamRead])
@limiter.limit("30/minute")
async def get_teams(
    request: Request,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    List teams.

    COACH sees only own teams. Each team includes coach name,
    number of active players and stored match counters.
    """
    return await list_teams(db, actor)


@router.post("", response_model=TeamRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_team_endpoint(
    request: Request,
    team_data: TeamCreate,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a team (ADMIN only).

    - **name**: team name
    - **coach_id**: optional coach
    """
    return await create_team(db, team_data, actor)


@router.get("/{team_id}", response_model=TeamRead)
@limiter.limit("30/minute")
async def get_team(
    request: Request,
    team_id: int,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """Get team summary by ID."""
    return await team_summary(db, team_id)


@router.put("/{team_id}", response_model=TeamRead)
@limiter.limit("10/minute")
async def update_team_endpoint(
    request: Request,
    team_id: int,
    team_data: TeamUpdate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """Update team name or description (ADMIN or the team's coach)."""
    return await update_team(db, team_id, team_data, actor)


@router.put("/{team_id}/coach", response_model=TeamRead)
@limiter.limit("10/minute")
async def assign_coach_endpoint(
    request: Request,
    team_id: int,
    coach_data: CoachAssign,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Assign or unassign (coach_id = null) the team's coach (ADMIN only)."""
    return await assign_coach(db, team_id, coach_data.coach_id, actor)


@router.delete("/{team_id}", response_model=TeamDeleteResponse)
@limiter.limit("5/minute")
async def delete_team_endpoint(
    request: Request,
    team_id: int,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Delete a team with its memberships and event links (ADMIN only).

    Teams with match history cannot be deleted.
    """
    await delete_team(db, team_id, actor)
    return TeamDeleteResponse(message="Team deleted successfully", team_id=team_id)
