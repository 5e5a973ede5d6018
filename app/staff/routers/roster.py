from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional, Union

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import get_actor, require_staff
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.roster import (
    RosterAdd,
    MembershipToggle,
    MembershipRead,
    RosterPlayer,
    EligiblePlayer,
    MembershipDeleteResponse,
)
from app.staff.crud.roster import (
    assign_player_to_team,
    remove_player_from_team,
    set_membership_active,
    delete_membership,
    list_roster,
    list_eligible_players,
)

router = APIRouter(tags=["Roster"])


@router.get("/teams/{team_id}/players", response_model=List[RosterPlayer])
@limiter.limit("30/minute")
async def get_team_players(
    request: Request,
    team_id: int,
    include_inactive: bool = Query(True, description="Include closed memberships"),
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    Team roster ordered by last name.

    Each row shows the status in this team (**is_active_in_team**)
    and the account status (**global_is_active**).
    """
    return await list_roster(db, team_id, include_inactive=include_inactive)


@router.post(
    "/teams/{team_id}/players",
    response_model=MembershipRead,
    status_code=status.HTTP_201_CREATED,
)
@limiter.limit("20/minute")
async def add_team_player(
    request: Request,
    team_id: int,
    roster_data: RosterAdd,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Add player to team (ADMIN or the team's coach).

    A player has at most one active team:
    - COACH gets 403 if the player is active in another team
    - ADMIN moves the player, closing the previous membership

    An existing membership row is reactivated instead of creating a new one.
    """
    return await assign_player_to_team(db, team_id, roster_data.player_id, actor)


@router.patch("/teams/{team_id}/players/{player_id}", response_model=MembershipRead)
@limiter.limit("20/minute")
async def toggle_team_player(
    request: Request,
    team_id: int,
    player_id: int,
    toggle: MembershipToggle,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """Activate or deactivate an existing membership."""
    return await set_membership_active(db, team_id, player_id, toggle.is_active, actor)


@router.delete(
    "/teams/{team_id}/players/{player_id}",
    response_model=Union[MembershipRead, MembershipDeleteResponse],
)
@limiter.limit("20/minute")
async def remove_team_player(
    request: Request,
    team_id: int,
    player_id: int,
    purge: bool = Query(False, description="Delete the membership row completely"),
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Remove player from team.

    By default the membership is only deactivated (leave_date is set).
    With **purge=true** the row is deleted, e.g. to undo a wrong addition.
    """
    if purge:
        await delete_membership(db, team_id, player_id, actor)
        return MembershipDeleteResponse(
            message="Membership deleted", team_id=team_id, player_id=player_id
        )
    return await remove_player_from_team(db, team_id, player_id, actor)


@router.get("/players", response_model=List[EligiblePlayer])
@limiter.limit("30/minute")
async def get_players(
    request: Request,
    exclude_team_id: Optional[int] = Query(
        None, gt=0, description="Hide players that have any membership in this team"
    ),
    search: Optional[str] = Query(
        None, min_length=1, max_length=100, description="Search by name or email"
    ),
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Players available for adding to a team.

    Each player includes the current active team, if any.
    """
    return await list_eligible_players(
        db, actor, exclude_team_id=exclude_team_id, search=search
    )
