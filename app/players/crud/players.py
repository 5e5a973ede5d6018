"""Player CRUD - schedule, teams and own statistics of the current player"""
from typing import Any, Dict, List
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_operation, utcnow
from app.core.exceptions import AuthorizationError, NotFoundError
from app.players.models.players import Player
from app.players.models.attendance import EventPlayer
from app.staff.crud.events import build_event_items
from app.staff.crud.stats import get_player_stats
from app.staff.crud.teams import get_coach_names
from app.staff.models.events import Event
from app.staff.models.teams import Team
from app.staff.models.team_players import TeamPlayer
from app.staff.schemas.users import CurrentUser


@db_operation
async def get_player_for_actor(session: AsyncSession, actor: CurrentUser) -> Player:
    """Player row of the current user"""
    if not actor.is_player or not actor.player_id:
        raise AuthorizationError("Only players have a player profile")

    player = await session.get(Player, actor.player_id)
    if not player:
        raise NotFoundError("Player", str(actor.player_id))
    return player


@db_operation
async def player_schedule(
    session: AsyncSession, actor: CurrentUser, upcoming_only: bool = True
) -> List[Dict[str, Any]]:
    """Events linked to the player, with own attendance, ordered by start time"""
    player = await get_player_for_actor(session, actor)

    query = (
        select(Event, EventPlayer.attendance)
        .join(EventPlayer, EventPlayer.event_id == Event.id)
        .where(EventPlayer.player_id == player.id)
        .execution_options(populate_existing=True)
    )
    if upcoming_only:
        query = query.where(Event.start_time >= utcnow())

    result = await session.execute(query.order_by(Event.start_time, Event.id))
    rows = result.all()

    items = await build_event_items(session, [event for event, _ in rows])
    for item, (_, attendance) in zip(items, rows):
        item["attendance"] = attendance
    return items


@db_operation
async def player_teams(session: AsyncSession, actor: CurrentUser) -> Dict[str, Any]:
    """All memberships of the player, active first"""
    player = await get_player_for_actor(session, actor)

    result = await session.execute(
        select(TeamPlayer, Team)
        .join(Team, Team.id == TeamPlayer.team_id)
        .where(TeamPlayer.player_id == player.id)
        .order_by(TeamPlayer.is_active.desc(), Team.name)
    )
    rows = result.all()
    coach_names = await get_coach_names(
        session, [team.coach_id for _, team in rows if team.coach_id]
    )

    return {
        "player_id": player.id,
        "position": player.position,
        "jersey_number": player.jersey_number,
        "teams": [
            {
                "team_id": team.id,
                "team_name": team.name,
                "coach_name": coach_names.get(team.coach_id),
                "is_active": membership.is_active,
                "join_date": membership.join_date,
                "leave_date": membership.leave_date,
            }
            for membership, team in rows
        ],
    }


@db_operation
async def player_own_stats(session: AsyncSession, actor: CurrentUser) -> Dict[str, Any]:
    player = await get_player_for_actor(session, actor)
    return await get_player_stats(session, player.id, actor)
