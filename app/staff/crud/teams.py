from typing import Any, Dict, List, Optional
from sqlalchemy import func, or_, delete, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_operation
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.staff.crud.activities import record_activity
from app.staff.models.users import User, Profile
from app.staff.models.coaches import Coach
from app.staff.models.teams import Team
from app.staff.models.team_players import TeamPlayer
from app.staff.models.events import EventTeam
from app.staff.models.matches import Match
from app.staff.models.player_stats import PlayerStat
from app.staff.schemas.teams import TeamCreate, TeamUpdate
from app.staff.schemas.users import CurrentUser

COUNTER_FIELDS = (
    "games_played",
    "wins",
    "losses",
    "draws",
    "points_for",
    "points_against",
)


@db_operation
async def get_team_by_id(session: AsyncSession, team_id: int) -> Team:
    if not team_id or team_id <= 0:
        raise ValidationError("Team ID must be positive")

    team = await session.get(Team, team_id, populate_existing=True)
    if not team:
        raise NotFoundError("Team", str(team_id))
    return team


def check_team_access(team: Team, actor: CurrentUser, action: str = "manage"):
    """ADMIN управляет любой командой, COACH только своей"""
    if actor.is_admin:
        return
    if actor.is_coach and actor.coach_id and team.coach_id == actor.coach_id:
        return
    raise PermissionDeniedError(action, "team", "You don't have access to this team")


async def get_coach_names(
    session: AsyncSession, coach_ids: List[int]
) -> Dict[int, str]:
    """coach_id -> "Имя Фамилия" (или email, если профиля нет)"""
    if not coach_ids:
        return {}

    result = await session.execute(
        select(Coach.id, User.email, Profile.first_name, Profile.last_name)
        .join(User, User.id == Coach.user_id)
        .outerjoin(Profile, Profile.user_id == User.id)
        .where(Coach.id.in_(coach_ids))
    )
    names = {}
    for coach_id, email, first_name, last_name in result.all():
        full_name = f"{first_name or ''} {last_name or ''}".strip()
        names[coach_id] = full_name or email
    return names


async def get_players_counts(
    session: AsyncSession, team_ids: List[int]
) -> Dict[int, int]:
    """Количество активных членств по командам"""
    if not team_ids:
        return {}

    result = await session.execute(
        select(TeamPlayer.team_id, func.count(TeamPlayer.id))
        .where(TeamPlayer.team_id.in_(team_ids), TeamPlayer.is_active.is_(True))
        .group_by(TeamPlayer.team_id)
    )
    return {team_id: count for team_id, count in result.all()}


async def build_team_summaries(
    session: AsyncSession, teams: List[Team]
) -> List[Dict[str, Any]]:
    """Сводки по командам: счетчики отдаются как есть, без пересчета"""
    team_ids = [team.id for team in teams]
    counts = await get_players_counts(session, team_ids)
    coach_names = await get_coach_names(
        session, [team.coach_id for team in teams if team.coach_id]
    )

    summaries = []
    for team in teams:
        summary = {
            "id": team.id,
            "name": team.name,
            "description": team.description,
            "coach_id": team.coach_id,
            "coach_name": coach_names.get(team.coach_id),
            "players_count": counts.get(team.id, 0),
        }
        for field in COUNTER_FIELDS:
            summary[field] = getattr(team, field) or 0
        summaries.append(summary)
    return summaries


@db_operation
async def team_summary(session: AsyncSession, team_id: int) -> Dict[str, Any]:
    team = await get_team_by_id(session, team_id)
    summaries = await build_team_summaries(session, [team])
    return summaries[0]


@db_operation
async def get_teams_for_actor(
    session: AsyncSession, actor: CurrentUser
) -> List[Team]:
    """ADMIN и PLAYER видят все команды, COACH только свои"""
    query = select(Team).order_by(Team.name, Team.id)
    if actor.is_coach:
        query = query.where(Team.coach_id == actor.coach_id)
    result = await session.execute(query)
    return result.scalars().all()


@db_operation
async def list_teams(session: AsyncSession, actor: CurrentUser):
    teams = await get_teams_for_actor(session, actor)
    return await build_team_summaries(session, teams)


async def _ensure_coach_exists(session: AsyncSession, coach_id: Optional[int]):
    if coach_id is None:
        return
    coach = await session.get(Coach, coach_id)
    if not coach:
        raise NotFoundError("Coach", str(coach_id))


@db_operation
async def create_team(session: AsyncSession, data: TeamCreate, actor: CurrentUser):
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can create teams")

    await _ensure_coach_exists(session, data.coach_id)

    team = Team(name=data.name, description=data.description, coach_id=data.coach_id)
    session.add(team)
    await session.flush()

    await record_activity(
        session, "team_created", "team", team.id, actor.id, {"name": team.name}
    )
    await session.commit()

    return await team_summary(session, team.id)


@db_operation
async def update_team(
    session: AsyncSession, team_id: int, data: TeamUpdate, actor: CurrentUser
):
    team = await get_team_by_id(session, team_id)
    check_team_access(team, actor, "update")

    update_data = data.model_dump(exclude_unset=True)
    if "name" in update_data and not update_data["name"]:
        raise ValidationError("Team name cannot be empty")

    for field, value in update_data.items():
        setattr(team, field, value)

    await record_activity(
        session,
        "team_updated",
        "team",
        team.id,
        actor.id,
        {"fields": sorted(update_data)},
    )
    await session.commit()

    return await team_summary(session, team.id)


@db_operation
async def assign_coach(
    session: AsyncSession, team_id: int, coach_id: Optional[int], actor: CurrentUser
):
    """Назначить тренера (или снять, если coach_id=None). Только ADMIN."""
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can assign coaches")

    team = await get_team_by_id(session, team_id)
    await _ensure_coach_exists(session, coach_id)

    previous = team.coach_id
    team.coach_id = coach_id

    await record_activity(
        session,
        "coach_assigned",
        "team",
        team.id,
        actor.id,
        {"previous_coach_id": previous, "coach_id": coach_id},
    )
    await session.commit()

    return await team_summary(session, team.id)


@db_operation
async def delete_team(session: AsyncSession, team_id: int, actor: CurrentUser):
    """
    Удалить команду вместе с ее членствами и связями с событиями.

    Команду с историей матчей удалить нельзя.
    """
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can delete teams")

    team = await get_team_by_id(session, team_id)

    matches_count = await session.execute(
        select(func.count(Match.id)).where(
            or_(Match.home_team_id == team.id, Match.away_team_id == team.id)
        )
    )
    if matches_count.scalar():
        raise ConflictError(
            "Team has match history and cannot be deleted",
            {"team_id": team.id},
        )

    await session.execute(
        update(PlayerStat).where(PlayerStat.team_id == team.id).values(team_id=None)
    )
    await session.execute(delete(TeamPlayer).where(TeamPlayer.team_id == team.id))
    team_name = team.name
    await session.execute(delete(EventTeam).where(EventTeam.team_id == team.id))
    await session.execute(delete(Team).where(Team.id == team.id))

    await record_activity(
        session, "team_deleted", "team", team_id, actor.id, {"name": team_name}
    )
    await session.commit()
    return True
