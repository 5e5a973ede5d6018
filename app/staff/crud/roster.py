"""
Состав команд: членство игроков и его ограничения.

Все изменения членства проходят через эти функции. У игрока может быть
не больше одного активного членства: это проверяется здесь и дополнительно
гарантируется частичным уникальным индексом uq_team_players_one_active.
"""

from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy import or_, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from app.core.database import db_operation, utcnow
from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from app.staff.crud.activities import record_activity
from app.staff.crud.teams import get_team_by_id, check_team_access
from app.staff.models.users import User, Profile
from app.staff.models.teams import Team
from app.staff.models.team_players import TeamPlayer
from app.players.models.players import Player
from app.staff.schemas.users import CurrentUser


async def _lock_player(session: AsyncSession, player_id: int) -> Tuple[Player, User]:
    """
    Загрузить игрока с блокировкой строки (SELECT ... FOR UPDATE).

    Параллельные изменения членства одного игрока выполняются по очереди.
    """
    if not player_id or player_id <= 0:
        raise ValidationError("Player ID must be positive")

    result = await session.execute(
        select(Player).where(Player.id == player_id).with_for_update()
    )
    player = result.scalar_one_or_none()
    if not player:
        raise NotFoundError("Player", str(player_id))

    user_result = await session.execute(
        select(User)
        .where(User.id == player.user_id)
        .execution_options(populate_existing=True)
    )
    return player, user_result.scalar_one()


async def _get_membership(
    session: AsyncSession, team_id: int, player_id: int
) -> Optional[TeamPlayer]:
    result = await session.execute(
        select(TeamPlayer)
        .where(TeamPlayer.team_id == team_id, TeamPlayer.player_id == player_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _get_existing_membership(
    session: AsyncSession, team_id: int, player_id: int
) -> TeamPlayer:
    membership = await _get_membership(session, team_id, player_id)
    if not membership:
        raise NotFoundError("Team membership", f"team={team_id}, player={player_id}")
    return membership


async def _commit_membership_change(session: AsyncSession, player_id: int):
    """Коммит с переводом нарушения уникального индекса в Conflict"""
    try:
        await session.flush()
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError(
            "Player already has an active membership in another team",
            {"player_id": player_id},
        )


async def _activate_membership(
    session: AsyncSession,
    team: Team,
    player: Player,
    user: User,
    actor: CurrentUser,
) -> TeamPlayer:
    """
    Сделать членство игрока в команде активным.

    COACH не может забрать глобально активного игрока из другой команды.
    ADMIN переводит игрока: прежнее активное членство закрывается.
    """
    other_result = await session.execute(
        select(Team.id, Team.name)
        .select_from(TeamPlayer)
        .join(Team, Team.id == TeamPlayer.team_id)
        .where(
            TeamPlayer.player_id == player.id,
            TeamPlayer.is_active.is_(True),
            TeamPlayer.team_id != team.id,
        )
    )
    other = other_result.first()

    membership = await _get_membership(session, team.id, player.id)
    if membership is not None and membership.is_active:
        return membership

    details = {"team_id": team.id, "player_id": player.id}

    if other is not None:
        other_team_id, other_team_name = other
        if actor.is_coach and user.is_active:
            raise ConflictError(
                f'Player already belongs to team "{other_team_name}"',
                {**details, "current_team_id": other_team_id},
                status_code=403,
            )

        # Перевод: закрываем прежнее членство до активации нового
        await session.execute(
            update(TeamPlayer)
            .where(
                TeamPlayer.player_id == player.id,
                TeamPlayer.is_active.is_(True),
                TeamPlayer.team_id != team.id,
            )
            .values(is_active=False, leave_date=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        details["moved_from_team_id"] = other_team_id

    if membership is not None:
        membership.is_active = True
        membership.leave_date = None
        action = "player_reactivated_in_team"
    else:
        membership = TeamPlayer(team_id=team.id, player_id=player.id, is_active=True)
        session.add(membership)
        action = "player_added_to_team"

    if not user.is_active:
        user.is_active = True
        details["user_reactivated"] = True

    await record_activity(session, action, "team", team.id, actor.id, details)
    return membership


async def _deactivate_membership(
    session: AsyncSession, membership: TeamPlayer, actor: CurrentUser
) -> TeamPlayer:
    if not membership.is_active:
        return membership

    membership.is_active = False
    membership.leave_date = utcnow()

    await record_activity(
        session,
        "player_removed_from_team",
        "team",
        membership.team_id,
        actor.id,
        {"player_id": membership.player_id},
    )
    return membership


@db_operation
async def assign_player_to_team(
    session: AsyncSession, team_id: int, player_id: int, actor: CurrentUser
) -> TeamPlayer:
    """
    Добавить игрока в команду.

    Существующая строка (team, player) реактивируется, новая создается
    только если строки не было. Повторный вызов для уже активного
    членства ничего не меняет.
    """
    team = await get_team_by_id(session, team_id)
    check_team_access(team, actor, "add players to")

    player, user = await _lock_player(session, player_id)
    membership = await _activate_membership(session, team, player, user, actor)

    await _commit_membership_change(session, player.id)
    return membership


@db_operation
async def remove_player_from_team(
    session: AsyncSession, team_id: int, player_id: int, actor: CurrentUser
) -> TeamPlayer:
    """Деактивировать членство, строка сохраняется для истории"""
    team = await get_team_by_id(session, team_id)
    check_team_access(team, actor, "remove players from")

    membership = await _get_existing_membership(session, team.id, player_id)
    await _deactivate_membership(session, membership, actor)

    await session.commit()
    return membership


@db_operation
async def set_membership_active(
    session: AsyncSession,
    team_id: int,
    player_id: int,
    is_active: bool,
    actor: CurrentUser,
) -> TeamPlayer:
    """
    Переключить статус существующего членства.

    Активация подчиняется тем же правилам, что и добавление в команду.
    """
    team = await get_team_by_id(session, team_id)
    check_team_access(team, actor, "update players of")

    membership = await _get_existing_membership(session, team.id, player_id)

    if not is_active:
        await _deactivate_membership(session, membership, actor)
        await session.commit()
        return membership

    player, user = await _lock_player(session, player_id)
    membership = await _activate_membership(session, team, player, user, actor)

    await _commit_membership_change(session, player.id)
    return membership


@db_operation
async def delete_membership(
    session: AsyncSession, team_id: int, player_id: int, actor: CurrentUser
) -> bool:
    """Удалить строку членства полностью (исправление ошибочного добавления)"""
    team = await get_team_by_id(session, team_id)
    check_team_access(team, actor, "delete players from")

    membership = await _get_existing_membership(session, team.id, player_id)
    await session.delete(membership)

    await record_activity(
        session,
        "membership_deleted",
        "team",
        team.id,
        actor.id,
        {"player_id": player_id, "was_active": membership.is_active},
    )
    await session.commit()
    return True


@db_operation
async def list_roster(
    session: AsyncSession, team_id: int, include_inactive: bool = True
) -> List[Dict[str, Any]]:
    """Состав команды, отсортированный по фамилии"""
    team = await get_team_by_id(session, team_id)

    query = (
        select(TeamPlayer, Player, User, Profile)
        .join(Player, Player.id == TeamPlayer.player_id)
        .join(User, User.id == Player.user_id)
        .outerjoin(Profile, Profile.user_id == User.id)
        .where(TeamPlayer.team_id == team.id)
        .order_by(Profile.last_name, Profile.first_name, Player.id)
    )
    if not include_inactive:
        query = query.where(TeamPlayer.is_active.is_(True))

    result = await session.execute(query)

    roster = []
    for membership, player, user, profile in result.all():
        roster.append(
            {
                "membership_id": membership.id,
                "player_id": player.id,
                "user_id": user.id,
                "email": user.email,
                "first_name": profile.first_name if profile else None,
                "last_name": profile.last_name if profile else None,
                "position": player.position,
                "jersey_number": player.jersey_number,
                "is_active_in_team": membership.is_active,
                "global_is_active": user.is_active,
                "join_date": membership.join_date,
                "leave_date": membership.leave_date,
            }
        )
    return roster


@db_operation
async def list_eligible_players(
    session: AsyncSession,
    actor: CurrentUser,
    exclude_team_id: Optional[int] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Игроки без какой-либо строки членства (активной или нет) в exclude_team_id.

    Для каждого игрока указывается его текущая активная команда.
    """
    if not (actor.is_admin or actor.is_coach):
        raise AuthorizationError("Only administrators and coaches can list players")

    current = aliased(TeamPlayer)
    current_team = aliased(Team)

    query = (
        select(Player, User, Profile, current_team.id, current_team.name)
        .join(User, User.id == Player.user_id)
        .outerjoin(Profile, Profile.user_id == User.id)
        .outerjoin(
            current,
            (current.player_id == Player.id) & (current.is_active.is_(True)),
        )
        .outerjoin(current_team, current_team.id == current.team_id)
    )

    if exclude_team_id is not None:
        if exclude_team_id <= 0:
            raise ValidationError("Team ID must be positive")
        in_team = select(TeamPlayer.player_id).where(
            TeamPlayer.team_id == exclude_team_id
        )
        query = query.where(Player.id.not_in(in_team))

    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Profile.first_name).like(pattern),
                func.lower(Profile.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )

    result = await session.execute(
        query.order_by(Profile.last_name, Profile.first_name, Player.id)
    )

    players = []
    for player, user, profile, team_id, team_name in result.all():
        players.append(
            {
                "player_id": player.id,
                "user_id": user.id,
                "email": user.email,
                "first_name": profile.first_name if profile else None,
                "last_name": profile.last_name if profile else None,
                "position": player.position,
                "jersey_number": player.jersey_number,
                "global_is_active": user.is_active,
                "current_team_id": team_id,
                "current_team_name": team_name,
            }
        )
    return players
