from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import or_
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import db_operation
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.staff.crud.activities import record_activity
from app.staff.crud.teams import (
    COUNTER_FIELDS,
    build_team_summaries,
    check_team_access,
    get_team_by_id,
    get_teams_for_actor,
)
from app.staff.models.users import User, Profile
from app.staff.models.teams import Team
from app.staff.models.team_players import TeamPlayer
from app.staff.models.events import EventStatus
from app.staff.models.matches import Match
from app.staff.models.player_stats import PlayerStat
from app.players.models.players import Player
from app.staff.schemas.stats import PlayerStatUpdate
from app.staff.schemas.users import CurrentUser
from app.staff.services import stats_calculator as calc

UNKNOWN_OPPONENT = "Unknown"

_SPLITS = (
    ("field_goals_made", "field_goals_attempted"),
    ("three_pointers_made", "three_pointers_attempted"),
    ("free_throws_made", "free_throws_attempted"),
)


async def get_active_team_id(
    session: AsyncSession, player_id: int
) -> Optional[int]:
    result = await session.execute(
        select(TeamPlayer.team_id).where(
            TeamPlayer.player_id == player_id, TeamPlayer.is_active.is_(True)
        )
    )
    return result.scalars().first()


async def get_player_or_404(session: AsyncSession, player_id: int) -> Player:
    if not player_id or player_id <= 0:
        raise ValidationError("Player ID must be positive")

    player = await session.get(Player, player_id)
    if not player:
        raise NotFoundError("Player", str(player_id))
    return player


async def check_player_access(
    session: AsyncSession, player_id: int, actor: CurrentUser
):
    """ADMIN видит всех, COACH только игроков своих команд, PLAYER только себя"""
    if actor.is_admin:
        return
    if actor.is_player:
        if actor.player_id == player_id:
            return
        raise AuthorizationError("You can only view your own statistics")

    result = await session.execute(
        select(TeamPlayer.id)
        .join(Team, Team.id == TeamPlayer.team_id)
        .where(
            TeamPlayer.player_id == player_id,
            TeamPlayer.is_active.is_(True),
            Team.coach_id == actor.coach_id,
        )
    )
    if result.first() is None:
        raise PermissionDeniedError(
            "view", "player statistics", "Player is not on your teams"
        )


# === Пересчет счетчиков команд ===


async def recompute_team_counters(
    session: AsyncSession, team_ids: Iterable[int]
) -> List[Team]:
    """
    Пересчитать счетчики команд по завершенным матчам.

    Значения перезаписываются, а не увеличиваются. Изменения матчей
    должны быть уже отправлены в БД (flush) в этой же транзакции.
    """
    team_ids = sorted({team_id for team_id in team_ids if team_id})
    if not team_ids:
        return []

    teams_result = await session.execute(
        select(Team)
        .where(Team.id.in_(team_ids))
        .execution_options(populate_existing=True)
    )
    teams = teams_result.scalars().all()

    matches_result = await session.execute(
        select(Match).where(
            Match.status == EventStatus.COMPLETED,
            or_(Match.home_team_id.in_(team_ids), Match.away_team_id.in_(team_ids)),
        )
    )
    matches = matches_result.scalars().all()

    for team in teams:
        record = calc.team_record(team.id, matches)
        for field in COUNTER_FIELDS:
            setattr(team, field, record[field])

    return teams


@db_operation
async def sync_team_stats(
    session: AsyncSession, actor: CurrentUser, team_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Принудительный пересчет счетчиков одной или всех команд (ADMIN)"""
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can sync team statistics")

    if team_id is not None:
        team = await get_team_by_id(session, team_id)
        team_ids = [team.id]
    else:
        result = await session.execute(select(Team.id))
        team_ids = list(result.scalars().all())

    teams = await recompute_team_counters(session, team_ids)

    await record_activity(
        session,
        "team_stats_synced",
        "team",
        team_id or 0,
        actor.id,
        {"teams": len(teams)},
    )
    await session.commit()

    return _with_win_percentage(await build_team_summaries(session, teams))


def _with_win_percentage(summaries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    for summary in summaries:
        summary["win_percentage"] = calc.win_percentage(
            summary["wins"], summary["games_played"]
        )
    return summaries


@db_operation
async def team_stats_list(
    session: AsyncSession, actor: CurrentUser
) -> List[Dict[str, Any]]:
    """Статистика команд по хранимым счетчикам: ADMIN все, COACH свои"""
    if not (actor.is_admin or actor.is_coach):
        raise AuthorizationError("Only administrators and coaches can view team stats")

    teams = await get_teams_for_actor(session, actor)
    return _with_win_percentage(await build_team_summaries(session, teams))


# === Статистика игроков ===


async def _completed_stat_rows(session: AsyncSession, player_ids: List[int]):
    if not player_ids:
        return []
    result = await session.execute(
        select(PlayerStat)
        .join(Match, Match.id == PlayerStat.match_id)
        .where(
            PlayerStat.player_id.in_(player_ids),
            Match.status == EventStatus.COMPLETED,
        )
    )
    return result.scalars().all()


@db_operation
async def player_overall_stats(
    session: AsyncSession, player_id: int
) -> Dict[str, Any]:
    rows = await _completed_stat_rows(session, [player_id])
    return calc.player_overall_stats(rows)


@db_operation
async def player_game_log(
    session: AsyncSession, player_id: int
) -> List[Dict[str, Any]]:
    """
    Строка на каждый завершенный матч игрока, новые первыми.

    Сторона игрока берется из команды, записанной в строке статистики;
    для строк без нее используется текущая активная команда.
    """
    result = await session.execute(
        select(PlayerStat)
        .join(Match, Match.id == PlayerStat.match_id)
        .options(
            selectinload(PlayerStat.match).selectinload(Match.event),
            selectinload(PlayerStat.match).selectinload(Match.home_team),
            selectinload(PlayerStat.match).selectinload(Match.away_team),
        )
        .where(
            PlayerStat.player_id == player_id,
            Match.status == EventStatus.COMPLETED,
        )
        .execution_options(populate_existing=True)
    )
    rows = result.scalars().all()

    current_team_id = await get_active_team_id(session, player_id)

    entries = []
    for row in rows:
        match = row.match
        side_team_id = row.team_id or current_team_id
        is_home = not (
            match.away_team_id is not None and side_team_id == match.away_team_id
        )

        if is_home:
            if match.away_team is not None:
                opponent = match.away_team.name
            else:
                opponent = match.opponent_name or UNKNOWN_OPPONENT
        else:
            opponent = match.home_team.name if match.home_team else UNKNOWN_OPPONENT

        start_time = match.event.start_time if match.event else None
        entries.append(
            {
                "game_id": match.id,
                "event_id": match.event_id,
                "date": start_time.date().isoformat() if start_time else "",
                "opponent": opponent,
                "result": calc.game_result(
                    match.home_score, match.away_score, is_home
                ),
                "score": f"{match.home_score or 0}-{match.away_score or 0}",
                "minutes": row.minutes_played or 0,
                "points": row.points,
                "rebounds": row.rebounds,
                "assists": row.assists,
                "steals": row.steals,
                "blocks": row.blocks,
                "turnovers": row.turnovers,
                "field_goals": calc.shooting_split(
                    row.field_goals_made, row.field_goals_attempted
                ),
                "three_pointers": calc.shooting_split(
                    row.three_pointers_made, row.three_pointers_attempted
                ),
                "free_throws": calc.shooting_split(
                    row.free_throws_made, row.free_throws_attempted
                ),
                "efficiency": calc.efficiency(row),
                "_sort": start_time,
            }
        )

    entries.sort(key=lambda e: (e["_sort"] is not None, e["_sort"]), reverse=True)
    for entry in entries:
        entry.pop("_sort")
    return entries


@db_operation
async def get_player_stats(
    session: AsyncSession, player_id: int, actor: CurrentUser
) -> Dict[str, Any]:
    """Сводная статистика и журнал матчей игрока"""
    await get_player_or_404(session, player_id)
    await check_player_access(session, player_id, actor)

    return {
        "player_id": player_id,
        "overall_stats": await player_overall_stats(session, player_id),
        "game_stats": await player_game_log(session, player_id),
    }


@db_operation
async def players_stats_list(
    session: AsyncSession, actor: CurrentUser, team_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """
    Обзор статистики игроков.

    COACH видит только игроков своих команд; с team_id только эта команда.
    """
    if not (actor.is_admin or actor.is_coach):
        raise AuthorizationError("Only administrators and coaches can view player stats")

    query = (
        select(Player, Profile, Team.id, Team.name)
        .join(User, User.id == Player.user_id)
        .outerjoin(Profile, Profile.user_id == User.id)
        .outerjoin(
            TeamPlayer,
            (TeamPlayer.player_id == Player.id) & (TeamPlayer.is_active.is_(True)),
        )
        .outerjoin(Team, Team.id == TeamPlayer.team_id)
    )

    if team_id is not None:
        team = await get_team_by_id(session, team_id)
        check_team_access(team, actor, "view statistics of")
        query = query.where(Team.id == team.id)
    elif actor.is_coach:
        query = query.where(Team.coach_id == actor.coach_id)

    result = await session.execute(
        query.order_by(Profile.last_name, Profile.first_name, Player.id)
    )
    players = result.all()

    rows_by_player = defaultdict(list)
    for row in await _completed_stat_rows(session, [p.id for p, _, _, _ in players]):
        rows_by_player[row.player_id].append(row)

    return [
        {
            "player_id": player.id,
            "first_name": profile.first_name if profile else None,
            "last_name": profile.last_name if profile else None,
            "team_id": current_team_id,
            "team_name": current_team_name,
            "overall_stats": calc.player_overall_stats(rows_by_player[player.id]),
        }
        for player, profile, current_team_id, current_team_name in players
    ]


# === Ввод статистики матча ===


@db_operation
async def update_player_stat(
    session: AsyncSession,
    match_id: int,
    player_id: int,
    data: PlayerStatUpdate,
    actor: CurrentUser,
) -> PlayerStat:
    """
    Создать или обновить строку статистики игрока в матче.

    ADMIN или тренер одной из команд матча. Новая строка запоминает
    текущую команду игрока.
    """
    if not match_id or match_id <= 0:
        raise ValidationError("Match ID must be positive")

    match = await session.get(Match, match_id)
    if not match:
        raise NotFoundError("Match", str(match_id))

    if not actor.is_admin:
        owned = False
        if actor.is_coach:
            for team_id in match.team_ids:
                team = await get_team_by_id(session, team_id)
                if team.coach_id == actor.coach_id:
                    owned = True
                    break
        if not owned:
            raise PermissionDeniedError(
                "update", "match statistics", "You don't coach a team in this match"
            )

    await get_player_or_404(session, player_id)

    result = await session.execute(
        select(PlayerStat)
        .where(PlayerStat.match_id == match.id, PlayerStat.player_id == player_id)
        .execution_options(populate_existing=True)
    )
    stat = result.scalar_one_or_none()

    if stat is not None and stat.team_id is not None:
        team_id = stat.team_id
    else:
        team_id = await get_active_team_id(session, player_id)

    if not actor.is_admin and team_id not in match.team_ids:
        raise PermissionDeniedError(
            "update", "match statistics", "Player is not on a team in this match"
        )

    if stat is None:
        stat = PlayerStat(match_id=match.id, player_id=player_id, team_id=team_id)
        for field in PlayerStatUpdate.model_fields:
            setattr(stat, field, 0)
        session.add(stat)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for field, value in update_data.items():
        setattr(stat, field, value)

    for made_field, attempted_field in _SPLITS:
        made = getattr(stat, made_field) or 0
        attempted = getattr(stat, attempted_field) or 0
        if made > attempted:
            raise ValidationError(
                f"{made_field} cannot exceed {attempted_field}",
                {made_field: made, attempted_field: attempted},
            )

    await record_activity(
        session,
        "player_stat_updated",
        "match",
        match.id,
        actor.id,
        {"player_id": player_id, "fields": sorted(update_data)},
    )
    await session.commit()
    return stat
