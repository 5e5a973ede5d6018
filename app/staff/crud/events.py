"""
События клуба: создание, фильтрация, изменение и удаление.

Связи событие-игроки создаются снимком активного состава команд в момент
создания события. Изменения завершенных матчей сразу пересчитывают
счетчики команд в той же транзакции.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import or_, func, delete
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_operation
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.staff.crud.activities import record_activity
from app.staff.crud.stats import recompute_team_counters
from app.staff.models.users import Profile
from app.staff.models.coaches import Coach
from app.staff.models.teams import Team
from app.staff.models.team_players import TeamPlayer
from app.staff.models.events import Event, EventTeam, EventCoach, EventType, EventStatus
from app.staff.models.matches import Match
from app.staff.models.player_stats import PlayerStat
from app.players.models.players import Player
from app.players.models.attendance import EventPlayer, AttendanceStatus
from app.staff.schemas.events import EventCreate, EventUpdate, EventFilters
from app.staff.schemas.users import CurrentUser

MATCH_FIELDS = ("home_team_id", "away_team_id", "opponent_name", "home_score", "away_score")


def as_utc(value: datetime) -> datetime:
    """SQLite возвращает naive datetime, считаем его UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _unique(ids: Iterable[Optional[int]]) -> List[int]:
    seen = []
    for item in ids:
        if item is not None and item not in seen:
            seen.append(item)
    return seen


async def _load_teams(session: AsyncSession, team_ids: List[int]) -> List[Team]:
    if not team_ids:
        return []
    result = await session.execute(select(Team).where(Team.id.in_(team_ids)))
    teams = result.scalars().all()
    missing = set(team_ids) - {team.id for team in teams}
    if missing:
        raise NotFoundError("Team", ", ".join(str(i) for i in sorted(missing)))
    return teams


def _check_coach_owns_all(teams: List[Team], actor: CurrentUser):
    if actor.is_admin:
        return
    foreign = [team.id for team in teams if team.coach_id != actor.coach_id]
    if foreign:
        raise PermissionDeniedError(
            "link", "event", f"You don't coach teams: {foreign}"
        )


def _check_coach_owns_match(teams: List[Team], actor: CurrentUser):
    if actor.is_admin:
        return
    if not any(team.coach_id == actor.coach_id for team in teams):
        raise PermissionDeniedError(
            "schedule", "match", "You don't coach a team in this match"
        )


async def _get_event_or_404(session: AsyncSession, event_id: int) -> Event:
    if not event_id or event_id <= 0:
        raise ValidationError("Event ID must be positive")

    event = await session.get(Event, event_id, populate_existing=True)
    if not event:
        raise NotFoundError("Event", str(event_id))
    return event


async def _get_match(session: AsyncSession, event_id: int) -> Optional[Match]:
    result = await session.execute(
        select(Match)
        .where(Match.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _event_team_ids(session: AsyncSession, event_id: int) -> List[int]:
    result = await session.execute(
        select(EventTeam.team_id).where(EventTeam.event_id == event_id)
    )
    return list(result.scalars().all())


async def _active_player_ids(session: AsyncSession, team_ids: List[int]) -> List[int]:
    if not team_ids:
        return []
    result = await session.execute(
        select(TeamPlayer.player_id)
        .where(TeamPlayer.team_id.in_(team_ids), TeamPlayer.is_active.is_(True))
        .order_by(TeamPlayer.player_id)
    )
    return _unique(result.scalars().all())


def coach_event_scope(actor: CurrentUser):
    """Условие на Event.id: события своих команд или где тренер указан явно"""
    own_teams = (
        select(EventTeam.event_id)
        .join(Team, Team.id == EventTeam.team_id)
        .where(Team.coach_id == actor.coach_id)
    )
    linked = select(EventCoach.event_id).where(EventCoach.coach_id == actor.coach_id)
    return or_(Event.id.in_(own_teams), Event.id.in_(linked))


def player_event_scope(actor: CurrentUser):
    return Event.id.in_(
        select(EventPlayer.event_id).where(EventPlayer.player_id == actor.player_id)
    )


async def _check_event_visible(
    session: AsyncSession, event: Event, actor: CurrentUser
):
    if actor.is_admin:
        return
    scope = coach_event_scope(actor) if actor.is_coach else player_event_scope(actor)
    result = await session.execute(
        select(Event.id).where(Event.id == event.id, scope)
    )
    if result.first() is None:
        raise PermissionDeniedError("view", "event", "Event is not linked to you")


async def _check_event_manageable(
    session: AsyncSession, event: Event, actor: CurrentUser
):
    if actor.is_admin:
        return
    if not actor.is_coach:
        raise AuthorizationError("Only administrators and coaches can manage events")
    result = await session.execute(
        select(Event.id).where(Event.id == event.id, coach_event_scope(actor))
    )
    if result.first() is None:
        raise PermissionDeniedError("update", "event", "You don't coach this event")


# === Сборка ответов ===


async def build_event_items(
    session: AsyncSession, events: List[Event]
) -> List[Dict[str, Any]]:
    """Словари событий с командами и матчем, без N+1 запросов"""
    event_ids = [event.id for event in events]
    if not event_ids:
        return []

    teams_result = await session.execute(
        select(EventTeam.event_id, Team.id, Team.name)
        .join(Team, Team.id == EventTeam.team_id)
        .where(EventTeam.event_id.in_(event_ids))
        .order_by(Team.name)
    )
    teams_by_event: Dict[int, List[Dict[str, Any]]] = {}
    for event_id, team_id, team_name in teams_result.all():
        teams_by_event.setdefault(event_id, []).append({"id": team_id, "name": team_name})

    matches_result = await session.execute(
        select(Match)
        .where(Match.event_id.in_(event_ids))
        .execution_options(populate_existing=True)
    )
    matches = {match.event_id: match for match in matches_result.scalars().all()}

    match_team_ids = _unique(
        team_id for match in matches.values() for team_id in match.team_ids
    )
    names = {}
    if match_team_ids:
        names_result = await session.execute(
            select(Team.id, Team.name).where(Team.id.in_(match_team_ids))
        )
        names = dict(names_result.all())

    items = []
    for event in events:
        match = matches.get(event.id)
        items.append(
            {
                "id": event.id,
                "title": event.title,
                "description": event.description,
                "event_type": event.event_type,
                "start_time": event.start_time,
                "end_time": event.end_time,
                "location": event.location,
                "status": event.status,
                "teams": teams_by_event.get(event.id, []),
                "match": _match_dict(match, names) if match else None,
            }
        )
    return items


def _match_dict(match: Match, names: Dict[int, str]) -> Dict[str, Any]:
    return {
        "id": match.id,
        "home_team_id": match.home_team_id,
        "home_team_name": names.get(match.home_team_id),
        "away_team_id": match.away_team_id,
        "away_team_name": names.get(match.away_team_id),
        "opponent_name": match.opponent_name,
        "home_score": match.home_score,
        "away_score": match.away_score,
        "status": match.status,
    }


@db_operation
async def get_event(
    session: AsyncSession, event_id: int, actor: CurrentUser
) -> Dict[str, Any]:
    """Событие с командами, тренерами, игроками (посещаемость) и матчем"""
    event = await _get_event_or_404(session, event_id)
    await _check_event_visible(session, event, actor)

    item = (await build_event_items(session, [event]))[0]

    coaches_result = await session.execute(
        select(EventCoach.coach_id)
        .where(EventCoach.event_id == event.id)
        .order_by(EventCoach.coach_id)
    )
    players_result = await session.execute(
        select(EventPlayer.player_id, EventPlayer.attendance, Profile.first_name, Profile.last_name)
        .join(Player, Player.id == EventPlayer.player_id)
        .outerjoin(Profile, Profile.user_id == Player.user_id)
        .where(EventPlayer.event_id == event.id)
        .order_by(Profile.last_name, Profile.first_name, EventPlayer.player_id)
        .execution_options(populate_existing=True)
    )

    item["created_by_id"] = event.created_by_id
    item["coach_ids"] = list(coaches_result.scalars().all())
    item["players"] = [
        {
            "player_id": player_id,
            "first_name": first_name,
            "last_name": last_name,
            "attendance": attendance,
        }
        for player_id, attendance, first_name, last_name in players_result.all()
    ]
    return item


@db_operation
async def list_events(
    session: AsyncSession, filters: EventFilters, actor: CurrentUser
) -> List[Dict[str, Any]]:
    """
    События, видимые пользователю, по возрастанию времени начала.

    COACH видит события своих команд и те, где он указан тренером,
    PLAYER только события, к которым он привязан.
    """
    query = select(Event)

    if actor.is_coach:
        query = query.where(coach_event_scope(actor))
    elif not actor.is_admin:
        query = query.where(player_event_scope(actor))

    if filters.search and filters.search.strip():
        pattern = f"%{filters.search.strip().lower()}%"
        query = query.where(
            or_(
                func.lower(Event.title).like(pattern),
                func.lower(Event.description).like(pattern),
                func.lower(Event.location).like(pattern),
            )
        )

    if filters.event_type:
        query = query.where(Event.event_type == filters.event_type)

    if filters.date_from:
        start = datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)
        query = query.where(Event.start_time >= start)

    if filters.date_to:
        end = datetime.combine(
            filters.date_to + timedelta(days=1), time.min, tzinfo=timezone.utc
        )
        query = query.where(Event.start_time < end)

    if filters.team_id:
        query = query.where(
            Event.id.in_(
                select(EventTeam.event_id).where(EventTeam.team_id == filters.team_id)
            )
        )

    result = await session.execute(query.order_by(Event.start_time, Event.id))
    return await build_event_items(session, result.scalars().all())


# === Изменения ===


async def _seed_match_stats(session: AsyncSession, match: Match) -> int:
    """Нулевые строки статистики для активного состава обеих команд матча"""
    created = 0
    for team_id in match.team_ids:
        for player_id in await _active_player_ids(session, [team_id]):
            stat = PlayerStat(match_id=match.id, player_id=player_id, team_id=team_id)
            session.add(stat)
            created += 1
    return created


async def _link_teams(session: AsyncSession, event_id: int, team_ids: List[int]):
    existing = set(await _event_team_ids(session, event_id))
    for team_id in team_ids:
        if team_id not in existing:
            session.add(EventTeam(event_id=event_id, team_id=team_id))
            existing.add(team_id)


@db_operation
async def create_event(
    session: AsyncSession, data: EventCreate, actor: CurrentUser
) -> Dict[str, Any]:
    """
    Создать событие со связями и снимком состава.

    Игроки всех указанных команд (и команд матча) получают статус PLANNED.
    Всё выполняется одной транзакцией.
    """
    if not (actor.is_admin or actor.is_coach):
        raise AuthorizationError("Only administrators and coaches can create events")

    named_teams = await _load_teams(session, _unique(data.team_ids))
    _check_coach_owns_all(named_teams, actor)

    match_data = data.match
    match_teams = []
    if match_data is not None:
        match_teams = await _load_teams(
            session, _unique([match_data.home_team_id, match_data.away_team_id])
        )
        _check_coach_owns_match(match_teams, actor)

    team_ids = _unique(
        [team.id for team in named_teams] + [team.id for team in match_teams]
    )

    coach_ids = _unique(
        list(data.coach_ids) + ([actor.coach_id] if actor.is_coach else [])
    )
    if coach_ids:
        coaches_result = await session.execute(
            select(Coach.id).where(Coach.id.in_(coach_ids))
        )
        missing = set(coach_ids) - set(coaches_result.scalars().all())
        if missing:
            raise NotFoundError("Coach", ", ".join(str(i) for i in sorted(missing)))

    event = Event(
        title=data.title,
        description=data.description,
        event_type=data.event_type,
        start_time=data.start_time,
        end_time=data.end_time,
        location=data.location,
        status=data.status,
        created_by_id=actor.id,
    )
    session.add(event)
    await session.flush()

    for team_id in team_ids:
        session.add(EventTeam(event_id=event.id, team_id=team_id))
    for coach_id in coach_ids:
        session.add(EventCoach(event_id=event.id, coach_id=coach_id))

    player_ids = await _active_player_ids(session, team_ids)
    for player_id in player_ids:
        session.add(
            EventPlayer(
                event_id=event.id,
                player_id=player_id,
                attendance=AttendanceStatus.PLANNED,
            )
        )

    details = {"teams": team_ids, "players": len(player_ids)}

    if match_data is not None:
        match = Match(
            event_id=event.id,
            home_team_id=match_data.home_team_id,
            away_team_id=match_data.away_team_id,
            opponent_name=match_data.opponent_name,
            home_score=match_data.home_score,
            away_score=match_data.away_score,
            status=event.status,
        )
        session.add(match)
        await session.flush()

        if match_data.seed_stats:
            details["seeded_stats"] = await _seed_match_stats(session, match)

        if match.status == EventStatus.COMPLETED:
            await session.flush()
            await recompute_team_counters(session, match.team_ids)

    await record_activity(session, "event_created", "event", event.id, actor.id, details)
    await session.commit()

    return await get_event(session, event.id, actor)


@db_operation
async def update_event(
    session: AsyncSession, event_id: int, data: EventUpdate, actor: CurrentUser
) -> Dict[str, Any]:
    """
    Частичное обновление события.

    team_ids заменяет связи с командами без пересборки игроков.
    Смена типа с MATCH удаляет матч вместе со статистикой. Статус события
    переносится на матч.
    """
    event = await _get_event_or_404(session, event_id)
    await _check_event_manageable(session, event, actor)

    update_data = data.model_dump(exclude_unset=True)
    new_team_ids = update_data.pop("team_ids", None)
    match_update = update_data.pop("match", None)

    for field in ("title", "event_type", "start_time", "end_time", "status"):
        if field in update_data and update_data[field] is None:
            raise ValidationError(f"{field} cannot be null")

    if match_update and "home_team_id" in match_update:
        if match_update["home_team_id"] is None:
            raise ValidationError("home_team_id cannot be null")

    start_time = update_data.get("start_time", event.start_time)
    end_time = update_data.get("end_time", event.end_time)
    if as_utc(end_time) <= as_utc(start_time):
        raise ValidationError("end_time must be after start_time")

    match = await _get_match(session, event.id)
    old_match_teams = match.team_ids if match else []
    was_completed = match is not None and match.status == EventStatus.COMPLETED

    for field, value in update_data.items():
        setattr(event, field, value)

    if new_team_ids is not None:
        teams = await _load_teams(session, _unique(new_team_ids))
        _check_coach_owns_all(teams, actor)
        await session.execute(delete(EventTeam).where(EventTeam.event_id == event.id))
        for team in teams:
            session.add(EventTeam(event_id=event.id, team_id=team.id))
        await session.flush()

    if match is not None and event.event_type != EventType.MATCH:
        await session.execute(delete(PlayerStat).where(PlayerStat.match_id == match.id))
        await session.execute(delete(Match).where(Match.id == match.id))
        match = None

    if match_update is not None:
        if event.event_type != EventType.MATCH:
            raise ValidationError("Match data is allowed only for MATCH events")

        match_update = {k: v for k, v in match_update.items() if k in MATCH_FIELDS}
        if match is None:
            if not match_update.get("home_team_id"):
                raise ValidationError("home_team_id is required to create a match")
            match = Match(event_id=event.id, **match_update)
            session.add(match)
        else:
            for field, value in match_update.items():
                setattr(match, field, value)

        if match.away_team_id is not None and match.away_team_id == match.home_team_id:
            raise ValidationError("Away team must differ from home team")

        match_teams = await _load_teams(session, match.team_ids)
        _check_coach_owns_match(match_teams, actor)

    if match is not None:
        match.status = event.status
        await session.flush()

        # Команды, выбывшие из матча, отвязываются, если их не указали в team_ids
        dropped = set(old_match_teams) - set(match.team_ids) - set(new_team_ids or [])
        if dropped:
            await session.execute(
                delete(EventTeam).where(
                    EventTeam.event_id == event.id, EventTeam.team_id.in_(dropped)
                )
            )
        await _link_teams(session, event.id, match.team_ids)

    is_completed = match is not None and match.status == EventStatus.COMPLETED
    if was_completed or is_completed:
        await session.flush()
        await recompute_team_counters(
            session, _unique(old_match_teams + (match.team_ids if match else []))
        )

    await record_activity(
        session,
        "event_updated",
        "event",
        event.id,
        actor.id,
        {
            "fields": sorted(update_data),
            "teams_replaced": new_team_ids is not None,
            "match_updated": match_update is not None,
        },
    )
    await session.commit()

    return await get_event(session, event.id, actor)


@db_operation
async def delete_event(session: AsyncSession, event_id: int, actor: CurrentUser) -> bool:
    """Удалить событие с матчем, статистикой и связями (только ADMIN)"""
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can delete events")

    event = await _get_event_or_404(session, event_id)
    match = await _get_match(session, event.id)

    match_teams = []
    was_completed = False
    if match is not None:
        match_teams = match.team_ids
        was_completed = match.status == EventStatus.COMPLETED
        await session.execute(delete(PlayerStat).where(PlayerStat.match_id == match.id))
        await session.execute(delete(Match).where(Match.id == match.id))

    title = event.title
    await session.execute(delete(EventPlayer).where(EventPlayer.event_id == event.id))
    await session.execute(delete(EventTeam).where(EventTeam.event_id == event.id))
    await session.execute(delete(EventCoach).where(EventCoach.event_id == event.id))
    await session.execute(delete(Event).where(Event.id == event.id))

    if was_completed:
        await recompute_team_counters(session, match_teams)

    await record_activity(
        session, "event_deleted", "event", event_id, actor.id, {"title": title}
    )
    await session.commit()
    return True
