from typing import Any, Dict, List
from sqlalchemy import func
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import DASHBOARD_MONTHS
from app.core.database import db_operation, utcnow
from app.staff.crud.activities import get_recent_activities
from app.staff.crud.events import coach_event_scope, player_event_scope
from app.staff.crud.stats import get_active_team_id, player_overall_stats
from app.staff.crud.teams import get_players_counts, get_teams_for_actor
from app.staff.models.coaches import Coach
from app.staff.models.teams import Team
from app.staff.models.events import Event, EventStatus
from app.staff.models.matches import Match
from app.staff.schemas.users import CurrentUser
from app.staff.services import stats_calculator as calc
from app.players.models.players import Player

RECENT_ACTIVITIES_LIMIT = 10


async def _teams_in_scope(session: AsyncSession, actor: CurrentUser) -> List[Team]:
    if actor.is_player:
        team_id = await get_active_team_id(session, actor.player_id)
        if team_id is None:
            return []
        team = await session.get(Team, team_id)
        return [team] if team else []
    return await get_teams_for_actor(session, actor)


def _scoped(query, actor: CurrentUser):
    if actor.is_coach:
        return query.where(coach_event_scope(actor))
    if actor.is_player:
        return query.where(player_event_scope(actor))
    return query


async def _results_chart(
    session: AsyncSession, teams: List[Team]
) -> Dict[str, List]:
    """W/L/D по завершенным матчам, а не по сохраненным счетчикам"""
    chart = {"labels": [], "wins": [], "losses": [], "draws": []}
    if not teams:
        return chart

    team_ids = [team.id for team in teams]
    result = await session.execute(
        select(Match).where(
            Match.status == EventStatus.COMPLETED,
            (Match.home_team_id.in_(team_ids)) | (Match.away_team_id.in_(team_ids)),
        )
    )
    matches = result.scalars().all()

    for team in teams:
        record = calc.team_record(team.id, matches)
        chart["labels"].append(team.name)
        chart["wins"].append(record["wins"])
        chart["losses"].append(record["losses"])
        chart["draws"].append(record["draws"])
    return chart


@db_operation
async def get_dashboard(session: AsyncSession, actor: CurrentUser) -> Dict[str, Any]:
    """
    Сводка для роли пользователя.

    ADMIN: все команды, игроки, тренеры и журнал действий.
    COACH: свои команды и их активные игроки.
    PLAYER: текущая команда и сыгранные матчи.
    Во всех случаях: гистограмма предстоящих событий на DASHBOARD_MONTHS
    месяцев и результаты команд.
    """
    now = utcnow()
    buckets = calc.month_buckets(now, DASHBOARD_MONTHS)
    end_year, end_month = calc.add_months(*buckets[-1], 1)
    window_end = now.replace(
        year=end_year, month=end_month, day=1, hour=0, minute=0, second=0, microsecond=0
    )

    upcoming_query = _scoped(
        select(Event.start_time, Event.event_type).where(
            Event.start_time >= now,
            Event.start_time < window_end,
            Event.status.not_in([EventStatus.CANCELLED, EventStatus.COMPLETED]),
        ),
        actor,
    )
    upcoming_result = await session.execute(upcoming_query)
    upcoming = upcoming_result.all()

    teams = await _teams_in_scope(session, actor)
    counts = await get_players_counts(session, [team.id for team in teams])

    summary: Dict[str, Any] = {
        "role": actor.role,
        "upcoming_events": len(upcoming),
        "events_chart": calc.events_histogram(upcoming, now, DASHBOARD_MONTHS),
        "results_chart": await _results_chart(session, teams),
        "players_chart": {
            "labels": [team.name for team in teams],
            "players": [counts.get(team.id, 0) for team in teams],
        },
        "recent_activities": [],
    }

    if actor.is_admin:
        summary["total_teams"] = (
            await session.execute(select(func.count(Team.id)))
        ).scalar() or 0
        summary["total_players"] = (
            await session.execute(select(func.count(Player.id)))
        ).scalar() or 0
        summary["total_coaches"] = (
            await session.execute(select(func.count(Coach.id)))
        ).scalar() or 0
        summary["recent_activities"] = await get_recent_activities(
            session, limit=RECENT_ACTIVITIES_LIMIT
        )
    elif actor.is_coach:
        summary["my_teams"] = len(teams)
        summary["active_players"] = sum(counts.values())
    else:
        team = teams[0] if teams else None
        summary["team_id"] = team.id if team else None
        summary["team_name"] = team.name if team else None
        overall = await player_overall_stats(session, actor.player_id)
        summary["games_played"] = overall["total_games"]

    return summary
