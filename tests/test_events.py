import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from app.core.exceptions import (
    AuthorizationError,
    PermissionDeniedError,
    ValidationError,
)
from app.players.crud.attendance import update_attendance
from app.players.crud.players import player_schedule
from app.staff.crud.events import (
    create_event,
    delete_event,
    get_event,
    list_events,
    update_event,
)
from app.staff.crud.roster import assign_player_to_team
from app.staff.crud.teams import team_summary
from app.staff.models import (
    AttendanceStatus,
    EventPlayer,
    EventStatus,
    EventType,
    Match,
    PlayerStat,
)
from app.staff.schemas.events import (
    EventCreate,
    EventFilters,
    EventUpdate,
    MatchCreate,
    MatchUpdate,
)
from tests.conftest import future


def training(team_ids, **overrides):
    data = {
        "title": "Evening practice",
        "event_type": EventType.TRAINING,
        "start_time": future(days=2),
        "end_time": future(days=2, hours=2),
        "location": "Main gym",
        "team_ids": team_ids,
    }
    data.update(overrides)
    return EventCreate(**data)


def game(home_team_id, away_team_id=None, **match_fields):
    return EventCreate(
        title="League game",
        event_type=EventType.MATCH,
        start_time=future(days=3),
        end_time=future(days=3, hours=2),
        match=MatchCreate(
            home_team_id=home_team_id, away_team_id=away_team_id, **match_fields
        ),
    )


@pytest.fixture
def roster(db_session, admin, make_player, make_team):
    async def factory(name, size, coach=None):
        team = await make_team(name, coach)
        players = []
        for i in range(size):
            player = await make_player(f"{name}{i}", "Player")
            await assign_player_to_team(db_session, team.id, player.player_id, admin)
            players.append(player)
        return team, players

    return factory


async def event_player_ids(session, event_id):
    result = await session.execute(
        select(EventPlayer.player_id).where(EventPlayer.event_id == event_id)
    )
    return sorted(result.scalars().all())


async def test_event_snapshots_active_players(db_session, admin, roster, make_player):
    team, players = await roster("Falcons", 3)

    event = await create_event(db_session, training([team.id]), admin)

    assert len(event["players"]) == 3
    assert {p["attendance"] for p in event["players"]} == {AttendanceStatus.PLANNED}
    assert [t["id"] for t in event["teams"]] == [team.id]

    late = await make_player("Late", "Joiner")
    await assign_player_to_team(db_session, team.id, late.player_id, admin)

    assert await event_player_ids(db_session, event["id"]) == sorted(
        p.player_id for p in players
    )


async def test_event_links_acting_coach(db_session, coach, roster):
    team, _ = await roster("Falcons", 1, coach)

    event = await create_event(db_session, training([team.id]), coach)

    assert event["coach_ids"] == [coach.coach_id]
    assert event["created_by_id"] == coach.id


async def test_coach_cannot_link_foreign_team(db_session, coach, other_coach, roster):
    team, _ = await roster("Hawks", 1, other_coach)

    with pytest.raises(PermissionDeniedError):
        await create_event(db_session, training([team.id]), coach)


async def test_player_cannot_create_event(db_session, make_player):
    player = await make_player("Pat", "Guard")

    with pytest.raises(AuthorizationError):
        await create_event(db_session, training([]), player)


async def test_match_seed_stats_stamps_team(db_session, admin, roster):
    home, home_players = await roster("Falcons", 2)
    away, away_players = await roster("Hawks", 1)

    event = await create_event(
        db_session, game(home.id, away.id, seed_stats=True), admin
    )

    assert event["match"]["home_team_name"] == "Falcons"
    assert event["match"]["away_team_name"] == "Hawks"
    assert {t["id"] for t in event["teams"]} == {home.id, away.id}

    result = await db_session.execute(select(PlayerStat.player_id, PlayerStat.team_id))
    stamped = dict(result.all())
    assert stamped == {
        **{p.player_id: home.id for p in home_players},
        **{p.player_id: away.id for p in away_players},
    }


async def test_completing_match_recomputes_counters(db_session, admin, roster):
    home, _ = await roster("Falcons", 1)
    away, _ = await roster("Hawks", 1)
    event = await create_event(db_session, game(home.id, away.id), admin)

    await update_event(
        db_session,
        event["id"],
        EventUpdate(
            status=EventStatus.COMPLETED,
            match=MatchUpdate(home_score=80, away_score=72),
        ),
        admin,
    )

    home_summary = await team_summary(db_session, home.id)
    away_summary = await team_summary(db_session, away.id)
    assert (home_summary["games_played"], home_summary["wins"]) == (1, 1)
    assert (home_summary["points_for"], home_summary["points_against"]) == (80, 72)
    assert (away_summary["games_played"], away_summary["losses"]) == (1, 1)

    # Возврат из COMPLETED снимает матч со счетчиков
    await update_event(
        db_session, event["id"], EventUpdate(status=EventStatus.SCHEDULED), admin
    )
    home_summary = await team_summary(db_session, home.id)
    assert home_summary["games_played"] == 0
    assert home_summary["wins"] == 0


async def test_match_status_mirrors_event(db_session, admin, roster):
    home, _ = await roster("Falcons", 1)
    event = await create_event(
        db_session, game(home.id, opponent_name="Visitors"), admin
    )

    updated = await update_event(
        db_session, event["id"], EventUpdate(status=EventStatus.IN_PROGRESS), admin
    )

    assert updated["match"]["status"] == EventStatus.IN_PROGRESS
    assert updated["match"]["opponent_name"] == "Visitors"
    assert updated["match"]["away_team_id"] is None


async def test_changing_type_drops_match(db_session, admin, roster):
    home, _ = await roster("Falcons", 1)
    event = await create_event(db_session, game(home.id, seed_stats=True), admin)

    updated = await update_event(
        db_session, event["id"], EventUpdate(event_type=EventType.TRAINING), admin
    )

    assert updated["match"] is None
    count = await db_session.execute(select(func.count(Match.id)))
    assert count.scalar() == 0
    count = await db_session.execute(select(func.count(PlayerStat.id)))
    assert count.scalar() == 0


async def test_replaced_match_team_loses_event(
    db_session, admin, coach, other_coach, roster
):
    home, _ = await roster("Falcons", 1, coach)
    away, _ = await roster("Hawks", 1, other_coach)
    replacement, _ = await roster("Owls", 1)
    event = await create_event(db_session, game(home.id, away.id), admin)

    updated = await update_event(
        db_session, event["id"], EventUpdate(match=MatchUpdate(away_team_id=replacement.id)), admin
    )

    assert sorted(t["id"] for t in updated["teams"]) == sorted([home.id, replacement.id])
    assert await list_events(db_session, EventFilters(team_id=away.id), admin) == []
    assert await list_events(db_session, EventFilters(), other_coach) == []

    with pytest.raises(PermissionDeniedError):
        await update_event(
            db_session, event["id"], EventUpdate(title="Renamed"), other_coach
        )
    with pytest.raises(PermissionDeniedError):
        await update_event(
            db_session, event["id"], EventUpdate(status=EventStatus.COMPLETED), other_coach
        )

    # Команда, явно указанная в team_ids, остается привязанной
    updated = await update_event(
        db_session,
        event["id"],
        EventUpdate(team_ids=[home.id, away.id], match=MatchUpdate(away_team_id=None)),
        admin,
    )
    assert sorted(t["id"] for t in updated["teams"]) == sorted([home.id, away.id])
    assert updated["match"]["away_team_id"] is None


async def test_null_home_team_is_validation_error(db_session, admin, roster):
    home, _ = await roster("Falcons", 1)
    event = await create_event(db_session, game(home.id, opponent_name="Visitors"), admin)

    with pytest.raises(ValidationError):
        await update_event(
            db_session, event["id"], EventUpdate(match=MatchUpdate(home_team_id=None)), admin
        )

    current = await get_event(db_session, event["id"], admin)
    assert current["match"]["home_team_id"] == home.id


async def test_update_rejects_inverted_times(db_session, admin, roster):
    team, _ = await roster("Falcons", 1)
    event = await create_event(db_session, training([team.id]), admin)

    with pytest.raises(ValidationError):
        await update_event(
            db_session, event["id"], EventUpdate(end_time=future(days=1)), admin
        )


async def test_replacing_teams_keeps_players(db_session, admin, roster):
    falcons, players = await roster("Falcons", 2)
    hawks, _ = await roster("Hawks", 1)
    event = await create_event(db_session, training([falcons.id]), admin)

    updated = await update_event(
        db_session, event["id"], EventUpdate(team_ids=[hawks.id]), admin
    )

    assert [t["id"] for t in updated["teams"]] == [hawks.id]
    assert await event_player_ids(db_session, event["id"]) == sorted(
        p.player_id for p in players
    )


async def test_delete_completed_match_recomputes(db_session, admin, roster):
    home, _ = await roster("Falcons", 1)
    away, _ = await roster("Hawks", 1)
    create = game(home.id, away.id, home_score=60, away_score=61)
    create.status = EventStatus.COMPLETED
    event = await create_event(db_session, create, admin)

    assert (await team_summary(db_session, away.id))["wins"] == 1

    assert await delete_event(db_session, event["id"], admin) is True

    assert (await team_summary(db_session, away.id))["wins"] == 0
    assert (await team_summary(db_session, away.id))["games_played"] == 0


async def test_list_events_scopes_and_filters(
    db_session, admin, coach, other_coach, roster, make_player
):
    mine, my_players = await roster("Falcons", 1, coach)
    theirs, _ = await roster("Hawks", 1, other_coach)

    await create_event(db_session, training([mine.id], title="Falcons practice"), admin)
    await create_event(
        db_session,
        training([theirs.id], title="Hawks meeting", event_type=EventType.MEETING),
        admin,
    )

    everything = await list_events(db_session, EventFilters(), admin)
    assert len(everything) == 2

    coach_view = await list_events(db_session, EventFilters(), coach)
    assert [e["title"] for e in coach_view] == ["Falcons practice"]

    player_view = await list_events(db_session, EventFilters(), my_players[0])
    assert [e["title"] for e in player_view] == ["Falcons practice"]

    meetings = await list_events(
        db_session, EventFilters(event_type=EventType.MEETING), admin
    )
    assert [e["title"] for e in meetings] == ["Hawks meeting"]

    searched = await list_events(db_session, EventFilters(search="falcons"), admin)
    assert [e["title"] for e in searched] == ["Falcons practice"]

    by_team = await list_events(db_session, EventFilters(team_id=theirs.id), admin)
    assert [e["title"] for e in by_team] == ["Hawks meeting"]

    outsider = await make_player("Out", "Sider")
    with pytest.raises(PermissionDeniedError):
        await get_event(db_session, everything[0]["id"], outsider)


async def test_player_updates_own_attendance(db_session, admin, roster):
    team, players = await roster("Falcons", 1)
    event = await create_event(db_session, training([team.id]), admin)

    link = await update_attendance(
        db_session, event["id"], AttendanceStatus.ATTENDED, players[0]
    )

    assert link.attendance == AttendanceStatus.ATTENDED
    schedule = await player_schedule(db_session, players[0])
    assert [(e["id"], e["attendance"]) for e in schedule] == [
        (event["id"], AttendanceStatus.ATTENDED)
    ]


async def test_attendance_on_unlinked_event_is_forbidden(
    db_session, admin, roster, make_player
):
    team, players = await roster("Falcons", 2)
    event = await create_event(db_session, training([team.id]), admin)
    outsider = await make_player("Out", "Sider")

    with pytest.raises(PermissionDeniedError):
        await update_attendance(
            db_session, event["id"], AttendanceStatus.ATTENDED, outsider
        )

    result = await db_session.execute(
        select(EventPlayer.attendance).where(EventPlayer.event_id == event["id"])
    )
    assert set(result.scalars().all()) == {AttendanceStatus.PLANNED}
