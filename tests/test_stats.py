import pytest
from sqlalchemy import update
from sqlalchemy.future import select

from app.core.exceptions import (
    AuthorizationError,
    PermissionDeniedError,
    ValidationError,
)
from app.staff.crud.dashboard import get_dashboard
from app.staff.crud.events import create_event, update_event
from app.staff.crud.roster import assign_player_to_team
from app.staff.crud.stats import (
    get_player_stats,
    players_stats_list,
    sync_team_stats,
    team_stats_list,
    update_player_stat,
)
from app.staff.models import EventStatus, EventType, Match, Team, UserRole
from app.staff.schemas.events import EventCreate, EventUpdate, MatchCreate
from app.staff.schemas.stats import PlayerStatUpdate
from tests.conftest import future


async def play_match(session, admin, home, away=None, home_score=0, away_score=0, **extra):
    event = await create_event(
        session,
        EventCreate(
            title="League game",
            event_type=EventType.MATCH,
            start_time=future(days=1),
            end_time=future(days=1, hours=2),
            match=MatchCreate(
                home_team_id=home.id,
                away_team_id=away.id if away else None,
                **extra,
            ),
        ),
        admin,
    )
    await update_event(
        session,
        event["id"],
        EventUpdate(
            status=EventStatus.COMPLETED,
            match={"home_score": home_score, "away_score": away_score},
        ),
        admin,
    )
    return event["match"]["id"]


@pytest.fixture
def team_with_player(db_session, admin, make_player, make_team):
    async def factory(team_name, first_name, coach=None):
        team = await make_team(team_name, coach)
        player = await make_player(first_name, "Player")
        await assign_player_to_team(db_session, team.id, player.player_id, admin)
        return team, player

    return factory


async def test_stats_without_games_are_zero(db_session, admin, make_player):
    player = await make_player("Pat", "Guard")

    stats = await get_player_stats(db_session, player.player_id, admin)

    assert stats["game_stats"] == []
    assert all(value == 0 for value in stats["overall_stats"].values())


async def test_game_log_uses_team_snapshot(db_session, admin, team_with_player):
    home, player = await team_with_player("Falcons", "Pat")
    away, _ = await team_with_player("Hawks", "Hal")

    match_id = await play_match(db_session, admin, home, away, 70, 75)
    await update_player_stat(
        db_session,
        match_id,
        player.player_id,
        PlayerStatUpdate(
            points=20, rebounds=5, assists=3, steals=2, blocks=1, turnovers=4,
            field_goals_made=7, field_goals_attempted=14, minutes_played=32,
        ),
        admin,
    )

    # Переход в другую команду не меняет сторону в уже сыгранном матче
    await assign_player_to_team(db_session, away.id, player.player_id, admin)

    stats = await get_player_stats(db_session, player.player_id, admin)

    [entry] = stats["game_stats"]
    assert entry["opponent"] == "Hawks"
    assert entry["result"] == "LOSS"
    assert entry["score"] == "70-75"
    assert entry["field_goals"] == "7/14"
    assert entry["efficiency"] == 27
    assert stats["overall_stats"]["field_goal_percentage"] == 50.0
    assert stats["overall_stats"]["total_games"] == 1


async def test_game_log_for_away_side_and_external_opponent(
    db_session, admin, team_with_player
):
    home, _ = await team_with_player("Falcons", "Pat")
    away, player = await team_with_player("Hawks", "Hal")

    first = await play_match(db_session, admin, home, away, 60, 66, seed_stats=True)
    second = await play_match(
        db_session, admin, away, None, 50, 50, opponent_name="Visitors", seed_stats=True
    )

    stats = await get_player_stats(db_session, player.player_id, admin)

    by_game = {e["game_id"]: e for e in stats["game_stats"]}
    assert by_game[first]["opponent"] == "Falcons"
    assert by_game[first]["result"] == "WIN"
    assert by_game[second]["opponent"] == "Visitors"
    assert by_game[second]["result"] == "DRAW"


async def test_unfinished_matches_are_ignored(db_session, admin, team_with_player):
    home, player = await team_with_player("Falcons", "Pat")
    event = await create_event(
        db_session,
        EventCreate(
            title="Friendly",
            event_type=EventType.MATCH,
            start_time=future(days=1),
            end_time=future(days=1, hours=1),
            match=MatchCreate(home_team_id=home.id, opponent_name="Guests", seed_stats=True),
        ),
        admin,
    )
    await update_player_stat(
        db_session, event["match"]["id"], player.player_id, PlayerStatUpdate(points=12), admin
    )

    stats = await get_player_stats(db_session, player.player_id, admin)

    assert stats["game_stats"] == []
    assert stats["overall_stats"]["points_per_game"] == 0


async def test_stat_update_rejects_made_over_attempted(db_session, admin, team_with_player):
    home, player = await team_with_player("Falcons", "Pat")
    match_id = await play_match(db_session, admin, home, None, 10, 5, opponent_name="X")
    await update_player_stat(
        db_session,
        match_id,
        player.player_id,
        PlayerStatUpdate(free_throws_made=2, free_throws_attempted=4),
        admin,
    )

    with pytest.raises(ValidationError):
        await update_player_stat(
            db_session,
            match_id,
            player.player_id,
            PlayerStatUpdate(free_throws_made=5),
            admin,
        )


async def test_foreign_coach_cannot_edit_match_stats(
    db_session, admin, coach, other_coach, team_with_player
):
    home, player = await team_with_player("Falcons", "Pat", coach)
    match_id = await play_match(db_session, admin, home, None, 1, 0, opponent_name="X")

    stat = await update_player_stat(
        db_session, match_id, player.player_id, PlayerStatUpdate(points=3), coach
    )
    assert stat.points == 3
    assert stat.team_id == home.id

    with pytest.raises(PermissionDeniedError):
        await update_player_stat(
            db_session, match_id, player.player_id, PlayerStatUpdate(points=5), other_coach
        )


async def test_coach_cannot_record_stats_for_outside_player(
    db_session, admin, coach, other_coach, team_with_player, make_player
):
    home, _ = await team_with_player("Falcons", "Pat", coach)
    _, outsider = await team_with_player("Owls", "Oli", other_coach)
    free_agent = await make_player("Fred", "Free")
    match_id = await play_match(db_session, admin, home, None, 1, 0, opponent_name="X")

    for player in (outsider, free_agent):
        with pytest.raises(PermissionDeniedError):
            await update_player_stat(
                db_session, match_id, player.player_id, PlayerStatUpdate(points=9), coach
            )

    stats = await get_player_stats(db_session, outsider.player_id, admin)
    assert stats["game_stats"] == []

    # ADMIN может исправлять статистику любого игрока
    stat = await update_player_stat(
        db_session, match_id, free_agent.player_id, PlayerStatUpdate(points=2), admin
    )
    assert stat.team_id is None


async def test_team_stats_and_sync(db_session, admin, coach, team_with_player):
    falcons, _ = await team_with_player("Falcons", "Pat", coach)
    hawks, _ = await team_with_player("Hawks", "Hal")
    await play_match(db_session, admin, falcons, hawks, 80, 70)
    await play_match(db_session, admin, hawks, falcons, 90, 85)
    await play_match(db_session, admin, falcons, hawks, 60, 55)

    rows = {row["name"]: row for row in await team_stats_list(db_session, admin)}
    assert rows["Falcons"]["wins"] == 2
    assert rows["Falcons"]["games_played"] == 3
    assert rows["Falcons"]["win_percentage"] == pytest.approx(200 / 3)
    assert rows["Hawks"]["players_count"] == 1

    coach_rows = await team_stats_list(db_session, coach)
    assert [row["name"] for row in coach_rows] == ["Falcons"]

    # Испорченные счетчики восстанавливаются пересчетом
    await db_session.execute(
        update(Team).where(Team.id == falcons.id).values(wins=99, games_played=0)
    )
    await db_session.commit()

    synced = await sync_team_stats(db_session, admin, team_id=falcons.id)
    assert synced[0]["wins"] == 2
    assert synced[0]["games_played"] == 3

    with pytest.raises(AuthorizationError):
        await sync_team_stats(db_session, coach)


async def test_players_stats_scope(db_session, admin, coach, team_with_player):
    mine, my_player = await team_with_player("Falcons", "Pat", coach)
    _, their_player = await team_with_player("Hawks", "Hal")

    all_rows = await players_stats_list(db_session, admin)
    assert {r["player_id"] for r in all_rows} == {my_player.player_id, their_player.player_id}

    coach_rows = await players_stats_list(db_session, coach)
    assert [r["player_id"] for r in coach_rows] == [my_player.player_id]
    assert coach_rows[0]["team_name"] == "Falcons"

    with pytest.raises(PermissionDeniedError):
        await get_player_stats(db_session, their_player.player_id, coach)

    with pytest.raises(AuthorizationError):
        await get_player_stats(db_session, my_player.player_id, their_player)


async def test_dashboard_by_role(db_session, admin, coach, team_with_player):
    falcons, player = await team_with_player("Falcons", "Pat", coach)
    hawks, _ = await team_with_player("Hawks", "Hal")
    await play_match(db_session, admin, falcons, hawks, 80, 70)
    await create_event(
        db_session,
        EventCreate(
            title="Practice",
            event_type=EventType.TRAINING,
            start_time=future(days=1),
            end_time=future(days=1, hours=1),
            team_ids=[falcons.id],
        ),
        admin,
    )

    admin_view = await get_dashboard(db_session, admin)
    assert admin_view["role"] == UserRole.ADMIN
    assert admin_view["total_teams"] == 2
    assert admin_view["total_players"] == 2
    assert admin_view["total_coaches"] == 1
    assert admin_view["upcoming_events"] == 1
    assert sum(admin_view["events_chart"]["training"]) == 1
    assert admin_view["results_chart"]["labels"] == ["Falcons", "Hawks"]
    assert admin_view["results_chart"]["wins"] == [1, 0]
    assert admin_view["recent_activities"]

    coach_view = await get_dashboard(db_session, coach)
    assert coach_view["my_teams"] == 1
    assert coach_view["active_players"] == 1
    assert coach_view["recent_activities"] == []

    player_view = await get_dashboard(db_session, player)
    assert player_view["team_name"] == "Falcons"
    assert player_view["upcoming_events"] == 1
    assert player_view["games_played"] == 0
