import pytest
from sqlalchemy import func, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
)
from app.staff.crud import roster as roster_crud
from app.staff.crud.roster import (
    assign_player_to_team,
    remove_player_from_team,
    set_membership_active,
    delete_membership,
    list_roster,
    list_eligible_players,
)
from app.staff.crud.teams import team_summary, delete_team, assign_coach
from app.staff.crud.users import set_user_active
from app.staff.models import TeamPlayer, User, Activity


async def active_memberships(session, player_id):
    result = await session.execute(
        select(TeamPlayer).where(
            TeamPlayer.player_id == player_id, TeamPlayer.is_active.is_(True)
        )
    )
    return result.scalars().all()


async def test_assign_remove_assign_reuses_membership(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")

    first = await assign_player_to_team(db_session, team.id, player.player_id, admin)
    await remove_player_from_team(db_session, team.id, player.player_id, admin)
    again = await assign_player_to_team(db_session, team.id, player.player_id, admin)
    await remove_player_from_team(db_session, team.id, player.player_id, admin)
    last = await assign_player_to_team(db_session, team.id, player.player_id, admin)

    assert first.id == again.id == last.id
    assert last.is_active is True
    assert last.leave_date is None

    count = await db_session.execute(
        select(func.count(TeamPlayer.id)).where(
            TeamPlayer.team_id == team.id, TeamPlayer.player_id == player.player_id
        )
    )
    assert count.scalar() == 1


async def test_assign_twice_is_noop(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")

    first = await assign_player_to_team(db_session, team.id, player.player_id, admin)
    second = await assign_player_to_team(db_session, team.id, player.player_id, admin)

    assert first.id == second.id
    assert len(await active_memberships(db_session, player.player_id)) == 1


async def test_coach_cannot_take_active_player_from_other_team(
    db_session, admin, coach, other_coach, make_player, make_team
):
    team_x = await make_team("X", coach)
    team_y = await make_team("Y", other_coach)
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team_y.id, player.player_id, other_coach)

    with pytest.raises(ConflictError) as exc_info:
        await assign_player_to_team(db_session, team_x.id, player.player_id, coach)
    assert exc_info.value.status_code == 403

    active = await active_memberships(db_session, player.player_id)
    assert [m.team_id for m in active] == [team_y.id]

    moved = await assign_player_to_team(db_session, team_x.id, player.player_id, admin)
    assert moved.team_id == team_x.id

    active = await active_memberships(db_session, player.player_id)
    assert [m.team_id for m in active] == [team_x.id]

    roster_y = await list_roster(db_session, team_y.id)
    assert len(roster_y) == 1
    assert roster_y[0]["is_active_in_team"] is False
    assert roster_y[0]["leave_date"] is not None


async def test_coach_can_take_inactive_player(
    db_session, admin, coach, other_coach, make_player, make_team
):
    team_x = await make_team("X", coach)
    team_y = await make_team("Y", other_coach)
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team_y.id, player.player_id, admin)
    await db_session.execute(
        User.__table__.update()
        .where(User.id == player.id)
        .values(is_active=False)
    )
    await db_session.commit()

    membership = await assign_player_to_team(db_session, team_x.id, player.player_id, coach)

    assert membership.is_active is True
    active = await active_memberships(db_session, player.player_id)
    assert [m.team_id for m in active] == [team_x.id]

    user = await db_session.get(User, player.id, populate_existing=True)
    assert user.is_active is True


async def test_coach_cannot_manage_foreign_team(db_session, coach, other_coach, make_player, make_team):
    team = await make_team("Y", other_coach)
    player = await make_player("Pat", "Guard")

    with pytest.raises(PermissionDeniedError):
        await assign_player_to_team(db_session, team.id, player.player_id, coach)

    assert await active_memberships(db_session, player.player_id) == []


async def test_players_count_matches_active_rows(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    players = [await make_player(f"P{i}", "Player") for i in range(3)]
    for player in players:
        await assign_player_to_team(db_session, team.id, player.player_id, admin)
    await remove_player_from_team(db_session, team.id, players[0].player_id, admin)

    summary = await team_summary(db_session, team.id)

    assert summary["players_count"] == 2
    assert len(await list_roster(db_session, team.id, include_inactive=False)) == 2
    assert len(await list_roster(db_session, team.id)) == 3


async def test_toggle_membership(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team.id, player.player_id, admin)

    off = await set_membership_active(db_session, team.id, player.player_id, False, admin)
    assert off.is_active is False

    on = await set_membership_active(db_session, team.id, player.player_id, True, admin)
    assert on.is_active is True
    assert on.id == off.id


async def test_toggle_unknown_membership(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")

    with pytest.raises(NotFoundError):
        await set_membership_active(db_session, team.id, player.player_id, True, admin)


async def test_delete_membership_removes_row(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team.id, player.player_id, admin)

    assert await delete_membership(db_session, team.id, player.player_id, admin) is True
    assert await list_roster(db_session, team.id) == []


async def test_deactivating_player_closes_membership(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team.id, player.player_id, admin)

    user = await set_user_active(db_session, player.id, False, admin)

    assert user.is_active is False
    assert await active_memberships(db_session, player.player_id) == []


async def test_eligible_players_exclude_any_membership(
    db_session, admin, make_player, make_team
):
    falcons = await make_team("Falcons")
    hawks = await make_team("Hawks")
    active = await make_player("Ann", "Active")
    former = await make_player("Fred", "Former")
    free = await make_player("Fay", "Free")

    await assign_player_to_team(db_session, falcons.id, active.player_id, admin)
    await assign_player_to_team(db_session, falcons.id, former.player_id, admin)
    await remove_player_from_team(db_session, falcons.id, former.player_id, admin)
    await assign_player_to_team(db_session, hawks.id, free.player_id, admin)

    eligible = await list_eligible_players(db_session, admin, exclude_team_id=falcons.id)

    assert [p["player_id"] for p in eligible] == [free.player_id]
    assert eligible[0]["current_team_id"] == hawks.id
    assert eligible[0]["current_team_name"] == "Hawks"

    found = await list_eligible_players(db_session, admin, search="fred")
    assert [p["player_id"] for p in found] == [former.player_id]
    assert found[0]["current_team_id"] is None


async def test_delete_team_removes_memberships(db_session, admin, make_player, make_team):
    team = await make_team("Falcons")
    player = await make_player("Pat", "Guard")
    await assign_player_to_team(db_session, team.id, player.player_id, admin)

    await delete_team(db_session, team.id, admin)

    count = await db_session.execute(select(func.count(TeamPlayer.id)))
    assert count.scalar() == 0
    actions = await db_session.execute(select(Activity.action))
    assert "team_deleted" in actions.scalars().all()


async def test_assign_and_clear_coach(db_session, admin, coach, make_team):
    team = await make_team("Falcons")

    summary = await assign_coach(db_session, team.id, coach.coach_id, admin)
    assert summary["coach_id"] == coach.coach_id
    assert summary["coach_name"] == "Carl Coach"

    summary = await assign_coach(db_session, team.id, None, admin)
    assert summary["coach_id"] is None
    assert summary["coach_name"] is None

    with pytest.raises(NotFoundError):
        await assign_coach(db_session, team.id, 9999, admin)

    with pytest.raises(AuthorizationError):
        await assign_coach(db_session, team.id, coach.coach_id, coach)


async def test_index_rejects_second_active_membership(db_session, make_player, make_team):
    falcons = await make_team("Falcons")
    hawks = await make_team("Hawks")
    falcons_id, hawks_id = falcons.id, hawks.id
    player = await make_player("Pat", "Guard")

    db_session.add(TeamPlayer(team_id=falcons_id, player_id=player.player_id, is_active=True))
    await db_session.commit()

    db_session.add(TeamPlayer(team_id=hawks_id, player_id=player.player_id, is_active=True))
    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()

    # Неактивных строк может быть сколько угодно
    db_session.add(TeamPlayer(team_id=hawks_id, player_id=player.player_id, is_active=False))
    await db_session.commit()


async def test_concurrent_activation_is_conflict(
    db_session, admin, make_player, make_team, monkeypatch
):
    falcons = await make_team("Falcons")
    hawks = await make_team("Hawks")
    falcons_id, hawks_id = falcons.id, hawks.id
    player = await make_player("Pat", "Guard")

    original_get_membership = roster_crud._get_membership

    async def racing_get_membership(session, team_id, player_id):
        # Другая транзакция успевает активировать игрока после проверки
        await session.execute(
            insert(TeamPlayer).values(team_id=hawks_id, player_id=player_id, is_active=True)
        )
        await session.commit()
        return await original_get_membership(session, team_id, player_id)

    monkeypatch.setattr(roster_crud, "_get_membership", racing_get_membership)

    with pytest.raises(ConflictError) as exc_info:
        await assign_player_to_team(db_session, falcons_id, player.player_id, admin)
    assert exc_info.value.status_code == 400

    monkeypatch.undo()

    [active] = await active_memberships(db_session, player.player_id)
    assert active.team_id == hawks_id

    result = await db_session.execute(
        select(func.count(TeamPlayer.id)).where(TeamPlayer.team_id == falcons_id)
    )
    assert result.scalar() == 0

    result = await db_session.execute(
        select(func.count(Activity.id)).where(Activity.action == "player_added_to_team")
    )
    assert result.scalar() == 0
