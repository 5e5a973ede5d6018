import pytest
from fastapi import HTTPException

from app.core.dependencies import session_auth
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DuplicateError,
    ValidationError,
)
from app.core.security import get_password_hash, verify_password
from app.core.validations import normalize_email
from app.staff.crud.users import (
    create_user,
    get_current_actor,
    get_users_paginated,
    set_user_active,
    update_user,
)
from app.staff.models import UserRole
from app.staff.schemas.users import UserCreate, UserFilters, UserUpdate


def new_user(**overrides):
    data = {
        "email": "New.Player@Club.Test",
        "password": "correct horse",
        "role": UserRole.PLAYER,
        "first_name": "Nina",
        "last_name": "Newcomer",
        "jersey_number": 7,
    }
    data.update(overrides)
    return UserCreate(**data)


def test_password_hash_roundtrip():
    hashed = get_password_hash("s3cret-pass")

    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed)
    assert not verify_password("wrong-pass", hashed)


def test_normalize_email():
    assert normalize_email("  Someone@Example.COM ") == "someone@example.com"
    with pytest.raises(ValidationError):
        normalize_email("not-an-email")


def test_session_token_roundtrip():
    token = session_auth.issue(42, "COACH")

    assert session_auth.authenticate(token) == {"user_id": 42, "role": "COACH"}


def test_session_token_tampered_or_expired():
    token = session_auth.issue(42, "COACH")

    with pytest.raises(HTTPException) as exc_info:
        session_auth.authenticate(token.replace("COACH", "ADMIN"))
    assert exc_info.value.status_code == 401

    expired = session_auth.issue(42, "COACH", auth_date=1)
    with pytest.raises(HTTPException):
        session_auth.authenticate(expired)


async def test_create_player_user(db_session, admin):
    user = await create_user(db_session, new_user(), admin)

    assert user.email == "new.player@club.test"
    assert user.profile.first_name == "Nina"
    assert user.player is not None
    assert user.player.jersey_number == 7
    assert user.coach is None
    assert verify_password("correct horse", user.password_hash)


async def test_duplicate_email_is_conflict(db_session, admin):
    await create_user(db_session, new_user(), admin)

    with pytest.raises(DuplicateError) as exc_info:
        await create_user(db_session, new_user(email="new.player@club.test"), admin)
    assert isinstance(exc_info.value, ConflictError)


async def test_only_admin_creates_users(db_session, coach):
    with pytest.raises(AuthorizationError):
        await create_user(db_session, new_user(), coach)


async def test_user_updates_own_profile_only(db_session, admin, coach, other_coach):
    updated = await update_user(
        db_session, coach.id, UserUpdate(first_name="Carlos", specialization="Defense"), coach
    )
    assert updated.profile.first_name == "Carlos"
    assert updated.coach.specialization == "Defense"

    with pytest.raises(AuthorizationError):
        await update_user(db_session, other_coach.id, UserUpdate(first_name="X"), coach)

    with pytest.raises(AuthorizationError):
        await update_user(db_session, coach.id, UserUpdate(email="c@club.test"), coach)


async def test_list_users_with_filters(db_session, admin, coach, make_player):
    await make_player("Pat", "Guard")

    users, total = await get_users_paginated(
        db_session, skip=0, limit=10, filters=UserFilters(role=UserRole.COACH)
    )
    assert total == 1
    assert users[0].id == coach.id

    users, total = await get_users_paginated(
        db_session, skip=0, limit=10, filters=UserFilters(search="guard")
    )
    assert total == 1


async def test_inactive_user_loses_session(db_session, admin, coach):
    actor = await get_current_actor(db_session, coach.id, "COACH")
    assert actor.coach_id == coach.coach_id

    with pytest.raises(AuthenticationError):
        await get_current_actor(db_session, coach.id, "ADMIN")

    await set_user_active(db_session, coach.id, False, admin)
    with pytest.raises(AuthenticationError):
        await get_current_actor(db_session, coach.id, "COACH")


async def test_admin_cannot_deactivate_self(db_session, admin):
    with pytest.raises(ConflictError):
        await set_user_active(db_session, admin.id, False, admin)
