"""
Общие фикстуры тестов.

Каждый тест получает свою in-memory SQLite базу (aiosqlite). Переменные
окружения выставляются до импорта приложения: конфиг читается при импорте.
"""

import os

os.environ.setdefault("SESSION_SECRET", "test-session-secret-0123456789")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("VALIDATE_CONFIG_ON_IMPORT", "false")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_FORMAT", "text")

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_session
from app.core.dependencies import session_auth
from app.staff.models import (
    User,
    Profile,
    UserRole,
    Coach,
    Team,
    Player,
)
from app.staff.schemas.users import CurrentUser

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def create_account(
    session: AsyncSession,
    role: UserRole,
    first_name: str,
    last_name: str,
    email: Optional[str] = None,
    is_active: bool = True,
) -> CurrentUser:
    """Пользователь с профилем и расширением роли, без проверок прав"""
    user = User(
        email=email or f"{first_name}.{last_name}@club.test".lower(),
        password_hash="not-a-real-hash",
        role=role,
        is_active=is_active,
    )
    user.profile = Profile(first_name=first_name, last_name=last_name)
    session.add(user)
    await session.flush()

    coach_id = player_id = None
    if role == UserRole.COACH:
        coach = Coach(user_id=user.id)
        session.add(coach)
        await session.flush()
        coach_id = coach.id
    elif role == UserRole.PLAYER:
        player = Player(user_id=user.id)
        session.add(player)
        await session.flush()
        player_id = player.id

    await session.commit()
    return CurrentUser(
        id=user.id,
        email=user.email,
        role=role,
        coach_id=coach_id,
        player_id=player_id,
    )


async def create_team(
    session: AsyncSession, name: str, coach: Optional[CurrentUser] = None
) -> Team:
    team = Team(name=name, coach_id=coach.coach_id if coach else None)
    session.add(team)
    await session.commit()
    return team


@pytest_asyncio.fixture
async def admin(db_session):
    return await create_account(db_session, UserRole.ADMIN, "Ada", "Admin")


@pytest_asyncio.fixture
async def coach(db_session):
    return await create_account(db_session, UserRole.COACH, "Carl", "Coach")


@pytest_asyncio.fixture
async def other_coach(db_session):
    return await create_account(db_session, UserRole.COACH, "Olga", "Other")


@pytest.fixture
def make_player(db_session):
    async def factory(first_name: str, last_name: str, is_active: bool = True):
        return await create_account(
            db_session, UserRole.PLAYER, first_name, last_name, is_active=is_active
        )

    return factory


@pytest.fixture
def make_team(db_session):
    async def factory(name: str, coach: Optional[CurrentUser] = None):
        return await create_team(db_session, name, coach)

    return factory


def future(days: int = 1, hours: int = 0) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days, hours=hours)


def auth_headers(actor: CurrentUser) -> dict:
    token = session_auth.issue(actor.id, actor.role.value)
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def client(session_factory):
    from app.main import app

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as test_client:
        yield test_client
    app.dependency_overrides.clear()
