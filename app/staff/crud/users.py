from typing import Optional
from sqlalchemy import and_, or_, func, update
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.database import db_operation, utcnow
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from app.core.security import get_password_hash
from app.core.validations import clean_phone_number, normalize_email
from app.staff.crud.activities import record_activity
from app.staff.models.users import User, Profile, UserRole
from app.staff.models.coaches import Coach
from app.staff.models.team_players import TeamPlayer
from app.players.models.players import Player
from app.staff.schemas.users import (
    CurrentUser,
    UserCreate,
    UserUpdate,
    UserFilters,
)

_PLAYER_FIELDS = ("birth_date", "height", "weight", "position", "jersey_number")
_COACH_FIELDS = ("specialization", "experience_years")


def _user_query():
    return select(User).options(
        selectinload(User.profile),
        selectinload(User.coach),
        selectinload(User.player),
    )


@db_operation
async def get_current_actor(
    session: AsyncSession, user_id: int, role: str
) -> CurrentUser:
    """
    Загрузить пользователя из сессионного токена.

    Неизвестный, деактивированный пользователь или несовпадение роли
    с токеном считаются отсутствием сессии.
    """
    result = await session.execute(_user_query().where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")

    if user.role.value != role:
        raise AuthenticationError("Session role does not match user role")

    return CurrentUser(
        id=user.id,
        email=user.email,
        role=user.role,
        coach_id=user.coach.id if user.coach else None,
        player_id=user.player.id if user.player else None,
    )


@db_operation
async def get_user_by_id(session: AsyncSession, user_id: int) -> User:
    """Получить пользователя с профилем и расширениями"""
    if not user_id or user_id <= 0:
        raise ValidationError("User ID must be positive")

    result = await session.execute(
        _user_query()
        .where(User.id == user_id)
        .execution_options(populate_existing=True)
    )
    user = result.scalar_one_or_none()

    if not user:
        raise NotFoundError("User", str(user_id))

    return user


@db_operation
async def get_users_paginated(
    session: AsyncSession,
    skip: int = 0,
    limit: int = 10,
    filters: UserFilters = None,
):
    """Получить пагинированный список пользователей"""
    if skip < 0:
        raise ValidationError("Skip parameter must be >= 0")

    if limit <= 0 or limit > 100:
        raise ValidationError("Limit must be between 1 and 100")

    base_query = _user_query().outerjoin(Profile, Profile.user_id == User.id)
    count_query = select(func.count(User.id)).outerjoin(
        Profile, Profile.user_id == User.id
    )

    if filters:
        conditions = []

        if filters.role:
            conditions.append(User.role == filters.role)

        if filters.active_only:
            conditions.append(User.is_active.is_(True))

        if filters.search:
            pattern = f"%{filters.search.lower()}%"
            conditions.append(
                or_(
                    func.lower(User.email).like(pattern),
                    func.lower(Profile.first_name).like(pattern),
                    func.lower(Profile.last_name).like(pattern),
                )
            )

        if conditions:
            filter_condition = and_(*conditions)
            base_query = base_query.where(filter_condition)
            count_query = count_query.where(filter_condition)

    total_result = await session.execute(count_query)
    total = total_result.scalar()

    query = base_query.order_by(User.created_at.desc(), User.id.desc())
    result = await session.execute(query.offset(skip).limit(limit))
    users = result.scalars().all()

    return users, total


async def _ensure_email_free(
    session: AsyncSession, email: str, exclude_user_id: Optional[int] = None
):
    query = select(User.id).where(User.email == email)
    if exclude_user_id:
        query = query.where(User.id != exclude_user_id)
    existing = await session.execute(query)
    if existing.scalar_one_or_none():
        raise DuplicateError("User", "email", email)


@db_operation
async def create_user(
    session: AsyncSession, data: UserCreate, actor: CurrentUser
) -> User:
    """
    Создать пользователя вместе с профилем и расширением для его роли
    (Coach или Player). Только для администратора.
    """
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can create users")

    email = normalize_email(data.email)
    await _ensure_email_free(session, email)

    phone = clean_phone_number(data.phone) if data.phone else None

    user = User(
        email=email,
        password_hash=get_password_hash(data.password),
        role=data.role,
        is_active=True,
    )
    user.profile = Profile(
        first_name=data.first_name, last_name=data.last_name, phone=phone
    )
    session.add(user)
    await session.flush()

    if data.role == UserRole.COACH:
        session.add(
            Coach(user_id=user.id, **{f: getattr(data, f) for f in _COACH_FIELDS})
        )
    elif data.role == UserRole.PLAYER:
        session.add(
            Player(user_id=user.id, **{f: getattr(data, f) for f in _PLAYER_FIELDS})
        )

    await record_activity(
        session, "user_created", "user", user.id, actor.id, {"role": data.role.value}
    )
    await session.commit()

    return await get_user_by_id(session, user.id)


@db_operation
async def update_user(
    session: AsyncSession, user_id: int, data: UserUpdate, actor: CurrentUser
) -> User:
    """
    Обновить пользователя.

    Администратор может менять любого пользователя, остальные только себя.
    Email меняет только администратор.
    """
    if not actor.is_admin and actor.id != user_id:
        raise AuthorizationError("You can only update your own profile")

    user = await get_user_by_id(session, user_id)
    update_data = data.model_dump(exclude_unset=True)

    if "email" in update_data:
        if not actor.is_admin:
            raise AuthorizationError("Only administrators can change email")
        email = normalize_email(update_data["email"])
        await _ensure_email_free(session, email, exclude_user_id=user.id)
        user.email = email

    if update_data.get("password"):
        user.password_hash = get_password_hash(update_data["password"])

    if user.profile is None:
        user.profile = Profile(
            first_name=update_data.get("first_name") or "",
            last_name=update_data.get("last_name") or "",
        )

    for field in ("first_name", "last_name"):
        if update_data.get(field):
            setattr(user.profile, field, update_data[field])

    if "phone" in update_data:
        phone = update_data["phone"]
        user.profile.phone = clean_phone_number(phone) if phone else None

    if user.coach is not None:
        for field in _COACH_FIELDS:
            if field in update_data:
                setattr(user.coach, field, update_data[field])

    if user.player is not None:
        for field in _PLAYER_FIELDS:
            if field in update_data:
                setattr(user.player, field, update_data[field])

    await record_activity(
        session,
        "user_updated",
        "user",
        user.id,
        actor.id,
        {"fields": sorted(k for k in update_data if k != "password")},
    )
    await session.commit()

    return await get_user_by_id(session, user.id)


@db_operation
async def set_user_active(
    session: AsyncSession, user_id: int, is_active: bool, actor: CurrentUser
) -> User:
    """
    Мягкое удаление или восстановление пользователя.

    При деактивации игрока закрывается и его активное членство в команде.
    """
    if not actor.is_admin:
        raise AuthorizationError("Only administrators can change user status")

    if actor.id == user_id and not is_active:
        raise ConflictError("You cannot deactivate your own account")

    user = await get_user_by_id(session, user_id)
    user.is_active = is_active

    if not is_active and user.player is not None:
        await session.execute(
            update(TeamPlayer)
            .where(
                TeamPlayer.player_id == user.player.id,
                TeamPlayer.is_active.is_(True),
            )
            .values(is_active=False, leave_date=utcnow())
            .execution_options(synchronize_session="fetch")
        )

    await record_activity(
        session,
        "user_activated" if is_active else "user_deactivated",
        "user",
        user.id,
        actor.id,
    )
    await session.commit()

    return await get_user_by_id(session, user.id)
