import math
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import get_actor, require_admin
from app.core.exceptions import AuthorizationError
from app.staff.models.users import UserRole
from app.staff.schemas.users import (
    CurrentUser,
    UserCreate,
    UserUpdate,
    UserStatusUpdate,
    UserRead,
    UserFilters,
    UserListResponse,
)
from app.staff.crud.users import (
    get_user_by_id,
    get_users_paginated,
    create_user,
    update_user,
    set_user_active,
)

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("", response_model=UserListResponse)
@limiter.limit("30/minute")
async def list_users(
    request: Request,
    page: int = Query(1, ge=1, description="Page number starting from 1"),
    size: int = Query(20, ge=1, le=100, description="Number of items per page"),
    role: Optional[UserRole] = Query(None, description="Filter by role"),
    search: Optional[str] = Query(
        None, min_length=1, max_length=100, description="Search by name or email"
    ),
    active_only: bool = Query(False, description="Show only active users"),
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Get paginated list of users (ADMIN only).

    **Filters:**
    - **role**: ADMIN, COACH or PLAYER
    - **search**: partial match on first name, last name or email
    - **active_only**: hide deactivated users
    """
    filters = UserFilters(role=role, search=search, active_only=active_only)
    skip = (page - 1) * size

    users, total = await get_users_paginated(db, skip=skip, limit=size, filters=filters)
    pages = math.ceil(total / size) if total > 0 else 1

    return UserListResponse(
        users=users,
        total=total,
        page=page,
        size=size,
        pages=pages,
        filters=filters,
    )


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def create_user_endpoint(
    request: Request,
    user_data: UserCreate,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Create a user with profile (ADMIN only).

    - **email**: unique login email
    - **password**: 8-128 characters, stored as bcrypt hash
    - **role**: COACH and PLAYER users also get their coach/player record
    """
    return await create_user(db, user_data, actor)


@router.get("/me", response_model=UserRead)
@limiter.limit("60/minute")
async def get_me(
    request: Request,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """Current user with profile and coach/player information."""
    return await get_user_by_id(db, actor.id)


@router.get("/{user_id}", response_model=UserRead)
@limiter.limit("30/minute")
async def get_user(
    request: Request,
    user_id: int,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """Get user by ID. Non-admins can only read themselves."""
    if not actor.is_admin and actor.id != user_id:
        raise AuthorizationError("You can only view your own account")
    return await get_user_by_id(db, user_id)


@router.put("/{user_id}", response_model=UserRead)
@limiter.limit("10/minute")
async def update_user_endpoint(
    request: Request,
    user_id: int,
    user_data: UserUpdate,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    Update user.

    - ADMIN can update anyone, including email
    - Other users can update only their own profile fields and password
    """
    return await update_user(db, user_id, user_data, actor)


@router.patch("/{user_id}/status", response_model=UserRead)
@limiter.limit("10/minute")
async def set_user_status(
    request: Request,
    user_id: int,
    status_data: UserStatusUpdate,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """
    Deactivate or restore a user (ADMIN only).

    Deactivating a player also closes their active team membership.
    """
    return await set_user_active(db, user_id, status_data.is_active, actor)
