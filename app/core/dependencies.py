from typing import Dict, Any, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import SESSION_SECRET, SESSION_MAX_AGE_SECONDS
from app.core.database import get_session
from app.core.session_auth import SessionAuth
from app.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)
from app.staff.crud.users import get_current_actor
from app.staff.models.users import UserRole
from app.staff.schemas.users import CurrentUser

security = HTTPBearer(
    scheme_name="Session token",
    description="Signed session token issued by the auth service",
    auto_error=False,
)

if not SESSION_SECRET:
    raise ConfigurationError("SESSION_SECRET", "Session secret is required")

session_auth = SessionAuth(SESSION_SECRET, SESSION_MAX_AGE_SECONDS)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Dict[str, Any]:
    """Dependency: проверка подписи токена, возвращает {user_id, role}"""
    if credentials is None or not credentials.credentials.strip():
        raise AuthenticationError("Authentication data is required")

    return session_auth.authenticate(credentials.credentials)


async def get_actor(
    current_user: Dict[str, Any] = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> CurrentUser:
    """Dependency: пользователь из токена, сверенный с базой"""
    return await get_current_actor(db, current_user["user_id"], current_user["role"])


def require_roles(*roles: UserRole):
    """Dependency factory: допускает только перечисленные роли"""

    async def checker(actor: CurrentUser = Depends(get_actor)) -> CurrentUser:
        if actor.role not in roles:
            raise AuthorizationError(
                "Insufficient role for this action",
                {"required": [r.value for r in roles], "role": actor.role.value},
            )
        return actor

    return checker


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.COACH)
require_player = require_roles(UserRole.PLAYER)
