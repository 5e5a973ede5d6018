from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator, ConfigDict

from app.staff.models.users import UserRole
from app.players.models.players import PlayerPosition


class CurrentUser(BaseModel):
    """Аутентифицированный пользователь, от имени которого выполняется действие"""

    id: int
    email: str
    role: UserRole
    coach_id: Optional[int] = None
    player_id: Optional[int] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_coach(self) -> bool:
        return self.role == UserRole.COACH

    @property
    def is_player(self) -> bool:
        return self.role == UserRole.PLAYER


class ProfileRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    first_name: str
    last_name: str
    phone: Optional[str] = None
    avatar_mime: Optional[str] = None


class CoachInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    specialization: Optional[str] = None
    experience_years: Optional[int] = None


class PlayerInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    birth_date: Optional[date] = None
    height: Optional[float] = None
    weight: Optional[float] = None
    position: Optional[PlayerPosition] = None
    jersey_number: Optional[int] = None


class PlayerFields(BaseModel):
    birth_date: Optional[date] = None
    height: Optional[float] = Field(None, gt=0, le=300)
    weight: Optional[float] = Field(None, gt=0, le=400)
    position: Optional[PlayerPosition] = None
    jersey_number: Optional[int] = Field(None, ge=0, le=99)


class CoachFields(BaseModel):
    specialization: Optional[str] = Field(None, max_length=100)
    experience_years: Optional[int] = Field(None, ge=0, le=80)


class UserCreate(PlayerFields, CoachFields):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    role: UserRole
    first_name: str = Field(..., min_length=1, max_length=50)
    last_name: str = Field(..., min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=30)


class UserUpdate(PlayerFields, CoachFields):
    """Все поля опциональны, роль не меняется"""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: Optional[str] = Field(None, min_length=3, max_length=255)
    password: Optional[str] = Field(None, min_length=8, max_length=128)
    first_name: Optional[str] = Field(None, min_length=1, max_length=50)
    last_name: Optional[str] = Field(None, min_length=1, max_length=50)
    phone: Optional[str] = Field(None, max_length=30)


class UserStatusUpdate(BaseModel):
    is_active: bool


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    role: UserRole
    is_active: bool
    profile: Optional[ProfileRead] = None
    coach: Optional[CoachInfo] = None
    player: Optional[PlayerInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserFilters(BaseModel):
    role: Optional[UserRole] = None
    search: Optional[str] = Field(None, min_length=1, max_length=100)
    active_only: bool = False

    @field_validator("search")
    @classmethod
    def strip_search(cls, v):
        return v.strip() if v else v


class UserListResponse(BaseModel):
    users: list[UserRead]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    size: int = Field(..., ge=1, le=100)
    pages: int = Field(..., ge=1)
    filters: Optional[UserFilters] = None
