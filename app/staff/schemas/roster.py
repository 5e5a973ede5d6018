from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from app.players.models.players import PlayerPosition


class RosterAdd(BaseModel):
    player_id: int = Field(..., gt=0)


class MembershipToggle(BaseModel):
    is_active: bool


class MembershipRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    team_id: int
    player_id: int
    is_active: bool
    join_date: Optional[datetime] = None
    leave_date: Optional[datetime] = None


class RosterPlayer(BaseModel):
    """Строка состава: игрок + статус в этой команде + глобальный статус"""

    membership_id: int
    player_id: int
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[PlayerPosition] = None
    jersey_number: Optional[int] = None
    is_active_in_team: bool
    global_is_active: bool
    join_date: Optional[datetime] = None
    leave_date: Optional[datetime] = None


class EligiblePlayer(BaseModel):
    player_id: int
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    position: Optional[PlayerPosition] = None
    jersey_number: Optional[int] = None
    global_is_active: bool
    current_team_id: Optional[int] = None
    current_team_name: Optional[str] = None


class MembershipDeleteResponse(BaseModel):
    message: str
    team_id: int
    player_id: int
