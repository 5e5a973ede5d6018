"""Player Schedule Schemas"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

from app.players.models.attendance import AttendanceStatus
from app.players.models.players import PlayerPosition
from app.staff.schemas.events import EventListItem


class ScheduleItem(EventListItem):
    """Event linked to the player with own attendance status"""
    attendance: AttendanceStatus


class ScheduleResponse(BaseModel):
    events: List[ScheduleItem] = Field(default_factory=list)
    total: int = 0


class PlayerTeamRead(BaseModel):
    """Team membership of the current player"""
    team_id: int
    team_name: str
    coach_name: Optional[str] = None
    is_active: bool
    join_date: Optional[datetime] = None
    leave_date: Optional[datetime] = None


class PlayerTeamsResponse(BaseModel):
    player_id: int
    position: Optional[PlayerPosition] = None
    jersey_number: Optional[int] = None
    teams: List[PlayerTeamRead] = Field(default_factory=list)
