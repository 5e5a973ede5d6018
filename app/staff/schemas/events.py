from datetime import datetime, date
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.staff.models.events import EventType, EventStatus
from app.players.models.attendance import AttendanceStatus


class MatchData(BaseModel):
    """
    Данные матча для события типа MATCH.

    away_team_id пустой для внешнего соперника, его имя в opponent_name.
    """

    home_team_id: int = Field(..., gt=0)
    away_team_id: Optional[int] = Field(None, gt=0)
    opponent_name: Optional[str] = Field(None, max_length=100)
    home_score: Optional[int] = Field(None, ge=0)
    away_score: Optional[int] = Field(None, ge=0)

    @model_validator(mode="after")
    def check_teams(self):
        if self.away_team_id is not None and self.away_team_id == self.home_team_id:
            raise ValueError("Away team must differ from home team")
        return self


class MatchCreate(MatchData):
    # Создать нулевые строки статистики для игроков обеих команд
    seed_stats: bool = False


class MatchUpdate(BaseModel):
    home_team_id: Optional[int] = Field(None, gt=0)
    away_team_id: Optional[int] = Field(None, gt=0)
    opponent_name: Optional[str] = Field(None, max_length=100)
    home_score: Optional[int] = Field(None, ge=0)
    away_score: Optional[int] = Field(None, ge=0)


class EventCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    event_type: EventType
    start_time: datetime
    end_time: datetime
    location: Optional[str] = Field(None, max_length=200)
    status: EventStatus = EventStatus.SCHEDULED
    team_ids: List[int] = Field(default_factory=list)
    coach_ids: List[int] = Field(default_factory=list)
    match: Optional[MatchCreate] = None

    @model_validator(mode="after")
    def check_event(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        if self.match is not None and self.event_type != EventType.MATCH:
            raise ValueError("Match data is allowed only for MATCH events")
        if any(team_id <= 0 for team_id in self.team_ids):
            raise ValueError("Team IDs must be positive")
        return self


class EventUpdate(BaseModel):
    """team_ids заменяет связи с командами, состав игроков не пересобирается"""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=5000)
    event_type: Optional[EventType] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    status: Optional[EventStatus] = None
    team_ids: Optional[List[int]] = None
    match: Optional[MatchUpdate] = None


class EventFilters(BaseModel):
    search: Optional[str] = Field(None, max_length=100)
    event_type: Optional[EventType] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    team_id: Optional[int] = Field(None, gt=0)


class EventTeamRead(BaseModel):
    id: int
    name: str


class EventPlayerRead(BaseModel):
    player_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    attendance: AttendanceStatus


class MatchRead(BaseModel):
    id: int
    home_team_id: int
    home_team_name: Optional[str] = None
    away_team_id: Optional[int] = None
    away_team_name: Optional[str] = None
    opponent_name: Optional[str] = None
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    status: EventStatus


class EventListItem(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    event_type: EventType
    start_time: datetime
    end_time: datetime
    location: Optional[str] = None
    status: EventStatus
    teams: List[EventTeamRead] = Field(default_factory=list)
    match: Optional[MatchRead] = None


class EventRead(EventListItem):
    created_by_id: Optional[int] = None
    coach_ids: List[int] = Field(default_factory=list)
    players: List[EventPlayerRead] = Field(default_factory=list)


class EventDeleteResponse(BaseModel):
    message: str
    event_id: int
