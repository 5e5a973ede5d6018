"""Dashboard Schemas - summary counters and chart data by role"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from app.staff.models.users import UserRole


class EventsHistogram(BaseModel):
    """Предстоящие события по месяцам и типам"""
    labels: List[str] = Field(default_factory=list)
    training: List[int] = Field(default_factory=list)
    matches: List[int] = Field(default_factory=list)
    meetings: List[int] = Field(default_factory=list)
    other: List[int] = Field(default_factory=list)


class TeamResultsChart(BaseModel):
    """Победы / поражения / ничьи по командам"""
    labels: List[str] = Field(default_factory=list)
    wins: List[int] = Field(default_factory=list)
    losses: List[int] = Field(default_factory=list)
    draws: List[int] = Field(default_factory=list)


class PlayersChart(BaseModel):
    """Активные игроки по командам"""
    labels: List[str] = Field(default_factory=list)
    players: List[int] = Field(default_factory=list)


class ActivityRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    entity_type: str
    entity_id: int
    user_id: Optional[int] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class DashboardSummary(BaseModel):
    """Сводка для главной страницы"""
    role: UserRole

    # ADMIN
    total_teams: Optional[int] = None
    total_players: Optional[int] = None
    total_coaches: Optional[int] = None

    # COACH
    my_teams: Optional[int] = None
    active_players: Optional[int] = None

    # PLAYER
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    games_played: Optional[int] = None

    upcoming_events: int = 0

    events_chart: EventsHistogram
    results_chart: TeamResultsChart
    players_chart: PlayersChart
    recent_activities: List[ActivityRead] = Field(default_factory=list)
