from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.staff.schemas.teams import TeamRead


class PlayerStatUpdate(BaseModel):
    """Частичное обновление строки статистики; made <= attempted проверяется после слияния"""

    points: Optional[int] = Field(None, ge=0)
    rebounds: Optional[int] = Field(None, ge=0)
    assists: Optional[int] = Field(None, ge=0)
    steals: Optional[int] = Field(None, ge=0)
    blocks: Optional[int] = Field(None, ge=0)
    turnovers: Optional[int] = Field(None, ge=0)
    minutes_played: Optional[int] = Field(None, ge=0, le=60)
    field_goals_made: Optional[int] = Field(None, ge=0)
    field_goals_attempted: Optional[int] = Field(None, ge=0)
    three_pointers_made: Optional[int] = Field(None, ge=0)
    three_pointers_attempted: Optional[int] = Field(None, ge=0)
    free_throws_made: Optional[int] = Field(None, ge=0)
    free_throws_attempted: Optional[int] = Field(None, ge=0)


class PlayerStatRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    match_id: int
    player_id: int
    team_id: Optional[int] = None
    points: int
    rebounds: int
    assists: int
    steals: int
    blocks: int
    turnovers: int
    minutes_played: int
    field_goals_made: int
    field_goals_attempted: int
    three_pointers_made: int
    three_pointers_attempted: int
    free_throws_made: int
    free_throws_attempted: int


class OverallStats(BaseModel):
    total_games: int = 0
    games_started: int = 0
    minutes_per_game: float = 0.0
    points_per_game: float = 0.0
    rebounds_per_game: float = 0.0
    assists_per_game: float = 0.0
    steals_per_game: float = 0.0
    blocks_per_game: float = 0.0
    turnovers_per_game: float = 0.0
    field_goal_percentage: float = 0.0
    three_point_percentage: float = 0.0
    free_throw_percentage: float = 0.0
    efficiency: int = 0
    average_efficiency: float = 0.0


class GameLogEntry(BaseModel):
    game_id: int
    event_id: int
    date: str
    opponent: str
    result: str
    score: str
    minutes: int
    points: int
    rebounds: int
    assists: int
    steals: int
    blocks: int
    turnovers: int
    field_goals: str
    three_pointers: str
    free_throws: str
    efficiency: int


class PlayerStatsResponse(BaseModel):
    player_id: int
    overall_stats: OverallStats
    game_stats: List[GameLogEntry] = Field(default_factory=list)


class TeamStatsRow(TeamRead):
    win_percentage: float = 0.0


class PlayerStatsRow(BaseModel):
    player_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    team_id: Optional[int] = None
    team_name: Optional[str] = None
    overall_stats: OverallStats


class StatsSyncRequest(BaseModel):
    """team_id = null пересчитывает все команды"""

    team_id: Optional[int] = Field(None, gt=0)


class StatsSyncResponse(BaseModel):
    message: str
    teams: List[TeamStatsRow]
