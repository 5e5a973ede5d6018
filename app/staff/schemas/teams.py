from typing import Optional
from pydantic import BaseModel, Field, ConfigDict


class TeamBase(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class TeamCreate(TeamBase):
    coach_id: Optional[int] = Field(None, gt=0)


class TeamUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)


class CoachAssign(BaseModel):
    """coach_id = null делает команду без тренера"""

    coach_id: Optional[int] = Field(None, gt=0)


class TeamRead(BaseModel):
    """Сводка по команде: состав считается по активным членствам"""

    id: int
    name: str
    description: Optional[str] = None
    coach_id: Optional[int] = None
    coach_name: Optional[str] = None
    players_count: int = 0

    games_played: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0


class TeamDeleteResponse(BaseModel):
    message: str
    team_id: int
