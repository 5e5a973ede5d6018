from app.core.database import Base
from .users import User, Profile, UserRole
from .coaches import Coach
from .teams import Team
from .team_players import TeamPlayer
from .events import Event, EventTeam, EventCoach, EventType, EventStatus
from .matches import Match
from .player_stats import PlayerStat
from .activities import Activity

# Модели игроков нужны для relationship("Player") и relationship("EventPlayer")
from app.players.models import Player, PlayerPosition, EventPlayer, AttendanceStatus

__all__ = [
    "Base",
    "User",
    "Profile",
    "UserRole",
    "Coach",
    "Team",
    "TeamPlayer",
    "Event",
    "EventTeam",
    "EventCoach",
    "EventType",
    "EventStatus",
    "Match",
    "PlayerStat",
    "Activity",
    "Player",
    "PlayerPosition",
    "EventPlayer",
    "AttendanceStatus",
]
