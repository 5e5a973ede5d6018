from app.core.database import Base
from .players import Player, PlayerPosition
from .attendance import EventPlayer, AttendanceStatus

__all__ = [
    "Base",
    "Player",
    "PlayerPosition",
    "EventPlayer",
    "AttendanceStatus",
]
