"""Event Player Model - links players to events with their attendance"""
from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class AttendanceStatus(str, Enum):
    PLANNED = "PLANNED"
    ATTENDED = "ATTENDED"
    ABSENT = "ABSENT"
    EXCUSED = "EXCUSED"


class EventPlayer(Base):
    __tablename__ = "event_players"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(
        Integer,
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Меняет только сам игрок
    attendance = Column(
        SQLEnum(AttendanceStatus), default=AttendanceStatus.PLANNED, nullable=False
    )

    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="players")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("event_id", "player_id", name="uq_event_player"),
    )

    def __repr__(self):
        return (
            f"<EventPlayer(event_id={self.event_id}, player_id={self.player_id}, "
            f"attendance={self.attendance})>"
        )
