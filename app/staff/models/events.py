from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class EventType(str, Enum):
    TRAINING = "TRAINING"
    MATCH = "MATCH"
    MEETING = "MEETING"
    OTHER = "OTHER"


class EventStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    POSTPONED = "POSTPONED"


class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_type = Column(SQLEnum(EventType), nullable=False)
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=True)
    status = Column(
        SQLEnum(EventStatus), default=EventStatus.SCHEDULED, nullable=False
    )

    created_by_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relations
    teams = relationship("EventTeam", back_populates="event")
    coaches = relationship("EventCoach", back_populates="event")
    players = relationship("EventPlayer", back_populates="event")
    match = relationship("Match", back_populates="event", uselist=False)

    __table_args__ = (Index("ix_events_start_time", "start_time"),)

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', type={self.event_type})>"


class EventTeam(Base):
    __tablename__ = "event_teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    team_id = Column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True
    )

    event = relationship("Event", back_populates="teams")
    team = relationship("Team")

    __table_args__ = (UniqueConstraint("event_id", "team_id", name="uq_event_team"),)


class EventCoach(Base):
    __tablename__ = "event_coaches"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False
    )
    coach_id = Column(
        Integer,
        ForeignKey("coaches.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    event = relationship("Event", back_populates="coaches")
    coach = relationship("Coach")

    __table_args__ = (
        UniqueConstraint("event_id", "coach_id", name="uq_event_coach"),
    )
