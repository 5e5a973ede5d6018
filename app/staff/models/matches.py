from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow
from app.staff.models.events import EventStatus


class Match(Base):
    """
    Матч, привязанный к событию типа MATCH.

    away_team_id пустой, если соперник внешний: тогда его имя
    хранится в opponent_name.
    """

    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    home_team_id = Column(
        Integer, ForeignKey("teams.id"), nullable=False, index=True
    )
    away_team_id = Column(
        Integer, ForeignKey("teams.id"), nullable=True, index=True
    )
    opponent_name = Column(String(100), nullable=True)

    home_score = Column(Integer, nullable=True)
    away_score = Column(Integer, nullable=True)
    status = Column(
        SQLEnum(EventStatus), default=EventStatus.SCHEDULED, nullable=False
    )

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="match")
    home_team = relationship("Team", foreign_keys=[home_team_id])
    away_team = relationship("Team", foreign_keys=[away_team_id])
    stats = relationship("PlayerStat", back_populates="match")

    @property
    def team_ids(self):
        return [t for t in (self.home_team_id, self.away_team_id) if t is not None]

    def __repr__(self):
        return (
            f"<Match(id={self.id}, home={self.home_team_id}, away={self.away_team_id}, "
            f"status={self.status})>"
        )
