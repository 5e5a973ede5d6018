from sqlalchemy import (
    Column,
    Integer,
    DateTime,
    ForeignKey,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class PlayerStat(Base):
    __tablename__ = "player_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    match_id = Column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(
        Integer,
        ForeignKey("players.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Команда игрока на момент создания строки
    team_id = Column(
        Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )

    points = Column(Integer, default=0, nullable=False)
    rebounds = Column(Integer, default=0, nullable=False)
    assists = Column(Integer, default=0, nullable=False)
    steals = Column(Integer, default=0, nullable=False)
    blocks = Column(Integer, default=0, nullable=False)
    turnovers = Column(Integer, default=0, nullable=False)
    minutes_played = Column(Integer, default=0, nullable=False)

    field_goals_made = Column(Integer, default=0, nullable=False)
    field_goals_attempted = Column(Integer, default=0, nullable=False)
    three_pointers_made = Column(Integer, default=0, nullable=False)
    three_pointers_attempted = Column(Integer, default=0, nullable=False)
    free_throws_made = Column(Integer, default=0, nullable=False)
    free_throws_attempted = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    match = relationship("Match", back_populates="stats")
    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_player_stat_match_player"),
    )
