from sqlalchemy import (
    Column,
    Integer,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class TeamPlayer(Base):
    """
    Членство игрока в команде.

    Одна строка на пару (team, player): при повторном добавлении строка
    реактивируется. Активной может быть только одна строка на игрока,
    это гарантирует частичный уникальный индекс.
    """

    __tablename__ = "team_players"

    id = Column(Integer, primary_key=True, autoincrement=True)

    team_id = Column(
        Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False
    )
    player_id = Column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )

    is_active = Column(Boolean, default=True, nullable=False)
    join_date = Column(DateTime(timezone=True), default=utcnow)
    leave_date = Column(DateTime(timezone=True), nullable=True)

    team = relationship("Team", back_populates="memberships")
    player = relationship("Player", back_populates="memberships")

    __table_args__ = (
        UniqueConstraint("team_id", "player_id", name="uq_team_player"),
        Index(
            "uq_team_players_one_active",
            "player_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_team_players_team_active", "team_id", "is_active"),
    )

    def __repr__(self):
        return (
            f"<TeamPlayer(team_id={self.team_id}, player_id={self.player_id}, "
            f"is_active={self.is_active})>"
        )
