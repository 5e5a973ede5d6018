from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class Team(Base):
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    # Команда может быть без тренера
    coach_id = Column(
        Integer, ForeignKey("coaches.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Денормализованные счетчики, пересчитываются по завершенным матчам
    games_played = Column(Integer, default=0, nullable=False)
    wins = Column(Integer, default=0, nullable=False)
    losses = Column(Integer, default=0, nullable=False)
    draws = Column(Integer, default=0, nullable=False)
    points_for = Column(Integer, default=0, nullable=False)
    points_against = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relations
    coach = relationship("Coach", back_populates="teams")
    memberships = relationship("TeamPlayer", back_populates="team")

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}')>"
