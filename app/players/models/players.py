from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    Date,
    Float,
    ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from app.core.database import Base


class PlayerPosition(str, Enum):
    POINT_GUARD = "POINT_GUARD"
    SHOOTING_GUARD = "SHOOTING_GUARD"
    SMALL_FORWARD = "SMALL_FORWARD"
    POWER_FORWARD = "POWER_FORWARD"
    CENTER = "CENTER"


class Player(Base):
    """Расширение пользователя с ролью PLAYER"""

    __tablename__ = "players"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    birth_date = Column(Date, nullable=True)
    height = Column(Float, nullable=True)  # см
    weight = Column(Float, nullable=True)  # кг
    position = Column(SQLEnum(PlayerPosition), nullable=True)
    jersey_number = Column(Integer, nullable=True)

    user = relationship("User", back_populates="player")
    memberships = relationship("TeamPlayer", back_populates="player")

    def __repr__(self):
        return f"<Player(id={self.id}, user_id={self.user_id})>"
