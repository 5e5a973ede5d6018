from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from app.core.database import Base


class Coach(Base):
    """Расширение пользователя с ролью COACH"""

    __tablename__ = "coaches"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    specialization = Column(String(100), nullable=True)
    experience_years = Column(Integer, nullable=True)

    user = relationship("User", back_populates="coach")
    teams = relationship("Team", back_populates="coach")

    def __repr__(self):
        return f"<Coach(id={self.id}, user_id={self.user_id})>"
