from enum import Enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Boolean,
    ForeignKey,
    LargeBinary,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from app.core.database import Base, utcnow


class UserRole(str, Enum):
    """Роль пользователя в клубе"""

    ADMIN = "ADMIN"
    COACH = "COACH"
    PLAYER = "PLAYER"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.PLAYER)

    # Мягкое удаление: пользователь со ссылками в истории не удаляется
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    profile = relationship(
        "Profile", back_populates="user", uselist=False, cascade="all, delete-orphan"
    )
    coach = relationship("Coach", back_populates="user", uselist=False)
    player = relationship("Player", back_populates="user", uselist=False)

    @property
    def display_name(self) -> str:
        if self.profile is None:
            return self.email
        return f"{self.profile.first_name} {self.profile.last_name}".strip()

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(30), nullable=True)

    # Аватар хранится как blob + mime
    avatar = Column(LargeBinary, nullable=True)
    avatar_mime = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="profile")
