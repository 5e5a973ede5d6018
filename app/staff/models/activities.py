from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from app.core.database import Base, utcnow


class Activity(Base):
    """Журнал действий (только добавление)"""

    __tablename__ = "activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(50), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Integer, nullable=False)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    details = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)

    def __repr__(self):
        return (
            f"<Activity(action='{self.action}', entity={self.entity_type}:{self.entity_id})>"
        )
