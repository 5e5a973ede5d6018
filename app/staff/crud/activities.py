from typing import Any, Dict, Optional
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_operation
from app.core.exceptions import ValidationError
from app.core.logging_utils import log_business_event
from app.staff.models.activities import Activity


async def record_activity(
    session: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: int,
    user_id: Optional[int],
    details: Dict[str, Any] = None,
) -> Activity:
    """
    Добавить запись в журнал действий.

    Не коммитит: запись попадает в ту же транзакцию, что и само действие.
    """
    activity = Activity(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        user_id=user_id,
        details=details or {},
    )
    session.add(activity)

    log_business_event(
        action, entity_type, entity_id, {**(details or {}), "user_id": user_id}
    )
    return activity


@db_operation
async def get_recent_activities(
    session: AsyncSession,
    limit: int = 20,
    entity_type: Optional[str] = None,
):
    """Последние записи журнала, новые первыми"""
    if limit <= 0 or limit > 100:
        raise ValidationError("Limit must be between 1 and 100")

    query = select(Activity)
    if entity_type:
        query = query.where(Activity.entity_type == entity_type)

    result = await session.execute(
        query.order_by(Activity.created_at.desc(), Activity.id.desc()).limit(limit)
    )
    return result.scalars().all()
