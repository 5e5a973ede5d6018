"""Player Attendance CRUD - players mark their own presence at linked events"""
from sqlalchemy.future import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import db_operation
from app.core.exceptions import (
    AuthorizationError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from app.players.models.attendance import EventPlayer, AttendanceStatus
from app.staff.crud.activities import record_activity
from app.staff.models.events import Event
from app.staff.schemas.users import CurrentUser


@db_operation
async def update_attendance(
    session: AsyncSession,
    event_id: int,
    status: AttendanceStatus,
    actor: CurrentUser,
) -> EventPlayer:
    """
    Set attendance of the current player for an event.

    Only events the player was linked to when they were created can be
    updated; anything else is rejected without touching the database.
    """
    if not actor.is_player or not actor.player_id:
        raise AuthorizationError("Only players can update attendance")

    if not event_id or event_id <= 0:
        raise ValidationError("Event ID must be positive")

    event = await session.get(Event, event_id)
    if not event:
        raise NotFoundError("Event", str(event_id))

    result = await session.execute(
        select(EventPlayer)
        .where(
            EventPlayer.event_id == event.id,
            EventPlayer.player_id == actor.player_id,
        )
        .execution_options(populate_existing=True)
    )
    link = result.scalar_one_or_none()
    if link is None:
        raise PermissionDeniedError(
            "update attendance for", "event", "You are not linked to this event"
        )

    previous = link.attendance
    link.attendance = status

    await record_activity(
        session,
        "attendance_updated",
        "event",
        event.id,
        actor.id,
        {"player_id": actor.player_id, "from": previous.value, "to": status.value},
    )
    await session.commit()
    return link
