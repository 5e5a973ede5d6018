"""Player Attendance Router - players confirm presence at events"""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import require_player
from app.staff.schemas.users import CurrentUser
from app.players.crud.attendance import update_attendance
from app.players.schemas.attendance import AttendanceUpdate, AttendanceRead

router = APIRouter(prefix="/events", tags=["Player Attendance"])


@router.put("/{event_id}/attendance", response_model=AttendanceRead)
@limiter.limit("30/minute")
async def update_my_attendance(
    request: Request,
    event_id: int,
    attendance: AttendanceUpdate,
    actor: CurrentUser = Depends(require_player),
    db: AsyncSession = Depends(get_session),
):
    """
    Set own attendance for an event.

    Only events the player is linked to can be updated, otherwise 403.
    """
    link = await update_attendance(db, event_id, attendance.status, actor)
    return AttendanceRead(
        event_id=link.event_id,
        player_id=link.player_id,
        attendance=link.attendance,
        updated_at=link.updated_at,
    )
