"""Player Attendance Schemas"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from app.players.models.attendance import AttendanceStatus


class AttendanceUpdate(BaseModel):
    """Request to change own attendance for an event"""
    model_config = ConfigDict(json_schema_extra={"example": {"status": "ATTENDED"}})

    status: AttendanceStatus = Field(..., description="New attendance status")


class AttendanceRead(BaseModel):
    """Attendance record after update"""
    event_id: int
    player_id: int
    attendance: AttendanceStatus
    updated_at: Optional[datetime] = None
