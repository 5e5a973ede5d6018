from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import get_actor
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.dashboard import DashboardSummary
from app.staff.crud.dashboard import get_dashboard

router = APIRouter(prefix="/dashboard", tags=["Dashboard"])


@router.get("", response_model=DashboardSummary)
@limiter.limit("30/minute")
async def get_dashboard_summary(
    request: Request,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    Dashboard summary for the current role.

    **ADMIN:** totals of teams, players, coaches and recent activity
    **COACH:** own teams and their active players
    **PLAYER:** current team and games played

    All roles get upcoming events per month and type, and
    win/loss/draw results of teams in scope.
    """
    return await get_dashboard(db, actor)
