from datetime import date
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.database import get_session
from app.core.limits import limiter
from app.core.dependencies import get_actor, require_admin, require_staff
from app.staff.models.events import EventType
from app.staff.schemas.users import CurrentUser
from app.staff.schemas.events import (
    EventCreate,
    EventUpdate,
    EventFilters,
    EventListItem,
    EventRead,
    EventDeleteResponse,
)
from app.staff.schemas.stats import PlayerStatUpdate, PlayerStatRead
from app.staff.crud.events import (
    create_event,
    list_events,
    get_event,
    update_event,
    delete_event,
)
from app.staff.crud.stats import update_player_stat

router = APIRouter(tags=["Events"])


@router.get("/events", response_model=List[EventListItem])
@limiter.limit("30/minute")
async def get_events(
    request: Request,
    search: Optional[str] = Query(
        None, max_length=100, description="Search in title, description, location"
    ),
    event_type: Optional[EventType] = Query(None, description="Filter by event type"),
    date_from: Optional[date] = Query(None, description="Events starting from date"),
    date_to: Optional[date] = Query(None, description="Events starting until date"),
    team_id: Optional[int] = Query(None, gt=0, description="Events of a team"),
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """
    List events visible to the current user, ordered by start time.

    - ADMIN sees all events
    - COACH sees events of own teams and events the coach is linked to
    - PLAYER sees events the player is linked to
    """
    filters = EventFilters(
        search=search,
        event_type=event_type,
        date_from=date_from,
        date_to=date_to,
        team_id=team_id,
    )
    return await list_events(db, filters, actor)


@router.post("/events", response_model=EventRead, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_event_endpoint(
    request: Request,
    event_data: EventCreate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Create event (ADMIN or COACH).

    - **team_ids**: linked teams; their active players are added with PLANNED attendance
    - **match**: only for MATCH events; **seed_stats** creates zero stat rows
    """
    return await create_event(db, event_data, actor)


@router.get("/events/{event_id}", response_model=EventRead)
@limiter.limit("60/minute")
async def get_event_endpoint(
    request: Request,
    event_id: int,
    actor: CurrentUser = Depends(get_actor),
    db: AsyncSession = Depends(get_session),
):
    """Event with teams, coaches, players attendance and match."""
    return await get_event(db, event_id, actor)


@router.put("/events/{event_id}", response_model=EventRead)
@limiter.limit("20/minute")
async def update_event_endpoint(
    request: Request,
    event_id: int,
    event_data: EventUpdate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Update event (ADMIN or the coach of the event).

    Completing a match (or reopening it) recomputes team counters.
    """
    return await update_event(db, event_id, event_data, actor)


@router.delete("/events/{event_id}", response_model=EventDeleteResponse)
@limiter.limit("10/minute")
async def delete_event_endpoint(
    request: Request,
    event_id: int,
    actor: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Delete event with its match and stats (ADMIN only)."""
    await delete_event(db, event_id, actor)
    return EventDeleteResponse(message="Event deleted successfully", event_id=event_id)


@router.put("/matches/{match_id}/stats/{player_id}", response_model=PlayerStatRead)
@limiter.limit("60/minute")
async def update_player_stat_endpoint(
    request: Request,
    match_id: int,
    player_id: int,
    stat_data: PlayerStatUpdate,
    actor: CurrentUser = Depends(require_staff),
    db: AsyncSession = Depends(get_session),
):
    """
    Create or update a player's stat line for a match.

    Made shots cannot exceed attempts after the update is applied.
    """
    return await update_player_stat(db, match_id, player_id, stat_data, actor)
