"""
Public API routes - no authentication required
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_event_service, get_user_service
from app.models.enums import EventCategory
from app.schemas.event import EventFilter
from app.services.event_service import EventService
from app.services.user_service import UserService
from app.utils.responses import success_response

router = APIRouter()

@router.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok"}

@router.get("/events")
async def list_events(
    starts_after: Optional[datetime] = Query(None),
    starts_before: Optional[datetime] = Query(None),
    location: Optional[str] = Query(None),
    category: Optional[EventCategory] = Query(None),
    event_service: EventService = Depends(get_event_service)
):
    """List events, optionally within a time window, location or category"""
    events = event_service.list_events(EventFilter(
        starts_after=starts_after,
        starts_before=starts_before,
        location=location,
        category=category
    ))

    return success_response(
        message="Events retrieved successfully",
        data={"events": events, "total": len(events)}
    )

@router.get("/events/{event_id}")
async def get_event(
    event_id: str,
    event_service: EventService = Depends(get_event_service)
):
    """Get a single event"""
    event = event_service.get_event(event_id)

    return success_response(
        message="Event retrieved successfully",
        data=event
    )

@router.get("/events/{event_id}/comments")
async def list_comments(
    event_id: str,
    event_service: EventService = Depends(get_event_service)
):
    """List comments for an event, oldest first"""
    comments = event_service.list_comments(event_id)

    return success_response(
        message="Comments retrieved successfully",
        data={"comments": comments}
    )

@router.get("/leaderboard")
async def get_leaderboard(
    limit: int = Query(50, ge=1, le=500),
    user_service: UserService = Depends(get_user_service)
):
    """Users ranked by points"""
    entries = user_service.leaderboard(limit)

    return success_response(
        message="Leaderboard retrieved successfully",
        data={"leaderboard": entries}
    )
