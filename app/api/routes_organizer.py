"""
Organizer API routes - event creation, participant list and check-in
"""

from fastapi import APIRouter, Depends, Request

from app.api.deps import (
    get_checkin_service,
    get_event_service,
    get_user_service,
    require_organizer,
)
from app.models.enums import CheckInOutcome
from app.schemas.attendance import CheckInRequest, CheckInResult, ScanRequest
from app.schemas.event import EventCreate
from app.services.checkin_service import CheckInService
from app.services.event_service import EventService
from app.services.user_service import UserService
from app.utils.responses import success_response, error_response, rate_limit_error
from app.utils.security import AuthenticatedUser, get_client_ip, get_current_user, rate_limit_check

router = APIRouter()

def _checkin_response(result: CheckInResult, checkin_service: CheckInService):
    """Map a check-in outcome to the operator-facing response"""
    if result.outcome is CheckInOutcome.SUCCESS:
        return success_response(
            message="Checked in successfully!",
            data=result
        )

    if result.outcome is CheckInOutcome.ALREADY_CHECKED_IN:
        profile = checkin_service.store.get_profile(result.user_id)
        name = (profile.display_name if profile else None) or result.user_id
        return error_response(
            message=f"{name} has already been checked in.",
            error_code=result.outcome.value,
            details=result,
            status_code=409
        )

    return error_response(
        message="This user has not RSVP'd for the event.",
        error_code=result.outcome.value,
        details=result,
        status_code=404
    )

@router.post("/events")
async def create_event(
    event_data: EventCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
    user_service: UserService = Depends(get_user_service)
):
    """Create a new event"""
    organizer = user_service.get_profile(user.uid)
    event = event_service.create_event(event_data, organizer)

    return success_response(
        message="Event created successfully",
        data=event,
        status_code=201
    )

@router.get("/events/{event_id}/participants")
async def list_participants(
    event_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Registered attendees with their check-in state"""
    require_organizer(event_service.get_event(event_id), user)
    participants = event_service.list_participants(event_id)

    return success_response(
        message="Participants retrieved successfully",
        data={"participants": participants, "total": len(participants)}
    )

@router.get("/events/{event_id}/stats")
async def event_stats(
    event_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Registration and check-in counts"""
    require_organizer(event_service.get_event(event_id), user)

    return success_response(
        message="Event statistics retrieved",
        data=event_service.get_stats(event_id)
    )

@router.post("/events/{event_id}/checkin")
async def manual_check_in(
    event_id: str,
    checkin_data: CheckInRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
    checkin_service: CheckInService = Depends(get_checkin_service)
):
    """Check in an attendee from the participant list"""
    require_organizer(event_service.get_event(event_id), user)
    result = await checkin_service.check_in(event_id, checkin_data.user_id)
    return _checkin_response(result, checkin_service)

@router.post("/events/{event_id}/scan")
async def scan_check_in(
    event_id: str,
    scan_data: ScanRequest,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service),
    checkin_service: CheckInService = Depends(get_checkin_service)
):
    """Check in from a scanned QR ticket"""
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip, limit=300):
        return rate_limit_error()

    require_organizer(event_service.get_event(event_id), user)
    result = await checkin_service.check_in_from_scan(scan_data.data, event_id=event_id)

    if result is None:
        return success_response(
            message="QR code ignored",
            data={"ignored": True}
        )
    return _checkin_response(result, checkin_service)
