"""
User-facing API routes - requires a signed-in user
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from app.api.deps import (
    get_checkin_service,
    get_event_service,
    get_registration_service,
    get_user_service,
)
from app.models.enums import RegistrationOutcome
from app.schemas.attendance import SendTicketRequest
from app.schemas.comment import CommentCreate
from app.schemas.user import ProfileCreate, ProfileUpdate
from app.services.checkin_service import CheckInService
from app.services.event_service import EventService
from app.services.notification_service import ticket_notifier
from app.services.qr_service import QRService
from app.services.registration_service import RegistrationService
from app.services.repositories import get_store
from app.services.user_service import UserService
from app.utils.responses import success_response, error_response, rate_limit_error
from app.utils.security import AuthenticatedUser, get_client_ip, get_current_user, rate_limit_check

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/me")
async def create_profile(
    profile_data: ProfileCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Create the caller's score profile (idempotent)"""
    if profile_data.email is None and user.email:
        profile_data.email = user.email
    if profile_data.display_name is None and user.display_name:
        profile_data.display_name = user.display_name

    profile = user_service.create_profile(user.uid, profile_data)

    return success_response(
        message="Profile ready",
        data=profile,
        status_code=201
    )

@router.get("/me")
async def get_profile(
    user: AuthenticatedUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Get the caller's profile, points and badges"""
    return success_response(
        message="Profile retrieved",
        data=user_service.get_profile(user.uid)
    )

@router.patch("/me")
async def update_profile(
    profile_update: ProfileUpdate,
    user: AuthenticatedUser = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service)
):
    """Update display name, bio or photo"""
    profile = user_service.update_profile(user.uid, profile_update)

    return success_response(
        message="Profile updated successfully",
        data=profile
    )

@router.get("/me/events")
async def my_events(
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Events the caller has registered for"""
    events = event_service.list_user_events(user.uid)

    return success_response(
        message="Registered events retrieved",
        data={"events": events}
    )

@router.post("/events/{event_id}/register")
async def register_for_event(
    event_id: str,
    request: Request,
    user: AuthenticatedUser = Depends(get_current_user),
    registration_service: RegistrationService = Depends(get_registration_service),
    checkin_service: CheckInService = Depends(get_checkin_service)
):
    """RSVP to an event"""
    # Rate limiting
    client_ip = get_client_ip(request)
    if not rate_limit_check(client_ip):
        return rate_limit_error()

    result = registration_service.register_for_event(event_id, user.uid)

    if result.outcome is RegistrationOutcome.ALREADY_REGISTERED:
        return success_response(
            message="You are already registered for this event.",
            data=result
        )

    event = registration_service.store.get_event(event_id)
    await checkin_service.broadcast_event_update(
        event_id,
        update_type="registration",
        user_id=user.uid,
        attendee_count=event.attendee_count if event else None
    )

    return success_response(
        message="Successfully registered!",
        data=result,
        status_code=201
    )

@router.get("/events/{event_id}/ticket.png")
async def get_ticket(
    event_id: str,
    user: AuthenticatedUser = Depends(get_current_user),
    store=Depends(get_store)
):
    """QR ticket for a registered attendee"""
    attendance = store.get_attendance(event_id, user.uid)
    profile = store.get_profile(user.uid)
    if attendance is None or profile is None:
        return error_response(
            message="You are not registered for this event.",
            error_code="not_registered",
            status_code=404
        )

    qr_bytes = QRService.generate_ticket_qr(QRService.ticket_payload(event_id, profile))

    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=ticket_{event_id}.png"}
    )

@router.post("/events/{event_id}/comments")
async def add_comment(
    event_id: str,
    comment_data: CommentCreate,
    user: AuthenticatedUser = Depends(get_current_user),
    event_service: EventService = Depends(get_event_service)
):
    """Post a comment on an event"""
    comment = event_service.add_comment(event_id, user.uid, comment_data.text)

    return success_response(
        message="Comment added",
        data=comment,
        status_code=201
    )

@router.post("/tickets/send")
async def send_ticket(
    ticket: SendTicketRequest,
    user: AuthenticatedUser = Depends(get_current_user)
):
    """Send a ticket e-mail"""
    try:
        result = ticket_notifier.send_ticket(
            recipient=ticket.user_email,
            recipient_name=ticket.user_name,
            event_name=ticket.event_name,
            qr_code_data_url=ticket.qr_code_data_url
        )
    except Exception as e:
        logger.error(f"Ticket e-mail failed for {ticket.user_email}: {e}")
        return error_response(
            message="Failed to send ticket email.",
            status_code=500
        )

    return success_response(message=result["message"], data=result)
