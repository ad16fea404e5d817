"""
Request-scoped service providers
"""

from fastapi import Depends

from app.api.ws import websocket_manager
from app.schemas.event import EventResponse
from app.services.ai_service import ai_service
from app.services.checkin_service import CheckInService
from app.services.event_service import EventService
from app.services.notification_service import ticket_notifier
from app.services.registration_service import RegistrationService
from app.services.repositories import get_store
from app.services.user_service import UserService
from app.utils.responses import forbidden_error
from app.utils.security import AuthenticatedUser


def get_event_service(store=Depends(get_store)) -> EventService:
    return EventService(store, ai_service)


def get_user_service(store=Depends(get_store)) -> UserService:
    return UserService(store)


def get_registration_service(store=Depends(get_store)) -> RegistrationService:
    return RegistrationService(store, ticket_notifier)


def get_checkin_service(store=Depends(get_store)) -> CheckInService:
    return CheckInService(store, websocket_manager)


def require_organizer(event: EventResponse, user: AuthenticatedUser) -> None:
    """Only the event's organizer may run check-in and see participants"""
    if event.organizer_id != user.uid:
        forbidden_error("Only the event organizer can perform this action")
