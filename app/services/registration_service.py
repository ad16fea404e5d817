"""
Event registration (RSVP) service with points and badge accrual
"""

import logging
from typing import Dict

from app.core.config import settings
from app.models.enums import EventType, RegistrationOutcome
from app.schemas.attendance import RegistrationResult
from app.schemas.event import EventResponse
from app.schemas.user import UserProfileResponse
from app.services.notification_service import TicketNotifier
from app.services.qr_service import QRService

logger = logging.getLogger(__name__)

FIRST_RSVP_BADGE = "First RSVP"
SOCIALITE_BADGE = "Socialite"

# events_attended value -> badge awarded when the counter reaches it
BADGE_MILESTONES: Dict[int, str] = {
    1: FIRST_RSVP_BADGE,
    5: SOCIALITE_BADGE,
}

class RegistrationService:
    """Registers users for events.

    The store applies the ledger insert, the attendee counter, the points and
    the badges as one atomic write. A repeated registration is a no-op that
    reports ALREADY_REGISTERED.
    """

    def __init__(self, store, notifier: TicketNotifier, points_per_registration: int = None):
        self.store = store
        self.notifier = notifier
        if points_per_registration is None:
            points_per_registration = settings.POINTS_PER_REGISTRATION
        self.points_per_registration = points_per_registration

    def register_for_event(self, event_id: str, user_id: str) -> RegistrationResult:
        """Register a user for an event.

        Raises EventNotFoundError or UserProfileMissingError before any write.
        Backend write errors propagate to the caller.
        """
        outcome, profile = self.store.register_attendance(
            event_id,
            user_id,
            self.points_per_registration,
            BADGE_MILESTONES
        )

        if outcome is RegistrationOutcome.ALREADY_REGISTERED:
            logger.info(f"User {user_id} already registered for event {event_id}")
            return RegistrationResult(outcome=outcome, event_id=event_id, user_id=user_id)

        logger.info(
            f"User {user_id} registered for event {event_id} "
            f"(points={profile.points}, events_attended={profile.events_attended})"
        )

        event = self.store.get_event(event_id)
        ticket_sent = self._send_ticket(event, profile)

        return RegistrationResult(
            outcome=outcome,
            event_id=event_id,
            user_id=user_id,
            profile=profile,
            ticket_sent=ticket_sent
        )

    def _send_ticket(self, event: EventResponse, profile: UserProfileResponse) -> bool:
        """Best-effort ticket e-mail; never fails the registration"""
        if event is None or event.type is not EventType.INTERNAL:
            return False
        if not profile.email:
            logger.warning(f"User {profile.id} has no email address to send ticket to")
            return False

        try:
            payload = QRService.ticket_payload(event.id, profile)
            qr_data_url = QRService.to_data_url(QRService.generate_ticket_qr(payload))
            result = self.notifier.send_ticket(
                recipient=profile.email,
                recipient_name=profile.display_name or "Student",
                event_name=event.title,
                qr_code_data_url=qr_data_url
            )
            return bool(result.get("success"))
        except Exception as e:
            logger.error(f"Failed to send ticket for event {event.id} to user {profile.id}: {e}")
            return False
