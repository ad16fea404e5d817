"""
Attendee check-in service with real-time broadcasting
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from app.api.ws import WebSocketManager
from app.models.enums import CheckInOutcome
from app.schemas.attendance import CheckInResult
from app.services.qr_service import QRService

logger = logging.getLogger(__name__)

class CheckInService:
    """Service for checking in registered attendees.

    Both the QR scanner and the organizer's manual button go through
    ``check_in`` so that an attendance record is flipped exactly once.
    """

    def __init__(self, store, websocket_manager: WebSocketManager):
        self.store = store
        self.websocket_manager = websocket_manager

    async def check_in(self, event_id: str, user_id: str) -> CheckInResult:
        """Check in an attendee and broadcast the update"""
        outcome, attendance = self.store.mark_checked_in(event_id, user_id)

        if outcome is CheckInOutcome.NOT_REGISTERED:
            logger.info(f"Check-in rejected: user {user_id} is not registered for event {event_id}")
        elif outcome is CheckInOutcome.ALREADY_CHECKED_IN:
            logger.info(f"Check-in rejected: user {user_id} already checked in to event {event_id}")
        else:
            logger.info(f"User {user_id} checked in to event {event_id}")
            await self.websocket_manager.broadcast_to_event(event_id, {
                "type": "checkin",
                "user_id": user_id,
                "checked_in_at": attendance.checked_in_at.isoformat() if attendance and attendance.checked_in_at else None,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            })

        return CheckInResult(
            outcome=outcome,
            event_id=event_id,
            user_id=user_id,
            attendance=attendance
        )

    async def check_in_from_scan(self, raw: str, event_id: Optional[str] = None) -> Optional[CheckInResult]:
        """Check in from text decoded off a QR code.

        Codes that are not tickets return None and are otherwise ignored.
        When the scanner is bound to ``event_id``, a ticket issued for another
        event is reported as NOT_REGISTERED without any write.
        """
        payload = QRService.decode_ticket_payload(raw)
        if payload is None:
            return None

        if event_id is not None and payload.event_id != event_id:
            logger.info(f"Scanned ticket for event {payload.event_id} at event {event_id}")
            return CheckInResult(
                outcome=CheckInOutcome.NOT_REGISTERED,
                event_id=event_id,
                user_id=payload.user_id
            )
        return await self.check_in(payload.event_id, payload.user_id)

    async def broadcast_event_update(
        self,
        event_id: str,
        update_type: str = "event_update",
        **fields
    ):
        """Broadcast an event-level change (e.g. a new registration) to connected clients"""

        message = {
            "type": update_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **fields
        }

        await self.websocket_manager.broadcast_to_event(event_id, message)
