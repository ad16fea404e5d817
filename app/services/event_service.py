"""
Event catalogue, participant and comment queries
"""

import logging
import os
from typing import List, Optional

from app.core.config import settings
from app.core.exceptions import EventNotFoundError
from app.schemas.attendance import ParticipantResponse
from app.schemas.comment import CommentResponse
from app.schemas.event import EventCreate, EventFilter, EventResponse, EventStats
from app.schemas.user import UserProfileResponse
from app.services.ai_service import AIService

logger = logging.getLogger(__name__)

class EventService:
    """Service for event reads and organizer actions"""

    def __init__(self, store, ai: Optional[AIService] = None):
        self.store = store
        self.ai = ai

    def create_event(self, data: EventCreate, organizer: UserProfileResponse) -> EventResponse:
        """Create an event, then try to attach a generated banner image"""
        organizer_name = organizer.display_name or (organizer.email or "").split("@")[0] or "Anonymous"
        event = self.store.create_event(data, organizer.id, organizer_name)
        logger.info(f"Event {event.id} created by {organizer.id}")

        image_url = self._generate_banner(event)
        if image_url:
            self.store.set_event_image(event.id, image_url)
            event = event.model_copy(update={"image_url": image_url})
        return event

    def _generate_banner(self, event: EventResponse) -> Optional[str]:
        """Best-effort banner generation; failures are logged and ignored"""
        if self.ai is None:
            return None
        try:
            image_bytes = self.ai.generate_event_image(event.title, event.description)
            directory = os.path.join(settings.STATIC_DIR, "event-images")
            os.makedirs(directory, exist_ok=True)
            with open(os.path.join(directory, f"{event.id}.png"), 'wb') as f:
                f.write(image_bytes)
        except Exception as e:
            logger.warning(f"Banner generation skipped for event {event.id}: {e}")
            return None
        return f"{settings.BASE_URL}/static/event-images/{event.id}.png"

    def list_events(self, filters: Optional[EventFilter] = None) -> List[EventResponse]:
        return self.store.list_events(filters or EventFilter())

    def get_event(self, event_id: str) -> EventResponse:
        event = self.store.get_event(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def list_user_events(self, user_id: str) -> List[EventResponse]:
        return self.store.list_user_events(user_id)

    def list_participants(self, event_id: str) -> List[ParticipantResponse]:
        self.get_event(event_id)
        return self.store.list_attendance(event_id)

    def get_stats(self, event_id: str) -> EventStats:
        """Attendee counter next to the counts derived from the ledger"""
        event = self.get_event(event_id)
        participants = self.store.list_attendance(event_id)
        return EventStats(
            event_id=event_id,
            attendee_count=event.attendee_count,
            registered=len(participants),
            checked_in=sum(1 for p in participants if p.checked_in),
        )

    def add_comment(self, event_id: str, author_id: str, text: str) -> CommentResponse:
        self.get_event(event_id)
        return self.store.add_comment(event_id, author_id, text.strip())

    def list_comments(self, event_id: str) -> List[CommentResponse]:
        self.get_event(event_id)
        return self.store.list_comments(event_id)
