"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.models.enums import EventCategory, EventType

class EventCreate(BaseModel):
    """Schema for creating an event"""
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    venue: str = Field(min_length=1)
    location: str = Field(min_length=1)
    date: datetime
    category: EventCategory = EventCategory.OTHER
    type: EventType = EventType.INTERNAL
    map_link: Optional[str] = None
    registration_link: Optional[str] = None

class EventResponse(BaseModel):
    """Event as stored"""
    id: str
    title: str
    description: str
    venue: str
    location: str
    date: datetime
    category: EventCategory
    type: EventType
    map_link: Optional[str] = None
    registration_link: Optional[str] = None
    organizer_id: str
    organizer_name: Optional[str] = None
    image_url: Optional[str] = None
    attendee_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class EventFilter(BaseModel):
    """Optional filters for event listings"""
    starts_after: Optional[datetime] = None
    starts_before: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[EventCategory] = None

class EventStats(BaseModel):
    """Attendance statistics for an event"""
    event_id: str
    attendee_count: int
    registered: int
    checked_in: int
