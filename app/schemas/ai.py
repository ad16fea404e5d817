"""
Schemas for the AI assistant's requests and structured replies
"""

from typing import List, Optional
from pydantic import BaseModel, Field

from app.models.enums import EventType

class AskRequest(BaseModel):
    question: str = Field(min_length=1, max_length=2000)

class AnswerResponse(BaseModel):
    answer: str

class DraftEventRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)

class EventDraft(BaseModel):
    """Event fields extracted from free text"""
    title: str
    description: str
    venue: str
    location: str
    date: str = Field(description="YYYY-MM-DDTHH:mm")
    type: EventType = EventType.INTERNAL
    map_link: Optional[str] = Field(default=None, alias="mapLink")
    registration_link: Optional[str] = Field(default=None, alias="registrationLink")

    class Config:
        populate_by_name = True

class Recommendations(BaseModel):
    recommended_event_ids: List[str] = Field(default_factory=list, alias="recommendedEventIds")

    class Config:
        populate_by_name = True

class LocationCount(BaseModel):
    location: str
    count: int

class EventAnalysis(BaseModel):
    summary: str
    events_by_location: List[LocationCount] = Field(default_factory=list, alias="eventsByLocation")

    class Config:
        populate_by_name = True
