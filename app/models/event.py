"""
Event model
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    venue = Column(String(255), nullable=False)
    location = Column(String(255), nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)
    category = Column(String(50), nullable=False, default="Other", index=True)
    type = Column(String(20), nullable=False, default="internal")
    map_link = Column(String(1024), nullable=True)
    registration_link = Column(String(1024), nullable=True)
    organizer_id = Column(String(128), ForeignKey("users.id"), nullable=False)
    organizer_name = Column(String(255), nullable=True)
    image_url = Column(String(1024), nullable=True)
    # Denormalized count of event_attendees rows, written only on registration
    attendee_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    attendees = relationship("Attendance", back_populates="event", cascade="all, delete-orphan")
    comments = relationship("Comment", back_populates="event", cascade="all, delete-orphan")
