"""
Registration, check-in and ticket schemas
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.enums import CheckInOutcome, RegistrationOutcome
from app.schemas.user import UserProfileResponse

def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Ledger timestamps are UTC; naive values from SQL columns are tagged as such"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

class AttendanceResponse(BaseModel):
    """Attendance ledger record"""
    event_id: str
    user_id: str
    registered_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None

    @field_validator("registered_at", "checked_in_at")
    @classmethod
    def utc_timestamps(cls, value):
        return as_utc(value)

    class Config:
        from_attributes = True

class ParticipantResponse(BaseModel):
    """Attendance record joined with the attendee's profile"""
    user_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    photo_url: Optional[str] = None
    registered_at: Optional[datetime] = None
    checked_in: bool = False
    checked_in_at: Optional[datetime] = None

    @field_validator("registered_at", "checked_in_at")
    @classmethod
    def utc_timestamps(cls, value):
        return as_utc(value)

class RegistrationResult(BaseModel):
    """Outcome of an RSVP"""
    outcome: RegistrationOutcome
    event_id: str
    user_id: str
    profile: Optional[UserProfileResponse] = None
    ticket_sent: bool = False

class CheckInResult(BaseModel):
    """Outcome of a check-in attempt"""
    outcome: CheckInOutcome
    event_id: str
    user_id: str
    attendance: Optional[AttendanceResponse] = None

class CheckInRequest(BaseModel):
    """Manual check-in from the participant list"""
    user_id: str

class ScanRequest(BaseModel):
    """Raw text decoded from a QR code by the scanner"""
    data: str

class TicketPayload(BaseModel):
    """Content of a ticket QR code"""
    event_id: str = Field(alias="eventId")
    user_id: str = Field(alias="userId")
    user_name: Optional[str] = Field(default=None, alias="userName")
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    class Config:
        populate_by_name = True

class SendTicketRequest(BaseModel):
    """Ticket e-mail request"""
    user_email: EmailStr
    user_name: str = Field(min_length=1)
    event_name: str = Field(min_length=1)
    qr_code_data_url: str = Field(min_length=1)
