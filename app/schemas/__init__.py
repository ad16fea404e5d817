"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .user import *
from .attendance import *
from .comment import *
from .ai import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventResponse",
    "EventFilter",
    "EventStats",
    "ProfileCreate",
    "ProfileUpdate",
    "UserProfileResponse",
    "LeaderboardEntry",
    "AttendanceResponse",
    "ParticipantResponse",
    "RegistrationResult",
    "CheckInResult",
    "CheckInRequest",
    "ScanRequest",
    "TicketPayload",
    "SendTicketRequest",
    "CommentCreate",
    "CommentResponse",
    "AskRequest",
    "AnswerResponse",
    "DraftEventRequest",
    "EventDraft",
    "Recommendations",
    "LocationCount",
    "EventAnalysis",
]
