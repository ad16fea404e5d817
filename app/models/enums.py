"""
Enumerations shared by models, schemas and services
"""

from enum import Enum


class EventType(str, Enum):
    INTERNAL = "internal"
    EXTERNAL = "external"


class EventCategory(str, Enum):
    TECH = "Tech"
    SPORTS = "Sports"
    MUSIC = "Music"
    WORKSHOP = "Workshop"
    SOCIAL = "Social"
    OTHER = "Other"


class RegistrationOutcome(str, Enum):
    REGISTERED = "registered"
    ALREADY_REGISTERED = "already_registered"


class CheckInOutcome(str, Enum):
    SUCCESS = "success"
    ALREADY_CHECKED_IN = "already_checked_in"
    NOT_REGISTERED = "not_registered"
