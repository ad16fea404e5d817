"""
Database models package
"""

from .event import Event
from .attendance import Attendance
from .user import UserProfile, UserBadge
from .comment import Comment

__all__ = ["Event", "Attendance", "UserProfile", "UserBadge", "Comment"]
