"""
User profile and leaderboard schemas
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, EmailStr, Field

class ProfileCreate(BaseModel):
    """Profile fields supplied at account creation"""
    email: Optional[EmailStr] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None

class ProfileUpdate(BaseModel):
    """Editable profile fields; score fields are never editable"""
    display_name: Optional[str] = None
    bio: Optional[str] = Field(default=None, max_length=500)
    photo_url: Optional[str] = None

class UserProfileResponse(BaseModel):
    """User score profile"""
    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    bio: Optional[str] = None
    points: int = 0
    events_attended: int = 0
    badges: List[str] = []
    created_at: Optional[datetime] = None

class LeaderboardEntry(BaseModel):
    """Ranked leaderboard row"""
    rank: int
    user_id: str
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    points: int
    events_attended: int
    badges: List[str] = []
