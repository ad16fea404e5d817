"""
Comment schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=2000)

class CommentResponse(BaseModel):
    id: str
    event_id: str
    text: str
    created_at: Optional[datetime] = None
    author_id: str
    author_name: str = "Anonymous"
    author_photo_url: Optional[str] = None
