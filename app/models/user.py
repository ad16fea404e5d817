"""
User score profile and badge models
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base

class UserProfile(Base):
    __tablename__ = "users"

    # Identity-provider uid
    id = Column(String(128), primary_key=True)
    email = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    photo_url = Column(String(1024), nullable=True)
    bio = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=0)
    events_attended = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    badges = relationship(
        "UserBadge",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserBadge.id",
    )

    @property
    def badge_names(self):
        return [badge.name for badge in self.badges]


class UserBadge(Base):
    __tablename__ = "user_badges"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(128), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    awarded_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    user = relationship("UserProfile", back_populates="badges")

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_badge"),
    )
