"""
User profiles and the points leaderboard
"""

from typing import List

from app.core.exceptions import UserProfileMissingError
from app.schemas.user import LeaderboardEntry, ProfileCreate, ProfileUpdate, UserProfileResponse

class UserService:

    def __init__(self, store):
        self.store = store

    def create_profile(self, user_id: str, data: ProfileCreate) -> UserProfileResponse:
        """Create a zero-score profile; returns the existing one if present"""
        return self.store.create_profile(user_id, data)

    def get_profile(self, user_id: str) -> UserProfileResponse:
        profile = self.store.get_profile(user_id)
        if profile is None:
            raise UserProfileMissingError(user_id)
        return profile

    def update_profile(self, user_id: str, data: ProfileUpdate) -> UserProfileResponse:
        profile = self.store.update_profile(user_id, data)
        if profile is None:
            raise UserProfileMissingError(user_id)
        return profile

    def leaderboard(self, limit: int = 50) -> List[LeaderboardEntry]:
        """Profiles by points descending; equal points are ordered by user id"""
        profiles = self.store.list_profiles_ranked(limit)
        return [
            LeaderboardEntry(
                rank=rank,
                user_id=p.id,
                display_name=p.display_name,
                photo_url=p.photo_url,
                points=p.points,
                events_attended=p.events_attended,
                badges=p.badges,
            )
            for rank, p in enumerate(profiles, start=1)
        ]
