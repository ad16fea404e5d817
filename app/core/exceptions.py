"""
Domain exceptions shared by services and routes
"""


class NotFoundError(Exception):
    """A record required by an operation does not exist"""

    error_code = "not_found"
    resource = "Resource"

    def __init__(self, identifier: str):
        super().__init__(f"{self.resource} not found: {identifier}")
        self.identifier = identifier


class EventNotFoundError(NotFoundError):
    error_code = "event_not_found"
    resource = "Event"


class UserProfileMissingError(NotFoundError):
    error_code = "user_profile_missing"
    resource = "User profile"


class AIServiceError(Exception):
    """The generative AI backend failed or is not configured"""

    error_code = "ai_unavailable"
