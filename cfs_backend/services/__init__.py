"""
Service layer: contest lifecycle rules and the current-user profile.
Services validate and authorize; all persistence goes through the repository facades.
"""
from .contest_service import ContestService, allowed_transitions
from .profile_service import ProfileService

__all__ = [
    "ContestService",
    "ProfileService",
    "allowed_transitions",
]
