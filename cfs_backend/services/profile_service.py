"""
Current-user profile: read, and update with profile upsert.
Notification preferences merge field by field over what is stored (or the defaults).
"""
from __future__ import annotations

from typing import Any

import structlog

from cfs_backend.errors import UserNotFound
from cfs_backend.models import DEFAULT_NOTIFICATIONS, User
from cfs_backend.persistence import UserChanges, UserRepository
from cfs_backend.validation import ProfileUpdate

logger = structlog.get_logger(__name__)

# ProfileFields attribute -> users column
_USER_FIELDS = ("name", "username", "image")
# ProfileFields attribute -> user_profiles column
_PROFILE_FIELDS = ("first_name", "last_name", "date_of_birth", "phone", "country", "timezone", "language")


def to_notification_preferences(value: Any) -> dict[str, bool]:
    """Stored value -> full preference map; anything missing or malformed takes the default."""
    if not isinstance(value, dict):
        return dict(DEFAULT_NOTIFICATIONS)
    return {
        key: value[key] if isinstance(value.get(key), bool) else default
        for key, default in DEFAULT_NOTIFICATIONS.items()
    }


def merge_notification_preferences(base: dict[str, bool], updates: dict[str, bool] | None) -> dict[str, bool]:
    if not updates:
        return dict(base)
    return {key: updates.get(key, base[key]) for key in base}


def _serialize(value: Any) -> Any:
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)  # HttpUrl


class ProfileService:
    def __init__(self, repository: UserRepository) -> None:
        self._repo = repository

    def get_me(self, user_id: str, for_write: bool = False) -> User:
        user = self._repo.get_user(user_id, for_write=for_write)
        if user is None:
            raise UserNotFound(f"User not found: {user_id}")
        return user

    def update_me(self, user_id: str, update: ProfileUpdate) -> User:
        """
        Core user fields (name, username, image) are updated in place; the profile is
        upserted with language and notifications always written so a new row is complete.
        """
        self._repo.ensure_writable("update user profile")
        existing = self.get_me(user_id, for_write=True)
        stored = existing.profile
        profile = update.profile

        base = to_notification_preferences(stored.notifications if stored is not None else None)
        overrides: dict[str, bool] = {}
        if profile is not None and profile.notifications is not None:
            overrides.update(profile.notifications.overrides())
        if update.preferences is not None:
            overrides.update(update.preferences.overrides())

        changes = UserChanges()
        if profile is not None:
            set_fields = profile.model_fields_set
            for name in _USER_FIELDS:
                if name in set_fields:
                    changes.user_fields[name] = _serialize(getattr(profile, name))
            for name in _PROFILE_FIELDS:
                if name in set_fields and not (name == "language" and profile.language is None):
                    changes.profile_fields[name] = _serialize(getattr(profile, name))

        if overrides or changes.profile_fields:
            changes.profile_fields.setdefault(
                "language", stored.language if stored is not None else "en",
            )
            changes.profile_fields["notifications"] = merge_notification_preferences(base, overrides)

        if not changes.user_fields and not changes.profile_fields:
            return existing
        updated = self._repo.update_user(user_id, changes)
        if updated is None:
            logger.error("User disappeared during profile update", user_id=user_id)
            raise UserNotFound(f"User not found: {user_id}")
        logger.debug(
            "Profile updated",
            user_id=user_id,
            user_fields=sorted(changes.user_fields),
            profile_fields=sorted(changes.profile_fields),
        )
        return updated
