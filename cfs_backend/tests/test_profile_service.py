"""
Tests for the profile service: user field updates, profile upsert, notification merge.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from cfs_backend.errors import ServiceUnavailable, UserNotFound
from cfs_backend.models import User
from cfs_backend.persistence import Database, SqliteUserStore, UserRepository
from cfs_backend.persistence.fallback import FallbackUserStore
from cfs_backend.services import ProfileService
from cfs_backend.services.profile_service import merge_notification_preferences, to_notification_preferences
from cfs_backend.validation import validate_profile_update


@pytest.fixture
def user_store(tmp_path):
    """Temporary DB seeded with one user and no profile."""
    database = Database(f"sqlite:///{tmp_path / 'profile_test.db'}")
    now = datetime(2030, 1, 1, tzinfo=timezone.utc)
    seeded = User(id="u1", email="u1@example.com", username="first", name="First User", created_at=now, updated_at=now)
    database.init(users=[seeded])
    yield SqliteUserStore(database)
    database.shutdown()


@pytest.fixture
def service(user_store):
    return ProfileService(UserRepository(user_store))


def _update(payload):
    result = validate_profile_update(payload)
    assert result.ok, result.details()
    return result.value


def test_preference_helpers():
    assert to_notification_preferences(None) == {"email": True, "push": True, "sms": False}
    assert to_notification_preferences({"email": False, "push": "yes"}) == {"email": False, "push": True, "sms": False}
    base = {"email": True, "push": True, "sms": False}
    assert merge_notification_preferences(base, {"sms": True}) == {"email": True, "push": True, "sms": True}
    assert merge_notification_preferences(base, None) == base


def test_get_me_without_profile(service):
    user = service.get_me("u1")
    assert user.name == "First User"
    assert user.profile is None
    body = user.to_dict()
    assert body["kycProfile"] == {"status": "PENDING"}
    assert body["wallet"] is None


def test_get_me_unknown_user(service):
    with pytest.raises(UserNotFound):
        service.get_me("ghost")


def test_first_update_creates_complete_profile(service):
    user = service.update_me("u1", _update({"profile": {"firstName": "Ada", "dateOfBirth": "1990-12-10"}}))
    assert user.profile is not None
    assert user.profile.first_name == "Ada"
    assert user.profile.date_of_birth == "1990-12-10"
    assert user.profile.language == "en"
    assert user.profile.notifications == {"email": True, "push": True, "sms": False}


def test_user_fields_update_in_place(service):
    user = service.update_me("u1", _update({"profile": {"name": "Renamed", "username": "renamed"}}))
    assert user.name == "Renamed"
    assert user.username == "renamed"
    assert user.profile is None


def test_preferences_merge_over_stored(service):
    service.update_me("u1", _update({"preferences": {"sms": True}}))
    user = service.update_me("u1", _update({"preferences": {"email": False}}))
    assert user.profile.notifications == {"email": False, "push": True, "sms": True}


def test_preferences_override_profile_notifications(service):
    user = service.update_me("u1", _update({
        "profile": {"notifications": {"push": False, "sms": True}},
        "preferences": {"sms": False},
    }))
    assert user.profile.notifications == {"email": True, "push": False, "sms": False}


def test_language_preserved_across_updates(service):
    service.update_me("u1", _update({"profile": {"language": "fr"}}))
    user = service.update_me("u1", _update({"profile": {"country": "FR"}}))
    assert user.profile.language == "fr"
    assert user.profile.country == "FR"


def test_update_unknown_user(service):
    with pytest.raises(UserNotFound):
        service.update_me("ghost", _update({"profile": {"name": "x"}}))


def test_update_refused_on_fallback_store():
    service = ProfileService(UserRepository(FallbackUserStore()))
    assert service.get_me("anyone").id == "anyone"
    with pytest.raises(ServiceUnavailable):
        service.update_me("anyone", _update({"profile": {"name": "x"}}))
