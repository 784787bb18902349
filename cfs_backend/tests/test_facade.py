"""
Tests for the repository facades: sticky fallback on store outage, write refusal, error mapping.
"""
from __future__ import annotations

import pytest

from cfs_backend.errors import InternalError, ServiceUnavailable, StoreError, StoreUnavailableError
from cfs_backend.persistence import (
    ContestFilter,
    ContestRepository,
    FallbackContestStore,
    StoreStatus,
    UserChanges,
    UserRepository,
)
from cfs_backend.persistence.fallback import build_contests
from cfs_backend.services import ContestService
from cfs_backend.validation import validate_create, validate_update


class BrokenStore:
    """Store whose every call raises the configured error, counting calls."""

    def __init__(self, error: Exception) -> None:
        self.error = error
        self.calls = 0

    def _fail(self, *args, **kwargs):
        self.calls += 1
        raise self.error

    list_contests = get_contest = create_contest = update_contest = delete_contest = _fail
    list_sports = get_sport = get_user = update_user = _fail


class CountingStore(FallbackContestStore):
    """Working in-memory store that records calls."""

    def __init__(self) -> None:
        super().__init__()
        self.calls = 0

    def list_contests(self, flt):
        self.calls += 1
        return super().list_contests(flt)


def test_reads_use_primary_when_healthy():
    primary = CountingStore()
    repo = ContestRepository(primary)
    page = repo.list_contests(ContestFilter(limit=2))
    assert primary.calls == 1
    assert page.from_fallback is False
    assert page.total == 5
    assert page.pagination.total_pages == 3
    assert page.pagination.has_next is True
    assert page.pagination.has_prev is False


def test_unavailable_store_switches_reads_to_fallback_for_good():
    primary = BrokenStore(StoreUnavailableError("connection refused"))
    status = StoreStatus()
    repo = ContestRepository(primary, status=status)

    page = repo.list_contests(ContestFilter())
    assert page.from_fallback is True
    assert status.unavailable
    assert [c.id for c in page.items] == [c.id for c in build_contests()]

    repo.get_by_id("contest_1")
    repo.list_sports()
    assert primary.calls == 1


def test_status_is_shared_across_repositories():
    status = StoreStatus()
    contests = ContestRepository(BrokenStore(StoreUnavailableError("down")), status=status)
    users_primary = BrokenStore(StoreUnavailableError("down"))
    users = UserRepository(users_primary, status=status)

    contests.list_sports()
    user = users.get_user("user_1")
    assert user.name == "Test User"
    assert users_primary.calls == 0


def test_writes_refused_after_outage():
    primary = BrokenStore(StoreUnavailableError("down"))
    repo = ContestRepository(primary)
    repo.list_contests(ContestFilter())
    contest = build_contests()[2]
    with pytest.raises(ServiceUnavailable):
        repo.create(contest)
    with pytest.raises(ServiceUnavailable):
        repo.update(contest.id, {"name": "x"})
    with pytest.raises(ServiceUnavailable):
        repo.delete(contest.id)
    assert primary.calls == 1


def test_write_hitting_outage_marks_store_down():
    primary = BrokenStore(StoreUnavailableError("down"))
    status = StoreStatus()
    repo = UserRepository(primary, status=status)
    with pytest.raises(ServiceUnavailable):
        repo.update_user("user_1", UserChanges(user_fields={"name": "x"}))
    assert status.unavailable
    assert status.reason == "down"


def test_other_store_errors_are_internal_and_do_not_fall_back():
    primary = BrokenStore(StoreError("constraint failed"))
    status = StoreStatus()
    repo = ContestRepository(primary, status=status)
    with pytest.raises(InternalError):
        repo.list_contests(ContestFilter())
    with pytest.raises(InternalError):
        repo.create(build_contests()[0])
    assert not status.unavailable
    assert primary.calls == 2


def test_mark_unavailable_keeps_first_reason():
    status = StoreStatus()
    status.mark_unavailable("first")
    status.mark_unavailable("second")
    assert status.unavailable
    assert status.reason == "first"


def test_ensure_writable_only_after_outage():
    status = StoreStatus()
    repo = ContestRepository(CountingStore(), status=status)
    repo.ensure_writable("create contest")
    status.mark_unavailable("down")
    with pytest.raises(ServiceUnavailable):
        repo.ensure_writable("create contest")


def test_read_for_write_does_not_fall_back():
    primary = BrokenStore(StoreUnavailableError("down"))
    status = StoreStatus()
    repo = ContestRepository(primary, status=status)
    with pytest.raises(ServiceUnavailable):
        repo.get_by_id("contest_1", for_write=True)
    assert status.unavailable
    assert repo.get_by_id("contest_1").name == "Premier League Showdown"


def test_service_writes_during_outage_are_unavailable_not_rejected():
    """Sport and contest lookups on a write path never answer from fallback data."""
    service = ContestService(ContestRepository(BrokenStore(StoreUnavailableError("down"))))
    create = validate_create({
        "sportId": "mlb", "name": "Opening Day", "type": "DAILY", "entryFee": 5,
        "prizePool": 100, "rosterSize": 9, "startTime": "2030-04-01T17:00:00Z",
    }).value
    with pytest.raises(ServiceUnavailable):
        service.create_draft(create, "u1")
    with pytest.raises(ServiceUnavailable):
        service.update("contest_999", validate_update({"name": "x"}).value, "u1", ())
    with pytest.raises(ServiceUnavailable):
        service.transition("contest_999", "ACTIVE", "u1", ())
    with pytest.raises(ServiceUnavailable):
        service.delete("contest_999", "u1", ())


def test_first_write_hitting_outage_is_unavailable():
    primary = BrokenStore(StoreUnavailableError("down"))
    status = StoreStatus()
    service = ContestService(ContestRepository(primary, status=status))
    with pytest.raises(ServiceUnavailable):
        service.delete("contest_3", "user_1", ())
    assert status.unavailable
    assert primary.calls == 1
