"""
Tests for the contest service: status transitions, authorization, DRAFT-only deletion, merged-patch guards.
"""
from __future__ import annotations

import pytest

from cfs_backend.errors import Forbidden, InvalidState, InvalidTransition, NotFound, ValidationError
from cfs_backend.models import ContestStatus
from cfs_backend.persistence import ContestRepository, Database, SqliteContestStore
from cfs_backend.persistence.fallback import build_sports
from cfs_backend.services import ContestService, allowed_transitions
from cfs_backend.validation import validate_create, validate_list_query, validate_update


@pytest.fixture
def db(tmp_path):
    """Temporary DB with schema and seeded sports."""
    database = Database(f"sqlite:///{tmp_path / 'contest_test.db'}")
    database.init(sports=build_sports())
    yield database
    database.shutdown()


@pytest.fixture
def store(db):
    return SqliteContestStore(db)


@pytest.fixture
def service(store):
    return ContestService(ContestRepository(store))


def _create(service, creator="user-1", **overrides):
    payload = {
        "sportId": "nba",
        "name": "Tuesday Hoops",
        "type": "DAILY",
        "entryFee": 5,
        "prizePool": 500,
        "rosterSize": 8,
        "startTime": "2030-01-10T00:00:00Z",
        "lockTime": "2030-01-09T23:00:00Z",
        "maxEntries": 100,
    }
    payload.update(overrides)
    return service.create_draft(validate_create(payload).value, creator)


def _patch(**fields):
    return validate_update(fields).value


def test_create_draft_sets_owner_and_status(service):
    contest = _create(service)
    assert contest.status == ContestStatus.DRAFT.value
    assert contest.creator_id == "user-1"
    assert contest.current_entries == 0
    assert contest.sport is not None and contest.sport.slug == "nba"
    assert service.get(contest.id).name == "Tuesday Hoops"


def test_create_with_unknown_sport_rejected(service):
    with pytest.raises(ValidationError) as exc_info:
        _create(service, sportId="cricket")
    assert "sportId" in exc_info.value.details


def test_get_unknown_contest(service):
    with pytest.raises(NotFound):
        service.get("missing")


def test_full_lifecycle_to_settled(service):
    contest = _create(service)
    for target in (ContestStatus.ACTIVE, ContestStatus.LOCKED, ContestStatus.SETTLED):
        contest = service.transition(contest.id, target, "user-1", ())
        assert contest.status == target.value
    assert allowed_transitions(contest.status) == set()


def test_cancel_from_any_non_terminal(service):
    for steps in ((), (ContestStatus.ACTIVE,), (ContestStatus.ACTIVE, ContestStatus.LOCKED)):
        contest = _create(service)
        for step in steps:
            service.transition(contest.id, step, "user-1", ())
        cancelled = service.transition(contest.id, ContestStatus.CANCELLED, "user-1", ())
        assert cancelled.status == "CANCELLED"


def test_invalid_transitions_rejected(service):
    contest = _create(service)
    with pytest.raises(InvalidTransition):
        service.transition(contest.id, ContestStatus.SETTLED, "user-1", ())
    service.transition(contest.id, ContestStatus.CANCELLED, "user-1", ())
    with pytest.raises(InvalidTransition):
        service.transition(contest.id, ContestStatus.ACTIVE, "user-1", ())
    with pytest.raises(InvalidTransition):
        service.update(contest.id, _patch(status="DRAFT"), "user-1", ())


def test_non_owner_cannot_modify(service):
    contest = _create(service)
    with pytest.raises(Forbidden):
        service.update(contest.id, _patch(name="Hijacked"), "user-2", ())
    with pytest.raises(Forbidden):
        service.transition(contest.id, ContestStatus.ACTIVE, "user-2", ["USER"])
    assert service.get(contest.id).name == "Tuesday Hoops"


def test_admin_can_modify_any_contest(service):
    contest = _create(service)
    updated = service.update(contest.id, _patch(name="Admin edit"), "admin-1", ["CONTEST_ADMIN"])
    assert updated.name == "Admin edit"
    updated = service.update(contest.id, _patch(status="ACTIVE"), "root", ["SUPER_ADMIN"])
    assert updated.status == "ACTIVE"


def test_update_same_status_is_ignored(service, store):
    contest = _create(service)
    before = store.get_contest(contest.id)
    unchanged = service.update(contest.id, _patch(status="draft"), "user-1", ())
    assert unchanged.status == "DRAFT"
    assert store.get_contest(contest.id).updated_at == before.updated_at


def test_update_with_status_and_fields(service):
    contest = _create(service)
    updated = service.update(contest.id, _patch(status="ACTIVE", prizePool=750), "user-1", ())
    assert updated.status == "ACTIVE"
    assert updated.prize_pool == 750


def test_update_checks_merged_times(service):
    contest = _create(service)
    with pytest.raises(ValidationError) as exc_info:
        service.update(contest.id, _patch(lockTime="2030-01-11T00:00:00Z"), "user-1", ())
    assert exc_info.value.details["lockTime"][0]["rule"] == "before_start_time"
    with pytest.raises(ValidationError):
        service.update(contest.id, _patch(startTime="2030-01-09T00:00:00Z"), "user-1", ())


def test_update_max_entries_not_below_current(service, db):
    contest = _create(service)
    with db.session() as conn:
        conn.execute("UPDATE contests SET current_entries = 40 WHERE id = ?", (contest.id,))
        conn.commit()
    with pytest.raises(ValidationError) as exc_info:
        service.update(contest.id, _patch(maxEntries=10), "user-1", ())
    assert exc_info.value.details["maxEntries"][0]["rule"] == "gte_current_entries"
    assert service.update(contest.id, _patch(maxEntries=40), "user-1", ()).max_entries == 40


def test_update_can_clear_optional_field(service):
    contest = _create(service, description="Has text")
    updated = service.update(contest.id, _patch(description=None), "user-1", ())
    assert updated.description is None


def test_delete_draft_by_owner(service):
    contest = _create(service)
    service.delete(contest.id, "user-1", ())
    with pytest.raises(NotFound):
        service.get(contest.id)


def test_delete_non_draft_rejected_even_for_admin(service):
    contest = _create(service)
    service.transition(contest.id, ContestStatus.ACTIVE, "user-1", ())
    with pytest.raises(InvalidState):
        service.delete(contest.id, "root", ["SUPER_ADMIN"])


def test_delete_status_checked_before_ownership(service):
    contest = _create(service)
    service.transition(contest.id, ContestStatus.ACTIVE, "user-1", ())
    with pytest.raises(InvalidState):
        service.delete(contest.id, "user-2", ())


def test_delete_draft_by_stranger_forbidden(service):
    contest = _create(service)
    with pytest.raises(Forbidden):
        service.delete(contest.id, "user-2", ())
    assert service.get(contest.id).status == "DRAFT"


def test_list_filters_and_pagination(service):
    for i in range(3):
        _create(service, name=f"NBA {i}", entryFee=i * 10)
    _create(service, sportId="soccer", rosterSize=11, name="Soccer")
    page = service.list_contests(validate_list_query({"sport": "nba", "limit": "2"}).value)
    assert page.total == 3
    assert len(page.items) == 2
    assert page.items[0].name == "NBA 2"
    assert page.pagination.to_dict() == {
        "page": 1, "limit": 2, "total": 3, "totalPages": 2, "hasNext": True, "hasPrev": False,
    }
    page = service.list_contests(validate_list_query({"minEntryFee": "10", "maxEntryFee": "20"}).value)
    assert sorted(c.name for c in page.items) == ["NBA 1", "NBA 2"]


def test_list_sports_ordered(service):
    names = [s.display_name for s in service.list_sports(True)]
    assert names == sorted(names)
    assert service.list_sports(False) == []
