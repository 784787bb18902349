"""
Contest lifecycle: state machine, authorization, invariant guards.
Every check runs before the repository is asked to write; each successful
create/update/delete is exactly one repository write.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

import structlog

from cfs_backend.errors import Forbidden, InvalidState, InvalidTransition, NotFound, ValidationError
from cfs_backend.models import ELEVATED_ROLES, Contest, ContestStatus, Sport
from cfs_backend.persistence import ContestFilter, ContestPage, ContestRepository
from cfs_backend.validation import (
    ContestCreate,
    ContestListQuery,
    ContestUpdate,
    FieldIssue,
    issues_to_details,
    temporal_issues,
)

logger = structlog.get_logger(__name__)

# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[str, set[str]] = {
    ContestStatus.DRAFT.value: {ContestStatus.ACTIVE.value, ContestStatus.CANCELLED.value},
    ContestStatus.ACTIVE.value: {ContestStatus.LOCKED.value, ContestStatus.CANCELLED.value},
    ContestStatus.LOCKED.value: {ContestStatus.SETTLED.value, ContestStatus.CANCELLED.value},
    ContestStatus.SETTLED.value: set(),
    ContestStatus.CANCELLED.value: set(),
}


def allowed_transitions(current: str) -> set[str]:
    return set(_VALID_TRANSITIONS.get(current, set()))


def _status_value(status: ContestStatus | str) -> str:
    return status.value if isinstance(status, ContestStatus) else str(status)


def _reject(*issues: FieldIssue) -> ValidationError:
    return ValidationError(details=issues_to_details(list(issues)))


# ---------- ContestService ----------


class ContestService:
    """
    Domain logic for contests: creation in DRAFT, partial updates, status transitions,
    DRAFT-only deletion. Persistence is delegated to the ContestRepository facade.
    """

    def __init__(self, repository: ContestRepository) -> None:
        self._repo = repository

    # ---------- Reads ----------

    def list_contests(self, query: ContestListQuery) -> ContestPage:
        return self._repo.list_contests(ContestFilter.from_query(query))

    def get(self, contest_id: str, for_write: bool = False) -> Contest:
        contest = self._repo.get_by_id(contest_id, for_write=for_write)
        if contest is None:
            raise NotFound(f"Contest not found: {contest_id}")
        return contest

    def list_sports(self, active: bool | None = None) -> list[Sport]:
        return self._repo.list_sports(active)

    # ---------- Guards ----------

    def can_modify(self, contest: Contest, actor_id: str, actor_roles: Iterable[str]) -> bool:
        """Creator or elevated admin role."""
        if contest.creator_id is not None and contest.creator_id == actor_id:
            return True
        return bool(ELEVATED_ROLES & set(actor_roles))

    def assert_can_modify(self, contest: Contest, actor_id: str, actor_roles: Iterable[str]) -> None:
        if not self.can_modify(contest, actor_id, actor_roles):
            raise Forbidden(f"User {actor_id} may not modify contest {contest.id}")

    def assert_transition(self, current: str, target: str) -> None:
        allowed = allowed_transitions(current)
        if target not in allowed:
            raise InvalidTransition(
                f"Invalid transition: {current} -> {target}. Allowed from {current}: {sorted(allowed)}"
            )

    def _resolve_sport(self, sport_ref: str) -> Sport:
        sport = self._repo.get_sport(sport_ref, for_write=True)
        if sport is None:
            raise _reject(FieldIssue("sportId", "unknown_sport", f"Unknown sport: {sport_ref}"))
        return sport

    def _check_merged(self, contest: Contest, changes: dict[str, Any]) -> None:
        """The stored contest with the patch applied must still satisfy the contest invariants."""
        start = changes.get("start_time", contest.start_time)
        end = changes["end_time"] if "end_time" in changes else contest.end_time
        lock = changes["lock_time"] if "lock_time" in changes else contest.lock_time
        issues = temporal_issues(start, end, lock)
        max_entries = changes["max_entries"] if "max_entries" in changes else contest.max_entries
        if max_entries is not None and max_entries < contest.current_entries:
            issues.append(FieldIssue(
                "maxEntries", "gte_current_entries",
                f"maxEntries cannot be below current entries ({contest.current_entries})",
            ))
        if issues:
            raise _reject(*issues)

    # ---------- Writes ----------

    def create_draft(self, data: ContestCreate, creator_id: str) -> Contest:
        """New contest owned by creator_id, always DRAFT with no entries."""
        self._repo.ensure_writable("create contest")
        sport = self._resolve_sport(data.sport_id)
        now = datetime.now(timezone.utc)
        contest = Contest(
            id=str(uuid.uuid4()),
            sport_id=sport.id,
            sport=sport,
            creator_id=creator_id,
            name=data.name,
            description=data.description,
            type=data.type.value,
            status=ContestStatus.DRAFT.value,
            entry_fee=data.entry_fee,
            prize_pool=data.prize_pool,
            roster_size=data.roster_size,
            max_entries=data.max_entries,
            current_entries=0,
            salary_cap=data.salary_cap,
            scoring_rules=dict(data.scoring_rules),
            start_time=data.start_time,
            end_time=data.end_time,
            lock_time=data.lock_time,
            is_private=data.is_private,
            created_at=now,
            updated_at=now,
        )
        created = self._repo.create(contest)
        logger.info("Contest created", contest_id=created.id, creator_id=creator_id)
        return created

    def update(
        self,
        contest_id: str,
        patch: ContestUpdate,
        actor_id: str,
        actor_roles: Iterable[str],
    ) -> Contest:
        """
        Partial update. A status different from the current one is a transition and must
        be in the transition table; the same status is ignored.
        """
        self._repo.ensure_writable("update contest")
        contest = self.get(contest_id, for_write=True)
        self.assert_can_modify(contest, actor_id, actor_roles)
        changes = patch.changes()
        if "status" in changes:
            target = _status_value(changes.pop("status"))
            if target != contest.status:
                self.assert_transition(contest.status, target)
                changes["status"] = target
        if not changes:
            return contest
        if "sport_id" in changes:
            changes["sport_id"] = self._resolve_sport(changes["sport_id"]).id
        self._check_merged(contest, changes)
        updated = self._repo.update(contest_id, changes)
        if updated is None:
            raise NotFound(f"Contest not found: {contest_id}")
        logger.info("Contest updated", contest_id=contest_id, actor_id=actor_id, fields=sorted(changes))
        return updated

    def transition(
        self,
        contest_id: str,
        target_status: ContestStatus | str,
        actor_id: str,
        actor_roles: Iterable[str],
    ) -> Contest:
        self._repo.ensure_writable("update contest")
        contest = self.get(contest_id, for_write=True)
        self.assert_can_modify(contest, actor_id, actor_roles)
        target = _status_value(target_status)
        self.assert_transition(contest.status, target)
        updated = self._repo.update(contest_id, {"status": target})
        if updated is None:
            raise NotFound(f"Contest not found: {contest_id}")
        logger.info("Contest status changed", contest_id=contest_id, from_status=contest.status, to_status=target, actor_id=actor_id)
        return updated

    def delete(self, contest_id: str, actor_id: str, actor_roles: Iterable[str]) -> None:
        """Only DRAFT contests can be deleted, whoever asks; status is checked before rights."""
        self._repo.ensure_writable("delete contest")
        contest = self.get(contest_id, for_write=True)
        if contest.status != ContestStatus.DRAFT.value:
            raise InvalidState(f"Contest {contest_id} is {contest.status}; only DRAFT contests can be deleted")
        self.assert_can_modify(contest, actor_id, actor_roles)
        if not self._repo.delete(contest_id):
            raise NotFound(f"Contest not found: {contest_id}")
        logger.info("Contest deleted", contest_id=contest_id, actor_id=actor_id)
