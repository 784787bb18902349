"""
Store interfaces shared by the SQLite adapter and the in-memory fallback.
Both answer the same filter with the same pagination math, so the facade can
swap one for the other without changing response shape.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol

from cfs_backend.models import Contest, Sport, User
from cfs_backend.validation import DEFAULT_PAGE_SIZE, ContestListQuery


# ---------- Query ----------


@dataclass(frozen=True)
class ContestFilter:
    """AND of all supplied predicates. sport is a sport slug."""
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sport: str | None = None
    status: str | None = None
    type: str | None = None
    min_entry_fee: float | None = None
    max_entry_fee: float | None = None

    @classmethod
    def from_query(cls, query: ContestListQuery) -> ContestFilter:
        return cls(
            page=query.page,
            limit=query.limit,
            sport=query.sport,
            status=query.status.value if query.status is not None else None,
            type=query.type.value if query.type is not None else None,
            min_entry_fee=query.min_entry_fee,
            max_entry_fee=query.max_entry_fee,
        )

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit

    def matches(self, contest: Contest) -> bool:
        if self.sport is not None:
            slug = contest.sport.slug if contest.sport is not None else contest.sport_id
            if slug != self.sport:
                return False
        if self.status is not None and contest.status != self.status:
            return False
        if self.type is not None and contest.type != self.type:
            return False
        if self.min_entry_fee is not None and contest.entry_fee < self.min_entry_fee:
            return False
        if self.max_entry_fee is not None and contest.entry_fee > self.max_entry_fee:
            return False
        return True


# ---------- Results ----------


@dataclass(frozen=True)
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> Pagination:
        total_pages = math.ceil(total / limit)
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


@dataclass
class ContestPage:
    items: list[Contest]
    total: int
    pagination: Pagination
    from_fallback: bool = False


@dataclass
class UserChanges:
    """Core user fields plus the profile fields to upsert. Only set keys are written."""
    user_fields: dict[str, Any] = field(default_factory=dict)
    profile_fields: dict[str, Any] = field(default_factory=dict)


# ---------- Store protocols ----------


class ContestStore(Protocol):
    """Contest and sport access. Adapters raise StoreUnavailableError / StoreError, nothing else."""

    def list_contests(self, flt: ContestFilter) -> tuple[list[Contest], int]:
        ...

    def get_contest(self, contest_id: str) -> Contest | None:
        ...

    def create_contest(self, contest: Contest) -> Contest:
        ...

    def update_contest(self, contest_id: str, changes: dict[str, Any]) -> Contest | None:
        ...

    def delete_contest(self, contest_id: str) -> bool:
        ...

    def list_sports(self, active: bool | None = None) -> list[Sport]:
        ...

    def get_sport(self, sport_ref: str) -> Sport | None:
        ...


class UserStore(Protocol):
    def get_user(self, user_id: str) -> User | None:
        ...

    def update_user(self, user_id: str, changes: UserChanges) -> User | None:
        ...
