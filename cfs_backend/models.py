"""
Data models for the contest backend.
Domain objects only; no persistence or API logic.

Contests move through a small lifecycle (draft → active → locked → settled, or
cancelled before settlement). Sports are read-mostly reference data.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Contest status (state machine) ----------
class ContestStatus(str, Enum):
    """Contest lifecycle: draft → active → locked → settled; cancelled from any non-terminal state."""
    DRAFT = "DRAFT"          # Created, editable, deletable
    ACTIVE = "ACTIVE"        # Accepting entries
    LOCKED = "LOCKED"        # Rosters frozen, games in progress
    SETTLED = "SETTLED"      # Prizes paid out (terminal)
    CANCELLED = "CANCELLED"  # Terminal


TERMINAL_STATUSES = frozenset({ContestStatus.SETTLED, ContestStatus.CANCELLED})


# ---------- Contest type ----------
class ContestType(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    SEASONAL = "SEASONAL"
    HEAD_TO_HEAD = "HEAD_TO_HEAD"
    TOURNAMENT = "TOURNAMENT"
    MULTIPLIER = "MULTIPLIER"


# ---------- Admin roles ----------
class AdminRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    CONTEST_ADMIN = "CONTEST_ADMIN"


# Roles allowed to mutate contests they did not create
ELEVATED_ROLES = frozenset({AdminRole.SUPER_ADMIN.value, AdminRole.CONTEST_ADMIN.value})


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


# ---------- Sport ----------
@dataclass
class Sport:
    """Reference data: one sport (slug is unique). Provides contest defaults."""
    id: str
    name: str
    slug: str
    display_name: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    roster_size: int = 0
    salary_cap: float | None = None
    scoring_rules: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "displayName": self.display_name,
            "isActive": self.is_active,
            "rosterSize": self.roster_size,
            "salaryCap": self.salary_cap,
            "scoringRules": dict(self.scoring_rules),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# ---------- Contest ----------
@dataclass
class Contest:
    """
    A scored competition instance.
    Money fields are non-negative; current_entries never exceeds max_entries when set;
    lock_time <= start_time <= end_time when present.
    """
    id: str
    sport_id: str
    creator_id: str | None
    name: str
    type: str  # ContestType value
    status: str  # ContestStatus value
    entry_fee: float
    prize_pool: float
    roster_size: int
    start_time: datetime
    created_at: datetime
    updated_at: datetime
    description: str | None = None
    max_entries: int | None = None
    current_entries: int = 0
    salary_cap: float | None = None
    scoring_rules: dict[str, Any] = field(default_factory=dict)
    end_time: datetime | None = None
    lock_time: datetime | None = None
    is_private: bool = False
    invite_code: str | None = None
    sport: Sport | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sportId": self.sport_id,
            "sport": self.sport.to_dict() if self.sport is not None else None,
            "creatorId": self.creator_id,
            "name": self.name,
            "description": self.description,
            "type": self.type,
            "status": self.status,
            "entryFee": self.entry_fee,
            "maxEntries": self.max_entries,
            "currentEntries": self.current_entries,
            "prizePool": self.prize_pool,
            "rosterSize": self.roster_size,
            "salaryCap": self.salary_cap,
            "scoringRules": dict(self.scoring_rules),
            "startTime": self.start_time.isoformat(),
            "endTime": _iso(self.end_time),
            "lockTime": _iso(self.lock_time),
            "isPrivate": self.is_private,
            "inviteCode": self.invite_code,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


# ---------- User profile ----------
DEFAULT_NOTIFICATIONS: dict[str, bool] = {"email": True, "push": True, "sms": False}


@dataclass
class UserProfile:
    """Optional profile record, merged into the user via upsert."""
    user_id: str
    language: str = "en"
    notifications: dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_NOTIFICATIONS))
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: str | None = None  # ISO date
    phone: str | None = None
    country: str | None = None
    timezone: str | None = None
    self_excluded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "userId": self.user_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "dateOfBirth": self.date_of_birth,
            "phone": self.phone,
            "country": self.country,
            "timezone": self.timezone,
            "language": self.language,
            "notifications": dict(self.notifications),
            "selfExcluded": self.self_excluded,
        }


# ---------- User ----------
@dataclass
class User:
    """
    A platform user. Identity is issued by an external provider (OAuth or wallet);
    KYC and wallet records are placeholders only.
    """
    id: str
    created_at: datetime
    updated_at: datetime
    email: str | None = None
    username: str | None = None
    name: str | None = None
    image: str | None = None
    profile: UserProfile | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "username": self.username,
            "name": self.name,
            "image": self.image,
            "profile": self.profile.to_dict() if self.profile is not None else None,
            "kycProfile": {"status": "PENDING"},
            "wallet": None,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
