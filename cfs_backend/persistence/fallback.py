"""
Deterministic in-memory stand-in for the database.

Answers reads when the real store cannot be reached. Same filter fields and the same
pagination math as the SQLite adapter. Every timestamp is derived from one fixed
epoch so responses never depend on wall-clock time. Writes are refused.
"""
from __future__ import annotations

import copy
import re
from datetime import datetime, timedelta, timezone
from typing import Any, NoReturn

from cfs_backend.errors import StoreUnavailableError
from cfs_backend.models import Contest, Sport, User, UserProfile
from cfs_backend.persistence.store import ContestFilter, UserChanges

FALLBACK_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)
DEFAULT_ROSTER_SIZE = 8

# ---------- Static dataset ----------

_SPORTS: tuple[dict[str, Any], ...] = (
    {"id": "soccer", "name": "Soccer", "slug": "soccer", "display_name": "Soccer", "roster_size": 11, "salary_cap": 50000},
    {"id": "nba", "name": "NBA", "slug": "nba", "display_name": "NBA", "roster_size": 8, "salary_cap": 60000},
    {"id": "nfl", "name": "NFL", "slug": "nfl", "display_name": "NFL", "roster_size": 9, "salary_cap": 55000},
    {"id": "ufc", "name": "UFC", "slug": "ufc", "display_name": "UFC", "roster_size": 6, "salary_cap": 45000},
)

# Offsets are hours from FALLBACK_EPOCH; created is days before it (newest first).
_CONTESTS: tuple[dict[str, Any], ...] = (
    {
        "id": "contest_1", "name": "Premier League Showdown", "sport": "Soccer",
        "description": "Battle for the Premier League crown.",
        "type": "DAILY", "status": "ACTIVE", "entry_fee": 25, "prize_pool": 5000,
        "max_entries": 200, "current_entries": 156, "roster_size": 11, "salary_cap": 50000,
        "start": 2, "end": 5, "lock": 1.5, "created": 1,
    },
    {
        "id": "contest_2", "name": "NBA Championship", "sport": "Basketball",
        "description": "Playoff action for the NBA title.",
        "type": "TOURNAMENT", "status": "ACTIVE", "entry_fee": 50, "prize_pool": 10000,
        "max_entries": 100, "current_entries": 89, "roster_size": 8, "salary_cap": 60000,
        "start": 4, "end": 8, "lock": 3.5, "created": 2,
    },
    {
        "id": "contest_3", "name": "Sunday Gridiron Weekly", "sport": "NFL",
        "description": "Full Sunday slate, nine-man rosters.",
        "type": "WEEKLY", "status": "DRAFT", "entry_fee": 10, "prize_pool": 2500,
        "max_entries": 500, "current_entries": 0, "roster_size": 9, "salary_cap": 55000,
        "start": 72, "end": 84, "lock": 71, "created": 3,
    },
    {
        "id": "contest_4", "name": "Champions League Multiplier", "sport": "Soccer",
        "description": None,
        "type": "MULTIPLIER", "status": "LOCKED", "entry_fee": 0, "prize_pool": 100,
        "max_entries": None, "current_entries": 42, "roster_size": 11, "salary_cap": 50000,
        "start": -1, "end": 2, "lock": -1, "created": 4,
    },
    {
        "id": "contest_5", "name": "Fight Night Head-to-Head", "sport": "UFC",
        "description": "One opponent, winner takes the pot.",
        "type": "HEAD_TO_HEAD", "status": "SETTLED", "entry_fee": 5, "prize_pool": 9,
        "max_entries": 2, "current_entries": 2, "roster_size": 6, "salary_cap": 45000,
        "start": -48, "end": -44, "lock": -48, "created": 5,
    },
)

_USERS: tuple[dict[str, Any], ...] = (
    {"id": "user_1", "name": "Test User", "email": "test@example.com", "username": "testuser", "image": None},
)

FALLBACK_CREATOR_ID = _USERS[0]["id"]


def _slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")


def _at(hours: float) -> datetime:
    return FALLBACK_EPOCH + timedelta(hours=hours)


def build_sports() -> list[Sport]:
    return [
        Sport(
            id=s["id"],
            name=s["name"],
            slug=s["slug"],
            display_name=s["display_name"],
            is_active=True,
            roster_size=s["roster_size"],
            salary_cap=s["salary_cap"],
            scoring_rules={},
            created_at=FALLBACK_EPOCH,
            updated_at=FALLBACK_EPOCH,
        )
        for s in _SPORTS
    ]


def find_sport(ref: str, sports: list[Sport]) -> Sport | None:
    """Static sport matching ref by id, slug, name or display name (case-insensitive)."""
    key = ref.strip().lower()
    for sport in sports:
        if key in (sport.id.lower(), sport.slug.lower(), sport.name.lower(), sport.display_name.lower()):
            return sport
    return None


def resolve_sport(ref: str, sports: list[Sport] | None = None) -> Sport:
    """
    find_sport, except that unknown references get a synthesized record derived
    from the reference itself.
    """
    found = find_sport(ref, sports if sports is not None else build_sports())
    if found is not None:
        return found
    slug = _slugify(ref) or "unknown"
    return Sport(
        id=slug,
        name=ref,
        slug=slug,
        display_name=ref,
        is_active=True,
        roster_size=DEFAULT_ROSTER_SIZE,
        created_at=FALLBACK_EPOCH,
        updated_at=FALLBACK_EPOCH,
    )


def build_contests(sports: list[Sport] | None = None) -> list[Contest]:
    sports = sports if sports is not None else build_sports()
    contests: list[Contest] = []
    for c in _CONTESTS:
        sport = resolve_sport(c["sport"], sports)
        created = FALLBACK_EPOCH - timedelta(days=c["created"])
        contests.append(Contest(
            id=c["id"],
            sport_id=sport.id,
            sport=sport,
            creator_id=FALLBACK_CREATOR_ID,
            name=c["name"],
            description=c["description"],
            type=c["type"],
            status=c["status"],
            entry_fee=float(c["entry_fee"]),
            prize_pool=float(c["prize_pool"]),
            max_entries=c["max_entries"],
            current_entries=c["current_entries"],
            roster_size=c["roster_size"],
            salary_cap=float(c["salary_cap"]),
            scoring_rules={},
            start_time=_at(c["start"]),
            end_time=_at(c["end"]),
            lock_time=_at(c["lock"]),
            is_private=False,
            invite_code=None,
            created_at=created,
            updated_at=created,
        ))
    return contests


def fallback_user(user_id: str) -> User:
    """Known mock user, or a bare synthesized one, both carrying a default profile."""
    record = next((u for u in _USERS if u["id"] == user_id), {"id": user_id})
    return User(
        id=user_id,
        email=record.get("email"),
        username=record.get("username"),
        name=record.get("name"),
        image=record.get("image"),
        profile=UserProfile(user_id=user_id),
        created_at=FALLBACK_EPOCH,
        updated_at=FALLBACK_EPOCH,
    )


# ---------- Stores ----------


def _read_only(*_: Any) -> NoReturn:
    raise StoreUnavailableError("Fallback dataset is read-only")


class FallbackContestStore:
    """ContestStore over the static dataset. Returned objects are copies."""

    def __init__(self, contests: list[Contest] | None = None, sports: list[Sport] | None = None) -> None:
        self._sports = sports if sports is not None else build_sports()
        self._contests = contests if contests is not None else build_contests(self._sports)

    def list_contests(self, flt: ContestFilter) -> tuple[list[Contest], int]:
        matched = [c for c in self._contests if flt.matches(c)]
        matched.sort(key=lambda c: c.created_at, reverse=True)
        window = matched[flt.skip: flt.skip + flt.limit]
        return copy.deepcopy(window), len(matched)

    def get_contest(self, contest_id: str) -> Contest | None:
        for contest in self._contests:
            if contest.id == contest_id:
                return copy.deepcopy(contest)
        return None

    def list_sports(self, active: bool | None = None) -> list[Sport]:
        sports = [s for s in self._sports if active is None or s.is_active == active]
        return copy.deepcopy(sorted(sports, key=lambda s: s.display_name))

    def get_sport(self, sport_ref: str) -> Sport | None:
        sport = find_sport(sport_ref, self._sports)
        return copy.deepcopy(sport) if sport is not None else None

    def create_contest(self, contest: Contest) -> Contest:
        _read_only(contest)

    def update_contest(self, contest_id: str, changes: dict[str, Any]) -> Contest | None:
        _read_only(contest_id, changes)

    def delete_contest(self, contest_id: str) -> bool:
        _read_only(contest_id)


class FallbackUserStore:
    """UserStore that synthesizes user shapes; never persists."""

    def get_user(self, user_id: str) -> User | None:
        return fallback_user(user_id)

    def update_user(self, user_id: str, changes: UserChanges) -> User | None:
        _read_only(user_id, changes)
