"""
SQLite store adapters for contests, sports and users.
No business logic, only read/write operations. Errors surface as StoreError /
StoreUnavailableError via Database.session().
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from enum import Enum
from typing import Any

from cfs_backend.models import Contest, Sport, User, UserProfile

from .db import Database, utc_now_iso
from .store import ContestFilter, UserChanges


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _parse_optional_datetime(s: str | None) -> datetime | None:
    return _parse_datetime(s) if s else None


def _to_column(value: Any) -> Any:
    """Python value -> SQLite column value."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, dict):
        return json.dumps(value)
    return value


# ---------- Row mapping ----------

_SPORT_COLS = (
    "s.id AS sport__id, s.name AS sport__name, s.slug AS sport__slug, "
    "s.display_name AS sport__display_name, s.is_active AS sport__is_active, "
    "s.roster_size AS sport__roster_size, s.salary_cap AS sport__salary_cap, "
    "s.scoring_rules AS sport__scoring_rules, s.created_at AS sport__created_at, "
    "s.updated_at AS sport__updated_at"
)

_CONTEST_COLS = (
    "c.id, c.sport_id, c.creator_id, c.name, c.description, c.type, c.status, c.entry_fee, "
    "c.max_entries, c.current_entries, c.prize_pool, c.roster_size, c.salary_cap, c.scoring_rules, "
    "c.start_time, c.end_time, c.lock_time, c.is_private, c.invite_code, c.created_at, c.updated_at"
)

_CONTEST_FROM = "FROM contests c LEFT JOIN sports s ON s.id = c.sport_id"

# Columns a contest update may touch (keys of ContestUpdate.changes())
_UPDATABLE_CONTEST_COLUMNS = frozenset({
    "sport_id", "name", "description", "type", "status", "entry_fee", "prize_pool",
    "roster_size", "max_entries", "salary_cap", "scoring_rules", "start_time",
    "end_time", "lock_time", "is_private", "invite_code",
})


def _row_to_sport(r: dict[str, Any], prefix: str = "") -> Sport:
    return Sport(
        id=r[f"{prefix}id"],
        name=r[f"{prefix}name"],
        slug=r[f"{prefix}slug"],
        display_name=r[f"{prefix}display_name"],
        is_active=bool(r[f"{prefix}is_active"]),
        roster_size=r[f"{prefix}roster_size"],
        salary_cap=r[f"{prefix}salary_cap"],
        scoring_rules=json.loads(r[f"{prefix}scoring_rules"] or "{}"),
        created_at=_parse_datetime(r[f"{prefix}created_at"]),
        updated_at=_parse_datetime(r[f"{prefix}updated_at"]),
    )


def _row_to_contest(row: sqlite3.Row) -> Contest:
    r = dict(row)
    sport = _row_to_sport(r, prefix="sport__") if r.get("sport__id") else None
    return Contest(
        id=r["id"],
        sport_id=r["sport_id"],
        sport=sport,
        creator_id=r["creator_id"],
        name=r["name"],
        description=r["description"],
        type=r["type"],
        status=r["status"],
        entry_fee=r["entry_fee"],
        max_entries=r["max_entries"],
        current_entries=r["current_entries"],
        prize_pool=r["prize_pool"],
        roster_size=r["roster_size"],
        salary_cap=r["salary_cap"],
        scoring_rules=json.loads(r["scoring_rules"] or "{}"),
        start_time=_parse_datetime(r["start_time"]),
        end_time=_parse_optional_datetime(r["end_time"]),
        lock_time=_parse_optional_datetime(r["lock_time"]),
        is_private=bool(r["is_private"]),
        invite_code=r["invite_code"],
        created_at=_parse_datetime(r["created_at"]),
        updated_at=_parse_datetime(r["updated_at"]),
    )


def _filter_clause(flt: ContestFilter) -> tuple[str, list[Any]]:
    """Filter -> WHERE clause: equality on sport slug/status/type, range on entry fee."""
    clauses: list[str] = []
    args: list[Any] = []
    if flt.sport is not None:
        clauses.append("s.slug = ?")
        args.append(flt.sport)
    if flt.status is not None:
        clauses.append("c.status = ?")
        args.append(flt.status)
    if flt.type is not None:
        clauses.append("c.type = ?")
        args.append(flt.type)
    if flt.min_entry_fee is not None:
        clauses.append("c.entry_fee >= ?")
        args.append(flt.min_entry_fee)
    if flt.max_entry_fee is not None:
        clauses.append("c.entry_fee <= ?")
        args.append(flt.max_entry_fee)
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, args


# ---------- SqliteContestStore ----------


class SqliteContestStore:
    """ContestStore over the SQLite database. Sports are included for contest embedding."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def list_contests(self, flt: ContestFilter) -> tuple[list[Contest], int]:
        where, args = _filter_clause(flt)
        with self._db.session() as conn:
            rows = conn.execute(
                f"SELECT {_CONTEST_COLS}, {_SPORT_COLS} {_CONTEST_FROM} {where} "
                "ORDER BY c.created_at DESC, c.rowid DESC LIMIT ? OFFSET ?",
                (*args, flt.limit, flt.skip),
            ).fetchall()
            total = conn.execute(f"SELECT COUNT(*) {_CONTEST_FROM} {where}", args).fetchone()[0]
        return [_row_to_contest(r) for r in rows], total

    def get_contest(self, contest_id: str) -> Contest | None:
        with self._db.session() as conn:
            row = conn.execute(
                f"SELECT {_CONTEST_COLS}, {_SPORT_COLS} {_CONTEST_FROM} WHERE c.id = ?",
                (contest_id,),
            ).fetchone()
        return _row_to_contest(row) if row is not None else None

    def create_contest(self, contest: Contest) -> Contest:
        with self._db.session() as conn:
            conn.execute(
                "INSERT INTO contests (id, sport_id, creator_id, name, description, type, status, entry_fee, "
                "max_entries, current_entries, prize_pool, roster_size, salary_cap, scoring_rules, start_time, "
                "end_time, lock_time, is_private, invite_code, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                tuple(_to_column(v) for v in (
                    contest.id, contest.sport_id, contest.creator_id, contest.name, contest.description,
                    contest.type, contest.status, contest.entry_fee, contest.max_entries,
                    contest.current_entries, contest.prize_pool, contest.roster_size, contest.salary_cap,
                    contest.scoring_rules, contest.start_time, contest.end_time, contest.lock_time,
                    contest.is_private, contest.invite_code, contest.created_at, contest.updated_at,
                )),
            )
            conn.commit()
        return self.get_contest(contest.id) or contest

    def update_contest(self, contest_id: str, changes: dict[str, Any]) -> Contest | None:
        unknown = set(changes) - _UPDATABLE_CONTEST_COLUMNS
        if unknown:
            raise ValueError(f"Not updatable: {sorted(unknown)}")
        cols = sorted(changes)
        assignments = ", ".join(f"{col} = ?" for col in cols + ["updated_at"])
        args = [_to_column(changes[col]) for col in cols] + [utc_now_iso(), contest_id]
        with self._db.session() as conn:
            cur = conn.execute(f"UPDATE contests SET {assignments} WHERE id = ?", args)
            conn.commit()
            if cur.rowcount == 0:
                return None
        return self.get_contest(contest_id)

    def delete_contest(self, contest_id: str) -> bool:
        with self._db.session() as conn:
            cur = conn.execute("DELETE FROM contests WHERE id = ?", (contest_id,))
            conn.commit()
            return cur.rowcount > 0

    def list_sports(self, active: bool | None = None) -> list[Sport]:
        where = ""
        args: tuple = ()
        if active is not None:
            where = "WHERE is_active = ?"
            args = (int(active),)
        with self._db.session() as conn:
            rows = conn.execute(f"SELECT * FROM sports {where} ORDER BY display_name", args).fetchall()
        return [_row_to_sport(dict(r)) for r in rows]

    def get_sport(self, sport_ref: str) -> Sport | None:
        """Look up by id or slug."""
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT * FROM sports WHERE id = ? OR slug = ? ORDER BY id = ? DESC LIMIT 1",
                (sport_ref, sport_ref, sport_ref),
            ).fetchone()
        return _row_to_sport(dict(row)) if row is not None else None


# ---------- SqliteUserStore ----------

_PROFILE_COLUMNS = frozenset({
    "first_name", "last_name", "date_of_birth", "phone", "country", "timezone",
    "language", "notifications",
})
_USER_COLUMNS = frozenset({"name", "username", "image"})


def _row_to_profile(r: dict[str, Any]) -> UserProfile:
    return UserProfile(
        user_id=r["user_id"],
        first_name=r["first_name"],
        last_name=r["last_name"],
        date_of_birth=r["date_of_birth"],
        phone=r["phone"],
        country=r["country"],
        timezone=r["timezone"],
        language=r["language"],
        notifications=json.loads(r["notifications"]),
        self_excluded=bool(r["self_excluded"]),
    )


class SqliteUserStore:
    """Users plus their optional profile. Profile writes are upserts."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def get_user(self, user_id: str) -> User | None:
        with self._db.session() as conn:
            row = conn.execute(
                "SELECT id, email, username, name, image, created_at, updated_at FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            prow = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
        r = dict(row)
        return User(
            id=r["id"],
            email=r["email"],
            username=r["username"],
            name=r["name"],
            image=r["image"],
            profile=_row_to_profile(dict(prow)) if prow is not None else None,
            created_at=_parse_datetime(r["created_at"]),
            updated_at=_parse_datetime(r["updated_at"]),
        )

    def update_user(self, user_id: str, changes: UserChanges) -> User | None:
        """
        Apply core user fields, then upsert the profile, in one transaction.
        Returns None when the user does not exist.
        """
        user_cols = sorted(set(changes.user_fields) & _USER_COLUMNS)
        profile_cols = sorted(set(changes.profile_fields) & _PROFILE_COLUMNS)
        with self._db.session() as conn:
            exists = conn.execute("SELECT 1 FROM users WHERE id = ?", (user_id,)).fetchone()
            if exists is None:
                return None
            if user_cols:
                assignments = ", ".join(f"{col} = ?" for col in user_cols + ["updated_at"])
                args = [_to_column(changes.user_fields[c]) for c in user_cols] + [utc_now_iso(), user_id]
                conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", args)
            if profile_cols:
                insert_cols = ["user_id"] + profile_cols
                values = [user_id] + [_to_column(changes.profile_fields[c]) for c in profile_cols]
                updates = ", ".join(f"{col} = excluded.{col}" for col in profile_cols)
                conn.execute(
                    f"INSERT INTO user_profiles ({', '.join(insert_cols)}) "
                    f"VALUES ({', '.join('?' for _ in insert_cols)}) "
                    f"ON CONFLICT(user_id) DO UPDATE SET {updates}",
                    values,
                )
            conn.commit()
        return self.get_user(user_id)
