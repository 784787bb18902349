"""
Database handle and initialization.

A Database is created by the process entry point and injected into the stores.
Failing to open or initialize the file raises StoreUnavailableError; any other
sqlite error inside a session surfaces as StoreError.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import structlog

from cfs_backend.errors import StoreError, StoreUnavailableError
from cfs_backend.models import Sport, User

from .schema import all_schema_sql

logger = structlog.get_logger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_sqlite_path(url: str) -> Path:
    """
    Accepts sqlite:///relative.db, sqlite:////abs/path.db, file:./dev.db or a bare path.
    Any other scheme has no driver here and counts as an unavailable store.
    """
    if url.startswith("sqlite:///"):
        raw = url[len("sqlite:///"):]
    elif url.startswith("file:"):
        raw = url[len("file:"):]
    elif "://" in url:
        scheme = url.split("://", 1)[0]
        raise StoreUnavailableError(f"No database driver for scheme '{scheme}'")
    else:
        raw = url
    if not raw:
        raise StoreUnavailableError("Database URL has no path")
    return Path(raw)


class Database:
    """SQLite-backed store handle. One connection per session, closed on exit."""

    def __init__(self, url: str) -> None:
        self.url = url
        self._closed = False

    @property
    def path(self) -> Path:
        return resolve_sqlite_path(self.url)

    def connect(self) -> sqlite3.Connection:
        """Return a new connection. Caller must close it (or use session())."""
        if self._closed:
            raise StoreUnavailableError("Database has been shut down")
        path = self.path
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(path))
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailableError(f"Cannot open database at {path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def session(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; sqlite errors become StoreError, connection always closed."""
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as exc:
            conn.rollback()
            raise StoreError(f"Database error: {exc}") from exc
        finally:
            conn.close()

    def init(self, sports: list[Sport] | None = None, users: list[User] | None = None) -> None:
        """
        Create or ensure all tables exist, then seed reference sports (and optional
        demo users) without overwriting existing rows.
        """
        try:
            with self.session() as conn:
                conn.executescript(all_schema_sql())
                for sport in sports or []:
                    conn.execute(
                        "INSERT OR IGNORE INTO sports (id, name, slug, display_name, is_active, roster_size, "
                        "salary_cap, scoring_rules, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            sport.id, sport.name, sport.slug, sport.display_name, int(sport.is_active),
                            sport.roster_size, sport.salary_cap, json.dumps(sport.scoring_rules),
                            sport.created_at.isoformat(), sport.updated_at.isoformat(),
                        ),
                    )
                for user in users or []:
                    conn.execute(
                        "INSERT OR IGNORE INTO users (id, email, username, name, image, created_at, updated_at) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?)",
                        (
                            user.id, user.email, user.username, user.name, user.image,
                            user.created_at.isoformat(), user.updated_at.isoformat(),
                        ),
                    )
                conn.commit()
        except StoreUnavailableError:
            raise
        except StoreError as exc:
            raise StoreUnavailableError(f"Database initialization failed: {exc}") from exc
        logger.info("Database ready", path=str(self.path))

    def shutdown(self) -> None:
        """After shutdown every connect() raises StoreUnavailableError."""
        self._closed = True
        logger.info("Database shut down", url=self.url)
