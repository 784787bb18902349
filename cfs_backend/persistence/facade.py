"""
Repository facades: the only callers of the stores.

Reads go to the primary store until it reports StoreUnavailableError; from then on
(for the rest of the process) they are answered by the fallback store. Writes never
fall back: they raise ServiceUnavailable. Any other store failure becomes InternalError.
"""
from __future__ import annotations

from typing import Any, Callable, TypeVar

import structlog

from cfs_backend.errors import InternalError, ServiceUnavailable, StoreError, StoreUnavailableError
from cfs_backend.models import Contest, Sport, User

from .fallback import FallbackContestStore, FallbackUserStore
from .store import ContestFilter, ContestPage, ContestStore, Pagination, UserChanges, UserStore

logger = structlog.get_logger(__name__)

R = TypeVar("R")


class StoreStatus:
    """
    Process-wide "primary store is down" flag, shared by all facades.
    Set on the first failure and never cleared: the process does not retry the store.
    """

    def __init__(self) -> None:
        self._unavailable = False
        self.reason: str | None = None

    @property
    def unavailable(self) -> bool:
        return self._unavailable

    def mark_unavailable(self, reason: str) -> None:
        if self._unavailable:
            return
        self._unavailable = True
        self.reason = reason
        logger.warning("Primary store unavailable; serving reads from fallback data", reason=reason)


class _FailoverRepository:
    def __init__(self, status: StoreStatus | None = None) -> None:
        self.status = status if status is not None else StoreStatus()

    @property
    def store_unavailable(self) -> bool:
        return self.status.unavailable

    def _read(self, op: str, primary: Callable[[], R], fallback: Callable[[], R]) -> tuple[R, bool]:
        """Return (result, served_from_fallback)."""
        if not self.status.unavailable:
            try:
                return primary(), False
            except StoreUnavailableError as exc:
                self.status.mark_unavailable(str(exc))
            except StoreError as exc:
                logger.error("Store error", op=op, exc_info=True)
                raise InternalError(f"Failed to {op}") from exc
        logger.debug("Serving from fallback data", op=op)
        return fallback(), True

    def ensure_writable(self, op: str = "write") -> None:
        """
        Raise ServiceUnavailable once the store is down. Write paths call this before any
        read they depend on, so fallback data never decides the outcome of a write.
        """
        if self.status.unavailable:
            raise ServiceUnavailable(f"Cannot {op}: data store unavailable")

    def _write(self, op: str, primary: Callable[[], R]) -> R:
        self.ensure_writable(op)
        try:
            return primary()
        except StoreUnavailableError as exc:
            self.status.mark_unavailable(str(exc))
            raise ServiceUnavailable(f"Cannot {op}: data store unavailable") from exc
        except StoreError as exc:
            logger.error("Store error", op=op, exc_info=True)
            raise InternalError(f"Failed to {op}") from exc


# ---------- ContestRepository ----------


class ContestRepository(_FailoverRepository):
    """Contest and sport access for the lifecycle controller."""

    def __init__(
        self,
        store: ContestStore,
        fallback: ContestStore | None = None,
        status: StoreStatus | None = None,
    ) -> None:
        super().__init__(status)
        self._store = store
        self._fallback = fallback if fallback is not None else FallbackContestStore()

    def list_contests(self, flt: ContestFilter) -> ContestPage:
        (items, total), from_fallback = self._read(
            "fetch contests",
            lambda: self._store.list_contests(flt),
            lambda: self._fallback.list_contests(flt),
        )
        return ContestPage(
            items=items,
            total=total,
            pagination=Pagination.build(flt.page, flt.limit, total),
            from_fallback=from_fallback,
        )

    def get_by_id(self, contest_id: str, for_write: bool = False) -> Contest | None:
        """for_write: the caller is about to write, so an outage is ServiceUnavailable, not fallback data."""
        if for_write:
            return self._write("fetch contest", lambda: self._store.get_contest(contest_id))
        contest, _ = self._read(
            "fetch contest",
            lambda: self._store.get_contest(contest_id),
            lambda: self._fallback.get_contest(contest_id),
        )
        return contest

    def create(self, contest: Contest) -> Contest:
        return self._write("create contest", lambda: self._store.create_contest(contest))

    def update(self, contest_id: str, changes: dict[str, Any]) -> Contest | None:
        return self._write("update contest", lambda: self._store.update_contest(contest_id, changes))

    def delete(self, contest_id: str) -> bool:
        return self._write("delete contest", lambda: self._store.delete_contest(contest_id))

    def list_sports(self, active: bool | None = None) -> list[Sport]:
        sports, _ = self._read(
            "fetch sports",
            lambda: self._store.list_sports(active),
            lambda: self._fallback.list_sports(active),
        )
        return sports

    def get_sport(self, sport_ref: str, for_write: bool = False) -> Sport | None:
        if for_write:
            return self._write("fetch sport", lambda: self._store.get_sport(sport_ref))
        sport, _ = self._read(
            "fetch sport",
            lambda: self._store.get_sport(sport_ref),
            lambda: self._fallback.get_sport(sport_ref),
        )
        return sport


# ---------- UserRepository ----------


class UserRepository(_FailoverRepository):
    """User/profile access. Reads fall back to synthesized user shapes."""

    def __init__(
        self,
        store: UserStore,
        fallback: UserStore | None = None,
        status: StoreStatus | None = None,
    ) -> None:
        super().__init__(status)
        self._store = store
        self._fallback = fallback if fallback is not None else FallbackUserStore()

    def get_user(self, user_id: str, for_write: bool = False) -> User | None:
        if for_write:
            return self._write("fetch user profile", lambda: self._store.get_user(user_id))
        user, _ = self._read(
            "fetch user profile",
            lambda: self._store.get_user(user_id),
            lambda: self._fallback.get_user(user_id),
        )
        return user

    def update_user(self, user_id: str, changes: UserChanges) -> User | None:
        return self._write("update user profile", lambda: self._store.update_user(user_id, changes))
