"""
Persistence layer for contest data.
Stores, the in-memory fallback and the facades that choose between them.
"""
from .db import Database
from .facade import ContestRepository, StoreStatus, UserRepository
from .fallback import FallbackContestStore, FallbackUserStore
from .repositories import SqliteContestStore, SqliteUserStore
from .store import ContestFilter, ContestPage, ContestStore, Pagination, UserChanges, UserStore

__all__ = [
    "Database",
    "ContestRepository",
    "UserRepository",
    "StoreStatus",
    "FallbackContestStore",
    "FallbackUserStore",
    "SqliteContestStore",
    "SqliteUserStore",
    "ContestFilter",
    "ContestPage",
    "ContestStore",
    "Pagination",
    "UserChanges",
    "UserStore",
]
