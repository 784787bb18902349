"""
SQLite schema for contest entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def sports_schema() -> str:
    """Reference data. slug is unique; contests point at id."""
    return """
    CREATE TABLE IF NOT EXISTS sports (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        roster_size INTEGER NOT NULL,
        salary_cap REAL,
        scoring_rules TEXT NOT NULL DEFAULT '{}',
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """


def contests_schema() -> str:
    """status: DRAFT | ACTIVE | LOCKED | SETTLED | CANCELLED. creator_id is an external identity."""
    return """
    CREATE TABLE IF NOT EXISTS contests (
        id TEXT PRIMARY KEY,
        sport_id TEXT NOT NULL,
        creator_id TEXT,
        name TEXT NOT NULL,
        description TEXT,
        type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'DRAFT',
        entry_fee REAL NOT NULL CHECK (entry_fee >= 0),
        max_entries INTEGER CHECK (max_entries IS NULL OR max_entries > 0),
        current_entries INTEGER NOT NULL DEFAULT 0 CHECK (current_entries >= 0),
        prize_pool REAL NOT NULL CHECK (prize_pool >= 0),
        roster_size INTEGER NOT NULL CHECK (roster_size > 0),
        salary_cap REAL CHECK (salary_cap IS NULL OR salary_cap >= 0),
        scoring_rules TEXT NOT NULL DEFAULT '{}',
        start_time TEXT NOT NULL,
        end_time TEXT,
        lock_time TEXT,
        is_private INTEGER NOT NULL DEFAULT 0,
        invite_code TEXT UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY (sport_id) REFERENCES sports(id)
    );
    CREATE INDEX IF NOT EXISTS ix_contests_sport ON contests(sport_id);
    CREATE INDEX IF NOT EXISTS ix_contests_status ON contests(status);
    CREATE INDEX IF NOT EXISTS ix_contests_created ON contests(created_at);
    """


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT UNIQUE,
        username TEXT UNIQUE,
        name TEXT,
        image TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    );
    """


def user_profiles_schema() -> str:
    """One profile per user, written by upsert. notifications is JSON {email, push, sms}."""
    return """
    CREATE TABLE IF NOT EXISTS user_profiles (
        user_id TEXT PRIMARY KEY,
        first_name TEXT,
        last_name TEXT,
        date_of_birth TEXT,
        phone TEXT,
        country TEXT,
        timezone TEXT,
        language TEXT NOT NULL DEFAULT 'en',
        notifications TEXT NOT NULL,
        self_excluded INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    """


def all_schema_sql() -> str:
    """Full schema in dependency order."""
    return "\n".join([
        sports_schema(),
        contests_schema(),
        users_schema(),
        user_profiles_schema(),
    ])
