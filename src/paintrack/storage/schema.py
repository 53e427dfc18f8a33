"""DDL for the primary store, applied idempotently at startup."""

from __future__ import annotations

import logging

import asyncpg

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password TEXT NOT NULL,
        first_name TEXT,
        last_name TEXT,
        email TEXT,
        profile_created BOOLEAN NOT NULL DEFAULT false,
        medical_history JSONB NOT NULL DEFAULT '[]',
        pain_background TEXT,
        age INTEGER,
        gender TEXT,
        height TEXT,
        weight TEXT,
        allergies JSONB NOT NULL DEFAULT '[]',
        current_medications JSONB NOT NULL DEFAULT '[]',
        chronic_conditions JSONB NOT NULL DEFAULT '[]',
        activity_level TEXT,
        occupation TEXT,
        primary_doctor TEXT,
        preferred_resources JSONB NOT NULL DEFAULT '[]'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pain_entries (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        date TIMESTAMPTZ NOT NULL DEFAULT now(),
        intensity INTEGER NOT NULL CHECK (intensity BETWEEN 0 AND 10),
        locations JSONB NOT NULL,
        characteristics JSONB,
        triggers JSONB,
        notes TEXT,
        medication_taken BOOLEAN NOT NULL DEFAULT false,
        medications JSONB
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_pain_entries_user_date ON pain_entries (user_id, date DESC)",
    """
    CREATE TABLE IF NOT EXISTS medications (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id),
        name TEXT NOT NULL,
        dosage TEXT,
        frequency TEXT,
        time_of_day JSONB NOT NULL DEFAULT '[]',
        active BOOLEAN NOT NULL DEFAULT true
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS medication_doses (
        medication_id INTEGER NOT NULL REFERENCES medications(id),
        taken_on DATE NOT NULL,
        dose_index INTEGER NOT NULL,
        taken_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (medication_id, taken_on, dose_index)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS reminder_settings (
        user_id INTEGER PRIMARY KEY REFERENCES users(id),
        email_notifications BOOLEAN NOT NULL DEFAULT true,
        pain_log_reminders BOOLEAN NOT NULL DEFAULT true,
        medication_reminders BOOLEAN NOT NULL DEFAULT true,
        wellness_reminders BOOLEAN NOT NULL DEFAULT true,
        weekly_summary BOOLEAN NOT NULL DEFAULT true,
        reminder_frequency TEXT NOT NULL DEFAULT 'daily',
        preferred_time TEXT NOT NULL DEFAULT 'evening',
        notification_style TEXT NOT NULL DEFAULT 'gentle',
        last_updated TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_sessions (
        sid TEXT PRIMARY KEY,
        sess JSONB NOT NULL,
        expire TIMESTAMPTZ NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_user_sessions_expire ON user_sessions (expire)",
)


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create any missing tables and indexes."""
    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(statement)
    logger.info("Primary store schema ensured (%d statements)", len(SCHEMA_STATEMENTS))
