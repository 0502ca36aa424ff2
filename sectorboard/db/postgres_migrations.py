"""Postgres schema creation plus change-notification triggers.

The trigger publishes one JSON payload per row change on the channel the
change listener subscribes to.
"""
from __future__ import annotations

import logging

import asyncpg

from sectorboard import config

logger = logging.getLogger("sectorboard.db")

SCHEMA_VERSION = 3

_TABLES = """
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS sectors (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT now()::text
);

CREATE TABLE IF NOT EXISTS subsectors (
    id          TEXT PRIMARY KEY,
    sector_id   TEXT NOT NULL REFERENCES sectors(id),
    name        TEXT NOT NULL,
    description TEXT,
    created_at  TEXT NOT NULL DEFAULT now()::text
);

CREATE TABLE IF NOT EXISTS profiles (
    id           TEXT PRIMARY KEY,
    email        TEXT NOT NULL,
    full_name    TEXT DEFAULT '',
    avatar_url   TEXT,
    role         TEXT NOT NULL DEFAULT 'collaborator',
    sector_id    TEXT,
    subsector_id TEXT,
    is_approved  BOOLEAN NOT NULL DEFAULT FALSE,
    approved_by  TEXT,
    approved_at  TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS profile_subsectors (
    profile_id   TEXT NOT NULL,
    subsector_id TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT now()::text,
    PRIMARY KEY (profile_id, subsector_id)
);

CREATE TABLE IF NOT EXISTS pending_users (
    id           TEXT PRIMARY KEY,
    email        TEXT NOT NULL,
    full_name    TEXT DEFAULT '',
    sector_id    TEXT,
    subsector_id TEXT,
    status       TEXT NOT NULL DEFAULT 'pending',
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS invitations (
    id           TEXT PRIMARY KEY,
    email        TEXT NOT NULL,
    token        TEXT NOT NULL UNIQUE,
    role         TEXT NOT NULL DEFAULT 'collaborator',
    sector_id    TEXT NOT NULL,
    subsector_id TEXT,
    invited_by   TEXT NOT NULL,
    expires_at   TEXT NOT NULL,
    used_at      TEXT,
    created_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS personal_lists (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    sector_id   TEXT NOT NULL,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS activities (
    id             TEXT PRIMARY KEY,
    title          TEXT NOT NULL,
    description    TEXT,
    status         TEXT NOT NULL DEFAULT 'pending',
    priority       TEXT NOT NULL DEFAULT 'medium',
    due_date       TEXT,
    estimated_time INTEGER,
    user_id        TEXT,
    created_by     TEXT NOT NULL,
    sector_id      TEXT NOT NULL,
    subsector_id   TEXT,
    list_id        TEXT,
    is_private     BOOLEAN NOT NULL DEFAULT FALSE,
    completed_at   TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activities_sector ON activities(sector_id, created_at DESC);

CREATE TABLE IF NOT EXISTS activity_assignees (
    activity_id TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT now()::text,
    PRIMARY KEY (activity_id, user_id)
);

CREATE TABLE IF NOT EXISTS subtasks (
    id              TEXT PRIMARY KEY,
    activity_id     TEXT NOT NULL,
    title           TEXT NOT NULL,
    description     TEXT,
    is_completed    BOOLEAN NOT NULL DEFAULT FALSE,
    order_index     INTEGER NOT NULL DEFAULT 0,
    checklist_group TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_subtasks_activity ON subtasks(activity_id, order_index);

CREATE TABLE IF NOT EXISTS activity_history (
    id                   TEXT PRIMARY KEY,
    activity_id          TEXT NOT NULL,
    action               TEXT NOT NULL,
    old_status           TEXT,
    new_status           TEXT,
    performed_by         TEXT NOT NULL,
    activity_title       TEXT DEFAULT '',
    activity_description TEXT,
    subsector_id         TEXT,
    sector_id            TEXT NOT NULL,
    details_json         TEXT DEFAULT '{}',
    created_at           TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_history_sector ON activity_history(sector_id, created_at DESC);

CREATE TABLE IF NOT EXISTS notifications (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    title               TEXT DEFAULT '',
    message             TEXT DEFAULT '',
    type                TEXT DEFAULT 'info',
    read                BOOLEAN NOT NULL DEFAULT FALSE,
    related_activity_id TEXT,
    created_at          TEXT NOT NULL
);
"""

_NOTIFY_FUNCTION = """
CREATE OR REPLACE FUNCTION sectorboard_notify_change() RETURNS trigger AS $$
DECLARE
    rec RECORD;
    sector TEXT;
BEGIN
    IF TG_OP = 'DELETE' THEN
        rec := OLD;
    ELSE
        rec := NEW;
    END IF;

    IF TG_TABLE_NAME = 'subtasks' THEN
        SELECT a.sector_id INTO sector FROM activities a WHERE a.id = rec.activity_id;
    ELSE
        sector := rec.sector_id;
    END IF;

    PERFORM pg_notify(
        TG_ARGV[0],
        json_build_object(
            'table', TG_TABLE_NAME,
            'type', TG_OP,
            'id', rec.id,
            'sector_id', sector
        )::text
    );
    RETURN NULL;
END;
$$ LANGUAGE plpgsql;
"""

_WATCHED_TABLES = ("activities", "subtasks", "personal_lists", "pending_users")


async def run_migrations(pool: asyncpg.Pool) -> None:
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(_TABLES)
            await conn.execute(_NOTIFY_FUNCTION)
            for table in _WATCHED_TABLES:
                trigger = f"{table}_sectorboard_notify"
                await conn.execute(f"DROP TRIGGER IF EXISTS {trigger} ON {table}")
                await conn.execute(
                    f"CREATE TRIGGER {trigger} AFTER INSERT OR UPDATE OR DELETE ON {table} "
                    f"FOR EACH ROW EXECUTE FUNCTION sectorboard_notify_change('{config.CHANGE_CHANNEL}')"
                )
            current = await conn.fetchval("SELECT MAX(version) FROM schema_version") or 0
            if current < SCHEMA_VERSION:
                await conn.execute("INSERT INTO schema_version (version) VALUES ($1)", SCHEMA_VERSION)
                logger.info("Postgres schema migrated to version %s (was %s)", SCHEMA_VERSION, current)
