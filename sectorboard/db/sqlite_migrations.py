"""Database schema creation and versioning.

All CREATE TABLE statements mirroring the hosted backend tables.
Uses IF NOT EXISTS for idempotent runs.
"""
from __future__ import annotations

import logging

import aiosqlite

logger = logging.getLogger("sectorboard.db")

SCHEMA_VERSION = 3

_TABLES = """
-- ── Schema version tracking ────────────────────────────────────────
CREATE TABLE IF NOT EXISTS schema_version (
    version   INTEGER NOT NULL,
    applied   TEXT NOT NULL DEFAULT (datetime('now'))
);

-- ── 1. Organization ────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS sectors (
    id          TEXT PRIMARY KEY,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS subsectors (
    id          TEXT PRIMARY KEY,
    sector_id   TEXT NOT NULL REFERENCES sectors(id),
    name        TEXT NOT NULL,
    description TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE INDEX IF NOT EXISTS idx_subsectors_sector ON subsectors(sector_id);

-- ── 2. Identity ────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS profiles (
    id           TEXT PRIMARY KEY,
    email        TEXT NOT NULL,
    full_name    TEXT DEFAULT '',
    avatar_url   TEXT,
    role         TEXT NOT NULL DEFAULT 'collaborator',
    sector_id    TEXT,
    subsector_id TEXT,
    is_approved  INTEGER NOT NULL DEFAULT 0,
    approved_by  TEXT,
    approved_at  TEXT,
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_profiles_sector ON profiles(sector_id);

CREATE TABLE IF NOT EXISTS profile_subsectors (
    profile_id   TEXT NOT NULL,
    subsector_id TEXT NOT NULL,
    created_at   TEXT NOT NULL DEFAULT (datetime('now')),
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

CREATE INDEX IF NOT EXISTS idx_pending_status ON pending_users(status, created_at DESC);

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

CREATE INDEX IF NOT EXISTS idx_invitations_sector ON invitations(sector_id, created_at DESC);

-- ── 3. Activities ──────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS personal_lists (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    sector_id   TEXT NOT NULL,
    name        TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_personal_lists_user ON personal_lists(user_id, created_at);

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
    is_private     INTEGER NOT NULL DEFAULT 0,
    completed_at   TEXT,
    created_at     TEXT NOT NULL,
    updated_at     TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_activities_sector ON activities(sector_id, created_at DESC);
CREATE INDEX IF NOT EXISTS idx_activities_subsector ON activities(subsector_id);
CREATE INDEX IF NOT EXISTS idx_activities_list ON activities(list_id);

CREATE TABLE IF NOT EXISTS activity_assignees (
    activity_id TEXT NOT NULL,
    user_id     TEXT NOT NULL,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    PRIMARY KEY (activity_id, user_id)
);

-- Subtasks keep no cascading FK: deleting an activity leaves them in place.
CREATE TABLE IF NOT EXISTS subtasks (
    id              TEXT PRIMARY KEY,
    activity_id     TEXT NOT NULL,
    title           TEXT NOT NULL,
    description     TEXT,
    is_completed    INTEGER NOT NULL DEFAULT 0,
    order_index     INTEGER NOT NULL DEFAULT 0,
    checklist_group TEXT,
    created_at      TEXT NOT NULL,
    updated_at      TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_subtasks_activity ON subtasks(activity_id, order_index);

-- Append-only
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
CREATE INDEX IF NOT EXISTS idx_history_activity ON activity_history(activity_id);

-- ── 4. Inbox ───────────────────────────────────────────────────────
CREATE TABLE IF NOT EXISTS notifications (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    title               TEXT DEFAULT '',
    message             TEXT DEFAULT '',
    type                TEXT DEFAULT 'info',
    read                INTEGER NOT NULL DEFAULT 0,
    related_activity_id TEXT,
    created_at          TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications(user_id, created_at DESC);
"""


async def _get_version(db: aiosqlite.Connection) -> int:
    async with db.execute("SELECT MAX(version) FROM schema_version") as cur:
        row = await cur.fetchone()
        return int(row[0]) if row and row[0] is not None else 0


async def run_migrations(db: aiosqlite.Connection) -> None:
    """Create all tables if they don't exist, then record the schema version."""
    await db.executescript(_TABLES)
    current = await _get_version(db)
    if current < SCHEMA_VERSION:
        await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        logger.info(f"SQLite schema migrated to version {SCHEMA_VERSION} (was {current})")
    await db.commit()
