"""Schema setup for whichever backend the connection belongs to."""
from __future__ import annotations

import logging
from typing import Any

import aiosqlite
import asyncpg

from sectorboard.db import sqlite_migrations
from sectorboard.errors import ConfigError

logger = logging.getLogger("sectorboard.db")


async def run_migrations(db: Any) -> str:
    """Create or upgrade the SectorBoard tables; returns the backend kind migrated."""
    if isinstance(db, aiosqlite.Connection):
        await sqlite_migrations.run_migrations(db)
        return "sqlite"

    if isinstance(db, asyncpg.Pool):
        # Postgres also installs the change-notification triggers.
        from sectorboard.db import postgres_migrations

        await postgres_migrations.run_migrations(db)
        return "postgres"

    raise ConfigError(f"Cannot migrate unsupported connection type {type(db).__name__}")
