"""Database connection factory.

Provides a singleton async connection to SQLite (local file or memory) or a
pooled connection to the hosted Postgres backend. Backend selection follows
the scheme of SECTORBOARD_BACKEND_URL.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import aiosqlite
import asyncpg

from sectorboard import config

logger = logging.getLogger("sectorboard.db")

DbConnection = Union[aiosqlite.Connection, asyncpg.Pool]

_connection: DbConnection | None = None


async def open_sqlite(path: str) -> aiosqlite.Connection:
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    conn = await aiosqlite.connect(path)
    conn.row_factory = aiosqlite.Row
    if path != ":memory:":
        await conn.execute("PRAGMA journal_mode=WAL")
    await conn.execute("PRAGMA foreign_keys=ON")
    await conn.execute("PRAGMA busy_timeout=5000")
    return conn


async def get_connection() -> DbConnection:
    """Return the singleton database connection/pool, creating it if needed."""
    global _connection
    if _connection is not None:
        return _connection

    if config.backend_kind() == "postgres":
        logger.info("Connecting to PostgreSQL backend")
        _connection = await asyncpg.create_pool(config.BACKEND_URL)
        return _connection

    path = config.sqlite_path()
    _connection = await open_sqlite(path)
    logger.info(f"Database connection established: {path}")
    return _connection


async def close_connection() -> None:
    """Close the database connection."""
    global _connection
    if _connection is not None:
        await _connection.close()
        _connection = None
        logger.info("Database connection closed")
