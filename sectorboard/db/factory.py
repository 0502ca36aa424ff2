"""Repository factory to abstract DB backend (SQLite vs Postgres)."""
from __future__ import annotations

from typing import Any
import aiosqlite

from sectorboard.db.repositories.activities import SqliteActivityRepository
from sectorboard.db.repositories.subtasks import SqliteSubtaskRepository
from sectorboard.db.repositories.history import SqliteActivityHistoryRepository
from sectorboard.db.repositories.profiles import (
    SqliteProfileRepository,
    SqlitePendingUserRepository,
)
from sectorboard.db.repositories.memberships import (
    SqliteAssigneeRepository,
    SqliteSubsectorMembershipRepository,
)
from sectorboard.db.repositories.lists import SqlitePersonalListRepository
from sectorboard.db.repositories.inbox import (
    SqliteNotificationRepository,
    SqliteInvitationRepository,
)


def get_activity_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteActivityRepository(db)
    from sectorboard.db.repositories.postgres.activities import PostgresActivityRepository
    return PostgresActivityRepository(db)

def get_subtask_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteSubtaskRepository(db)
    from sectorboard.db.repositories.postgres.subtasks import PostgresSubtaskRepository
    return PostgresSubtaskRepository(db)

def get_history_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteActivityHistoryRepository(db)
    from sectorboard.db.repositories.postgres.history import PostgresActivityHistoryRepository
    return PostgresActivityHistoryRepository(db)

def get_profile_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteProfileRepository(db)
    from sectorboard.db.repositories.postgres.profiles import PostgresProfileRepository
    return PostgresProfileRepository(db)

def get_pending_user_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqlitePendingUserRepository(db)
    from sectorboard.db.repositories.postgres.profiles import PostgresPendingUserRepository
    return PostgresPendingUserRepository(db)

def get_assignee_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteAssigneeRepository(db)
    from sectorboard.db.repositories.postgres.memberships import PostgresAssigneeRepository
    return PostgresAssigneeRepository(db)

def get_subsector_membership_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteSubsectorMembershipRepository(db)
    from sectorboard.db.repositories.postgres.memberships import PostgresSubsectorMembershipRepository
    return PostgresSubsectorMembershipRepository(db)

def get_personal_list_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqlitePersonalListRepository(db)
    from sectorboard.db.repositories.postgres.lists import PostgresPersonalListRepository
    return PostgresPersonalListRepository(db)

def get_notification_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteNotificationRepository(db)
    from sectorboard.db.repositories.postgres.inbox import PostgresNotificationRepository
    return PostgresNotificationRepository(db)

def get_invitation_repository(db: Any):
    if isinstance(db, aiosqlite.Connection):
        return SqliteInvitationRepository(db)
    from sectorboard.db.repositories.postgres.inbox import PostgresInvitationRepository
    return PostgresInvitationRepository(db)
