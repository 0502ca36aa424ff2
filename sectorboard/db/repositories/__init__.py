"""Repository package for database access."""

from .activities import SqliteActivityRepository
from .subtasks import SqliteSubtaskRepository
from .history import SqliteActivityHistoryRepository
from .profiles import SqliteProfileRepository, SqlitePendingUserRepository
from .memberships import SqliteAssigneeRepository, SqliteSubsectorMembershipRepository
from .lists import SqlitePersonalListRepository
from .inbox import SqliteNotificationRepository, SqliteInvitationRepository

__all__ = [
    "SqliteActivityRepository",
    "SqliteSubtaskRepository",
    "SqliteActivityHistoryRepository",
    "SqliteProfileRepository",
    "SqlitePendingUserRepository",
    "SqliteAssigneeRepository",
    "SqliteSubsectorMembershipRepository",
    "SqlitePersonalListRepository",
    "SqliteNotificationRepository",
    "SqliteInvitationRepository",
]
