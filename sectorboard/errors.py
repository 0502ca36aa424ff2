"""Error taxonomy shared by services and routers."""
from __future__ import annotations


class SectorBoardError(Exception):
    """Base class for application errors."""


class ConfigError(SectorBoardError):
    """Required configuration is missing or invalid. Fatal at startup."""


class AuthError(SectorBoardError):
    """Missing or invalid session, missing profile, or insufficient role.

    Always resolved by clearing client auth state, never by retrying.
    """


class QueryError(SectorBoardError):
    """A read against the backend failed."""


class MutationError(SectorBoardError):
    """An insert, update or delete against the backend failed."""


class NotFoundError(MutationError):
    """The targeted row does not exist under the given parent."""


class SubscriptionError(SectorBoardError):
    """A change-notification subscription could not be established."""


class FunctionCallError(SectorBoardError):
    """A serverless endpoint returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
