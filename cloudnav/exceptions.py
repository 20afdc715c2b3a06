"""
Errors and result values shared across CloudNav.

Conditions the caller is expected to branch on routinely (a cache miss, a
rejected push) are plain result values; exceptions are reserved for the
credential gate and for the collaborator clients.
"""
from enum import Enum


class CloudNavError(Exception):
    """Base class for CloudNav errors."""
    pass


class AuthRequiredError(CloudNavError):
    """A mutation was attempted without a credential; nothing was changed."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class UnauthorizedError(CloudNavError):
    """The remote side rejected the supplied credential."""
    pass


class NetworkFailureError(CloudNavError):
    """A request could not be completed."""
    pass


class PushOutcome(str, Enum):
    """Result of an authenticated full-snapshot replace."""
    OK = "ok"
    UNAUTHORIZED = "unauthorized"
    FAILURE = "failure"
