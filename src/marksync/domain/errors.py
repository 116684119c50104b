"""Failure taxonomy surfaced to callers of the command gateway."""

from __future__ import annotations


class CommandError(RuntimeError):
    """Base class for failed mutating commands."""


class UnauthorizedError(CommandError):
    """Raised when the store rejects the caller's identity."""


class RecordNotFoundError(CommandError):
    """Raised when a delete affected zero rows."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Bookmark not found: {record_id}")
        self.record_id = record_id


class InvalidCommandError(CommandError):
    """Raised when a command is rejected before reaching the store."""


class StoreUnavailableError(CommandError):
    """Raised on transport failures or server-side errors."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RefetchError(RuntimeError):
    """Raised when an authoritative refetch could not complete."""


class ChangeStreamError(RuntimeError):
    """Raised when the change-stream transport refuses a subscription."""
