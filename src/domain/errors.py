"""Error taxonomy for rating replay operations."""

from __future__ import annotations


class RatingError(Exception):
    """Base class for every error raised by the rating core."""


class ValidationError(RatingError, ValueError):
    """Input rejected before any rating computation (never retried)."""


class OrderingConflict(RatingError):
    """Two matches share the same (date, time, created_at) ordering key."""

    def __init__(self, first_match_id: str, second_match_id: str, key: tuple[object, ...]) -> None:
        self.first_match_id = first_match_id
        self.second_match_id = second_match_id
        self.key = key
        super().__init__(
            f"matches {first_match_id} and {second_match_id} share ordering key {key!r}; "
            "repair created_at on one of them before replaying"
        )


class PersistenceError(RatingError):
    """A read or write against the rating store failed."""


class ConfigurationError(RatingError, ValueError):
    """Missing or invalid connection/config parameters."""


class GroupBusyError(RatingError):
    """Timed out waiting for another replay-affecting operation on the same group."""

    def __init__(self, group_id: str, timeout_seconds: float) -> None:
        self.group_id = group_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"group_id={group_id} is locked by another rating operation "
            f"(waited {timeout_seconds:g}s)"
        )


__all__ = [
    "ConfigurationError",
    "GroupBusyError",
    "OrderingConflict",
    "PersistenceError",
    "RatingError",
    "ValidationError",
]
