"""
Domain exceptions for the leaderboard service.

Each exception carries an internal message (for logs) and a user_message
that is safe to hand back to API callers.
"""


class LeaderboardError(Exception):
    """Base exception for leaderboard-related errors."""

    def __init__(self, message: str, user_message: str | None = None) -> None:
        super().__init__(message)
        self.user_message = user_message or message


class AggregationInProgressError(LeaderboardError):
    """Raised when another aggregation run holds the run lock."""

    def __init__(self, lock_name: str) -> None:
        super().__init__(
            f"Aggregation lock '{lock_name}' is held by another run",
            "A leaderboard calculation is already in progress",
        )


class AggregationTimeoutError(LeaderboardError):
    """Raised when a run exceeds its wall-clock budget."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(
            f"Aggregation run exceeded {timeout_seconds}s budget",
            "Failed to calculate leaderboards",
        )


class UnauthenticatedError(LeaderboardError):
    """Raised when a bearer credential is missing or rejected."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason, "User must be authenticated")


class EventNotFoundError(LeaderboardError):
    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event '{event_id}' not found", "Event not found")


class EventJoinError(LeaderboardError):
    """Raised when a caller cannot join an event (already joined, full, closed)."""


class InvalidStatusTransitionError(LeaderboardError):
    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            f"Cannot move event from {current} to {requested}",
            f"Event status cannot change from {current} to {requested}",
        )
