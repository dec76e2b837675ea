"""
zgames/exceptions.py
Domain exceptions for scoring and leaderboards.

Every exception carries a machine-readable code, the HTTP status the API
layer maps it to, and whether the score recorder may retry it.
"""
from typing import Any, Dict, Optional


class ZGamesException(Exception):
    """Base exception for the Z Games scoring backend"""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class InvalidInputError(ZGamesException):
    """
    Raised when the request shape is wrong.

    Examples:
    - deltas is not a list
    - mode is neither "team" nor "player"
    - unknown tournament status
    """
    status_code = 400
    code = "INVALID_INPUT"


class ScoreValidationError(ZGamesException):
    """Raised when a delta item is missing a required field or has a bad score."""
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        details = {"index": index} if index is not None else None
        super().__init__(message, details=details)


class NotFoundError(ZGamesException):
    """
    Raised when a tournament or game reference does not resolve.
    """
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        self.resource = resource
        self.identifier = identifier
        super().__init__(message)


class ConcurrencyConflictError(ZGamesException):
    """Raised when the tournament version moved under a scoring transaction."""
    status_code = 409
    code = "CONCURRENCY_CONFLICT"
    retryable = True

    def __init__(self, tournament_id: str, expected_version: int):
        self.tournament_id = tournament_id
        self.expected_version = expected_version
        super().__init__(
            f"Tournament {tournament_id} was modified by another process "
            f"(expected version {expected_version}). Please retry."
        )


class InternalScoringError(ZGamesException):
    """Post-write verification saw fewer rows than the batch inserted."""
    status_code = 500
    code = "INTERNAL_ERROR"


class NotificationError(ZGamesException):
    """Change notifier publish failed. Logged, never surfaced to callers."""
    code = "NOTIFICATION_ERROR"


class ScoreRecordingFailedError(ZGamesException):
    """Raised after the retry budget is exhausted. Wraps the last cause."""
    status_code = 503
    code = "SCORE_RECORDING_FAILED"

    def __init__(self, attempts: int, last_error: Exception):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Error recording game scores after {attempts} attempts: {last_error}",
            details={
                "attempts": attempts,
                "last_error_code": getattr(last_error, "code", type(last_error).__name__),
            }
        )
