"""Error taxonomy for game operations.

NotFound and InvalidOperation are surfaced to the caller as-is. Retryable
wraps transient store failures; every mutating operation is idempotent or
gated by a conditional write, so the caller may repeat the whole request.
Conflicts (duplicate guess, lost completion race) are not errors at all.
"""

from typing import Any, Optional


class GameError(Exception):
    """Base for all errors raised by the game services."""

    code = 'game_error'
    http_status = 500

    def __init__(self, message: str, *, code: Optional[str] = None,
                 http_status: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if http_status:
            self.http_status = http_status
        self.details = details

    def to_dict(self) -> dict:
        return {
            'code': self.code,
            'message': self.message,
            'details': self.details if self.details is not None else {},
            # Older clients read "error"
            'error': self.message,
        }


class NotFound(GameError):
    code = 'not_found'
    http_status = 404


class InvalidOperation(GameError):
    code = 'invalid_operation'
    http_status = 400


class ValidationFailed(GameError):
    code = 'validation_failed'
    http_status = 400


class Retryable(GameError):
    code = 'retryable'
    http_status = 503
