"""
Journal error kinds raised by the lifecycle engine.

The engine never maps these to transport codes itself; the API layer does
that in one place (see ``app.api.routes.to_http_exception``).
"""
from typing import Optional


class JournalError(Exception):
    """Base class for every error the engine raises."""

    error_code = "journal.error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_detail(self) -> dict:
        return {
            "error_code": self.error_code,
            "message": self.message,
            "field": self.field,
        }


class ValidationFailed(JournalError):
    """Malformed, missing or out-of-range input for ``field``."""

    error_code = "journal.validation_failed"

    def __init__(self, field: Optional[str], message: Optional[str] = None):
        super().__init__(message or f"invalid value for {field}", field=field)


class NotFound(JournalError):
    error_code = "journal.not_found"


class Forbidden(JournalError):
    error_code = "journal.forbidden"


class InvalidState(JournalError):
    """Operation is not legal in the entity's current status."""

    error_code = "journal.invalid_state"


class AlreadyClosed(InvalidState):
    error_code = "journal.already_closed"
