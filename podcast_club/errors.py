"""Domain errors.

Services raise these with a human readable message. The API layer turns
them into ``{"message": ...}`` responses using ``status_code``.
"""


class ClubError(Exception):
    """Base class for expected, user-facing failures"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ClubError):
    """Malformed or missing input"""

    status_code = 400


class InvalidState(ClubError):
    """Entity is in the wrong lifecycle state for the operation"""

    status_code = 400


class Unauthenticated(ClubError):
    status_code = 401


class Forbidden(ClubError):
    status_code = 403


class NotFound(ClubError):
    status_code = 404


class Conflict(ClubError):
    status_code = 409


class ServiceUnavailable(ClubError):
    status_code = 503


def require_confirmation(confirm_text, message: str) -> None:
    """Destructive operations must be confirmed by typing DELETE"""
    if str(confirm_text or "").strip() != "DELETE":
        raise ValidationError(message)
