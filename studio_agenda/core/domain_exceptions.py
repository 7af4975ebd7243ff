"""Domain error taxonomy raised by the service layer."""

from studio_agenda.core.error_codes import ErrorCode


class DomainException(Exception):
    status_code = 400
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code or self.default_code
        self.message = message


class ValidationError(DomainException):
    """Malformed or missing input. Raised before anything is written."""

    status_code = 422
    default_code = ErrorCode.VALIDATION_ERROR


class NotFound(DomainException):
    status_code = 404
    default_code = ErrorCode.NOT_FOUND


class SlotUnavailable(DomainException):
    """The requested interval collides with an active booking."""

    status_code = 409
    default_code = ErrorCode.SLOT_UNAVAILABLE


class InvalidTransition(DomainException):
    status_code = 409
    default_code = ErrorCode.INVALID_TRANSITION


class Conflict(DomainException):
    """Catalog uniqueness violation (duplicate slug or blocked date)."""

    status_code = 409
    default_code = ErrorCode.CONFLICT


class ExternalSyncFailure(DomainException):
    """A calendar or notification call failed.

    Never propagated out of a lifecycle transition; collaborators raise it
    and the outbox turns it into a warning.
    """

    status_code = 502
    default_code = ErrorCode.EXTERNAL_SYNC_FAILURE
