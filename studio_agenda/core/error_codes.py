from typing import Final


class ErrorCode:
    VALIDATION_ERROR: Final = "VALIDATION_ERROR"
    NOT_FOUND: Final = "NOT_FOUND"
    SERVICE_TYPE_NOT_FOUND: Final = "SERVICE_TYPE_NOT_FOUND"
    BOOKING_NOT_FOUND: Final = "BOOKING_NOT_FOUND"
    SLOT_UNAVAILABLE: Final = "SLOT_UNAVAILABLE"
    INVALID_TRANSITION: Final = "INVALID_TRANSITION"
    EXTERNAL_SYNC_FAILURE: Final = "EXTERNAL_SYNC_FAILURE"
    CONFLICT: Final = "CONFLICT"
