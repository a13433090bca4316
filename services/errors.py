"""
Error taxonomy for the scheduling core.

Every failure a command can report is one of these classes. Each carries
a stable machine-readable ``code`` and the HTTP status the API maps it to;
the Flask error handler in ``app.py`` renders them as
``{"error": message, "code": code, ...}``.
"""


class SchedulingError(Exception):
    code = "scheduling_error"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message=None, **extra):
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        payload.update(self.extra)
        return payload


class ValidationError(SchedulingError):
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(SchedulingError):
    code = "authentication_required"
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(SchedulingError):
    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFoundError(SchedulingError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidStateError(SchedulingError):
    code = "invalid_state"
    status_code = 409
    default_message = "Operation not allowed in the current state"


class CapacityExceededError(SchedulingError):
    code = "capacity_exceeded"
    status_code = 409
    default_message = "Slot is fully booked"

    def __init__(self, slot_id, message=None):
        super().__init__(message, slot_id=slot_id, waitlist_available=True)
        self.slot_id = slot_id


class DuplicateBookingError(SchedulingError):
    code = "duplicate_booking"
    status_code = 409
    default_message = "You already have an active booking for this slot"


class DuplicateEntryError(SchedulingError):
    code = "duplicate_waitlist_entry"
    status_code = 409
    default_message = "You are already on the waitlist for this slot"


class ConcurrencyConflictError(SchedulingError):
    code = "concurrency_conflict"
    status_code = 409
    default_message = "The slot is busy, please retry"

    def __init__(self, message=None, **extra):
        extra.setdefault("retryable", True)
        super().__init__(message, **extra)
