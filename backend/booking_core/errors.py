"""
Booking error taxonomy.

Every error carries an HTTP status and a short machine-readable code so the
API layer can map it without knowing the individual classes.
"""


class BookingError(Exception):
    status_code = 500
    code = "booking_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)


class ValidationError(BookingError):
    """Malformed request (time range, slot length, rule fields)."""
    status_code = 400
    code = "validation_error"


class NotFoundError(BookingError):
    """Unknown or inactive service, unknown booking."""
    status_code = 404
    code = "not_found"


class SlotNotAvailableError(BookingError):
    """Requested interval lies outside rule hours or on a holiday."""
    status_code = 422
    code = "slot_not_available"


class CapacityExceededError(BookingError):
    """Slot is full at the time of the check."""
    status_code = 409
    code = "capacity_exceeded"


class ConflictError(BookingError):
    """Another concurrent reservation committed first."""
    status_code = 409
    code = "conflict"


class BookingStateError(BookingError):
    """Status transition not allowed from the current booking state."""
    status_code = 409
    code = "invalid_transition"


class OperationTimeoutError(BookingError):
    """Operation exceeded its request-scoped timeout and was rolled back."""
    status_code = 504
    code = "timeout"


class StorageError(BookingError):
    """Transient storage backend fault."""
    status_code = 503
    code = "storage_unavailable"
