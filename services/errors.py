class BookingError(Exception):
    """Base class for failures the booking engine reports to its caller."""

    status_code = 400
    code = "BOOKING_ERROR"

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        out = {"error": self.message, "code": self.code}
        if self.details:
            out["details"] = self.details
        return out


class NotFound(BookingError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationError(BookingError):
    status_code = 400
    code = "VALIDATION_ERROR"


class AdmissionError(BookingError):
    """The requested cell cannot take another reservation."""

    status_code = 409


class SlotFull(AdmissionError):
    code = "SLOT_FULL"


class Blocked(AdmissionError):
    code = "SLOT_BLOCKED"


class InvalidSlot(AdmissionError):
    # closed day or a time that is not on the package's grid
    status_code = 400
    code = "INVALID_SLOT"


class InvalidState(BookingError):
    status_code = 409
    code = "INVALID_STATE"


class AmountMismatch(BookingError):
    status_code = 400
    code = "AMOUNT_MISMATCH"


class DuplicateIdentifier(BookingError):
    status_code = 503
    code = "DUPLICATE_IDENTIFIER"


class ProviderError(BookingError):
    status_code = 502
    code = "PAYMENT_PROVIDER_ERROR"


class Unauthorized(BookingError):
    status_code = 401
    code = "UNAUTHORIZED"


class Forbidden(BookingError):
    status_code = 403
    code = "FORBIDDEN"


class Conflict(BookingError):
    status_code = 409
    code = "CONFLICT"
