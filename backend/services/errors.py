"""
Domain errors raised by the booking engine.
The routes translate them into HTTP responses.
"""


class BookingError(Exception):
    """Base exception for all booking engine errors."""

    status_code = 500
    default_message = 'Booking failed.'

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class InvalidInput(BookingError):
    """Raised for missing fields or a period outside 1..7."""

    status_code = 400
    default_message = 'Invalid booking data'


class PastSlot(BookingError):
    """Raised when the requested period has already ended."""

    status_code = 400
    default_message = 'Cannot book for past times'


class SlotTaken(BookingError):
    """Raised when the slot already has an approved booking."""

    status_code = 409
    default_message = 'This slot is already booked.'


class AlreadyProcessed(BookingError):
    """Raised when a request is no longer pending, usually because a concurrent approve/reject won."""

    status_code = 404
    default_message = 'Request not found or already processed'


class InternalError(BookingError):
    status_code = 500
    default_message = 'Database error'
