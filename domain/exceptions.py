"""Domain Errors"""


class BookingDomainError(Exception):
    """Base class for errors raised by the booking engine"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BookingDomainError, LookupError):
    """Referenced booking, tour, user, hotel or change request does not exist"""


class InvalidStateError(BookingDomainError, ValueError):
    """Operation is not allowed in the record's current state"""


class BookingValidationError(BookingDomainError, ValueError):
    """Input failed engine-side validation"""
