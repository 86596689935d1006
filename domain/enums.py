"""Domain Enums"""
from enum import Enum


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class ServiceStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class ChangeRequestStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class AmountPaidMode(str, Enum):
    FLAT = "FLAT"
    PERCENT = "PERCENT"


class Currency(str, Enum):
    GEL = "GEL"
    USD = "USD"
    EUR = "EUR"


class CarType(str, Enum):
    SEDAN = "SEDAN"
    MINIVAN = "MINIVAN"
    SUV = "SUV"
    BUS = "BUS"


class RoomType(str, Enum):
    single = "single"
    double = "double"
    triple = "triple"
    family = "family"


class NotificationType(str, Enum):
    BOOKING_CREATED = "BOOKING_CREATED"
    BOOKING_APPROVED = "BOOKING_APPROVED"
    BOOKING_REJECTED = "BOOKING_REJECTED"
    BOOKING_CANCELLED = "BOOKING_CANCELLED"
    BOOKING_CHANGE_REQUESTED = "BOOKING_CHANGE_REQUESTED"
    BOOKING_CHANGE_APPROVED = "BOOKING_CHANGE_APPROVED"
    BOOKING_CHANGE_REJECTED = "BOOKING_CHANGE_REJECTED"


class EmailLogStatus(str, Enum):
    SENT = "SENT"
    FAILED = "FAILED"
    FALLBACK_LOGGED = "FALLBACK_LOGGED"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    CUSTOMER = "CUSTOMER"


CLOSED_BOOKING_STATUSES = (BookingStatus.REJECTED, BookingStatus.CANCELLED)

ALLOWED_STATUS_TRANSITIONS = {
    BookingStatus.PENDING: {BookingStatus.APPROVED, BookingStatus.REJECTED, BookingStatus.CANCELLED},
    BookingStatus.APPROVED: {BookingStatus.CANCELLED},
    BookingStatus.REJECTED: set(),
    BookingStatus.CANCELLED: set(),
}
