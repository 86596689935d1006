"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Optional, List, Callable, Awaitable
from uuid import UUID

from domain.entities import (
    Booking, BookingChangeRequest, Tour, Customer, Hotel, Notification, EmailLogEntry,
)


class BookingRepository(ABC):
    """Repository interface for Booking Aggregate (tour items and hotel service included)"""

    @abstractmethod
    async def save(self, booking: Booking) -> Booking:
        """Save booking"""
        pass

    @abstractmethod
    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID, deleted or not"""
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find non-deleted bookings of a user"""
        pass

    @abstractmethod
    async def find_all(self, include_deleted: bool = False) -> List[Booking]:
        """Find bookings, non-deleted only unless asked otherwise"""
        pass

    @abstractmethod
    async def find_deleted(self) -> List[Booking]:
        """Find soft-deleted bookings"""
        pass

    @abstractmethod
    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        pass

    @abstractmethod
    async def delete(self, booking_id: UUID) -> bool:
        """Physically remove booking"""
        pass


class ChangeRequestRepository(ABC):
    """Repository interface for BookingChangeRequest Aggregate"""

    @abstractmethod
    async def save(self, change_request: BookingChangeRequest) -> BookingChangeRequest:
        pass

    @abstractmethod
    async def find_by_id(self, change_request_id: UUID) -> Optional[BookingChangeRequest]:
        pass

    @abstractmethod
    async def find_by_booking_id(self, booking_id: UUID) -> List[BookingChangeRequest]:
        """Find change requests of a booking, newest first"""
        pass

    @abstractmethod
    async def find_pending_by_booking_id(self, booking_id: UUID) -> List[BookingChangeRequest]:
        pass

    @abstractmethod
    async def update(self, change_request: BookingChangeRequest) -> BookingChangeRequest:
        pass

    @abstractmethod
    async def delete_by_booking_id(self, booking_id: UUID) -> int:
        pass


class TourRepository(ABC):
    """Lookup interface for tours"""

    @abstractmethod
    async def save(self, tour: Tour) -> Tour:
        pass

    @abstractmethod
    async def find_by_id(self, tour_id: UUID) -> Optional[Tour]:
        pass


class CustomerRepository(ABC):
    """Lookup interface for registered users"""

    @abstractmethod
    async def save(self, customer: Customer) -> Customer:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: UUID) -> Optional[Customer]:
        pass


class HotelRepository(ABC):
    """Lookup interface for hotels"""

    @abstractmethod
    async def save(self, hotel: Hotel) -> Hotel:
        pass

    @abstractmethod
    async def find_by_id(self, hotel_id: UUID) -> Optional[Hotel]:
        pass


class NotificationRepository(ABC):
    """Repository interface for user notifications"""

    @abstractmethod
    async def save(self, notification: Notification) -> Notification:
        pass

    @abstractmethod
    async def find_by_user_id(self, user_id: UUID) -> List[Notification]:
        """Find notifications of a user, newest first"""
        pass


class EmailLogRepository(ABC):
    """Append-only repository for outbound email attempts"""

    @abstractmethod
    async def append(self, entry: EmailLogEntry) -> EmailLogEntry:
        pass

    @abstractmethod
    async def find_all(self) -> List[EmailLogEntry]:
        pass


CommitHook = Callable[[], Awaitable[None]]


class AbstractUnitOfWork(ABC):
    """Unit of Work - one atomic transaction over the booking store

    Usage::

        async with uow:
            booking = await uow.bookings.find_by_id(booking_id)
            booking.approve(note)
            await uow.bookings.update(booking)
            uow.on_commit(lambda: notify(booking))
        # hooks run here, after commit

    Leaving the block with an exception rolls back every write made inside
    it and discards the registered hooks.
    """

    bookings: BookingRepository
    change_requests: ChangeRequestRepository
    tours: TourRepository
    customers: CustomerRepository
    hotels: HotelRepository

    async def __aenter__(self) -> "AbstractUnitOfWork":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            await self.commit()
        else:
            await self.rollback()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction"""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction"""
        pass

    @abstractmethod
    def on_commit(self, hook: CommitHook) -> None:
        """Register a coroutine factory to run once the transaction has committed"""
        pass
