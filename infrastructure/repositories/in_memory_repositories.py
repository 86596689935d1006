"""In-Memory Repository Implementations"""
import asyncio
import logging
from typing import Optional, List, Dict
from uuid import UUID

from pydantic import BaseModel

from domain.repositories import (
    AbstractUnitOfWork, BookingRepository, ChangeRequestRepository, CommitHook,
    CustomerRepository, EmailLogRepository, HotelRepository, NotificationRepository,
    TourRepository,
)
from domain.entities import (
    Booking, BookingChangeRequest, Customer, EmailLogEntry, Hotel, Notification, Tour,
)
from domain.exceptions import NotFoundError

logger = logging.getLogger(__name__)


def _copy(model):
    # callers never share an instance with the store
    return model.model_copy(deep=True) if isinstance(model, BaseModel) else model


class _InMemoryTable:
    """Dict-backed table that can be snapshotted and restored by the unit of work"""

    def __init__(self):
        self._storage: Dict[UUID, BaseModel] = {}

    def snapshot(self) -> Dict[UUID, BaseModel]:
        return dict(self._storage)

    def restore(self, snapshot: Dict[UUID, BaseModel]) -> None:
        self._storage.clear()
        self._storage.update(snapshot)

    def _put(self, key: UUID, model):
        self._storage[key] = _copy(model)
        return model

    def _get(self, key: UUID):
        return _copy(self._storage.get(key))

    def _values(self) -> list:
        return [_copy(model) for model in self._storage.values()]


class InMemoryBookingRepository(_InMemoryTable, BookingRepository):
    """In-memory implementation of BookingRepository"""

    async def save(self, booking: Booking) -> Booking:
        """Save booking to memory"""
        return self._put(booking.booking_id, booking)

    async def find_by_id(self, booking_id: UUID) -> Optional[Booking]:
        """Find booking by ID"""
        return self._get(booking_id)

    async def find_by_user_id(self, user_id: UUID) -> List[Booking]:
        """Find non-deleted bookings by user ID"""
        return [b for b in self._values() if b.user_id == user_id and not b.is_deleted]

    async def find_all(self, include_deleted: bool = False) -> List[Booking]:
        """Find all bookings"""
        return [b for b in self._values() if include_deleted or not b.is_deleted]

    async def find_deleted(self) -> List[Booking]:
        """Find bookings in the trash"""
        return [b for b in self._values() if b.is_deleted]

    async def update(self, booking: Booking) -> Booking:
        """Update booking"""
        if booking.booking_id in self._storage:
            return self._put(booking.booking_id, booking)
        raise NotFoundError("Booking not found")

    async def delete(self, booking_id: UUID) -> bool:
        """Delete booking"""
        if booking_id in self._storage:
            del self._storage[booking_id]
            return True
        return False


class InMemoryChangeRequestRepository(_InMemoryTable, ChangeRequestRepository):
    """In-memory implementation of ChangeRequestRepository"""

    async def save(self, change_request: BookingChangeRequest) -> BookingChangeRequest:
        return self._put(change_request.change_request_id, change_request)

    async def find_by_id(self, change_request_id: UUID) -> Optional[BookingChangeRequest]:
        return self._get(change_request_id)

    async def find_by_booking_id(self, booking_id: UUID) -> List[BookingChangeRequest]:
        requests = [cr for cr in self._values() if cr.booking_id == booking_id]
        return sorted(requests, key=lambda cr: cr.created_at, reverse=True)

    async def find_pending_by_booking_id(self, booking_id: UUID) -> List[BookingChangeRequest]:
        return [cr for cr in await self.find_by_booking_id(booking_id) if cr.is_pending]

    async def update(self, change_request: BookingChangeRequest) -> BookingChangeRequest:
        if change_request.change_request_id in self._storage:
            return self._put(change_request.change_request_id, change_request)
        raise NotFoundError("Change request not found")

    async def delete_by_booking_id(self, booking_id: UUID) -> int:
        doomed = [key for key, cr in self._storage.items() if cr.booking_id == booking_id]
        for key in doomed:
            del self._storage[key]
        return len(doomed)


class InMemoryTourRepository(_InMemoryTable, TourRepository):
    """In-memory tour catalogue"""

    async def save(self, tour: Tour) -> Tour:
        return self._put(tour.tour_id, tour)

    async def find_by_id(self, tour_id: UUID) -> Optional[Tour]:
        return self._get(tour_id)


class InMemoryCustomerRepository(_InMemoryTable, CustomerRepository):
    """In-memory registered users"""

    async def save(self, customer: Customer) -> Customer:
        return self._put(customer.user_id, customer)

    async def find_by_id(self, user_id: UUID) -> Optional[Customer]:
        return self._get(user_id)


class InMemoryHotelRepository(_InMemoryTable, HotelRepository):
    """In-memory hotels"""

    async def save(self, hotel: Hotel) -> Hotel:
        return self._put(hotel.hotel_id, hotel)

    async def find_by_id(self, hotel_id: UUID) -> Optional[Hotel]:
        return self._get(hotel_id)


class InMemoryNotificationRepository(_InMemoryTable, NotificationRepository):
    """In-memory notification store"""

    async def save(self, notification: Notification) -> Notification:
        return self._put(notification.notification_id, notification)

    async def find_by_user_id(self, user_id: UUID) -> List[Notification]:
        found = [n for n in self._values() if n.user_id == user_id]
        return sorted(found, key=lambda n: n.created_at, reverse=True)


class InMemoryEmailLogRepository(EmailLogRepository):
    """Append-only in-memory email log"""

    def __init__(self):
        self._entries: List[EmailLogEntry] = []

    async def append(self, entry: EmailLogEntry) -> EmailLogEntry:
        self._entries.append(_copy(entry))
        return entry

    async def find_all(self) -> List[EmailLogEntry]:
        return [_copy(entry) for entry in self._entries]


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """Unit of work over the in-memory tables

    One lock serializes units of work, so a read-check-write sequence such
    as approving a PENDING booking cannot interleave with another one.
    """

    def __init__(self):
        self.bookings = InMemoryBookingRepository()
        self.change_requests = InMemoryChangeRequestRepository()
        self.tours = InMemoryTourRepository()
        self.customers = InMemoryCustomerRepository()
        self.hotels = InMemoryHotelRepository()
        self._lock = asyncio.Lock()
        self._snapshot: Optional[Dict[str, dict]] = None
        self._hooks: List[CommitHook] = []

    @property
    def _tables(self) -> Dict[str, _InMemoryTable]:
        return {
            "bookings": self.bookings,
            "change_requests": self.change_requests,
            "tours": self.tours,
            "customers": self.customers,
            "hotels": self.hotels,
        }

    def seed(self, tours=(), customers=(), hotels=()) -> None:
        """Load reference data outside of any transaction"""
        for tour in tours:
            self.tours._put(tour.tour_id, tour)
        for customer in customers:
            self.customers._put(customer.user_id, customer)
        for hotel in hotels:
            self.hotels._put(hotel.hotel_id, hotel)

    async def __aenter__(self) -> "InMemoryUnitOfWork":
        await self._lock.acquire()
        self._snapshot = {name: table.snapshot() for name, table in self._tables.items()}
        self._hooks = []
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
            hooks, self._hooks = self._hooks, []
        finally:
            self._snapshot = None
            self._lock.release()

        for hook in hooks:
            try:
                await hook()
            except Exception:
                logger.exception("Post-commit hook failed")

    async def commit(self) -> None:
        self._snapshot = None

    async def rollback(self) -> None:
        if self._snapshot is not None:
            for name, table in self._tables.items():
                table.restore(self._snapshot[name])
        self._hooks = []
        logger.warning("Unit of work rolled back")

    def on_commit(self, hook: CommitHook) -> None:
        self._hooks.append(hook)
