"""Domain Entities - Aggregates"""
from pydantic import BaseModel, Field
from uuid import UUID, uuid4
from datetime import datetime, timezone
from typing import Optional, List, Any, Dict
from decimal import Decimal

from domain.enums import (
    BookingStatus, ServiceStatus, ChangeRequestStatus, AmountPaidMode, Currency,
    RoomType, NotificationType, EmailLogStatus,
    CLOSED_BOOKING_STATUSES, ALLOWED_STATUS_TRANSITIONS,
)
from domain.exceptions import InvalidStateError, BookingValidationError
from domain.value_objects import PaymentTerms, TourItem, HotelService


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


class Booking(BaseModel):
    """Booking Aggregate Root Entity

    Tour items and the hotel service are the source of truth for the
    services of a booking. The flat ``tour_id``/``desired_date``/``hotel_*``
    fields are a summary of them kept for older readers and are only ever
    written by :meth:`sync_legacy_fields`.
    """

    # Identity
    booking_id: UUID = Field(default_factory=uuid4)

    # Holder: registered user or guest contact
    user_id: Optional[UUID] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None

    # Lifecycle
    status: BookingStatus = BookingStatus.PENDING
    service_status: ServiceStatus = ServiceStatus.PENDING
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None

    # Financials
    total_price: Decimal = Decimal("0.00")
    amount_paid: Decimal = Decimal("0.00")
    currency: Currency = Currency.GEL
    amount_paid_mode: AmountPaidMode = AmountPaidMode.FLAT
    amount_paid_percent: Optional[Decimal] = None

    # Legacy summary of the first tour item / hotel service
    tour_id: Optional[UUID] = None
    desired_date: Optional[datetime] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    room_type: Optional[RoomType] = None
    hotel_name: Optional[str] = None
    hotel_check_in: Optional[datetime] = None
    hotel_check_out: Optional[datetime] = None
    hotel_room_type: Optional[str] = None
    hotel_guests: Optional[int] = None
    hotel_notes: Optional[str] = None

    # Collections (child entities)
    tour_items: List[TourItem] = []
    hotel_service: Optional[HotelService] = None

    # Notes
    note: Optional[str] = None
    admin_note: Optional[str] = None

    # Metadata
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    version: int = 1

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def create(
        payment: PaymentTerms,
        tour_items: List[TourItem],
        hotel_service: Optional[HotelService] = None,
        user_id: Optional[UUID] = None,
        guest_name: Optional[str] = None,
        guest_email: Optional[str] = None,
        guest_phone: Optional[str] = None,
        room_type: Optional[RoomType] = None,
        status: BookingStatus = BookingStatus.PENDING,
        service_status: ServiceStatus = ServiceStatus.PENDING,
        currency: Currency = Currency.GEL,
        note: Optional[str] = None,
        admin_note: Optional[str] = None,
        legacy_hotel_room_type: Optional[str] = None,
        legacy_hotel_guests: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> "Booking":
        """Create new booking with validation"""
        Booking.validate_holder(user_id, guest_name, guest_email, guest_phone)
        Booking.validate_services(tour_items, hotel_service)

        now = now or utcnow()
        booking = Booking(
            user_id=user_id,
            guest_name=guest_name,
            guest_email=guest_email,
            guest_phone=guest_phone,
            service_status=service_status,
            currency=currency,
            room_type=room_type,
            note=note,
            admin_note=admin_note,
            tour_items=list(tour_items),
            hotel_service=hotel_service,
            hotel_room_type=legacy_hotel_room_type,
            hotel_guests=legacy_hotel_guests,
            created_at=now,
            updated_at=now,
        )
        booking.apply_payment(payment)
        booking._stamp_decision(status, now)
        booking.sync_legacy_fields()
        return booking

    # ==================== VALIDATION ====================
    @staticmethod
    def validate_holder(
        user_id: Optional[UUID],
        guest_name: Optional[str],
        guest_email: Optional[str],
        guest_phone: Optional[str],
    ) -> None:
        if not user_id and not (has_text(guest_name) or has_text(guest_email) or has_text(guest_phone)):
            raise BookingValidationError("Provide either an existing user or guest details")

    @staticmethod
    def validate_services(tour_items: List[TourItem], hotel_service: Optional[HotelService]) -> None:
        if not tour_items and hotel_service is None:
            raise BookingValidationError("At least one service (tour or hotel) is required")

    # ==================== COMPUTED PROPERTIES ====================
    @property
    def balance_due(self) -> Decimal:
        return self.total_price - self.amount_paid

    @property
    def has_tour(self) -> bool:
        return len(self.tour_items) > 0

    @property
    def has_hotel(self) -> bool:
        return self.hotel_service is not None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_BOOKING_STATUSES

    def payment_terms(self) -> PaymentTerms:
        return PaymentTerms(
            total_price=self.total_price,
            amount_paid=self.amount_paid,
            mode=self.amount_paid_mode,
            percent=self.amount_paid_percent,
        )

    # ==================== MODIFICATION METHODS ====================
    def apply_payment(self, payment: PaymentTerms) -> None:
        self.total_price = payment.total_price
        self.amount_paid = payment.amount_paid
        self.amount_paid_mode = payment.mode
        self.amount_paid_percent = payment.percent

    def replace_services(
        self,
        tour_items: List[TourItem],
        hotel_service: Optional[HotelService],
        room_type: Optional[RoomType] = None,
        legacy_hotel_room_type: Optional[str] = None,
        legacy_hotel_guests: Optional[int] = None,
    ) -> None:
        """Swap both service slices at once; the booking must keep at least one"""
        Booking.validate_services(tour_items, hotel_service)
        self.tour_items = list(tour_items)
        self.room_type = room_type
        self.hotel_service = hotel_service
        self.hotel_room_type = legacy_hotel_room_type
        self.hotel_guests = legacy_hotel_guests
        self.sync_legacy_fields()

    def move_desired_date(self, new_date: datetime) -> None:
        """Move the first tour visit to a new date"""
        if not self.tour_items:
            raise InvalidStateError("Booking has no tour date to change")
        first = self.tour_items[0].model_copy(update={"desired_date": new_date})
        self.tour_items = [first] + self.tour_items[1:]
        self.sync_legacy_fields()
        self.touch()

    def sync_legacy_fields(self) -> None:
        """Project the nested services onto the flat legacy columns"""
        first = self.tour_items[0] if self.tour_items else None
        self.tour_id = first.tour_id if first else None
        self.desired_date = first.desired_date if first else None
        self.adults = first.adults if first else None
        self.children = first.children if first else None
        if first is None:
            self.room_type = None
        elif self.room_type is None:
            self.room_type = RoomType.double

        hotel = self.hotel_service
        if hotel is None:
            self.hotel_name = None
            self.hotel_check_in = None
            self.hotel_check_out = None
            self.hotel_room_type = None
            self.hotel_guests = None
            self.hotel_notes = None
            return

        self.hotel_name = hotel.hotel_name
        self.hotel_check_in = hotel.check_in
        self.hotel_check_out = hotel.check_out
        self.hotel_notes = hotel.notes
        # name-only hotels keep whatever room summary was entered with them
        if hotel.rooms:
            self.hotel_room_type = hotel.rooms[0].room_type
            self.hotel_guests = hotel.total_guests()

    # ==================== STATE TRANSITION METHODS ====================
    def approve(self, admin_note: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """Approve a pending booking"""
        self.ensure_not_deleted()
        if self.status != BookingStatus.PENDING:
            raise InvalidStateError("Only pending bookings can be approved")
        self._stamp_decision(BookingStatus.APPROVED, now or utcnow())
        if admin_note is not None:
            self.admin_note = admin_note
        self.touch()

    def reject(self, admin_note: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """Reject a pending booking"""
        self.ensure_not_deleted()
        if self.status != BookingStatus.PENDING:
            raise InvalidStateError("Only pending bookings can be rejected")
        self._stamp_decision(BookingStatus.REJECTED, now or utcnow())
        if admin_note is not None:
            self.admin_note = admin_note
        self.touch()

    def cancel(self, now: Optional[datetime] = None) -> None:
        """Cancel on behalf of the owning customer"""
        self.ensure_not_deleted()
        if self.is_closed:
            raise InvalidStateError("Booking cannot be cancelled in current status")
        self._stamp_decision(BookingStatus.CANCELLED, now or utcnow())
        self.touch()

    def change_status(self, new_status: BookingStatus, now: Optional[datetime] = None) -> bool:
        """Staff status edit; returns True when the status actually moved"""
        if new_status == self.status:
            return False
        if new_status not in ALLOWED_STATUS_TRANSITIONS[self.status]:
            raise InvalidStateError(
                f"Cannot change booking status from {self.status.value} to {new_status.value}"
            )
        self._stamp_decision(new_status, now or utcnow())
        return True

    def soft_delete(self, now: Optional[datetime] = None) -> bool:
        if self.is_deleted:
            return False
        self.is_deleted = True
        self.deleted_at = now or utcnow()
        self.touch()
        return True

    def restore(self) -> bool:
        if not self.is_deleted:
            return False
        self.is_deleted = False
        self.deleted_at = None
        self.touch()
        return True

    def ensure_not_deleted(self) -> None:
        if self.is_deleted:
            raise InvalidStateError("Booking is deleted; restore it first")

    def owned_by(self, user_id: UUID) -> bool:
        return self.user_id is not None and self.user_id == user_id

    # ==================== PRIVATE METHODS ====================
    def _stamp_decision(self, status: BookingStatus, now: datetime) -> None:
        self.status = status
        self.approved_at = now if status == BookingStatus.APPROVED else None
        self.rejected_at = now if status == BookingStatus.REJECTED else None
        self.cancelled_at = now if status == BookingStatus.CANCELLED else None

    def touch(self) -> None:
        self.updated_at = utcnow()
        self.version += 1


class BookingChangeRequest(BaseModel):
    """Change Request Aggregate Root Entity - customer asks to move a booking date"""

    change_request_id: UUID = Field(default_factory=uuid4)
    booking_id: UUID
    requested_date: datetime
    reason: Optional[str] = None
    status: ChangeRequestStatus = ChangeRequestStatus.PENDING
    admin_note: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True

    @property
    def is_pending(self) -> bool:
        return self.status == ChangeRequestStatus.PENDING

    def approve(self, admin_note: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self._resolve(ChangeRequestStatus.APPROVED, admin_note, now)

    def reject(self, admin_note: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self._resolve(ChangeRequestStatus.REJECTED, admin_note, now)

    def cancel(self, now: Optional[datetime] = None) -> None:
        self._resolve(ChangeRequestStatus.CANCELLED, self.admin_note, now)

    def _resolve(self, status: ChangeRequestStatus, admin_note: Optional[str], now: Optional[datetime]) -> None:
        if not self.is_pending:
            raise InvalidStateError("Change request is already resolved")
        self.status = status
        self.admin_note = admin_note
        self.resolved_at = now or utcnow()


# ==================== REFERENCE ENTITIES ====================

class Tour(BaseModel):
    """Tour reference entity (owned by the catalogue context)"""
    tour_id: UUID = Field(default_factory=uuid4)
    slug: str
    title_ka: str = ""
    title_en: str = ""
    title_ru: str = ""
    is_active: bool = True

    class Config:
        from_attributes = True


class Customer(BaseModel):
    """Registered user reference entity"""
    user_id: UUID = Field(default_factory=uuid4)
    email: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    class Config:
        from_attributes = True


class Hotel(BaseModel):
    """Hotel reference entity"""
    hotel_id: UUID = Field(default_factory=uuid4)
    name: str
    email: Optional[str] = None

    class Config:
        from_attributes = True


class Notification(BaseModel):
    """In-app notification for a registered user"""
    notification_id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    type: NotificationType
    title: str
    body: str
    metadata: Dict[str, Any] = {}
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True


class EmailLogEntry(BaseModel):
    """Append-only record of one outbound email attempt"""
    log_id: UUID = Field(default_factory=uuid4)
    recipient_email: str
    template: str
    payload: Dict[str, Any] = {}
    status: EmailLogStatus
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        from_attributes = True
