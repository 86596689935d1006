"""Application Commands - inputs accepted by the booking services

Dates travel as strings (``YYYY-MM-DD`` or ISO-8601) and are parsed by the
engine. Required-ness, ranges and cross-field rules are also checked by the
engine, so every field here is permissive.
"""
from pydantic import BaseModel
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import (
    AmountPaidMode, BookingStatus, CarType, Currency, RoomType, ServiceStatus,
)


TOUR_FIELDS = ("tours", "tour_id", "desired_date", "adults", "children", "room_type")
HOTEL_FIELDS = (
    "hotel_service", "hotel_name", "hotel_check_in", "hotel_check_out",
    "hotel_room_type", "hotel_guests", "hotel_notes",
)


class TourItemInput(BaseModel):
    tour_id: UUID
    desired_date: str
    adults: Optional[int] = None
    children: Optional[int] = None
    car_type: Optional[CarType] = None


class HotelRoomInput(BaseModel):
    room_type: Optional[str] = None
    guest_count: Optional[int] = None


class HotelServiceInput(BaseModel):
    hotel_id: UUID
    check_in: Optional[str] = None
    check_out: Optional[str] = None
    notes: Optional[str] = None
    send_request_to_hotel: Optional[bool] = None
    rooms: Optional[List[HotelRoomInput]] = None


class CreateBookingCommand(BaseModel):
    """Self-service booking of one tour by a registered customer"""
    tour_id: UUID
    desired_date: str
    adults: int = 1
    children: int = 0
    room_type: RoomType = RoomType.double
    car_type: Optional[CarType] = None
    note: Optional[str] = None


class AdminBookingFields(BaseModel):
    """Every field staff may send when authoring a booking"""
    user_id: Optional[UUID] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None

    tours: Optional[List[TourItemInput]] = None
    hotel_service: Optional[HotelServiceInput] = None

    # Legacy single-service fields
    tour_id: Optional[UUID] = None
    desired_date: Optional[str] = None
    adults: Optional[int] = None
    children: Optional[int] = None
    room_type: Optional[RoomType] = None
    hotel_name: Optional[str] = None
    hotel_check_in: Optional[str] = None
    hotel_check_out: Optional[str] = None
    hotel_room_type: Optional[str] = None
    hotel_guests: Optional[int] = None
    hotel_notes: Optional[str] = None

    total_price: Optional[Decimal] = None
    amount_paid: Optional[Decimal] = None
    currency: Optional[Currency] = None
    amount_paid_mode: Optional[AmountPaidMode] = None
    amount_paid_percent: Optional[Decimal] = None

    status: Optional[BookingStatus] = None
    service_status: Optional[ServiceStatus] = None
    note: Optional[str] = None
    admin_note: Optional[str] = None

    def supplied(self, *names: str) -> bool:
        """True when any of ``names`` was explicitly sent, even as null"""
        return any(name in self.model_fields_set for name in names)


class AdminCreateBookingCommand(AdminBookingFields):
    """Staff-authored booking, for a guest or an existing user"""


class AdminUpdateBookingCommand(AdminBookingFields):
    """Partial update; a field left out of the payload keeps its stored value,
    a field sent as null clears it"""


class BookingDecisionCommand(BaseModel):
    admin_note: Optional[str] = None


class DateChangeCommand(BaseModel):
    requested_date: str
    reason: Optional[str] = None


class BookingFilters(BaseModel):
    status: Optional[BookingStatus] = None
    service_status: Optional[ServiceStatus] = None
    tour_id: Optional[UUID] = None
    user_id: Optional[UUID] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
