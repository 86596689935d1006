"""API Schemas - Request and Response DTOs

Request bodies are the application command models; this module holds the
response side and the auth DTOs.
"""
from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from typing import List, Optional

from domain.enums import (
    AmountPaidMode, BookingStatus, CarType, ChangeRequestStatus, Currency,
    NotificationType, RoomType, ServiceStatus, UserRole,
)
from application.reporting import CalendarSummary


# ============================================================================
# BOOKING SCHEMAS
# ============================================================================

class TourItemResponse(BaseModel):
    """Tour item response DTO"""
    item_id: UUID
    tour_id: UUID
    desired_date: datetime
    adults: int
    children: int
    car_type: CarType


class HotelRoomResponse(BaseModel):
    """Hotel room response DTO"""
    room_id: UUID
    room_type: str
    guest_count: int


class HotelServiceResponse(BaseModel):
    """Hotel service response DTO"""
    service_id: UUID
    hotel_id: Optional[UUID] = None
    hotel_name: str
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    notes: Optional[str] = None
    send_request_to_hotel: bool
    rooms: List[HotelRoomResponse] = []


class ChangeRequestResponse(BaseModel):
    """Change request response DTO"""
    change_request_id: UUID
    booking_id: UUID
    requested_date: datetime
    reason: Optional[str] = None
    status: ChangeRequestStatus
    admin_note: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime


class BookingResponse(BaseModel):
    """Booking response DTO; balance_due is derived on every read"""
    booking_id: UUID
    user_id: Optional[UUID] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None

    status: BookingStatus
    service_status: ServiceStatus
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    is_deleted: bool
    deleted_at: Optional[datetime] = None

    total_price: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    currency: Currency
    amount_paid_mode: AmountPaidMode
    amount_paid_percent: Optional[Decimal] = None

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

    tour_items: List[TourItemResponse] = []
    hotel_service: Optional[HotelServiceResponse] = None
    change_requests: List[ChangeRequestResponse] = []

    note: Optional[str] = None
    admin_note: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    version: int


class ChangeRequestDecisionResponse(BaseModel):
    """Approved change request together with the moved booking"""
    booking: BookingResponse
    change_request: ChangeRequestResponse


class DeletedResponse(BaseModel):
    """Permanent delete response DTO"""
    deleted: bool
    id: UUID


# ============================================================================
# CALENDAR SCHEMAS
# ============================================================================

class CalendarDayResponse(BaseModel):
    """One UTC day of the booking calendar"""
    date: str
    booking_count: int
    bookings: List[BookingResponse] = []


class CalendarResponse(BaseModel):
    """Calendar response DTO"""
    month: str
    summary: CalendarSummary
    days: List[CalendarDayResponse]


# ============================================================================
# NOTIFICATION SCHEMAS
# ============================================================================

class NotificationResponse(BaseModel):
    """Notification response DTO"""
    notification_id: UUID
    type: NotificationType
    title: str
    body: str
    metadata: dict = {}
    is_read: bool
    created_at: datetime


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
