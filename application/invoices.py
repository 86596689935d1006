"""Invoice Projector - read-only billing snapshot of one booking"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from domain.entities import Booking, Customer, Tour, utcnow
from domain.enums import AmountPaidMode, BookingStatus, CarType, Currency, RoomType, ServiceStatus
from domain.exceptions import NotFoundError
from domain.repositories import AbstractUnitOfWork
from domain.value_objects import HotelService, TourItem

GUEST_PLACEHOLDER = "Guest customer"


class InvoiceCustomer(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None


class InvoiceTourLine(BaseModel):
    tour_id: UUID
    slug: Optional[str] = None
    title_ka: Optional[str] = None
    title_en: Optional[str] = None
    title_ru: Optional[str] = None
    desired_date: datetime
    adults: int
    children: int
    car_type: Optional[CarType] = None
    room_type: Optional[RoomType] = None


class InvoiceRoomLine(BaseModel):
    room_type: str
    guest_count: int


class InvoiceHotel(BaseModel):
    hotel_id: Optional[UUID] = None
    name: str
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    room_type: Optional[str] = None
    guests: Optional[int] = None
    notes: Optional[str] = None
    rooms: List[InvoiceRoomLine] = []


class InvoiceServices(BaseModel):
    tours: List[InvoiceTourLine] = []
    tour: Optional[InvoiceTourLine] = None
    hotel: Optional[InvoiceHotel] = None


class InvoiceFinancials(BaseModel):
    currency: Currency
    total_price: Decimal
    amount_paid: Decimal
    amount_paid_mode: AmountPaidMode
    amount_paid_percent: Optional[Decimal] = None
    balance_due: Decimal


class InvoiceAdmin(BaseModel):
    note: Optional[str] = None
    service_status: ServiceStatus
    booking_status: BookingStatus


class Invoice(BaseModel):
    logo_url: Optional[str] = None
    booking_id: UUID
    issued_at: datetime = Field(default_factory=utcnow)
    customer: InvoiceCustomer
    services: InvoiceServices
    financials: InvoiceFinancials
    admin: InvoiceAdmin


def project_customer(booking: Booking, customer: Optional[Customer]) -> InvoiceCustomer:
    if customer is not None:
        return InvoiceCustomer(
            name=customer.full_name or booking.guest_name or GUEST_PLACEHOLDER,
            email=customer.email or booking.guest_email,
            phone=customer.phone or booking.guest_phone,
        )
    return InvoiceCustomer(
        name=booking.guest_name or GUEST_PLACEHOLDER,
        email=booking.guest_email,
        phone=booking.guest_phone,
    )


def project_tour(item: TourItem, tour: Optional[Tour], room_type: Optional[RoomType]) -> InvoiceTourLine:
    """One tour line; a tour missing from the catalogue still renders with its id"""
    return InvoiceTourLine(
        tour_id=item.tour_id,
        slug=tour.slug if tour else None,
        title_ka=tour.title_ka if tour else None,
        title_en=tour.title_en if tour else None,
        title_ru=tour.title_ru if tour else None,
        desired_date=item.desired_date,
        adults=item.adults,
        children=item.children,
        car_type=item.car_type,
        room_type=room_type,
    )


def project_hotel(booking: Booking, service: Optional[HotelService]) -> Optional[InvoiceHotel]:
    if service is None:
        return None
    return InvoiceHotel(
        hotel_id=service.hotel_id,
        name=service.hotel_name,
        check_in=service.check_in,
        check_out=service.check_out,
        room_type=booking.hotel_room_type,
        guests=booking.hotel_guests,
        notes=service.notes,
        rooms=[
            InvoiceRoomLine(room_type=room.room_type, guest_count=room.guest_count)
            for room in service.rooms
        ],
    )


class InvoiceService:
    """Service for invoice projections"""

    def __init__(self, uow: AbstractUnitOfWork, logo_url: Optional[str] = None):
        self.uow = uow
        self.logo_url = logo_url

    async def get_invoice(self, booking_id: UUID) -> Invoice:
        async with self.uow:
            booking = await self.uow.bookings.find_by_id(booking_id)
            if booking is None:
                raise NotFoundError("Booking not found")

            customer = None
            if booking.user_id is not None:
                customer = await self.uow.customers.find_by_id(booking.user_id)

            tours = {}
            for item in booking.tour_items:
                if item.tour_id not in tours:
                    tours[item.tour_id] = await self.uow.tours.find_by_id(item.tour_id)

        lines = [
            project_tour(item, tours.get(item.tour_id), booking.room_type)
            for item in booking.tour_items
        ]

        return Invoice(
            logo_url=self.logo_url,
            booking_id=booking.booking_id,
            customer=project_customer(booking, customer),
            services=InvoiceServices(
                tours=lines,
                tour=lines[0] if lines else None,
                hotel=project_hotel(booking, booking.hotel_service),
            ),
            financials=InvoiceFinancials(
                currency=booking.currency,
                total_price=booking.total_price,
                amount_paid=booking.amount_paid,
                amount_paid_mode=booking.amount_paid_mode,
                amount_paid_percent=booking.amount_paid_percent,
                balance_due=booking.balance_due,
            ),
            admin=InvoiceAdmin(
                note=booking.admin_note,
                service_status=booking.service_status,
                booking_status=booking.status,
            ),
        )
