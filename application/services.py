"""Application Services - Booking lifecycle use cases"""
import logging
from datetime import timedelta
from uuid import UUID
from typing import List, Optional

from pydantic import BaseModel

from application.commands import (
    AdminCreateBookingCommand, AdminUpdateBookingCommand, BookingDecisionCommand,
    BookingFilters, CreateBookingCommand, DateChangeCommand,
)
from application.normalization import (
    DATE_ONLY, ServiceNormalizer, normalize_nullable_string, parse_booking_date, party_size,
)
from application.payments import resolve_payment
from application.workflow import BookingNotifier
from domain.entities import Booking, BookingChangeRequest, Customer
from domain.enums import BookingStatus, CarType, Currency, ServiceStatus
from domain.exceptions import InvalidStateError, NotFoundError
from domain.repositories import AbstractUnitOfWork
from domain.value_objects import HotelService, TourItem

logger = logging.getLogger(__name__)


class BookingDetails(BaseModel):
    """Booking together with its change requests, newest first"""
    booking: Booking
    change_requests: List[BookingChangeRequest] = []


class BookingService:
    """Service for Booking business use cases"""

    def __init__(
        self,
        uow: AbstractUnitOfWork,
        notifier: BookingNotifier,
        default_currency: Currency = Currency.GEL,
    ):
        self.uow = uow
        self.notifier = notifier
        self.default_currency = default_currency

    # ==================== LOOKUP HELPERS ====================
    async def _get_booking(self, booking_id: UUID) -> Booking:
        booking = await self.uow.bookings.find_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        return booking

    async def _get_owned_booking(self, user_id: UUID, booking_id: UUID) -> Booking:
        booking = await self.uow.bookings.find_by_id(booking_id)
        if booking is None or not booking.owned_by(user_id):
            raise NotFoundError("Booking not found")
        return booking

    async def _get_change_request(self, change_request_id: UUID) -> BookingChangeRequest:
        change_request = await self.uow.change_requests.find_by_id(change_request_id)
        if change_request is None:
            raise NotFoundError("Change request not found")
        return change_request

    async def _require_customer(self, user_id: UUID) -> Customer:
        customer = await self.uow.customers.find_by_id(user_id)
        if customer is None:
            raise NotFoundError("User not found")
        return customer

    async def _customer_of(self, booking: Booking) -> Optional[Customer]:
        if booking.user_id is None:
            return None
        return await self.uow.customers.find_by_id(booking.user_id)

    async def _details(self, booking: Booking) -> BookingDetails:
        requests = await self.uow.change_requests.find_by_booking_id(booking.booking_id)
        return BookingDetails(booking=booking, change_requests=requests)

    async def _cancel_pending_requests(self, booking: Booking) -> None:
        for change_request in await self.uow.change_requests.find_pending_by_booking_id(booking.booking_id):
            change_request.cancel()
            await self.uow.change_requests.update(change_request)
            logger.info(
                "Change request %s cancelled with booking %s",
                change_request.change_request_id, booking.booking_id,
            )

    async def _schedule_hotel_inquiry(self, booking: Booking) -> None:
        service = booking.hotel_service
        if service is None or not service.send_request_to_hotel or not service.is_linked:
            return
        hotel = await self.uow.hotels.find_by_id(service.hotel_id)
        if hotel is None or not hotel.email:
            return
        customer = await self._customer_of(booking)
        self.uow.on_commit(lambda: self.notifier.hotel_inquiry(booking, hotel, customer))

    # ==================== CUSTOMER USE CASES ====================
    async def create(self, user_id: UUID, command: CreateBookingCommand) -> Booking:
        """Self-service booking of one active tour; starts PENDING"""
        async with self.uow:
            customer = await self._require_customer(user_id)

            tour = await self.uow.tours.find_by_id(command.tour_id)
            if tour is None or not tour.is_active:
                raise NotFoundError("Tour not found")

            item = TourItem(
                tour_id=tour.tour_id,
                desired_date=parse_booking_date(command.desired_date),
                adults=party_size(command.adults, 1, 1, "adults"),
                children=party_size(command.children, 0, 0, "children"),
                car_type=command.car_type or CarType.SEDAN,
            )
            booking = Booking.create(
                payment=resolve_payment(),
                tour_items=[item],
                user_id=user_id,
                room_type=command.room_type,
                currency=self.default_currency,
                note=normalize_nullable_string(command.note),
                status=BookingStatus.PENDING,
            )
            await self.uow.bookings.save(booking)
            self.uow.on_commit(lambda: self.notifier.booking_created(booking, customer, tour))

        logger.info("Booking %s created by user %s", booking.booking_id, user_id)
        return booking

    async def find_my(self, user_id: UUID) -> List[BookingDetails]:
        async with self.uow:
            bookings = await self.uow.bookings.find_by_user_id(user_id)
            bookings.sort(key=lambda b: b.created_at, reverse=True)
            return [await self._details(booking) for booking in bookings]

    async def find_my_one(self, user_id: UUID, booking_id: UUID) -> BookingDetails:
        async with self.uow:
            booking = await self._get_owned_booking(user_id, booking_id)
            if booking.is_deleted:
                raise NotFoundError("Booking not found")
            return await self._details(booking)

    async def cancel_by_user(self, user_id: UUID, booking_id: UUID) -> Booking:
        async with self.uow:
            booking = await self._get_owned_booking(user_id, booking_id)
            booking.cancel()
            await self._cancel_pending_requests(booking)
            await self.uow.bookings.update(booking)
            customer = await self._customer_of(booking)
            self.uow.on_commit(lambda: self.notifier.booking_decided(booking, customer, "cancelled"))

        logger.info("Booking %s cancelled by user %s", booking_id, user_id)
        return booking

    async def request_date_change(
        self,
        user_id: UUID,
        booking_id: UUID,
        command: DateChangeCommand,
    ) -> BookingChangeRequest:
        async with self.uow:
            booking = await self._get_owned_booking(user_id, booking_id)
            booking.ensure_not_deleted()

            if booking.is_closed:
                raise InvalidStateError("Date change is not allowed for this booking")
            if not booking.has_tour:
                raise InvalidStateError("Booking has no tour date to change")
            if await self.uow.change_requests.find_pending_by_booking_id(booking_id):
                raise InvalidStateError("Pending change request already exists")

            change_request = BookingChangeRequest(
                booking_id=booking_id,
                requested_date=parse_booking_date(command.requested_date),
                reason=normalize_nullable_string(command.reason),
            )
            await self.uow.change_requests.save(change_request)
            self.uow.on_commit(lambda: self.notifier.change_requested(booking, change_request))

        logger.info("Change request %s opened for booking %s", change_request.change_request_id, booking_id)
        return change_request

    # ==================== ADMIN USE CASES ====================
    async def create_admin(self, command: AdminCreateBookingCommand) -> BookingDetails:
        """Staff-authored booking; pre-approved unless a status is given"""
        async with self.uow:
            if command.user_id:
                await self._require_customer(command.user_id)

            slices = await ServiceNormalizer(self.uow).for_create(command)
            payment = resolve_payment(
                total_price=command.total_price,
                amount_paid=command.amount_paid,
                mode=command.amount_paid_mode,
                percent=command.amount_paid_percent,
            )

            booking = Booking.create(
                payment=payment,
                tour_items=slices.tour_items,
                hotel_service=slices.hotel_service,
                user_id=command.user_id,
                guest_name=normalize_nullable_string(command.guest_name),
                guest_email=normalize_nullable_string(command.guest_email),
                guest_phone=normalize_nullable_string(command.guest_phone),
                room_type=slices.room_type,
                status=command.status or BookingStatus.APPROVED,
                service_status=command.service_status or ServiceStatus.PENDING,
                currency=command.currency or self.default_currency,
                note=normalize_nullable_string(command.note),
                admin_note=normalize_nullable_string(command.admin_note),
                legacy_hotel_room_type=slices.legacy_hotel_room_type,
                legacy_hotel_guests=slices.legacy_hotel_guests,
            )
            await self.uow.bookings.save(booking)
            await self._schedule_hotel_inquiry(booking)

        logger.info("Booking %s created by staff with status %s", booking.booking_id, booking.status.value)
        return BookingDetails(booking=booking)

    async def update_admin(self, booking_id: UUID, command: AdminUpdateBookingCommand) -> BookingDetails:
        """Patch a booking; nested services are rebuilt only for the slices the patch names"""
        async with self.uow:
            booking = await self._get_booking(booking_id)
            booking.ensure_not_deleted()

            user_id = command.user_id if command.supplied("user_id") else booking.user_id
            if user_id:
                await self._require_customer(user_id)

            def merged_text(field: str) -> Optional[str]:
                if command.supplied(field):
                    return normalize_nullable_string(getattr(command, field))
                return getattr(booking, field)

            guest_name = merged_text("guest_name")
            guest_email = merged_text("guest_email")
            guest_phone = merged_text("guest_phone")
            Booking.validate_holder(user_id, guest_name, guest_email, guest_phone)

            booking.user_id = user_id
            booking.guest_name = guest_name
            booking.guest_email = guest_email
            booking.guest_phone = guest_phone

            previous_hotel = booking.hotel_service
            normalizer = ServiceNormalizer(self.uow)
            if normalizer.touches_services(command):
                slices = await normalizer.for_update(command, booking)
                booking.replace_services(
                    tour_items=slices.tour_items,
                    hotel_service=slices.hotel_service,
                    room_type=slices.room_type,
                    legacy_hotel_room_type=slices.legacy_hotel_room_type,
                    legacy_hotel_guests=slices.legacy_hotel_guests,
                )

            booking.apply_payment(resolve_payment(
                total_price=command.total_price,
                amount_paid=command.amount_paid,
                mode=command.amount_paid_mode,
                percent=command.amount_paid_percent,
                fallback=booking.payment_terms(),
            ))

            if command.currency is not None:
                booking.currency = command.currency
            if command.service_status is not None:
                booking.service_status = command.service_status
            if command.supplied("note"):
                booking.note = normalize_nullable_string(command.note)
            if command.supplied("admin_note"):
                booking.admin_note = normalize_nullable_string(command.admin_note)

            if command.status is not None and booking.change_status(command.status):
                logger.info("Booking %s moved to %s by staff edit", booking_id, booking.status.value)
                if booking.is_closed:
                    await self._cancel_pending_requests(booking)

            booking.touch()
            await self.uow.bookings.update(booking)

            if command.supplied("hotel_service") and _inquiry_due(previous_hotel, booking.hotel_service):
                await self._schedule_hotel_inquiry(booking)

            details = await self._details(booking)

        logger.info("Booking %s updated by staff", booking_id)
        return details

    async def approve_booking(self, booking_id: UUID, command: BookingDecisionCommand) -> Booking:
        admin_note = normalize_nullable_string(command.admin_note)
        async with self.uow:
            booking = await self._get_booking(booking_id)
            booking.approve(admin_note)
            await self.uow.bookings.update(booking)
            customer = await self._customer_of(booking)
            self.uow.on_commit(lambda: self.notifier.booking_decided(booking, customer, "approved", admin_note))

        logger.info("Booking %s approved", booking_id)
        return booking

    async def reject_booking(self, booking_id: UUID, command: BookingDecisionCommand) -> Booking:
        admin_note = normalize_nullable_string(command.admin_note)
        async with self.uow:
            booking = await self._get_booking(booking_id)
            booking.reject(admin_note)
            await self._cancel_pending_requests(booking)
            await self.uow.bookings.update(booking)
            customer = await self._customer_of(booking)
            self.uow.on_commit(lambda: self.notifier.booking_decided(booking, customer, "rejected", admin_note))

        logger.info("Booking %s rejected", booking_id)
        return booking

    async def soft_delete(self, booking_id: UUID) -> Booking:
        """Move a booking to the trash; deleting twice is a no-op"""
        async with self.uow:
            booking = await self._get_booking(booking_id)
            if booking.soft_delete():
                await self.uow.bookings.update(booking)
                logger.info("Booking %s moved to trash", booking_id)
        return booking

    async def restore(self, booking_id: UUID) -> Booking:
        """Bring a booking back from the trash; restoring twice is a no-op"""
        async with self.uow:
            booking = await self._get_booking(booking_id)
            if booking.restore():
                await self.uow.bookings.update(booking)
                logger.info("Booking %s restored", booking_id)
        return booking

    async def permanent_delete(self, booking_id: UUID) -> dict:
        """Physically remove a booking and its change requests"""
        async with self.uow:
            await self._get_booking(booking_id)
            await self.uow.change_requests.delete_by_booking_id(booking_id)
            await self.uow.bookings.delete(booking_id)

        logger.info("Booking %s permanently deleted", booking_id)
        return {"deleted": True, "id": booking_id}

    async def approve_change_request(self, change_request_id: UUID, command: BookingDecisionCommand) -> dict:
        """Approve a date change; booking and request are written in one transaction"""
        admin_note = normalize_nullable_string(command.admin_note)
        async with self.uow:
            change_request = await self._get_change_request(change_request_id)
            if not change_request.is_pending:
                raise InvalidStateError("Change request is already resolved")

            booking = await self._get_booking(change_request.booking_id)
            booking.ensure_not_deleted()
            if booking.is_closed:
                raise InvalidStateError("Cannot update a closed booking")

            booking.move_desired_date(change_request.requested_date)
            if admin_note is not None:
                booking.admin_note = admin_note
            change_request.approve(admin_note)

            await self.uow.bookings.update(booking)
            await self.uow.change_requests.update(change_request)
            customer = await self._customer_of(booking)
            self.uow.on_commit(
                lambda: self.notifier.change_decided(booking, customer, change_request, "approved")
            )

        logger.info("Change request %s approved", change_request_id)
        return {"booking": booking, "change_request": change_request}

    async def reject_change_request(
        self,
        change_request_id: UUID,
        command: BookingDecisionCommand,
    ) -> BookingChangeRequest:
        admin_note = normalize_nullable_string(command.admin_note)
        async with self.uow:
            change_request = await self._get_change_request(change_request_id)
            if not change_request.is_pending:
                raise InvalidStateError("Change request is already resolved")

            booking = await self._get_booking(change_request.booking_id)
            booking.ensure_not_deleted()
            if booking.is_closed:
                raise InvalidStateError("Cannot update a closed booking")

            change_request.reject(admin_note)
            await self.uow.change_requests.update(change_request)
            customer = await self._customer_of(booking)
            self.uow.on_commit(
                lambda: self.notifier.change_decided(booking, customer, change_request, "rejected")
            )

        logger.info("Change request %s rejected", change_request_id)
        return change_request

    # ==================== ADMIN QUERIES ====================
    async def find_one_admin(self, booking_id: UUID) -> BookingDetails:
        async with self.uow:
            booking = await self._get_booking(booking_id)
            return await self._details(booking)

    async def find_all_admin(self, filters: Optional[BookingFilters] = None) -> List[BookingDetails]:
        async with self.uow:
            bookings = await self.uow.bookings.find_all()
            matched = _apply_filters(bookings, filters or BookingFilters())
            matched.sort(key=lambda b: b.created_at, reverse=True)
            return [await self._details(booking) for booking in matched]

    async def find_trash_admin(self, filters: Optional[BookingFilters] = None) -> List[BookingDetails]:
        async with self.uow:
            bookings = await self.uow.bookings.find_deleted()
            matched = _apply_filters(bookings, filters or BookingFilters())
            matched.sort(key=lambda b: b.deleted_at, reverse=True)
            return [await self._details(booking) for booking in matched]


def _apply_filters(bookings: List[Booking], filters: BookingFilters) -> List[Booking]:
    date_from = parse_booking_date(filters.date_from) if filters.date_from else None
    date_to = parse_booking_date(filters.date_to) if filters.date_to else None
    if date_to is not None and DATE_ONLY.match(filters.date_to.strip()):
        # a bare day includes everything up to its end
        date_to = date_to + timedelta(days=1) - timedelta(microseconds=1)

    def matches(booking: Booking) -> bool:
        if filters.status and booking.status != filters.status:
            return False
        if filters.service_status and booking.service_status != filters.service_status:
            return False
        if filters.user_id and booking.user_id != filters.user_id:
            return False
        if filters.tour_id and all(item.tour_id != filters.tour_id for item in booking.tour_items):
            return False
        if date_from or date_to:
            if booking.desired_date is None:
                return False
            if date_from and booking.desired_date < date_from:
                return False
            if date_to and booking.desired_date > date_to:
                return False
        return True

    return [booking for booking in bookings if matches(booking)]


def _inquiry_due(before: Optional[HotelService], after: Optional[HotelService]) -> bool:
    """A new inquiry goes out only for a different hotel or a request flag that was just switched on"""
    if after is None or not after.send_request_to_hotel:
        return False
    return before is None or before.hotel_id != after.hotel_id or not before.send_request_to_hotel
