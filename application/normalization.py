"""Normalization Layer - turns admin input into the canonical service slices

Admin payloads come in two shapes: the ``tours`` list plus ``hotel_service``
object, and the older flat ``tour_id``/``desired_date``/``hotel_*`` fields.
Both end up as a list of :class:`TourItem` and an optional
:class:`HotelService`.
"""
import re
from datetime import datetime, timezone
from typing import Optional, List

from pydantic import BaseModel

from application.commands import (
    AdminBookingFields, AdminUpdateBookingCommand, HotelServiceInput, TourItemInput,
    TOUR_FIELDS, HOTEL_FIELDS,
)
from domain.entities import Booking, has_text
from domain.enums import CarType, RoomType
from domain.exceptions import BookingValidationError, NotFoundError
from domain.repositories import AbstractUnitOfWork
from domain.value_objects import DEFAULT_ROOM_TYPE, HotelRoom, HotelService, TourItem

DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MAX_PARTY = 50


def parse_booking_date(value) -> datetime:
    """Parse ``YYYY-MM-DD`` (midnight UTC) or a full ISO-8601 timestamp"""
    text = str(value or "").strip()
    if not text:
        raise BookingValidationError("Invalid date format")

    try:
        if DATE_ONLY.match(text):
            return datetime.strptime(text, "%Y-%m-%d").replace(tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise BookingValidationError("Invalid date format")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_optional_date(value) -> Optional[datetime]:
    if value is None or not str(value).strip():
        return None
    return parse_booking_date(value)


def normalize_nullable_string(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = value.strip()
    return trimmed or None


def _check_hotel_dates(check_in: Optional[datetime], check_out: Optional[datetime]) -> None:
    if check_in and check_out and check_out < check_in:
        raise BookingValidationError("Hotel check-out date must be after check-in date")


def party_size(value: Optional[int], default: int, minimum: int, field: str) -> int:
    if value is None:
        return default
    if value < minimum or value > MAX_PARTY:
        raise BookingValidationError(f"{field} must be between {minimum} and {MAX_PARTY}")
    return value


class ServiceSlices(BaseModel):
    """Canonical service shape handed to the Booking aggregate"""
    tour_items: List[TourItem] = []
    room_type: Optional[RoomType] = None
    hotel_service: Optional[HotelService] = None
    legacy_hotel_room_type: Optional[str] = None
    legacy_hotel_guests: Optional[int] = None


class ServiceNormalizer:
    """Builds :class:`ServiceSlices` inside an open unit of work"""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    # ==================== ENTRY POINTS ====================
    async def for_create(self, command: AdminBookingFields) -> ServiceSlices:
        if command.tours is not None:
            tour_items = await self._build_tour_items(command.tours)
        elif command.tour_id:
            tour_items = [await self._legacy_tour_item(
                tour_id=command.tour_id,
                desired_date=parse_optional_date(command.desired_date),
                adults=command.adults,
                children=command.children,
            )]
        else:
            tour_items = []

        slices = ServiceSlices(
            tour_items=tour_items,
            room_type=(command.room_type or RoomType.double) if tour_items else None,
        )

        if command.hotel_service is not None:
            slices.hotel_service = await self._build_hotel_service(command.hotel_service)
        elif self._has_legacy_hotel_input(command):
            guests = command.hotel_guests
            if guests is not None:
                guests = party_size(guests, 1, 1, "hotelGuests")
            slices.hotel_service = self._legacy_hotel_service(
                name=normalize_nullable_string(command.hotel_name),
                check_in=parse_optional_date(command.hotel_check_in),
                check_out=parse_optional_date(command.hotel_check_out),
                notes=normalize_nullable_string(command.hotel_notes),
            )
            slices.legacy_hotel_room_type = normalize_nullable_string(command.hotel_room_type)
            slices.legacy_hotel_guests = guests

        return slices

    async def for_update(self, command: AdminUpdateBookingCommand, existing: Booking) -> ServiceSlices:
        """Recompute only the slices the patch touches; keep the rest as stored"""
        slices = ServiceSlices(
            tour_items=list(existing.tour_items),
            room_type=existing.room_type,
            hotel_service=existing.hotel_service,
            legacy_hotel_room_type=existing.hotel_room_type,
            legacy_hotel_guests=existing.hotel_guests,
        )

        if command.supplied(*TOUR_FIELDS):
            await self._patch_tours(command, existing, slices)

        if command.supplied(*HOTEL_FIELDS):
            await self._patch_hotel(command, existing, slices)

        return slices

    def touches_services(self, command: AdminUpdateBookingCommand) -> bool:
        return command.supplied(*TOUR_FIELDS, *HOTEL_FIELDS)

    # ==================== TOURS ====================
    async def _patch_tours(self, command: AdminUpdateBookingCommand, existing: Booking, slices: ServiceSlices) -> None:
        if command.supplied("room_type"):
            slices.room_type = command.room_type

        if command.supplied("tours"):
            slices.tour_items = await self._build_tour_items(command.tours or [])
        elif command.supplied("tour_id", "desired_date", "adults", "children"):
            base = existing.tour_items[0] if existing.tour_items else None
            tour_id = command.tour_id if command.supplied("tour_id") else (base.tour_id if base else None)

            if not tour_id:
                slices.tour_items = []
            else:
                desired_date = (
                    parse_optional_date(command.desired_date)
                    if command.supplied("desired_date")
                    else (base.desired_date if base else None)
                )
                adults = command.adults if command.supplied("adults") else (base.adults if base else None)
                children = command.children if command.supplied("children") else (base.children if base else None)
                item = await self._legacy_tour_item(tour_id, desired_date, adults, children)
                if base is not None:
                    item = item.model_copy(update={"item_id": base.item_id, "car_type": base.car_type})
                slices.tour_items = [item] + list(existing.tour_items[1:])

        if not slices.tour_items:
            slices.room_type = None
        elif slices.room_type is None:
            slices.room_type = RoomType.double

    async def _build_tour_items(self, inputs: List[TourItemInput]) -> List[TourItem]:
        items = []
        for entry in inputs:
            await self._require_tour(entry.tour_id)
            items.append(TourItem(
                tour_id=entry.tour_id,
                desired_date=parse_booking_date(entry.desired_date),
                adults=party_size(entry.adults, 1, 1, "adults"),
                children=party_size(entry.children, 0, 0, "children"),
                car_type=entry.car_type or CarType.SEDAN,
            ))
        return items

    async def _legacy_tour_item(self, tour_id, desired_date: Optional[datetime], adults, children) -> TourItem:
        if desired_date is None:
            raise BookingValidationError("Tour date is required when tour service is provided")
        await self._require_tour(tour_id)
        return TourItem(
            tour_id=tour_id,
            desired_date=desired_date,
            adults=party_size(adults, 1, 1, "adults"),
            children=party_size(children, 0, 0, "children"),
            car_type=CarType.SEDAN,
        )

    async def _require_tour(self, tour_id) -> None:
        tour = await self.uow.tours.find_by_id(tour_id)
        if tour is None:
            raise NotFoundError("Tour not found")

    # ==================== HOTEL ====================
    async def _patch_hotel(self, command: AdminUpdateBookingCommand, existing: Booking, slices: ServiceSlices) -> None:
        if command.supplied("hotel_service"):
            slices.legacy_hotel_room_type = None
            slices.legacy_hotel_guests = None
            if command.hotel_service is None:
                slices.hotel_service = None
                return
            service = await self._build_hotel_service(command.hotel_service)
            if existing.hotel_service is not None:
                # update in place rather than delete-and-recreate
                service = service.model_copy(update={"service_id": existing.hotel_service.service_id})
            slices.hotel_service = service
            return

        current = existing.hotel_service

        def patched(field: str, stored, transform):
            return transform(getattr(command, field)) if command.supplied(field) else stored

        name = patched("hotel_name", current.hotel_name if current else None, normalize_nullable_string)
        check_in = patched("hotel_check_in", current.check_in if current else None, parse_optional_date)
        check_out = patched("hotel_check_out", current.check_out if current else None, parse_optional_date)
        notes = patched("hotel_notes", current.notes if current else None, normalize_nullable_string)
        room_type = patched("hotel_room_type", existing.hotel_room_type, normalize_nullable_string)
        guests = patched("hotel_guests", existing.hotel_guests, lambda value: value)
        if guests is not None:
            guests = party_size(guests, 1, 1, "hotelGuests")

        if not any([name, check_in, check_out, notes, room_type, guests is not None]):
            slices.hotel_service = None
            slices.legacy_hotel_room_type = None
            slices.legacy_hotel_guests = None
            return

        service = self._legacy_hotel_service(name, check_in, check_out, notes)

        if current is not None and current.is_linked and name == current.hotel_name:
            rooms = current.rooms
            if command.supplied("hotel_room_type", "hotel_guests"):
                fallback_type = rooms[0].room_type if rooms else DEFAULT_ROOM_TYPE
                rooms = [HotelRoom(room_type=room_type or fallback_type, guest_count=guests or 1)]
            service = current.model_copy(update={
                "check_in": check_in,
                "check_out": check_out,
                "notes": notes,
                "rooms": rooms,
            })
        elif current is not None:
            service = service.model_copy(update={"service_id": current.service_id})

        slices.hotel_service = service
        slices.legacy_hotel_room_type = room_type
        slices.legacy_hotel_guests = guests

    async def _build_hotel_service(self, data: HotelServiceInput) -> HotelService:
        hotel = await self.uow.hotels.find_by_id(data.hotel_id)
        if hotel is None:
            raise NotFoundError("Hotel not found")

        check_in = parse_optional_date(data.check_in)
        check_out = parse_optional_date(data.check_out)
        _check_hotel_dates(check_in, check_out)

        rooms = [
            HotelRoom(
                room_type=room.room_type.strip(),
                guest_count=party_size(room.guest_count, 1, 1, "guestCount"),
            )
            for room in (data.rooms or [])
            if has_text(room.room_type)
        ]
        if not rooms:
            rooms = [HotelRoom()]

        return HotelService(
            hotel_id=hotel.hotel_id,
            hotel_name=hotel.name,
            check_in=check_in,
            check_out=check_out,
            notes=normalize_nullable_string(data.notes),
            send_request_to_hotel=bool(data.send_request_to_hotel),
            rooms=rooms,
        )

    def _legacy_hotel_service(
        self,
        name: Optional[str],
        check_in: Optional[datetime],
        check_out: Optional[datetime],
        notes: Optional[str],
    ) -> HotelService:
        if not name:
            raise BookingValidationError("Hotel name is required when hotel service is provided")
        _check_hotel_dates(check_in, check_out)
        return HotelService(hotel_name=name, check_in=check_in, check_out=check_out, notes=notes)

    @staticmethod
    def _has_legacy_hotel_input(command: AdminBookingFields) -> bool:
        return (
            has_text(command.hotel_name)
            or has_text(command.hotel_check_in)
            or has_text(command.hotel_check_out)
            or has_text(command.hotel_room_type)
            or command.hotel_guests is not None
            or has_text(command.hotel_notes)
        )
