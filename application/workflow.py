"""Decision Workflow - notifications and emails that follow a committed decision

Everything here runs after the transaction has committed. A failing
notification or email is logged and dropped; it never undoes the state
change that triggered it.
"""
import logging
from typing import Optional, Awaitable

from domain.entities import Booking, BookingChangeRequest, Customer, Hotel, Tour
from domain.enums import NotificationType
from domain.gateways import NotificationGateway, EmailGateway

logger = logging.getLogger(__name__)


def to_date_only(value) -> Optional[str]:
    return value.date().isoformat() if value else None


def resolve_recipient(booking: Booking, customer: Optional[Customer]) -> Optional[str]:
    """Registered user email, else guest email, else nobody"""
    if customer is not None and customer.email:
        return customer.email
    return booking.guest_email or None


class BookingNotifier:
    """Sends the user-facing side effects of booking decisions"""

    def __init__(self, notifications: NotificationGateway, emails: EmailGateway):
        self.notifications = notifications
        self.emails = emails

    async def _safely(self, action: str, effect: Awaitable) -> None:
        try:
            await effect
        except Exception:
            logger.exception("Side effect '%s' failed", action)

    async def _notify(self, booking: Booking, type: NotificationType, title: str, body: str, **metadata) -> None:
        if booking.user_id is None:
            return
        metadata = {"bookingId": str(booking.booking_id), **metadata}
        await self._safely(
            type.value,
            self.notifications.create_for_user(booking.user_id, type, title, body, metadata),
        )

    async def _email(self, recipient: Optional[str], template: str, subject: str, text: str, payload: dict) -> None:
        if not recipient:
            logger.debug("No recipient for '%s'; skipping email", template)
            return
        await self._safely(
            template,
            self.emails.send_template(template, recipient, subject, text, payload),
        )

    # ==================== BOOKINGS ====================
    async def booking_created(self, booking: Booking, customer: Optional[Customer], tour: Optional[Tour]) -> None:
        desired = to_date_only(booking.desired_date)
        await self._notify(
            booking,
            NotificationType.BOOKING_CREATED,
            "Booking submitted",
            f"Your booking for {desired} is pending approval.",
        )
        if tour is None or desired is None:
            return
        await self._email(
            resolve_recipient(booking, customer),
            "booking-created",
            "Your booking is received",
            f"Booking {booking.booking_id} for {tour.title_en} ({desired}) is pending admin approval.",
            {"bookingId": str(booking.booking_id), "tourTitle": tour.title_en, "desiredDate": desired},
        )

    async def booking_decided(
        self,
        booking: Booking,
        customer: Optional[Customer],
        decision: str,
        admin_note: Optional[str] = None,
    ) -> None:
        types = {
            "approved": NotificationType.BOOKING_APPROVED,
            "rejected": NotificationType.BOOKING_REJECTED,
            "cancelled": NotificationType.BOOKING_CANCELLED,
        }
        await self._notify(
            booking,
            types[decision],
            f"Booking {decision}",
            f"Booking {booking.booking_id} was {decision}.",
        )

        recipient = resolve_recipient(booking, customer)
        if decision == "approved" and customer is None and booking.guest_email:
            guest_name = booking.guest_name or "Guest"
            await self._email(
                recipient,
                "booking-approved-confirmation",
                "Your booking is confirmed",
                f"Hello {guest_name}, your booking {booking.booking_id} has been approved. "
                f"Thank you for choosing VibeGeorgia.",
                {"bookingId": str(booking.booking_id), "guestName": guest_name},
            )
            return

        note_part = f" Admin note: {admin_note}" if admin_note else ""
        await self._email(
            recipient,
            f"booking-{decision}",
            f"Your booking was {decision}",
            f"Booking {booking.booking_id} has been {decision}.{note_part}",
            {"bookingId": str(booking.booking_id), "decision": decision, "adminNote": admin_note},
        )

    async def hotel_inquiry(self, booking: Booking, hotel: Hotel, customer: Optional[Customer]) -> None:
        if customer is not None and customer.full_name:
            guest_name = customer.full_name
        else:
            guest_name = booking.guest_name or "Guest customer"
        await self._email(
            hotel.email,
            "hotel-inquiry-request",
            f"Booking inquiry request for {hotel.name}",
            f"A booking inquiry ({booking.booking_id}) was created for guest {guest_name}. "
            f"Please confirm availability.",
            {"bookingId": str(booking.booking_id), "hotelName": hotel.name, "guestName": guest_name},
        )

    # ==================== CHANGE REQUESTS ====================
    async def change_requested(self, booking: Booking, change_request: BookingChangeRequest) -> None:
        await self._notify(
            booking,
            NotificationType.BOOKING_CHANGE_REQUESTED,
            "Date change request submitted",
            f"Your date change request for booking {booking.booking_id} is pending.",
            changeRequestId=str(change_request.change_request_id),
        )

    async def change_decided(
        self,
        booking: Booking,
        customer: Optional[Customer],
        change_request: BookingChangeRequest,
        decision: str,
    ) -> None:
        types = {
            "approved": NotificationType.BOOKING_CHANGE_APPROVED,
            "rejected": NotificationType.BOOKING_CHANGE_REJECTED,
        }
        await self._notify(
            booking,
            types[decision],
            f"Date change {decision}",
            f"Date change for booking {booking.booking_id} was {decision}.",
            changeRequestId=str(change_request.change_request_id),
        )

        requested = to_date_only(change_request.requested_date)
        note_part = f" Admin note: {change_request.admin_note}" if change_request.admin_note else ""
        await self._email(
            resolve_recipient(booking, customer),
            f"booking-change-{decision}",
            f"Your booking date change was {decision}",
            f"Date change request for booking {booking.booking_id} ({requested}) was {decision}.{note_part}",
            {
                "bookingId": str(booking.booking_id),
                "requestedDate": requested,
                "decision": decision,
                "adminNote": change_request.admin_note,
            },
        )
