"""Calendar & Revenue Aggregator - admin views over the booking set"""
import calendar
import re
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from pydantic import BaseModel

from domain.entities import Booking
from domain.enums import BookingStatus
from domain.exceptions import BookingValidationError
from domain.repositories import AbstractUnitOfWork

MONTH_FORMAT = re.compile(r"^\d{4}-\d{2}$")
ZERO = Decimal("0.00")


def parse_month(value: str, message: str = "Invalid month format. Use YYYY-MM.") -> Tuple[int, int]:
    if not isinstance(value, str) or not MONTH_FORMAT.match(value):
        raise BookingValidationError(message)
    year, month = (int(part) for part in value.split("-"))
    if month < 1 or month > 12:
        raise BookingValidationError(message)
    return year, month


def month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def next_month_start(year: int, month: int) -> datetime:
    if month == 12:
        return month_start(year + 1, 1)
    return month_start(year, month + 1)


def month_key(value: datetime) -> str:
    value = value.astimezone(timezone.utc)
    return f"{value.year}-{value.month:02d}"


# ==================== READ MODELS ====================

class CalendarDay(BaseModel):
    date: str
    booking_count: int
    bookings: List[Booking] = []


class CalendarSummary(BaseModel):
    total: int = 0
    approved: int = 0
    pending: int = 0
    rejected: int = 0
    cancelled: int = 0


class CalendarView(BaseModel):
    month: str
    summary: CalendarSummary
    days: List[CalendarDay]


class RevenueBucket(BaseModel):
    month: str
    bookings: int = 0
    total_revenue: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO

    def add(self, booking: Booking) -> None:
        self.bookings += 1
        self.total_revenue += booking.total_price
        self.total_paid += booking.amount_paid
        self.total_balance += booking.balance_due


class RevenueRange(BaseModel):
    from_month: Optional[str] = None
    to_month: Optional[str] = None


class RevenueTotals(BaseModel):
    bookings: int = 0
    total_revenue: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO


class RevenueSummary(BaseModel):
    range: RevenueRange
    totals: RevenueTotals
    items: List[RevenueBucket]


# ==================== SERVICE ====================

class ReportingService:
    """Service for calendar and revenue aggregations"""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    async def get_calendar(self, month: str) -> CalendarView:
        """Day-by-day approved bookings for a month plus a status summary of all of them"""
        year, month_number = parse_month(month, "month must be in YYYY-MM format")
        start = month_start(year, month_number)
        end = next_month_start(year, month_number)

        async with self.uow:
            bookings = await self.uow.bookings.find_all()

        in_month = [
            booking for booking in bookings
            if booking.desired_date is not None and start <= booking.desired_date < end
        ]

        summary = CalendarSummary(total=len(in_month))
        for booking in in_month:
            field = booking.status.value.lower()
            setattr(summary, field, getattr(summary, field) + 1)

        by_day = {}
        approved = sorted(
            (b for b in in_month if b.status == BookingStatus.APPROVED),
            key=lambda b: b.desired_date,
        )
        for booking in approved:
            by_day.setdefault(booking.desired_date.date().isoformat(), []).append(booking)

        days = []
        for offset in range(calendar.monthrange(year, month_number)[1]):
            key = (start + timedelta(days=offset)).date().isoformat()
            day_bookings = by_day.get(key, [])
            days.append(CalendarDay(date=key, booking_count=len(day_bookings), bookings=day_bookings))

        return CalendarView(month=month, summary=summary, days=days)

    async def get_revenue_summary(
        self,
        from_month: Optional[str] = None,
        to_month: Optional[str] = None,
    ) -> RevenueSummary:
        """Bucket bookings by the UTC month they were created in"""
        lower = month_start(*parse_month(from_month)) if from_month else None
        upper = next_month_start(*parse_month(to_month)) if to_month else None

        if from_month and to_month and month_start(*parse_month(to_month)) < lower:
            raise BookingValidationError("toMonth must be after fromMonth")

        async with self.uow:
            bookings = await self.uow.bookings.find_all()

        rows = sorted(
            (
                booking for booking in bookings
                if (lower is None or booking.created_at >= lower)
                and (upper is None or booking.created_at < upper)
            ),
            key=lambda b: b.created_at,
        )

        buckets = OrderedDict()
        for booking in rows:
            key = month_key(booking.created_at)
            buckets.setdefault(key, RevenueBucket(month=key)).add(booking)

        items = list(buckets.values())
        totals = RevenueTotals(
            bookings=sum(item.bookings for item in items),
            total_revenue=sum((item.total_revenue for item in items), ZERO),
            total_paid=sum((item.total_paid for item in items), ZERO),
            total_balance=sum((item.total_balance for item in items), ZERO),
        )

        return RevenueSummary(
            range=RevenueRange(from_month=from_month, to_month=to_month),
            totals=totals,
            items=items,
        )
