"""Domain Value Objects"""
from pydantic import BaseModel, Field, validator
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from uuid import UUID, uuid4
from typing import Optional, List

from domain.enums import AmountPaidMode, CarType

CENT = Decimal("0.01")
DEFAULT_ROOM_TYPE = "Standard"


def to_money(value) -> Decimal:
    """Quantize any numeric value to currency minor units"""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


class PaymentTerms(BaseModel):
    """Value Object for the resolved financial state of a booking"""
    total_price: Decimal = Field(ge=0)
    amount_paid: Decimal = Field(ge=0)
    mode: AmountPaidMode = AmountPaidMode.FLAT
    percent: Optional[Decimal] = Field(default=None, ge=0, le=100)

    @property
    def balance_due(self) -> Decimal:
        return self.total_price - self.amount_paid

    class Config:
        frozen = True


class TourItem(BaseModel):
    """Child Entity for one scheduled tour visit inside a booking"""
    item_id: UUID = Field(default_factory=uuid4)
    tour_id: UUID
    desired_date: datetime
    adults: int = Field(default=1, ge=1, le=50)
    children: int = Field(default=0, ge=0, le=50)
    car_type: CarType = CarType.SEDAN

    class Config:
        from_attributes = True


class HotelRoom(BaseModel):
    """Child Entity for one room of a hotel service"""
    room_id: UUID = Field(default_factory=uuid4)
    room_type: str = DEFAULT_ROOM_TYPE
    guest_count: int = Field(default=1, ge=1, le=50)

    class Config:
        from_attributes = True


class HotelService(BaseModel):
    """Child Entity for the hotel stay of a booking

    ``hotel_id`` is None for legacy records that only carry a free-text
    hotel name.
    """
    service_id: UUID = Field(default_factory=uuid4)
    hotel_id: Optional[UUID] = None
    hotel_name: str
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    notes: Optional[str] = None
    send_request_to_hotel: bool = False
    rooms: List[HotelRoom] = []

    @validator('check_out')
    def check_out_not_before_check_in(cls, v, values):
        check_in = values.get('check_in')
        if v is not None and check_in is not None and v < check_in:
            raise ValueError('Hotel check-out date must be after check-in date')
        return v

    @property
    def is_linked(self) -> bool:
        return self.hotel_id is not None

    def total_guests(self) -> Optional[int]:
        if not self.rooms:
            return None
        return sum(room.guest_count for room in self.rooms)

    class Config:
        from_attributes = True
