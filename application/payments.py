"""Payment Resolver - derives the stored financial state of a booking"""
from decimal import Decimal, InvalidOperation
from typing import Optional

from domain.enums import AmountPaidMode
from domain.exceptions import BookingValidationError
from domain.value_objects import PaymentTerms, to_money


def _as_decimal(value, field: str) -> Decimal:
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BookingValidationError(f"{field} must be a number")
    if not number.is_finite():
        raise BookingValidationError(f"{field} must be a number")
    return number


def resolve_payment(
    total_price=None,
    amount_paid=None,
    mode: Optional[AmountPaidMode] = None,
    percent=None,
    fallback: Optional[PaymentTerms] = None,
) -> PaymentTerms:
    """Resolve ``(total_price, amount_paid, mode, percent)``

    Unset inputs fall back to ``fallback`` (the stored state on updates),
    then to FLAT with nothing paid. In PERCENT mode the paid amount is
    ``total * percent / 100`` rounded half-up to cents, computed here once
    and stored; in FLAT mode the percent is dropped.
    """
    if total_price is not None:
        total = to_money(_as_decimal(total_price, "totalPrice"))
    elif fallback is not None:
        total = fallback.total_price
    else:
        total = Decimal("0.00")

    if total < 0:
        raise BookingValidationError("Price values must be greater than or equal to 0")

    resolved_mode = mode or (fallback.mode if fallback else None) or AmountPaidMode.FLAT

    if resolved_mode == AmountPaidMode.PERCENT:
        if percent is not None:
            resolved_percent = _as_decimal(percent, "amountPaidPercent")
        elif fallback is not None and fallback.percent is not None:
            resolved_percent = fallback.percent
        else:
            raise BookingValidationError("amountPaidPercent is required in PERCENT mode")

        if resolved_percent < 0 or resolved_percent > 100:
            raise BookingValidationError("amountPaidPercent must be between 0 and 100")

        paid = to_money(total * resolved_percent / Decimal(100))
        return PaymentTerms(total_price=total, amount_paid=paid, mode=resolved_mode, percent=resolved_percent)

    if amount_paid is not None:
        paid = to_money(_as_decimal(amount_paid, "amountPaid"))
    elif fallback is not None:
        # switching from PERCENT keeps the amount that was last derived
        paid = fallback.amount_paid
    else:
        paid = Decimal("0.00")

    if paid < 0:
        raise BookingValidationError("Price values must be greater than or equal to 0")

    return PaymentTerms(total_price=total, amount_paid=paid, mode=AmountPaidMode.FLAT, percent=None)
