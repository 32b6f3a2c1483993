"""Rental price resolution for a single line.

The tier is picked from the booked duration with two tolerances kept for
compatibility with existing quotes: a booking of at least 6.5 days is billed
weekly and one of at least 22 hours is billed daily. The number of billed
units is the duration expressed in the chosen unit, rounded up.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

from rest_framework.exceptions import ValidationError

from apps.catalog.models import RentalUnit

WEEKLY_THRESHOLD = timedelta(days=6, hours=12)
DAILY_THRESHOLD = timedelta(hours=22)

UNIT_LENGTH = {
    RentalUnit.HOUR: timedelta(hours=1),
    RentalUnit.DAY: timedelta(days=1),
    RentalUnit.WEEK: timedelta(weeks=1),
}


@dataclass(frozen=True)
class PriceQuote:
    unit: str
    unit_price: Decimal
    billed_units: int
    line_total: Decimal


def _positive(value):
    return value is not None and value > 0


def select_tier(product, duration: timedelta):
    if _positive(product.price_per_week) and duration >= WEEKLY_THRESHOLD:
        return RentalUnit.WEEK, product.price_per_week
    if _positive(product.price_per_day) and duration >= DAILY_THRESHOLD:
        return RentalUnit.DAY, product.price_per_day
    if _positive(product.price_per_hour):
        return RentalUnit.HOUR, product.price_per_hour
    return RentalUnit.DAY, product.price_per_day or Decimal("0.00")


def billed_units(duration: timedelta, unit) -> int:
    units, remainder = divmod(duration, UNIT_LENGTH[unit])
    if remainder:
        units += 1
    return max(int(units), 1)


def resolve_price(product, quantity, start, end) -> PriceQuote:
    if start is None or end is None or start >= end:
        raise ValidationError({"end": "End date must be after start date."})
    if quantity is None or quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be greater than 0."})

    duration = end - start
    unit, unit_price = select_tier(product, duration)
    if not _positive(unit_price):
        raise ValidationError({"product": f"Product '{product.name}' has no applicable pricing for this period."})

    units = billed_units(duration, unit)
    line_total = (unit_price * units * quantity).quantize(Decimal("0.01"))
    return PriceQuote(
        unit=str(unit),
        unit_price=unit_price.quantize(Decimal("0.01")),
        billed_units=units,
        line_total=line_total,
    )
