from dataclasses import asdict, dataclass

from django.db.models import Sum
from django.db.models.functions import Coalesce
from rest_framework.exceptions import NotFound, ValidationError

from apps.catalog.models import Product
from apps.common.exceptions import parse_uuid
from apps.orders.models import Reservation, ReservationStatus

HELD_STATUSES = (ReservationStatus.RESERVED, ReservationStatus.PICKED_UP)
RELEASED_STATUSES = (ReservationStatus.RETURNED, ReservationStatus.CANCELLED)


@dataclass(frozen=True)
class Availability:
    available: bool
    reason: str
    available_stock: int
    total_stock: int
    reserved: int

    def as_dict(self):
        return asdict(self)


def _reserved_quantity(queryset):
    return queryset.aggregate(total=Coalesce(Sum("quantity"), 0))["total"]


def check_availability(product_id, start=None, end=None, quantity=1) -> Availability:
    """Remaining stock for a product, either over [start, end) or right now.

    Read-only. Windowed checks refuse any overlap with a maintenance block
    and subtract every overlapping reservation that still holds stock.
    """
    product_uuid = parse_uuid(product_id, field="product")
    if (start is None) != (end is None):
        raise ValidationError({"end_date": "Both start_date and end_date are required for a windowed check."})
    if start is not None and end <= start:
        raise ValidationError({"end_date": "End date must be after start date."})
    if quantity is None or quantity <= 0:
        raise ValidationError({"quantity": "Quantity must be greater than 0."})

    product = Product.objects.filter(pk=product_uuid).first()
    if product is None:
        raise NotFound("Product not found.")

    if start is None:
        reserved = _reserved_quantity(Reservation.objects.filter(product=product, status__in=HELD_STATUSES))
        available_stock = product.stock - reserved
        return Availability(
            available=available_stock > 0,
            reason="Available" if available_stock > 0 else "Out of stock",
            available_stock=available_stock,
            total_stock=product.stock,
            reserved=reserved,
        )

    if product.maintenance_blocks.filter(start__lt=end, end__gt=start).exists():
        return Availability(
            available=False,
            reason="Product is under maintenance during the requested period",
            available_stock=0,
            total_stock=product.stock,
            reserved=0,
        )

    overlapping = Reservation.objects.filter(product=product, start__lt=end, end__gt=start).exclude(
        status__in=RELEASED_STATUSES
    )
    reserved = _reserved_quantity(overlapping)
    available_stock = product.stock - reserved
    is_available = available_stock >= quantity
    return Availability(
        available=is_available,
        reason="Available" if is_available else "Insufficient stock for the requested period",
        available_stock=available_stock,
        total_stock=product.stock,
        reserved=reserved,
    )
