import logging

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from apps.audit.services import record_audit
from apps.common.exceptions import InvalidState, parse_uuid
from apps.common.permissions import is_admin
from apps.common.transactions import atomic_operation
from apps.notifications.events import OrderCancelled, OrderOverdue, OrderStatusUpdate
from apps.notifications.models import NotificationChannel
from apps.notifications.services import notify
from apps.orders.models import (
    DeliveryMethod,
    DeliveryNote,
    DeliveryNoteStatus,
    DeliveryNoteType,
    Order,
    OrderLine,
    OrderStatus,
    Reservation,
    ReservationStatus,
)
from apps.quotations.models import Quotation, QuotationStatus

logger = logging.getLogger(__name__)

# Reservations only know four states; each order status holds, releases or
# marks the stock as out with the customer.
RESERVATION_STATUS_FOR_ORDER = {
    OrderStatus.RESERVED: ReservationStatus.RESERVED,
    OrderStatus.READY_FOR_PICKUP: ReservationStatus.RESERVED,
    OrderStatus.OUT_FOR_DELIVERY: ReservationStatus.RESERVED,
    OrderStatus.IN_USE: ReservationStatus.PICKED_UP,
    OrderStatus.OVERDUE: ReservationStatus.PICKED_UP,
    OrderStatus.RETURNED: ReservationStatus.RETURNED,
    OrderStatus.COMPLETED: ReservationStatus.RETURNED,
    OrderStatus.CANCELLED: ReservationStatus.CANCELLED,
}

NON_CANCELLABLE_STATUSES = frozenset({OrderStatus.IN_USE, OrderStatus.RETURNED, OrderStatus.COMPLETED})


def _lock_order(order_id):
    order = (
        Order.objects.select_for_update()
        .select_related("customer", "vendor")
        .filter(pk=parse_uuid(order_id, field="order"))
        .first()
    )
    if order is None:
        raise NotFound("Order not found.")
    return order


def ensure_order_vendor(actor, order):
    if order.vendor_id != actor.id and not is_admin(actor):
        raise PermissionDenied("Only the order's vendor can change it.")


def _build_order_lines(order, quotation_lines):
    lines = [
        OrderLine(
            order=order,
            product=line.product,
            position=line.position,
            product_name=line.product.name,
            product_image=line.product.primary_image_url,
            quantity=line.quantity,
            start=line.start,
            end=line.end,
            unit=line.unit,
            unit_price=line.unit_price,
            billed_units=line.billed_units,
            line_total=line.line_total,
        )
        for line in quotation_lines
    ]
    return OrderLine.objects.bulk_create(lines)


def _create_reservations(order, order_lines):
    return Reservation.objects.bulk_create(
        [
            Reservation(
                order=order,
                order_line=line,
                product_id=line.product_id,
                quantity=line.quantity,
                start=line.start,
                end=line.end,
                status=ReservationStatus.RESERVED,
            )
            for line in order_lines
        ]
    )


def convert_quotation(*, actor, quotation_id, delivery_method, delivery_address=""):
    """Turn an approved quotation into an order holding one reservation per line.

    Everything is written in one transaction: the order, its lines, the
    reservations, the quotation status change and the customer notification.
    """
    delivery_address = (delivery_address or "").strip()
    if delivery_method not in DeliveryMethod.values:
        raise ValidationError({"delivery_method": f"'{delivery_method}' is not a valid delivery method."})
    if delivery_method == DeliveryMethod.DELIVERY and not delivery_address:
        raise ValidationError({"delivery_address": "A delivery address is required for delivery orders."})
    if delivery_method == DeliveryMethod.PICKUP:
        delivery_address = ""
    quotation_uuid = parse_uuid(quotation_id, field="quotation_id")

    with atomic_operation("Order conversion"):
        quotation = Quotation.objects.select_for_update().filter(pk=quotation_uuid).first()
        if quotation is None:
            raise NotFound("Quotation not found.")
        if quotation.customer_id != actor.id:
            raise PermissionDenied("Only the customer who requested this quotation can convert it.")
        if quotation.status != QuotationStatus.APPROVED:
            raise InvalidState(f"Only approved quotations can be converted; this one is {quotation.status}.")

        quotation_lines = list(quotation.lines.select_related("product").prefetch_related("product__images"))
        if not quotation_lines:
            raise InvalidState("Quotation has no lines.")
        vendor = quotation_lines[0].product.vendor
        if vendor is None:
            raise ValidationError({"quotation_id": "Could not determine the vendor for this quotation."})

        first = quotation_lines[0]
        location = settings.RENTAL_DEFAULT_PICKUP_LOCATION
        order = Order.objects.create(
            customer=actor,
            vendor=vendor,
            quotation=quotation,
            subtotal=quotation.subtotal,
            tax=quotation.tax,
            discount=quotation.discount,
            total=quotation.total,
            paid_amount=0,
            balance_due=quotation.total,
            status=OrderStatus.RESERVED,
            delivery_method=delivery_method,
            delivery_address=delivery_address,
            pickup_location=location,
            pickup_scheduled_at=first.start,
            return_location=location,
            return_scheduled_at=first.end,
        )
        order_lines = _build_order_lines(order, quotation_lines)
        _create_reservations(order, order_lines)

        quotation.status = QuotationStatus.CONVERTED
        quotation.save(update_fields=["status", "updated_at"])

        record_audit(
            actor=actor,
            action="order.create_from_quotation",
            entity_type="order",
            entity_id=order.id,
            payload={"quotation_id": str(quotation.id), "total": str(order.total), "lines": len(order_lines)},
        )
        notify(
            actor,
            OrderStatusUpdate(order_id=str(order.id), status=order.status, note="Your rental has been reserved."),
            channel=NotificationChannel.EMAIL,
        )

    logger.info("Quotation %s converted into order %s", quotation_uuid, order.id)
    return order


def _apply_status(order, status, actor, now):
    previous = order.status
    order.status = status
    update_fields = ["status", "updated_at"]

    if status == OrderStatus.CANCELLED:
        if previous != OrderStatus.CANCELLED:
            order.cancelled_by = actor
            order.cancelled_at = now
            order.cancel_reason = order.cancel_reason or "Cancelled through a status update"
            order.refund_amount = 0
    else:
        order.cancelled_by = None
        order.cancelled_at = None
        order.cancel_reason = ""
        order.refund_amount = None
    update_fields += ["cancelled_by", "cancelled_at", "cancel_reason", "refund_amount"]

    if status in (OrderStatus.IN_USE, OrderStatus.OVERDUE) and order.pickup_actual_at is None:
        order.pickup_actual_at = now
        update_fields.append("pickup_actual_at")
    if status in (OrderStatus.RETURNED, OrderStatus.COMPLETED) and order.return_actual_at is None:
        order.return_actual_at = now
        update_fields.append("return_actual_at")

    order.save(update_fields=update_fields)
    order.reservations.update(status=RESERVATION_STATUS_FOR_ORDER[status], updated_at=now)
    return previous


def update_order_status(*, actor, order_id, status):
    """Set any known status on an order and mirror it onto its reservations.

    Transitions are not ordered: every value of ``OrderStatus`` is accepted
    from every state.
    """
    if status not in OrderStatus.values:
        raise ValidationError({"status": f"'{status}' is not a valid order status."})

    with atomic_operation("Order status update"):
        order = _lock_order(order_id)
        ensure_order_vendor(actor, order)
        previous = _apply_status(order, status, actor, timezone.now())
        record_audit(
            actor=actor,
            action="order.status",
            entity_type="order",
            entity_id=order.id,
            payload={"from": previous, "to": status},
        )
        notify(order.customer, OrderStatusUpdate(order_id=str(order.id), status=status))
    return order


def cancel_order(*, actor, order_id, reason):
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError({"reason": "A cancellation reason is required."})

    with atomic_operation("Order cancellation"):
        order = _lock_order(order_id)
        if order.customer_id != actor.id and not is_admin(actor):
            raise PermissionDenied("Only the customer or an administrator can cancel this order.")
        if order.status in NON_CANCELLABLE_STATUSES:
            raise InvalidState(f"Orders that are {order.status} cannot be cancelled.")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidState("Order is already cancelled.")

        now = timezone.now()
        order.status = OrderStatus.CANCELLED
        order.cancelled_by = actor
        order.cancelled_at = now
        order.cancel_reason = reason
        # refunds are recorded separately through the payment ledger
        order.refund_amount = 0
        order.save(update_fields=["status", "cancelled_by", "cancelled_at", "cancel_reason", "refund_amount", "updated_at"])
        order.reservations.update(status=ReservationStatus.CANCELLED, updated_at=now)

        record_audit(
            actor=actor,
            action="order.cancel",
            entity_type="order",
            entity_id=order.id,
            payload={"reason": reason},
        )
        notify(order.customer, OrderCancelled(order_id=str(order.id), reason=reason))
    return order


def flag_overdue_orders(now=None):
    """Mark in-use orders past their return time as overdue, once each."""
    now = now or timezone.now()
    candidates = Order.objects.filter(
        status=OrderStatus.IN_USE,
        return_scheduled_at__lt=now,
        is_overdue_notified=False,
    ).values_list("id", flat=True)

    flagged = 0
    for order_id in list(candidates):
        with transaction.atomic():
            order = Order.objects.select_for_update().select_related("customer").get(pk=order_id)
            if order.status != OrderStatus.IN_USE or order.is_overdue_notified or order.return_scheduled_at >= now:
                continue
            order.status = OrderStatus.OVERDUE
            order.is_overdue_notified = True
            order.save(update_fields=["status", "is_overdue_notified", "updated_at"])
            order.reservations.update(status=RESERVATION_STATUS_FOR_ORDER[OrderStatus.OVERDUE], updated_at=now)
            record_audit(
                actor=None,
                action="order.overdue.auto",
                entity_type="order",
                entity_id=order.id,
                payload={"return_scheduled_at": order.return_scheduled_at.isoformat()},
            )
            notify(
                order.customer,
                OrderOverdue(order_id=str(order.id), return_scheduled_at=order.return_scheduled_at.isoformat()),
                channel=NotificationChannel.EMAIL,
            )
            flagged += 1
    return flagged


def schedule_delivery_note(*, actor, order, note_type, scheduled_at=None, driver="", checklist=None, notes=""):
    ensure_order_vendor(actor, order)
    if order.status == OrderStatus.CANCELLED:
        raise InvalidState("Cancelled orders cannot be scheduled for logistics.")
    if scheduled_at is None:
        scheduled_at = order.pickup_scheduled_at if note_type == DeliveryNoteType.PICKUP else order.return_scheduled_at
    if scheduled_at is None:
        raise ValidationError({"scheduled_at": "A schedule time is required."})

    with transaction.atomic():
        note = DeliveryNote.objects.create(
            order=order,
            note_type=note_type,
            scheduled_at=scheduled_at,
            driver=driver,
            checklist=checklist or [],
            notes=notes,
            created_by=actor,
        )
        record_audit(
            actor=actor,
            action="delivery_note.create",
            entity_type="delivery_note",
            entity_id=note.id,
            payload={"order_id": str(order.id), "type": note_type},
        )
    return note


def update_delivery_note(*, actor, note_id, **changes):
    """Apply ``changes`` to a delivery note; completing it advances the order."""
    with atomic_operation("Delivery note update"):
        note = DeliveryNote.objects.select_for_update().filter(pk=parse_uuid(note_id, field="delivery_note")).first()
        if note is None:
            raise NotFound("Delivery note not found.")
        order = _lock_order(note.order_id)
        ensure_order_vendor(actor, order)
        if note.status in (DeliveryNoteStatus.COMPLETED, DeliveryNoteStatus.FAILED):
            raise InvalidState(f"Delivery note is already {note.status}.")

        for field in ("status", "scheduled_at", "driver", "checklist", "notes", "actual_at"):
            if field in changes:
                setattr(note, field, changes[field])

        now = timezone.now()
        if note.status == DeliveryNoteStatus.COMPLETED:
            note.actual_at = note.actual_at or now
            target = OrderStatus.IN_USE if note.note_type == DeliveryNoteType.PICKUP else OrderStatus.RETURNED
            previous = _apply_status(order, target, actor, now)
            if note.note_type == DeliveryNoteType.PICKUP:
                order.pickup_actual_at = note.actual_at
                order.save(update_fields=["pickup_actual_at", "updated_at"])
            else:
                order.return_actual_at = note.actual_at
                order.save(update_fields=["return_actual_at", "updated_at"])
            notify(order.customer, OrderStatusUpdate(order_id=str(order.id), status=target))
            record_audit(
                actor=actor,
                action="order.status",
                entity_type="order",
                entity_id=order.id,
                payload={"from": previous, "to": target, "delivery_note_id": str(note.id)},
            )
        note.save()
        record_audit(
            actor=actor,
            action="delivery_note.update",
            entity_type="delivery_note",
            entity_id=note.id,
            payload={"status": note.status},
        )
    return note
