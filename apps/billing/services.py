import logging
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F, Max
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from apps.audit.services import record_audit
from apps.billing.models import Invoice, InvoiceSequence, InvoiceStatus, Payment, PaymentStatus
from apps.common.exceptions import Conflict, InvalidState, parse_uuid
from apps.common.permissions import is_admin
from apps.common.transactions import atomic_operation
from apps.orders.models import Order, OrderStatus

logger = logging.getLogger(__name__)

INVOICE_SEQUENCE = "invoice"
ZERO = Decimal("0.00")


def _money(value, field="amount"):
    try:
        amount = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError({field: "A valid amount is required."})
    if amount <= 0:
        raise ValidationError({field: "Amount must be greater than 0."})
    return amount


def _bump_sequence():
    updated = InvoiceSequence.objects.filter(name=INVOICE_SEQUENCE).update(
        next_number=F("next_number") + 1,
        updated_at=timezone.now(),
    )
    if not updated:
        return None
    return InvoiceSequence.objects.get(name=INVOICE_SEQUENCE).next_number - 1


def next_invoice_number():
    """Hand out the next invoice number from a locked counter row.

    The UPDATE holds the row lock until the surrounding transaction ends, so
    concurrent callers get distinct numbers. The counter is seeded on first
    use above both ``INVOICE_NUMBER_START`` and any number already issued.
    """
    with transaction.atomic():
        number = _bump_sequence()
        if number is not None:
            return number

        highest = Invoice.objects.aggregate(highest=Max("number"))["highest"] or 0
        start = max(settings.INVOICE_NUMBER_START, highest + 1)
        try:
            with transaction.atomic():
                InvoiceSequence.objects.create(name=INVOICE_SEQUENCE, next_number=start + 1)
            return start
        except IntegrityError:
            number = _bump_sequence()
            if number is None:
                raise
            return number


def _ensure_party(actor, order):
    if actor.id not in (order.customer_id, order.vendor_id) and not is_admin(actor):
        raise PermissionDenied("You are not a party to this order.")


def _ensure_vendor(actor, order):
    if order.vendor_id != actor.id and not is_admin(actor):
        raise PermissionDenied("Only the order's vendor can do this.")


def _apply_delta(invoice, order, delta):
    invoice.paid = (invoice.paid + delta).quantize(Decimal("0.01"))
    invoice.due_amount = max(invoice.amount - invoice.paid, ZERO)
    if invoice.due_amount == ZERO:
        invoice.status = InvoiceStatus.PAID
    elif invoice.status == InvoiceStatus.PAID:
        invoice.status = InvoiceStatus.OVERDUE if invoice.due_date < timezone.localdate() else InvoiceStatus.SENT
    invoice.save(update_fields=["paid", "due_amount", "status", "updated_at"])

    order.paid_amount = (order.paid_amount + delta).quantize(Decimal("0.01"))
    order.balance_due = max(order.total - order.paid_amount, ZERO)
    order.save(update_fields=["paid_amount", "balance_due", "updated_at"])


def _line_items(order):
    return [
        {
            "product_id": str(line.product_id),
            "product_name": line.product_name,
            "quantity": line.quantity,
            "start": line.start.isoformat(),
            "end": line.end.isoformat(),
            "unit": line.unit,
            "unit_price": str(line.unit_price),
            "billed_units": line.billed_units,
            "line_total": str(line.line_total),
        }
        for line in order.lines.all()
    ]


def create_invoice_for_order(*, actor, order_id):
    with atomic_operation("Invoice creation"):
        order = Order.objects.select_for_update().filter(pk=parse_uuid(order_id, field="order")).first()
        if order is None:
            raise NotFound("Order not found.")
        _ensure_vendor(actor, order)
        if Invoice.objects.filter(order=order).exists():
            raise Conflict("An invoice already exists for this order.")
        if order.status == OrderStatus.CANCELLED:
            raise InvalidState("Cancelled orders cannot be invoiced.")

        issued_at = timezone.now()
        invoice = Invoice.objects.create(
            order=order,
            number=next_invoice_number(),
            amount=order.total,
            tax=order.tax,
            paid=ZERO,
            due_amount=order.total,
            status=InvoiceStatus.SENT,
            issued_at=issued_at,
            due_date=(issued_at + timedelta(days=settings.INVOICE_DUE_DAYS)).date(),
            line_items=_line_items(order),
            notes="Thank you for your business!",
            created_by=actor,
        )
        record_audit(
            actor=actor,
            action="invoice.create",
            entity_type="invoice",
            entity_id=invoice.id,
            payload={"order_id": str(order.id), "number": invoice.number, "amount": str(invoice.amount)},
        )
    logger.info("Invoice #%s issued for order %s", invoice.number, order.id)
    return invoice


def record_payment(*, actor, invoice_id, amount, method, transaction_id="", currency=None):
    amount = _money(amount)
    with atomic_operation("Payment"):
        invoice = Invoice.objects.select_for_update().filter(pk=parse_uuid(invoice_id, field="invoice_id")).first()
        if invoice is None:
            raise NotFound("Invoice not found.")
        order = Order.objects.select_for_update().get(pk=invoice.order_id)
        _ensure_party(actor, order)
        if invoice.status == InvoiceStatus.PAID:
            raise InvalidState("Invoice is already paid.")
        if amount > invoice.due_amount:
            raise ValidationError({"amount": f"Amount exceeds the outstanding balance of {invoice.due_amount}."})

        payment = Payment.objects.create(
            order=order,
            invoice=invoice,
            amount=amount,
            method=method,
            status=PaymentStatus.COMPLETED,
            transaction_id=transaction_id or "",
            currency=(currency or settings.PAYMENT_DEFAULT_CURRENCY).upper(),
            recorded_by=actor,
        )
        _apply_delta(invoice, order, amount)
        record_audit(
            actor=actor,
            action="payment.record",
            entity_type="payment",
            entity_id=payment.id,
            payload={"invoice_id": str(invoice.id), "amount": str(amount), "method": method},
        )
    return payment


def refund_payment(*, actor, payment_id, amount, reason=""):
    amount = _money(amount, field="refund_amount")
    with atomic_operation("Refund"):
        original = Payment.objects.select_for_update().filter(pk=parse_uuid(payment_id, field="payment")).first()
        if original is None:
            raise NotFound("Payment not found.")
        order = Order.objects.select_for_update().get(pk=original.order_id)
        invoice = Invoice.objects.select_for_update().get(pk=original.invoice_id)
        _ensure_vendor(actor, order)
        if original.is_refund:
            raise InvalidState("Refund entries cannot be refunded.")
        if original.status == PaymentStatus.REFUNDED:
            raise InvalidState("Payment has already been refunded.")
        if original.status != PaymentStatus.COMPLETED:
            raise InvalidState("Only completed payments can be refunded.")
        if amount > original.amount:
            raise ValidationError({"refund_amount": "Refund amount cannot exceed the original payment."})

        refund = Payment.objects.create(
            order=order,
            invoice=invoice,
            amount=-amount,
            method=original.method,
            status=PaymentStatus.REFUNDED,
            transaction_id=original.transaction_id,
            currency=original.currency,
            refund_of=original,
            refund_reason=reason or "",
            recorded_by=actor,
        )
        original.status = PaymentStatus.REFUNDED
        original.save(update_fields=["status", "updated_at"])
        _apply_delta(invoice, order, -amount)
        record_audit(
            actor=actor,
            action="payment.refund",
            entity_type="payment",
            entity_id=refund.id,
            payload={"original_payment_id": str(original.id), "amount": str(amount), "reason": reason or ""},
        )
    return refund


def flag_overdue_invoices(now=None):
    today = timezone.localdate(now) if now else timezone.localdate()
    return Invoice.objects.filter(
        status=InvoiceStatus.SENT,
        due_date__lt=today,
        due_amount__gt=0,
    ).update(status=InvoiceStatus.OVERDUE, updated_at=timezone.now())
