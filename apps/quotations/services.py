import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from apps.audit.services import record_audit
from apps.catalog.models import Product
from apps.catalog.pricing import resolve_price
from apps.common.exceptions import InvalidState, parse_uuid
from apps.notifications.events import NewQuotation, QuotationCancelledByCustomer, QuotationStatusUpdate
from apps.notifications.services import notify
from apps.quotations.models import Quotation, QuotationLine, QuotationStatus

logger = logging.getLogger(__name__)

VENDOR_STATUSES = frozenset({QuotationStatus.SENT, QuotationStatus.APPROVED, QuotationStatus.REJECTED})
CUSTOMER_STATUSES = frozenset({QuotationStatus.CANCELLED_BY_CUSTOMER})


def _group_by_vendor(items):
    product_ids = [parse_uuid(item["product"], field="product") for item in items]
    products = Product.objects.select_related("vendor").in_bulk(product_ids)

    groups = {}
    for product_id, item in zip(product_ids, items):
        product = products.get(product_id)
        if product is None:
            raise NotFound(f"Product {product_id} not found.")
        if not product.is_active:
            raise ValidationError({"items": f"Product '{product.name}' is not available for rent."})
        if item["quantity"] > product.stock:
            raise ValidationError(
                {"items": f"Only {product.stock} unit(s) of '{product.name}' exist; {item['quantity']} requested."}
            )
        groups.setdefault(product.vendor_id, []).append((product, item))
    return groups


def build_quotations(*, actor, items, notes=""):
    """Create one draft quotation per vendor present in ``items``.

    ``items`` is a list of ``{"product", "quantity", "start", "end"}``. Every
    line is priced before anything is written, and all quotations of the
    request are created in one transaction.
    """
    if not items:
        raise ValidationError({"items": "At least one item is required."})

    tax_rate = settings.RENTAL_TAX_RATE
    drafts = []
    for lines in _group_by_vendor(items).values():
        priced = [
            (product, item, resolve_price(product, item["quantity"], item["start"], item["end"]))
            for product, item in lines
        ]
        subtotal = sum((quote.line_total for _, _, quote in priced), Decimal("0.00"))
        tax = (subtotal * tax_rate).quantize(Decimal("0.01"))
        drafts.append((lines[0][0].vendor, priced, subtotal, tax))

    created = []
    with transaction.atomic():
        for vendor, priced, subtotal, tax in drafts:
            quotation = Quotation.objects.create(
                customer=actor,
                vendor=vendor,
                subtotal=subtotal,
                tax=tax,
                total=subtotal + tax,
                notes=notes or "",
            )
            QuotationLine.objects.bulk_create(
                [
                    QuotationLine(
                        quotation=quotation,
                        product=product,
                        position=position,
                        quantity=item["quantity"],
                        start=item["start"],
                        end=item["end"],
                        unit=quote.unit,
                        unit_price=quote.unit_price,
                        billed_units=quote.billed_units,
                        line_total=quote.line_total,
                    )
                    for position, (product, item, quote) in enumerate(priced)
                ]
            )
            record_audit(
                actor=actor,
                action="quotation.create",
                entity_type="quotation",
                entity_id=quotation.id,
                payload={"vendor_id": vendor.id, "total": str(quotation.total), "lines": len(priced)},
            )
            notify(
                vendor,
                NewQuotation(quotation_id=str(quotation.id), customer=actor.username, total=str(quotation.total)),
            )
            created.append(quotation)

    logger.info("Customer %s created %d quotation(s)", actor.pk, len(created))
    return created


def update_quotation_status(*, actor, quotation_id, status):
    if status not in VENDOR_STATUSES | CUSTOMER_STATUSES:
        raise ValidationError({"status": f"'{status}' cannot be set on a quotation."})

    with transaction.atomic():
        quotation = (
            Quotation.objects.select_for_update()
            .select_related("customer", "vendor")
            .filter(pk=parse_uuid(quotation_id, field="quotation"))
            .first()
        )
        if quotation is None:
            raise NotFound("Quotation not found.")
        if status in VENDOR_STATUSES and quotation.vendor_id != actor.id:
            raise PermissionDenied("Only the vendor can send, approve or reject this quotation.")
        if status in CUSTOMER_STATUSES and quotation.customer_id != actor.id:
            raise PermissionDenied("Only the customer who requested this quotation can cancel it.")
        if quotation.is_terminal:
            raise InvalidState(f"Quotation is {quotation.status} and can no longer change.")

        previous = quotation.status
        quotation.status = status
        quotation.save(update_fields=["status", "updated_at"])
        record_audit(
            actor=actor,
            action="quotation.status",
            entity_type="quotation",
            entity_id=quotation.id,
            payload={"from": previous, "to": status},
        )

        if status == QuotationStatus.CANCELLED_BY_CUSTOMER:
            notify(
                quotation.vendor,
                QuotationCancelledByCustomer(quotation_id=str(quotation.id), customer=actor.username),
            )
        else:
            notify(quotation.customer, QuotationStatusUpdate(quotation_id=str(quotation.id), status=status))
    return quotation


def delete_quotation(*, actor, quotation):
    if actor.id not in (quotation.customer_id, quotation.vendor_id):
        raise PermissionDenied("Only the parties of a quotation can delete it.")
    if quotation.status != QuotationStatus.DRAFT:
        raise InvalidState("Only draft quotations can be deleted.")
    with transaction.atomic():
        record_audit(
            actor=actor,
            action="quotation.delete",
            entity_type="quotation",
            entity_id=quotation.id,
            payload={"total": str(quotation.total)},
        )
        quotation.delete()
