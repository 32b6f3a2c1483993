from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APITestCase

from apps.billing.models import Invoice, InvoiceSequence, InvoiceStatus, Payment, PaymentStatus
from apps.billing.services import flag_overdue_invoices, next_invoice_number
from apps.catalog.models import Product
from apps.orders.models import Order, OrderStatus
from apps.orders.services import convert_quotation
from apps.quotations.services import build_quotations, update_quotation_status

User = get_user_model()


class LedgerTests(APITestCase):
    def setUp(self):
        self.customer = User.objects.create_user(username="customer", password="customer123", role="CUSTOMER")
        self.other_customer = User.objects.create_user(username="customer2", password="customer123", role="CUSTOMER")
        self.vendor = User.objects.create_user(username="vendor", password="vendor123", role="VENDOR")
        self.product = Product.objects.create(vendor=self.vendor, name="Projector", stock=4, price_per_day=Decimal("50.00"))
        # 2 days x 50 = 100.00 subtotal, 18.00 tax
        self.order = self.place_order()

    def place_order(self):
        start = timezone.now().replace(microsecond=0) + timedelta(days=1)
        quotation = build_quotations(
            actor=self.customer,
            items=[{"product": str(self.product.id), "quantity": 1, "start": start, "end": start + timedelta(days=2)}],
        )[0]
        update_quotation_status(actor=self.vendor, quotation_id=quotation.id, status="approved")
        return convert_quotation(actor=self.customer, quotation_id=quotation.id, delivery_method="pickup")

    def auth_as(self, username, password):
        response = self.client.post(
            "/api/v1/auth/token/",
            {"username": username, "password": password},
            format="json",
        )
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def create_invoice(self, order=None):
        self.auth_as("vendor", "vendor123")
        return self.client.post("/api/v1/invoices/", {"order": str((order or self.order).id)}, format="json")

    def pay(self, invoice_id, amount, **extra):
        self.auth_as("customer", "customer123")
        return self.client.post(
            "/api/v1/payments/",
            {"invoice_id": invoice_id, "amount": amount, "method": "upi", **extra},
            format="json",
        )

    def refund(self, payment_id, amount, reason="Damaged on arrival"):
        self.auth_as("vendor", "vendor123")
        return self.client.post(
            f"/api/v1/payments/{payment_id}/refund/",
            {"refund_amount": amount, "reason": reason},
            format="json",
        )

    def assert_ledger(self, invoice_id, paid, status):
        invoice = Invoice.objects.get(pk=invoice_id)
        order = Order.objects.get(pk=invoice.order_id)
        self.assertEqual(invoice.paid, Decimal(paid))
        self.assertEqual(invoice.due_amount, invoice.amount - invoice.paid)
        self.assertEqual(invoice.status, status)
        self.assertEqual(order.paid_amount, Decimal(paid))
        self.assertEqual(order.balance_due, order.total - order.paid_amount)

    def test_invoice_is_issued_once_per_order(self):
        response = self.create_invoice()
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data["number"], 1001)
        self.assertEqual(response.data["status"], InvoiceStatus.SENT)
        self.assertEqual(Decimal(response.data["amount"]), Decimal("118.00"))
        self.assertEqual(Decimal(response.data["due_amount"]), Decimal("118.00"))
        self.assertEqual(Decimal(response.data["tax"]), Decimal("18.00"))
        self.assertEqual(response.data["line_items"][0]["product_name"], "Projector")
        self.assertEqual(response.data["notes"], "Thank you for your business!")

        duplicate = self.create_invoice()
        self.assertEqual(duplicate.status_code, 409)
        self.assertEqual(Invoice.objects.count(), 1)

        second = self.create_invoice(self.place_order())
        self.assertEqual(second.data["number"], 1002)

    def test_invoice_creation_rules(self):
        self.auth_as("customer", "customer123")
        self.assertEqual(self.client.post("/api/v1/invoices/", {"order": str(self.order.id)}, format="json").status_code, 403)

        Order.objects.filter(pk=self.order.pk).update(status=OrderStatus.CANCELLED, cancelled_at=timezone.now())
        cancelled = self.create_invoice()
        self.assertEqual(cancelled.status_code, 400)
        self.assertEqual(cancelled.data["code"], "invalid_state")

        self.assertEqual(self.create_invoice(order=Order(pk="00000000-0000-0000-0000-000000000000")).status_code, 404)

    def test_payments_reduce_balances_until_paid(self):
        invoice_id = self.create_invoice().data["id"]

        first = self.pay(invoice_id, "50.00", transaction_id="UPI-1")
        self.assertEqual(first.status_code, 201)
        self.assertEqual(first.data["status"], PaymentStatus.COMPLETED)
        self.assertEqual(first.data["currency"], "INR")
        self.assert_ledger(invoice_id, "50.00", InvoiceStatus.SENT)

        over = self.pay(invoice_id, "68.01")
        self.assertEqual(over.status_code, 400)
        self.assert_ledger(invoice_id, "50.00", InvoiceStatus.SENT)

        rest = self.pay(invoice_id, "68.00", currency="usd")
        self.assertEqual(rest.status_code, 201)
        self.assertEqual(rest.data["currency"], "USD")
        self.assert_ledger(invoice_id, "118.00", InvoiceStatus.PAID)

        paid = self.pay(invoice_id, "1.00")
        self.assertEqual(paid.status_code, 400)
        self.assertEqual(paid.data["code"], "invalid_state")

    def test_payment_validation_and_access(self):
        invoice_id = self.create_invoice().data["id"]
        self.assertEqual(self.pay(invoice_id, "0").status_code, 400)
        self.assertEqual(self.pay(invoice_id, "-5.00").status_code, 400)
        self.assertEqual(self.pay("nope", "5.00").status_code, 400)

        self.auth_as("customer2", "customer123")
        stranger = self.client.post(
            "/api/v1/payments/",
            {"invoice_id": invoice_id, "amount": "5.00", "method": "cash"},
            format="json",
        )
        self.assertEqual(stranger.status_code, 403)
        self.assertEqual(self.client.get("/api/v1/invoices/").data["count"], 0)
        self.assertEqual(self.client.get(f"/api/v1/invoices/{invoice_id}/").status_code, 403)
        self.assertEqual(Payment.objects.count(), 0)

    def test_refund_restores_balances_and_reopens_invoice(self):
        invoice_id = self.create_invoice().data["id"]
        payment_id = self.pay(invoice_id, "118.00").data["id"]
        self.assert_ledger(invoice_id, "118.00", InvoiceStatus.PAID)

        self.auth_as("customer", "customer123")
        self.assertEqual(
            self.client.post(f"/api/v1/payments/{payment_id}/refund/", {"refund_amount": "10.00"}, format="json").status_code,
            403,
        )

        too_much = self.refund(payment_id, "118.01")
        self.assertEqual(too_much.status_code, 400)

        response = self.refund(payment_id, "30.00")
        self.assertEqual(response.status_code, 201)
        self.assertEqual(Decimal(response.data["amount"]), Decimal("-30.00"))
        self.assertEqual(response.data["status"], PaymentStatus.REFUNDED)
        self.assertEqual(str(response.data["refund_of"]), payment_id)
        self.assertEqual(response.data["refund_reason"], "Damaged on arrival")
        self.assertEqual(Payment.objects.get(pk=payment_id).status, PaymentStatus.REFUNDED)
        self.assert_ledger(invoice_id, "88.00", InvoiceStatus.SENT)

        self.assertEqual(self.refund(payment_id, "10.00").status_code, 400)
        self.assertEqual(self.refund(response.data["id"], "10.00").status_code, 400)
        self.assert_ledger(invoice_id, "88.00", InvoiceStatus.SENT)

        topped_up = self.pay(invoice_id, "30.00")
        self.assertEqual(topped_up.status_code, 201)
        self.assert_ledger(invoice_id, "118.00", InvoiceStatus.PAID)

    def test_refund_of_paid_invoice_past_due_date_becomes_overdue(self):
        invoice_id = self.create_invoice().data["id"]
        payment_id = self.pay(invoice_id, "118.00").data["id"]
        Invoice.objects.filter(pk=invoice_id).update(due_date=timezone.localdate() - timedelta(days=1))

        self.refund(payment_id, "18.00")
        self.assert_ledger(invoice_id, "100.00", InvoiceStatus.OVERDUE)

    def test_overdue_invoices_are_flagged(self):
        invoice_id = self.create_invoice().data["id"]
        Invoice.objects.filter(pk=invoice_id).update(due_date=timezone.localdate() - timedelta(days=1))

        self.assertEqual(flag_overdue_invoices(), 1)
        self.assertEqual(Invoice.objects.get(pk=invoice_id).status, InvoiceStatus.OVERDUE)
        self.assertEqual(flag_overdue_invoices(), 0)

    def test_sequence_is_seeded_above_existing_numbers(self):
        Invoice.objects.create(
            order=self.order,
            number=5000,
            amount=Decimal("118.00"),
            due_amount=Decimal("118.00"),
            due_date=timezone.localdate(),
        )
        self.assertEqual(next_invoice_number(), 5001)
        self.assertEqual(next_invoice_number(), 5002)
        self.assertEqual(InvoiceSequence.objects.get().next_number, 5003)
