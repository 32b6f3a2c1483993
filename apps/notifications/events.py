"""Closed set of notification events.

Each event is a frozen dataclass tagged with the notification kind it
produces. The payload stored on a Notification row is the event's fields,
and ``event_from_payload`` rebuilds the typed event when the row is
delivered.
"""

from dataclasses import asdict, dataclass, fields
from typing import ClassVar

from apps.notifications.models import NotificationKind


@dataclass(frozen=True)
class NotificationEvent:
    kind: ClassVar[str]

    def subject(self) -> str:
        raise NotImplementedError

    def message(self) -> str:
        raise NotImplementedError

    def as_payload(self) -> dict:
        return {key: str(value) if value is not None else None for key, value in asdict(self).items()}


@dataclass(frozen=True)
class NewQuotation(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.NEW_QUOTATION

    quotation_id: str
    customer: str
    total: str

    def subject(self):
        return "New quotation request"

    def message(self):
        return f"{self.customer} requested quotation {self.quotation_id} for a total of {self.total}."


@dataclass(frozen=True)
class QuotationStatusUpdate(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.QUOTATION_STATUS_UPDATE

    quotation_id: str
    status: str

    def subject(self):
        return "Quotation updated"

    def message(self):
        return f"Quotation {self.quotation_id} is now {self.status}."


@dataclass(frozen=True)
class QuotationCancelledByCustomer(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.QUOTATION_CANCELLED_BY_CUSTOMER

    quotation_id: str
    customer: str

    def subject(self):
        return "Quotation cancelled"

    def message(self):
        return f"{self.customer} cancelled quotation {self.quotation_id}."


@dataclass(frozen=True)
class OrderStatusUpdate(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.ORDER_STATUS_UPDATE

    order_id: str
    status: str
    note: str = ""

    def subject(self):
        return "Order update"

    def message(self):
        text = f"Your order {self.order_id} is now {self.status}."
        return f"{text} {self.note}" if self.note else text


@dataclass(frozen=True)
class OrderCancelled(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.ORDER_CANCELLED

    order_id: str
    reason: str

    def subject(self):
        return "Order cancelled"

    def message(self):
        return f"Your order {self.order_id} was cancelled. Reason: {self.reason}"


@dataclass(frozen=True)
class OrderOverdue(NotificationEvent):
    kind: ClassVar[str] = NotificationKind.ORDER_OVERDUE

    order_id: str
    return_scheduled_at: str

    def subject(self):
        return "Rental overdue"

    def message(self):
        return (
            f"Your rental for order {self.order_id} was due back at {self.return_scheduled_at}. "
            "Please return the items as soon as possible to avoid late fees."
        )


EVENT_TYPES = {
    event.kind: event
    for event in (
        NewQuotation,
        QuotationStatusUpdate,
        QuotationCancelledByCustomer,
        OrderStatusUpdate,
        OrderCancelled,
        OrderOverdue,
    )
}


def event_from_payload(kind, payload):
    try:
        event_type = EVENT_TYPES[kind]
    except KeyError:
        raise ValueError(f"Unknown notification kind: {kind}")
    names = {field.name for field in fields(event_type)}
    return event_type(**{key: value for key, value in payload.items() if key in names})
