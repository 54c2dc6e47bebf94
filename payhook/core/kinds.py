"""Closed set of event kinds and their retry priorities."""

from enum import Enum, IntEnum


class EventKind(str, Enum):
    """Every upstream event type this service knows how to route.

    Anything else resolves to UNHANDLED, which is acknowledged and logged
    rather than treated as an error.
    """

    SETUP_INTENT_SUCCEEDED = "setup_intent.succeeded"
    SETUP_INTENT_REQUIRES_ACTION = "setup_intent.requires_action"
    INVOICE_CREATED = "invoice.created"
    INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
    INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
    SUBSCRIPTION_CREATED = "customer.subscription.created"
    SUBSCRIPTION_UPDATED = "customer.subscription.updated"
    SUBSCRIPTION_DELETED = "customer.subscription.deleted"
    PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
    PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"
    CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
    UNHANDLED = "unhandled"

    @classmethod
    def from_type(cls, event_type: str) -> "EventKind":
        try:
            kind = cls(event_type)
        except ValueError:
            return cls.UNHANDLED
        return kind


class Priority(IntEnum):
    """Retry aggressiveness tier. Lower value means retry sooner and more often."""

    HIGH = 1
    MEDIUM = 2
    LOW = 3


EVENT_PRIORITY: dict[EventKind, Priority] = {
    EventKind.SETUP_INTENT_SUCCEEDED: Priority.HIGH,
    EventKind.INVOICE_PAYMENT_SUCCEEDED: Priority.HIGH,
    EventKind.INVOICE_PAYMENT_FAILED: Priority.HIGH,
    EventKind.PAYMENT_INTENT_FAILED: Priority.HIGH,
    EventKind.CHECKOUT_SESSION_COMPLETED: Priority.HIGH,
    EventKind.SUBSCRIPTION_CREATED: Priority.MEDIUM,
    EventKind.SUBSCRIPTION_UPDATED: Priority.MEDIUM,
    EventKind.SUBSCRIPTION_DELETED: Priority.MEDIUM,
    EventKind.PAYMENT_INTENT_SUCCEEDED: Priority.MEDIUM,
    EventKind.INVOICE_CREATED: Priority.LOW,
    EventKind.SETUP_INTENT_REQUIRES_ACTION: Priority.LOW,
}


def priority_for(event_type: str) -> Priority:
    """Return the priority tier for an event type, MEDIUM when unknown."""
    return EVENT_PRIORITY.get(EventKind.from_type(event_type), Priority.MEDIUM)
