"""Default handlers keeping payment, subscription and setup status snapshots."""

from payhook.core.config import Profile
from payhook.core.handler import Handler
from payhook.handlers.base import SnapshotHandler
from payhook.handlers.payments import InvoiceHandler, PaymentIntentHandler
from payhook.handlers.setup_intents import SetupIntentHandler
from payhook.handlers.subscriptions import SubscriptionHandler
from payhook.store.base import EventStore
from payhook.store.keys import KeyScheme


def default_handlers(
    store: EventStore, config: Profile, keys: KeyScheme | None = None
) -> list[Handler]:
    """Build one instance of every built-in handler sharing a store."""
    return [
        cls(store, config, keys)
        for cls in (InvoiceHandler, PaymentIntentHandler, SubscriptionHandler, SetupIntentHandler)
    ]


__all__ = [
    "InvoiceHandler",
    "PaymentIntentHandler",
    "SetupIntentHandler",
    "SnapshotHandler",
    "SubscriptionHandler",
    "default_handlers",
]
