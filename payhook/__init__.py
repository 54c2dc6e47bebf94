"""payhook - payment webhook ingestion and reconciliation."""

from payhook.core import (
    Dispatcher,
    EventKind,
    Handler,
    HandlerError,
    Priority,
    Profile,
    RecoveryEngine,
    RecoveryStats,
    ValidationErrorKind,
    ValidationResult,
    Validator,
    WebhookEvent,
    WebhookProcessor,
    WebhookValidationError,
    get_config,
)
from payhook.source import EventPage, EventSource, InMemoryEventSource, StripeEventSource
from payhook.store import EventStore, InMemoryEventStore, KeyScheme, RedisEventStore

__version__ = "0.1.0"

__all__ = [
    # Core
    "WebhookEvent",
    "EventKind",
    "Priority",
    "Profile",
    "get_config",
    "Validator",
    "ValidationResult",
    "Handler",
    "Dispatcher",
    "WebhookProcessor",
    "RecoveryEngine",
    "RecoveryStats",
    # Failure handling
    "ValidationErrorKind",
    "WebhookValidationError",
    "HandlerError",
    # Stores
    "EventStore",
    "KeyScheme",
    "InMemoryEventStore",
    "RedisEventStore",
    # Sources
    "EventPage",
    "EventSource",
    "InMemoryEventSource",
    "StripeEventSource",
    # Meta
    "__version__",
]
