"""Core components of the webhook ingestion and reconciliation pipeline.

Types:
    WebhookEvent: Immutable upstream event.
    StoredEventRecord / LastObjectEventRecord: Dedupe and ordering records.
    EventKind / Priority: Closed event-type set and retry tiers.
    Validator: Duplicate and ordering checks against the event store.
    Handler / Dispatcher: Closed routing of validated events.
    WebhookProcessor: Validate-then-dispatch pipeline.
    RecoveryEngine: Replays events missing from the store.

Failure handling:
    ValidationErrorKind: DUPLICATE, OUT_OF_ORDER, REDIS_ERROR, HANDLER_ERROR.
    ValidationResult: Returned for expected outcomes.
    WebhookValidationError / HandlerError: Raised for faults.
"""

from payhook.core.config import Profile, RetryPolicy, Settings, get_config, load_config
from payhook.core.dispatcher import DispatchStats, Dispatcher, HandlerError
from payhook.core.event import LastObjectEventRecord, StoredEventRecord, WebhookEvent
from payhook.core.handler import Handler
from payhook.core.kinds import EVENT_PRIORITY, EventKind, Priority, priority_for
from payhook.core.processor import WebhookProcessor
from payhook.core.recovery import RecoveryEngine, RecoveryMode, RecoveryStats
from payhook.core.validator import (
    ValidationErrorKind,
    ValidationResult,
    Validator,
    WebhookValidationError,
)

__all__ = [
    "EVENT_PRIORITY",
    "DispatchStats",
    "Dispatcher",
    "EventKind",
    "Handler",
    "HandlerError",
    "LastObjectEventRecord",
    "Priority",
    "Profile",
    "RecoveryEngine",
    "RecoveryMode",
    "RecoveryStats",
    "RetryPolicy",
    "Settings",
    "StoredEventRecord",
    "ValidationErrorKind",
    "ValidationResult",
    "Validator",
    "WebhookEvent",
    "WebhookProcessor",
    "WebhookValidationError",
    "get_config",
    "load_config",
    "priority_for",
]
