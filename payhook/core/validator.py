"""Duplicate and ordering validation of incoming webhook events.

The validator approximates exactly-once processing over an at-least-once,
unordered delivery channel:

1. An event id that already has a dedupe record is a DUPLICATE.
2. An event older than the last applied event of the same type for the same
   object is OUT_OF_ORDER.
3. Otherwise the ordering record is advanced and the dedupe record written.

Both classifications are expected outcomes and are returned, never raised.
Only store failures raise, as REDIS_ERROR.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from payhook.core.config import Profile
from payhook.core.event import (
    LastObjectEventRecord,
    StoredEventRecord,
    WebhookEvent,
    parse_record,
)
from payhook.core.logging import get_logger
from payhook.store.base import EventStore
from payhook.store.keys import KeyScheme


class ValidationErrorKind(Enum):
    """Classification of a validation or processing failure."""

    DUPLICATE = "DUPLICATE"
    OUT_OF_ORDER = "OUT_OF_ORDER"
    REDIS_ERROR = "REDIS_ERROR"
    HANDLER_ERROR = "HANDLER_ERROR"


class WebhookValidationError(Exception):
    """Raised for infrastructure and handler faults while processing an event.

    Attributes:
        kind: REDIS_ERROR or HANDLER_ERROR.
        event_id: Id of the event being processed.
        context: Structured context (event fields plus failure details).
    """

    def __init__(
        self,
        message: str,
        kind: ValidationErrorKind,
        event_id: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.kind = kind
        self.event_id = event_id
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.kind.value}: {super().__str__()} (event {self.event_id})"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating one event. Truthy only when the event passed."""

    ok: bool
    kind: ValidationErrorKind | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.ok


class Validator:
    """Checks events against the store and records the ones that pass.

    The two writes use the store's atomic primitives: the ordering record is
    advanced with a compare-and-set on its timestamp and the dedupe record is
    written only if absent. A delivery that loses either race is classified
    exactly as if it had been seen by the preceding read.
    """

    def __init__(self, store: EventStore, config: Profile, keys: KeyScheme | None = None) -> None:
        self.store = store
        self.config = config
        self.keys = keys or KeyScheme(config.namespace)
        self._log = get_logger("payhook.validator")

    async def validate(self, event: WebhookEvent) -> bool:
        return (await self.check(event)).ok

    async def check(self, event: WebhookEvent) -> ValidationResult:
        """Validate and record one event.

        Raises:
            WebhookValidationError: REDIS_ERROR if the store cannot be read or
                written.
        """
        context = event.log_context()
        self._log.debug("Starting event validation", extra=context)

        event_key = self.keys.event(event.id)
        existing_raw = await self._store_call(
            "Failed to read dedupe record", event, context, self.store.get, event_key
        )
        if existing_raw is not None:
            existing = parse_record(StoredEventRecord, existing_raw)
            return self._reject(
                "Duplicate webhook event detected",
                ValidationErrorKind.DUPLICATE,
                {**context, "existing": existing.model_dump(by_alias=True) if existing else None},
            )

        object_id = event.object_id
        context["object_id"] = object_id
        context["object_type"] = event.object_type

        if object_id is not None:
            rejection = await self._advance_ordering(event, object_id, context)
            if rejection is not None:
                return rejection
        else:
            self._log.info(
                "Event does not have a specific object ID",
                extra={**context, "livemode": event.livemode},
            )

        record = StoredEventRecord.for_event(event)
        written = await self._store_call(
            "Failed to store event data",
            event,
            context,
            self.store.set,
            event_key,
            record.to_json(),
            self.config.ttl.webhook_event,
            only_if_absent=True,
        )
        if not written:
            # A concurrent delivery of the same id recorded it first
            return self._reject(
                "Duplicate webhook event detected",
                ValidationErrorKind.DUPLICATE,
                {**context, "concurrent": True},
            )

        self._log.info("Event validation successful", extra=context)
        return ValidationResult(ok=True, context=context)

    async def _advance_ordering(
        self, event: WebhookEvent, object_id: str, context: dict[str, Any]
    ) -> ValidationResult | None:
        last_key = self.keys.last_event(event.type, object_id)
        last_raw = await self._store_call(
            "Failed to read ordering record", event, context, self.store.get, last_key
        )
        last = parse_record(LastObjectEventRecord, last_raw)
        if last is not None and last.timestamp > event.created:
            return self._out_of_order(event, last, context)

        conflict = await self._store_call(
            "Failed to store ordering record",
            event,
            context,
            self.store.advance,
            last_key,
            LastObjectEventRecord.for_event(event).to_json(),
            event.created,
            self.config.ttl.last_event,
        )
        if conflict is not None:
            newer = parse_record(LastObjectEventRecord, conflict)
            if newer is not None:
                return self._out_of_order(event, newer, {**context, "concurrent": True})
        return None

    def _out_of_order(
        self, event: WebhookEvent, last: LastObjectEventRecord, context: dict[str, Any]
    ) -> ValidationResult:
        return self._reject(
            "Out of order event detected",
            ValidationErrorKind.OUT_OF_ORDER,
            {
                **context,
                "current_timestamp": event.created,
                "last_event": {
                    "eventId": last.event_id,
                    "timestamp": last.timestamp,
                    "type": last.type,
                },
                "time_difference": last.timestamp - event.created,
            },
        )

    def _reject(
        self, message: str, kind: ValidationErrorKind, context: dict[str, Any]
    ) -> ValidationResult:
        self._log.warning(f"{kind.value}: {message}", extra={**context, "error_kind": kind.value})
        return ValidationResult(ok=False, kind=kind, context=context)

    async def _store_call(self, what, event, context, fn, *args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            error_context = {
                **context,
                "error": str(e),
                "error_kind": ValidationErrorKind.REDIS_ERROR.value,
            }
            self._log.error(f"REDIS_ERROR: {what}", extra=error_context)
            raise WebhookValidationError(
                f"{what}: {e}",
                ValidationErrorKind.REDIS_ERROR,
                event.id,
                error_context,
            ) from e
