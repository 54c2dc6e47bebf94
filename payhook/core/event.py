"""Webhook event model and the records persisted for it."""

import time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Stored when an event carries no identifiable object
NO_OBJECT_ID = "none"


class WebhookEvent(BaseModel):
    """Immutable notification delivered by the payment processor.

    Events arrive either through the inbound webhook endpoint or through a
    recovery scan of the upstream event list. Both paths produce the same
    model so validation and routing never care where an event came from.

    Attributes:
        id: Upstream event id (e.g. ``evt_...``).
        type: Upstream event type string used for routing.
        created: Creation time in epoch seconds, as reported upstream.
        data: Envelope holding the affected object under ``"object"``.
        account: Connected account id, if any.
        api_version: API version the event was rendered with.
        livemode: Whether the event belongs to live data.
    """

    id: str
    type: str
    created: int
    data: dict[str, Any] = Field(default_factory=dict)
    account: str | None = None
    api_version: str | None = None
    livemode: bool = False

    # The upstream adds envelope fields over time; keep only what we use.
    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("id", "type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Ensure identifiers are non-empty after whitespace stripping."""
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("created")
    @classmethod
    def validate_created(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"created must be a non-negative epoch, got: {v}")
        return v

    @classmethod
    def from_json(cls, raw: str | bytes) -> "WebhookEvent":
        """Build an event from a raw JSON payload."""
        return cls.model_validate_json(raw)

    @property
    def payload(self) -> dict[str, Any]:
        obj = self.data.get("object")
        return obj if isinstance(obj, dict) else {}

    @property
    def object_id(self) -> str | None:
        """Id of the object the event describes, None for account-level events."""
        value = self.payload.get("id")
        if isinstance(value, str) and value:
            return value
        return None

    @property
    def object_type(self) -> str | None:
        return self.payload.get("object")

    def log_context(self) -> dict[str, Any]:
        """Structured fields attached to every log line about this event."""
        return {
            "event_id": self.id,
            "event_type": self.type,
            "event_created": self.created,
            "account": self.account,
            "api_version": self.api_version,
        }


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class StoredEventRecord(_Record):
    """Proof that an event id has been processed (the dedupe record)."""

    type: str
    object_id: str = Field(alias="objectId")
    created: int
    processed_at: int = Field(alias="processedAt")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_event(cls, event: WebhookEvent) -> "StoredEventRecord":
        return cls(
            type=event.type,
            object_id=event.object_id or NO_OBJECT_ID,
            created=event.created,
            processed_at=int(time.time() * 1000),
            metadata={
                "account": event.account,
                "apiVersion": event.api_version,
                "object": event.object_type,
                "livemode": event.livemode,
            },
        )


class LastObjectEventRecord(_Record):
    """Most recent applied event for one (event type, object id) pair."""

    event_id: str = Field(alias="eventId")
    type: str
    timestamp: int
    object_id: str = Field(alias="objectId")
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_event(cls, event: WebhookEvent) -> "LastObjectEventRecord":
        if event.object_id is None:
            raise ValueError(f"event {event.id} has no object id")
        return cls(
            event_id=event.id,
            type=event.type,
            timestamp=event.created,
            object_id=event.object_id,
            metadata={
                "account": event.account,
                "apiVersion": event.api_version,
                "object": event.object_type,
            },
        )


def parse_record(model: type[_Record], raw: str | bytes | None) -> Any:
    """Decode a stored record, returning None for absent or corrupt values."""
    if raw is None:
        return None
    try:
        return model.model_validate_json(raw)
    except ValueError:
        return None
