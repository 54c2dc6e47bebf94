"""Shared machinery for handlers that keep status snapshots in the store."""

import json
import time
from typing import Any

from payhook.core.config import Profile
from payhook.core.event import WebhookEvent
from payhook.core.handler import Handler
from payhook.core.logging import get_logger
from payhook.store.base import EventStore
from payhook.store.keys import KeyScheme

# Event times are whole seconds; a terminal status wins ties within one
FINAL_STATUS_OFFSET = 0.5

class SnapshotHandler(Handler):
    """Handler writing the latest known status of an upstream object.

    A snapshot is skipped when the stored one came from the same event id
    (the mutation already happened) or from a newer event of any type, so
    replays and cross-type reordering never roll a status backwards.
    """

    def __init__(
        self,
        store: EventStore,
        config: Profile,
        keys: KeyScheme | None = None,
        name: str | None = None,
    ) -> None:
        super().__init__(name=name)
        self.store = store
        self.config = config
        self.keys = keys or KeyScheme(config.namespace)
        self._log = get_logger(f"payhook.handlers.{self.name}")

    async def record(
        self,
        key: str,
        event: WebhookEvent,
        ttl_seconds: int,
        *,
        final: bool = False,
        **fields: Any,
    ) -> bool:
        """Write a snapshot unless an equal or newer one exists.

        The write is an atomic compare-and-set on the snapshot ``timestamp``,
        so concurrent events for one object cannot roll each other back.

        Args:
            key: Snapshot key.
            event: Event the snapshot is derived from.
            ttl_seconds: Snapshot lifetime; 0 keeps it forever.
            final: The status is terminal. A final snapshot sorts after any
                other event created in the same second.
            **fields: Snapshot fields; None values are dropped.

        Returns:
            True if the snapshot was written.
        """
        existing = await self.store.get(key)
        if existing is not None and _stored_event_id(existing) == event.id:
            self._log.info("Snapshot already recorded for event", extra=event.log_context())
            return False

        timestamp = event.created + FINAL_STATUS_OFFSET if final else event.created
        snapshot = {
            "eventId": event.id,
            "type": event.type,
            "objectId": event.object_id,
            "timestamp": timestamp,
            "recordedAt": int(time.time() * 1000),
            **{k: v for k, v in fields.items() if v is not None},
        }
        conflict = await self.store.advance(key, json.dumps(snapshot), timestamp, ttl_seconds)
        if conflict is not None:
            self._log.info(
                "Newer snapshot already recorded",
                extra={**event.log_context(), "stored_event_id": _stored_event_id(conflict)},
            )
            return False

        self._log.info(
            f"Recorded {event.type}",
            extra={**event.log_context(), "status": fields.get("status")},
        )
        return True

def _stored_event_id(raw: str) -> str | None:
    try:
        stored = json.loads(raw)
    except ValueError:
        return None
    return stored.get("eventId") if isinstance(stored, dict) else None


def first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None

def error_message(obj: Any) -> str | None:
    if isinstance(obj, dict):
        return obj.get("message")
    return None
