"""Upstream event source protocol, used only by recovery."""

from dataclasses import dataclass, field
from typing import Protocol

from payhook.core.event import WebhookEvent


@dataclass(frozen=True)
class EventPage:
    """One page of upstream events.

    Attributes:
        events: Events in the order the upstream returned them.
        has_more: True if the upstream holds further events for the query.
    """

    events: list[WebhookEvent] = field(default_factory=list)
    has_more: bool = False

    def __len__(self) -> int:
        return len(self.events)


class EventSource(Protocol):
    """Lists historical events from the payment processor."""

    async def list_events(self, start: int, end: int, limit: int) -> EventPage:
        """Return up to ``limit`` events with ``start <= created <= end``."""
        ...
