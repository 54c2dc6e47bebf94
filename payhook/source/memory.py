"""Deterministic in-memory event source."""

from collections.abc import Iterable

from payhook.core.event import WebhookEvent
from payhook.source.base import EventPage


class InMemoryEventSource:
    """Serves a fixed set of events, newest first like the upstream list API.

    Every query is recorded in ``queries`` as ``(start, end, limit)``.
    """

    def __init__(self, events: Iterable[WebhookEvent] = ()) -> None:
        self._events: list[WebhookEvent] = list(events)
        self.queries: list[tuple[int, int, int]] = []

    def add(self, *events: WebhookEvent) -> None:
        self._events.extend(events)

    async def list_events(self, start: int, end: int, limit: int) -> EventPage:
        self.queries.append((start, end, limit))
        matching = [e for e in self._events if start <= e.created <= end]
        matching.sort(key=lambda e: (e.created, e.id), reverse=True)
        return EventPage(events=matching[:limit], has_more=len(matching) > limit)
