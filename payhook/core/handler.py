"""Handler base class for routed webhook events."""

from abc import ABC, abstractmethod
from typing import ClassVar

from payhook.core.event import WebhookEvent
from payhook.core.kinds import EventKind


class Handler(ABC):
    """Base class for business handlers.

    Each Handler declares the event kinds it owns via the ``handles`` class
    attribute. A kind may be owned by at most one handler; the Dispatcher
    enforces this at registration.

    Handlers are invoked only after an event passed validation, but
    validation only guards against literal redelivery of one event id.
    Different events describing the same business transition (a "created"
    and an "updated" for one object) both reach their handlers, so every
    handler must make its own mutation idempotent.
    """

    handles: ClassVar[list[EventKind]] = []

    def __init__(self, name: str | None = None) -> None:
        self.name = name or self.__class__.__name__

    @abstractmethod
    async def handle(self, event: WebhookEvent) -> bool:
        """Apply the event.

        Args:
            event: A validated event whose kind is in ``handles``.

        Returns:
            True if the event was applied (or was already applied), False if
            it was rejected for a business reason.
        """
        ...
