"""Dispatcher routing validated events to their handlers.

The routing table is closed: it is built once from the registered handlers
and keyed by EventKind. Types outside the table resolve to
EventKind.UNHANDLED and are acknowledged as a no-op success, because the
webhook response must still confirm receipt.
"""

import asyncio
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any

from payhook.core.event import WebhookEvent
from payhook.core.handler import Handler
from payhook.core.kinds import EventKind
from payhook.core.logging import get_logger
from payhook.core.validator import ValidationErrorKind, WebhookValidationError


class HandlerError(WebhookValidationError):
    """Raised when a routed handler fails.

    Attributes:
        handler: Name of the failing handler.
        original: The exception raised by the handler.
    """

    def __init__(self, handler: str, event: WebhookEvent, original: Exception) -> None:
        self.handler = handler
        self.original = original
        super().__init__(
            f"Handler {handler} failed: {original}",
            ValidationErrorKind.HANDLER_ERROR,
            event.id,
            {**event.log_context(), "handler": handler, "error": str(original)},
        )


@dataclass
class DispatchStats:
    """Counters since the Dispatcher was created."""

    routed: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    rejected: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    unhandled: int = 0
    handler_errors: dict[str, int] = field(default_factory=lambda: defaultdict(int))


class Dispatcher:
    """Routes each event to the single handler owning its kind.

    Args:
        handlers: Handlers to register. Each kind may be claimed once.
        handler_timeout: Optional per-call timeout in seconds. None (the
            default) lets a slow handler run to completion.
    """

    def __init__(self, handlers: list[Handler], handler_timeout: float | None = None) -> None:
        self.handlers = handlers
        self.handler_timeout = handler_timeout
        self._log = get_logger("payhook.dispatcher")
        self._stats = DispatchStats()
        self._routes: dict[EventKind, Handler] = self._build_routes()

    def _build_routes(self) -> dict[EventKind, Handler]:
        routes: dict[EventKind, Handler] = {}
        for handler in self.handlers:
            if not isinstance(handler.handles, list):
                raise TypeError(
                    f"{handler.name}.handles must be a list[EventKind], "
                    f"got {type(handler.handles).__name__}"
                )
            for kind in handler.handles:
                if not isinstance(kind, EventKind):
                    raise TypeError(
                        f"{handler.name}.handles must contain only EventKind members, "
                        f"found {type(kind).__name__}: {kind!r}"
                    )
                if kind is EventKind.UNHANDLED:
                    raise ValueError(f"{handler.name} cannot claim EventKind.UNHANDLED")
                if kind in routes:
                    raise ValueError(
                        f"{kind.value} is claimed by both {routes[kind].name} and {handler.name}"
                    )
                routes[kind] = handler
        return routes

    @property
    def routes(self) -> dict[EventKind, Handler]:
        return dict(self._routes)

    def handler_for(self, event_type: str) -> Handler | None:
        return self._routes.get(EventKind.from_type(event_type))

    def get_stats(self) -> DispatchStats:
        """Return a snapshot of the counters."""
        return DispatchStats(
            routed=defaultdict(int, self._stats.routed),
            rejected=defaultdict(int, self._stats.rejected),
            unhandled=self._stats.unhandled,
            handler_errors=defaultdict(int, self._stats.handler_errors),
        )

    async def _invoke_handler(self, handler: Handler, event: WebhookEvent) -> bool:
        call: Any = handler.handle(event)
        if self.handler_timeout is not None:
            try:
                result = await asyncio.wait_for(call, timeout=self.handler_timeout)
            except TimeoutError:
                raise TimeoutError(
                    f"Handler {handler.name} timed out after {self.handler_timeout}s"
                ) from None
        else:
            result = await call

        if not isinstance(result, bool):
            raise TypeError(f"Handler {handler.name} must return bool, got {type(result).__name__}")
        return result

    async def route(self, event: WebhookEvent) -> bool:
        """Invoke the handler owning the event's kind.

        Returns:
            The handler's result, or True for kinds without a handler.

        Raises:
            HandlerError: If the handler raised or returned a non-bool.
        """
        kind = EventKind.from_type(event.type)
        handler = self._routes.get(kind)
        context = event.log_context()

        if handler is None:
            self._stats.unhandled += 1
            self._log.info(
                f"Unhandled event type: {event.type}",
                extra={**context, "kind": kind.value},
            )
            return True

        self._log.info(
            f"Dispatching {event.type} to {handler.name}",
            extra={**context, "handler": handler.name},
        )
        try:
            ok = await self._invoke_handler(handler, event)
        except Exception as e:
            self._stats.handler_errors[handler.name] += 1
            self._log.error(
                f"Handler {handler.name} raised exception: {e}",
                extra={
                    **context,
                    "handler": handler.name,
                    "error": str(e),
                    "error_kind": ValidationErrorKind.HANDLER_ERROR.value,
                },
            )
            raise HandlerError(handler.name, event, e) from e

        if ok:
            self._stats.routed[handler.name] += 1
        else:
            self._stats.rejected[handler.name] += 1
            self._log.warning(
                f"Handler {handler.name} rejected event",
                extra={**context, "handler": handler.name},
            )
        return ok
