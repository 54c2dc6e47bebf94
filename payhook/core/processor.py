"""Validate-then-dispatch pipeline shared by live delivery and recovery."""

from payhook.core.dispatcher import Dispatcher
from payhook.core.event import WebhookEvent
from payhook.core.logging import get_logger
from payhook.core.validator import ValidationResult, Validator


class WebhookProcessor:
    """Runs one event through the Validator and, if it passes, the Dispatcher."""

    def __init__(self, validator: Validator, dispatcher: Dispatcher) -> None:
        self.validator = validator
        self.dispatcher = dispatcher
        self._log = get_logger("payhook.processor")

    async def process(self, event: WebhookEvent) -> bool:
        """Process one event.

        Returns:
            True if the event was validated and its handler succeeded (or no
            handler owns its kind). False for DUPLICATE, OUT_OF_ORDER or a
            handler that rejected the event.

        Raises:
            WebhookValidationError: REDIS_ERROR from validation or
                HANDLER_ERROR from dispatch.
        """
        result = await self.check_and_route(event)
        return result.ok

    async def check_and_route(self, event: WebhookEvent) -> ValidationResult:
        result = await self.validator.check(event)
        if not result:
            return result
        routed = await self.dispatcher.route(event)
        if not routed:
            self._log.warning("Event validated but handler did not apply it", extra=result.context)
        return ValidationResult(ok=routed, context=result.context)
