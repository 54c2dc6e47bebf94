"""Bank account setup verification handler."""

from payhook.core.event import WebhookEvent
from payhook.core.kinds import EventKind
from payhook.handlers.base import SnapshotHandler, error_message


class SetupIntentHandler(SnapshotHandler):
    """Records setup intent verification state for the enrollment flow.

    A succeeded setup intent without a customer cannot be attached to a
    payer, so it is rejected rather than recorded.
    """

    handles = [EventKind.SETUP_INTENT_SUCCEEDED, EventKind.SETUP_INTENT_REQUIRES_ACTION]

    async def handle(self, event: WebhookEvent) -> bool:
        setup_intent = event.payload
        customer_id = setup_intent.get("customer")

        if event.object_id is None:
            self._log.warning("Setup intent event without id", extra=event.log_context())
            return False

        if event.type == EventKind.SETUP_INTENT_SUCCEEDED:
            if not customer_id:
                self._log.warning(
                    "Missing customer ID",
                    extra={**event.log_context(), "setup_intent_id": event.object_id},
                )
                return False
            status = "succeeded"
        else:
            status = "requires_action"

        await self.record(
            self.keys.setup_verification(event.object_id),
            event,
            self.config.ttl.setup_verification,
            status=status,
            customerId=customer_id,
            paymentMethodId=setup_intent.get("payment_method"),
            metadata=setup_intent.get("metadata") or None,
            error=error_message(setup_intent.get("last_setup_error")),
        )
        return True
