"""Subscription lifecycle handler."""

from payhook.core.event import WebhookEvent
from payhook.core.kinds import EventKind
from payhook.handlers.base import SnapshotHandler


class SubscriptionHandler(SnapshotHandler):
    """Keeps the current status of each subscription."""

    handles = [
        EventKind.SUBSCRIPTION_CREATED,
        EventKind.SUBSCRIPTION_UPDATED,
        EventKind.SUBSCRIPTION_DELETED,
    ]

    async def handle(self, event: WebhookEvent) -> bool:
        if event.object_id is None:
            self._log.warning("Subscription event without id", extra=event.log_context())
            return False

        subscription = event.payload
        deleted = event.type == EventKind.SUBSCRIPTION_DELETED
        await self.record(
            self.keys.subscription_status(event.object_id),
            event,
            self.config.ttl.subscription_status,
            final=deleted,
            status="deleted" if deleted else subscription.get("status"),
            customerId=subscription.get("customer"),
            currentPeriodEnd=subscription.get("current_period_end"),
            cancelAtPeriodEnd=subscription.get("cancel_at_period_end"),
        )
        return True
