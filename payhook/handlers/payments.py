"""Invoice and payment intent status handlers."""

from payhook.core.event import WebhookEvent
from payhook.core.kinds import EventKind
from payhook.handlers.base import SnapshotHandler, error_message, first


class InvoiceHandler(SnapshotHandler):
    """Tracks invoice payment outcomes under the invoice id."""

    handles = [
        EventKind.INVOICE_CREATED,
        EventKind.INVOICE_PAYMENT_SUCCEEDED,
        EventKind.INVOICE_PAYMENT_FAILED,
    ]

    async def handle(self, event: WebhookEvent) -> bool:
        invoice = event.payload
        if event.type == EventKind.INVOICE_CREATED:
            self._log.info(
                "Invoice created",
                extra={
                    **event.log_context(),
                    "customer_id": invoice.get("customer"),
                    "amount": invoice.get("total"),
                    "status": invoice.get("status") or "unknown",
                },
            )
            return True

        if event.object_id is None:
            self._log.warning("Invoice event without invoice id", extra=event.log_context())
            return False

        succeeded = event.type == EventKind.INVOICE_PAYMENT_SUCCEEDED
        await self.record(
            self.keys.payment_status(event.object_id),
            event,
            self.config.ttl.payment_status,
            status="succeeded" if succeeded else "failed",
            customerId=invoice.get("customer"),
            subscriptionId=invoice.get("subscription"),
            amount=invoice.get("total"),
            paidAt=(invoice.get("status_transitions") or {}).get("paid_at") if succeeded else None,
            nextPaymentAttempt=invoice.get("next_payment_attempt"),
            error=None if succeeded else error_message(invoice.get("last_finalization_error")),
        )
        return True


class PaymentIntentHandler(SnapshotHandler):
    """Tracks one-off payment outcomes under the payment intent id."""

    handles = [EventKind.PAYMENT_INTENT_SUCCEEDED, EventKind.PAYMENT_INTENT_FAILED]

    async def handle(self, event: WebhookEvent) -> bool:
        if event.object_id is None:
            self._log.warning("Payment intent event without id", extra=event.log_context())
            return False

        intent = event.payload
        succeeded = event.type == EventKind.PAYMENT_INTENT_SUCCEEDED
        await self.record(
            self.keys.payment_status(event.object_id),
            event,
            self.config.ttl.payment_status,
            status="succeeded" if succeeded else "failed",
            customerId=intent.get("customer"),
            amount=intent.get("amount"),
            currency=intent.get("currency"),
            paymentMethodType=first(intent.get("payment_method_types")),
            error=None if succeeded else error_message(intent.get("last_payment_error")),
        )
        return True
