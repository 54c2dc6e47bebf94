"""Stripe event list as the upstream source for recovery scans."""

import asyncio
import json
from typing import Any

import stripe

from payhook.core.event import WebhookEvent
from payhook.core.logging import get_logger
from payhook.source.base import EventPage

logger = get_logger("payhook.source.stripe")


def event_from_stripe(obj: Any) -> WebhookEvent:
    """Convert a ``stripe.Event`` into a WebhookEvent.

    StripeObject renders itself as JSON, which keeps nested objects intact
    across stripe-python releases.
    """
    return WebhookEvent.model_validate(json.loads(str(obj)))


class StripeEventSource:
    """Lists events through ``stripe.StripeClient``.

    The client is passed in rather than configured globally so that several
    accounts (or a fake in tests) can coexist in one process.

    Args:
        client: A configured ``stripe.StripeClient``.
        types: Optional event type filter forwarded to the list call.
    """

    def __init__(self, client: stripe.StripeClient, types: list[str] | None = None) -> None:
        self._client = client
        self._types = types

    @classmethod
    def from_api_key(cls, api_key: str, **kwargs: Any) -> "StripeEventSource":
        return cls(stripe.StripeClient(api_key), **kwargs)

    async def list_events(self, start: int, end: int, limit: int) -> EventPage:
        params: dict[str, Any] = {"created": {"gte": start, "lte": end}, "limit": limit}
        if self._types:
            params["types"] = self._types

        # stripe-python's list call is blocking
        result = await asyncio.to_thread(self._client.events.list, params=params)

        events = []
        for obj in result.data:
            try:
                events.append(event_from_stripe(obj))
            except ValueError as e:
                logger.error(
                    f"Skipping malformed upstream event: {e}",
                    extra={"event_id": getattr(obj, "id", None), "error": str(e)},
                )
        logger.debug(
            f"Fetched {len(events)} events",
            extra={"start": start, "end": end, "limit": limit, "has_more": result.has_more},
        )
        return EventPage(events=events, has_more=bool(result.has_more))
