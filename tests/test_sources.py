"""Tests for the upstream event sources."""

from types import SimpleNamespace

import stripe

from payhook.source.memory import InMemoryEventSource
from payhook.source.stripe_source import StripeEventSource, event_from_stripe


def _stripe_event(event_id: str, created: int, **extra) -> stripe.Event:
    return stripe.Event.construct_from(
        {
            "id": event_id,
            "object": "event",
            "type": "invoice.payment_succeeded",
            "created": created,
            "livemode": False,
            "data": {"object": {"id": "in_1", "object": "invoice", "lines": {"data": []}}},
            **extra,
        },
        "sk_test",
    )


class FakeEvents:
    def __init__(self, data, has_more=False):
        self.data = data
        self.has_more = has_more
        self.calls = []

    def list(self, params=None):
        self.calls.append(params)
        return SimpleNamespace(data=self.data, has_more=self.has_more)


async def test_in_memory_source_filters_inclusively_newest_first(make_event):
    events = [make_event(created=t) for t in (5, 10, 15, 20, 25)]
    source = InMemoryEventSource(events)

    page = await source.list_events(10, 20, limit=10)

    assert [e.created for e in page.events] == [20, 15, 10]
    assert page.has_more is False
    assert source.queries == [(10, 20, 10)]


async def test_in_memory_source_truncates_to_limit(make_event):
    source = InMemoryEventSource([make_event(created=t) for t in (1, 2, 3)])

    page = await source.list_events(0, 10, limit=2)

    assert [e.created for e in page.events] == [3, 2]
    assert page.has_more is True
    assert len(page) == 2


def test_event_from_stripe_keeps_nested_objects():
    event = event_from_stripe(_stripe_event("evt_1", 1_700_000_000, account="acct_1"))

    assert event.id == "evt_1"
    assert event.account == "acct_1"
    assert event.object_id == "in_1"
    assert event.payload["lines"] == {"data": []}


async def test_stripe_source_passes_window_and_limit():
    events = FakeEvents([_stripe_event("evt_1", 100)], has_more=True)
    source = StripeEventSource(SimpleNamespace(events=events), types=["invoice.payment_succeeded"])

    page = await source.list_events(50, 150, 25)

    assert events.calls == [
        {
            "created": {"gte": 50, "lte": 150},
            "limit": 25,
            "types": ["invoice.payment_succeeded"],
        }
    ]
    assert [e.id for e in page.events] == ["evt_1"]
    assert page.has_more is True


async def test_stripe_source_skips_malformed_events():
    broken = stripe.Event.construct_from({"id": "evt_bad", "object": "event"}, "sk_test")
    events = FakeEvents([broken, _stripe_event("evt_ok", 100)])
    source = StripeEventSource(SimpleNamespace(events=events))

    page = await source.list_events(0, 200, 10)

    assert [e.id for e in page.events] == ["evt_ok"]
