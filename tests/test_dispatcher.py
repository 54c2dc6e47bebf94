"""Tests for Dispatcher routing and handler registration."""

import asyncio

import pytest

from payhook.core.dispatcher import Dispatcher, HandlerError
from payhook.core.event import WebhookEvent
from payhook.core.handler import Handler
from payhook.core.kinds import EventKind
from payhook.core.processor import WebhookProcessor
from payhook.core.validator import ValidationErrorKind, Validator


class RecordingHandler(Handler):
    handles = [EventKind.INVOICE_CREATED, EventKind.INVOICE_PAYMENT_SUCCEEDED]

    def __init__(self, result=True, name=None):
        super().__init__(name=name)
        self.result = result
        self.seen: list[WebhookEvent] = []

    async def handle(self, event: WebhookEvent) -> bool:
        self.seen.append(event)
        return self.result


class ExplodingHandler(Handler):
    handles = [EventKind.SUBSCRIPTION_UPDATED]

    async def handle(self, event: WebhookEvent) -> bool:
        raise RuntimeError("database down")


class SlowHandler(Handler):
    handles = [EventKind.SUBSCRIPTION_UPDATED]

    async def handle(self, event: WebhookEvent) -> bool:
        await asyncio.sleep(1)
        return True


def test_routes_are_built_from_handles():
    handler = RecordingHandler()
    dispatcher = Dispatcher([handler])

    assert dispatcher.routes == {
        EventKind.INVOICE_CREATED: handler,
        EventKind.INVOICE_PAYMENT_SUCCEEDED: handler,
    }
    assert dispatcher.handler_for("invoice.created") is handler
    assert dispatcher.handler_for("charge.refunded") is None


def test_kind_claimed_twice_is_rejected():
    with pytest.raises(ValueError, match="claimed by both"):
        Dispatcher([RecordingHandler(name="a"), RecordingHandler(name="b")])


def test_handler_cannot_claim_unhandled():
    class Catchall(Handler):
        handles = [EventKind.UNHANDLED]

        async def handle(self, event):
            return True

    with pytest.raises(ValueError, match="UNHANDLED"):
        Dispatcher([Catchall()])


def test_handles_must_be_event_kinds():
    class Stringly(Handler):
        handles = ["invoice.created"]

        async def handle(self, event):
            return True

    with pytest.raises(TypeError, match="EventKind"):
        Dispatcher([Stringly()])


def test_handles_must_be_a_list():
    class Bare(Handler):
        handles = EventKind.INVOICE_CREATED

        async def handle(self, event):
            return True

    with pytest.raises(TypeError, match="list"):
        Dispatcher([Bare()])


async def test_route_invokes_owning_handler(make_event):
    handler = RecordingHandler()
    dispatcher = Dispatcher([handler])
    event = make_event("invoice.created", object_id="in_1")

    assert await dispatcher.route(event) is True
    assert handler.seen == [event]
    assert dispatcher.get_stats().routed["RecordingHandler"] == 1


async def test_unknown_type_is_acknowledged(make_event, caplog_payhook):
    dispatcher = Dispatcher([RecordingHandler()])

    assert await dispatcher.route(make_event("charge.refunded")) is True

    assert dispatcher.get_stats().unhandled == 1
    assert "Unhandled event type: charge.refunded" in caplog_payhook.messages()


async def test_handler_false_is_counted_as_rejected(make_event):
    dispatcher = Dispatcher([RecordingHandler(result=False)])

    assert await dispatcher.route(make_event("invoice.created")) is False
    assert dispatcher.get_stats().rejected["RecordingHandler"] == 1


async def test_handler_exception_becomes_handler_error(make_event):
    dispatcher = Dispatcher([ExplodingHandler()])
    event = make_event()

    with pytest.raises(HandlerError) as exc_info:
        await dispatcher.route(event)

    err = exc_info.value
    assert err.kind is ValidationErrorKind.HANDLER_ERROR
    assert err.handler == "ExplodingHandler"
    assert isinstance(err.original, RuntimeError)
    assert err.event_id == event.id
    assert dispatcher.get_stats().handler_errors["ExplodingHandler"] == 1


async def test_non_bool_result_is_a_handler_error(make_event):
    dispatcher = Dispatcher([RecordingHandler(result="yes")])

    with pytest.raises(HandlerError, match="must return bool"):
        await dispatcher.route(make_event("invoice.created"))


async def test_handler_timeout(make_event):
    dispatcher = Dispatcher([SlowHandler()], handler_timeout=0.01)

    with pytest.raises(HandlerError, match="timed out"):
        await dispatcher.route(make_event())


def test_stats_snapshot_is_independent():
    dispatcher = Dispatcher([RecordingHandler()])
    snapshot = dispatcher.get_stats()
    snapshot.routed["RecordingHandler"] += 5
    assert dispatcher.get_stats().routed["RecordingHandler"] == 0


async def test_processor_skips_dispatch_for_duplicates(store, config, make_event):
    handler = RecordingHandler()
    processor = WebhookProcessor(Validator(store, config), Dispatcher([handler]))
    event = make_event("invoice.created", object_id="in_1")

    assert await processor.process(event) is True
    assert await processor.process(event) is False
    assert len(handler.seen) == 1


async def test_processor_reports_handler_rejection(store, config, make_event):
    processor = WebhookProcessor(
        Validator(store, config), Dispatcher([RecordingHandler(result=False)])
    )

    result = await processor.check_and_route(make_event("invoice.created"))

    assert result.ok is False
    assert result.kind is None
