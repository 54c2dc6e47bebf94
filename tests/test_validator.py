"""Tests for duplicate and ordering validation."""

import asyncio
import json
import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from payhook.core.config import DEVELOPMENT
from payhook.core.event import WebhookEvent
from payhook.core.validator import (
    ValidationErrorKind,
    ValidationResult,
    Validator,
    WebhookValidationError,
)
from payhook.store.memory import InMemoryEventStore


async def test_first_delivery_passes_and_is_recorded(validator, store, keys, make_event, config):
    event = make_event(created=1_000, object_id="sub_1")

    assert await validator.validate(event) is True

    stored = json.loads(await store.get(keys.event(event.id)))
    assert stored["type"] == event.type
    assert stored["objectId"] == "sub_1"
    assert stored["created"] == 1_000
    assert await store.ttl(keys.event(event.id)) == pytest.approx(config.ttl.webhook_event)

    last = json.loads(await store.get(keys.last_event(event.type, "sub_1")))
    assert last["eventId"] == event.id
    assert last["timestamp"] == 1_000
    assert await store.ttl(keys.last_event(event.type, "sub_1")) == pytest.approx(
        config.ttl.last_event
    )


async def test_redelivery_is_duplicate(validator, make_event):
    event = make_event()
    assert await validator.validate(event)

    result = await validator.check(event)

    assert result.ok is False
    assert result.kind is ValidationErrorKind.DUPLICATE
    assert result.context["existing"]["objectId"] == "sub_1"


async def test_out_of_order_sequence(validator, make_event):
    """evt_1 at 1000, evt_2 at 1100, then evt_3 at 1000 for the same object."""
    first = make_event(created=1_000, event_id="evt_a1")
    second = make_event(created=1_100, event_id="evt_a2")
    late = make_event(created=1_000, event_id="evt_a3")

    assert await validator.validate(first)
    assert await validator.validate(second)
    result = await validator.check(late)

    assert result.kind is ValidationErrorKind.OUT_OF_ORDER
    assert result.context["current_timestamp"] == 1_000
    assert result.context["last_event"] == {
        "eventId": "evt_a2",
        "timestamp": 1_100,
        "type": "customer.subscription.updated",
    }
    assert result.context["time_difference"] == 100


async def test_out_of_order_event_writes_no_dedupe_record(validator, store, keys, make_event):
    assert await validator.validate(make_event(created=1_100))
    late = make_event(created=900)

    result = await validator.check(late)

    assert result.kind is ValidationErrorKind.OUT_OF_ORDER
    assert result.context["time_difference"] == 200
    assert await store.get(keys.event(late.id)) is None


async def test_equal_timestamp_is_not_out_of_order(validator, make_event):
    assert await validator.validate(make_event(created=1_000))
    assert await validator.validate(make_event(created=1_000))


async def test_ordering_is_per_type_and_object(validator, make_event):
    assert await validator.validate(make_event(created=2_000, object_id="sub_1"))
    assert await validator.validate(make_event(created=1_000, object_id="sub_2"))
    assert await validator.validate(
        make_event("customer.subscription.created", created=1_000, object_id="sub_1")
    )


async def test_event_without_object_skips_ordering(validator, store, make_event):
    event = make_event("balance.available", object_id=None)

    assert await validator.validate(event)
    assert not [k for k in store.keys() if ":last_event:" in k]
    assert (await validator.check(event)).kind is ValidationErrorKind.DUPLICATE


async def test_duplicate_after_dedupe_ttl_expiry_is_reprocessed(
    validator, clock, config, make_event
):
    event = make_event(object_id=None)
    assert await validator.validate(event)

    clock.advance(config.ttl.webhook_event)

    assert await validator.validate(event)


async def test_concurrent_deliveries_of_one_event(validator, make_event):
    event = make_event()

    results = await asyncio.gather(*(validator.check(event) for _ in range(10)))

    assert sum(r.ok for r in results) == 1
    assert {r.kind for r in results if not r.ok} == {ValidationErrorKind.DUPLICATE}


class RacingStore(InMemoryEventStore):
    """Writes a newer ordering record between the validator's read and write."""

    def __init__(self, newer: str) -> None:
        super().__init__()
        self.newer = newer

    async def advance(self, key, value, timestamp, ttl_seconds=0):
        await super().set(key, self.newer)
        return await super().advance(key, value, timestamp, ttl_seconds)


async def test_lost_ordering_race_is_out_of_order(config, make_event):
    newer = json.dumps(
        {"eventId": "evt_new", "type": "t", "timestamp": 5_000, "objectId": "sub_1"}
    )
    store = RacingStore(newer)
    validator = Validator(store, config)
    event = make_event(created=1_000)

    result = await validator.check(event)

    assert result.kind is ValidationErrorKind.OUT_OF_ORDER
    assert result.context["concurrent"] is True
    assert result.context["last_event"]["eventId"] == "evt_new"
    assert await store.get(validator.keys.event(event.id)) is None


class BrokenStore(InMemoryEventStore):
    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    async def get(self, key):
        if self.fail_on == "get":
            raise ConnectionError("store unreachable")
        return await super().get(key)

    async def set(self, key, value, ttl_seconds=0, only_if_absent=False):
        if self.fail_on == "set":
            raise ConnectionError("store unreachable")
        return await super().set(key, value, ttl_seconds, only_if_absent)


@pytest.mark.parametrize("fail_on", ["get", "set"])
async def test_store_failure_raises_redis_error(config, make_event, fail_on):
    validator = Validator(BrokenStore(fail_on), config)
    event = make_event()

    with pytest.raises(WebhookValidationError) as exc_info:
        await validator.check(event)

    err = exc_info.value
    assert err.kind is ValidationErrorKind.REDIS_ERROR
    assert err.event_id == event.id
    assert err.context["error"] == "store unreachable"
    assert str(err).startswith("REDIS_ERROR: ")
    assert isinstance(err.__cause__, ConnectionError)


async def test_rejection_is_logged_as_warning(validator, make_event, caplog_payhook):
    event = make_event()
    await validator.validate(event)
    caplog_payhook.clear()

    await validator.validate(event)

    warnings = [r for r in caplog_payhook.records if r.levelno == logging.WARNING]
    assert len(warnings) == 1
    assert warnings[0].error_kind == "DUPLICATE"
    assert warnings[0].event_id == event.id


def test_result_truthiness():
    assert ValidationResult(ok=True)
    assert not ValidationResult(ok=False, kind=ValidationErrorKind.DUPLICATE)


def test_event_id_is_stripped():
    event = WebhookEvent(id=" evt_1 ", type="invoice.created", created=1)
    assert event.id == "evt_1"


async def test_invoice_walkthrough(validator, store, keys, make_event):
    first = make_event(
        "invoice.payment_succeeded", created=1_000, object_id="in_1", event_id="evt_1"
    )
    older = make_event(
        "invoice.payment_succeeded", created=900, object_id="in_1", event_id="evt_2"
    )
    newer = make_event(
        "invoice.payment_succeeded", created=1_100, object_id="in_1", event_id="evt_3"
    )

    assert await validator.validate(first) is True
    assert await store.get(keys.event("evt_1")) is not None
    assert (await validator.check(first)).kind is ValidationErrorKind.DUPLICATE

    stale = await validator.check(older)
    assert stale.kind is ValidationErrorKind.OUT_OF_ORDER
    assert stale.context["time_difference"] == 100

    assert await validator.validate(newer) is True
    last = json.loads(await store.get(keys.last_event("invoice.payment_succeeded", "in_1")))
    assert last["timestamp"] == 1_100
    assert last["eventId"] == "evt_3"


async def test_chronological_order_advances_ordering_record(validator, store, keys, make_event):
    assert await validator.validate(make_event(created=900))
    assert await validator.validate(make_event(created=1_100))

    last = json.loads(await store.get(keys.last_event("customer.subscription.updated", "sub_1")))
    assert last["timestamp"] == 1_100


@given(timestamps=st.lists(st.integers(min_value=0, max_value=50), min_size=1, max_size=15))
def test_accepted_timestamps_never_decrease(timestamps: list[int]):
    """An event is accepted exactly when it is not older than every accepted one."""

    async def deliver() -> list[int]:
        validator = Validator(InMemoryEventStore(), DEVELOPMENT)
        accepted = []
        for i, created in enumerate(timestamps):
            event = WebhookEvent(
                id=f"evt_{i}",
                type="invoice.created",
                created=created,
                data={"object": {"id": "in_1"}},
            )
            if await validator.validate(event):
                accepted.append(created)
        return accepted

    expected, high = [], -1
    for created in timestamps:
        if created >= high:
            expected.append(created)
            high = created

    assert asyncio.run(deliver()) == expected
