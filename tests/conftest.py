"""Pytest configuration, Hypothesis profiles and shared fixtures."""

import itertools
import logging
from typing import Any

import pytest
from hypothesis import settings

from payhook.core.config import DEVELOPMENT, Profile
from payhook.core.dispatcher import Dispatcher
from payhook.core.event import WebhookEvent
from payhook.core.processor import WebhookProcessor
from payhook.core.validator import Validator
from payhook.handlers import default_handlers
from payhook.store.keys import KeyScheme
from payhook.store.memory import InMemoryEventStore

# Register Hypothesis profiles
settings.register_profile("ci", max_examples=100)
settings.register_profile("dev", max_examples=20)

# Load dev profile by default, CI can override via --hypothesis-profile=ci
settings.load_profile("dev")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio as the async backend for pytest-asyncio."""
    return "asyncio"


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryEventStore:
    return InMemoryEventStore(clock=clock)


@pytest.fixture
def config() -> Profile:
    return DEVELOPMENT


@pytest.fixture
def keys(config: Profile) -> KeyScheme:
    return KeyScheme(config.namespace)


@pytest.fixture
def validator(store: InMemoryEventStore, config: Profile, keys: KeyScheme) -> Validator:
    return Validator(store, config, keys)


@pytest.fixture
def processor(
    store: InMemoryEventStore, config: Profile, keys: KeyScheme, validator: Validator
) -> WebhookProcessor:
    return WebhookProcessor(validator, Dispatcher(default_handlers(store, config, keys)))


_ids = itertools.count(1)


def build_event(
    event_type: str = "customer.subscription.updated",
    created: int = 1_000,
    object_id: str | None = "sub_1",
    event_id: str | None = None,
    **fields: Any,
) -> WebhookEvent:
    """Build an event whose payload object carries ``object_id`` and ``fields``."""
    obj: dict[str, Any] = {"object": event_type.rsplit(".", 1)[0], **fields}
    if object_id is not None:
        obj["id"] = object_id
    return WebhookEvent(
        id=event_id or f"evt_{next(_ids)}",
        type=event_type,
        created=created,
        data={"object": obj},
    )


@pytest.fixture
def make_event():
    """Factory fixture for WebhookEvent instances."""
    return build_event


class LogCapture(logging.Handler):
    """Custom handler to capture log records for testing."""

    def __init__(self):
        super().__init__()
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def clear(self) -> None:
        self.records.clear()

    def messages(self, level: int | None = None) -> list[str]:
        return [r.getMessage() for r in self.records if level is None or r.levelno == level]


CAPTURED_LOGGERS = (
    "payhook.api",
    "payhook.config",
    "payhook.dispatcher",
    "payhook.processor",
    "payhook.recovery",
    "payhook.validator",
    "payhook.handlers.InvoiceHandler",
    "payhook.handlers.PaymentIntentHandler",
    "payhook.handlers.SubscriptionHandler",
    "payhook.handlers.SetupIntentHandler",
)


@pytest.fixture
def caplog_payhook():
    """Capture records from payhook loggers, which do not propagate to root."""
    handler = LogCapture()
    handler.setLevel(logging.DEBUG)
    loggers = [logging.getLogger(name) for name in CAPTURED_LOGGERS]
    original_levels = [logger.level for logger in loggers]
    for logger in loggers:
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)

    yield handler

    for logger, level in zip(loggers, original_levels):
        logger.removeHandler(handler)
        logger.setLevel(level)
