"""Upstream event sources for recovery scans."""

from payhook.source.base import EventPage, EventSource
from payhook.source.memory import InMemoryEventSource
from payhook.source.stripe_source import StripeEventSource

__all__ = ["EventPage", "EventSource", "InMemoryEventSource", "StripeEventSource"]
