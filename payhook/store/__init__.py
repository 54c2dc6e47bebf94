"""Event store implementations for dedupe and ordering records."""

from payhook.store.base import EventStore, StoreHealth
from payhook.store.keys import KeyScheme
from payhook.store.memory import InMemoryEventStore
from payhook.store.redis_store import RedisEventStore

__all__ = ["EventStore", "InMemoryEventStore", "KeyScheme", "RedisEventStore", "StoreHealth"]
