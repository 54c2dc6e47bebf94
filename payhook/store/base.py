"""Event store protocol.

The store is a plain key-value service with per-key TTLs. It offers no
transactions, so the two conditional writes below are the only atomic
primitives the validator may rely on.
"""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class StoreHealth:
    """Health check result."""

    healthy: bool
    latency_ms: float
    details: dict[str, Any]


class EventStore(Protocol):
    """Interface for the key-value store backing dedupe and ordering records."""

    async def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent or expired."""
        ...

    async def set(
        self,
        key: str,
        value: str,
        ttl_seconds: int = 0,
        only_if_absent: bool = False,
    ) -> bool:
        """Store a value.

        Args:
            key: Record key.
            value: Serialized record.
            ttl_seconds: Lifetime in seconds; 0 keeps the value forever.
            only_if_absent: Write only when no live value exists.

        Returns:
            True if the value was written.
        """
        ...

    async def advance(
        self,
        key: str,
        value: str,
        timestamp: float,
        ttl_seconds: int = 0,
    ) -> str | None:
        """Atomically replace a record unless the stored one is newer.

        The stored value must be a JSON object with a numeric ``timestamp``.
        The write happens when nothing is stored, the stored value cannot be
        decoded, or its timestamp is <= ``timestamp``.

        Returns:
            None if written, otherwise the conflicting stored value.
        """
        ...

    async def health(self) -> StoreHealth:
        """Check that the store is reachable. Never raises."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
