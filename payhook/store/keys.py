"""Key scheme for records kept in the event store."""

from dataclasses import dataclass

from payhook.core.config import DEFAULT_NAMESPACE


@dataclass(frozen=True)
class KeyScheme:
    """Builds namespaced store keys.

    ``<ns>:event:<eventId>`` holds the dedupe record and
    ``<ns>:last_event:<eventType>:<objectId>`` the ordering record.
    """

    namespace: str = DEFAULT_NAMESPACE

    def event(self, event_id: str) -> str:
        return f"{self.namespace}:event:{event_id}"

    def last_event(self, event_type: str, object_id: str) -> str:
        return f"{self.namespace}:last_event:{event_type}:{object_id}"

    def payment_status(self, object_id: str) -> str:
        return f"{self.namespace}:payment_status:{object_id}"

    def subscription_status(self, object_id: str) -> str:
        return f"{self.namespace}:subscription_status:{object_id}"

    def setup_verification(self, object_id: str) -> str:
        return f"{self.namespace}:setup_verification:{object_id}"
