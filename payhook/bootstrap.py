"""Process wiring: builds explicit collaborators once and hands them out."""

from dataclasses import dataclass

from payhook.core.config import Profile, Settings, get_config, get_settings, load_config
from payhook.core.dispatcher import Dispatcher
from payhook.core.logging import configure_logging
from payhook.core.processor import WebhookProcessor
from payhook.core.recovery import RecoveryEngine
from payhook.core.validator import Validator
from payhook.handlers import default_handlers
from payhook.source.base import EventSource
from payhook.source.stripe_source import StripeEventSource
from payhook.store.base import EventStore
from payhook.store.keys import KeyScheme
from payhook.store.redis_store import RedisEventStore


@dataclass
class Services:
    config: Profile
    store: EventStore
    processor: WebhookProcessor
    recovery: RecoveryEngine | None


def build_services(
    config: Profile,
    store: EventStore,
    source: EventSource | None = None,
) -> Services:
    """Assemble the pipeline around an existing store and optional source."""
    keys = KeyScheme(config.namespace)
    validator = Validator(store, config, keys)
    dispatcher = Dispatcher(default_handlers(store, config, keys))
    processor = WebhookProcessor(validator, dispatcher)
    recovery = RecoveryEngine(source, store, processor, config, keys) if source else None
    return Services(config=config, store=store, processor=processor, recovery=recovery)


def services_from_settings(settings: Settings | None = None) -> Services:
    """Build Redis- and Stripe-backed services.

    Uses the cached process settings and profile unless explicit settings
    are given.
    """
    if settings is None:
        settings, config = get_settings(), get_config()
    else:
        config = load_config(settings)
    configure_logging(settings.log_level)
    source = (
        StripeEventSource.from_api_key(settings.stripe_api_key)
        if settings.stripe_api_key
        else None
    )
    return build_services(config, RedisEventStore(settings.redis_url), source)
