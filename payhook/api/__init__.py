"""FastAPI application for webhook delivery and manual recovery."""

from fastapi import FastAPI

from payhook.api.app import RecoveryRequest, create_app, stripe_verifier
from payhook.bootstrap import services_from_settings
from payhook.core.config import get_settings


def app_from_env() -> FastAPI:
    """Application factory wired from ``PAYHOOK_*`` settings (uvicorn --factory)."""
    settings = get_settings()
    services = services_from_settings()
    return create_app(
        services.processor,
        webhook_secret=settings.webhook_secret,
        recovery_engine=services.recovery,
        recovery_token=settings.recovery_token,
        store=services.store,
        on_shutdown=services.store.close,
    )


__all__ = ["RecoveryRequest", "app_from_env", "create_app", "stripe_verifier"]
