"""HTTP surface: the inbound webhook endpoint and the manual recovery trigger."""

import hmac
from collections.abc import Callable
from contextlib import asynccontextmanager
from typing import Literal

import stripe
from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from payhook.core.event import WebhookEvent
from payhook.core.logging import get_logger
from payhook.core.processor import WebhookProcessor
from payhook.core.recovery import RecoveryEngine, RecoveryMode
from payhook.core.validator import WebhookValidationError
from payhook.store.base import EventStore

logger = get_logger("payhook.api")

# (payload, signature header, secret) -> None; raises on a bad signature
SignatureVerifier = Callable[[str, str, str], object]


def stripe_verifier(payload: str, signature: str, secret: str) -> object:
    return stripe.WebhookSignature.verify_header(payload, signature, secret)


class RecoveryRequest(BaseModel):
    start_time: int = Field(alias="startTime", ge=0)
    end_time: int | None = Field(default=None, alias="endTime", ge=0)
    mode: Literal["simple", "chunked"] = "chunked"
    max_pages: int | None = Field(default=None, alias="maxPages", gt=0)


def _error(status: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status, content={"message": message})


def create_app(
    processor: WebhookProcessor,
    *,
    webhook_secret: str | None,
    recovery_engine: RecoveryEngine | None = None,
    recovery_token: str | None = None,
    verifier: SignatureVerifier = stripe_verifier,
    store: EventStore | None = None,
    on_shutdown: Callable[[], object] | None = None,
) -> FastAPI:
    """Build the FastAPI application around injected collaborators.

    Args:
        processor: Validate-then-dispatch pipeline for inbound events.
        webhook_secret: Shared signing secret. Requests are rejected while unset.
        recovery_engine: Enables ``POST /api/webhook/recovery`` when given.
        recovery_token: Token required in ``X-Recovery-Token`` for recovery.
        verifier: Signature check; defaults to Stripe's header verification.
        store: Store checked by ``GET /health``. Without one the endpoint only
            reports that the process is up.
        on_shutdown: Awaitable factory run at shutdown (e.g. closing the store).
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if on_shutdown is not None:
            await on_shutdown()

    app = FastAPI(
        title="payhook",
        description="Payment webhook ingestion and reconciliation",
        lifespan=lifespan,
    )

    @app.post("/api/webhook")
    async def receive_webhook(
        request: Request,
        stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    ):
        payload = (await request.body()).decode("utf-8", errors="replace")

        if not stripe_signature or not webhook_secret:
            logger.warning("Webhook rejected: missing signature or secret")
            return _error(400, "Webhook Error: Missing signature or webhook secret")

        try:
            verifier(payload, stripe_signature, webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            return _error(400, f"Webhook Error: {e}")

        try:
            event = WebhookEvent.from_json(payload)
        except ValidationError as e:
            logger.warning(f"Webhook payload rejected: {e.error_count()} errors")
            return _error(400, "Webhook Error: Invalid payload")

        try:
            await processor.process(event)
        except WebhookValidationError as e:
            logger.error(
                f"Webhook processing failed: {e}",
                extra={**e.context, "error_kind": e.kind.value},
            )
            return _error(500, "Webhook processing failed")

        return {"message": "Processed"}

    @app.post("/api/webhook/recovery")
    async def trigger_recovery(
        body: RecoveryRequest,
        x_recovery_token: str | None = Header(default=None, alias="X-Recovery-Token"),
    ):
        if recovery_engine is None:
            return _error(404, "Recovery is not configured")
        if not recovery_token or not x_recovery_token or not hmac.compare_digest(
            x_recovery_token, recovery_token
        ):
            return _error(403, "Forbidden")

        logger.info(
            "Manual recovery requested",
            extra={"window": [body.start_time, body.end_time], "mode": body.mode},
        )
        mode = RecoveryMode(body.mode)
        options = {}
        if mode is RecoveryMode.CHUNKED:
            options = {"source": "manual", "max_pages": body.max_pages}
        try:
            stats = await recovery_engine.run(mode, body.start_time, body.end_time, **options)
        except ValueError as e:
            return _error(400, str(e))
        except Exception as e:
            return _error(502, f"Recovery failed: {e}")

        return {"message": "Recovery completed", "mode": mode.value, "stats": stats.as_dict()}

    @app.get("/health")
    async def health():
        if store is None:
            return {"status": "ok"}
        result = await store.health()
        body = {"latencyMs": round(result.latency_ms, 1), "details": result.details}
        if not result.healthy:
            logger.warning("Health check failed", extra={"store": result.details})
            return JSONResponse(status_code=503, content={"status": "unhealthy", **body})
        return {"status": "ok", **body}

    return app
