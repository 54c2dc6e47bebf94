"""Environment-selected, immutable runtime configuration.

A profile bundles recovery sizing, record TTLs and the three-tier retry
policy table. The effective profile is built once per process from the
``PAYHOOK_*`` environment (or a ``.env`` file) and never changes afterwards.
"""

from collections.abc import Mapping
from functools import lru_cache
from types import MappingProxyType
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from payhook.core.kinds import Priority, priority_for
from payhook.core.logging import get_logger

DEFAULT_NAMESPACE = "stripe:webhook"


class RetryPolicy(BaseModel):
    """Backoff guidance for one priority tier.

    Retries themselves are executed by the upstream redelivery mechanism;
    these values document how aggressive that redelivery should be and cap
    how long retry bookkeeping is kept.
    """

    delays_ms: tuple[int, ...]
    max_retries: int = Field(ge=0)
    max_retry_ttl: int = Field(gt=0, description="Bookkeeping TTL ceiling (seconds)")

    model_config = ConfigDict(frozen=True)

    @field_validator("delays_ms")
    @classmethod
    def validate_delays(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        if not v:
            raise ValueError("delays_ms must not be empty")
        if any(d < 0 for d in v):
            raise ValueError("delays_ms must be non-negative")
        if list(v) != sorted(v):
            raise ValueError("delays_ms must be non-decreasing")
        return v

    def delay_for(self, attempt: int) -> int | None:
        """Delay in ms before the given 1-based retry attempt, None once exhausted."""
        if attempt < 1 or attempt > self.max_retries:
            return None
        return self.delays_ms[min(attempt, len(self.delays_ms)) - 1]


class TTLConfig(BaseModel):
    """Record lifetimes in seconds. Zero means the record never expires."""

    webhook_event: int = Field(ge=0)
    last_event: int = Field(ge=0)
    payment_status: int = Field(ge=0)
    subscription_status: int = Field(ge=0)
    setup_verification: int = Field(ge=0)

    model_config = ConfigDict(frozen=True)


class Profile(BaseModel):
    """Immutable effective configuration."""

    name: str
    chunk_size: int = Field(gt=0, description="Recovery chunk width (seconds)")
    max_pages: int = Field(gt=0)
    page_size: int = Field(gt=0, le=100)
    ttl: TTLConfig
    retry: Mapping[Priority, RetryPolicy]
    namespace: str = DEFAULT_NAMESPACE

    model_config = ConfigDict(frozen=True)

    @field_validator("retry")
    @classmethod
    def validate_retry_tiers(
        cls, v: Mapping[Priority, RetryPolicy]
    ) -> Mapping[Priority, RetryPolicy]:
        missing = set(Priority) - set(v)
        if missing:
            raise ValueError(f"retry table missing tiers: {sorted(p.name for p in missing)}")
        return MappingProxyType(dict(v))

    @field_serializer("retry")
    def serialize_retry(self, v: Mapping[Priority, RetryPolicy]) -> dict[Priority, RetryPolicy]:
        return dict(v)

    def retry_policy_for(self, event_type: str) -> RetryPolicy:
        return self.retry[priority_for(event_type)]

    def summary(self) -> dict:
        return {
            "environment": self.name,
            "chunkSize": self.chunk_size,
            "maxPages": self.max_pages,
            "pageSize": self.page_size,
            "retryLevels": {
                priority.name.lower(): {
                    "maxRetries": policy.max_retries,
                    "maxDelay": policy.max_retry_ttl,
                }
                for priority, policy in sorted(self.retry.items())
            },
        }


PRODUCTION = Profile(
    name="production",
    chunk_size=15 * 60,
    max_pages=1000,
    page_size=100,
    ttl=TTLConfig(
        webhook_event=24 * 60 * 60,
        last_event=7 * 24 * 60 * 60,
        payment_status=24 * 60 * 60,
        subscription_status=24 * 60 * 60,
        setup_verification=30 * 60,
    ),
    retry={
        Priority.HIGH: RetryPolicy(
            delays_ms=(1000, 2000, 4000), max_retries=5, max_retry_ttl=3600
        ),
        Priority.MEDIUM: RetryPolicy(
            delays_ms=(5000, 10000, 20000), max_retries=3, max_retry_ttl=7200
        ),
        Priority.LOW: RetryPolicy(
            delays_ms=(15000, 30000, 60000), max_retries=2, max_retry_ttl=14400
        ),
    },
)

DEVELOPMENT = Profile(
    name="development",
    chunk_size=5 * 60,
    max_pages=100,
    page_size=50,
    ttl=TTLConfig(
        webhook_event=3600,
        last_event=3600,
        payment_status=86400,
        subscription_status=0,
        setup_verification=86400,
    ),
    retry={
        Priority.HIGH: RetryPolicy(
            delays_ms=(500, 1000, 2000), max_retries=3, max_retry_ttl=1800
        ),
        Priority.MEDIUM: RetryPolicy(
            delays_ms=(2000, 4000, 8000), max_retries=2, max_retry_ttl=3600
        ),
        Priority.LOW: RetryPolicy(
            delays_ms=(5000, 10000, 20000), max_retries=1, max_retry_ttl=7200
        ),
    },
)

PROFILES: dict[str, Profile] = {p.name: p for p in (PRODUCTION, DEVELOPMENT)}


class Settings(BaseSettings):
    """Process settings read from ``PAYHOOK_*`` environment variables."""

    env: Literal["production", "development"] = "development"
    chunk_size: int | None = Field(default=None, gt=0)
    max_pages: int | None = Field(default=None, gt=0)
    page_size: int | None = Field(default=None, gt=0, le=100)
    namespace: str = DEFAULT_NAMESPACE

    redis_url: str = "redis://localhost:6379"
    stripe_api_key: str | None = None
    webhook_secret: str | None = None
    recovery_token: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="PAYHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


def load_config(settings: Settings | None = None) -> Profile:
    """Build the effective profile: the selected base profile plus overrides."""
    settings = settings or Settings()
    base = PROFILES[settings.env]
    overrides = {
        key: value
        for key, value in (
            ("chunk_size", settings.chunk_size),
            ("max_pages", settings.max_pages),
            ("page_size", settings.page_size),
        )
        if value is not None
    }
    if settings.namespace != base.namespace:
        overrides["namespace"] = settings.namespace
    profile = base.model_copy(update=overrides) if overrides else base

    get_logger("payhook.config").info(
        "Environment configuration loaded",
        extra={"config": profile.summary(), "overrides": sorted(overrides)},
    )
    return profile


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


@lru_cache(maxsize=1)
def get_config() -> Profile:
    """Process-wide profile, built on first use and cached thereafter."""
    return load_config(get_settings())


def reset_config() -> None:
    """Drop the cached settings and profile. Intended for tests."""
    get_settings.cache_clear()
    get_config.cache_clear()
