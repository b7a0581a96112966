"""Configuration management for Picksearch webhooks."""

import logging
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Picksearch configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the PICKSEARCH_ prefix. For example:
        PICKSEARCH_WEBHOOK_TIMEOUT_SECONDS=5
        PICKSEARCH_LOG_FORMAT=text

    Security Notes:
        - In production (PICKSEARCH_ENV=production), partners without a
          webhook secret are refused instead of signed with an empty key
        - Relaxing that in production logs a warning
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # Webhook delivery
    webhook_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        le=60.0,
        description="Timeout for a single outbound webhook request",
    )
    webhook_user_agent: str = Field(
        default="Picksearch-Webhook/1.0",
        min_length=1,
        description="User-Agent sent with every webhook request",
    )
    webhook_max_attempts: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Maximum delivery attempts before a delivery is dead-lettered",
    )
    webhook_retry_initial_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        le=60.0,
        description="Delay before the first retry (doubles each attempt)",
    )
    webhook_retry_max_delay_seconds: float = Field(
        default=300.0,
        ge=0.0,
        le=3600.0,
        description="Upper bound for the backoff delay between attempts",
    )
    webhook_max_concurrent: int = Field(
        default=50,
        ge=1,
        le=1000,
        description="Maximum in-flight webhook requests across all partners",
    )
    webhook_max_concurrent_per_partner: int = Field(
        default=5,
        ge=1,
        le=100,
        description=(
            "Maximum in-flight webhook requests for a single partner. "
            "Bounds resource use when one partner endpoint hangs under an event burst."
        ),
    )
    webhook_require_secret: bool | None = Field(
        default=None,
        description=(
            "Refuse to dispatch to partners without a webhook secret. "
            "If not set, defaults to True in production, False otherwise."
        ),
    )

    model_config = {
        "env_prefix": "PICKSEARCH_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    @model_validator(mode="after")
    def validate_retry_delays(self) -> "Settings":
        """Validate the backoff bounds are ordered correctly."""
        if self.webhook_retry_max_delay_seconds < self.webhook_retry_initial_delay_seconds:
            raise ValueError(
                f"webhook_retry_max_delay_seconds ({self.webhook_retry_max_delay_seconds}) "
                f"must be at least webhook_retry_initial_delay_seconds "
                f"({self.webhook_retry_initial_delay_seconds})."
            )
        return self

    @model_validator(mode="after")
    def validate_security_settings(self) -> "Settings":
        """Resolve the webhook secret requirement based on environment."""
        is_production = self.env == "production"

        if self.webhook_require_secret is None:
            object.__setattr__(self, "webhook_require_secret", is_production)
        elif is_production and not self.webhook_require_secret:
            logger.warning(
                "PICKSEARCH_WEBHOOK_REQUIRE_SECRET is disabled in production. "
                "Partners without a secret will receive webhooks signed with an empty key."
            )

        return self

    @property
    def requires_webhook_secret(self) -> bool:
        """Whether dispatch refuses partners without a webhook secret."""
        return bool(self.webhook_require_secret)


# Global settings instance
settings = Settings()
