"""Partner model: the tenant side of webhook delivery.

Partner rows are owned by the partner-management system. This package
only reads the webhook endpoint and secret from them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Partner(BaseModel):
    """Read-only view of a partner record.

    Attributes:
        id: Partner identifier (optional, used for logs and delivery records).
        name: Human-readable partner name.
        webhook_url: Endpoint receiving events. None means not subscribed.
        webhook_secret: Shared secret for HMAC-SHA256 signatures.
    """

    # Raw database rows carry many more columns than we care about
    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str | None = Field(default=None, description="Partner identifier")
    name: str | None = Field(default=None, description="Human-readable partner name")
    webhook_url: str | None = Field(default=None, description="Endpoint receiving events")
    webhook_secret: str | None = Field(
        default=None, description="Shared secret for HMAC-SHA256 signatures"
    )

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        # Database ids are often integers or UUIDs
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("webhook_url", mode="before")
    @classmethod
    def _blank_url_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("webhook_secret", mode="before")
    @classmethod
    def _empty_secret_to_none(cls, value: Any) -> Any:
        # Whitespace is a valid (if weak) key and signs as configured
        if value == "":
            return None
        return value

    @property
    def webhook_enabled(self) -> bool:
        """True when the partner has an endpoint configured."""
        return self.webhook_url is not None

    @property
    def has_webhook_secret(self) -> bool:
        return self.webhook_secret is not None

    @property
    def key(self) -> str:
        """Stable key for per-partner bookkeeping (sequence, concurrency)."""
        return self.id or self.webhook_url or "<anonymous>"


def coerce_partner(partner: Partner | Mapping[str, Any] | Any) -> Partner:
    """Accept a Partner, a mapping (database row) or an attribute object."""
    if isinstance(partner, Partner):
        return partner
    if isinstance(partner, Mapping):
        return Partner.model_validate(dict(partner))
    return Partner.model_validate(partner, from_attributes=True)


__all__ = ["Partner", "coerce_partner"]
