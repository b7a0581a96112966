"""Response schemas for the operator API."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from picksearch.models import DeliveryStatus, WebhookDelivery


class HealthResponse(BaseModel):
    """Response for health check endpoint.

    Attributes:
        status: Service status.
        version: API version.
        pending_deliveries: Deliveries currently running in the background.
    """

    model_config = ConfigDict(extra="forbid")

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    pending_deliveries: int = Field(ge=0)


class DeliveryResponse(BaseModel):
    """A webhook delivery record as shown to operators."""

    model_config = ConfigDict(extra="forbid")

    id: str
    partner_id: str | None
    url: str
    event: str
    payload: str = Field(description="Exact JSON body sent to the partner")
    sequence: int
    replay_of: str | None
    status: DeliveryStatus
    attempt: int
    max_attempts: int
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None
    last_status_code: int | None
    last_error: str | None
    next_retry_at: datetime | None

    @classmethod
    def from_delivery(cls, delivery: WebhookDelivery) -> DeliveryResponse:
        return cls.model_validate(delivery.model_dump())


class DeliveryListResponse(BaseModel):
    """List of delivery records, newest first."""

    model_config = ConfigDict(extra="forbid")

    deliveries: list[DeliveryResponse]
    count: int = Field(ge=0)
