"""Webhook models for partner event notifications.

Provides the event envelope sent to partners, the outcome of a single HTTP
attempt, and the delivery record tracked across retries.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from .base import format_timestamp, generate_id, utc_now

# Event types that can trigger webhooks
EventType = Literal[
    "survey.deployed",
    "survey.status_changed",
]

ALL_EVENT_TYPES: list[EventType] = [
    "survey.deployed",
    "survey.status_changed",
]

# Lifecycle of a delivery record. "exhausted" is the dead-letter state.
DeliveryStatus = Literal["pending", "delivered", "failed", "exhausted"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"delivered", "exhausted"})

# Outcome of a single HTTP attempt
DeliveryOutcome = Literal["delivered", "rejected", "failed"]

# Rejections worth retrying besides 5xx
RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 429})


class WebhookEvent(BaseModel):
    """Event envelope sent to partner endpoints.

    The wire shape is exactly ``{"event", "timestamp", "data"}``. The
    timestamp is fixed when the envelope is built, not when it is sent,
    so retries and replays carry the original generation time.

    Attributes:
        event: Event type from the catalog.
        timestamp: When the event was generated (UTC).
        data: Event-specific payload.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    event: EventType = Field(description="Event type")
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event was generated",
    )
    data: dict[str, Any] = Field(description="Event-specific payload")

    @field_serializer("timestamp")
    def _serialize_timestamp(self, value: datetime) -> str:
        return format_timestamp(value)

    @classmethod
    def for_survey_deployed(
        cls,
        survey_id: str,
        status: str,
        scheduled_start: datetime | str | None = None,
        target_participants: int | None = None,
    ) -> "WebhookEvent":
        """Create event for a survey going live or being scheduled."""
        if isinstance(scheduled_start, datetime):
            scheduled_start = format_timestamp(scheduled_start)
        return cls(
            event="survey.deployed",
            data={
                "survey_id": survey_id,
                "status": status,
                "scheduled_start": scheduled_start,
                "target_participants": target_participants,
            },
        )

    @classmethod
    def for_survey_status_changed(
        cls,
        survey_id: str,
        status: str,
        refund_eligible: bool | None = None,
        refund_ratio: float | None = None,
    ) -> "WebhookEvent":
        """Create event for a survey status transition (pause, resume, cancel)."""
        data: dict[str, Any] = {
            "survey_id": survey_id,
            "status": status,
        }
        if refund_eligible is not None:
            data["refund_eligible"] = refund_eligible
        if refund_ratio is not None:
            data["refund_ratio"] = round(refund_ratio, 2)
        return cls(event="survey.status_changed", data=data)


class DeliveryResult(BaseModel):
    """Outcome of one HTTP attempt against a partner endpoint.

    Attributes:
        outcome: delivered (2xx), rejected (non-2xx) or failed (transport error).
        status_code: HTTP status code, when a response was received.
        reason: HTTP reason phrase, when a response was received.
        error: Error message for transport failures.
        duration_ms: Wall time spent on the attempt.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    outcome: DeliveryOutcome
    status_code: int | None = None
    reason: str | None = None
    error: str | None = None
    duration_ms: int = Field(default=0, ge=0)

    @property
    def ok(self) -> bool:
        return self.outcome == "delivered"

    @property
    def retryable(self) -> bool:
        """Whether another attempt could plausibly succeed."""
        if self.outcome == "failed":
            return True
        if self.outcome == "rejected" and self.status_code is not None:
            return self.status_code >= 500 or self.status_code in RETRYABLE_STATUS_CODES
        return False

    def describe(self) -> str:
        """Short human-readable summary for logs and delivery records."""
        if self.status_code is not None:
            reason = f" {self.reason}" if self.reason else ""
            return f"HTTP {self.status_code}{reason}"
        return self.error or self.outcome


class WebhookDelivery(BaseModel):
    """Record of a webhook delivery across all of its attempts.

    The exact request body is kept so a dead-lettered delivery can be
    replayed byte-for-byte. The signature is never stored.

    Attributes:
        id: Unique identifier for this delivery.
        partner_id: Partner receiving the event.
        url: Endpoint the event is sent to.
        event: Event type.
        payload: Canonical JSON body, exactly as signed and sent.
        sequence: Per-partner sequence number.
        replay_of: ID of the dead-lettered delivery this one replays.
        status: pending, delivered, failed (retry scheduled) or exhausted.
        attempt: Number of attempts made so far.
        max_attempts: Attempt budget for this delivery.
        last_status_code: HTTP status of the last attempt, if any.
        last_error: Summary of the last failure.
        next_retry_at: When the next attempt is due, while status is failed.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(default_factory=lambda: generate_id("dlv"))
    partner_id: str | None = Field(default=None, description="Partner receiving the event")
    url: str = Field(description="Endpoint the event is sent to")
    event: str = Field(description="Event type")
    payload: str = Field(description="Canonical JSON body as sent")
    sequence: int = Field(default=0, ge=0, description="Per-partner sequence number")
    replay_of: str | None = Field(default=None, description="Delivery this one replays")
    status: DeliveryStatus = Field(default="pending", description="Delivery status")
    attempt: int = Field(default=0, ge=0, description="Attempts made so far")
    max_attempts: int = Field(default=1, ge=1, description="Attempt budget")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = Field(default=None)
    last_status_code: int | None = Field(default=None)
    last_error: str | None = Field(default=None)
    next_retry_at: datetime | None = Field(default=None)

    @property
    def body(self) -> bytes:
        """Request body bytes, identical to what was signed."""
        return self.payload.encode("utf-8")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def record_attempt(self, result: DeliveryResult) -> "WebhookDelivery":
        """Count an attempt and remember its outcome."""
        self.attempt += 1
        self.last_status_code = result.status_code
        self.last_error = None if result.ok else result.describe()
        self.updated_at = utc_now()
        return self

    def mark_delivered(self) -> "WebhookDelivery":
        self.status = "delivered"
        self.completed_at = self.updated_at = utc_now()
        self.next_retry_at = None
        return self

    def mark_failed(self, next_retry_at: datetime) -> "WebhookDelivery":
        """Mark the last attempt as failed with a retry scheduled."""
        self.status = "failed"
        self.next_retry_at = next_retry_at
        self.updated_at = utc_now()
        return self

    def mark_exhausted(self, error: str | None = None) -> "WebhookDelivery":
        """Dead-letter the delivery: no further automatic attempts."""
        self.status = "exhausted"
        if error is not None:
            self.last_error = error
        self.completed_at = self.updated_at = utc_now()
        self.next_retry_at = None
        return self


__all__ = [
    "ALL_EVENT_TYPES",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStatus",
    "EventType",
    "RETRYABLE_STATUS_CODES",
    "TERMINAL_STATUSES",
    "WebhookDelivery",
    "WebhookEvent",
]
