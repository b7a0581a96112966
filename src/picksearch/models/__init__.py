"""Models for Picksearch webhook delivery.

Exports:
    - Partner: read-only view of a partner's webhook configuration
    - WebhookEvent: the envelope sent to partners
    - DeliveryResult: outcome of a single HTTP attempt
    - WebhookDelivery: delivery record tracked across retries
"""

from .base import format_timestamp, generate_id, utc_now
from .partner import Partner, coerce_partner
from .webhook import (
    ALL_EVENT_TYPES,
    RETRYABLE_STATUS_CODES,
    TERMINAL_STATUSES,
    DeliveryOutcome,
    DeliveryResult,
    DeliveryStatus,
    EventType,
    WebhookDelivery,
    WebhookEvent,
)

__all__ = [
    # Base helpers
    "format_timestamp",
    "generate_id",
    "utc_now",
    # Partner
    "Partner",
    "coerce_partner",
    # Webhooks
    "ALL_EVENT_TYPES",
    "RETRYABLE_STATUS_CODES",
    "TERMINAL_STATUSES",
    "DeliveryOutcome",
    "DeliveryResult",
    "DeliveryStatus",
    "EventType",
    "WebhookDelivery",
    "WebhookEvent",
]
