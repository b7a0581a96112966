"""Webhook delivery for Picksearch partners.

HMAC-signed, fire-and-forget delivery with exponential backoff retry and a
dead-letter store for replay.

Example:
    ```python
    from picksearch.webhooks import WebhookDispatcher, dispatch_webhook

    # Using a dispatcher directly
    dispatcher = WebhookDispatcher()
    dispatcher.dispatch(partner, "survey.deployed", {"survey_id": "s1", "status": "live"})

    # Using the process-wide default
    dispatch_webhook(partner, "survey.status_changed", {"survey_id": "s1", "status": "paused"})
    ```
"""

from .client import DEFAULT_USER_AGENT, DeliveryClient
from .dispatcher import (
    DELIVERY_HEADER,
    EVENT_HEADER,
    SEQUENCE_HEADER,
    WebhookDispatcher,
    dispatch_webhook,
    get_dispatcher,
    require_webhook_secret,
    set_dispatcher,
)
from .payload import WebhookPayload, build_payload, canonical_json, encode_event
from .retry import RetryPolicy
from .signing import SIGNATURE_HEADER, compute_signature, verify_signature

__all__ = [
    "DEFAULT_USER_AGENT",
    "DELIVERY_HEADER",
    "EVENT_HEADER",
    "SEQUENCE_HEADER",
    "SIGNATURE_HEADER",
    "DeliveryClient",
    "RetryPolicy",
    "WebhookDispatcher",
    "WebhookPayload",
    "build_payload",
    "canonical_json",
    "compute_signature",
    "dispatch_webhook",
    "encode_event",
    "get_dispatcher",
    "require_webhook_secret",
    "set_dispatcher",
    "verify_signature",
]
