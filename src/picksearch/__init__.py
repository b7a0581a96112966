"""Picksearch partner webhooks.

Signed, fire-and-forget notifications to partners about survey lifecycle
events, with retries and a dead-letter store.

Quick Start:
    from picksearch import WebhookDispatcher

    dispatcher = WebhookDispatcher()
    dispatcher.dispatch(
        {"id": "ptn_1", "webhook_url": "https://partner.test/hook", "webhook_secret": "abc"},
        "survey.deployed",
        {"survey_id": "s1", "status": "live"},
    )

Receivers verify the X-Picksearch-Signature header:
    from picksearch.webhooks import verify_signature

    verify_signature(secret, raw_body, request.headers["X-Picksearch-Signature"])
"""

__version__ = "0.1.0"

# Configuration
from .config import Settings, settings

# Exceptions
from .exceptions import (
    ConfigurationError,
    DeliveryError,
    NotFoundError,
    PicksearchError,
    ValidationError,
    WebhookSecretMissingError,
)

# Models
from .models import (
    DeliveryResult,
    Partner,
    WebhookDelivery,
    WebhookEvent,
)

# Storage
from .storage import DeliveryStore, InMemoryDeliveryStore

# Webhooks
from .webhooks import (
    DeliveryClient,
    RetryPolicy,
    WebhookDispatcher,
    compute_signature,
    dispatch_webhook,
    verify_signature,
)

__all__ = [
    "__version__",
    # Configuration
    "Settings",
    "settings",
    # Exceptions
    "ConfigurationError",
    "DeliveryError",
    "NotFoundError",
    "PicksearchError",
    "ValidationError",
    "WebhookSecretMissingError",
    # Models
    "DeliveryResult",
    "Partner",
    "WebhookDelivery",
    "WebhookEvent",
    # Storage
    "DeliveryStore",
    "InMemoryDeliveryStore",
    # Webhooks
    "DeliveryClient",
    "RetryPolicy",
    "WebhookDispatcher",
    "compute_signature",
    "dispatch_webhook",
    "verify_signature",
]
