"""Picksearch exception hierarchy.

Provides structured exceptions for error handling throughout the codebase.
All exceptions inherit from PicksearchError for easy catching.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from picksearch.models import DeliveryResult


class PicksearchError(Exception):
    """Base exception for all Picksearch errors.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code for API responses.
    """

    code: str = "picksearch_error"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
            }
        }


class ValidationError(PicksearchError):
    """Invalid input provided.

    Attributes:
        field: The field that failed validation.
        message: Description of the validation failure.
    """

    code: str = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "field": self.field,
                "message": self.message,
            }
        }


class NotFoundError(PicksearchError):
    """Resource not found.

    Attributes:
        resource_type: Type of resource (e.g., "delivery", "partner").
        resource_id: ID of the missing resource.
    """

    code: str = "not_found"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} not found: {resource_id}")

    def to_dict(self) -> dict[str, object]:
        """Convert exception to API-friendly dictionary."""
        return {
            "error": {
                "code": self.code,
                "resource_type": self.resource_type,
                "resource_id": self.resource_id,
                "message": self.message,
            }
        }


class ConfigurationError(PicksearchError):
    """Configuration error.

    Raised when required configuration is missing or invalid.
    """

    code: str = "configuration_error"


class WebhookSecretMissingError(ConfigurationError):
    """A partner has a webhook endpoint but no signing secret.

    Meant to be raised by partner onboarding, before any event is sent.
    """

    code: str = "webhook_secret_missing"

    def __init__(self, partner_id: str | None) -> None:
        self.partner_id = partner_id
        super().__init__(f"Partner {partner_id or '<unknown>'} has no webhook secret configured")


class DeliveryError(PicksearchError):
    """A webhook attempt ended with a retryable outcome.

    Used inside the retry loop only. Never propagates to dispatch callers.

    Attributes:
        result: The DeliveryResult of the failed attempt.
    """

    code: str = "delivery_error"

    def __init__(self, result: DeliveryResult) -> None:
        self.result = result
        super().__init__(result.describe())
