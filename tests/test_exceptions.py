"""Tests for Picksearch exception hierarchy."""

import pytest

from picksearch.exceptions import (
    ConfigurationError,
    DeliveryError,
    NotFoundError,
    PicksearchError,
    ValidationError,
    WebhookSecretMissingError,
)
from picksearch.models import DeliveryResult


class TestPicksearchError:
    """Tests for the base PicksearchError class."""

    def test_error_message(self):
        """Should store and return message."""
        error = PicksearchError("Something went wrong")
        assert error.message == "Something went wrong"
        assert str(error) == "Something went wrong"

    def test_to_dict(self):
        """Should convert to API-friendly dict."""
        assert PicksearchError("Something went wrong").to_dict() == {
            "error": {
                "code": "picksearch_error",
                "message": "Something went wrong",
            }
        }

    def test_inheritance(self):
        """All custom exceptions should inherit from PicksearchError."""
        exceptions = [
            ValidationError("field", "invalid"),
            NotFoundError("delivery", "dlv_1"),
            ConfigurationError("missing"),
            WebhookSecretMissingError("ptn_1"),
            DeliveryError(DeliveryResult(outcome="failed", error="boom")),
        ]
        for exc in exceptions:
            assert isinstance(exc, PicksearchError)

    def test_catch_all(self):
        """Should be catchable as PicksearchError."""
        with pytest.raises(PicksearchError):
            raise NotFoundError("delivery", "dlv_1")


class TestValidationError:
    """Tests for ValidationError."""

    def test_field_in_message_and_dict(self):
        error = ValidationError("event", "must not be empty")
        assert error.message == "event: must not be empty"
        assert error.to_dict()["error"]["field"] == "event"
        assert error.code == "validation_error"


class TestNotFoundError:
    """Tests for NotFoundError."""

    def test_to_dict(self):
        error = NotFoundError("delivery", "dlv_123")
        assert error.to_dict() == {
            "error": {
                "code": "not_found",
                "resource_type": "delivery",
                "resource_id": "dlv_123",
                "message": "delivery not found: dlv_123",
            }
        }


class TestWebhookSecretMissingError:
    """Tests for WebhookSecretMissingError."""

    def test_is_configuration_error(self):
        error = WebhookSecretMissingError("ptn_1")
        assert isinstance(error, ConfigurationError)
        assert error.code == "webhook_secret_missing"
        assert "ptn_1" in error.message

    def test_unknown_partner(self):
        assert "<unknown>" in WebhookSecretMissingError(None).message


class TestDeliveryError:
    """Tests for DeliveryError."""

    def test_carries_result(self):
        result = DeliveryResult(outcome="rejected", status_code=503, reason="Service Unavailable")
        error = DeliveryError(result)
        assert error.result is result
        assert error.message == "HTTP 503 Service Unavailable"
