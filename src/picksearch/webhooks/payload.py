"""Canonical webhook payloads.

The body is serialised exactly once. The same bytes are signed and sent, so
the embedded timestamp cannot drift between the two. Keys are sorted at
every level so the bytes do not depend on dict insertion order.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from picksearch.exceptions import ValidationError
from picksearch.models import ALL_EVENT_TYPES, WebhookEvent


def canonical_json(obj: Any) -> bytes:
    """Serialise to compact, key-sorted UTF-8 JSON."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


@dataclass(frozen=True)
class WebhookPayload:
    """An envelope together with its canonical body bytes."""

    event: WebhookEvent
    body: bytes

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")


def encode_event(event: WebhookEvent) -> WebhookPayload:
    """Serialise an already-built envelope."""
    try:
        body = canonical_json(event.model_dump(mode="json"))
    except (TypeError, ValueError) as e:
        raise ValidationError("data", f"not JSON-serializable: {e}") from e
    return WebhookPayload(event=event, body=body)


def build_payload(
    event_name: str,
    data: Mapping[str, Any],
    *,
    timestamp: datetime | None = None,
) -> WebhookPayload:
    """Build the envelope for an event and serialise it.

    Args:
        event_name: Event type from the catalog (e.g. "survey.deployed").
        data: Event-specific payload. May be empty, must not be None.
        timestamp: Generation time. Defaults to now.

    Returns:
        WebhookPayload whose body is the bytes to sign and send.

    Raises:
        ValidationError: If the event name is unknown or data is invalid.
    """
    if not event_name:
        raise ValidationError("event", "must not be empty")
    if event_name not in ALL_EVENT_TYPES:
        raise ValidationError("event", f"unknown event type {event_name!r}")
    if not isinstance(data, Mapping):
        raise ValidationError("data", "must be a mapping")

    fields: dict[str, Any] = {"event": event_name, "data": dict(data)}
    if timestamp is not None:
        fields["timestamp"] = timestamp

    try:
        event = WebhookEvent(**fields)
    except PydanticValidationError as e:
        raise ValidationError("data", str(e)) from e

    return encode_event(event)
