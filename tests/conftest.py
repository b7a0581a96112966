"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import httpx
import pytest
import structlog
from structlog.testing import LogCapture

from picksearch.config import Settings
from picksearch.logging import get_logger
from picksearch.models import Partner
from picksearch.storage import InMemoryDeliveryStore
from picksearch.webhooks import DeliveryClient, RetryPolicy, WebhookDispatcher

Handler = Callable[[httpx.Request], Any]


class RecordingHandler:
    """httpx.MockTransport handler that records requests.

    Replies with the queued responses in order, repeating the last one.
    A queued exception instance is raised instead of replying.
    """

    def __init__(self, *responses: httpx.Response | Exception | int) -> None:
        self.responses = list(responses) or [200]
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        reply = self.responses[index]
        if isinstance(reply, Exception):
            if isinstance(reply, httpx.RequestError):
                reply.request = request
            raise reply
        if isinstance(reply, int):
            return httpx.Response(reply, text="ok" if reply < 300 else "error")
        return reply


@pytest.fixture
def settings() -> Settings:
    """Test settings: no .env file, no backoff delays."""
    return Settings(
        _env_file=None,
        env="test",
        webhook_timeout_seconds=1.0,
        webhook_max_attempts=3,
        webhook_retry_initial_delay_seconds=0.0,
        webhook_retry_max_delay_seconds=0.0,
    )


@pytest.fixture
def partner() -> Partner:
    return Partner(
        id="ptn_1",
        name="Partner One",
        webhook_url="https://partner.test/hook",
        webhook_secret="abc",
    )


@pytest.fixture
def store() -> InMemoryDeliveryStore:
    return InMemoryDeliveryStore()


@pytest.fixture
def make_dispatcher(
    settings: Settings, store: InMemoryDeliveryStore
) -> Callable[..., WebhookDispatcher]:
    """Build a dispatcher whose HTTP calls go to the given handler."""

    def _make(handler: Handler, **kwargs: Any) -> WebhookDispatcher:
        client = DeliveryClient(
            timeout_seconds=settings.webhook_timeout_seconds,
            user_agent=settings.webhook_user_agent,
            transport=httpx.MockTransport(handler),
        )
        kwargs.setdefault("store", store)
        kwargs.setdefault("policy", RetryPolicy.from_settings(settings))
        kwargs.setdefault("settings", settings)
        return WebhookDispatcher(client=client, **kwargs)

    return _make


@pytest.fixture
def log_events() -> Iterator[list[dict[str, Any]]]:
    """Capture structlog event dicts, including context bound in delivery tasks."""
    get_logger()  # make sure logging is configured before swapping processors
    processors = structlog.get_config()["processors"]
    saved = list(processors)
    capture = LogCapture()
    processors[:] = [structlog.contextvars.merge_contextvars, capture]
    try:
        yield capture.entries
    finally:
        processors[:] = saved
