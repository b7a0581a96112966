"""Tests for the webhook retry policy."""

import pytest
from pydantic import ValidationError

from picksearch.config import Settings
from picksearch.exceptions import DeliveryError
from picksearch.models import DeliveryResult
from picksearch.webhooks.retry import RetryPolicy


def transient() -> DeliveryError:
    return DeliveryError(DeliveryResult(outcome="failed", error="Connection refused"))


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self):
        policy = RetryPolicy()
        assert policy.max_attempts == 5
        assert [policy.delay_for(n) for n in range(1, 5)] == [1.0, 2.0, 4.0, 8.0]

    def test_delay_capped(self):
        policy = RetryPolicy(initial_delay_seconds=10, max_delay_seconds=25)
        assert [policy.delay_for(n) for n in range(1, 5)] == [10, 20, 25, 25]

    def test_delay_for_zero(self):
        assert RetryPolicy().delay_for(0) == 0.0

    def test_has_attempts_left(self):
        policy = RetryPolicy(max_attempts=3)
        assert policy.has_attempts_left(2)
        assert not policy.has_attempts_left(3)

    def test_invalid_bounds(self):
        with pytest.raises(ValidationError):
            RetryPolicy(initial_delay_seconds=5, max_delay_seconds=1)
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)

    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            webhook_max_attempts=7,
            webhook_retry_initial_delay_seconds=2,
            webhook_retry_max_delay_seconds=60,
        )
        policy = RetryPolicy.from_settings(settings)
        assert policy.max_attempts == 7
        assert policy.initial_delay_seconds == 2
        assert policy.max_delay_seconds == 60


class TestRetrying:
    """Tests for the tenacity loop built by the policy."""

    @pytest.mark.asyncio
    async def test_retries_delivery_errors_until_exhausted(self):
        policy = RetryPolicy(max_attempts=3, initial_delay_seconds=0, max_delay_seconds=0)
        sleeps = []
        calls = 0

        with pytest.raises(DeliveryError):
            async for attempt in policy.retrying(before_sleep=sleeps.append):
                with attempt:
                    calls += 1
                    raise transient()

        assert calls == 3
        assert len(sleeps) == 2

    @pytest.mark.asyncio
    async def test_stops_on_success(self):
        policy = RetryPolicy(max_attempts=5, initial_delay_seconds=0, max_delay_seconds=0)
        calls = 0

        async for attempt in policy.retrying():
            with attempt:
                calls += 1
                if calls < 2:
                    raise transient()

        assert calls == 2

    @pytest.mark.asyncio
    async def test_other_errors_not_retried(self):
        policy = RetryPolicy(max_attempts=5, initial_delay_seconds=0, max_delay_seconds=0)
        calls = 0

        with pytest.raises(ValueError):
            async for attempt in policy.retrying():
                with attempt:
                    calls += 1
                    raise ValueError("bug")

        assert calls == 1
