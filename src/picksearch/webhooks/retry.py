"""Retry policy for webhook delivery.

Exponential backoff driven by tenacity. Only attempts that ended in a
DeliveryError (a retryable DeliveryResult) are retried.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from picksearch.exceptions import DeliveryError

if TYPE_CHECKING:
    from picksearch.config import Settings


class RetryPolicy(BaseModel):
    """Backoff schedule for a delivery.

    The delay before attempt n + 1 is
    ``min(initial_delay_seconds * 2 ** (n - 1), max_delay_seconds)``,
    so with the defaults: 1s, 2s, 4s, 8s.

    Attributes:
        max_attempts: Total attempts, including the first one.
        initial_delay_seconds: Delay before the first retry.
        max_delay_seconds: Upper bound for any single delay.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: int = Field(default=5, ge=1, le=20)
    initial_delay_seconds: float = Field(default=1.0, ge=0.0)
    max_delay_seconds: float = Field(default=300.0, ge=0.0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RetryPolicy":
        if self.max_delay_seconds < self.initial_delay_seconds:
            raise ValueError("max_delay_seconds must be >= initial_delay_seconds")
        return self

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.webhook_max_attempts,
            initial_delay_seconds=settings.webhook_retry_initial_delay_seconds,
            max_delay_seconds=settings.webhook_retry_max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after the given (1-indexed) failed attempt."""
        if attempt < 1:
            return 0.0
        return min(self.initial_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)

    def has_attempts_left(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def wait(self, retry_state: RetryCallState) -> float:
        """tenacity wait strategy matching delay_for."""
        return self.delay_for(retry_state.attempt_number)

    def retrying(
        self,
        before_sleep: Callable[[RetryCallState], Any] | None = None,
    ) -> AsyncRetrying:
        """Build a tenacity retry loop for one delivery.

        Args:
            before_sleep: Called after a failed attempt when a retry is scheduled.
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(DeliveryError),
            before_sleep=before_sleep,
            reraise=True,
        )
