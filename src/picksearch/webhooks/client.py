"""Outbound HTTP delivery of signed webhook payloads.

One call is one POST. Every outcome is classified and logged, and nothing
is raised: a partner endpoint being down must never fail the business
operation that produced the event.
"""

from __future__ import annotations

import time
from collections.abc import Mapping

import httpx

from picksearch.logging import get_logger
from picksearch.models import DeliveryResult

from .signing import SIGNATURE_HEADER

logger = get_logger(__name__)

DEFAULT_USER_AGENT = "Picksearch-Webhook/1.0"


class DeliveryClient:
    """Performs single webhook POST attempts.

    Example:
        ```python
        client = DeliveryClient(timeout_seconds=5.0)
        result = await client.deliver(url, payload.body, signature)
        if result.retryable:
            ...
        ```
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the delivery client.

        Args:
            timeout_seconds: Bound on connect, read, write and pool waits.
            user_agent: User-Agent header value.
            transport: Optional httpx transport (e.g. httpx.MockTransport).
        """
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._transport = transport

    @property
    def timeout(self) -> float:
        return self._timeout

    def build_headers(
        self, signature: str, headers: Mapping[str, str] | None = None
    ) -> dict[str, str]:
        request_headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: signature,
            "User-Agent": self._user_agent,
        }
        if headers:
            request_headers.update(headers)
        return request_headers

    async def deliver(
        self,
        url: str,
        body: bytes,
        signature: str,
        headers: Mapping[str, str] | None = None,
    ) -> DeliveryResult:
        """POST a signed body to a partner endpoint.

        Args:
            url: Partner endpoint.
            body: Exact bytes that were signed.
            signature: Value for the signature header.
            headers: Extra headers (event, delivery id, sequence).

        Returns:
            DeliveryResult classified as delivered, rejected or failed.
        """
        request_headers = self.build_headers(signature, headers)
        started = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(url, content=body, headers=request_headers)
        except httpx.TimeoutException as e:
            return self._failed(url, started, f"Request timeout: {e}" if str(e) else "Request timeout")
        except httpx.HTTPError as e:
            return self._failed(url, started, str(e) or type(e).__name__)
        except Exception as e:
            # Invalid URLs and anything else the transport throws
            logger.exception("webhook_dispatch_error", url=url, error=str(e))
            return DeliveryResult(
                outcome="failed",
                error=f"Unexpected error: {e}",
                duration_ms=_elapsed_ms(started),
            )

        duration_ms = _elapsed_ms(started)

        if 200 <= response.status_code < 300:
            logger.info(
                "webhook_delivered",
                url=url,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
            return DeliveryResult(
                outcome="delivered",
                status_code=response.status_code,
                reason=response.reason_phrase,
                duration_ms=duration_ms,
            )

        logger.warning(
            "webhook_rejected",
            url=url,
            status_code=response.status_code,
            reason=response.reason_phrase,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            outcome="rejected",
            status_code=response.status_code,
            reason=response.reason_phrase,
            duration_ms=duration_ms,
        )

    def _failed(self, url: str, started: float, error: str) -> DeliveryResult:
        duration_ms = _elapsed_ms(started)
        logger.warning("webhook_failed", url=url, error=error, duration_ms=duration_ms)
        return DeliveryResult(outcome="failed", error=error, duration_ms=duration_ms)


def _elapsed_ms(started: float) -> int:
    return max(0, int((time.perf_counter() - started) * 1000))
