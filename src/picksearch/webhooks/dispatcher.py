"""Fire-and-forget webhook dispatch with retries and dead-lettering.

Business handlers (survey deploy, pause, resume, cancel) call
``dispatch(partner, event_name, data)`` and move on. Delivery runs in a
background task: the envelope is signed, POSTed, retried with exponential
backoff on transient failures, and dead-lettered ("exhausted") when the
retry budget runs out or the partner rejects it permanently.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Coroutine, Mapping
from datetime import timedelta
from typing import Any

from tenacity import RetryCallState

from picksearch.config import Settings
from picksearch.exceptions import (
    ConfigurationError,
    DeliveryError,
    NotFoundError,
    ValidationError,
    WebhookSecretMissingError,
)
from picksearch.logging import bind_context, get_logger
from picksearch.models import Partner, WebhookDelivery, coerce_partner, utc_now
from picksearch.storage import DeliveryStore, InMemoryDeliveryStore

from .client import DeliveryClient
from .payload import build_payload
from .retry import RetryPolicy
from .signing import compute_signature

logger = get_logger(__name__)

EVENT_HEADER = "X-Picksearch-Event"
DELIVERY_HEADER = "X-Picksearch-Delivery-Id"
SEQUENCE_HEADER = "X-Picksearch-Sequence"

PartnerLike = Partner | Mapping[str, Any]
PartnerLookup = Callable[[str], Awaitable[PartnerLike | None]]


def require_webhook_secret(partner: PartnerLike) -> Partner:
    """Reject partners that have an endpoint but no signing secret.

    Intended for partner onboarding, so the weak-secret condition is caught
    before any event is generated.

    Raises:
        WebhookSecretMissingError: If a webhook URL is set without a secret.
    """
    partner = coerce_partner(partner)
    if partner.webhook_enabled and not partner.has_webhook_secret:
        raise WebhookSecretMissingError(partner.id)
    return partner


class WebhookDispatcher:
    """Dispatches partner events as signed webhooks.

    Handles:
    - Skipping partners without a webhook endpoint
    - Building and signing the canonical envelope
    - Delivering in the background, bounded globally and per partner
    - Retrying transient failures with exponential backoff
    - Dead-lettering deliveries that cannot be completed, and replaying them

    Example:
        ```python
        dispatcher = WebhookDispatcher()

        # In a request handler; returns immediately
        dispatcher.dispatch(partner, "survey.deployed", {"survey_id": "s1", "status": "live"})

        # On shutdown
        await dispatcher.aclose()
        ```
    """

    def __init__(
        self,
        store: DeliveryStore | None = None,
        client: DeliveryClient | None = None,
        policy: RetryPolicy | None = None,
        settings: Settings | None = None,
        partner_lookup: PartnerLookup | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            store: Delivery record store. Defaults to an in-memory store.
            client: HTTP delivery client. Defaults to one built from settings.
            policy: Retry policy. Defaults to one built from settings.
            settings: Configuration. Loaded from the environment if None.
            partner_lookup: Async callable resolving a partner ID to its
                current record. Needed to replay dead letters by ID alone.
        """
        if settings is None:
            settings = Settings()

        self._settings = settings
        self._store = store if store is not None else InMemoryDeliveryStore()
        self._client = client or DeliveryClient(
            timeout_seconds=settings.webhook_timeout_seconds,
            user_agent=settings.webhook_user_agent,
        )
        self._policy = policy or RetryPolicy.from_settings(settings)
        self._require_secret = settings.requires_webhook_secret
        self._partner_lookup = partner_lookup

        self._semaphore = asyncio.Semaphore(settings.webhook_max_concurrent)
        self._per_partner_limit = settings.webhook_max_concurrent_per_partner
        self._partner_semaphores: dict[str, asyncio.Semaphore] = {}
        self._sequences: dict[str, itertools.count[int]] = {}
        self._tasks: set[asyncio.Task[WebhookDelivery | None]] = set()

    @property
    def store(self) -> DeliveryStore:
        return self._store

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def pending_count(self) -> int:
        """Number of deliveries still running in the background."""
        return len(self._tasks)

    def dispatch(self, partner: PartnerLike, event_name: str, data: Mapping[str, Any]) -> None:
        """Send an event to a partner without waiting for delivery.

        Must be called from a running event loop. Never raises and returns
        nothing meaningful; outcomes are visible in logs and the store.

        Args:
            partner: Partner model or raw partner row.
            event_name: Event type (e.g. "survey.status_changed").
            data: Event-specific payload.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            logger.error("webhook_dropped_no_event_loop", event_type=event_name)
            return

        prepared = self._prepare(partner, event_name, data)
        if prepared is None:
            return

        self._spawn(self._run(*prepared))

    async def deliver(
        self, partner: PartnerLike, event_name: str, data: Mapping[str, Any]
    ) -> WebhookDelivery | None:
        """Send an event and wait until delivery finishes or is dead-lettered.

        Returns:
            The final delivery record, or None if nothing was sent.
        """
        prepared = self._prepare(partner, event_name, data)
        if prepared is None:
            return None
        # Own task so log context bound during delivery stays out of the caller
        return await self._spawn(self._run(*prepared))

    async def replay(
        self, delivery_id: str, partner: PartnerLike | None = None
    ) -> WebhookDelivery:
        """Re-send a dead-lettered delivery with a fresh retry budget.

        The stored body is sent unchanged, so the receiver sees the original
        envelope and timestamp. It is signed with the partner's current
        secret and sent to the partner's current URL.

        Args:
            delivery_id: ID of an exhausted delivery.
            partner: Current partner record. Looked up by ID if None.

        Returns:
            The new delivery record (status pending), already scheduled.

        Raises:
            NotFoundError: Unknown delivery, or partner lookup found nothing.
            ValidationError: Delivery is not exhausted or partner has no URL.
            ConfigurationError: No partner given and no lookup configured.
        """
        original = await self._store.get_delivery(delivery_id)
        if original is None:
            raise NotFoundError("delivery", delivery_id)
        if original.status != "exhausted":
            raise ValidationError(
                "status",
                f"only exhausted deliveries can be replayed (status is {original.status})",
            )

        if partner is None:
            partner = await self._lookup_partner(original.partner_id)
        resolved = coerce_partner(partner)

        if not resolved.webhook_enabled:
            raise ValidationError("webhook_url", "partner has no webhook endpoint configured")
        if self._require_secret:
            require_webhook_secret(resolved)

        replay = WebhookDelivery(
            partner_id=original.partner_id or resolved.id,
            url=resolved.webhook_url or "",
            event=original.event,
            payload=original.payload,
            sequence=self._next_sequence(resolved.key),
            replay_of=original.id,
            max_attempts=self._policy.max_attempts,
        )
        await self._store.log_delivery(replay)

        logger.info(
            "webhook_replay_scheduled",
            delivery_id=replay.id,
            replay_of=original.id,
            partner_id=replay.partner_id,
        )
        self._spawn(self._run(resolved, replay, logged=True))
        return replay.model_copy(deep=True)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for in-flight deliveries, e.g. before shutdown or in tests."""
        if not self._tasks:
            return
        _, not_done = await asyncio.wait(list(self._tasks), timeout=timeout)
        if not_done:
            logger.warning("webhook_drain_timeout", pending=len(not_done))

    async def aclose(self, timeout: float | None = 30.0) -> None:
        """Drain in-flight deliveries, cancelling whatever outlives the timeout.

        Cancelled deliveries are dead-lettered so they can be replayed later.
        """
        await self.drain(timeout=timeout)
        remaining = list(self._tasks)
        for task in remaining:
            task.cancel()
        if remaining:
            await asyncio.gather(*remaining, return_exceptions=True)
            logger.warning("webhook_deliveries_cancelled", count=len(remaining))

    def _prepare(
        self, partner: PartnerLike, event_name: str, data: Mapping[str, Any]
    ) -> tuple[Partner, WebhookDelivery] | None:
        """Decide whether to send, then build the envelope and delivery record."""
        try:
            resolved = coerce_partner(partner)
        except Exception as e:
            logger.error("webhook_invalid_partner", event_type=event_name, error=str(e))
            return None

        if not resolved.webhook_enabled:
            logger.debug("webhook_not_configured", partner_id=resolved.id, event_type=event_name)
            return None

        if not resolved.has_webhook_secret:
            if self._require_secret:
                logger.error(
                    "webhook_refused_missing_secret",
                    partner_id=resolved.id,
                    event_type=event_name,
                )
                return None
            logger.warning(
                "webhook_signing_with_empty_secret",
                partner_id=resolved.id,
                event_type=event_name,
            )

        try:
            payload = build_payload(event_name, data)
        except ValidationError as e:
            logger.error(
                "webhook_invalid_event",
                partner_id=resolved.id,
                event_type=event_name,
                field=e.field,
                error=e.message,
            )
            return None

        delivery = WebhookDelivery(
            partner_id=resolved.id,
            url=resolved.webhook_url or "",
            event=payload.event.event,
            payload=payload.text,
            sequence=self._next_sequence(resolved.key),
            max_attempts=self._policy.max_attempts,
        )
        return resolved, delivery

    async def _run(
        self, partner: Partner, delivery: WebhookDelivery, logged: bool = False
    ) -> WebhookDelivery:
        """Deliver with retries. Never raises, except to propagate cancellation.

        A cancelled delivery that has not finished is dead-lettered first.
        """
        bind_context(delivery_id=delivery.id, partner_id=partner.id, event_type=delivery.event)

        try:
            if not logged:
                await self._store.log_delivery(delivery)

            async for attempt in self._policy.retrying(before_sleep=self._log_retry):
                with attempt:
                    await self._attempt(partner, delivery)
        except DeliveryError:
            delivery.mark_exhausted()
            logger.error(
                "webhook_exhausted",
                url=delivery.url,
                attempts=delivery.attempt,
                error=delivery.last_error,
            )
            await self._save(delivery)
        except asyncio.CancelledError:
            # Shutdown cut the retry budget short; keep the event replayable
            if not delivery.is_terminal:
                delivery.mark_exhausted(error="cancelled during shutdown")
                logger.warning(
                    "webhook_cancelled",
                    url=delivery.url,
                    attempts=delivery.attempt,
                )
                await self._save(delivery)
            raise
        except Exception as e:
            logger.exception("webhook_dispatch_error", url=delivery.url, error=str(e))

        return delivery

    async def _attempt(self, partner: Partner, delivery: WebhookDelivery) -> None:
        """Make one attempt, record it, and raise DeliveryError if it should be retried."""
        body = delivery.body
        signature = compute_signature(partner.webhook_secret, body)
        headers = {
            EVENT_HEADER: delivery.event,
            DELIVERY_HEADER: delivery.id,
            SEQUENCE_HEADER: str(delivery.sequence),
        }

        async with self._semaphore, self._partner_semaphore(partner.key):
            result = await self._client.deliver(delivery.url, body, signature, headers)

        delivery.record_attempt(result)

        if result.ok:
            delivery.mark_delivered()
            await self._save(delivery)
            return

        if not result.retryable:
            delivery.mark_exhausted()
            logger.warning(
                "webhook_rejected_permanently",
                url=delivery.url,
                status_code=result.status_code,
                reason=result.reason,
            )
            await self._save(delivery)
            return

        if self._policy.has_attempts_left(delivery.attempt):
            delay = self._policy.delay_for(delivery.attempt)
            delivery.mark_failed(next_retry_at=utc_now() + timedelta(seconds=delay))
            await self._save(delivery)

        raise DeliveryError(result)

    async def _save(self, delivery: WebhookDelivery) -> None:
        await self._store.update_delivery(delivery)

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "webhook_retry_scheduled",
            attempt=retry_state.attempt_number,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(exception) if exception else None,
        )

    async def _lookup_partner(self, partner_id: str | None) -> PartnerLike:
        if self._partner_lookup is None:
            raise ConfigurationError("Replaying by delivery ID requires a partner lookup")
        if partner_id is None:
            raise NotFoundError("partner", "<unknown>")
        found = await self._partner_lookup(partner_id)
        if found is None:
            raise NotFoundError("partner", partner_id)
        return found

    def _partner_semaphore(self, key: str) -> asyncio.Semaphore:
        semaphore = self._partner_semaphores.get(key)
        if semaphore is None:
            semaphore = asyncio.Semaphore(self._per_partner_limit)
            self._partner_semaphores[key] = semaphore
        return semaphore

    def _next_sequence(self, key: str) -> int:
        counter = self._sequences.setdefault(key, itertools.count(1))
        return next(counter)

    def _spawn(
        self, coro: Coroutine[Any, Any, WebhookDelivery | None]
    ) -> asyncio.Task[WebhookDelivery | None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


_default_dispatcher: WebhookDispatcher | None = None


def get_dispatcher() -> WebhookDispatcher:
    """Return the process-wide dispatcher, creating it on first use."""
    global _default_dispatcher
    if _default_dispatcher is None:
        _default_dispatcher = WebhookDispatcher()
    return _default_dispatcher


def set_dispatcher(dispatcher: WebhookDispatcher | None) -> None:
    """Replace the process-wide dispatcher (None resets it)."""
    global _default_dispatcher
    _default_dispatcher = dispatcher


def dispatch_webhook(
    partner: PartnerLike,
    event_name: str,
    data: Mapping[str, Any],
    dispatcher: WebhookDispatcher | None = None,
) -> None:
    """Entry point for business handlers: notify a partner, fire-and-forget.

    Example:
        ```python
        dispatch_webhook(
            partner_row,
            "survey.status_changed",
            {"survey_id": survey.id, "status": "closed", "refund_eligible": True},
        )
        ```
    """
    (dispatcher or get_dispatcher()).dispatch(partner, event_name, data)
