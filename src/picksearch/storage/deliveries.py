"""Delivery record storage.

Delivery records are the only state the webhook subsystem keeps. Records in
the "exhausted" status form the dead-letter queue that operators replay from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from picksearch.models import DeliveryStatus, WebhookDelivery


class DeliveryStore(ABC):
    """Abstract interface for persisting webhook delivery records.

    Implementations backed by a database plug in here. All methods are
    async so network-backed stores fit without changing callers.
    """

    @abstractmethod
    async def log_delivery(self, delivery: WebhookDelivery) -> str:
        """Store a new delivery record.

        Returns:
            The delivery ID.
        """

    @abstractmethod
    async def update_delivery(self, delivery: WebhookDelivery) -> None:
        """Persist the current state of an existing delivery record."""

    @abstractmethod
    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        """Fetch a delivery record by ID, or None if unknown."""

    @abstractmethod
    async def list_deliveries(
        self,
        status: DeliveryStatus | None = None,
        partner_id: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """List delivery records, newest first.

        Args:
            status: Optional status filter.
            partner_id: Optional partner filter.
            limit: Maximum records to return.
        """

    async def list_dead_letters(
        self,
        partner_id: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        """List deliveries that exhausted their retry budget."""
        return await self.list_deliveries(status="exhausted", partner_id=partner_id, limit=limit)


class InMemoryDeliveryStore(DeliveryStore):
    """Process-local delivery store.

    Keeps deep copies so stored records only change through update_delivery.
    When max_records is reached, the oldest delivered records are evicted
    first, then the oldest terminal ones. In-flight records go last.

    Example:
        ```python
        store = InMemoryDeliveryStore()
        dispatcher = WebhookDispatcher(store=store)
        dead = await store.list_dead_letters(partner_id="ptn_1")
        ```
    """

    def __init__(self, max_records: int = 10_000) -> None:
        if max_records < 1:
            raise ValueError("max_records must be at least 1")
        self._max_records = max_records
        self._records: OrderedDict[str, WebhookDelivery] = OrderedDict()
        # Eviction candidates in the order they reached their final status
        self._delivered: OrderedDict[str, None] = OrderedDict()
        self._exhausted: OrderedDict[str, None] = OrderedDict()

    def __len__(self) -> int:
        return len(self._records)

    async def log_delivery(self, delivery: WebhookDelivery) -> str:
        self._put(delivery)
        self._evict()
        return delivery.id

    async def update_delivery(self, delivery: WebhookDelivery) -> None:
        # Unknown ids (evicted or never logged) are inserted with their latest state
        is_new = delivery.id not in self._records
        self._put(delivery)
        if is_new:
            self._evict()

    async def get_delivery(self, delivery_id: str) -> WebhookDelivery | None:
        record = self._records.get(delivery_id)
        return record.model_copy(deep=True) if record is not None else None

    async def list_deliveries(
        self,
        status: DeliveryStatus | None = None,
        partner_id: str | None = None,
        limit: int = 100,
    ) -> list[WebhookDelivery]:
        results: list[WebhookDelivery] = []
        for record in reversed(self._records.values()):
            if status is not None and record.status != status:
                continue
            if partner_id is not None and record.partner_id != partner_id:
                continue
            results.append(record.model_copy(deep=True))
            if len(results) >= limit:
                break
        return results

    def _put(self, delivery: WebhookDelivery) -> None:
        key = delivery.id
        self._records[key] = delivery.model_copy(deep=True)

        if delivery.status == "delivered":
            self._exhausted.pop(key, None)
            self._delivered.setdefault(key, None)
        elif delivery.status == "exhausted":
            self._delivered.pop(key, None)
            self._exhausted.setdefault(key, None)
        else:
            self._delivered.pop(key, None)
            self._exhausted.pop(key, None)

    def _evict(self) -> None:
        while len(self._records) > self._max_records:
            if self._delivered:
                victim, _ = self._delivered.popitem(last=False)
            elif self._exhausted:
                victim, _ = self._exhausted.popitem(last=False)
            else:
                victim = next(iter(self._records))
            del self._records[victim]
