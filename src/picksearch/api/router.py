"""FastAPI router for webhook delivery operations.

Operators use these endpoints to inspect deliveries and replay dead letters.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from picksearch import __version__
from picksearch.exceptions import NotFoundError
from picksearch.models import DeliveryStatus
from picksearch.webhooks import WebhookDispatcher, get_dispatcher

from .schemas import DeliveryListResponse, DeliveryResponse, HealthResponse

router = APIRouter()


def get_webhook_dispatcher() -> WebhookDispatcher:
    """Dependency returning the process-wide dispatcher."""
    return get_dispatcher()


DispatcherDep = Annotated[WebhookDispatcher, Depends(get_webhook_dispatcher)]


@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health_check(dispatcher: DispatcherDep) -> HealthResponse:
    """Check service health and report background delivery load."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        pending_deliveries=dispatcher.pending_count,
    )


@router.get(
    "/webhooks/deliveries",
    response_model=DeliveryListResponse,
    tags=["webhooks"],
)
async def list_deliveries(
    dispatcher: DispatcherDep,
    delivery_status: Annotated[DeliveryStatus | None, Query(alias="status")] = None,
    partner_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> DeliveryListResponse:
    """List delivery records, newest first.

    Use ``status=exhausted`` to list the dead-letter queue.
    """
    deliveries = await dispatcher.store.list_deliveries(
        status=delivery_status,
        partner_id=partner_id,
        limit=limit,
    )
    return DeliveryListResponse(
        deliveries=[DeliveryResponse.from_delivery(d) for d in deliveries],
        count=len(deliveries),
    )


@router.get(
    "/webhooks/deliveries/{delivery_id}",
    response_model=DeliveryResponse,
    tags=["webhooks"],
)
async def get_delivery(delivery_id: str, dispatcher: DispatcherDep) -> DeliveryResponse:
    """Fetch a single delivery record."""
    delivery = await dispatcher.store.get_delivery(delivery_id)
    if delivery is None:
        raise NotFoundError("delivery", delivery_id)
    return DeliveryResponse.from_delivery(delivery)


@router.post(
    "/webhooks/deliveries/{delivery_id}/replay",
    response_model=DeliveryResponse,
    status_code=status.HTTP_202_ACCEPTED,
    tags=["webhooks"],
)
async def replay_delivery(delivery_id: str, dispatcher: DispatcherDep) -> DeliveryResponse:
    """Replay a dead-lettered delivery.

    The original body is re-sent with a fresh retry budget. The response is
    the new delivery record; poll it to follow progress.
    """
    replay = await dispatcher.replay(delivery_id)
    return DeliveryResponse.from_delivery(replay)
