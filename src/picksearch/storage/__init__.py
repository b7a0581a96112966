"""Storage for webhook delivery records.

Example:
    ```python
    from picksearch.storage import InMemoryDeliveryStore

    store = InMemoryDeliveryStore()
    await store.log_delivery(delivery)
    dead_letters = await store.list_dead_letters()
    ```
"""

from .deliveries import DeliveryStore, InMemoryDeliveryStore

__all__ = [
    "DeliveryStore",
    "InMemoryDeliveryStore",
]
