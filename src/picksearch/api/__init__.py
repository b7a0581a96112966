"""FastAPI operator API for Picksearch webhooks.

Example:
    ```bash
    uvicorn picksearch.api:app --reload
    ```
"""

from .app import app, create_app
from .router import router

__all__ = [
    "app",
    "create_app",
    "router",
]
