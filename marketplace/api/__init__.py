"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from marketplace.api.health import router as health_router
from marketplace.api.orders import router as orders_router

__all__ = [
    "health_router",
    "orders_router",
]
