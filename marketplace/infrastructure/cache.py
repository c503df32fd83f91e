"""Read-through cache for orders.

A mirror of recently read orders. It is never a source of truth: the
order service reads through it on ``get_order`` and drops entries on every
write. Entries hold copies, so callers cannot mutate cached state.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

import structlog

from marketplace.domain.entities import Order

logger = structlog.get_logger()


@dataclass
class CachedOrder:
    """A cached order snapshot.

    Attributes:
        order: Snapshot of the order.
        expires_at: When the entry stops being served.
    """

    order: Order
    expires_at: datetime


class InMemoryOrderCache:
    """In-memory order cache with a fixed time-to-live."""

    def __init__(self, ttl_seconds: int = 300) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Time-to-live for entries in seconds.
        """
        self._entries: dict[int, CachedOrder] = {}
        self.ttl_seconds = ttl_seconds

    async def get(self, order_id: int) -> Order | None:
        """Get a copy of a cached order, if present and not expired."""
        cached = self._entries.get(order_id)
        if cached is None:
            return None

        if datetime.now(timezone.utc) > cached.expires_at:
            del self._entries[order_id]
            return None

        return replace(cached.order)

    async def set(self, order: Order) -> None:
        """Store a copy of an order."""
        if order.id is None:
            return
        self._entries[order.id] = CachedOrder(
            order=replace(order),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds),
        )

    async def invalidate(self, order_id: int) -> None:
        """Drop an order from the cache."""
        if self._entries.pop(order_id, None) is not None:
            logger.debug("Order cache entry invalidated", order_id=order_id)

    async def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
