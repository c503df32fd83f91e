"""Domain events for the marketplace order core.

Domain events represent significant occurrences in an order's life.
They are recorded by the Order aggregate and published (logged) by the
application layer once the corresponding write has been committed.
"""

from dataclasses import dataclass
from typing import Any, ClassVar

from marketplace.domain.base import DomainEvent


# ============================================================================
# Composition Events
# ============================================================================


@dataclass(frozen=True)
class OrderCreated(DomainEvent):
    """Event raised when an order is composed."""

    event_type: ClassVar[str] = "order.created"

    user_id: int = 0
    payment_method: str = ""
    total_cents: int = 0
    currency: str = ""
    item_count: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "user_id": self.user_id,
            "payment_method": self.payment_method,
            "total_cents": self.total_cents,
            "currency": self.currency,
            "item_count": self.item_count,
        }


@dataclass(frozen=True)
class OrderItemAdded(DomainEvent):
    """Event raised when a line item is appended to an order."""

    event_type: ClassVar[str] = "order.item_added"

    product_id: int = 0
    quantity: int = 0
    unit_price_cents: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
        }


@dataclass(frozen=True)
class OrderItemRemoved(DomainEvent):
    """Event raised when all lines for a product are removed."""

    event_type: ClassVar[str] = "order.item_removed"

    product_id: int = 0
    removed_lines: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {"product_id": self.product_id, "removed_lines": self.removed_lines}


@dataclass(frozen=True)
class OrderItemQuantityUpdated(DomainEvent):
    """Event raised when a line item quantity changes."""

    event_type: ClassVar[str] = "order.item_quantity_updated"

    product_id: int = 0
    old_quantity: int = 0
    new_quantity: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "product_id": self.product_id,
            "old_quantity": self.old_quantity,
            "new_quantity": self.new_quantity,
        }


# ============================================================================
# Lifecycle Events
# ============================================================================


@dataclass(frozen=True)
class OrderPaid(DomainEvent):
    """Event raised when settlement moves an order to paid."""

    event_type: ClassVar[str] = "order.paid"

    payment_method: str = ""
    payment_reference: str = ""
    total_cents: int = 0

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "total_cents": self.total_cents,
        }


@dataclass(frozen=True)
class OrderShipped(DomainEvent):
    """Event raised when order is shipped."""

    event_type: ClassVar[str] = "order.shipped"

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {}


@dataclass(frozen=True)
class OrderDelivered(DomainEvent):
    """Event raised when order is delivered."""

    event_type: ClassVar[str] = "order.delivered"

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {}


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    """Event raised when order is cancelled."""

    event_type: ClassVar[str] = "order.cancelled"

    previous_status: str = ""
    reason: str | None = None

    def _payload(self) -> dict[str, Any]:
        """Get event-specific payload."""
        return {"previous_status": self.previous_status, "reason": self.reason}
