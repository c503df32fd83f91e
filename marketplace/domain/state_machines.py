"""State machine for the order lifecycle.

A deterministic state machine that defines valid order state transitions.
The transition table below is the single authority on which moves are
legal; entities and services consult it rather than re-encoding rules.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from marketplace.domain.exceptions import InvalidStateTransitionError, ValidationError

# Type variable for state machine states
S = TypeVar("S", bound=Enum)


# ============================================================================
# Order State Machine
# ============================================================================


class OrderStatus(str, Enum):
    """Order lifecycle states.

    State diagram:
        PENDING ─────────────────────────────────────► CANCELLED
          │                                              ▲
          │ settle payment                               │
          ▼                                              │
        PAID ────────────────────────────────────────────┘
          │
          │ ship
          ▼
        SHIPPED
          │
          │ deliver
          ▼
        DELIVERED
    """

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """Check if transition to target state is valid.

        Args:
            target: Target state to transition to.

        Returns:
            True if transition is valid.
        """
        return target in _ORDER_TRANSITIONS.get(self, set())

    def allowed_transitions(self) -> list["OrderStatus"]:
        """Get list of valid target states, in lifecycle order."""
        targets = _ORDER_TRANSITIONS.get(self, set())
        return [status for status in OrderStatus if status in targets]

    def is_terminal(self) -> bool:
        """Check if this is a terminal (final) state."""
        return len(_ORDER_TRANSITIONS.get(self, set())) == 0

    def is_cancellable(self) -> bool:
        """Check if order can be cancelled."""
        return self.can_transition_to(OrderStatus.CANCELLED)

    def is_editable(self) -> bool:
        """Check if line items may still change."""
        return self == OrderStatus.PENDING

    def requires_payment_reference(self) -> bool:
        """Check if orders in this state must carry a payment reference."""
        return self in {OrderStatus.PAID, OrderStatus.SHIPPED, OrderStatus.DELIVERED}


# Order state transitions (defined outside enum to avoid Enum restrictions)
_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal state
    OrderStatus.CANCELLED: set(),  # Terminal state
}

# Transitions that may only happen through payment settlement
SETTLEMENT_ONLY_TRANSITIONS: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    {(OrderStatus.PENDING, OrderStatus.PAID)}
)


# ============================================================================
# State Transition Result
# ============================================================================


@dataclass(frozen=True)
class StateTransition(Generic[S]):
    """Represents an applied state transition.

    Attributes:
        from_state: Previous state.
        to_state: New state.
    """

    from_state: S
    to_state: S

    @classmethod
    def successful(cls, from_state: S, to_state: S) -> "StateTransition[S]":
        """Create a transition record."""
        return cls(from_state=from_state, to_state=to_state)


# ============================================================================
# State Machine Helpers
# ============================================================================


def parse_order_status(value: OrderStatus | str) -> OrderStatus:
    """Coerce a status name into an ``OrderStatus``.

    Raises:
        ValidationError: If the value names no known status.
    """
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Unknown order status '{value}'",
            details={"status": value, "allowed": [s.value for s in OrderStatus]},
        ) from None


def validate_order_transition(
    order_id: int | None,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate and raise if order state transition is invalid.

    Args:
        order_id: Order identifier for error message.
        current_status: Current order status.
        target_status: Target order status.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    if not current_status.can_transition_to(target_status):
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=str(order_id),
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in current_status.allowed_transitions()],
        )


def validate_administrative_transition(
    order_id: int | None,
    current_status: OrderStatus,
    target_status: OrderStatus,
) -> None:
    """Validate a transition requested outside of payment settlement.

    Same table as ``validate_order_transition`` but the settlement-only
    edges are excluded, so ``pending -> paid`` is refused here.

    Raises:
        InvalidStateTransitionError: If transition is not valid.
    """
    allowed = [
        s
        for s in current_status.allowed_transitions()
        if (current_status, s) not in SETTLEMENT_ONLY_TRANSITIONS
    ]
    if target_status not in allowed:
        raise InvalidStateTransitionError(
            entity_type="Order",
            entity_id=str(order_id),
            current_state=current_status.value,
            target_state=target_status.value,
            allowed_transitions=[s.value for s in allowed],
        )
