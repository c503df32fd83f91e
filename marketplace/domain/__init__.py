"""Domain layer - Entities, value objects, state machine, domain events.

This module exports the core building blocks of the order subsystem:

- **Entities**: Objects with identity (Order, Product)
- **Value Objects**: Immutable objects compared by value (Money, LineItem, payloads)
- **State Machine**: OrderStatus and its single transition table
- **Domain Events**: Significant occurrences in an order's life
- **Exceptions**: Domain-specific errors and invariant violations

Example usage:
    from marketplace.domain import LineItem, Order, PaymentMethod

    order = Order.create(
        user_id=7,
        shipping_address="Calle 123 #45-67, Bogota",
        payment_method=PaymentMethod.BANK_TRANSFER,
        items=[LineItem.create(product_id=1, quantity=2, unit_price_cents=50000)],
    )
    order.update_item_quantity(1, 3)
    print(order.total)  # $1500.00 COP
"""

from marketplace.domain.base import AggregateRoot, DomainEvent, Entity, ValueObject
from marketplace.domain.entities import Order, Product
from marketplace.domain.events import (
    OrderCancelled,
    OrderCreated,
    OrderDelivered,
    OrderItemAdded,
    OrderItemQuantityUpdated,
    OrderItemRemoved,
    OrderPaid,
    OrderShipped,
)
from marketplace.domain.exceptions import (
    ConcurrentModificationError,
    CurrencyMismatchError,
    DomainError,
    InsufficientStockError,
    InvalidLineItemError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    NegativeMoneyError,
    OrderNotEditableError,
    OrderNotFoundError,
    OrderNotPendingError,
    PaymentGatewayError,
    PaymentPayloadError,
    ProductNotFoundError,
    StorageError,
    ValidationError,
)
from marketplace.domain.state_machines import (
    OrderStatus,
    StateTransition,
    parse_order_status,
    validate_administrative_transition,
    validate_order_transition,
)
from marketplace.domain.value_objects import (
    DEFAULT_CURRENCY,
    BankTransferPayload,
    LineItem,
    Money,
    PaymentMethod,
    PaymentPayload,
    PayPalPayload,
    StripePayload,
)

__all__ = [
    # Base
    "AggregateRoot",
    "DomainEvent",
    "Entity",
    "ValueObject",
    # Entities
    "Order",
    "Product",
    # Events
    "OrderCancelled",
    "OrderCreated",
    "OrderDelivered",
    "OrderItemAdded",
    "OrderItemQuantityUpdated",
    "OrderItemRemoved",
    "OrderPaid",
    "OrderShipped",
    # Exceptions
    "ConcurrentModificationError",
    "CurrencyMismatchError",
    "DomainError",
    "InsufficientStockError",
    "InvalidLineItemError",
    "InvalidQuantityError",
    "InvalidStateTransitionError",
    "NegativeMoneyError",
    "OrderNotEditableError",
    "OrderNotFoundError",
    "OrderNotPendingError",
    "PaymentGatewayError",
    "PaymentPayloadError",
    "ProductNotFoundError",
    "StorageError",
    "ValidationError",
    # State machine
    "OrderStatus",
    "StateTransition",
    "parse_order_status",
    "validate_administrative_transition",
    "validate_order_transition",
    # Value objects
    "DEFAULT_CURRENCY",
    "BankTransferPayload",
    "LineItem",
    "Money",
    "PaymentMethod",
    "PaymentPayload",
    "PayPalPayload",
    "StripePayload",
]
