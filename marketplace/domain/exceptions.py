"""Domain exceptions.

All domain-level errors that represent business rule violations.
These exceptions are raised by entities, state machines, repositories
and services when invariants are violated or invalid operations are
attempted.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted.

    This error indicates that the requested operation cannot be performed
    in the current state of the entity.
    """

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Order").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(DomainError):
    """Base class for malformed input rejected before persistence."""

    error_code = "VALIDATION_ERROR"


class InvalidQuantityError(ValidationError):
    """Raised when an invalid quantity is provided."""

    def __init__(self, quantity: int, reason: str = "Quantity must be a positive integer") -> None:
        """Initialize invalid quantity error.

        Args:
            quantity: The invalid quantity value.
            reason: Explanation of why the quantity is invalid.
        """
        super().__init__(
            f"Invalid quantity {quantity}: {reason}",
            details={"quantity": quantity, "reason": reason},
        )


class InvalidLineItemError(ValidationError):
    """Raised when a line item is malformed."""

    def __init__(self, product_id: Any, reason: str) -> None:
        super().__init__(
            f"Invalid line item for product {product_id}: {reason}",
            details={"product_id": product_id, "reason": reason},
        )


class PaymentPayloadError(ValidationError):
    """Raised when a payment payload does not fit the order."""

    error_code = "INVALID_PAYLOAD"

    def __init__(self, order_id: int, reason: str) -> None:
        super().__init__(
            f"Invalid payment payload for order {order_id}: {reason}",
            details={"order_id": order_id, "reason": reason},
        )


# ============================================================================
# Order Errors
# ============================================================================


class OrderError(DomainError):
    """Base class for order-related errors."""

    pass


class OrderNotFoundError(OrderError):
    """Raised when an order does not exist."""

    error_code = "ORDER_NOT_FOUND"

    def __init__(self, order_id: int) -> None:
        """Initialize order not found error.

        Args:
            order_id: ID of the missing order.
        """
        super().__init__(
            f"Order {order_id} not found",
            details={"order_id": order_id},
        )


class OrderNotPendingError(OrderError):
    """Raised when settlement is attempted on an order that is not pending.

    Covers orders that were already paid, cancelled orders, and the loser
    of two concurrent settlement attempts.
    """

    error_code = "NOT_PENDING"

    def __init__(self, order_id: int, current_status: str) -> None:
        """Initialize order not pending error.

        Args:
            order_id: ID of the order.
            current_status: Status observed when the attempt was rejected.
        """
        super().__init__(
            f"Order {order_id} is not pending (status '{current_status}')",
            details={"order_id": order_id, "current_status": current_status},
        )


class OrderNotEditableError(OrderError):
    """Raised when line items are changed on an order past pending."""

    error_code = "ORDER_NOT_EDITABLE"

    def __init__(self, order_id: int | None, current_status: str) -> None:
        super().__init__(
            f"Order {order_id} items cannot be changed in status '{current_status}'",
            details={"order_id": order_id, "current_status": current_status},
        )


class ConcurrentModificationError(OrderError):
    """Raised when an order changed in storage after it was loaded."""

    error_code = "CONCURRENT_MODIFICATION"

    def __init__(self, order_id: int | None, expected_version: int) -> None:
        super().__init__(
            f"Order {order_id} was modified concurrently (expected version {expected_version})",
            details={"order_id": order_id, "expected_version": expected_version},
        )


# ============================================================================
# Payment Errors
# ============================================================================


class PaymentGatewayError(DomainError):
    """Raised when a payment gateway declines or errors."""

    error_code = "GATEWAY_FAILURE"

    def __init__(self, method: str, reason: str) -> None:
        """Initialize payment gateway error.

        Args:
            method: Payment method whose gateway failed.
            reason: Reason reported by the gateway.
        """
        super().__init__(
            f"Payment via {method} failed: {reason}",
            details={"payment_method": method, "reason": reason},
        )
        self.reason = reason


# ============================================================================
# Catalog Errors
# ============================================================================


class ProductNotFoundError(DomainError):
    """Raised when a product does not exist in the catalog."""

    error_code = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: int) -> None:
        super().__init__(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )


class InsufficientStockError(DomainError):
    """Raised when a stock decrement exceeds the available stock."""

    error_code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int | None, requested: int, available: int) -> None:
        """Initialize insufficient stock error.

        Args:
            product_id: ID of the product.
            requested: Units requested.
            available: Units currently in stock.
        """
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "requested": requested,
                "available": available,
            },
        )


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(DomainError):
    """Raised when a transactional write or read fails at the storage layer.

    The transaction has already been rolled back when this is raised.
    """

    error_code = "STORAGE_FAILURE"

    def __init__(self, operation: str, reason: str) -> None:
        super().__init__(
            f"Storage operation '{operation}' failed: {reason}",
            details={"operation": operation, "reason": reason},
        )


# ============================================================================
# Money Errors
# ============================================================================


class MoneyError(ValidationError):
    """Base class for money-related errors."""

    pass


class CurrencyMismatchError(MoneyError):
    """Raised when attempting to combine money with different currencies."""

    def __init__(self, currency1: str, currency2: str) -> None:
        """Initialize currency mismatch error.

        Args:
            currency1: First currency code.
            currency2: Second currency code.
        """
        super().__init__(
            f"Cannot combine money with different currencies: {currency1} and {currency2}",
            details={"currency1": currency1, "currency2": currency2},
        )


class NegativeMoneyError(MoneyError):
    """Raised when attempting to create money with negative amount."""

    def __init__(self, amount: int) -> None:
        """Initialize negative money error.

        Args:
            amount: The negative amount in minor units.
        """
        super().__init__(
            f"Money amount cannot be negative: {amount}",
            details={"amount": amount},
        )
