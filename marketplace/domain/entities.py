"""Domain entities for the marketplace order core.

Entities are domain objects with identity that persists across state changes.
This module contains the Order aggregate (with its line-item composition
rules and lifecycle transitions) and the catalog Product.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from marketplace.domain.base import AggregateRoot
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
    InsufficientStockError,
    InvalidLineItemError,
    InvalidQuantityError,
    OrderNotEditableError,
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
    LineItem,
    Money,
    PaymentMethod,
)


# ============================================================================
# Order Aggregate Root
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Order(AggregateRoot):
    """Order aggregate root.

    The order total is never stored independently: it is derived from the
    line items, so it always equals the sum of their subtotals. Line items
    are held in a tuple and only replaced through the mutator methods below.

    Attributes:
        id: Repository-assigned order id (None until created).
        user_id: Owning user.
        shipping_address: Free-text delivery address.
        payment_method: How the order will be settled.
        status: Current lifecycle state.
        payment_reference: Gateway reference, set only by settlement.
        items: Ordered line items.
        currency: Currency shared by all line items.
    """

    user_id: int
    shipping_address: str
    payment_method: PaymentMethod
    status: OrderStatus = OrderStatus.PENDING
    payment_reference: str | None = None
    items: tuple[LineItem, ...] = field(default_factory=tuple)
    currency: str = DEFAULT_CURRENCY

    def __post_init__(self) -> None:
        self.payment_method = PaymentMethod(self.payment_method)
        self.status = OrderStatus(self.status)
        self.items = tuple(self.items)
        for item in self.items:
            self._check_currency(item)

    @classmethod
    def create(
        cls,
        user_id: int,
        shipping_address: str,
        payment_method: PaymentMethod | str,
        items: Iterable[LineItem],
        currency: str = DEFAULT_CURRENCY,
    ) -> "Order":
        """Compose a new pending order.

        Args:
            user_id: Owning user.
            shipping_address: Delivery address.
            payment_method: Settlement method.
            items: Initial line items (at least one).
            currency: Order currency.

        Returns:
            New Order in pending state, not yet persisted.

        Raises:
            ValidationError: If the order has no items or no address, or a
                line item does not fit the order.
        """
        items = tuple(items)
        if not items:
            raise ValidationError("Order must contain at least one line item")
        if not shipping_address or not shipping_address.strip():
            raise ValidationError("Shipping address cannot be empty")
        try:
            method = PaymentMethod(payment_method)
        except ValueError:
            raise ValidationError(
                f"Unsupported payment method: {payment_method!r}",
                details={"method": payment_method},
            ) from None

        order = cls(
            user_id=user_id,
            shipping_address=shipping_address.strip(),
            payment_method=method,
            items=items,
            currency=currency.upper(),
        )
        order._record_event(
            OrderCreated(
                aggregate_type="Order",
                user_id=user_id,
                payment_method=method.value,
                total_cents=order.total.amount_cents,
                currency=order.currency,
                item_count=order.item_count,
            )
        )
        return order

    # -------------------------------------------------------------------------
    # Query Methods
    # -------------------------------------------------------------------------

    @property
    def total(self) -> Money:
        """Sum of all line item subtotals."""
        total = Money.zero(self.currency)
        for item in self.items:
            total = total + item.subtotal
        return total

    @property
    def item_count(self) -> int:
        """Sum of all item quantities."""
        return sum(item.quantity for item in self.items)

    def get_item(self, product_id: int) -> LineItem | None:
        """First line item for a product, if any."""
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    # -------------------------------------------------------------------------
    # Composition
    # -------------------------------------------------------------------------

    def add_item(self, item: LineItem) -> None:
        """Append a line item.

        Raises:
            OrderNotEditableError: If the order is past pending.
            InvalidLineItemError: If the item currency differs from the order.
        """
        self._ensure_editable()
        self._check_currency(item)
        self.items = (*self.items, item)
        self._touch()
        self._record_event(
            OrderItemAdded(
                aggregate_id=self._aggregate_id,
                aggregate_type="Order",
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price.amount_cents,
            )
        )

    def remove_item(self, product_id: int) -> int:
        """Remove every line item referencing a product.

        Removing a product that is not in the order is a no-op.

        Returns:
            Number of lines removed.

        Raises:
            OrderNotEditableError: If the order is past pending.
        """
        self._ensure_editable()
        kept = tuple(item for item in self.items if item.product_id != product_id)
        removed = len(self.items) - len(kept)
        if not removed:
            return 0
        self.items = kept
        self._touch()
        self._record_event(
            OrderItemRemoved(
                aggregate_id=self._aggregate_id,
                aggregate_type="Order",
                product_id=product_id,
                removed_lines=removed,
            )
        )
        return removed

    def update_item_quantity(self, product_id: int, quantity: int) -> LineItem | None:
        """Set the quantity of the first line item for a product.

        Updating a product that is not in the order is a no-op.

        Returns:
            The updated line item, or None if no line matched.

        Raises:
            InvalidQuantityError: If quantity is not a positive integer.
            OrderNotEditableError: If the order is past pending.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise InvalidQuantityError(quantity)
        self._ensure_editable()

        for index, item in enumerate(self.items):
            if item.product_id == product_id:
                updated = item.with_quantity(quantity)
                self.items = (*self.items[:index], updated, *self.items[index + 1 :])
                self._touch()
                self._record_event(
                    OrderItemQuantityUpdated(
                        aggregate_id=self._aggregate_id,
                        aggregate_type="Order",
                        product_id=product_id,
                        old_quantity=item.quantity,
                        new_quantity=quantity,
                    )
                )
                return updated
        return None

    # -------------------------------------------------------------------------
    # State Transitions
    # -------------------------------------------------------------------------

    def mark_paid(self, payment_reference: str) -> StateTransition[OrderStatus]:
        """Record a settled payment and move the order to paid.

        Only the settlement coordinator calls this; the reference and the
        status change together.

        Raises:
            InvalidStateTransitionError: If the order is not pending.
            ValidationError: If the reference is empty.
        """
        if not payment_reference or not payment_reference.strip():
            raise ValidationError("Payment reference cannot be empty")
        validate_order_transition(self.id, self.status, OrderStatus.PAID)

        previous = self.status
        self.payment_reference = payment_reference
        self.status = OrderStatus.PAID
        self._touch()
        self._record_event(
            OrderPaid(
                aggregate_id=self._aggregate_id,
                aggregate_type="Order",
                payment_method=self.payment_method.value,
                payment_reference=payment_reference,
                total_cents=self.total.amount_cents,
            )
        )
        return StateTransition.successful(previous, OrderStatus.PAID)

    def transition_to(
        self,
        target: OrderStatus,
        reason: str | None = None,
    ) -> StateTransition[OrderStatus]:
        """Apply an administrative transition (ship, deliver or cancel).

        Args:
            target: Requested status.
            reason: Optional note, recorded for cancellations.

        Raises:
            ValidationError: If the target names no known status.
            InvalidStateTransitionError: If the move is not in the table or
                is reserved for settlement.
        """
        target = parse_order_status(target)
        validate_administrative_transition(self.id, self.status, target)

        previous = self.status
        self.status = target
        self._touch()

        if target == OrderStatus.SHIPPED:
            event = OrderShipped(aggregate_id=self._aggregate_id, aggregate_type="Order")
        elif target == OrderStatus.DELIVERED:
            event = OrderDelivered(aggregate_id=self._aggregate_id, aggregate_type="Order")
        else:
            event = OrderCancelled(
                aggregate_id=self._aggregate_id,
                aggregate_type="Order",
                previous_status=previous.value,
                reason=reason,
            )
        self._record_event(event)
        return StateTransition.successful(previous, target)

    def ship(self) -> StateTransition[OrderStatus]:
        """Mark order as shipped."""
        return self.transition_to(OrderStatus.SHIPPED)

    def deliver(self) -> StateTransition[OrderStatus]:
        """Mark order as delivered."""
        return self.transition_to(OrderStatus.DELIVERED)

    def cancel(self, reason: str | None = None) -> StateTransition[OrderStatus]:
        """Cancel the order."""
        return self.transition_to(OrderStatus.CANCELLED, reason=reason)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    @property
    def _aggregate_id(self) -> str:
        return "" if self.id is None else str(self.id)

    def _ensure_editable(self) -> None:
        if not self.status.is_editable():
            raise OrderNotEditableError(self.id, self.status.value)

    def _check_currency(self, item: LineItem) -> None:
        if item.unit_price.currency != self.currency.upper():
            raise InvalidLineItemError(
                item.product_id,
                f"currency {item.unit_price.currency} does not match order currency {self.currency}",
            )


# ============================================================================
# Product Entity
# ============================================================================


@dataclass(kw_only=True, eq=False)
class Product(AggregateRoot):
    """A handmade product listed in the catalog.

    Stock never goes below zero: it only changes through the guarded
    ``decrement_stock`` and ``increment_stock`` methods.

    Attributes:
        name: Product name.
        description: Long description.
        price: Current unit price.
        category: Category (culture) the product belongs to.
        artisan: Artisan attribution.
        stock: Units available.
    """

    name: str
    price: Money
    description: str = ""
    category: str = ""
    artisan: str = ""
    stock: int = 0

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Product name cannot be empty")
        if self.stock < 0:
            raise ValidationError(
                f"Product stock cannot be negative: {self.stock}",
                details={"stock": self.stock},
            )

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    def decrement_stock(self, quantity: int) -> None:
        """Take units out of stock.

        Raises:
            InvalidQuantityError: If quantity is not positive.
            InsufficientStockError: If fewer units are available.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "Quantity must be greater than zero")
        if self.stock < quantity:
            raise InsufficientStockError(self.id, quantity, self.stock)
        self.stock -= quantity
        self._touch()

    def increment_stock(self, quantity: int) -> None:
        """Return units to stock.

        Raises:
            InvalidQuantityError: If quantity is not positive.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "Quantity must be greater than zero")
        self.stock += quantity
        self._touch()

    def line_item(self, quantity: int) -> LineItem:
        """Build a line item priced at the current catalog price."""
        if self.id is None:
            raise InvalidLineItemError(self.id, "product has not been saved")
        return LineItem(product_id=self.id, quantity=quantity, unit_price=self.price)
