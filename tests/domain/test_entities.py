"""Tests for domain entities."""

from datetime import timedelta

import pytest

from marketplace.domain import (
    LineItem,
    Money,
    Order,
    OrderStatus,
    PaymentMethod,
    Product,
)
from marketplace.domain.events import (
    OrderCancelled,
    OrderCreated,
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
    InvalidStateTransitionError,
    OrderNotEditableError,
    ValidationError,
)
from tests.factories import make_items, make_order, make_product


def assert_total_invariant(order: Order) -> None:
    expected = sum(item.quantity * item.unit_price.amount_cents for item in order.items)
    assert order.total.amount_cents == expected
    for item in order.items:
        assert item.subtotal.amount_cents == item.quantity * item.unit_price.amount_cents


# ============================================================================
# Order Creation
# ============================================================================


class TestOrderCreation:
    """Tests for Order.create."""

    def test_create_order_computes_total(self) -> None:
        """Two mochilas at 50000 plus one item at 25000 total 125000."""
        order = make_order()

        assert order.total == Money(amount_cents=125000)
        assert order.status == OrderStatus.PENDING
        assert order.payment_reference is None
        assert order.item_count == 3
        assert order.id is None

    def test_create_records_event(self) -> None:
        order = make_order(payment_method=PaymentMethod.STRIPE)

        events = order.collect_events()

        assert len(events) == 1
        assert isinstance(events[0], OrderCreated)
        assert events[0].total_cents == 125000
        assert events[0].payment_method == "stripe"
        assert order.collect_events() == []

    def test_create_accepts_method_string(self) -> None:
        order = Order.create(
            user_id=1,
            shipping_address="Cra 7 #12-34",
            payment_method="paypal",
            items=make_items(),
        )
        assert order.payment_method == PaymentMethod.PAYPAL

    def test_create_rejects_unknown_method(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Order.create(
                user_id=1,
                shipping_address="Cra 7 #12-34",
                payment_method="cash",
                items=make_items(),
            )
        assert exc_info.value.details["method"] == "cash"

    def test_create_requires_items(self) -> None:
        with pytest.raises(ValidationError):
            Order.create(user_id=1, shipping_address="Cra 7", payment_method="stripe", items=[])

    def test_create_requires_address(self) -> None:
        with pytest.raises(ValidationError):
            Order.create(user_id=1, shipping_address="   ", payment_method="stripe", items=make_items())

    def test_create_rejects_mixed_currency(self) -> None:
        items = [*make_items(), LineItem.create(product_id=9, quantity=1, unit_price_cents=100, currency="USD")]
        with pytest.raises(InvalidLineItemError):
            Order.create(user_id=1, shipping_address="Cra 7", payment_method="stripe", items=items)


# ============================================================================
# Composition
# ============================================================================


class TestOrderComposition:
    """Tests for line item editing and the derived total."""

    def test_update_item_quantity_recomputes_subtotal_and_total(self) -> None:
        """Quantity 2 -> 3 at 50000 gives a 150000 subtotal."""
        order = make_order()

        updated = order.update_item_quantity(1, 3)

        assert updated is not None
        assert updated.subtotal == Money(amount_cents=150000)
        assert order.get_item(1).quantity == 3
        assert order.total == Money(amount_cents=175000)

    def test_update_item_quantity_unknown_product_is_noop(self) -> None:
        order = make_order()
        order.collect_events()
        before = order.updated_at

        assert order.update_item_quantity(99, 5) is None
        assert order.total == Money(amount_cents=125000)
        assert order.updated_at == before
        assert order.collect_events() == []

    @pytest.mark.parametrize("quantity", [0, -1])
    def test_update_item_quantity_rejects_non_positive(self, quantity: int) -> None:
        order = make_order()
        with pytest.raises(InvalidQuantityError):
            order.update_item_quantity(1, quantity)
        assert order.get_item(1).quantity == 2

    def test_update_item_quantity_changes_first_matching_line(self) -> None:
        order = make_order()
        order.add_item(LineItem.create(product_id=1, quantity=1, unit_price_cents=40000))

        order.update_item_quantity(1, 5)

        assert [i.quantity for i in order.items if i.product_id == 1] == [5, 1]
        assert_total_invariant(order)

    def test_add_item(self) -> None:
        order = make_order()
        order.collect_events()

        order.add_item(LineItem.create(product_id=4, quantity=2, unit_price_cents=12000))

        assert order.total == Money(amount_cents=149000)
        assert len(order.items) == 3
        (event,) = order.collect_events()
        assert isinstance(event, OrderItemAdded)
        assert event.product_id == 4

    def test_remove_item_removes_all_lines_for_product(self) -> None:
        order = make_order()
        order.add_item(LineItem.create(product_id=1, quantity=1, unit_price_cents=50000))
        order.collect_events()

        removed = order.remove_item(1)

        assert removed == 2
        assert order.total == Money(amount_cents=25000)
        (event,) = order.collect_events()
        assert isinstance(event, OrderItemRemoved)
        assert event.removed_lines == 2

    def test_remove_unknown_product_is_noop(self) -> None:
        order = make_order()
        assert order.remove_item(99) == 0
        assert order.total == Money(amount_cents=125000)

    def test_mutation_updates_timestamp(self) -> None:
        order = make_order()
        order.updated_at = order.updated_at - timedelta(minutes=5)
        stale = order.updated_at

        order.update_item_quantity(3, 2)

        assert order.updated_at > stale
        assert order.created_at <= order.updated_at

    def test_total_invariant_over_edit_sequence(self) -> None:
        order = make_order()
        operations = [
            lambda o: o.add_item(LineItem.create(product_id=5, quantity=4, unit_price_cents=999)),
            lambda o: o.update_item_quantity(5, 1),
            lambda o: o.remove_item(3),
            lambda o: o.add_item(LineItem.create(product_id=3, quantity=7, unit_price_cents=1)),
            lambda o: o.update_item_quantity(1, 10),
            lambda o: o.remove_item(42),
            lambda o: o.remove_item(1),
        ]
        for operation in operations:
            operation(order)
            assert_total_invariant(order)

    def test_cannot_edit_after_payment(self) -> None:
        order = make_order()
        order.mark_paid("TR-1")

        with pytest.raises(OrderNotEditableError):
            order.add_item(LineItem.create(product_id=4, quantity=1, unit_price_cents=100))
        with pytest.raises(OrderNotEditableError):
            order.remove_item(1)
        with pytest.raises(OrderNotEditableError):
            order.update_item_quantity(1, 3)

    def test_item_events_carry_quantities(self) -> None:
        order = make_order()
        order.collect_events()

        order.update_item_quantity(1, 4)

        (event,) = order.collect_events()
        assert isinstance(event, OrderItemQuantityUpdated)
        assert (event.old_quantity, event.new_quantity) == (2, 4)


# ============================================================================
# Transitions
# ============================================================================


class TestOrderTransitions:
    """Tests for settlement and administrative transitions."""

    def test_mark_paid_sets_reference_and_status(self) -> None:
        order = make_order()
        order.collect_events()

        transition = order.mark_paid("TR-1")

        assert transition.from_state == OrderStatus.PENDING
        assert order.status == OrderStatus.PAID
        assert order.payment_reference == "TR-1"
        (event,) = order.collect_events()
        assert isinstance(event, OrderPaid)
        assert event.payment_reference == "TR-1"

    def test_mark_paid_requires_reference(self) -> None:
        order = make_order()
        with pytest.raises(ValidationError):
            order.mark_paid("  ")
        assert order.status == OrderStatus.PENDING
        assert order.payment_reference is None

    def test_mark_paid_twice_is_rejected(self) -> None:
        order = make_order()
        order.mark_paid("TR-1")

        with pytest.raises(InvalidStateTransitionError):
            order.mark_paid("TR-2")
        assert order.payment_reference == "TR-1"

    def test_transition_to_paid_is_rejected(self) -> None:
        order = make_order()
        with pytest.raises(InvalidStateTransitionError):
            order.transition_to(OrderStatus.PAID)
        assert order.status == OrderStatus.PENDING

    def test_fulfillment_progression(self) -> None:
        order = make_order()
        order.mark_paid("pi_123")
        order.collect_events()

        order.ship()
        order.deliver()

        assert order.status == OrderStatus.DELIVERED
        events = order.collect_events()
        assert isinstance(events[0], OrderShipped)
        assert order.status.is_terminal()

    def test_delivered_cannot_return_to_pending(self) -> None:
        order = make_order()
        order.mark_paid("pi_123")
        order.ship()
        order.deliver()

        with pytest.raises(InvalidStateTransitionError):
            order.transition_to(OrderStatus.PENDING)
        assert order.status == OrderStatus.DELIVERED

    def test_cancel_records_reason(self) -> None:
        order = make_order()
        order.collect_events()

        order.cancel(reason="customer request")

        (event,) = order.collect_events()
        assert isinstance(event, OrderCancelled)
        assert event.previous_status == "pending"
        assert event.reason == "customer request"

    def test_shipped_order_cannot_be_cancelled(self) -> None:
        order = make_order()
        order.mark_paid("pi_123")
        order.ship()

        with pytest.raises(InvalidStateTransitionError):
            order.cancel()


# ============================================================================
# Product
# ============================================================================


class TestProduct:
    """Tests for the catalog Product entity."""

    def test_decrement_stock(self) -> None:
        product = make_product(stock=5)
        product.decrement_stock(2)
        assert product.stock == 3

    def test_decrement_more_than_available_fails(self) -> None:
        product = make_product(stock=1)
        product.id = 8

        with pytest.raises(InsufficientStockError) as exc_info:
            product.decrement_stock(2)

        assert exc_info.value.details == {"product_id": 8, "requested": 2, "available": 1}
        assert product.stock == 1

    def test_increment_stock(self) -> None:
        product = make_product(stock=0)
        assert not product.in_stock
        product.increment_stock(3)
        assert product.in_stock

    @pytest.mark.parametrize("quantity", [0, -2])
    def test_stock_changes_require_positive_quantity(self, quantity: int) -> None:
        product = make_product()
        with pytest.raises(InvalidQuantityError):
            product.decrement_stock(quantity)
        with pytest.raises(InvalidQuantityError):
            product.increment_stock(quantity)

    def test_negative_stock_rejected(self) -> None:
        with pytest.raises(ValidationError):
            make_product(stock=-1)

    def test_line_item_captures_current_price(self) -> None:
        product = make_product(price_cents=50000)
        product.id = 1

        item = product.line_item(2)
        product.price = Money(amount_cents=70000)

        assert item.unit_price == Money(amount_cents=50000)
        assert item.subtotal == Money(amount_cents=100000)

    def test_line_item_requires_saved_product(self) -> None:
        with pytest.raises(InvalidLineItemError):
            make_product().line_item(1)

    def test_entities_compare_by_id(self) -> None:
        a = make_product()
        b = make_product()
        assert a != b
        a.id = b.id = 3
        assert a == b
        assert isinstance(a, Product)
