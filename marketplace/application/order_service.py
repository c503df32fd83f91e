"""Order application service.

Orchestrates the order lifecycle:
- Composing orders from priced line items
- Editing line items while an order is pending
- Administrative transitions (ship, deliver, cancel)
- Read-through caching of single-order lookups
- Optional stock reservation against the catalog
"""

from collections import Counter
from collections.abc import Iterable, Sequence

import structlog

from marketplace.catalog.service import CatalogService
from marketplace.domain.base import AggregateRoot
from marketplace.domain.entities import Order
from marketplace.domain.exceptions import (
    InvalidStateTransitionError,
    OrderNotFoundError,
)
from marketplace.domain.repositories import OrderRepository
from marketplace.domain.state_machines import OrderStatus, parse_order_status
from marketplace.domain.value_objects import DEFAULT_CURRENCY, LineItem, PaymentMethod
from marketplace.infrastructure.cache import InMemoryOrderCache

logger = structlog.get_logger()


def log_events(aggregate: AggregateRoot) -> None:
    """Drain and log the events an aggregate recorded.

    Called only after the write that produced them has committed.
    """
    for event in aggregate.collect_events():
        logger.info("Domain event", **event.to_dict())


class OrderService:
    """Application service for orders.

    Every collaborator is passed in at construction; the service holds no
    per-order state and takes no in-process locks. Conflicting writes are
    resolved by the repository's conditional updates.
    """

    def __init__(
        self,
        orders: OrderRepository,
        catalog: CatalogService,
        cache: InMemoryOrderCache | None = None,
        currency: str = DEFAULT_CURRENCY,
        reserve_stock: bool = False,
    ) -> None:
        """Initialize service.

        Args:
            orders: Order repository.
            catalog: Catalog service for stock reservation.
            cache: Optional read-through cache for ``get_order``.
            currency: Currency for new orders.
            reserve_stock: Whether order creation and item edits move stock.
        """
        self.orders = orders
        self.catalog = catalog
        self.cache = cache
        self.currency = currency
        self.reserve_stock = reserve_stock

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_order(
        self,
        user_id: int,
        shipping_address: str,
        payment_method: PaymentMethod | str,
        items: Iterable[LineItem],
    ) -> Order:
        """Compose and persist a new pending order.

        Args:
            user_id: Owning user.
            shipping_address: Delivery address.
            payment_method: Settlement method.
            items: Priced line items.

        Returns:
            The persisted order, with its id assigned.

        Raises:
            ValidationError: If the order or one of its items is malformed.
            InsufficientStockError: If stock reservation is enabled and a
                product has too few units.
            StorageError: If the write fails.
        """
        order = Order.create(
            user_id=user_id,
            shipping_address=shipping_address,
            payment_method=payment_method,
            items=items,
            currency=self.currency,
        )

        if self.reserve_stock:
            await self.catalog.reserve_stock(order.items)
        try:
            order = await self.orders.create(order)
        except Exception:
            if self.reserve_stock:
                await self.catalog.release_stock(order.items)
            raise

        logger.info(
            "Order created",
            order_id=order.id,
            user_id=user_id,
            payment_method=order.payment_method.value,
            total_cents=order.total.amount_cents,
        )
        log_events(order)
        return order

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def get_order(self, order_id: int) -> Order:
        """Get an order, reading through the cache.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        cached = await self._cache_get(order_id)
        if cached is not None:
            return cached

        order = await self._load(order_id)
        await self._cache_set(order)
        return order

    async def list_orders_by_user(self, user_id: int) -> Sequence[Order]:
        return await self.orders.find_by_user(user_id)

    async def list_orders_by_state(
        self,
        status: OrderStatus | str,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[Order]:
        """Orders in a status, oldest first, optionally paginated.

        Raises:
            ValidationError: If the status is unknown.
        """
        return await self.orders.find_by_state(parse_order_status(status), limit=limit, offset=offset)

    async def list_orders(self, limit: int = 100, offset: int = 0) -> Sequence[Order]:
        return await self.orders.find_all(limit=limit, offset=offset)

    # -------------------------------------------------------------------------
    # Line item editing
    # -------------------------------------------------------------------------

    async def add_item(self, order_id: int, item: LineItem) -> Order:
        """Append a line item to a pending order.

        Raises:
            OrderNotFoundError: If the order does not exist.
            OrderNotEditableError: If the order is past pending.
        """
        order = await self._load(order_id)
        before = order.items
        order.add_item(item)
        return await self._save_items(order, before)

    async def remove_item(self, order_id: int, product_id: int) -> Order:
        """Remove every line for a product. Unknown products are a no-op."""
        order = await self._load(order_id)
        before = order.items
        if not order.remove_item(product_id):
            return order
        return await self._save_items(order, before)

    async def update_item_quantity(self, order_id: int, product_id: int, quantity: int) -> Order:
        """Change the quantity of a product's line. Unknown products are a no-op.

        Raises:
            InvalidQuantityError: If quantity is not a positive integer.
        """
        order = await self._load(order_id)
        before = order.items
        if order.update_item_quantity(product_id, quantity) is None:
            return order
        return await self._save_items(order, before)

    # -------------------------------------------------------------------------
    # Administrative transitions
    # -------------------------------------------------------------------------

    async def transition_state(
        self,
        order_id: int,
        target: OrderStatus | str,
        reason: str | None = None,
    ) -> Order:
        """Move an order to a new status through the transition table.

        ``paid`` is reachable only through settlement and is rejected here.

        Raises:
            ValidationError: If the target names no known status.
            OrderNotFoundError: If the order does not exist.
            InvalidStateTransitionError: If the move is illegal, or the order
                changed status while the transition was being applied.
        """
        target = parse_order_status(target)
        order = await self._load(order_id)
        transition = order.transition_to(target, reason=reason)

        updated = await self.orders.update_state(order_id, target, expected=transition.from_state)
        if not updated:
            current = await self._load(order_id)
            raise InvalidStateTransitionError(
                entity_type="Order",
                entity_id=str(order_id),
                current_state=current.status.value,
                target_state=target.value,
                allowed_transitions=[s.value for s in current.status.allowed_transitions()],
            )
        order.version += 1
        await self._cache_invalidate(order_id)

        if target == OrderStatus.CANCELLED and self.reserve_stock:
            await self.catalog.release_stock(order.items)

        logger.info(
            "Order status transitioned",
            order_id=order_id,
            from_status=transition.from_state.value,
            to_status=target.value,
            reason=reason,
        )
        log_events(order)
        return order

    async def ship_order(self, order_id: int) -> Order:
        return await self.transition_state(order_id, OrderStatus.SHIPPED)

    async def deliver_order(self, order_id: int) -> Order:
        return await self.transition_state(order_id, OrderStatus.DELIVERED)

    async def cancel_order(self, order_id: int, reason: str | None = None) -> Order:
        return await self.transition_state(order_id, OrderStatus.CANCELLED, reason=reason)

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    async def delete_order(self, order_id: int) -> None:
        """Delete an order and its items.

        With stock reservation on, units still held by the order (pending or
        paid) go back to the catalog.

        Raises:
            OrderNotFoundError: If the order does not exist.
        """
        order = await self._load(order_id)
        if not await self.orders.delete(order_id):
            raise OrderNotFoundError(order_id)
        await self._cache_invalidate(order_id)

        if self.reserve_stock and order.status.is_cancellable():
            await self.catalog.release_stock(order.items)
        logger.info("Order deleted", order_id=order_id, status=order.status.value)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _load(self, order_id: int) -> Order:
        order = await self.orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _save_items(self, order: Order, before: tuple[LineItem, ...]) -> Order:
        reserve, release = _stock_delta(before, order.items)
        if self.reserve_stock and reserve:
            await self.catalog.reserve_stock(reserve)
        try:
            order = await self.orders.update(order)
        except Exception:
            if self.reserve_stock and reserve:
                await self.catalog.release_stock(reserve)
            raise
        if self.reserve_stock and release:
            await self.catalog.release_stock(release)

        await self._cache_invalidate(order.id)
        logger.info(
            "Order items updated",
            order_id=order.id,
            item_count=order.item_count,
            total_cents=order.total.amount_cents,
        )
        log_events(order)
        return order

    # The cache is a read accelerator only; its failures never fail a request.

    async def _cache_get(self, order_id: int) -> Order | None:
        if self.cache is None:
            return None
        try:
            return await self.cache.get(order_id)
        except Exception as e:
            logger.warning("Order cache read failed", order_id=order_id, error=str(e))
            return None

    async def _cache_set(self, order: Order) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.set(order)
        except Exception as e:
            logger.warning("Order cache write failed", order_id=order.id, error=str(e))

    async def _cache_invalidate(self, order_id: int) -> None:
        if self.cache is None:
            return
        try:
            await self.cache.invalidate(order_id)
        except Exception as e:
            logger.warning("Order cache invalidation failed", order_id=order_id, error=str(e))


def _stock_delta(
    before: Iterable[LineItem],
    after: Iterable[LineItem],
) -> tuple[list[LineItem], list[LineItem]]:
    """Per-product quantity changes between two item sets.

    Returns:
        Items whose units must be reserved, and items whose units must be
        returned, each carrying the quantity difference.
    """
    old: Counter[int] = Counter()
    new: Counter[int] = Counter()
    prices = {}
    for item in before:
        old[item.product_id] += item.quantity
        prices[item.product_id] = item.unit_price
    for item in after:
        new[item.product_id] += item.quantity
        prices[item.product_id] = item.unit_price

    reserve = [
        LineItem(product_id=pid, quantity=qty, unit_price=prices[pid])
        for pid, qty in (new - old).items()
    ]
    release = [
        LineItem(product_id=pid, quantity=qty, unit_price=prices[pid])
        for pid, qty in (old - new).items()
    ]
    return reserve, release
