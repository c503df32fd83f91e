"""Tests for the order application service."""

from unittest.mock import AsyncMock

import pytest

from marketplace.application.order_service import OrderService, _stock_delta
from marketplace.catalog.service import CatalogService
from marketplace.domain import LineItem, Money, OrderStatus, PaymentMethod
from marketplace.domain.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    InvalidStateTransitionError,
    OrderNotEditableError,
    OrderNotFoundError,
    ValidationError,
)
from marketplace.infrastructure.cache import InMemoryOrderCache
from marketplace.infrastructure.repositories import SqlAlchemyOrderRepository
from tests.factories import make_items, make_product


@pytest.fixture
def cache() -> InMemoryOrderCache:
    return InMemoryOrderCache()


@pytest.fixture
def service(
    order_repository: SqlAlchemyOrderRepository,
    catalog: CatalogService,
    cache: InMemoryOrderCache,
) -> OrderService:
    return OrderService(order_repository, catalog, cache=cache)


async def create(service: OrderService, method: PaymentMethod = PaymentMethod.BANK_TRANSFER, user_id: int = 7):
    return await service.create_order(
        user_id=user_id,
        shipping_address="Calle 123 #45-67, Bogota",
        payment_method=method,
        items=make_items(),
    )


class TestCreateOrder:
    """Tests for OrderService.create_order."""

    @pytest.mark.asyncio
    async def test_create_persists_pending_order(self, service: OrderService) -> None:
        order = await create(service)

        assert order.id is not None
        assert order.status == OrderStatus.PENDING
        assert order.total == Money(amount_cents=125000)
        assert (await service.get_order(order.id)).total == Money(amount_cents=125000)

    @pytest.mark.asyncio
    async def test_create_drains_events(self, service: OrderService) -> None:
        order = await create(service)
        assert order.collect_events() == []

    @pytest.mark.asyncio
    async def test_create_rejects_empty_order(self, service: OrderService) -> None:
        with pytest.raises(ValidationError):
            await service.create_order(7, "Calle 123", PaymentMethod.STRIPE, [])
        assert await service.list_orders() == []


class TestQueries:
    """Tests for order lookups and listings."""

    @pytest.mark.asyncio
    async def test_get_missing_order(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFoundError) as exc_info:
            await service.get_order(404)
        assert exc_info.value.error_code == "ORDER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_get_reads_through_cache(
        self, service: OrderService, cache: InMemoryOrderCache
    ) -> None:
        order = await create(service)
        service.orders = AsyncMock(wraps=service.orders)

        await service.get_order(order.id)
        await service.get_order(order.id)

        assert service.orders.find_by_id.await_count == 1
        assert len(cache) == 1

    @pytest.mark.asyncio
    async def test_cache_failure_falls_back_to_storage(self, service: OrderService) -> None:
        order = await create(service)
        service.cache = AsyncMock()
        service.cache.get.side_effect = RuntimeError("cache down")
        service.cache.set.side_effect = RuntimeError("cache down")

        loaded = await service.get_order(order.id)

        assert loaded == order

    @pytest.mark.asyncio
    async def test_listings(self, service: OrderService) -> None:
        first = await create(service, user_id=7)
        second = await create(service, user_id=8)
        await service.cancel_order(second.id)

        assert [o.id for o in await service.list_orders_by_user(7)] == [first.id]
        assert [o.id for o in await service.list_orders_by_state("cancelled")] == [second.id]
        assert [o.id for o in await service.list_orders(limit=1)] == [first.id]

    @pytest.mark.asyncio
    async def test_list_by_state_paginates(self, service: OrderService) -> None:
        created = [await create(service) for _ in range(3)]

        page = await service.list_orders_by_state(OrderStatus.PENDING, limit=2, offset=1)

        assert [o.id for o in page] == [created[1].id, created[2].id]

    @pytest.mark.asyncio
    async def test_list_by_unknown_state(self, service: OrderService) -> None:
        with pytest.raises(ValidationError):
            await service.list_orders_by_state("refunded")


class TestItemEditing:
    """Tests for line item edits through the service."""

    @pytest.mark.asyncio
    async def test_update_item_quantity(self, service: OrderService) -> None:
        order = await create(service)
        await service.get_order(order.id)

        updated = await service.update_item_quantity(order.id, 1, 3)

        assert updated.get_item(1).subtotal == Money(amount_cents=150000)
        assert updated.total == Money(amount_cents=175000)
        assert (await service.get_order(order.id)).total == Money(amount_cents=175000)

    @pytest.mark.asyncio
    async def test_add_and_remove_items(self, service: OrderService) -> None:
        order = await create(service)

        await service.add_item(order.id, LineItem.create(product_id=4, quantity=2, unit_price_cents=12000))
        order = await service.remove_item(order.id, 1)

        assert [i.product_id for i in order.items] == [3, 4]
        assert (await service.get_order(order.id)).total == Money(amount_cents=49000)

    @pytest.mark.asyncio
    async def test_unknown_product_is_noop(self, service: OrderService) -> None:
        order = await create(service)

        same = await service.update_item_quantity(order.id, 99, 4)
        again = await service.remove_item(order.id, 99)

        assert same.total == again.total == Money(amount_cents=125000)
        assert (await service.get_order(order.id)).version == order.version

    @pytest.mark.asyncio
    async def test_zero_quantity_rejected(self, service: OrderService) -> None:
        order = await create(service)

        with pytest.raises(InvalidQuantityError):
            await service.update_item_quantity(order.id, 1, 0)
        assert (await service.get_order(order.id)).get_item(1).quantity == 2

    @pytest.mark.asyncio
    async def test_paid_order_is_not_editable(
        self, service: OrderService, order_repository: SqlAlchemyOrderRepository
    ) -> None:
        order = await create(service)
        await order_repository.mark_paid(order.id, "TR-1")

        with pytest.raises(OrderNotEditableError):
            await service.add_item(order.id, LineItem.create(product_id=4, quantity=1, unit_price_cents=100))

    @pytest.mark.asyncio
    async def test_edit_missing_order(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.remove_item(404, 1)


class TestTransitions:
    """Tests for administrative transitions."""

    @pytest.mark.asyncio
    async def test_fulfillment_after_payment(
        self, service: OrderService, order_repository: SqlAlchemyOrderRepository
    ) -> None:
        order = await create(service)
        await order_repository.mark_paid(order.id, "TR-1")

        await service.ship_order(order.id)
        delivered = await service.deliver_order(order.id)

        assert delivered.status == OrderStatus.DELIVERED
        stored = await service.get_order(order.id)
        assert stored.status == OrderStatus.DELIVERED
        assert stored.payment_reference == "TR-1"

    @pytest.mark.asyncio
    async def test_cancel_pending(self, service: OrderService) -> None:
        order = await create(service)

        cancelled = await service.cancel_order(order.id, reason="customer request")

        assert cancelled.status == OrderStatus.CANCELLED
        assert (await service.get_order(order.id)).status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_transition_invalidates_cache(
        self, service: OrderService, cache: InMemoryOrderCache
    ) -> None:
        order = await create(service)
        await service.get_order(order.id)
        assert len(cache) == 1

        await service.cancel_order(order.id)

        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_pending_cannot_be_shipped(self, service: OrderService) -> None:
        order = await create(service)

        with pytest.raises(InvalidStateTransitionError):
            await service.ship_order(order.id)
        assert (await service.get_order(order.id)).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_paid_is_reserved_for_settlement(self, service: OrderService) -> None:
        order = await create(service)

        with pytest.raises(InvalidStateTransitionError):
            await service.transition_state(order.id, "paid")

        stored = await service.get_order(order.id)
        assert stored.status == OrderStatus.PENDING
        assert stored.payment_reference is None

    @pytest.mark.asyncio
    async def test_delivered_cannot_return_to_pending(
        self, service: OrderService, order_repository: SqlAlchemyOrderRepository
    ) -> None:
        order = await create(service)
        await order_repository.mark_paid(order.id, "TR-1")
        await service.ship_order(order.id)
        await service.deliver_order(order.id)

        with pytest.raises(InvalidStateTransitionError):
            await service.transition_state(order.id, OrderStatus.PENDING)

    @pytest.mark.asyncio
    async def test_unknown_status_value(self, service: OrderService) -> None:
        order = await create(service)

        with pytest.raises(ValidationError) as exc_info:
            await service.transition_state(order.id, "refunded")

        assert exc_info.value.error_code == "VALIDATION_ERROR"
        assert (await service.get_order(order.id)).status == OrderStatus.PENDING

    @pytest.mark.asyncio
    async def test_lost_race_is_reported_against_current_state(
        self, service: OrderService, order_repository: SqlAlchemyOrderRepository
    ) -> None:
        order = await create(service)
        stale = await order_repository.find_by_id(order.id)
        await order_repository.mark_paid(order.id, "TR-1")
        await order_repository.update_state(order.id, OrderStatus.SHIPPED)
        # The service sees the pre-payment snapshot and tries to cancel it
        service.orders = AsyncMock(wraps=order_repository)
        service.orders.find_by_id.side_effect = [stale, await order_repository.find_by_id(order.id)]

        with pytest.raises(InvalidStateTransitionError) as exc_info:
            await service.cancel_order(order.id)

        assert exc_info.value.details["current_state"] == "shipped"
        assert (await order_repository.find_by_id(order.id)).status == OrderStatus.SHIPPED


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete(self, service: OrderService, cache: InMemoryOrderCache) -> None:
        order = await create(service)
        await service.get_order(order.id)

        await service.delete_order(order.id)

        assert len(cache) == 0
        with pytest.raises(OrderNotFoundError):
            await service.get_order(order.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service: OrderService) -> None:
        with pytest.raises(OrderNotFoundError):
            await service.delete_order(404)


class TestStockReservation:
    """Tests for the opt-in stock reservation."""

    @pytest.fixture
    def reserving(
        self,
        order_repository: SqlAlchemyOrderRepository,
        catalog: CatalogService,
    ) -> OrderService:
        return OrderService(order_repository, catalog, reserve_stock=True)

    async def order_for(self, reserving: OrderService, catalog: CatalogService, quantity: int = 2):
        product = await catalog.save_product(make_product(stock=5))
        items = [await catalog.build_line_item(product.id, quantity)]
        order = await reserving.create_order(7, "Calle 123", PaymentMethod.STRIPE, items)
        return order, product.id

    @pytest.mark.asyncio
    async def test_create_reserves_stock(self, reserving: OrderService, catalog: CatalogService) -> None:
        _, product_id = await self.order_for(reserving, catalog)
        assert (await catalog.get_product(product_id)).stock == 3

    @pytest.mark.asyncio
    async def test_insufficient_stock_blocks_creation(
        self, reserving: OrderService, catalog: CatalogService
    ) -> None:
        product = await catalog.save_product(make_product(stock=1))
        items = [LineItem.create(product_id=product.id, quantity=2, unit_price_cents=50000)]

        with pytest.raises(InsufficientStockError):
            await reserving.create_order(7, "Calle 123", PaymentMethod.STRIPE, items)

        assert await reserving.list_orders() == []
        assert (await catalog.get_product(product.id)).stock == 1

    @pytest.mark.asyncio
    async def test_item_edits_move_stock(self, reserving: OrderService, catalog: CatalogService) -> None:
        order, product_id = await self.order_for(reserving, catalog)

        await reserving.update_item_quantity(order.id, product_id, 4)
        assert (await catalog.get_product(product_id)).stock == 1

        await reserving.update_item_quantity(order.id, product_id, 1)
        assert (await catalog.get_product(product_id)).stock == 4

    @pytest.mark.asyncio
    async def test_cancel_releases_stock(self, reserving: OrderService, catalog: CatalogService) -> None:
        order, product_id = await self.order_for(reserving, catalog)

        await reserving.cancel_order(order.id)

        assert (await catalog.get_product(product_id)).stock == 5

    def test_stock_delta(self) -> None:
        before = make_items()
        after = [
            LineItem.create(product_id=1, quantity=5, unit_price_cents=50000),
            LineItem.create(product_id=4, quantity=1, unit_price_cents=9000),
        ]

        reserve, release = _stock_delta(before, after)

        assert sorted((i.product_id, i.quantity) for i in reserve) == [(1, 3), (4, 1)]
        assert [(i.product_id, i.quantity) for i in release] == [(3, 1)]

    @pytest.mark.asyncio
    async def test_delete_pending_order_releases_stock(
        self, reserving: OrderService, catalog: CatalogService
    ) -> None:
        order, product_id = await self.order_for(reserving, catalog, quantity=3)
        assert (await catalog.get_product(product_id)).stock == 2

        await reserving.delete_order(order.id)

        assert (await catalog.get_product(product_id)).stock == 5

    @pytest.mark.asyncio
    async def test_delete_paid_order_releases_stock(
        self,
        reserving: OrderService,
        catalog: CatalogService,
        order_repository: SqlAlchemyOrderRepository,
    ) -> None:
        order, product_id = await self.order_for(reserving, catalog)
        await order_repository.mark_paid(order.id, "pi_1")

        await reserving.delete_order(order.id)

        assert (await catalog.get_product(product_id)).stock == 5

    @pytest.mark.asyncio
    async def test_delete_shipped_or_cancelled_order_keeps_stock(
        self,
        reserving: OrderService,
        catalog: CatalogService,
        order_repository: SqlAlchemyOrderRepository,
    ) -> None:
        shipped, product_id = await self.order_for(reserving, catalog)
        await order_repository.mark_paid(shipped.id, "pi_1")
        await reserving.ship_order(shipped.id)
        cancelled = await reserving.create_order(
            7, "Calle 123", PaymentMethod.STRIPE, [await catalog.build_line_item(product_id, 1)]
        )
        await reserving.cancel_order(cancelled.id)
        assert (await catalog.get_product(product_id)).stock == 3

        await reserving.delete_order(shipped.id)
        await reserving.delete_order(cancelled.id)

        assert (await catalog.get_product(product_id)).stock == 3
