"""Tests for the catalog service and product repository."""

import pytest

from marketplace.catalog.repository import SqlAlchemyProductRepository
from marketplace.catalog.service import CatalogService, ItemRequest, ProductFilter
from marketplace.domain import LineItem, Money
from marketplace.domain.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
)
from tests.factories import make_product


async def seed(catalog: CatalogService) -> list[int]:
    products = [
        make_product(name="Mochila Wayuu", price_cents=50000, stock=5),
        make_product(name="Sombrero vueltiao", price_cents=25000, stock=0, category="zenu", artisan="Tuchin"),
        make_product(name="Mola", price_cents=18000, stock=2, category="guna", artisan="Comunidad Guna"),
    ]
    return [(await catalog.save_product(p)).id for p in products]


class TestProductRepository:
    """Tests for SqlAlchemyProductRepository."""

    @pytest.mark.asyncio
    async def test_save_and_get(self, product_repository: SqlAlchemyProductRepository) -> None:
        product = await product_repository.save(make_product())

        loaded = await product_repository.get_by_id(product.id)

        assert loaded == product
        assert loaded.price == Money(amount_cents=50000)
        assert loaded.artisan == "Comunidad Wayuu de Uribia"

    @pytest.mark.asyncio
    async def test_save_updates_existing(self, product_repository: SqlAlchemyProductRepository) -> None:
        product = await product_repository.save(make_product())
        product.price = Money(amount_cents=55000)

        await product_repository.save(product)

        assert (await product_repository.get_by_id(product.id)).price.amount_cents == 55000

    @pytest.mark.asyncio
    async def test_save_unknown_id(self, product_repository: SqlAlchemyProductRepository) -> None:
        product = make_product()
        product.id = 404
        with pytest.raises(ProductNotFoundError):
            await product_repository.save(product)

    @pytest.mark.asyncio
    async def test_decrement_stock_is_guarded(self, product_repository: SqlAlchemyProductRepository) -> None:
        product = await product_repository.save(make_product(stock=3))

        assert (await product_repository.decrement_stock(product.id, 2)).stock == 1
        with pytest.raises(InsufficientStockError) as exc_info:
            await product_repository.decrement_stock(product.id, 2)

        assert exc_info.value.details["available"] == 1
        assert (await product_repository.get_by_id(product.id)).stock == 1

    @pytest.mark.asyncio
    async def test_stock_changes_on_missing_product(
        self, product_repository: SqlAlchemyProductRepository
    ) -> None:
        with pytest.raises(ProductNotFoundError):
            await product_repository.decrement_stock(404, 1)
        with pytest.raises(ProductNotFoundError):
            await product_repository.increment_stock(404, 1)

    @pytest.mark.asyncio
    async def test_stock_changes_need_positive_quantity(
        self, product_repository: SqlAlchemyProductRepository
    ) -> None:
        with pytest.raises(InvalidQuantityError):
            await product_repository.decrement_stock(1, 0)
        with pytest.raises(InvalidQuantityError):
            await product_repository.increment_stock(1, -1)


class TestCatalogService:
    """Tests for CatalogService."""

    @pytest.mark.asyncio
    async def test_list_products_with_filters(self, catalog: CatalogService) -> None:
        mochila, sombrero, mola = await seed(catalog)

        in_stock = await catalog.list_products(ProductFilter(in_stock=True))
        out_of_stock = await catalog.list_products(ProductFilter(in_stock=False))
        guna = await catalog.list_products(ProductFilter(category="guna"))

        assert [p.id for p in in_stock] == [mochila, mola]
        assert [p.id for p in out_of_stock] == [sombrero]
        assert [p.id for p in guna] == [mola]
        assert len(await catalog.list_products(limit=1, offset=1)) == 1

    @pytest.mark.asyncio
    async def test_build_line_items_uses_current_price(self, catalog: CatalogService) -> None:
        mochila, _, mola = await seed(catalog)

        items = await catalog.build_line_items([ItemRequest(mochila, 2), ItemRequest(mola, 1)])

        assert [(i.product_id, i.quantity, i.unit_price.amount_cents) for i in items] == [
            (mochila, 2, 50000),
            (mola, 1, 18000),
        ]

    @pytest.mark.asyncio
    async def test_build_line_item_unknown_product(self, catalog: CatalogService) -> None:
        with pytest.raises(ProductNotFoundError) as exc_info:
            await catalog.build_line_item(404, 1)
        assert exc_info.value.error_code == "PRODUCT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_reserve_and_release(self, catalog: CatalogService) -> None:
        mochila, _, mola = await seed(catalog)
        items = [
            LineItem.create(product_id=mochila, quantity=2, unit_price_cents=50000),
            LineItem.create(product_id=mola, quantity=1, unit_price_cents=18000),
        ]

        await catalog.reserve_stock(items)
        assert (await catalog.get_product(mochila)).stock == 3
        assert (await catalog.get_product(mola)).stock == 1

        await catalog.release_stock(items)
        assert (await catalog.get_product(mochila)).stock == 5
        assert (await catalog.get_product(mola)).stock == 2

    @pytest.mark.asyncio
    async def test_failed_reservation_returns_taken_units(self, catalog: CatalogService) -> None:
        mochila, _, mola = await seed(catalog)
        items = [
            LineItem.create(product_id=mochila, quantity=2, unit_price_cents=50000),
            LineItem.create(product_id=mola, quantity=5, unit_price_cents=18000),
        ]

        with pytest.raises(InsufficientStockError):
            await catalog.reserve_stock(items)

        assert (await catalog.get_product(mochila)).stock == 5
        assert (await catalog.get_product(mola)).stock == 2

    @pytest.mark.asyncio
    async def test_release_skips_missing_products(self, catalog: CatalogService) -> None:
        mochila, *_ = await seed(catalog)

        await catalog.release_stock(
            [
                LineItem.create(product_id=404, quantity=1, unit_price_cents=1),
                LineItem.create(product_id=mochila, quantity=1, unit_price_cents=50000),
            ]
        )

        assert (await catalog.get_product(mochila)).stock == 6
