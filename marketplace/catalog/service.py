"""Catalog service for product operations.

High-level service that combines repository operations with the pricing
and stock rules the order core relies on.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog

from marketplace.domain.entities import Product
from marketplace.domain.exceptions import DomainError, ProductNotFoundError
from marketplace.domain.repositories import ProductRepository
from marketplace.domain.value_objects import LineItem

logger = structlog.get_logger()


@dataclass
class ProductFilter:
    """Filter parameters for product listing.

    Attributes:
        category: Filter by category.
        artisan: Filter by artisan.
        in_stock: Filter by availability.
    """

    category: str | None = None
    artisan: str | None = None
    in_stock: bool | None = None


@dataclass(frozen=True)
class ItemRequest:
    """A requested product and quantity, before pricing."""

    product_id: int
    quantity: int


class CatalogService:
    """Catalog operations used by the order core.

    Prices line items at the current catalog price and moves stock in and
    out of the catalog.
    """

    def __init__(self, repository: ProductRepository) -> None:
        self._repository = repository

    async def get_product(self, product_id: int) -> Product:
        """Get a product or raise ``ProductNotFoundError``."""
        product = await self._repository.get_by_id(product_id)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def list_products(
        self,
        filters: ProductFilter | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Product]:
        filters = filters or ProductFilter()
        return await self._repository.find_all(
            category=filters.category,
            artisan=filters.artisan,
            in_stock=filters.in_stock,
            limit=limit,
            offset=offset,
        )

    async def save_product(self, product: Product) -> Product:
        return await self._repository.save(product)

    async def build_line_item(self, product_id: int, quantity: int) -> LineItem:
        """Price a single line item at the product's current price.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InvalidQuantityError: If quantity is not a positive integer.
        """
        product = await self.get_product(product_id)
        return product.line_item(quantity)

    async def build_line_items(self, requests: Iterable[ItemRequest]) -> list[LineItem]:
        """Price every requested item, keeping the request order."""
        return [await self.build_line_item(r.product_id, r.quantity) for r in requests]

    async def reserve_stock(self, items: Iterable[LineItem]) -> None:
        """Decrement stock for every line item.

        If any decrement fails, units already taken are returned before the
        error propagates.

        Raises:
            ProductNotFoundError: If a product does not exist.
            InsufficientStockError: If a product has too few units.
        """
        reserved: list[LineItem] = []
        try:
            for item in items:
                await self._repository.decrement_stock(item.product_id, item.quantity)
                reserved.append(item)
        except DomainError:
            if reserved:
                logger.warning(
                    "Stock reservation failed, returning reserved units",
                    reserved=[i.product_id for i in reserved],
                )
                await self.release_stock(reserved)
            raise

        logger.debug("Stock reserved", products=[i.product_id for i in reserved])

    async def release_stock(self, items: Iterable[LineItem]) -> None:
        """Return stock for every line item.

        Products that no longer exist are skipped.
        """
        for item in items:
            try:
                await self._repository.increment_stock(item.product_id, item.quantity)
            except ProductNotFoundError:
                logger.warning(
                    "Cannot return stock for missing product",
                    product_id=item.product_id,
                    quantity=item.quantity,
                )
