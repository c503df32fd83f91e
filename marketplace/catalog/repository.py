"""Product repository for database operations.

Provides lookups, filtered listing and guarded stock updates for products.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import and_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from marketplace.catalog.models import ProductModel
from marketplace.domain.base import utc_now
from marketplace.domain.entities import Product
from marketplace.domain.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ProductNotFoundError,
    StorageError,
)
from marketplace.domain.repositories import ProductRepository

logger = structlog.get_logger()


class SqlAlchemyProductRepository(ProductRepository):
    """Repository for product database operations.

    Example usage:
        repo = SqlAlchemyProductRepository(session_factory)
        products = await repo.find_all(category="wayuu", in_stock=True, limit=20)
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory for async SQLAlchemy sessions.
        """
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("Catalog storage failure", operation=operation, error=str(e))
            raise StorageError(operation, str(e)) from e

    async def get_by_id(self, product_id: int) -> Product | None:
        """Get product by ID.

        Args:
            product_id: Product ID.

        Returns:
            Product if found, None otherwise.
        """
        async with self._transaction("get_product") as session:
            model = await session.get(ProductModel, product_id)
            return model.to_entity() if model else None

    async def find_all(
        self,
        category: str | None = None,
        artisan: str | None = None,
        in_stock: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Product]:
        """Find products with filtering and pagination.

        Args:
            category: Filter by category.
            artisan: Filter by artisan.
            in_stock: Filter by stock availability.
            limit: Maximum results.
            offset: Result offset for pagination.

        Returns:
            Sequence of matching products, ordered by id.
        """
        query = select(ProductModel)

        conditions = []
        if category is not None:
            conditions.append(ProductModel.category == category)
        if artisan is not None:
            conditions.append(ProductModel.artisan == artisan)
        if in_stock is True:
            conditions.append(ProductModel.stock > 0)
        elif in_stock is False:
            conditions.append(ProductModel.stock == 0)

        if conditions:
            query = query.where(and_(*conditions))

        query = query.order_by(ProductModel.id).limit(limit).offset(offset)

        async with self._transaction("find_products") as session:
            result = await session.execute(query)
            return [model.to_entity() for model in result.scalars()]

    async def save(self, product: Product) -> Product:
        """Insert a new product or update an existing one.

        Args:
            product: Product to save.

        Returns:
            Saved product, with its id assigned.
        """
        async with self._transaction("save_product") as session:
            model = None
            if product.id is not None:
                model = await session.get(ProductModel, product.id)
                if model is None:
                    raise ProductNotFoundError(product.id)
            if model is None:
                model = ProductModel()
                session.add(model)
            model.apply(product)
            await session.flush()
            product.id = model.id
        return product

    async def decrement_stock(self, product_id: int, quantity: int) -> Product:
        """Take units out of stock in a single guarded statement.

        The update only matches while ``stock >= quantity``, so concurrent
        decrements can never drive stock below zero.
        """
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "Quantity must be greater than zero")

        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id, ProductModel.stock >= quantity)
            .values(stock=ProductModel.stock - quantity, updated_at=utc_now())
        )
        async with self._transaction("decrement_stock") as session:
            result = await session.execute(stmt, execution_options={"synchronize_session": False})
            model = await session.get(ProductModel, product_id, populate_existing=True)
            if model is None:
                raise ProductNotFoundError(product_id)
            if result.rowcount == 0:
                raise InsufficientStockError(product_id, quantity, model.stock)
            return model.to_entity()

    async def increment_stock(self, product_id: int, quantity: int) -> Product:
        """Return units to stock."""
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "Quantity must be greater than zero")

        stmt = (
            update(ProductModel)
            .where(ProductModel.id == product_id)
            .values(stock=ProductModel.stock + quantity, updated_at=utc_now())
        )
        async with self._transaction("increment_stock") as session:
            result = await session.execute(stmt, execution_options={"synchronize_session": False})
            if result.rowcount == 0:
                raise ProductNotFoundError(product_id)
            model = await session.get(ProductModel, product_id, populate_existing=True)
            return model.to_entity()
