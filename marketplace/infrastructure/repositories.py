"""SQLAlchemy implementation of the order repository.

Every public method opens its own session and transaction. Multi-row
writes (the order row plus its item rows) commit or roll back together.
Driver and ORM failures surface as ``StorageError``.
"""

from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.sql import Select

from marketplace.domain.base import utc_now
from marketplace.domain.entities import Order
from marketplace.domain.exceptions import (
    ConcurrentModificationError,
    OrderNotFoundError,
    StorageError,
)
from marketplace.domain.repositories import OrderRepository
from marketplace.domain.state_machines import OrderStatus
from marketplace.infrastructure.models import OrderItemModel, OrderModel

logger = structlog.get_logger()


class SqlAlchemyOrderRepository(OrderRepository):
    """Order repository backed by a relational database."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except StaleDataError:
            raise
        except SQLAlchemyError as e:
            logger.error("Order storage failure", operation=operation, error=str(e))
            raise StorageError(operation, str(e)) from e

    @staticmethod
    def _select_orders() -> Select:
        return select(OrderModel).options(selectinload(OrderModel.items)).order_by(OrderModel.id)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    async def find_by_id(self, order_id: int) -> Order | None:
        async with self._transaction("find_by_id") as session:
            result = await session.execute(self._select_orders().where(OrderModel.id == order_id))
            model = result.scalar_one_or_none()
            return model.to_entity() if model else None

    async def find_by_user(self, user_id: int) -> Sequence[Order]:
        async with self._transaction("find_by_user") as session:
            result = await session.execute(self._select_orders().where(OrderModel.user_id == user_id))
            return [model.to_entity() for model in result.scalars()]

    async def find_by_state(
        self,
        status: OrderStatus,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[Order]:
        stmt = (
            self._select_orders()
            .where(OrderModel.status == OrderStatus(status).value)
            .limit(limit)
            .offset(offset)
        )
        async with self._transaction("find_by_state") as session:
            result = await session.execute(stmt)
            return [model.to_entity() for model in result.scalars()]

    async def find_all(self, limit: int = 100, offset: int = 0) -> Sequence[Order]:
        async with self._transaction("find_all") as session:
            result = await session.execute(self._select_orders().limit(limit).offset(offset))
            return [model.to_entity() for model in result.scalars()]

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def create(self, order: Order) -> Order:
        async with self._transaction("create") as session:
            model = OrderModel.from_entity(order)
            session.add(model)
            await session.flush()
            order.id = model.id
            order.version = model.version

        logger.debug("Order row inserted", order_id=order.id, items=len(order.items))
        return order

    async def update(self, order: Order) -> Order:
        """Persist the full order, replacing its item rows.

        Raises:
            OrderNotFoundError: If the order row does not exist.
            ConcurrentModificationError: If the stored version differs from
                the version the aggregate was loaded at.
        """
        try:
            async with self._transaction("update") as session:
                result = await session.execute(
                    select(OrderModel)
                    .options(selectinload(OrderModel.items))
                    .where(OrderModel.id == order.id)
                )
                model = result.scalar_one_or_none()
                if model is None:
                    raise OrderNotFoundError(order.id)
                if model.version != order.version:
                    raise ConcurrentModificationError(order.id, order.version)

                model.status = order.status.value
                model.payment_reference = order.payment_reference
                model.shipping_address = order.shipping_address
                model.payment_method = order.payment_method.value
                model.total_cents = order.total.amount_cents
                model.updated_at = order.updated_at
                model.items = OrderItemModel.from_line_items(order.items)
                await session.flush()
                order.version = model.version
        except StaleDataError as e:
            raise ConcurrentModificationError(order.id, order.version) from e

        return order

    async def delete(self, order_id: int) -> bool:
        async with self._transaction("delete") as session:
            await session.execute(
                delete(OrderItemModel).where(OrderItemModel.order_id == order_id),
                execution_options={"synchronize_session": False},
            )
            result = await session.execute(
                delete(OrderModel).where(OrderModel.id == order_id),
                execution_options={"synchronize_session": False},
            )
            return result.rowcount > 0

    async def update_state(
        self,
        order_id: int,
        status: OrderStatus,
        expected: OrderStatus | None = None,
    ) -> bool:
        stmt = update(OrderModel).where(OrderModel.id == order_id)
        if expected is not None:
            stmt = stmt.where(OrderModel.status == OrderStatus(expected).value)
        stmt = stmt.values(
            status=OrderStatus(status).value,
            updated_at=utc_now(),
            version=OrderModel.version + 1,
        )

        async with self._transaction("update_state") as session:
            result = await session.execute(stmt, execution_options={"synchronize_session": False})
            return result.rowcount > 0

    async def update_payment_reference(self, order_id: int, reference: str) -> bool:
        with_reference = [s.value for s in OrderStatus if s.requires_payment_reference()]
        stmt = (
            update(OrderModel)
            .where(
                OrderModel.id == order_id,
                OrderModel.status.in_(with_reference),
            )
            .values(
                payment_reference=reference,
                updated_at=utc_now(),
                version=OrderModel.version + 1,
            )
        )
        async with self._transaction("update_payment_reference") as session:
            result = await session.execute(stmt, execution_options={"synchronize_session": False})
            return result.rowcount > 0

    async def mark_paid(
        self,
        order_id: int,
        reference: str,
        expected_version: int | None = None,
    ) -> bool:
        stmt = update(OrderModel).where(
            OrderModel.id == order_id,
            OrderModel.status == OrderStatus.PENDING.value,
        )
        if expected_version is not None:
            stmt = stmt.where(OrderModel.version == expected_version)
        stmt = stmt.values(
            status=OrderStatus.PAID.value,
            payment_reference=reference,
            updated_at=utc_now(),
            version=OrderModel.version + 1,
        )
        async with self._transaction("mark_paid") as session:
            result = await session.execute(stmt, execution_options={"synchronize_session": False})
            return result.rowcount > 0
