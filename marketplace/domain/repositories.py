"""Repository contracts for the order core.

The application services depend only on these abstract classes. The
SQLAlchemy implementations live in ``marketplace.infrastructure`` and
``marketplace.catalog`` and are wired in at process startup.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from marketplace.domain.entities import Order, Product
from marketplace.domain.state_machines import OrderStatus


class OrderRepository(ABC):
    """Durable storage for orders and their line items.

    Every method runs in its own transaction. Writes touching the order row
    and its item rows are atomic: on any failure nothing is persisted.
    """

    @abstractmethod
    async def find_by_id(self, order_id: int) -> Order | None:
        """Load an order with its items."""

    @abstractmethod
    async def find_by_user(self, user_id: int) -> Sequence[Order]:
        """Orders owned by a user, oldest first."""

    @abstractmethod
    async def find_by_state(
        self,
        status: OrderStatus,
        limit: int | None = None,
        offset: int = 0,
    ) -> Sequence[Order]:
        """Orders currently in a status, oldest first. No limit returns all."""

    @abstractmethod
    async def find_all(self, limit: int = 100, offset: int = 0) -> Sequence[Order]:
        """All orders, oldest first."""

    @abstractmethod
    async def create(self, order: Order) -> Order:
        """Insert an order and its items; return it with its assigned id."""

    @abstractmethod
    async def update(self, order: Order) -> Order:
        """Persist the full order, replacing all of its item rows."""

    @abstractmethod
    async def delete(self, order_id: int) -> bool:
        """Delete an order and its items. Returns False if it did not exist."""

    @abstractmethod
    async def update_state(
        self,
        order_id: int,
        status: OrderStatus,
        expected: OrderStatus | None = None,
    ) -> bool:
        """Set the status, optionally only if the current status is ``expected``.

        Returns:
            True if a row was updated.
        """

    @abstractmethod
    async def update_payment_reference(self, order_id: int, reference: str) -> bool:
        """Replace the reference of an order that already carries one.

        Returns:
            True if a row was updated, False if the order does not exist or
            is in a status without a payment reference.
        """

    @abstractmethod
    async def mark_paid(
        self,
        order_id: int,
        reference: str,
        expected_version: int | None = None,
    ) -> bool:
        """Conditionally settle a pending order.

        Sets status to paid and records the reference in one statement that
        only matches while the order is still pending and, when
        ``expected_version`` is given, still at that version.

        Returns:
            True if this call settled the order, False if it was no longer
            pending, had changed since it was charged, or does not exist.
        """


class ProductRepository(ABC):
    """The catalog store, as seen by the order core."""

    @abstractmethod
    async def get_by_id(self, product_id: int) -> Product | None:
        """Load a product."""

    @abstractmethod
    async def find_all(
        self,
        category: str | None = None,
        artisan: str | None = None,
        in_stock: bool | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Product]:
        """List products with simple filters."""

    @abstractmethod
    async def save(self, product: Product) -> Product:
        """Insert or update a product."""

    @abstractmethod
    async def decrement_stock(self, product_id: int, quantity: int) -> Product:
        """Guarded decrement.

        Raises:
            ProductNotFoundError: If the product does not exist.
            InsufficientStockError: If stock is lower than ``quantity``.
        """

    @abstractmethod
    async def increment_stock(self, product_id: int, quantity: int) -> Product:
        """Return units to stock.

        Raises:
            ProductNotFoundError: If the product does not exist.
        """
