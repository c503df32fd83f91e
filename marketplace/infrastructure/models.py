"""SQLAlchemy models for order tables.

Provides ORM models for orders and their line items, and the mapping
between rows and the Order aggregate.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marketplace.domain.base import utc_now
from marketplace.domain.entities import Order
from marketplace.domain.state_machines import OrderStatus
from marketplace.domain.value_objects import LineItem, Money, PaymentMethod
from marketplace.infrastructure.database import Base


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================================
# Order Models
# ============================================================================


class OrderModel(Base):
    """Order row.

    ``total_cents`` is a denormalized copy of the aggregate's derived total,
    written in the same transaction as the item rows it is computed from.
    """

    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "status <> 'paid' OR payment_reference IS NOT NULL",
            name="ck_orders_paid_has_reference",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    shipping_address: Mapped[str] = mapped_column(Text, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utc_now,
    )

    # Relationships
    items: Mapped[list["OrderItemModel"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItemModel.position",
    )

    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def from_entity(cls, order: Order) -> "OrderModel":
        """Build a new row (with item rows) from an aggregate."""
        model = cls(
            user_id=order.user_id,
            status=order.status.value,
            total_cents=order.total.amount_cents,
            currency=order.currency,
            shipping_address=order.shipping_address,
            payment_method=order.payment_method.value,
            payment_reference=order.payment_reference,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
        model.items = OrderItemModel.from_line_items(order.items)
        return model

    def to_entity(self) -> Order:
        """Rehydrate the aggregate from this row and its items."""
        return Order(
            id=self.id,
            user_id=self.user_id,
            shipping_address=self.shipping_address,
            payment_method=PaymentMethod(self.payment_method),
            status=OrderStatus(self.status),
            payment_reference=self.payment_reference,
            items=tuple(item.to_line_item(self.currency) for item in self.items),
            currency=self.currency,
            created_at=_as_utc(self.created_at),
            updated_at=_as_utc(self.updated_at),
            version=self.version,
        )


class OrderItemModel(Base):
    """Line item row, owned by exactly one order."""

    __tablename__ = "order_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    # Relationships
    order: Mapped[OrderModel] = relationship(back_populates="items")

    @classmethod
    def from_line_items(cls, items: tuple[LineItem, ...]) -> list["OrderItemModel"]:
        """Build item rows, keeping the aggregate's ordering."""
        return [
            cls(
                position=position,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price_cents=item.unit_price.amount_cents,
                subtotal_cents=item.subtotal.amount_cents,
            )
            for position, item in enumerate(items)
        ]

    def to_line_item(self, currency: str) -> LineItem:
        """Rehydrate the value object; the subtotal is recomputed, not read."""
        return LineItem(
            product_id=self.product_id,
            quantity=self.quantity,
            unit_price=Money(amount_cents=self.unit_price_cents, currency=currency),
        )
