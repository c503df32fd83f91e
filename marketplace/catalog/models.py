"""SQLAlchemy models for the product catalog.

Defines the products table for persistent storage.
"""

from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from marketplace.domain.entities import Product
from marketplace.domain.value_objects import Money
from marketplace.infrastructure.database import Base


class ProductModel(Base):
    """Product row in the catalog.

    Attributes:
        id: Product identifier.
        name: Product name.
        description: Product description.
        price_cents: Unit price in minor units.
        currency: Currency code.
        category: Culture or category the product belongs to.
        artisan: Artisan attribution.
        stock: Available units; never negative.
        created_at: Creation timestamp.
        updated_at: Last update timestamp.
    """

    __tablename__ = "products"
    __table_args__ = (CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="COP")
    category: Mapped[str] = mapped_column(String(100), nullable=False, default="", index=True)
    artisan: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def apply(self, product: Product) -> None:
        """Copy the entity's mutable fields onto this row."""
        self.name = product.name
        self.description = product.description
        self.price_cents = product.price.amount_cents
        self.currency = product.price.currency
        self.category = product.category
        self.artisan = product.artisan
        self.stock = product.stock

    def to_entity(self) -> Product:
        created_at = self.created_at
        updated_at = self.updated_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        if updated_at.tzinfo is None:
            updated_at = updated_at.replace(tzinfo=timezone.utc)
        return Product(
            id=self.id,
            name=self.name,
            description=self.description,
            price=Money(amount_cents=self.price_cents, currency=self.currency),
            category=self.category,
            artisan=self.artisan,
            stock=self.stock,
            created_at=created_at,
            updated_at=updated_at,
        )
