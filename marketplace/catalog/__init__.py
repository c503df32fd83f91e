"""Product catalog.

Provides product storage, pricing of line items at the current catalog
price, and stock reservation for orders.
"""

from marketplace.catalog.models import ProductModel
from marketplace.catalog.repository import SqlAlchemyProductRepository
from marketplace.catalog.service import CatalogService, ItemRequest, ProductFilter

__all__ = [
    # Models
    "ProductModel",
    # Repository
    "SqlAlchemyProductRepository",
    # Service
    "CatalogService",
    "ItemRequest",
    "ProductFilter",
]
