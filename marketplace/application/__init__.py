"""Application layer module.

Contains application services (use cases) that orchestrate
domain logic and infrastructure.
"""

from marketplace.application.order_service import OrderService
from marketplace.application.payment_service import PaymentService, SettlementResult

__all__ = [
    "OrderService",
    "PaymentService",
    "SettlementResult",
]
