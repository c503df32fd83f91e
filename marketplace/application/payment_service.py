"""Payment settlement service.

Turns a method-specific payment payload into a payment reference and
moves the order from pending to paid. At most one settlement per order
succeeds: the final write only matches while the order is still pending,
so of two concurrent attempts exactly one wins and the other observes
``NOT_PENDING``. The write also requires the version the order was charged
at, so an item edit that commits mid-charge turns the settlement into a
``CONCURRENT_MODIFICATION`` failure instead of a paid order with a total
nobody was charged for.
"""

import secrets
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from marketplace.application.order_service import log_events
from marketplace.domain.entities import Order
from marketplace.domain.exceptions import (
    ConcurrentModificationError,
    DomainError,
    OrderNotFoundError,
    OrderNotPendingError,
    PaymentGatewayError,
    PaymentPayloadError,
)
from marketplace.domain.repositories import OrderRepository
from marketplace.domain.state_machines import OrderStatus
from marketplace.domain.value_objects import (
    BankTransferPayload,
    PaymentMethod,
    PaymentPayload,
)
from marketplace.infrastructure.cache import InMemoryOrderCache
from marketplace.infrastructure.payment_gateways import PaymentGateway

logger = structlog.get_logger()


@dataclass
class SettlementResult:
    """Result of a settlement attempt."""

    success: bool = True
    reference: str | None = None
    order: Order | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def from_error(cls, error: DomainError) -> "SettlementResult":
        return cls(
            success=False,
            error=error.message,
            error_code=error.error_code,
            details=error.details,
        )


def synthesize_transfer_reference() -> str:
    """Reference for a bank transfer settled without a proof."""
    return f"transfer_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class PaymentService:
    """Settlement coordinator.

    Holds no lock across its awaits; the repository's conditional write is
    the only serialization point between concurrent attempts.
    """

    def __init__(
        self,
        orders: OrderRepository,
        gateways: Mapping[PaymentMethod, PaymentGateway],
        cache: InMemoryOrderCache | None = None,
    ) -> None:
        """Initialize service.

        Args:
            orders: Order repository.
            gateways: Gateway collaborator per gateway-backed method.
            cache: Optional order cache to invalidate after settlement.
        """
        self.orders = orders
        self.gateways = dict(gateways)
        self.cache = cache

    async def settle_payment(
        self,
        order_id: int,
        payload: PaymentPayload | dict[str, Any],
    ) -> SettlementResult:
        """Settle a pending order.

        Args:
            order_id: Order to settle.
            payload: Method-tagged payment details, parsed or raw.

        Returns:
            SettlementResult with the payment reference and the paid order
            on success, or the error code and reason on failure. The order
            is left pending on every failure.
        """
        try:
            return await self._settle(order_id, payload)
        except DomainError as e:
            logger.info(
                "Settlement rejected",
                order_id=order_id,
                error_code=e.error_code,
                error=e.message,
            )
            return SettlementResult.from_error(e)

    async def _settle(
        self,
        order_id: int,
        payload: PaymentPayload | dict[str, Any],
    ) -> SettlementResult:
        if not isinstance(payload, PaymentPayload):
            payload = PaymentPayload.from_dict(payload)

        order = await self.orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        if order.status != OrderStatus.PENDING:
            raise OrderNotPendingError(order_id, order.status.value)
        if payload.method != order.payment_method:
            raise PaymentPayloadError(
                order_id,
                f"payload method '{payload.method.value}' does not match "
                f"order method '{order.payment_method.value}'",
            )

        charged_version = order.version
        reference = await self._obtain_reference(order, payload)

        order.mark_paid(reference)
        if not await self.orders.mark_paid(order_id, reference, expected_version=charged_version):
            current = await self.orders.find_by_id(order_id)
            status = current.status.value if current else "missing"
            logger.warning(
                "Settlement lost to a concurrent change",
                order_id=order_id,
                current_status=status,
                charged_version=charged_version,
                payment_method=order.payment_method.value,
                payment_reference=reference,
            )
            if current is None:
                raise OrderNotFoundError(order_id)
            if current.status == OrderStatus.PENDING:
                # Items changed after the charge; the charged total is stale
                raise ConcurrentModificationError(order_id, charged_version)
            raise OrderNotPendingError(order_id, status)

        order.version += 1
        if self.cache is not None:
            try:
                await self.cache.invalidate(order_id)
            except Exception as e:
                logger.warning("Order cache invalidation failed", order_id=order_id, error=str(e))

        logger.info(
            "Order settled",
            order_id=order_id,
            payment_method=order.payment_method.value,
            payment_reference=reference,
            total_cents=order.total.amount_cents,
        )
        log_events(order)
        return SettlementResult(success=True, reference=reference, order=order)

    async def _obtain_reference(self, order: Order, payload: PaymentPayload) -> str:
        """Get the payment reference for a method.

        Raises:
            PaymentGatewayError: If the gateway declined, errored or timed out.
        """
        if isinstance(payload, BankTransferPayload):
            proof = (payload.proof or "").strip()
            return proof or synthesize_transfer_reference()

        gateway = self.gateways.get(payload.method)
        if gateway is None:
            raise PaymentGatewayError(payload.method.value, "no gateway configured")

        result = await gateway.charge(order, payload)
        if not result.success or not result.reference:
            raise PaymentGatewayError(payload.method.value, result.error or "gateway returned no reference")
        return result.reference
