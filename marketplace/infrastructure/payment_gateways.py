"""Payment gateway clients.

One collaborator per gateway-backed payment method. Each exposes a single
``charge`` call that turns an order and a method-specific payload into
either a payment reference or a failure reason. Gateways never raise for
declines, timeouts, transport errors or malformed responses; those come
back as a failed ``GatewayResult`` so the order stays pending.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from marketplace.domain.entities import Order
from marketplace.domain.value_objects import (
    PaymentMethod,
    PaymentPayload,
    PayPalPayload,
    StripePayload,
)
from marketplace.infrastructure.config import Settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class GatewayResult:
    """Outcome of a charge attempt."""

    success: bool
    reference: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, reference: str) -> "GatewayResult":
        return cls(success=True, reference=reference)

    @classmethod
    def failed(cls, error: str) -> "GatewayResult":
        return cls(success=False, error=error)


class PaymentGateway(ABC):
    """Base class for gateway collaborators."""

    method: PaymentMethod

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize gateway client.

        Args:
            base_url: Gateway API root.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def charge(self, order: Order, payload: PaymentPayload) -> GatewayResult:
        """Attempt to charge an order.

        Args:
            order: The pending order being settled.
            payload: Method-specific payment details.

        Returns:
            Successful result with the gateway reference, or a failed
            result carrying the gateway's reason.
        """
        try:
            return await self._charge(order, payload)
        except httpx.TimeoutException:
            logger.warning("Payment gateway timed out", method=self.method.value, order_id=order.id)
            return GatewayResult.failed(f"{self.method.value} gateway timed out")
        except httpx.HTTPError as e:
            logger.warning(
                "Payment gateway request failed",
                method=self.method.value,
                order_id=order.id,
                error=str(e),
            )
            return GatewayResult.failed(f"{self.method.value} gateway unreachable: {e}")
        except (ValueError, KeyError) as e:
            logger.warning(
                "Payment gateway returned an unreadable response",
                method=self.method.value,
                order_id=order.id,
                error=repr(e),
            )
            return GatewayResult.failed(f"{self.method.value} gateway returned an invalid response")

    @abstractmethod
    async def _charge(self, order: Order, payload: PaymentPayload) -> GatewayResult:
        """Gateway-specific charge flow."""


def _error_message(response: httpx.Response, default: str) -> str:
    try:
        data: Any = response.json()
    except ValueError:
        return f"{default} (HTTP {response.status_code})"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if data.get("message"):
            return str(data["message"])
        if data.get("error_description"):
            return str(data["error_description"])
    return f"{default} (HTTP {response.status_code})"


# ============================================================================
# Stripe
# ============================================================================


class StripeGateway(PaymentGateway):
    """Card payments through Stripe PaymentIntents.

    Creates and confirms the payment intent in one request; the intent id
    (``pi_...``) becomes the order's payment reference. The idempotency key
    is derived from the order version and card, so concurrent attempts on
    one order state share a single intent.
    """

    method = PaymentMethod.STRIPE

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.stripe.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url, timeout, transport)
        self.api_key = api_key

    async def _charge(self, order: Order, payload: PaymentPayload) -> GatewayResult:
        if not isinstance(payload, StripePayload) or not payload.payment_method_id:
            return GatewayResult.failed("Stripe payment requires a payment_method_id")
        if not self.api_key:
            return GatewayResult.failed("Stripe is not configured")

        client = await self._get_client()
        response = await client.post(
            "/v1/payment_intents",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Idempotency-Key": f"order-{order.id}-v{order.version}-{payload.payment_method_id}",
            },
            data={
                "amount": str(order.total.amount_cents),
                "currency": order.currency.lower(),
                "payment_method": payload.payment_method_id,
                "confirm": "true",
                "description": payload.description or f"Order #{order.id}",
                "metadata[order_id]": str(order.id),
                "metadata[user_id]": str(order.user_id),
                "automatic_payment_methods[enabled]": "true",
                "automatic_payment_methods[allow_redirects]": "never",
            },
        )
        if response.status_code != 200:
            reason = _error_message(response, "Stripe declined the payment")
            logger.info("Stripe charge declined", order_id=order.id, reason=reason)
            return GatewayResult.failed(reason)

        intent = response.json()
        status = intent.get("status")
        if status != "succeeded":
            return GatewayResult.failed(f"Stripe payment intent {intent.get('id')} is {status}")

        logger.info("Stripe charge succeeded", order_id=order.id, intent_id=intent["id"])
        return GatewayResult.ok(intent["id"])


# ============================================================================
# PayPal
# ============================================================================


class PayPalGateway(PaymentGateway):
    """PayPal checkout capture.

    Captures a PayPal order the buyer already approved. The capture id
    becomes the order's payment reference.
    """

    method = PaymentMethod.PAYPAL

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str = "https://api-m.sandbox.paypal.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(base_url, timeout, transport)
        self.client_id = client_id
        self.client_secret = client_secret

    async def _access_token(self, client: httpx.AsyncClient) -> str | None:
        response = await client.post(
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        if response.status_code != 200:
            logger.warning("PayPal authentication failed", status_code=response.status_code)
            return None
        return response.json().get("access_token")

    async def _charge(self, order: Order, payload: PaymentPayload) -> GatewayResult:
        if not isinstance(payload, PayPalPayload) or not payload.paypal_order_id:
            return GatewayResult.failed("PayPal payment requires a paypal_order_id")
        if not self.client_id or not self.client_secret:
            return GatewayResult.failed("PayPal is not configured")

        client = await self._get_client()
        token = await self._access_token(client)
        if token is None:
            return GatewayResult.failed("PayPal authentication failed")

        response = await client.post(
            f"/v2/checkout/orders/{payload.paypal_order_id}/capture",
            headers={
                "Authorization": f"Bearer {token}",
                "PayPal-Request-Id": f"order-{order.id}-{payload.paypal_order_id}",
            },
            json={},
        )
        if response.status_code not in (200, 201):
            reason = _error_message(response, "PayPal capture failed")
            logger.info("PayPal capture declined", order_id=order.id, reason=reason)
            return GatewayResult.failed(reason)

        data = response.json()
        if data.get("status") != "COMPLETED":
            return GatewayResult.failed(f"PayPal order {data.get('id')} is {data.get('status')}")

        captures = [
            capture
            for unit in data.get("purchase_units", [])
            for capture in unit.get("payments", {}).get("captures", [])
        ]
        reference = captures[0]["id"] if captures else data["id"]
        logger.info("PayPal capture succeeded", order_id=order.id, capture_id=reference)
        return GatewayResult.ok(reference)


def build_gateways(settings: Settings) -> dict[PaymentMethod, PaymentGateway]:
    """Construct the gateway collaborators from settings.

    Args:
        settings: Application settings.

    Returns:
        Mapping of payment method to its gateway.
    """
    return {
        PaymentMethod.STRIPE: StripeGateway(
            api_key=settings.stripe_api_key,
            base_url=settings.stripe_api_url,
            timeout=settings.gateway_timeout_seconds,
        ),
        PaymentMethod.PAYPAL: PayPalGateway(
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            base_url=settings.paypal_api_url,
            timeout=settings.gateway_timeout_seconds,
        ),
    }
