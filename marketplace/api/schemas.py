"""API schemas for the marketplace order API.

Pydantic models for request/response validation and serialization.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class PriceSchema(BaseModel):
    """Price representation."""

    amount: int = Field(..., description="Amount in minor currency units")
    currency: str = Field(default="COP", description="Currency code")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict, description="Additional error details")
    request_id: str | None = Field(default=None, description="Request ID for correlation")


# ============================================================================
# Order Schemas
# ============================================================================


class OrderStatusEnum(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethodEnum(str, Enum):
    """Supported payment methods."""

    STRIPE = "stripe"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"


class OrderItemRequest(BaseModel):
    """Line item in a create or add-item request.

    When ``unit_price`` is omitted the item is priced at the product's
    current catalog price.
    """

    product_id: int = Field(..., gt=0, description="Product ID")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    unit_price: int | None = Field(
        default=None,
        ge=0,
        description="Unit price in minor units, captured at order time",
    )


class OrderCreateRequest(BaseModel):
    """Request to create an order."""

    user_id: int = Field(..., gt=0, description="Owning user")
    shipping_address: str = Field(..., min_length=1, description="Delivery address")
    payment_method: PaymentMethodEnum = Field(..., description="Settlement method")
    items: list[OrderItemRequest] = Field(..., min_length=1, description="Line items")


class OrderItemQuantityRequest(BaseModel):
    """Request to change a line item quantity."""

    quantity: int = Field(..., ge=1, description="New quantity")


class OrderStatusRequest(BaseModel):
    """Request to move an order to a new status."""

    status: OrderStatusEnum = Field(..., description="Target status")
    reason: str | None = Field(default=None, max_length=500, description="Optional note")


class PaymentRequest(BaseModel):
    """Method-tagged payment details.

    Only the fields belonging to ``method`` are read.
    """

    method: PaymentMethodEnum = Field(..., description="Payment method")
    payment_method_id: str | None = Field(default=None, description="Stripe payment method token")
    description: str | None = Field(default=None, description="Stripe statement description")
    paypal_order_id: str | None = Field(default=None, description="Approved PayPal order ID")
    proof: str | None = Field(default=None, description="Bank transfer proof reference")


class OrderItemSchema(BaseModel):
    """Item in an order."""

    product_id: int = Field(..., description="Product ID")
    quantity: int = Field(..., ge=1, description="Quantity ordered")
    unit_price: PriceSchema = Field(..., description="Unit price at time of order")
    subtotal: PriceSchema = Field(..., description="Quantity times unit price")


class OrderResponse(BaseModel):
    """Order details response."""

    id: int = Field(..., description="Order ID")
    user_id: int = Field(..., description="Owning user")
    status: OrderStatusEnum = Field(..., description="Current order status")
    shipping_address: str = Field(..., description="Delivery address")
    payment_method: PaymentMethodEnum = Field(..., description="Settlement method")
    payment_reference: str | None = Field(default=None, description="Gateway payment reference")
    items: list[OrderItemSchema] = Field(..., description="Order items")
    total: PriceSchema = Field(..., description="Order total")
    item_count: int = Field(..., description="Total units ordered")
    created_at: datetime = Field(..., description="Creation time")
    updated_at: datetime = Field(..., description="Last modification time")


class OrdersListResponse(BaseModel):
    """List of orders."""

    items: list[OrderResponse] = Field(..., description="Orders")
    total: int = Field(..., description="Number of orders returned")


class PaymentResponse(BaseModel):
    """Successful settlement."""

    success: bool = Field(default=True, description="Whether the order was settled")
    reference: str = Field(..., description="Payment reference")
    order: OrderResponse = Field(..., description="The paid order")
