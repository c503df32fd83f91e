"""Order API endpoints.

Provides endpoints for order lifecycle management:
- POST /orders - create an order
- GET /orders - list orders, optionally by status
- GET /orders/user/{user_id} - orders owned by a user
- GET /orders/{id} - order details
- DELETE /orders/{id} - delete an order
- POST /orders/{id}/items - add a line item
- PATCH /orders/{id}/items/{product_id} - change a line item quantity
- DELETE /orders/{id}/items/{product_id} - remove a product's line items
- POST /orders/{id}/payment - settle payment
- PATCH /orders/{id}/status - administrative status change
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from marketplace.api.middleware import status_for_error_code
from marketplace.api.schemas import (
    ErrorResponse,
    OrderCreateRequest,
    OrderItemQuantityRequest,
    OrderItemRequest,
    OrderItemSchema,
    OrderResponse,
    OrdersListResponse,
    OrderStatusEnum,
    OrderStatusRequest,
    PaymentMethodEnum,
    PaymentRequest,
    PaymentResponse,
    PriceSchema,
)
from marketplace.application.order_service import OrderService
from marketplace.application.payment_service import PaymentService
from marketplace.catalog.service import CatalogService
from marketplace.domain.entities import Order
from marketplace.domain.value_objects import LineItem

router = APIRouter(prefix="/orders", tags=["Orders"])

ERROR_RESPONSES = {
    401: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


# ============================================================================
# Dependencies
# ============================================================================


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_payment_service(request: Request) -> PaymentService:
    return request.app.state.payment_service


def get_catalog_service(request: Request) -> CatalogService:
    return request.app.state.catalog_service


OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


# ============================================================================
# Converters
# ============================================================================


def order_to_response(order: Order) -> OrderResponse:
    """Convert an Order aggregate to OrderResponse."""
    items = [
        OrderItemSchema(
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=PriceSchema(amount=item.unit_price.amount_cents, currency=order.currency),
            subtotal=PriceSchema(amount=item.subtotal.amount_cents, currency=order.currency),
        )
        for item in order.items
    ]

    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        status=OrderStatusEnum(order.status.value),
        shipping_address=order.shipping_address,
        payment_method=PaymentMethodEnum(order.payment_method.value),
        payment_reference=order.payment_reference,
        items=items,
        total=PriceSchema(amount=order.total.amount_cents, currency=order.currency),
        item_count=order.item_count,
        created_at=order.created_at,
        updated_at=order.updated_at,
    )


async def build_line_item(
    item: OrderItemRequest,
    catalog: CatalogService,
    currency: str,
) -> LineItem:
    """Use the caller's unit price when given, else the catalog price."""
    if item.unit_price is None:
        return await catalog.build_line_item(item.product_id, item.quantity)
    return LineItem.create(
        product_id=item.product_id,
        quantity=item.quantity,
        unit_price_cents=item.unit_price,
        currency=currency,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Create order",
)
async def create_order(
    request: OrderCreateRequest,
    service: OrderServiceDep,
    catalog: CatalogServiceDep,
) -> OrderResponse:
    """Create a pending order from line items.

    Items without a unit price are priced from the catalog.
    """
    items = [await build_line_item(item, catalog, service.currency) for item in request.items]
    order = await service.create_order(
        user_id=request.user_id,
        shipping_address=request.shipping_address,
        payment_method=request.payment_method.value,
        items=items,
    )
    return order_to_response(order)


@router.get(
    "",
    response_model=OrdersListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List orders",
)
async def list_orders(
    service: OrderServiceDep,
    status: OrderStatusEnum | None = Query(default=None, description="Filter by status"),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum results"),
    offset: int = Query(default=0, ge=0, description="Result offset"),
) -> OrdersListResponse:
    if status is not None:
        orders = await service.list_orders_by_state(status.value, limit=limit, offset=offset)
    else:
        orders = await service.list_orders(limit=limit, offset=offset)
    return OrdersListResponse(
        items=[order_to_response(order) for order in orders],
        total=len(orders),
    )


@router.get(
    "/user/{user_id}",
    response_model=OrdersListResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List a user's orders",
)
async def list_user_orders(user_id: int, service: OrderServiceDep) -> OrdersListResponse:
    orders = await service.list_orders_by_user(user_id)
    return OrdersListResponse(
        items=[order_to_response(order) for order in orders],
        total=len(orders),
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    summary="Get order details",
)
async def get_order(order_id: int, service: OrderServiceDep) -> OrderResponse:
    order = await service.get_order(order_id)
    return order_to_response(order)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses=ERROR_RESPONSES,
    summary="Delete order",
)
async def delete_order(order_id: int, service: OrderServiceDep) -> Response:
    await service.delete_order(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{order_id}/items",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    summary="Add line item",
    description="Append a line item. Only pending orders can be edited.",
)
async def add_item(
    order_id: int,
    request: OrderItemRequest,
    service: OrderServiceDep,
    catalog: CatalogServiceDep,
) -> OrderResponse:
    item = await build_line_item(request, catalog, service.currency)
    order = await service.add_item(order_id, item)
    return order_to_response(order)


@router.patch(
    "/{order_id}/items/{product_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    summary="Change line item quantity",
)
async def update_item_quantity(
    order_id: int,
    product_id: int,
    request: OrderItemQuantityRequest,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.update_item_quantity(order_id, product_id, request.quantity)
    return order_to_response(order)


@router.delete(
    "/{order_id}/items/{product_id}",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    summary="Remove line items for a product",
)
async def remove_item(order_id: int, product_id: int, service: OrderServiceDep) -> OrderResponse:
    order = await service.remove_item(order_id, product_id)
    return order_to_response(order)


@router.post(
    "/{order_id}/payment",
    response_model=PaymentResponse,
    responses={**ERROR_RESPONSES, 402: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
    summary="Settle payment",
    description="Settle a pending order. At most one settlement per order succeeds.",
)
async def settle_payment(
    order_id: int,
    request: PaymentRequest,
    service: PaymentServiceDep,
) -> PaymentResponse:
    """Settle payment for an order.

    Raises:
        HTTPException: If settlement failed; the order is left unchanged.
    """
    result = await service.settle_payment(order_id, request.model_dump(mode="json"))

    if not result.success:
        raise HTTPException(
            status_code=status_for_error_code(result.error_code),
            detail={
                "error_code": result.error_code,
                "message": result.error,
                "details": result.details or {},
            },
        )

    return PaymentResponse(reference=result.reference, order=order_to_response(result.order))


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    responses=ERROR_RESPONSES,
    summary="Change order status",
    description="Ship, deliver or cancel an order. Paid is reachable only through payment.",
)
async def transition_status(
    order_id: int,
    request: OrderStatusRequest,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.transition_state(order_id, request.status.value, reason=request.reason)
    return order_to_response(order)
