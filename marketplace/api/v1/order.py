from typing import Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from marketplace.core.dependencies import (
    get_cart_service,
    get_order_service,
    require_buyer,
    require_seller
)
from marketplace.db.schema import User, OrderStatus
from marketplace.models.cart import CartItemCreate, CartItemUpdate, CartItemRead, CartRead
from marketplace.models.common import ApiResponse, Page, MessageRead, CountRead
from marketplace.models.order import OrderCreate, OrderStatusUpdate, OrderRead, SellerOrderRead
from marketplace.services.cart import CartService
from marketplace.services.order import OrderService

router = APIRouter()


# ==========================================================================
# CART
# Declared before '/{order_id}' so 'cart' is never parsed as an order id.
# ==========================================================================

@router.get(
    "/cart",
    response_model=ApiResponse[CartRead],
    summary="Get cart",
    description="Unavailable lines are dropped before the totals are computed.",
    tags=["Cart"]
)
def get_cart(
    current_user: User = Depends(require_buyer),
    service: CartService = Depends(get_cart_service)
):
    return ApiResponse(data=service.get_cart(current_user))


@router.post(
    "/cart",
    response_model=ApiResponse[CartItemRead],
    status_code=status.HTTP_201_CREATED,
    summary="Add to cart",
    description="Adding a product already in the cart increases its quantity.",
    tags=["Cart"]
)
def add_to_cart(
    data: CartItemCreate,
    current_user: User = Depends(require_buyer),
    service: CartService = Depends(get_cart_service)
):
    return ApiResponse(data=service.add_to_cart(current_user, data))


@router.delete(
    "/cart",
    response_model=ApiResponse[CountRead],
    summary="Clear cart",
    tags=["Cart"]
)
def clear_cart(
    current_user: User = Depends(require_buyer),
    service: CartService = Depends(get_cart_service)
):
    count = service.clear_cart(current_user)
    return ApiResponse(data=CountRead(message="Cart cleared successfully", count=count))


@router.put(
    "/cart/{item_id}",
    response_model=ApiResponse[CartItemRead],
    summary="Update cart item",
    tags=["Cart"]
)
def update_cart_item(
    item_id: UUID,
    data: CartItemUpdate,
    current_user: User = Depends(require_buyer),
    service: CartService = Depends(get_cart_service)
):
    return ApiResponse(data=service.update_cart_item(current_user, item_id, data))


@router.delete(
    "/cart/{item_id}",
    response_model=ApiResponse[MessageRead],
    summary="Remove cart item",
    tags=["Cart"]
)
def remove_from_cart(
    item_id: UUID,
    current_user: User = Depends(require_buyer),
    service: CartService = Depends(get_cart_service)
):
    service.remove_from_cart(current_user, item_id)
    return ApiResponse(data=MessageRead(message="Item removed from cart"))


# ==========================================================================
# SELLER
# ==========================================================================

@router.get(
    "/seller/orders",
    response_model=ApiResponse[Page[SellerOrderRead]],
    summary="Orders containing my products",
    description="Each order lists only the calling seller's lines."
)
def get_seller_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    current_user: User = Depends(require_seller),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.get_seller_orders(current_user, page, limit, status))


@router.put(
    "/{order_id}/status",
    response_model=ApiResponse[SellerOrderRead],
    summary="Advance order status"
)
def update_order_status(
    order_id: UUID,
    data: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_seller),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.update_order_status(
        current_user, order_id, data, background_tasks))


# ==========================================================================
# BUYER
# ==========================================================================

@router.post(
    "/",
    response_model=ApiResponse[OrderRead],
    status_code=status.HTTP_201_CREATED,
    summary="Checkout",
    description="Turns the cart into an order, reserving stock atomically."
)
def create_order(
    data: OrderCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_buyer),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.create_order(current_user, data, background_tasks))


@router.get(
    "/",
    response_model=ApiResponse[Page[OrderRead]],
    summary="My orders"
)
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    current_user: User = Depends(require_buyer),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.list_orders(current_user, page, limit, status))


@router.get(
    "/{order_id}",
    response_model=ApiResponse[OrderRead],
    summary="Order details"
)
def get_order(
    order_id: UUID,
    current_user: User = Depends(require_buyer),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.get_order(current_user, order_id))


@router.put(
    "/{order_id}/cancel",
    response_model=ApiResponse[OrderRead],
    summary="Cancel order",
    description="Allowed while PENDING or CONFIRMED; stock is restored."
)
def cancel_order(
    order_id: UUID,
    current_user: User = Depends(require_buyer),
    service: OrderService = Depends(get_order_service)
):
    return ApiResponse(data=service.cancel_order(current_user, order_id))
