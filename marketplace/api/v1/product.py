from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status

from marketplace.core.dependencies import get_product_service, require_seller
from marketplace.db.schema import User
from marketplace.models.common import ApiResponse, Page, MessageRead
from marketplace.models.product import ProductCreate, ProductUpdate, ProductRead, StockUpdate
from marketplace.services.product import ProductService

router = APIRouter()


@router.get(
    "/",
    response_model=ApiResponse[Page[ProductRead]],
    summary="Browse products",
    description="Active listings with search, category/seller/price/flag filters and sorting."
)
def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[UUID] = None,
    seller: Optional[UUID] = None,
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    is_organic: Optional[bool] = None,
    is_fair_trade: Optional[bool] = None,
    is_gmo_free: Optional[bool] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.list_products(
        page=page,
        limit=limit,
        search=search,
        category_id=category,
        seller_id=seller,
        min_price=min_price,
        max_price=max_price,
        is_organic=is_organic,
        is_fair_trade=is_fair_trade,
        is_gmo_free=is_gmo_free,
        sort_by=sort_by,
        sort_order=sort_order
    ))


@router.get(
    "/featured",
    response_model=ApiResponse[List[ProductRead]],
    summary="Featured products"
)
def list_featured(
    limit: int = Query(8, ge=1, le=50),
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.list_featured(limit))


@router.get(
    "/seller/my-products",
    response_model=ApiResponse[Page[ProductRead]],
    summary="Seller catalogue",
    description="All of the seller's products, including deactivated ones."
)
def list_my_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[UUID] = None,
    is_active: Optional[bool] = None,
    current_user: User = Depends(require_seller),
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.list_seller_products(
        current_user, page, limit, search, category, is_active))


@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductRead],
    summary="Product details"
)
def get_product(
    product_id: UUID,
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.get_product(product_id))


@router.post(
    "/",
    response_model=ApiResponse[ProductRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
    description="Verified sellers only."
)
def create_product(
    data: ProductCreate,
    current_user: User = Depends(require_seller),
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.create_product(current_user, data))


@router.put(
    "/{product_id}",
    response_model=ApiResponse[ProductRead],
    summary="Update product"
)
def update_product(
    product_id: UUID,
    data: ProductUpdate,
    current_user: User = Depends(require_seller),
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.update_product(current_user, product_id, data))


@router.delete(
    "/{product_id}",
    response_model=ApiResponse[MessageRead],
    summary="Deactivate product"
)
def delete_product(
    product_id: UUID,
    current_user: User = Depends(require_seller),
    service: ProductService = Depends(get_product_service)
):
    service.delete_product(current_user, product_id)
    return ApiResponse(data=MessageRead(message="Product deleted successfully"))


@router.put(
    "/{product_id}/stock",
    response_model=ApiResponse[ProductRead],
    summary="Set stock level"
)
def update_stock(
    product_id: UUID,
    data: StockUpdate,
    current_user: User = Depends(require_seller),
    service: ProductService = Depends(get_product_service)
):
    return ApiResponse(data=service.update_stock(current_user, product_id, data.stock_quantity))
