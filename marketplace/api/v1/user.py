from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from marketplace.core.dependencies import (
    get_profile_service,
    get_category_service,
    get_admin_service,
    require_buyer,
    require_seller,
    require_admin
)
from marketplace.db.schema import User, UserRole, UserStatus
from marketplace.models.category import CategoryCreate, CategoryUpdate, CategoryRead, CategoryTreeRead
from marketplace.models.common import ApiResponse, Page
from marketplace.models.profile import (
    BuyerProfileCreate,
    BuyerProfileUpdate,
    BuyerProfileRead,
    SellerProfileCreate,
    SellerProfileUpdate,
    SellerProfileRead,
    PublicSellerProfileRead
)
from marketplace.models.user import (
    UserRead,
    UserDetailRead,
    UserStatusUpdate,
    DashboardStatsRead
)
from marketplace.services.admin import AdminService
from marketplace.services.category import CategoryService
from marketplace.services.profile import ProfileService

router = APIRouter()


# ==========================================================================
# BUYER PROFILE
# ==========================================================================

@router.post(
    "/profile/buyer",
    response_model=ApiResponse[BuyerProfileRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create buyer profile"
)
def create_buyer_profile(
    data: BuyerProfileCreate,
    current_user: User = Depends(require_buyer),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.create_buyer_profile(current_user, data))


@router.get(
    "/profile/buyer",
    response_model=ApiResponse[BuyerProfileRead],
    summary="Get buyer profile"
)
def get_buyer_profile(
    current_user: User = Depends(require_buyer),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.get_buyer_profile(current_user))


@router.put(
    "/profile/buyer",
    response_model=ApiResponse[BuyerProfileRead],
    summary="Update buyer profile",
    description="Creates the profile if it does not exist yet."
)
def update_buyer_profile(
    data: BuyerProfileUpdate,
    current_user: User = Depends(require_buyer),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.update_buyer_profile(current_user, data))


# ==========================================================================
# SELLER PROFILE
# ==========================================================================

@router.post(
    "/profile/seller",
    response_model=ApiResponse[SellerProfileRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create seller profile"
)
def create_seller_profile(
    data: SellerProfileCreate,
    current_user: User = Depends(require_seller),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.create_seller_profile(current_user, data))


@router.get(
    "/profile/seller",
    response_model=ApiResponse[SellerProfileRead],
    summary="Get seller profile"
)
def get_seller_profile(
    current_user: User = Depends(require_seller),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.get_seller_profile(current_user))


@router.put(
    "/profile/seller",
    response_model=ApiResponse[SellerProfileRead],
    summary="Update seller profile",
    description="Supplying 'categories' replaces the full set of trade categories."
)
def update_seller_profile(
    data: SellerProfileUpdate,
    current_user: User = Depends(require_seller),
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.update_seller_profile(current_user, data))


@router.get(
    "/sellers/{seller_id}",
    response_model=ApiResponse[PublicSellerProfileRead],
    summary="Public seller storefront"
)
def get_public_seller(
    seller_id: UUID,
    service: ProfileService = Depends(get_profile_service)
):
    return ApiResponse(data=service.get_public_seller_profile(seller_id))


@router.get(
    "/categories",
    response_model=ApiResponse[List[CategoryTreeRead]],
    summary="Category tree",
    description="Active top-level categories with their active children."
)
def list_categories(
    service: CategoryService = Depends(get_category_service)
):
    return ApiResponse(data=service.list_categories())


# ==========================================================================
# ADMIN
# ==========================================================================

@router.get(
    "/admin/users",
    response_model=ApiResponse[Page[UserRead]],
    summary="List users",
    tags=["Admin"]
)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    role: Optional[UserRole] = None,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return ApiResponse(data=service.list_users(page, limit, role, status, search))


@router.get(
    "/admin/users/{user_id}",
    response_model=ApiResponse[UserDetailRead],
    summary="User details",
    tags=["Admin"]
)
def get_user_details(
    user_id: UUID,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return ApiResponse(data=service.get_user_details(user_id))


@router.put(
    "/admin/users/{user_id}/status",
    response_model=ApiResponse[UserRead],
    summary="Change account status",
    description="Activating a seller also verifies their profile.",
    tags=["Admin"]
)
def update_user_status(
    user_id: UUID,
    data: UserStatusUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return ApiResponse(data=service.update_user_status(admin, user_id, data, background_tasks))


@router.get(
    "/admin/sellers/pending",
    response_model=ApiResponse[Page[UserRead]],
    summary="Seller approval queue",
    tags=["Admin"]
)
def list_pending_sellers(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return ApiResponse(data=service.list_pending_sellers(page, limit))


@router.get(
    "/admin/stats",
    response_model=ApiResponse[DashboardStatsRead],
    summary="Dashboard statistics",
    tags=["Admin"]
)
def get_dashboard_stats(
    admin: User = Depends(require_admin),
    service: AdminService = Depends(get_admin_service)
):
    return ApiResponse(data=service.get_dashboard_stats())


@router.post(
    "/admin/categories",
    response_model=ApiResponse[CategoryRead],
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
    tags=["Admin"]
)
def create_category(
    data: CategoryCreate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: CategoryService = Depends(get_category_service)
):
    return ApiResponse(data=service.create_category(admin, data, background_tasks))


@router.put(
    "/admin/categories/{category_id}",
    response_model=ApiResponse[CategoryRead],
    summary="Update category",
    tags=["Admin"]
)
def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: CategoryService = Depends(get_category_service)
):
    return ApiResponse(data=service.update_category(admin, category_id, data, background_tasks))
