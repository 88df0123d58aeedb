from typing import List, Optional, Union
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from marketplace.core.dependencies import (
    get_rfq_service,
    get_quote_service,
    get_current_user,
    require_roles,
    require_buyer,
    require_seller
)
from marketplace.db.schema import User, UserRole, RFQStatus
from marketplace.models.common import ApiResponse, Page, MessageRead
from marketplace.models.rfq import (
    RFQCreate,
    RFQUpdate,
    RFQClose,
    RFQRead,
    RFQPublicRead,
    RFQDetailRead,
    QuoteCreate,
    QuoteUpdate,
    QuoteRead,
    SellerQuoteRead
)
from marketplace.services.rfq import RFQService
from marketplace.services.quote import QuoteService

router = APIRouter()


# ==========================================================================
# RFQ
# ==========================================================================

@router.post(
    "/",
    response_model=ApiResponse[RFQRead],
    status_code=status.HTTP_201_CREATED,
    summary="Post an RFQ",
    description="Matching verified sellers are notified after the response is sent."
)
def create_rfq(
    data: RFQCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_buyer),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.create_rfq(current_user, data, background_tasks))


@router.get(
    "/",
    response_model=ApiResponse[Page[RFQPublicRead]],
    summary="Browse open RFQs",
    description="RFQs still accepting quotes, with buyer identity redacted."
)
def list_open_rfqs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    category: Optional[UUID] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    current_user: User = Depends(require_roles(UserRole.SELLER, UserRole.ADMIN)),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.list_open_rfqs(
        page, limit, category, search, sort_by, sort_order))


@router.get(
    "/my-rfqs",
    response_model=ApiResponse[Page[RFQRead]],
    summary="My RFQs"
)
def list_my_rfqs(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[RFQStatus] = None,
    current_user: User = Depends(require_buyer),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.list_my_rfqs(current_user, page, limit, status))


# ==========================================================================
# QUOTES (static paths before '/{rfq_id}')
# ==========================================================================

@router.get(
    "/seller/quotes",
    response_model=ApiResponse[Page[SellerQuoteRead]],
    summary="My quotes"
)
def list_seller_quotes(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[RFQStatus] = None,
    current_user: User = Depends(require_seller),
    service: QuoteService = Depends(get_quote_service)
):
    return ApiResponse(data=service.list_seller_quotes(current_user, page, limit, status))


@router.get(
    "/quotes/{quote_id}",
    response_model=ApiResponse[SellerQuoteRead],
    summary="Quote details",
    description="Visible to the RFQ owner, the quoting seller and admins."
)
def get_quote(
    quote_id: UUID,
    current_user: User = Depends(get_current_user),
    service: QuoteService = Depends(get_quote_service)
):
    return ApiResponse(data=service.get_quote(current_user, quote_id))


@router.put(
    "/quotes/{quote_id}",
    response_model=ApiResponse[QuoteRead],
    summary="Revise quote"
)
def update_quote(
    quote_id: UUID,
    data: QuoteUpdate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_seller),
    service: QuoteService = Depends(get_quote_service)
):
    return ApiResponse(data=service.update_quote(current_user, quote_id, data, background_tasks))


@router.delete(
    "/quotes/{quote_id}",
    response_model=ApiResponse[MessageRead],
    summary="Withdraw quote"
)
def delete_quote(
    quote_id: UUID,
    current_user: User = Depends(require_seller),
    service: QuoteService = Depends(get_quote_service)
):
    service.delete_quote(current_user, quote_id)
    return ApiResponse(data=MessageRead(message="Quote deleted successfully"))


# ==========================================================================
# SINGLE RFQ
# ==========================================================================

@router.get(
    "/{rfq_id}",
    response_model=ApiResponse[Union[RFQDetailRead, RFQPublicRead]],
    summary="RFQ details",
    description="Full view for the owner, admins and sellers who quoted; redacted otherwise."
)
def get_rfq(
    rfq_id: UUID,
    current_user: User = Depends(get_current_user),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.get_rfq(current_user, rfq_id))


@router.put(
    "/{rfq_id}",
    response_model=ApiResponse[RFQRead],
    summary="Update RFQ",
    description="Only possible until the first quote arrives."
)
def update_rfq(
    rfq_id: UUID,
    data: RFQUpdate,
    current_user: User = Depends(require_buyer),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.update_rfq(current_user, rfq_id, data))


@router.delete(
    "/{rfq_id}",
    response_model=ApiResponse[MessageRead],
    summary="Delete RFQ"
)
def delete_rfq(
    rfq_id: UUID,
    current_user: User = Depends(require_buyer),
    service: RFQService = Depends(get_rfq_service)
):
    service.delete_rfq(current_user, rfq_id)
    return ApiResponse(data=MessageRead(message="RFQ deleted successfully"))


@router.put(
    "/{rfq_id}/close",
    response_model=ApiResponse[RFQDetailRead],
    summary="Close RFQ",
    description="Optionally marks the winning quote. Every quoting seller is notified."
)
def close_rfq(
    rfq_id: UUID,
    background_tasks: BackgroundTasks,
    data: Optional[RFQClose] = None,
    current_user: User = Depends(require_buyer),
    service: RFQService = Depends(get_rfq_service)
):
    return ApiResponse(data=service.close_rfq(
        current_user, rfq_id, data or RFQClose(), background_tasks))


@router.post(
    "/{rfq_id}/quotes",
    response_model=ApiResponse[QuoteRead],
    status_code=status.HTTP_201_CREATED,
    summary="Submit quote"
)
def create_quote(
    rfq_id: UUID,
    data: QuoteCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_seller),
    service: QuoteService = Depends(get_quote_service)
):
    return ApiResponse(data=service.create_quote(current_user, rfq_id, data, background_tasks))


@router.get(
    "/{rfq_id}/quotes",
    response_model=ApiResponse[List[QuoteRead]],
    summary="Quotes on my RFQ"
)
def list_rfq_quotes(
    rfq_id: UUID,
    current_user: User = Depends(require_buyer),
    service: QuoteService = Depends(get_quote_service)
):
    return ApiResponse(data=service.list_rfq_quotes(current_user, rfq_id))
