from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from marketplace.core.dependencies import (
    get_certification_service,
    get_current_user,
    require_seller,
    require_admin
)
from marketplace.db.schema import User, CertificationStatus
from marketplace.models.certification import (
    CertificationCreate,
    CertificationUpdate,
    CertificationVerify,
    CertificationBulkVerify,
    CertificationRead,
    AdminCertificationRead,
    CertificationStatsRead,
    ProductLinkCreate
)
from marketplace.models.common import ApiResponse, Page, MessageRead, CountRead
from marketplace.models.product import ProductCertificationRead
from marketplace.services.certification import CertificationService

router = APIRouter()


# ==========================================================================
# ADMIN REVIEW
# ==========================================================================

@router.get(
    "/admin/certifications",
    response_model=ApiResponse[Page[AdminCertificationRead]],
    summary="All certifications",
    tags=["Admin"]
)
def list_all_certifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status: Optional[CertificationStatus] = None,
    search: Optional[str] = None,
    admin: User = Depends(require_admin),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.list_all(page, limit, status, search))


@router.get(
    "/admin/pending",
    response_model=ApiResponse[Page[AdminCertificationRead]],
    summary="Review queue",
    description="Pending certifications, oldest first.",
    tags=["Admin"]
)
def list_pending_certifications(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    admin: User = Depends(require_admin),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.list_pending(page, limit))


@router.get(
    "/admin/stats",
    response_model=ApiResponse[CertificationStatsRead],
    summary="Certification statistics",
    tags=["Admin"]
)
def get_certification_stats(
    admin: User = Depends(require_admin),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.get_stats())


@router.put(
    "/admin/bulk-verify",
    response_model=ApiResponse[CountRead],
    summary="Review many certifications",
    description="Applies one verdict to every PENDING certification in the list.",
    tags=["Admin"]
)
def bulk_verify_certifications(
    data: CertificationBulkVerify,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: CertificationService = Depends(get_certification_service)
):
    count = service.bulk_verify(admin, data, background_tasks)
    return ApiResponse(data=CountRead(
        message=f"{count} certification(s) {data.status.value.lower()}", count=count))


@router.put(
    "/admin/{cert_id}/verify",
    response_model=ApiResponse[AdminCertificationRead],
    summary="Review certification",
    tags=["Admin"]
)
def verify_certification(
    cert_id: UUID,
    data: CertificationVerify,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.verify_certification(admin, cert_id, data, background_tasks))


# ==========================================================================
# PUBLIC
# ==========================================================================

@router.get(
    "/product/{product_id}",
    response_model=ApiResponse[List[ProductCertificationRead]],
    summary="Product certifications",
    description="Verified certifications attached to a product."
)
def get_product_certifications(
    product_id: UUID,
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.get_product_certifications(product_id))


# ==========================================================================
# SELLER
# ==========================================================================

@router.post(
    "/",
    response_model=ApiResponse[CertificationRead],
    status_code=status.HTTP_201_CREATED,
    summary="Submit certification",
    description="Starts in PENDING; admins are notified."
)
def create_certification(
    data: CertificationCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.create_certification(current_user, data, background_tasks))


@router.get(
    "/",
    response_model=ApiResponse[List[CertificationRead]],
    summary="My certifications"
)
def list_certifications(
    status: Optional[CertificationStatus] = None,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.list_my_certifications(current_user, status))


@router.get(
    "/{cert_id}",
    response_model=ApiResponse[CertificationRead],
    summary="Certification details"
)
def get_certification(
    cert_id: UUID,
    current_user: User = Depends(get_current_user),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.get_certification(current_user, cert_id))


@router.put(
    "/{cert_id}",
    response_model=ApiResponse[CertificationRead],
    summary="Update certification",
    description="Sends the certification back to review. Verified ones are locked."
)
def update_certification(
    cert_id: UUID,
    data: CertificationUpdate,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.update_certification(current_user, cert_id, data))


@router.delete(
    "/{cert_id}",
    response_model=ApiResponse[MessageRead],
    summary="Delete certification"
)
def delete_certification(
    cert_id: UUID,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    service.delete_certification(current_user, cert_id)
    return ApiResponse(data=MessageRead(message="Certification deleted successfully"))


@router.post(
    "/{cert_id}/products",
    response_model=ApiResponse[CertificationRead],
    status_code=status.HTTP_201_CREATED,
    summary="Attach to product"
)
def link_to_product(
    cert_id: UUID,
    data: ProductLinkCreate,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    return ApiResponse(data=service.link_to_product(current_user, cert_id, data.product_id))


@router.delete(
    "/{cert_id}/products/{product_id}",
    response_model=ApiResponse[MessageRead],
    summary="Detach from product"
)
def unlink_from_product(
    cert_id: UUID,
    product_id: UUID,
    current_user: User = Depends(require_seller),
    service: CertificationService = Depends(get_certification_service)
):
    service.unlink_from_product(current_user, cert_id, product_id)
    return ApiResponse(data=MessageRead(message="Certification unlinked from product"))
