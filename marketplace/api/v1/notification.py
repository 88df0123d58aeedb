from typing import Optional
from uuid import UUID
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status

from marketplace.core.dependencies import (
    get_notification_service,
    get_current_user,
    require_admin
)
from marketplace.db.schema import User, NotificationType
from marketplace.models.common import ApiResponse, MessageRead, CountRead
from marketplace.models.notification import (
    NotificationCreate,
    NotificationBroadcast,
    NotificationRead,
    NotificationPage,
    NotificationStatsRead
)
from marketplace.services.notification import NotificationService

router = APIRouter()


@router.get(
    "/",
    response_model=ApiResponse[NotificationPage],
    summary="My notifications"
)
def list_notifications(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    type: Optional[NotificationType] = None,
    is_read: Optional[bool] = None,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return ApiResponse(data=service.list_notifications(current_user, page, limit, type, is_read))


@router.get(
    "/stats",
    response_model=ApiResponse[NotificationStatsRead],
    summary="Notification counts"
)
def get_stats(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return ApiResponse(data=service.get_stats(current_user))


@router.put(
    "/mark-all-read",
    response_model=ApiResponse[CountRead],
    summary="Mark everything as read"
)
def mark_all_as_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    count = service.mark_all_as_read(current_user)
    return ApiResponse(data=CountRead(message="All notifications marked as read", count=count))


@router.delete(
    "/read",
    response_model=ApiResponse[CountRead],
    summary="Delete read notifications"
)
def delete_all_read(
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    count = service.delete_all_read(current_user)
    return ApiResponse(data=CountRead(message="Read notifications deleted", count=count))


@router.put(
    "/{notification_id}/read",
    response_model=ApiResponse[NotificationRead],
    summary="Mark as read"
)
def mark_as_read(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    return ApiResponse(data=service.mark_as_read(current_user, notification_id))


@router.delete(
    "/{notification_id}",
    response_model=ApiResponse[MessageRead],
    summary="Delete notification"
)
def delete_notification(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service)
):
    service.delete_notification(current_user, notification_id)
    return ApiResponse(data=MessageRead(message="Notification deleted successfully"))


# ==========================================================================
# ADMIN
# ==========================================================================

@router.post(
    "/",
    response_model=ApiResponse[NotificationRead],
    status_code=status.HTTP_201_CREATED,
    summary="Send notification",
    tags=["Admin"]
)
def send_notification(
    data: NotificationCreate,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service)
):
    return ApiResponse(data=service.send_notification(admin, data, background_tasks))


@router.post(
    "/bulk",
    response_model=ApiResponse[CountRead],
    status_code=status.HTTP_201_CREATED,
    summary="Broadcast notification",
    description="All-or-nothing: an unknown user id rejects the whole batch.",
    tags=["Admin"]
)
def broadcast_notification(
    data: NotificationBroadcast,
    background_tasks: BackgroundTasks,
    admin: User = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service)
):
    count = service.broadcast(admin, data, background_tasks)
    return ApiResponse(data=CountRead(message=f"Notification sent to {count} users", count=count))
