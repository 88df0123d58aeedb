from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field

from marketplace.db.schema import NotificationType
from marketplace.models.common import Pagination


class NotificationContent(SQLModel):
    type: NotificationType = NotificationType.GENERAL
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    data: Optional[Dict[str, Any]] = None


class NotificationCreate(NotificationContent):
    """A single message addressed to one user. Also the unit of fan-out."""
    user_id: UUID


class NotificationBroadcast(NotificationContent):
    user_ids: List[UUID] = Field(min_length=1)


class NotificationRead(SQLModel):
    id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class NotificationPage(SQLModel):
    items: List[NotificationRead] = []
    pagination: Pagination
    unread_count: int


class NotificationStatsRead(SQLModel):
    total: int
    unread: int
    read: int
    by_type: Dict[str, int] = {}
