import time
import uuid
from typing import List, Optional
from loguru import logger
from sqlalchemy import delete
from sqlalchemy.exc import OperationalError
from sqlmodel import Session, select, func, update, col
from fastapi import BackgroundTasks

from marketplace.core.audit import _perform_audit_log
from marketplace.core.errors import NotFoundError
from marketplace.db.core import engine
from marketplace.db.pagination import paginate
from marketplace.db.schema import User, Notification, NotificationType, AuditAction
from marketplace.models.notification import (
    NotificationCreate,
    NotificationBroadcast,
    NotificationRead,
    NotificationPage,
    NotificationStatsRead
)


def dispatch_notifications(
    payloads: List[NotificationCreate],
    attempts: int = 3,
    backoff_base: float = 0.1
):
    """
    Background worker for notification fan-out.
    Opens its OWN session: the request session is closed by the time
    background tasks run. Lock/timeouts are retried with exponential backoff.
    """
    for attempt in range(attempts):
        try:
            with Session(engine) as session:
                session.add_all([Notification(**p.model_dump())
                                for p in payloads])
                session.commit()
            logger.info(f"Dispatched {len(payloads)} notification(s)")
            return
        except OperationalError as e:
            if attempt >= attempts - 1:
                logger.error(
                    f"NOTIFICATION DISPATCH FAILED after {attempts} attempts "
                    f"({len(payloads)} messages lost): {e}")
                return
            logger.warning(
                f"Notification dispatch attempt {attempt + 1} failed, retrying: {e}")
            time.sleep(backoff_base * (2 ** attempt))


class NotificationService:
    def __init__(self, session: Session):
        self.session = session

    def _get_own(self, user: User, notification_id: uuid.UUID) -> Notification:
        notification = self.session.exec(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.user_id == user.id
            )
        ).first()
        if not notification:
            raise NotFoundError("Notification not found")
        return notification

    # ==========================================================================
    # WRITE SIDE (used by the other workflows)
    # ==========================================================================

    def notify(
        self,
        payloads: List[NotificationCreate],
        background_tasks: Optional[BackgroundTasks] = None
    ):
        """
        Queues notifications after the business transaction has committed.
        With a BackgroundTasks handle the write happens after the response
        is sent; without one (CLI, tests) it happens inline.

        Both paths write through their own session: committing the caller's
        session here would expire the rows it is about to serialize.
        """
        if not payloads:
            return

        if background_tasks is not None:
            background_tasks.add_task(dispatch_notifications, payloads)
            return

        with Session(engine) as session:
            session.add_all([Notification(**p.model_dump())
                            for p in payloads])
            session.commit()

    # ==========================================================================
    # READ OPERATIONS
    # ==========================================================================

    def list_notifications(
        self,
        user: User,
        page: int = 1,
        limit: int = 20,
        type: Optional[NotificationType] = None,
        is_read: Optional[bool] = None
    ) -> NotificationPage:
        statement = select(Notification).where(
            Notification.user_id == user.id)

        if type:
            statement = statement.where(Notification.type == type)
        if is_read is not None:
            statement = statement.where(Notification.is_read == is_read)

        statement = statement.order_by(col(Notification.created_at).desc())
        rows, pagination = paginate(self.session, statement, page, limit)

        unread_count = self.session.exec(
            select(func.count(Notification.id)).where(
                Notification.user_id == user.id,
                Notification.is_read == False
            )
        ).one()

        return NotificationPage(
            items=[NotificationRead.model_validate(n) for n in rows],
            pagination=pagination,
            unread_count=unread_count
        )

    def get_stats(self, user: User) -> NotificationStatsRead:
        rows = self.session.exec(
            select(Notification.type, Notification.is_read, func.count(Notification.id))
            .where(Notification.user_id == user.id)
            .group_by(Notification.type, Notification.is_read)
        ).all()

        total = unread = 0
        by_type = {}
        for n_type, is_read, count in rows:
            total += count
            if not is_read:
                unread += count
            key = n_type.value if isinstance(
                n_type, NotificationType) else str(n_type)
            by_type[key] = by_type.get(key, 0) + count

        return NotificationStatsRead(
            total=total,
            unread=unread,
            read=total - unread,
            by_type=by_type
        )

    # ==========================================================================
    # USER ACTIONS
    # ==========================================================================

    def mark_as_read(self, user: User, notification_id: uuid.UUID) -> NotificationRead:
        notification = self._get_own(user, notification_id)
        notification.is_read = True
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)
        return NotificationRead.model_validate(notification)

    def mark_all_as_read(self, user: User) -> int:
        result = self.session.exec(
            update(Notification)
            .where(Notification.user_id == user.id, Notification.is_read == False)
            .values(is_read=True)
        )
        self.session.commit()
        return result.rowcount

    def delete_notification(self, user: User, notification_id: uuid.UUID):
        notification = self._get_own(user, notification_id)
        self.session.delete(notification)
        self.session.commit()

    def delete_all_read(self, user: User) -> int:
        result = self.session.exec(
            delete(Notification)
            .where(Notification.user_id == user.id, Notification.is_read == True)
        )
        self.session.commit()
        return result.rowcount

    # ==========================================================================
    # ADMIN
    # ==========================================================================

    def send_notification(
        self,
        admin: User,
        data: NotificationCreate,
        background_tasks: BackgroundTasks
    ) -> NotificationRead:
        if not self.session.get(User, data.user_id):
            raise NotFoundError("User not found")

        notification = Notification(**data.model_dump())
        self.session.add(notification)
        self.session.commit()
        self.session.refresh(notification)

        background_tasks.add_task(
            _perform_audit_log,
            user_id=admin.id,
            entity_type="Notification",
            entity_id=notification.id,
            action=AuditAction.CREATE,
            changes=data.model_dump(mode='json')
        )
        return NotificationRead.model_validate(notification)

    def broadcast(
        self,
        admin: User,
        data: NotificationBroadcast,
        background_tasks: BackgroundTasks
    ) -> int:
        """
        Sends the same message to an explicit list of users.
        All-or-nothing: one unknown id rejects the whole batch.
        """
        user_ids = list(dict.fromkeys(data.user_ids))
        found = self.session.exec(
            select(func.count(User.id)).where(col(User.id).in_(user_ids))
        ).one()
        if found != len(user_ids):
            raise NotFoundError("One or more users not found")

        content = data.model_dump(exclude={"user_ids"})
        self.session.add_all(
            [Notification(user_id=user_id, **content) for user_id in user_ids])
        self.session.commit()

        logger.info(
            f"Admin {admin.id} broadcast '{data.title}' to {len(user_ids)} users")

        background_tasks.add_task(
            _perform_audit_log,
            user_id=admin.id,
            entity_type="Notification",
            entity_id=None,
            action=AuditAction.BROADCAST,
            changes={"title": data.title, "recipients": len(user_ids)}
        )
        return len(user_ids)
