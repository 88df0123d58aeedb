import uuid
from typing import Optional
from loguru import logger
from sqlmodel import Session, select, func, col
from fastapi import BackgroundTasks

from marketplace.core.audit import _perform_audit_log
from marketplace.core.errors import NotFoundError
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, UserRole, UserStatus, Product, Order, RFQ,
    NotificationType, AuditAction
)
from marketplace.models.common import Page
from marketplace.models.notification import NotificationCreate
from marketplace.models.user import (
    UserRead,
    UserStatusUpdate,
    UserDetailRead,
    UserOrderSummary,
    UserRFQSummary,
    DashboardOverview,
    DashboardStatsRead
)
from marketplace.services.notification import NotificationService


class AdminService:
    def __init__(self, session: Session):
        self.session = session

    def _get_user(self, user_id: uuid.UUID) -> User:
        user = self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def _count(self, statement) -> int:
        return self.session.exec(statement).one()

    # ==========================================================================
    # USERS
    # ==========================================================================

    def list_users(
        self,
        page: int = 1,
        limit: int = 10,
        role: Optional[UserRole] = None,
        status: Optional[UserStatus] = None,
        search: Optional[str] = None
    ) -> Page[UserRead]:
        statement = select(User)
        if role:
            statement = statement.where(User.role == role)
        if status:
            statement = statement.where(User.status == status)
        if search:
            statement = statement.where(col(User.email).ilike(f"%{search}%"))

        statement = statement.order_by(col(User.created_at).desc())
        rows, pagination = paginate(self.session, statement, page, limit)

        return Page[UserRead](
            items=[UserRead.model_validate(u) for u in rows],
            pagination=pagination
        )

    def get_user_details(self, user_id: uuid.UUID) -> UserDetailRead:
        user = self._get_user(user_id)

        recent_orders = self.session.exec(
            select(Order).where(Order.buyer_id == user.id)
            .order_by(col(Order.created_at).desc()).limit(5)
        ).all()
        recent_rfqs = self.session.exec(
            select(RFQ).where(RFQ.buyer_id == user.id)
            .order_by(col(RFQ.created_at).desc()).limit(5)
        ).all()

        return UserDetailRead(
            **UserRead.model_validate(user).model_dump(),
            updated_at=user.updated_at,
            recent_orders=[UserOrderSummary.model_validate(o)
                           for o in recent_orders],
            recent_rfqs=[UserRFQSummary.model_validate(r)
                         for r in recent_rfqs]
        )

    def update_user_status(
        self,
        admin: User,
        user_id: uuid.UUID,
        data: UserStatusUpdate,
        background_tasks: BackgroundTasks
    ) -> UserRead:
        """
        Moves an account between lifecycle states.
        Activating a Seller also marks their profile as verified, which is
        what unlocks product creation and the public storefront page.
        """
        user = self._get_user(user_id)
        old_status = user.status

        user.status = data.status
        self.session.add(user)

        if (user.role == UserRole.SELLER and data.status == UserStatus.ACTIVE
                and user.seller_profile):
            user.seller_profile.is_verified = True
            user.seller_profile.verification_notes = data.notes or "Approved by admin"
            self.session.add(user.seller_profile)

        self.session.commit()
        self.session.refresh(user)

        logger.info(
            f"Admin {admin.id} changed status of {user.id}: "
            f"{old_status.value} -> {data.status.value}")

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=user.id,
                type=NotificationType.GENERAL,
                title="Account Status Update",
                message=f"Your account status has been updated to {data.status.value.lower()}",
                data={"status": data.status.value, "notes": data.notes}
            )
        ], background_tasks)

        background_tasks.add_task(
            _perform_audit_log,
            user_id=admin.id,
            entity_type="User",
            entity_id=user.id,
            action=AuditAction.STATUS_CHANGE,
            changes={"status": {"old": old_status.value, "new": data.status.value},
                     "notes": data.notes}
        )
        return UserRead.model_validate(user)

    def list_pending_sellers(self, page: int = 1, limit: int = 10) -> Page[UserRead]:
        """Approval queue, oldest application first."""
        statement = (
            select(User)
            .where(User.role == UserRole.SELLER, User.status == UserStatus.PENDING)
            .order_by(col(User.created_at).asc())
        )
        rows, pagination = paginate(self.session, statement, page, limit)
        return Page[UserRead](
            items=[UserRead.model_validate(u) for u in rows],
            pagination=pagination
        )

    def get_dashboard_stats(self) -> DashboardStatsRead:
        overview = DashboardOverview(
            total_users=self._count(select(func.count(User.id))),
            total_buyers=self._count(
                select(func.count(User.id)).where(User.role == UserRole.BUYER)),
            total_sellers=self._count(
                select(func.count(User.id)).where(
                    User.role == UserRole.SELLER, User.status == UserStatus.ACTIVE)),
            pending_sellers=self._count(
                select(func.count(User.id)).where(
                    User.role == UserRole.SELLER, User.status == UserStatus.PENDING)),
            total_products=self._count(
                select(func.count(Product.id)).where(Product.is_active == True)),
            total_orders=self._count(select(func.count(Order.id))),
            total_rfqs=self._count(select(func.count(RFQ.id))),
        )

        recent_orders = self.session.exec(
            select(Order).order_by(col(Order.created_at).desc()).limit(5)
        ).all()

        return DashboardStatsRead(
            overview=overview,
            recent_orders=[UserOrderSummary.model_validate(o)
                           for o in recent_orders]
        )
