import uuid
from datetime import datetime
from typing import Optional, Union
from loguru import logger
from sqlmodel import Session, select, or_, col, func
from sqlalchemy.orm import selectinload
from fastapi import BackgroundTasks

from marketplace.core.errors import NotFoundError, InvalidStateError
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, UserRole, RFQ, RFQStatus, Quote, SellerProfile,
    SellerCategoryLink, NotificationType
)
from marketplace.models.category import CategorySummaryRead
from marketplace.models.common import Page
from marketplace.models.notification import NotificationCreate
from marketplace.models.profile import SellerContactRead
from marketplace.models.rfq import (
    RFQCreate,
    RFQUpdate,
    RFQClose,
    RFQRead,
    RFQPublicRead,
    RFQDetailRead,
    RFQBuyerRead,
    RFQBuyerPublicRead,
    QuoteRead
)
from marketplace.services.category import CategoryService
from marketplace.services.notification import NotificationService
from marketplace.services.numbering import generate_rfq_number


SORT_COLUMNS = {
    "created_at": RFQ.created_at,
    "budget": RFQ.budget,
    "quantity": RFQ.quantity,
    "expires_at": RFQ.expires_at,
}


def is_expired(rfq: RFQ) -> bool:
    """The timestamp is the only expiry signal; nothing sweeps the status."""
    return datetime.utcnow() > rfq.expires_at


def effective_status(rfq: RFQ) -> RFQStatus:
    if rfq.status != RFQStatus.CLOSED and is_expired(rfq):
        return RFQStatus.EXPIRED
    return rfq.status


def quote_to_read(quote: Quote) -> QuoteRead:
    return QuoteRead(
        **quote.model_dump(),
        seller=SellerContactRead.model_validate(quote.seller)
    )


def rfq_fields(rfq: RFQ, quotes_count: int) -> dict:
    fields = rfq.model_dump()
    fields.update(
        status=effective_status(rfq),
        quotes_count=quotes_count,
        category=(CategorySummaryRead.model_validate(rfq.category)
                  if rfq.category else None)
    )
    return fields


class RFQService:
    """
    Buyer side of the negotiation:

        OPEN -> QUOTED (first quote arrives) -> CLOSED (buyer closes)

    QUOTED falls back to OPEN when the last quote is withdrawn. Any RFQ
    past 'expires_at' reads as EXPIRED unless it was already CLOSED.
    """

    def __init__(self, session: Session):
        self.session = session

    def _quotes_count(self, rfq_id: uuid.UUID) -> int:
        return self.session.exec(
            select(func.count(Quote.id)).where(Quote.rfq_id == rfq_id)
        ).one()

    def _to_read(self, rfq: RFQ) -> RFQRead:
        return RFQRead(**rfq_fields(rfq, self._quotes_count(rfq.id)))

    def _to_detail(self, rfq: RFQ) -> RFQDetailRead:
        profile = rfq.buyer.buyer_profile
        quotes = sorted(rfq.quotes, key=lambda q: q.created_at, reverse=True)
        return RFQDetailRead(
            **rfq_fields(rfq, len(quotes)),
            buyer=RFQBuyerRead(
                id=rfq.buyer.id,
                email=rfq.buyer.email,
                first_name=profile.first_name if profile else None,
                last_name=profile.last_name if profile else None,
                phone=profile.phone if profile else None,
                company=profile.company if profile else None,
                city=profile.city if profile else None,
                state=profile.state if profile else None,
                country=profile.country if profile else None
            ),
            quotes=[quote_to_read(q) for q in quotes]
        )

    def _to_public(self, rfq: RFQ) -> RFQPublicRead:
        profile = rfq.buyer.buyer_profile
        return RFQPublicRead(
            **rfq_fields(rfq, len(rfq.quotes)),
            buyer=RFQBuyerPublicRead(
                company=profile.company if profile else None,
                city=profile.city if profile else None,
                state=profile.state if profile else None,
                country=profile.country if profile else None
            )
        )

    def get_rfq_row(self, rfq_id: uuid.UUID) -> RFQ:
        rfq = self.session.get(RFQ, rfq_id)
        if not rfq:
            raise NotFoundError("RFQ not found")
        return rfq

    def get_owned_rfq(self, user: User, rfq_id: uuid.UUID) -> RFQ:
        rfq = self.session.exec(
            select(RFQ).where(RFQ.id == rfq_id, RFQ.buyer_id == user.id)
        ).first()
        if not rfq:
            raise NotFoundError("RFQ not found or access denied")
        return rfq

    # ==========================================================================
    # BUYER
    # ==========================================================================

    def create_rfq(
        self,
        user: User,
        data: RFQCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> RFQRead:
        if data.category_id:
            CategoryService(self.session).get_active_category(data.category_id)

        rfq = RFQ(
            **data.model_dump(),
            rfq_number=generate_rfq_number(),
            buyer_id=user.id,
            status=RFQStatus.OPEN
        )
        self.session.add(rfq)
        self.session.commit()
        self.session.refresh(rfq)

        # Verified sellers trading in the category, or all of them
        statement = select(SellerProfile.user_id).where(
            SellerProfile.is_verified == True)
        if rfq.category_id:
            statement = statement.join(
                SellerCategoryLink,
                SellerCategoryLink.seller_id == SellerProfile.id
            ).where(SellerCategoryLink.category_id == rfq.category_id)
        seller_user_ids = self.session.exec(statement).all()

        logger.info(
            f"RFQ posted: {rfq.rfq_number} by {user.id}, "
            f"notifying {len(seller_user_ids)} seller(s)")

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=seller_user_id,
                type=NotificationType.RFQ_RECEIVED,
                title="New RFQ Available",
                message=f'A new RFQ "{rfq.title}" has been posted that matches your business',
                data={
                    "rfq_id": str(rfq.id),
                    "rfq_number": rfq.rfq_number,
                    "title": rfq.title,
                    "quantity": rfq.quantity,
                    "unit": rfq.unit,
                    "budget": rfq.budget,
                }
            )
            for seller_user_id in seller_user_ids
        ], background_tasks)

        return self._to_read(rfq)

    def list_my_rfqs(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[RFQStatus] = None
    ) -> Page[RFQRead]:
        statement = select(RFQ).where(RFQ.buyer_id == user.id)

        now = datetime.utcnow()
        if status == RFQStatus.EXPIRED:
            statement = statement.where(
                RFQ.status != RFQStatus.CLOSED, RFQ.expires_at <= now)
        elif status == RFQStatus.CLOSED:
            statement = statement.where(RFQ.status == RFQStatus.CLOSED)
        elif status:
            statement = statement.where(
                RFQ.status == status, RFQ.expires_at > now)

        statement = statement.order_by(col(RFQ.created_at).desc())
        rows, pagination = paginate(
            self.session, statement.options(selectinload(RFQ.category)), page, limit)
        return Page[RFQRead](
            items=[self._to_read(r) for r in rows],
            pagination=pagination
        )

    def update_rfq(self, user: User, rfq_id: uuid.UUID, data: RFQUpdate) -> RFQRead:
        rfq = self.get_owned_rfq(user, rfq_id)

        if self._quotes_count(rfq.id) > 0:
            raise InvalidStateError("Cannot update RFQ that already has quotes")
        if rfq.status == RFQStatus.CLOSED:
            raise InvalidStateError("Cannot update a closed RFQ")

        update_data = data.model_dump(exclude_unset=True)
        if update_data.get("category_id"):
            CategoryService(self.session).get_active_category(
                update_data["category_id"])

        for key, value in update_data.items():
            setattr(rfq, key, value)

        self.session.add(rfq)
        self.session.commit()
        self.session.refresh(rfq)
        return self._to_read(rfq)

    def delete_rfq(self, user: User, rfq_id: uuid.UUID):
        rfq = self.get_owned_rfq(user, rfq_id)
        if self._quotes_count(rfq.id) > 0:
            raise InvalidStateError("Cannot delete RFQ that has received quotes")

        self.session.delete(rfq)
        self.session.commit()
        logger.info(f"RFQ deleted: {rfq_id} by {user.id}")

    def close_rfq(
        self,
        user: User,
        rfq_id: uuid.UUID,
        data: RFQClose,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> RFQDetailRead:
        """
        Closes the RFQ, optionally marking the winning quote.
        A quote id from another RFQ is refused before anything is written.
        """
        rfq = self.get_owned_rfq(user, rfq_id)
        if rfq.status == RFQStatus.CLOSED:
            raise InvalidStateError("RFQ is already closed")

        selected = None
        if data.selected_quote_id:
            selected = next(
                (q for q in rfq.quotes if q.id == data.selected_quote_id), None)
            if not selected:
                raise InvalidStateError("Selected quote not found")

        try:
            if selected:
                selected.is_selected = True
                self.session.add(selected)
            rfq.status = RFQStatus.CLOSED
            self.session.add(rfq)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(rfq)
        logger.info(
            f"RFQ closed: {rfq.rfq_number}"
            + (f", selected quote {selected.id}" if selected else ""))

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=quote.seller.user_id,
                type=NotificationType.RFQ_RECEIVED,
                title="RFQ Closed",
                message=f'RFQ "{rfq.title}" has been closed',
                data={
                    "rfq_id": str(rfq.id),
                    "rfq_number": rfq.rfq_number,
                    "is_selected": quote.id == data.selected_quote_id,
                }
            )
            for quote in rfq.quotes
        ], background_tasks)

        return self._to_detail(rfq)

    # ==========================================================================
    # SELLER / SHARED
    # ==========================================================================

    def list_open_rfqs(
        self,
        page: int = 1,
        limit: int = 10,
        category_id: Optional[uuid.UUID] = None,
        search: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Page[RFQPublicRead]:
        """RFQs still taking quotes: OPEN and not past their expiry."""
        statement = select(RFQ).where(
            RFQ.status == RFQStatus.OPEN,
            RFQ.expires_at > datetime.utcnow()
        )
        if category_id:
            statement = statement.where(RFQ.category_id == category_id)
        if search:
            search_fmt = f"%{search}%"
            statement = statement.where(
                or_(
                    col(RFQ.title).ilike(search_fmt),
                    col(RFQ.description).ilike(search_fmt)
                )
            )

        sort_column = col(SORT_COLUMNS.get(sort_by, RFQ.created_at))
        statement = statement.order_by(
            sort_column.asc() if sort_order == "asc" else sort_column.desc())

        rows, pagination = paginate(
            self.session,
            statement.options(selectinload(RFQ.category),
                              selectinload(RFQ.quotes)),
            page, limit)
        return Page[RFQPublicRead](
            items=[self._to_public(r) for r in rows],
            pagination=pagination
        )

    def get_rfq(self, user: User, rfq_id: uuid.UUID) -> Union[RFQDetailRead, RFQPublicRead]:
        """
        Full view for the owner, admins and sellers who already quoted.
        Everyone else gets the buyer's company/location and a quote count.
        """
        rfq = self.session.exec(
            select(RFQ).where(RFQ.id == rfq_id).options(
                selectinload(RFQ.quotes).selectinload(Quote.seller),
                selectinload(RFQ.category)
            )
        ).first()
        if not rfq:
            raise NotFoundError("RFQ not found")

        is_owner = rfq.buyer_id == user.id
        has_quoted = any(q.seller.user_id == user.id for q in rfq.quotes)

        if is_owner or has_quoted or user.role == UserRole.ADMIN:
            return self._to_detail(rfq)
        return self._to_public(rfq)
