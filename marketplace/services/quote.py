import uuid
from typing import List, Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, update, func, col
from sqlalchemy.orm import selectinload
from fastapi import BackgroundTasks

from marketplace.core.errors import (
    NotFoundError, InvalidStateError, ExpiredError, DuplicateError, ForbiddenError
)
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, UserRole, RFQ, RFQStatus, Quote, NotificationType
)
from marketplace.models.common import Page
from marketplace.models.notification import NotificationCreate
from marketplace.models.rfq import (
    QuoteCreate,
    QuoteUpdate,
    QuoteRead,
    QuoteRFQSummary,
    SellerQuoteRead
)
from marketplace.services.notification import NotificationService
from marketplace.services.profile import ProfileService
from marketplace.services.rfq import RFQService, is_expired, effective_status, quote_to_read


class QuoteService:
    def __init__(self, session: Session):
        self.session = session

    def _to_seller_read(self, quote: Quote) -> SellerQuoteRead:
        rfq = quote.rfq
        return SellerQuoteRead(
            **quote_to_read(quote).model_dump(),
            rfq=QuoteRFQSummary(
                id=rfq.id,
                rfq_number=rfq.rfq_number,
                title=rfq.title,
                status=effective_status(rfq),
                expires_at=rfq.expires_at
            )
        )

    def _get_own_quote(self, user: User, quote_id: uuid.UUID) -> Quote:
        seller = ProfileService(self.session).get_seller_profile_for(user)
        quote = self.session.exec(
            select(Quote).where(Quote.id == quote_id,
                                Quote.seller_id == seller.id)
        ).first()
        if not quote:
            raise NotFoundError("Quote not found or access denied")
        return quote

    def create_quote(
        self,
        user: User,
        rfq_id: uuid.UUID,
        data: QuoteCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> QuoteRead:
        """
        Submits the seller's bid. The first bid moves the RFQ OPEN -> QUOTED
        in the same transaction as the insert.
        """
        seller = ProfileService(self.session).get_seller_profile_for(user)
        rfq = RFQService(self.session).get_rfq_row(rfq_id)

        if rfq.status != RFQStatus.OPEN:
            raise InvalidStateError("RFQ is no longer accepting quotes")
        if is_expired(rfq):
            raise ExpiredError("RFQ has expired")

        existing = self.session.exec(
            select(Quote).where(Quote.rfq_id == rfq.id,
                                Quote.seller_id == seller.id)
        ).first()
        if existing:
            raise DuplicateError(
                "You have already submitted a quote for this RFQ")

        quote = Quote(**data.model_dump(), rfq_id=rfq.id, seller_id=seller.id)
        try:
            self.session.add(quote)
            self.session.flush()
            self.session.exec(
                update(RFQ)
                .where(RFQ.id == rfq.id, RFQ.status == RFQStatus.OPEN)
                .values(status=RFQStatus.QUOTED)
            )
            self.session.commit()
        except IntegrityError:
            # Same seller raced a second submission in
            self.session.rollback()
            raise DuplicateError(
                "You have already submitted a quote for this RFQ")
        except Exception:
            self.session.rollback()
            raise

        self.session.refresh(quote)
        self.session.refresh(rfq)

        logger.info(
            f"Quote {quote.id} submitted on {rfq.rfq_number} by seller {seller.id}")

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=rfq.buyer_id,
                type=NotificationType.QUOTE_RECEIVED,
                title="New Quote Received",
                message=f'You have received a new quote for RFQ "{rfq.title}"',
                data={
                    "rfq_id": str(rfq.id),
                    "rfq_number": rfq.rfq_number,
                    "quote_id": str(quote.id),
                    "seller_company": seller.company_name,
                    "price": quote.price,
                }
            )
        ], background_tasks)

        return quote_to_read(quote)

    def list_rfq_quotes(self, user: User, rfq_id: uuid.UUID) -> List[QuoteRead]:
        """Every bid on the buyer's own RFQ, newest first."""
        rfq = RFQService(self.session).get_owned_rfq(user, rfq_id)
        quotes = self.session.exec(
            select(Quote)
            .where(Quote.rfq_id == rfq.id)
            .options(selectinload(Quote.seller))
            .order_by(col(Quote.created_at).desc())
        ).all()
        return [quote_to_read(q) for q in quotes]

    def list_seller_quotes(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[RFQStatus] = None
    ) -> Page[SellerQuoteRead]:
        seller = ProfileService(self.session).get_seller_profile_for(user)
        statement = select(Quote).where(Quote.seller_id == seller.id)
        if status:
            statement = statement.join(RFQ, Quote.rfq_id == RFQ.id).where(
                RFQ.status == status)
        statement = statement.order_by(col(Quote.created_at).desc())

        rows, pagination = paginate(
            self.session,
            statement.options(selectinload(Quote.rfq),
                              selectinload(Quote.seller)),
            page, limit)
        return Page[SellerQuoteRead](
            items=[self._to_seller_read(q) for q in rows],
            pagination=pagination
        )

    def get_quote(self, user: User, quote_id: uuid.UUID) -> SellerQuoteRead:
        quote = self.session.get(Quote, quote_id)
        if not quote:
            raise NotFoundError("Quote not found")

        is_rfq_owner = quote.rfq.buyer_id == user.id
        is_quote_owner = quote.seller.user_id == user.id
        if not (is_rfq_owner or is_quote_owner or user.role == UserRole.ADMIN):
            raise ForbiddenError("Access denied")

        return self._to_seller_read(quote)

    def update_quote(
        self,
        user: User,
        quote_id: uuid.UUID,
        data: QuoteUpdate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> QuoteRead:
        quote = self._get_own_quote(user, quote_id)
        rfq = quote.rfq

        if rfq.status == RFQStatus.CLOSED:
            raise InvalidStateError("Cannot update quote for closed RFQ")
        if is_expired(rfq):
            raise ExpiredError("Cannot update quote for expired RFQ")

        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(quote, key, value)

        self.session.add(quote)
        self.session.commit()
        self.session.refresh(quote)

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=rfq.buyer_id,
                type=NotificationType.QUOTE_RECEIVED,
                title="Quote Updated",
                message=f'A quote for RFQ "{rfq.title}" has been updated',
                data={
                    "rfq_id": str(rfq.id),
                    "rfq_number": rfq.rfq_number,
                    "quote_id": str(quote.id),
                }
            )
        ], background_tasks)

        return quote_to_read(quote)

    def delete_quote(self, user: User, quote_id: uuid.UUID):
        """
        Withdraws a bid. Removing the last bid moves the RFQ back
        QUOTED -> OPEN in the same transaction.
        """
        quote = self._get_own_quote(user, quote_id)
        rfq_id = quote.rfq_id

        if quote.is_selected:
            raise InvalidStateError("Cannot delete selected quote")
        if quote.rfq.status == RFQStatus.CLOSED:
            raise InvalidStateError("Cannot delete quote for closed RFQ")

        try:
            self.session.delete(quote)
            self.session.flush()

            remaining = self.session.exec(
                select(func.count(Quote.id)).where(Quote.rfq_id == rfq_id)
            ).one()
            if remaining == 0:
                self.session.exec(
                    update(RFQ)
                    .where(RFQ.id == rfq_id, RFQ.status == RFQStatus.QUOTED)
                    .values(status=RFQStatus.OPEN)
                )
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Quote {quote_id} withdrawn by {user.id}")
