"""
RFQ / quote negotiation: status transitions, read-time expiry,
closing and the redacted buyer view.
"""

from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from marketplace.core.errors import (
    NotFoundError, InvalidStateError, ExpiredError, DuplicateError, ForbiddenError
)
from marketplace.db.schema import Notification, Quote, RFQStatus, NotificationType
from marketplace.models.rfq import RFQClose, RFQCreate, RFQUpdate, QuoteCreate, QuoteUpdate
from marketplace.models.rfq import RFQDetailRead, RFQPublicRead
from marketplace.services.quote import QuoteService
from marketplace.services.rfq import RFQService


BID = QuoteCreate(price=1200.0, quantity=500, unit="kg", delivery_time="2 weeks")


def add_quote(session, rfq, seller_user, status=RFQStatus.QUOTED):
    """Stores a quote directly, leaving the RFQ in the given status."""
    quote = Quote(**BID.model_dump(), rfq_id=rfq.id,
                  seller_id=seller_user.seller_profile.id)
    rfq.status = status
    session.add_all([quote, rfq])
    session.commit()
    session.refresh(quote)
    return quote


# =============================================================================
# CREATION & FAN-OUT
# =============================================================================


class TestCreateRFQ:

    def test_notifies_verified_sellers_in_category(
            self, session, buyer, make_seller, category):
        verified = make_seller("Verified Farm")
        make_seller("Unverified Farm", verified=False)

        rfq = RFQService(session).create_rfq(buyer, RFQCreate(
            title="Weekly carrot supply",
            description="Need 500kg of organic carrots every week.",
            category_id=category.id,
            quantity=500,
            unit="kg",
            expires_at=datetime.utcnow() + timedelta(days=10)
        ))

        assert rfq.status == RFQStatus.OPEN
        assert rfq.rfq_number.startswith("RFQ-")
        recipients = session.exec(
            select(Notification.user_id).where(
                Notification.type == NotificationType.RFQ_RECEIVED)
        ).all()
        assert recipients == [verified.id]

    def test_past_expiry_is_rejected(self):
        with pytest.raises(ValueError):
            RFQCreate(
                title="Weekly carrot supply",
                description="Need 500kg of organic carrots every week.",
                quantity=500,
                unit="kg",
                expires_at=datetime.utcnow() - timedelta(hours=1)
            )


# =============================================================================
# QUOTES
# =============================================================================


class TestQuoteLifecycle:

    def test_first_quote_flips_to_quoted_and_deleting_it_reopens(
            self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        quote = QuoteService(session).create_quote(seller, rfq.id, BID)

        session.refresh(rfq)
        assert rfq.status == RFQStatus.QUOTED

        QuoteService(session).delete_quote(seller, quote.id)

        session.refresh(rfq)
        assert rfq.status == RFQStatus.OPEN

    def test_quoted_rfq_refuses_further_quotes(
            self, session, buyer, make_seller, make_rfq):
        first = make_seller("First Farm")
        second = make_seller("Second Farm")
        rfq = make_rfq(buyer)
        QuoteService(session).create_quote(first, rfq.id, BID)

        with pytest.raises(InvalidStateError) as exc:
            QuoteService(session).create_quote(second, rfq.id, BID)
        assert exc.value.detail == "RFQ is no longer accepting quotes"
        assert len(QuoteService(session).list_rfq_quotes(buyer, rfq.id)) == 1

    def test_deleting_one_of_two_quotes_keeps_quoted(
            self, session, buyer, make_seller, make_rfq):
        first = make_seller("First Farm")
        rfq = make_rfq(buyer)
        quote = QuoteService(session).create_quote(first, rfq.id, BID)
        add_quote(session, rfq, make_seller("Second Farm"))

        QuoteService(session).delete_quote(first, quote.id)

        session.refresh(rfq)
        assert rfq.status == RFQStatus.QUOTED

    def test_duplicate_quote(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        add_quote(session, rfq, seller, status=RFQStatus.OPEN)

        with pytest.raises(DuplicateError):
            QuoteService(session).create_quote(seller, rfq.id, BID)

    def test_closed_rfq_refuses_quotes(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer, status=RFQStatus.CLOSED)

        with pytest.raises(InvalidStateError) as exc:
            QuoteService(session).create_quote(seller, rfq.id, BID)
        assert exc.value.detail == "RFQ is no longer accepting quotes"

    def test_expired_rfq_refuses_quotes(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer, expires_in=timedelta(hours=-1))

        with pytest.raises(ExpiredError):
            QuoteService(session).create_quote(seller, rfq.id, BID)

    def test_quote_notifies_buyer(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        QuoteService(session).create_quote(seller, rfq.id, BID)

        message = session.exec(
            select(Notification).where(Notification.user_id == buyer.id)).one()
        assert message.type == NotificationType.QUOTE_RECEIVED
        assert message.message == f'You have received a new quote for RFQ "{rfq.title}"'

    def test_update_after_expiry_fails(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        quote = QuoteService(session).create_quote(seller, rfq.id, BID)
        rfq.expires_at = datetime.utcnow() - timedelta(minutes=1)
        session.add(rfq)
        session.commit()

        with pytest.raises(ExpiredError):
            QuoteService(session).update_quote(seller, quote.id, QuoteUpdate(price=999.0))

    def test_update_changes_price(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        quote = QuoteService(session).create_quote(seller, rfq.id, BID)

        updated = QuoteService(session).update_quote(
            seller, quote.id, QuoteUpdate(price=999.0))

        assert updated.price == 999.0
        assert updated.quantity == 500

    def test_selected_quote_cannot_be_deleted(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        quote = QuoteService(session).create_quote(seller, rfq.id, BID)
        RFQService(session).close_rfq(buyer, rfq.id, RFQClose(selected_quote_id=quote.id))

        with pytest.raises(InvalidStateError) as exc:
            QuoteService(session).delete_quote(seller, quote.id)
        assert exc.value.detail == "Cannot delete selected quote"

    def test_get_quote_is_private(self, session, make_buyer, seller, make_rfq):
        owner = make_buyer()
        outsider = make_buyer(company="Curious Co")
        rfq = make_rfq(owner)
        quote = QuoteService(session).create_quote(seller, rfq.id, BID)

        assert QuoteService(session).get_quote(owner, quote.id).rfq.id == rfq.id
        with pytest.raises(ForbiddenError):
            QuoteService(session).get_quote(outsider, quote.id)


# =============================================================================
# CLOSING
# =============================================================================


class TestCloseRFQ:

    def test_foreign_quote_id_changes_nothing(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        other_rfq = make_rfq(buyer)
        QuoteService(session).create_quote(seller, rfq.id, BID)
        foreign = QuoteService(session).create_quote(seller, other_rfq.id, BID)

        with pytest.raises(InvalidStateError) as exc:
            RFQService(session).close_rfq(
                buyer, rfq.id, RFQClose(selected_quote_id=foreign.id))
        assert exc.value.detail == "Selected quote not found"

        session.refresh(rfq)
        assert rfq.status == RFQStatus.QUOTED
        assert session.get(Quote, foreign.id).is_selected is False

    def test_close_marks_winner_and_notifies_every_bidder(
            self, session, buyer, make_seller, make_rfq):
        winner = make_seller("Winner Farm")
        loser = make_seller("Loser Farm")
        rfq = make_rfq(buyer)
        winning = QuoteService(session).create_quote(winner, rfq.id, BID)
        add_quote(session, rfq, loser)

        detail = RFQService(session).close_rfq(
            buyer, rfq.id, RFQClose(selected_quote_id=winning.id))

        assert detail.status == RFQStatus.CLOSED
        assert [q.is_selected for q in detail.quotes if q.id == winning.id] == [True]

        closed = session.exec(
            select(Notification).where(Notification.title == "RFQ Closed")).all()
        flags = {n.user_id: n.data["is_selected"] for n in closed}
        assert flags == {winner.id: True, loser.id: False}

    def test_cannot_close_twice(self, session, buyer, make_rfq):
        rfq = make_rfq(buyer)
        RFQService(session).close_rfq(buyer, rfq.id, RFQClose())

        with pytest.raises(InvalidStateError):
            RFQService(session).close_rfq(buyer, rfq.id, RFQClose())

    def test_only_owner_can_close(self, session, make_buyer, make_rfq):
        owner = make_buyer()
        other = make_buyer(company="Other Co")
        rfq = make_rfq(owner)

        with pytest.raises(NotFoundError):
            RFQService(session).close_rfq(other, rfq.id, RFQClose())


# =============================================================================
# READS
# =============================================================================


class TestRFQViews:

    def test_expired_rfq_reads_as_expired(self, session, buyer, make_rfq):
        make_rfq(buyer, expires_in=timedelta(hours=-2))

        page = RFQService(session).list_my_rfqs(buyer, status=RFQStatus.EXPIRED)

        assert page.pagination.total == 1
        assert page.items[0].status == RFQStatus.EXPIRED

    def test_open_listing_skips_closed_and_expired(self, session, buyer, make_rfq):
        live = make_rfq(buyer)
        make_rfq(buyer, status=RFQStatus.CLOSED)
        make_rfq(buyer, expires_in=timedelta(hours=-1))

        page = RFQService(session).list_open_rfqs()

        assert [item.id for item in page.items] == [live.id]
        assert page.items[0].buyer.company == "Fresh Foods Ltd"

    def test_non_bidder_gets_redacted_view(self, session, buyer, make_seller, make_rfq):
        bidder = make_seller("Bidder Farm")
        onlooker = make_seller("Onlooker Farm")
        rfq = make_rfq(buyer)
        QuoteService(session).create_quote(bidder, rfq.id, BID)

        bidder_view = RFQService(session).get_rfq(bidder, rfq.id)
        onlooker_view = RFQService(session).get_rfq(onlooker, rfq.id)

        assert isinstance(bidder_view, RFQDetailRead)
        assert bidder_view.buyer.email == buyer.email
        assert isinstance(onlooker_view, RFQPublicRead)
        assert onlooker_view.quotes_count == 1
        assert not hasattr(onlooker_view.buyer, "email")

    def test_update_locked_once_quoted(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)
        QuoteService(session).create_quote(seller, rfq.id, BID)

        with pytest.raises(InvalidStateError):
            RFQService(session).update_rfq(buyer, rfq.id, RFQUpdate(quantity=10))
        with pytest.raises(InvalidStateError):
            RFQService(session).delete_rfq(buyer, rfq.id)


class TestRFQRoutes:

    def test_buyer_cannot_browse_open_rfqs(self, client, buyer, auth_headers):
        resp = client.get("/api/v1/rfq/", headers=auth_headers(buyer))
        assert resp.status_code == 403
        assert resp.json()["error"]["message"] == "Access denied. Insufficient permissions"

    def test_seller_quotes_through_api(
            self, client, buyer, seller, make_rfq, auth_headers):
        rfq = make_rfq(buyer)

        resp = client.post(f"/api/v1/rfq/{rfq.id}/quotes",
                           json=BID.model_dump(), headers=auth_headers(seller))
        assert resp.status_code == 201

        resp = client.post(f"/api/v1/rfq/{rfq.id}/quotes",
                           json=BID.model_dump(), headers=auth_headers(seller))
        assert resp.status_code == 400

        resp = client.get("/api/v1/rfq/seller/quotes", headers=auth_headers(seller))
        assert resp.json()["data"]["items"][0]["rfq"]["status"] == "QUOTED"
