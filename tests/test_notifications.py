"""
Notification inbox, inline delivery from the workflows and the admin
send/broadcast endpoints.
"""

import uuid
from datetime import date

import pytest
from sqlmodel import select

from marketplace.core.errors import NotFoundError
from marketplace.db.schema import Notification, NotificationType, RFQStatus
from marketplace.models.certification import CertificationCreate
from marketplace.models.notification import NotificationCreate
from marketplace.models.rfq import QuoteCreate, QuoteUpdate, RFQClose
from marketplace.services.certification import CertificationService
from marketplace.services.notification import NotificationService
from marketplace.services.quote import QuoteService
from marketplace.services.rfq import RFQService


def deliver(session, user, count, type=NotificationType.GENERAL):
    NotificationService(session).notify([
        NotificationCreate(user_id=user.id, type=type,
                           title=f"Hello {i}", message="Welcome to the market")
        for i in range(count)
    ])


class TestInbox:

    def test_unread_count_ignores_filters(self, session, buyer):
        deliver(session, buyer, 3)
        deliver(session, buyer, 1, type=NotificationType.ORDER_STATUS)

        page = NotificationService(session).list_notifications(
            buyer, type=NotificationType.ORDER_STATUS)

        assert page.pagination.total == 1
        assert page.unread_count == 4

    def test_mark_and_clear(self, session, buyer):
        deliver(session, buyer, 3)
        service = NotificationService(session)
        first = service.list_notifications(buyer).items[0]

        assert service.mark_as_read(buyer, first.id).is_read is True
        assert service.mark_all_as_read(buyer) == 2
        assert service.delete_all_read(buyer) == 3
        assert service.list_notifications(buyer).pagination.total == 0

    def test_stats(self, session, buyer):
        deliver(session, buyer, 2)
        deliver(session, buyer, 1, type=NotificationType.QUOTE_RECEIVED)
        service = NotificationService(session)
        service.mark_all_as_read(buyer)
        deliver(session, buyer, 1)

        stats = service.get_stats(buyer)

        assert (stats.total, stats.unread, stats.read) == (4, 1, 3)
        assert stats.by_type == {"GENERAL": 3, "QUOTE_RECEIVED": 1}

    def test_cannot_touch_someone_elses(self, session, make_buyer):
        owner = make_buyer()
        other = make_buyer(company="Other Co")
        deliver(session, owner, 1)
        notification = NotificationService(session).list_notifications(owner).items[0]

        with pytest.raises(NotFoundError):
            NotificationService(session).mark_as_read(other, notification.id)
        with pytest.raises(NotFoundError):
            NotificationService(session).delete_notification(other, notification.id)

    def test_empty_notify_is_a_no_op(self, session, buyer):
        NotificationService(session).notify([])
        assert NotificationService(session).get_stats(buyer).total == 0


class TestAdminSend:

    def test_send_to_unknown_user(self, client, admin, auth_headers):
        resp = client.post("/api/v1/notifications/", json={
            "user_id": str(uuid.uuid4()), "title": "Hi", "message": "There"
        }, headers=auth_headers(admin))

        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "User not found"

    def test_broadcast_is_all_or_nothing(
            self, client, session, buyer, seller, admin, auth_headers):
        payload = {"title": "Maintenance", "message": "Down at midnight"}

        resp = client.post("/api/v1/notifications/bulk", json={
            **payload, "user_ids": [str(buyer.id), str(uuid.uuid4())]
        }, headers=auth_headers(admin))
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "One or more users not found"
        assert session.exec(select(Notification)).all() == []

        resp = client.post("/api/v1/notifications/bulk", json={
            **payload, "user_ids": [str(buyer.id), str(seller.id), str(buyer.id)]
        }, headers=auth_headers(admin))
        assert resp.status_code == 201
        assert resp.json()["data"]["count"] == 2

    def test_inbox_over_http(self, client, session, buyer, auth_headers):
        deliver(session, buyer, 2)
        headers = auth_headers(buyer)

        resp = client.get("/api/v1/notifications/", headers=headers)
        assert resp.json()["data"]["unread_count"] == 2

        resp = client.put("/api/v1/notifications/mark-all-read", headers=headers)
        assert resp.json()["data"]["count"] == 2

        resp = client.delete("/api/v1/notifications/read", headers=headers)
        assert resp.json()["data"]["count"] == 2

    def test_buyer_cannot_broadcast(self, client, buyer, auth_headers):
        resp = client.post("/api/v1/notifications/bulk", json={
            "title": "Spam", "message": "Spam", "user_ids": [str(buyer.id)]
        }, headers=auth_headers(buyer))
        assert resp.status_code == 403


class TestInlineDelivery:
    """Services called without BackgroundTasks still return complete reads."""

    def test_quote_create_update_and_close(self, session, buyer, seller, make_rfq):
        rfq = make_rfq(buyer)

        quote = QuoteService(session).create_quote(
            seller, rfq.id, QuoteCreate(price=2.5, quantity=500, unit="kg"))
        assert quote.rfq_id == rfq.id
        assert quote.seller.company_name == "Green Fields Farm"

        updated = QuoteService(session).update_quote(
            seller, quote.id, QuoteUpdate(price=2.25))
        assert updated.price == 2.25

        closed = RFQService(session).close_rfq(
            buyer, rfq.id, RFQClose(selected_quote_id=quote.id))
        assert closed.id == rfq.id
        assert closed.status == RFQStatus.CLOSED
        assert closed.quotes[0].is_selected is True

        titles = session.exec(select(Notification.title)).all()
        assert sorted(titles) == ["New Quote Received", "Quote Updated", "RFQ Closed"]

    def test_certification_create_with_admins(self, session, seller, admin):
        cert = CertificationService(session).create_certification(
            seller,
            CertificationCreate(
                name="EU Organic",
                issuer="Ecocert",
                issue_date=date(2024, 1, 1),
                document_url="https://example.com/eu.pdf"
            )
        )

        assert cert.name == "EU Organic"
        assert cert.user_id == seller.id
        assert session.exec(
            select(Notification).where(Notification.user_id == admin.id)).one()
