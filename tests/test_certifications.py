"""
Certification review workflow and product linking.
"""

from datetime import date

import pytest
from sqlmodel import select

from marketplace.core.errors import (
    NotFoundError, InvalidStateError, DuplicateError, ForbiddenError
)
from marketplace.db.schema import (
    Certification, CertificationStatus, Notification, ProductCertificationLink
)
from marketplace.models.certification import (
    CertificationCreate,
    CertificationUpdate,
    CertificationVerify,
    CertificationBulkVerify
)
from marketplace.services.certification import CertificationService


VERIFIED = CertificationStatus.VERIFIED
REJECTED = CertificationStatus.REJECTED


class TestSubmission:

    def test_create_is_pending_and_alerts_admins(self, session, seller, admin):
        cert = CertificationService(session).create_certification(
            seller,
            CertificationCreate(
                name="EU Organic",
                issuer="Ecocert",
                issue_date=date(2024, 1, 1),
                expiry_date=date(2026, 1, 1),
                document_url="https://example.com/eu.pdf"
            )
        )

        assert cert.status == CertificationStatus.PENDING
        alert = session.exec(
            select(Notification).where(Notification.user_id == admin.id)).one()
        assert alert.title == "New Certification Pending Review"

    def test_expiry_before_issue_is_rejected(self):
        with pytest.raises(ValueError):
            CertificationCreate(
                name="EU Organic",
                issuer="Ecocert",
                issue_date=date(2024, 1, 1),
                expiry_date=date(2023, 1, 1),
                document_url="https://example.com/eu.pdf"
            )

    def test_pending_is_not_a_verdict(self):
        with pytest.raises(ValueError):
            CertificationVerify(status=CertificationStatus.PENDING)

    def test_only_owner_or_admin_can_read(
            self, session, make_seller, admin, make_certification):
        owner = make_seller("Owner Farm")
        other = make_seller("Other Farm")
        cert = make_certification(owner)
        service = CertificationService(session)

        assert service.get_certification(owner, cert.id).id == cert.id
        assert service.get_certification(admin, cert.id).id == cert.id
        with pytest.raises(ForbiddenError):
            service.get_certification(other, cert.id)


class TestEditing:

    def test_verified_is_frozen(self, session, seller, make_certification):
        cert = make_certification(seller, status=VERIFIED)

        with pytest.raises(InvalidStateError) as exc:
            CertificationService(session).update_certification(
                seller, cert.id, CertificationUpdate(name="Renamed"))
        assert exc.value.detail == "Cannot update verified certification"

    def test_pending_edit_stays_pending(self, session, seller, make_certification):
        cert = make_certification(seller)

        updated = CertificationService(session).update_certification(
            seller, cert.id, CertificationUpdate(issuer="CCOF"))

        assert updated.status == CertificationStatus.PENDING
        assert updated.issuer == "CCOF"

    def test_rejected_edit_goes_back_to_review(
            self, session, seller, admin, make_certification):
        cert = make_certification(seller)
        service = CertificationService(session)
        service.verify_certification(
            admin, cert.id, CertificationVerify(status=REJECTED, notes="Blurry scan"))

        updated = service.update_certification(
            seller, cert.id,
            CertificationUpdate(document_url="https://example.com/clear.pdf"))

        assert updated.status == CertificationStatus.PENDING
        assert updated.verified_by is None
        assert updated.verified_at is None
        assert updated.notes is None

    def test_date_order_checked_against_stored_values(
            self, session, seller, make_certification):
        cert = make_certification(seller)

        with pytest.raises(InvalidStateError):
            CertificationService(session).update_certification(
                seller, cert.id,
                CertificationUpdate(expiry_date=cert.issue_date))

    def test_linked_certification_cannot_be_deleted(
            self, session, seller, make_product, make_certification):
        cert = make_certification(seller, status=VERIFIED)
        product = make_product(seller)
        service = CertificationService(session)
        service.link_to_product(seller, cert.id, product.id)

        with pytest.raises(InvalidStateError):
            service.delete_certification(seller, cert.id)

        service.unlink_from_product(seller, cert.id, product.id)
        service.delete_certification(seller, cert.id)
        assert session.get(Certification, cert.id) is None


class TestProductLinks:

    def test_unverified_cannot_be_linked(
            self, session, seller, make_product, make_certification):
        cert = make_certification(seller)

        with pytest.raises(InvalidStateError):
            CertificationService(session).link_to_product(
                seller, cert.id, make_product(seller).id)

    def test_foreign_product(self, session, make_seller, make_product, make_certification):
        owner = make_seller("Owner Farm")
        other = make_seller("Other Farm")
        cert = make_certification(owner, status=VERIFIED)

        with pytest.raises(NotFoundError) as exc:
            CertificationService(session).link_to_product(
                owner, cert.id, make_product(other).id)
        assert exc.value.detail == "Product not found or access denied"

    def test_duplicate_link(self, session, seller, make_product, make_certification):
        cert = make_certification(seller, status=VERIFIED)
        product = make_product(seller)
        service = CertificationService(session)

        linked = service.link_to_product(seller, cert.id, product.id)
        assert [p.id for p in linked.products] == [product.id]

        with pytest.raises(DuplicateError):
            service.link_to_product(seller, cert.id, product.id)
        assert len(session.exec(select(ProductCertificationLink)).all()) == 1

    def test_public_listing_shows_only_verified(
            self, session, seller, admin, make_product, make_certification):
        product = make_product(seller)
        usda = make_certification(seller, status=VERIFIED, name="USDA Organic")
        fair = make_certification(seller, status=VERIFIED, name="Fair Trade")
        service = CertificationService(session)
        service.link_to_product(seller, usda.id, product.id)
        service.link_to_product(seller, fair.id, product.id)

        # A linked certification that later fails review disappears publicly
        fair.status = REJECTED
        session.add(fair)
        session.commit()

        listed = service.get_product_certifications(product.id)
        assert [c.name for c in listed] == ["USDA Organic"]


class TestAdminReview:

    def test_verify_notifies_owner(self, session, seller, admin, make_certification):
        cert = make_certification(seller)

        reviewed = CertificationService(session).verify_certification(
            admin, cert.id, CertificationVerify(status=VERIFIED))

        assert reviewed.status == VERIFIED
        assert reviewed.verified_by == admin.id
        assert reviewed.owner.company_name == "Green Fields Farm"
        message = session.exec(
            select(Notification).where(Notification.user_id == seller.id)).one()
        assert message.title == "Certification Verified"

    def test_verified_can_be_revoked(
            self, session, seller, admin, make_product, make_certification):
        cert = make_certification(seller, status=VERIFIED)
        product = make_product(seller)
        service = CertificationService(session)
        service.link_to_product(seller, cert.id, product.id)

        revoked = service.verify_certification(
            admin, cert.id, CertificationVerify(status=REJECTED, notes="Forged document"))

        assert revoked.status == REJECTED
        assert revoked.notes == "Forged document"
        assert revoked.verified_by == admin.id
        assert service.get_product_certifications(product.id) == []
        message = session.exec(
            select(Notification).where(Notification.user_id == seller.id)).one()
        assert message.title == "Certification Rejected"

    def test_bulk_only_touches_pending(self, session, seller, admin, make_certification):
        pending = [make_certification(seller, name=f"Cert {i}") for i in range(2)]
        rejected = make_certification(seller, status=REJECTED, name="Old")

        count = CertificationService(session).bulk_verify(admin, CertificationBulkVerify(
            status=VERIFIED,
            certification_ids=[c.id for c in pending] + [rejected.id]
        ))

        assert count == 2
        session.expire_all()
        assert session.get(Certification, rejected.id).status == REJECTED
        assert all(session.get(Certification, c.id).status == VERIFIED for c in pending)

    def test_bulk_with_nothing_pending(self, session, seller, admin, make_certification):
        cert = make_certification(seller, status=VERIFIED)

        with pytest.raises(NotFoundError):
            CertificationService(session).bulk_verify(admin, CertificationBulkVerify(
                status=REJECTED, certification_ids=[cert.id]))

    def test_stats_and_queue(self, session, seller, make_certification):
        first = make_certification(seller, name="First")
        make_certification(seller, name="Second")
        make_certification(seller, status=VERIFIED, name="Third")
        service = CertificationService(session)

        stats = service.get_stats()
        assert (stats.total, stats.pending, stats.verified, stats.rejected) == (3, 2, 1, 0)
        assert stats.top_issuers[0].issuer == "Oregon Tilth"
        assert stats.top_issuers[0].count == 3

        queue = service.list_pending()
        assert queue.pagination.total == 2
        assert queue.items[0].id == first.id


class TestCertificationRoutes:

    def test_buyer_cannot_submit(self, client, buyer, auth_headers):
        resp = client.post("/api/v1/certifications/", json={
            "name": "USDA Organic",
            "issuer": "Oregon Tilth",
            "issue_date": "2024-01-01",
            "document_url": "https://example.com/usda.pdf"
        }, headers=auth_headers(buyer))
        assert resp.status_code == 403

    def test_admin_verifies_over_http(
            self, client, seller, admin, make_certification, auth_headers):
        cert = make_certification(seller)

        resp = client.put(f"/api/v1/certifications/admin/{cert.id}/verify",
                          json={"status": "VERIFIED"}, headers=auth_headers(admin))

        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "VERIFIED"

        resp = client.put(f"/api/v1/certifications/admin/{cert.id}/verify",
                          json={"status": "VERIFIED"}, headers=auth_headers(seller))
        assert resp.status_code == 403
