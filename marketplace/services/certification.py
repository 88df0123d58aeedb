import uuid
from datetime import datetime
from typing import List, Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, func, col
from sqlalchemy.orm import selectinload
from fastapi import BackgroundTasks

from marketplace.core.audit import _perform_audit_log
from marketplace.core.errors import (
    NotFoundError, InvalidStateError, DuplicateError, ForbiddenError
)
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, UserRole, Product, Certification, CertificationStatus,
    ProductCertificationLink, NotificationType, AuditAction
)
from marketplace.models.common import Page
from marketplace.models.certification import (
    CertificationCreate,
    CertificationUpdate,
    CertificationVerify,
    CertificationBulkVerify,
    CertificationRead,
    AdminCertificationRead,
    CertificationOwnerRead,
    CertificationStatsRead,
    IssuerCount,
    LinkedProductRead
)
from marketplace.models.notification import NotificationCreate
from marketplace.models.product import ProductCertificationRead
from marketplace.services.notification import NotificationService
from marketplace.services.profile import ProfileService


class CertificationService:
    """
    Seller-uploaded compliance documents and their admin review.

        PENDING -> VERIFIED | REJECTED   (admin review)
        VERIFIED -> REJECTED             (admin revokes)
        REJECTED -> PENDING              (seller edits and resubmits)

    Only VERIFIED certifications can be attached to products or shown
    on a public listing.
    """

    def __init__(self, session: Session):
        self.session = session

    def _to_read(self, cert: Certification) -> CertificationRead:
        return CertificationRead(
            **cert.model_dump(),
            products=[LinkedProductRead.model_validate(link.product)
                      for link in cert.products]
        )

    def _to_admin_read(self, cert: Certification) -> AdminCertificationRead:
        owner = cert.user
        return AdminCertificationRead(
            **self._to_read(cert).model_dump(),
            owner=CertificationOwnerRead(
                id=owner.id,
                email=owner.email,
                company_name=(owner.seller_profile.company_name
                              if owner.seller_profile else None)
            )
        )

    def _get_own(self, user: User, cert_id: uuid.UUID) -> Certification:
        cert = self.session.exec(
            select(Certification).where(
                Certification.id == cert_id,
                Certification.user_id == user.id
            )
        ).first()
        if not cert:
            raise NotFoundError("Certification not found")
        return cert

    # ==========================================================================
    # SELLER
    # ==========================================================================

    def create_certification(
        self,
        user: User,
        data: CertificationCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> CertificationRead:
        cert = Certification(
            **data.model_dump(),
            user_id=user.id,
            status=CertificationStatus.PENDING
        )
        self.session.add(cert)
        self.session.commit()
        self.session.refresh(cert)

        logger.info(f"Certification submitted: {cert.id} by {user.id}")

        admin_ids = self.session.exec(
            select(User.id).where(User.role == UserRole.ADMIN)
        ).all()
        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=admin_id,
                type=NotificationType.CERTIFICATION_UPDATE,
                title="New Certification Pending Review",
                message=f'A new certification "{cert.name}" has been submitted for review',
                data={"certification_id": str(cert.id),
                      "user_id": str(user.id)}
            )
            for admin_id in admin_ids
        ], background_tasks)

        return self._to_read(cert)

    def list_my_certifications(
        self,
        user: User,
        status: Optional[CertificationStatus] = None
    ) -> List[CertificationRead]:
        statement = select(Certification).where(
            Certification.user_id == user.id)
        if status:
            statement = statement.where(Certification.status == status)
        statement = statement.options(
            selectinload(Certification.products).selectinload(
                ProductCertificationLink.product)
        ).order_by(col(Certification.created_at).desc())

        return [self._to_read(c) for c in self.session.exec(statement).all()]

    def get_certification(self, user: User, cert_id: uuid.UUID) -> CertificationRead:
        cert = self.session.get(Certification, cert_id)
        if not cert:
            raise NotFoundError("Certification not found")
        if cert.user_id != user.id and user.role != UserRole.ADMIN:
            raise ForbiddenError("Access denied")
        return self._to_read(cert)

    def update_certification(
        self,
        user: User,
        cert_id: uuid.UUID,
        data: CertificationUpdate
    ) -> CertificationRead:
        """Edits go back to the review queue with the previous verdict cleared."""
        cert = self._get_own(user, cert_id)
        if cert.status == CertificationStatus.VERIFIED:
            raise InvalidStateError("Cannot update verified certification")

        update_data = data.model_dump(exclude_unset=True)
        issue_date = update_data.get("issue_date", cert.issue_date)
        expiry_date = update_data.get("expiry_date", cert.expiry_date)
        if expiry_date and expiry_date <= issue_date:
            raise InvalidStateError("Expiry date must be after issue date")

        for key, value in update_data.items():
            setattr(cert, key, value)

        cert.status = CertificationStatus.PENDING
        cert.verified_by = None
        cert.verified_at = None
        cert.notes = None

        self.session.add(cert)
        self.session.commit()
        self.session.refresh(cert)
        return self._to_read(cert)

    def delete_certification(self, user: User, cert_id: uuid.UUID):
        cert = self._get_own(user, cert_id)
        if cert.products:
            raise InvalidStateError(
                "Cannot delete certification that is linked to products")

        self.session.delete(cert)
        self.session.commit()
        logger.info(f"Certification deleted: {cert_id} by {user.id}")

    def link_to_product(
        self,
        user: User,
        cert_id: uuid.UUID,
        product_id: uuid.UUID
    ) -> CertificationRead:
        cert = self._get_own(user, cert_id)
        if cert.status != CertificationStatus.VERIFIED:
            raise InvalidStateError(
                "Only verified certifications can be linked to products")

        seller = ProfileService(self.session).get_seller_profile_for(user)
        product = self.session.exec(
            select(Product).where(Product.id == product_id,
                                  Product.seller_id == seller.id)
        ).first()
        if not product:
            raise NotFoundError("Product not found or access denied")

        if self.session.get(ProductCertificationLink, (product.id, cert.id)):
            raise DuplicateError(
                "Certification is already linked to this product")

        try:
            self.session.add(ProductCertificationLink(
                product_id=product.id, certification_id=cert.id))
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise DuplicateError(
                "Certification is already linked to this product")

        self.session.refresh(cert)
        return self._to_read(cert)

    def unlink_from_product(self, user: User, cert_id: uuid.UUID, product_id: uuid.UUID):
        cert = self._get_own(user, cert_id)
        link = self.session.get(ProductCertificationLink, (product_id, cert.id))
        if not link:
            raise NotFoundError("Certification is not linked to this product")

        self.session.delete(link)
        self.session.commit()

    def get_product_certifications(self, product_id: uuid.UUID) -> List[ProductCertificationRead]:
        """Public: verified certifications attached to an active product."""
        product = self.session.exec(
            select(Product).where(Product.id == product_id,
                                  Product.is_active == True)
        ).first()
        if not product:
            raise NotFoundError("Product not found")

        certs = self.session.exec(
            select(Certification)
            .join(ProductCertificationLink,
                  ProductCertificationLink.certification_id == Certification.id)
            .where(
                ProductCertificationLink.product_id == product.id,
                Certification.status == CertificationStatus.VERIFIED
            )
            .order_by(col(Certification.name))
        ).all()
        return [ProductCertificationRead.model_validate(c) for c in certs]

    # ==========================================================================
    # ADMIN
    # ==========================================================================

    def list_all(
        self,
        page: int = 1,
        limit: int = 10,
        status: Optional[CertificationStatus] = None,
        search: Optional[str] = None
    ) -> Page[AdminCertificationRead]:
        statement = select(Certification)
        if status:
            statement = statement.where(Certification.status == status)
        if search:
            search_fmt = f"%{search}%"
            statement = statement.where(
                col(Certification.name).ilike(search_fmt)
                | col(Certification.issuer).ilike(search_fmt)
            )
        statement = statement.order_by(col(Certification.created_at).desc())

        rows, pagination = paginate(self.session, statement, page, limit)
        return Page[AdminCertificationRead](
            items=[self._to_admin_read(c) for c in rows],
            pagination=pagination
        )

    def list_pending(self, page: int = 1, limit: int = 10) -> Page[AdminCertificationRead]:
        """Review queue, oldest submission first."""
        statement = (
            select(Certification)
            .where(Certification.status == CertificationStatus.PENDING)
            .order_by(col(Certification.created_at).asc())
        )
        rows, pagination = paginate(self.session, statement, page, limit)
        return Page[AdminCertificationRead](
            items=[self._to_admin_read(c) for c in rows],
            pagination=pagination
        )

    def get_stats(self) -> CertificationStatsRead:
        counts = dict(self.session.exec(
            select(Certification.status, func.count(Certification.id))
            .group_by(Certification.status)
        ).all())

        recent = self.session.exec(
            select(Certification)
            .order_by(col(Certification.created_at).desc())
            .limit(5)
        ).all()

        issuer_count = func.count(Certification.id).label("count")
        top_issuers = self.session.exec(
            select(Certification.issuer, issuer_count)
            .group_by(Certification.issuer)
            .order_by(issuer_count.desc())
            .limit(5)
        ).all()

        return CertificationStatsRead(
            total=sum(counts.values()),
            pending=counts.get(CertificationStatus.PENDING, 0),
            verified=counts.get(CertificationStatus.VERIFIED, 0),
            rejected=counts.get(CertificationStatus.REJECTED, 0),
            recent=[self._to_admin_read(c) for c in recent],
            top_issuers=[IssuerCount(issuer=issuer, count=count)
                         for issuer, count in top_issuers]
        )

    def _review(
        self,
        admin: User,
        certs: List[Certification],
        data: CertificationVerify,
        background_tasks: Optional[BackgroundTasks]
    ) -> List[Certification]:
        """Applies one verdict to every certification in 'certs' in a single transaction."""
        now = datetime.utcnow()
        try:
            for cert in certs:
                cert.status = data.status
                cert.verified_by = admin.id
                cert.verified_at = now
                cert.notes = data.notes
                self.session.add(cert)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        for cert in certs:
            self.session.refresh(cert)

        logger.info(
            f"Admin {admin.id} marked {len(certs)} certification(s) {data.status.value}")

        verified = data.status == CertificationStatus.VERIFIED
        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=cert.user_id,
                type=NotificationType.CERTIFICATION_UPDATE,
                title="Certification Verified" if verified else "Certification Rejected",
                message=(
                    f'Your certification "{cert.name}" has been verified and approved'
                    if verified else
                    f'Your certification "{cert.name}" has been rejected. '
                    f'{data.notes or "Please review and resubmit if necessary."}'
                ),
                data={"certification_id": str(cert.id),
                      "status": data.status.value}
            )
            for cert in certs
        ], background_tasks)

        if background_tasks is not None:
            for cert in certs:
                background_tasks.add_task(
                    _perform_audit_log,
                    user_id=admin.id,
                    entity_type="Certification",
                    entity_id=cert.id,
                    action=AuditAction.VERIFY,
                    changes={"status": data.status.value, "notes": data.notes}
                )
        return certs

    def verify_certification(
        self,
        admin: User,
        cert_id: uuid.UUID,
        data: CertificationVerify,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> AdminCertificationRead:
        """
        Single review works from any status, so an admin can revoke a
        verification that turned out to be wrong.
        """
        cert = self.session.get(Certification, cert_id)
        if not cert:
            raise NotFoundError("Certification not found")

        cert = self._review(admin, [cert], data, background_tasks)[0]
        return self._to_admin_read(cert)

    def bulk_verify(
        self,
        admin: User,
        data: CertificationBulkVerify,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> int:
        """Only PENDING certifications are touched; other ids are skipped."""
        certs = self.session.exec(
            select(Certification).where(
                col(Certification.id).in_(data.certification_ids),
                Certification.status == CertificationStatus.PENDING
            )
        ).all()
        if not certs:
            raise NotFoundError(
                "No pending certifications found with provided IDs")

        verdict = CertificationVerify(status=data.status, notes=data.notes)
        return len(self._review(admin, list(certs), verdict, background_tasks))
