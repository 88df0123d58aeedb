import uuid
from typing import List, Optional
from loguru import logger
from sqlalchemy import String, cast
from sqlmodel import Session, select, or_, col
from sqlalchemy.orm import selectinload

from marketplace.core.errors import NotFoundError, DuplicateError, ForbiddenError
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, Product, SellerProfile, CertificationStatus, ProductCertificationLink
)
from marketplace.models.category import CategorySummaryRead
from marketplace.models.common import Page
from marketplace.models.product import (
    ProductCreate,
    ProductUpdate,
    ProductRead,
    ProductCertificationRead
)
from marketplace.models.profile import SellerSummaryRead
from marketplace.services.category import CategoryService
from marketplace.services.profile import ProfileService


SORT_COLUMNS = {
    "created_at": Product.created_at,
    "price": Product.retail_price,
    "name": Product.name,
}


class ProductService:
    def __init__(self, session: Session):
        self.session = session

    def _with_details(self, statement):
        return statement.options(
            selectinload(Product.seller),
            selectinload(Product.category),
            selectinload(Product.certifications).selectinload(
                ProductCertificationLink.certification)
        )

    def to_read(self, product: Product) -> ProductRead:
        # Only verified certifications are advertised on a listing
        cert_dtos = [
            ProductCertificationRead.model_validate(link.certification)
            for link in product.certifications
            if link.certification.status == CertificationStatus.VERIFIED
        ]
        return ProductRead(
            **product.model_dump(),
            seller=SellerSummaryRead.model_validate(product.seller),
            category=CategorySummaryRead.model_validate(product.category),
            certifications=cert_dtos
        )

    def get_owned_product(self, user: User, product_id: uuid.UUID) -> Product:
        """The product must belong to the caller's seller profile."""
        seller = ProfileService(self.session).get_seller_profile_for(user)
        product = self.session.exec(
            select(Product).where(
                Product.id == product_id,
                Product.seller_id == seller.id
            )
        ).first()
        if not product:
            raise NotFoundError("Product not found or access denied")
        return product

    def _check_sku(self, sku: str, exclude_id: Optional[uuid.UUID] = None):
        statement = select(Product).where(Product.sku == sku)
        if exclude_id:
            statement = statement.where(Product.id != exclude_id)
        if self.session.exec(statement).first():
            raise DuplicateError(f"A product with SKU '{sku}' already exists")

    # ==========================================================================
    # STOREFRONT
    # ==========================================================================

    def list_products(
        self,
        page: int = 1,
        limit: int = 12,
        search: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        seller_id: Optional[uuid.UUID] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        is_organic: Optional[bool] = None,
        is_fair_trade: Optional[bool] = None,
        is_gmo_free: Optional[bool] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc"
    ) -> Page[ProductRead]:
        statement = select(Product).where(Product.is_active == True)

        if search:
            search_fmt = f"%{search}%"
            statement = statement.where(
                or_(
                    col(Product.name).ilike(search_fmt),
                    col(Product.description).ilike(search_fmt),
                    cast(Product.tags, String).ilike(search_fmt)
                )
            )
        if category_id:
            statement = statement.where(Product.category_id == category_id)
        if seller_id:
            statement = statement.where(Product.seller_id == seller_id)
        if min_price is not None:
            statement = statement.where(Product.retail_price >= min_price)
        if max_price is not None:
            statement = statement.where(Product.retail_price <= max_price)
        if is_organic is not None:
            statement = statement.where(Product.is_organic == is_organic)
        if is_fair_trade is not None:
            statement = statement.where(Product.is_fair_trade == is_fair_trade)
        if is_gmo_free is not None:
            statement = statement.where(Product.is_gmo_free == is_gmo_free)

        sort_column = col(SORT_COLUMNS.get(sort_by, Product.created_at))
        statement = statement.order_by(
            sort_column.asc() if sort_order == "asc" else sort_column.desc())

        rows, pagination = paginate(
            self.session, self._with_details(statement), page, limit)
        return Page[ProductRead](
            items=[self.to_read(p) for p in rows],
            pagination=pagination
        )

    def list_featured(self, limit: int = 8) -> List[ProductRead]:
        """Newest active listings from verified sellers."""
        statement = (
            select(Product)
            .join(SellerProfile, Product.seller_id == SellerProfile.id)
            .where(Product.is_active == True, SellerProfile.is_verified == True)
            .order_by(col(Product.created_at).desc())
            .limit(limit)
        )
        products = self.session.exec(self._with_details(statement)).all()
        return [self.to_read(p) for p in products]

    def get_product(self, product_id: uuid.UUID) -> ProductRead:
        product = self.session.exec(
            self._with_details(
                select(Product).where(
                    Product.id == product_id,
                    Product.is_active == True
                )
            )
        ).first()
        if not product:
            raise NotFoundError("Product not found")
        return self.to_read(product)

    # ==========================================================================
    # SELLER CATALOGUE
    # ==========================================================================

    def list_seller_products(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        category_id: Optional[uuid.UUID] = None,
        is_active: Optional[bool] = None
    ) -> Page[ProductRead]:
        seller = ProfileService(self.session).get_seller_profile_for(user)
        statement = select(Product).where(Product.seller_id == seller.id)

        if search:
            search_fmt = f"%{search}%"
            statement = statement.where(
                or_(
                    col(Product.name).ilike(search_fmt),
                    col(Product.sku).ilike(search_fmt)
                )
            )
        if category_id:
            statement = statement.where(Product.category_id == category_id)
        if is_active is not None:
            statement = statement.where(Product.is_active == is_active)

        statement = statement.order_by(col(Product.created_at).desc())
        rows, pagination = paginate(
            self.session, self._with_details(statement), page, limit)
        return Page[ProductRead](
            items=[self.to_read(p) for p in rows],
            pagination=pagination
        )

    def create_product(self, user: User, data: ProductCreate) -> ProductRead:
        seller = ProfileService(self.session).get_seller_profile_for(user)
        if not seller.is_verified:
            logger.warning(
                f"Unverified seller {seller.id} attempted to create a product")
            raise ForbiddenError(
                "Your seller account must be verified to create products")

        CategoryService(self.session).get_active_category(data.category_id)
        self._check_sku(data.sku)

        product = Product(**data.model_dump(), seller_id=seller.id)
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)

        logger.info(f"Product created: {product.sku} by seller {seller.id}")
        return self.to_read(product)

    def update_product(self, user: User, product_id: uuid.UUID, data: ProductUpdate) -> ProductRead:
        product = self.get_owned_product(user, product_id)
        update_data = data.model_dump(exclude_unset=True)

        if update_data.get("category_id"):
            CategoryService(self.session).get_active_category(
                update_data["category_id"])
        if update_data.get("sku") and update_data["sku"] != product.sku:
            self._check_sku(update_data["sku"], exclude_id=product.id)

        for key, value in update_data.items():
            setattr(product, key, value)

        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return self.to_read(product)

    def delete_product(self, user: User, product_id: uuid.UUID):
        """Soft delete: order history keeps pointing at the row."""
        product = self.get_owned_product(user, product_id)
        product.is_active = False
        self.session.add(product)
        self.session.commit()
        logger.info(f"Product deactivated: {product.id}")

    def update_stock(self, user: User, product_id: uuid.UUID, stock_quantity: int) -> ProductRead:
        product = self.get_owned_product(user, product_id)
        product.stock_quantity = stock_quantity
        self.session.add(product)
        self.session.commit()
        self.session.refresh(product)
        return self.to_read(product)
