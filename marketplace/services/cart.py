import uuid
from typing import Optional
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select, update, col
from sqlalchemy import delete
from sqlalchemy.orm import selectinload

from marketplace.core.errors import (
    NotFoundError, InsufficientStockError, InvalidQuantityError
)
from marketplace.db.schema import User, Product, CartItem
from marketplace.models.cart import (
    CartItemCreate,
    CartItemUpdate,
    CartItemRead,
    CartProductRead,
    CartRead
)
from marketplace.services.pricing import calculate_totals, round_money


class CartService:
    def __init__(self, session: Session):
        self.session = session

    def _to_read(self, item: CartItem) -> CartItemRead:
        return CartItemRead(
            id=item.id,
            product_id=item.product_id,
            quantity=item.quantity,
            line_total=round_money(item.product.retail_price * item.quantity),
            created_at=item.created_at,
            product=CartProductRead.model_validate(item.product)
        )

    def _get_active_product(self, product_id: uuid.UUID) -> Product:
        product = self.session.exec(
            select(Product).where(
                Product.id == product_id,
                Product.is_active == True
            )
        ).first()
        if not product:
            raise NotFoundError("Product not found or inactive")
        return product

    def _validate_quantity(self, product: Product, quantity: int):
        if quantity < product.min_order_quantity:
            raise InvalidQuantityError(
                f"Minimum order quantity is {product.min_order_quantity} {product.unit}")
        if quantity > product.stock_quantity:
            raise InvalidQuantityError("Insufficient stock available")

    def _find_item(self, user_id: uuid.UUID, product_id: uuid.UUID) -> Optional[CartItem]:
        return self.session.exec(
            select(CartItem).where(
                CartItem.user_id == user_id,
                CartItem.product_id == product_id
            )
        ).first()

    def _get_own_item(self, user: User, item_id: uuid.UUID) -> CartItem:
        item = self.session.exec(
            select(CartItem).where(
                CartItem.id == item_id,
                CartItem.user_id == user.id
            )
        ).first()
        if not item:
            raise NotFoundError("Cart item not found")
        return item

    def _merge_quantity(self, item: CartItem, product: Product, quantity: int) -> CartItem:
        """Adds to an existing line. The sum must still fit the stock."""
        if item.quantity + quantity > product.stock_quantity:
            raise InsufficientStockError(
                "Cannot add more items. Insufficient stock available")

        # Increment in SQL so concurrent adds accumulate instead of overwriting
        self.session.exec(
            update(CartItem)
            .where(CartItem.id == item.id)
            .values(quantity=CartItem.quantity + quantity)
        )
        self.session.commit()
        self.session.refresh(item)
        return item

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    def get_cart(self, user: User) -> CartRead:
        """
        Self-healing read: lines whose product went inactive or no longer
        has enough stock are deleted, and the totals cover the survivors only.
        """
        items = self.session.exec(
            select(CartItem)
            .where(CartItem.user_id == user.id)
            .options(selectinload(CartItem.product).selectinload(Product.seller))
            .order_by(col(CartItem.created_at).desc())
        ).all()

        valid_items = []
        pruned = 0
        for item in items:
            if item.product.is_active and item.product.stock_quantity >= item.quantity:
                valid_items.append(item)
            else:
                self.session.delete(item)
                pruned += 1

        if pruned:
            self.session.commit()
            logger.info(
                f"Pruned {pruned} unavailable item(s) from cart of {user.id}")

        summary = calculate_totals(
            (item.product.retail_price, item.quantity) for item in valid_items)

        return CartRead(
            items=[self._to_read(item) for item in valid_items],
            summary=summary
        )

    def add_to_cart(self, user: User, data: CartItemCreate) -> CartItemRead:
        product = self._get_active_product(data.product_id)
        self._validate_quantity(product, data.quantity)

        existing = self._find_item(user.id, product.id)
        if existing:
            return self._to_read(self._merge_quantity(existing, product, data.quantity))

        item = CartItem(user_id=user.id, product_id=product.id,
                        quantity=data.quantity)
        try:
            self.session.add(item)
            self.session.commit()
        except IntegrityError:
            # Another request created the (user, product) row first
            self.session.rollback()
            logger.info(
                f"Cart row for {user.id}/{product.id} created concurrently, merging")
            existing = self._find_item(user.id, product.id)
            product = self._get_active_product(data.product_id)
            return self._to_read(self._merge_quantity(existing, product, data.quantity))

        self.session.refresh(item)
        return self._to_read(item)

    def update_cart_item(self, user: User, item_id: uuid.UUID, data: CartItemUpdate) -> CartItemRead:
        item = self._get_own_item(user, item_id)
        if not item.product.is_active:
            raise NotFoundError("Product not found or inactive")
        self._validate_quantity(item.product, data.quantity)

        item.quantity = data.quantity
        self.session.add(item)
        self.session.commit()
        self.session.refresh(item)
        return self._to_read(item)

    def remove_from_cart(self, user: User, item_id: uuid.UUID):
        item = self._get_own_item(user, item_id)
        self.session.delete(item)
        self.session.commit()

    def clear_cart(self, user: User) -> int:
        result = self.session.exec(
            delete(CartItem).where(CartItem.user_id == user.id))
        self.session.commit()
        return result.rowcount
