"""
Cart workflow: validation on add/update, line merging and the
self-healing read.
"""

import pytest
from sqlmodel import Session, select

from marketplace.core.errors import (
    NotFoundError, InsufficientStockError, InvalidQuantityError
)
from marketplace.db.core import engine
from marketplace.db.schema import CartItem
from marketplace.models.cart import CartItemCreate, CartItemUpdate
from marketplace.services.cart import CartService


class TestAddToCart:

    def test_repeated_add_yields_one_summed_row(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=10)
        service = CartService(session)

        service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=2))
        line = service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=3))

        rows = session.exec(select(CartItem).where(CartItem.user_id == buyer.id)).all()
        assert len(rows) == 1
        assert rows[0].quantity == 5
        assert line.quantity == 5
        assert line.line_total == 50.0

    def test_concurrent_first_add_merges_into_one_row(
            self, session, buyer, seller, make_product, monkeypatch):
        product = make_product(seller, stock=10)
        find_item = CartService._find_item
        lookups = {"n": 0}

        def racing_find_item(self, user_id, product_id):
            # Another request inserts the same line between lookup and insert
            lookups["n"] += 1
            if lookups["n"] == 1:
                with Session(engine) as other:
                    other.add(CartItem(user_id=user_id, product_id=product_id, quantity=2))
                    other.commit()
                return None
            return find_item(self, user_id, product_id)

        monkeypatch.setattr(CartService, "_find_item", racing_find_item)

        line = CartService(session).add_to_cart(
            buyer, CartItemCreate(product_id=product.id, quantity=3))

        session.expire_all()
        rows = session.exec(select(CartItem).where(CartItem.user_id == buyer.id)).all()
        assert len(rows) == 1
        assert rows[0].quantity == 5
        assert line.quantity == 5

    def test_merge_cannot_exceed_stock(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=5)
        service = CartService(session)
        service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=4))

        with pytest.raises(InsufficientStockError) as exc:
            service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=2))
        assert exc.value.detail == "Cannot add more items. Insufficient stock available"

    def test_below_minimum_order_quantity(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=50, min_order=5)

        with pytest.raises(InvalidQuantityError) as exc:
            CartService(session).add_to_cart(
                buyer, CartItemCreate(product_id=product.id, quantity=2))
        assert exc.value.detail == "Minimum order quantity is 5 kg"

    def test_more_than_stock(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=3)

        with pytest.raises(InvalidQuantityError):
            CartService(session).add_to_cart(
                buyer, CartItemCreate(product_id=product.id, quantity=4))

    def test_inactive_product(self, session, buyer, seller, make_product):
        product = make_product(seller, is_active=False)

        with pytest.raises(NotFoundError):
            CartService(session).add_to_cart(
                buyer, CartItemCreate(product_id=product.id, quantity=1))


class TestGetCart:

    def test_summary_covers_all_lines(self, session, buyer, seller, make_product):
        apples = make_product(seller, stock=20, price=12.5)
        carrots = make_product(seller, stock=20, price=4.0)
        service = CartService(session)
        service.add_to_cart(buyer, CartItemCreate(product_id=apples.id, quantity=4))
        service.add_to_cart(buyer, CartItemCreate(product_id=carrots.id, quantity=5))

        cart = service.get_cart(buyer)

        assert len(cart.items) == 2
        assert cart.summary.subtotal == 70.0
        assert cart.summary.tax == 5.6
        assert cart.summary.shipping == 10.0
        assert cart.summary.total == 85.6
        assert cart.summary.item_count == 2

    def test_prunes_unavailable_lines(self, session, buyer, seller, make_product):
        kept = make_product(seller, stock=10, price=5.0)
        deactivated = make_product(seller, stock=10)
        drained = make_product(seller, stock=10)
        service = CartService(session)
        for product in (kept, deactivated, drained):
            service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=3))

        deactivated.is_active = False
        drained.stock_quantity = 2
        session.add_all([deactivated, drained])
        session.commit()

        cart = service.get_cart(buyer)

        assert [item.product_id for item in cart.items] == [kept.id]
        assert cart.summary.subtotal == 15.0
        remaining = session.exec(select(CartItem).where(CartItem.user_id == buyer.id)).all()
        assert len(remaining) == 1


class TestEditCart:

    def test_update_revalidates_stock(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=5)
        service = CartService(session)
        line = service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=1))

        with pytest.raises(InvalidQuantityError):
            service.update_cart_item(buyer, line.id, CartItemUpdate(quantity=6))

        updated = service.update_cart_item(buyer, line.id, CartItemUpdate(quantity=5))
        assert updated.quantity == 5

    def test_other_buyers_line_is_not_found(self, session, make_buyer, seller, make_product):
        owner = make_buyer()
        intruder = make_buyer(company="Other Co")
        product = make_product(seller)
        line = CartService(session).add_to_cart(
            owner, CartItemCreate(product_id=product.id, quantity=1))

        with pytest.raises(NotFoundError):
            CartService(session).remove_from_cart(intruder, line.id)

    def test_clear_cart_returns_count(self, session, buyer, seller, make_product):
        service = CartService(session)
        for _ in range(3):
            product = make_product(seller)
            service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=1))

        assert service.clear_cart(buyer) == 3
        assert service.get_cart(buyer).items == []
