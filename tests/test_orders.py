"""
Order workflow: checkout, stock reservation, cancellation and the
seller-driven status lifecycle.
"""

import pytest
from sqlmodel import select

from marketplace.core.errors import (
    NotFoundError, InvalidStateError, InsufficientStockError
)
from marketplace.db.schema import (
    CartItem, Notification, Order, OrderStatus, Product
)
from marketplace.models.cart import CartItemCreate
from marketplace.models.order import OrderCreate, OrderStatusUpdate
from marketplace.services.cart import CartService
from marketplace.services.order import OrderService


CHECKOUT = OrderCreate(
    shipping_address={"street": "1 Market St", "city": "Portland",
                      "state": "OR", "zip_code": "97201", "country": "USA"},
    payment_method="card"
)


def fill_cart(session, buyer, *lines):
    service = CartService(session)
    for product, quantity in lines:
        service.add_to_cart(buyer, CartItemCreate(product_id=product.id, quantity=quantity))


class TestCreateOrder:

    def test_empty_cart(self, session, buyer):
        with pytest.raises(InvalidStateError) as exc:
            OrderService(session).create_order(buyer, CHECKOUT)
        assert exc.value.detail == "Cart is empty"

    def test_freezes_prices_and_decrements_stock(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=10, price=40.0)
        fill_cart(session, buyer, (product, 3))

        order = OrderService(session).create_order(buyer, CHECKOUT)

        assert order.status == OrderStatus.PENDING
        assert order.subtotal == 120.0
        assert order.tax == 9.6
        assert order.shipping == 0.0
        assert order.total == 129.6
        assert order.billing_address == order.shipping_address
        assert order.items[0].unit_price == 40.0
        assert order.items[0].total_price == 120.0

        session.refresh(product)
        assert product.stock_quantity == 7
        assert session.exec(select(CartItem).where(CartItem.user_id == buyer.id)).all() == []

    def test_stock_shortfall_rolls_everything_back(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=10, name="Heirloom Tomatoes")
        fill_cart(session, buyer, (product, 4))

        product.stock_quantity = 2
        session.add(product)
        session.commit()

        with pytest.raises(InsufficientStockError) as exc:
            OrderService(session).create_order(buyer, CHECKOUT)
        assert exc.value.detail == (
            'Insufficient stock for "Heirloom Tomatoes". Available: 2, Requested: 4')

        assert session.exec(select(Order)).all() == []
        session.refresh(product)
        assert product.stock_quantity == 2

    def test_inactive_product_blocks_checkout(self, session, buyer, seller, make_product):
        product = make_product(seller, name="Basil")
        fill_cart(session, buyer, (product, 1))
        product.is_active = False
        session.add(product)
        session.commit()

        with pytest.raises(InvalidStateError) as exc:
            OrderService(session).create_order(buyer, CHECKOUT)
        assert exc.value.detail == 'Product "Basil" is no longer available'

    def test_one_notification_per_distinct_seller(
            self, session, buyer, make_seller, make_product):
        farm_a = make_seller("Farm A")
        farm_b = make_seller("Farm B")
        fill_cart(session, buyer,
                  (make_product(farm_a), 1),
                  (make_product(farm_a), 1),
                  (make_product(farm_b), 1))

        OrderService(session).create_order(buyer, CHECKOUT)

        notified = session.exec(
            select(Notification.user_id).where(Notification.title == "New Order Received")
        ).all()
        assert sorted(notified) == sorted([farm_a.id, farm_b.id])


class TestCancelOrder:

    def test_restores_stock(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=5)
        fill_cart(session, buyer, (product, 3))
        service = OrderService(session)
        order = service.create_order(buyer, CHECKOUT)

        cancelled = service.cancel_order(buyer, order.id)

        assert cancelled.status == OrderStatus.CANCELLED
        session.refresh(product)
        assert product.stock_quantity == 5

    def test_cannot_cancel_twice(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=5)
        fill_cart(session, buyer, (product, 2))
        service = OrderService(session)
        order = service.create_order(buyer, CHECKOUT)
        service.cancel_order(buyer, order.id)

        with pytest.raises(InvalidStateError):
            service.cancel_order(buyer, order.id)

        session.refresh(product)
        assert product.stock_quantity == 5

    def test_cannot_cancel_shipped(self, session, buyer, seller, make_product):
        product = make_product(seller, stock=5)
        fill_cart(session, buyer, (product, 1))
        order = OrderService(session).create_order(buyer, CHECKOUT)
        OrderService(session).update_order_status(
            seller, order.id, OrderStatusUpdate(status=OrderStatus.SHIPPED))

        with pytest.raises(InvalidStateError) as exc:
            OrderService(session).cancel_order(buyer, order.id)
        assert exc.value.detail == "Order cannot be cancelled at this stage"

    def test_other_buyer_gets_not_found(self, session, make_buyer, seller, make_product):
        owner = make_buyer()
        stranger = make_buyer(company="Stranger Inc")
        fill_cart(session, owner, (make_product(seller), 1))
        order = OrderService(session).create_order(owner, CHECKOUT)

        with pytest.raises(NotFoundError):
            OrderService(session).cancel_order(stranger, order.id)


class TestSellerOrders:

    def test_status_update_notifies_buyer(self, session, buyer, seller, make_product):
        fill_cart(session, buyer, (make_product(seller), 1))
        order = OrderService(session).create_order(buyer, CHECKOUT)

        updated = OrderService(session).update_order_status(
            seller, order.id, OrderStatusUpdate(status=OrderStatus.CONFIRMED))

        assert updated.status == OrderStatus.CONFIRMED
        assert updated.buyer.company == "Fresh Foods Ltd"
        message = session.exec(
            select(Notification).where(Notification.user_id == buyer.id)).one()
        assert message.message == (
            f"Your order {order.order_number} status has been updated to confirmed")

    def test_terminal_orders_are_frozen(self, session, buyer, seller, make_product):
        fill_cart(session, buyer, (make_product(seller), 1))
        order = OrderService(session).create_order(buyer, CHECKOUT)
        service = OrderService(session)
        service.update_order_status(
            seller, order.id, OrderStatusUpdate(status=OrderStatus.DELIVERED))

        with pytest.raises(InvalidStateError) as exc:
            service.update_order_status(
                seller, order.id, OrderStatusUpdate(status=OrderStatus.SHIPPED))
        assert exc.value.detail == "Order is already delivered"

    def test_seller_cannot_set_cancelled(self, session, buyer, seller, make_product):
        fill_cart(session, buyer, (make_product(seller), 1))
        order = OrderService(session).create_order(buyer, CHECKOUT)

        with pytest.raises(InvalidStateError):
            OrderService(session).update_order_status(
                seller, order.id, OrderStatusUpdate(status=OrderStatus.CANCELLED))

    def test_foreign_seller_cannot_touch_order(
            self, session, buyer, make_seller, make_product):
        owner = make_seller("Owner Farm")
        other = make_seller("Other Farm")
        fill_cart(session, buyer, (make_product(owner), 1))
        order = OrderService(session).create_order(buyer, CHECKOUT)

        with pytest.raises(NotFoundError) as exc:
            OrderService(session).update_order_status(
                other, order.id, OrderStatusUpdate(status=OrderStatus.CONFIRMED))
        assert exc.value.detail == "Order not found or access denied"

    def test_seller_sees_only_their_lines(self, session, buyer, make_seller, make_product):
        farm_a = make_seller("Farm A")
        farm_b = make_seller("Farm B")
        mine = make_product(farm_a)
        fill_cart(session, buyer, (mine, 1), (make_product(farm_b), 1))
        OrderService(session).create_order(buyer, CHECKOUT)

        page = OrderService(session).get_seller_orders(farm_a)

        assert page.pagination.total == 1
        assert [item.product_id for item in page.items[0].items] == [mine.id]


class TestBuyerScenario:
    """Full HTTP round trip: cart, checkout, stock, cancellation."""

    def test_order_then_cancel_restores_stock(
            self, client, session, buyer, seller, make_product, auth_headers):
        product = make_product(seller, stock=5, price=20.0)
        headers = auth_headers(buyer)

        resp = client.post("/api/v1/orders/cart",
                           json={"product_id": str(product.id), "quantity": 3},
                           headers=headers)
        assert resp.status_code == 201
        assert resp.json()["success"] is True

        resp = client.get("/api/v1/orders/cart", headers=headers)
        assert resp.json()["data"]["summary"]["subtotal"] == 60.0

        resp = client.post("/api/v1/orders/", json=CHECKOUT.model_dump(), headers=headers)
        assert resp.status_code == 201
        order = resp.json()["data"]
        assert order["status"] == "PENDING"

        session.expire_all()
        assert session.get(Product, product.id).stock_quantity == 2

        resp = client.put(f"/api/v1/orders/{order['id']}/cancel", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "CANCELLED"

        session.expire_all()
        assert session.get(Product, product.id).stock_quantity == 5

    def test_empty_cart_checkout_uses_error_envelope(self, client, buyer, auth_headers):
        resp = client.post("/api/v1/orders/", json=CHECKOUT.model_dump(),
                           headers=auth_headers(buyer))

        assert resp.status_code == 400
        assert resp.json() == {"success": False, "error": {"message": "Cart is empty"}}
