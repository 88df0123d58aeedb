import uuid
from typing import Optional
from loguru import logger
from sqlalchemy import delete
from sqlmodel import Session, select, update, col
from sqlalchemy.orm import selectinload
from fastapi import BackgroundTasks

from marketplace.core.errors import (
    NotFoundError, InvalidStateError, InsufficientStockError
)
from marketplace.db.pagination import paginate
from marketplace.db.schema import (
    User, Product, CartItem, Order, OrderItem, OrderStatus, NotificationType
)
from marketplace.models.common import Page
from marketplace.models.notification import NotificationCreate
from marketplace.models.order import (
    OrderCreate,
    OrderStatusUpdate,
    OrderRead,
    OrderItemRead,
    OrderProductRead,
    OrderBuyerRead,
    SellerOrderRead
)
from marketplace.services.notification import NotificationService
from marketplace.services.numbering import generate_order_number
from marketplace.services.pricing import calculate_totals, round_money
from marketplace.services.profile import ProfileService


class OrderService:
    """
    Checkout and the order lifecycle:

        PENDING -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED
        PENDING | CONFIRMED -> CANCELLED   (buyer only)
    """
    CANCELLABLE = (OrderStatus.PENDING, OrderStatus.CONFIRMED)
    SELLER_TARGETS = (
        OrderStatus.CONFIRMED,
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    )
    TERMINAL = (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def __init__(self, session: Session):
        self.session = session

    def _with_items(self, statement):
        return statement.options(
            selectinload(Order.items)
            .selectinload(OrderItem.product)
            .selectinload(Product.seller)
        )

    def _to_read(self, order: Order, seller_id: Optional[uuid.UUID] = None) -> OrderRead:
        items = [
            OrderItemRead(
                **item.model_dump(),
                product=OrderProductRead.model_validate(item.product)
            )
            for item in order.items
            if seller_id is None or item.product.seller_id == seller_id
        ]
        return OrderRead(**order.model_dump(), items=items)

    def _to_seller_read(self, order: Order, seller_id: uuid.UUID) -> SellerOrderRead:
        buyer = order.buyer
        profile = buyer.buyer_profile
        return SellerOrderRead(
            **self._to_read(order, seller_id).model_dump(),
            buyer=OrderBuyerRead(
                id=buyer.id,
                email=buyer.email,
                first_name=profile.first_name if profile else None,
                last_name=profile.last_name if profile else None,
                company=profile.company if profile else None
            )
        )

    def _seller_order_ids(self, seller_id: uuid.UUID):
        return (
            select(OrderItem.order_id)
            .join(Product, OrderItem.product_id == Product.id)
            .where(Product.seller_id == seller_id)
        )

    # ==========================================================================
    # BUYER
    # ==========================================================================

    def create_order(
        self,
        user: User,
        data: OrderCreate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> OrderRead:
        """
        Turns the buyer's cart into an order in ONE transaction:
        order + items with frozen prices, stock decrement, cart cleared.
        The decrement is conditional on the stock still being there, so two
        concurrent checkouts cannot oversell the same product.
        """
        cart_items = self.session.exec(
            select(CartItem)
            .where(CartItem.user_id == user.id)
            .options(selectinload(CartItem.product))
        ).all()

        if not cart_items:
            raise InvalidStateError("Cart is empty")

        for item in cart_items:
            product = item.product
            if not product.is_active:
                raise InvalidStateError(
                    f'Product "{product.name}" is no longer available')
            if item.quantity > product.stock_quantity:
                raise InsufficientStockError(
                    f'Insufficient stock for "{product.name}". '
                    f'Available: {product.stock_quantity}, Requested: {item.quantity}')

        summary = calculate_totals(
            (item.product.retail_price, item.quantity) for item in cart_items)

        shipping_address = data.shipping_address.model_dump()
        billing_address = (data.billing_address.model_dump()
                           if data.billing_address else shipping_address)

        # Snapshot before any write; a rollback expires the ORM objects
        lines = [
            (item.product_id, item.product.name,
             item.product.retail_price, item.quantity)
            for item in cart_items
        ]

        try:
            order = Order(
                order_number=generate_order_number(),
                buyer_id=user.id,
                status=OrderStatus.PENDING,
                subtotal=summary.subtotal,
                tax=summary.tax,
                shipping=summary.shipping,
                total=summary.total,
                shipping_address=shipping_address,
                billing_address=billing_address,
                payment_method=data.payment_method,
                notes=data.notes
            )
            self.session.add(order)
            self.session.flush()

            for product_id, name, unit_price, quantity in lines:
                self.session.add(OrderItem(
                    order_id=order.id,
                    product_id=product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=round_money(unit_price * quantity)
                ))

                result = self.session.exec(
                    update(Product)
                    .where(
                        Product.id == product_id,
                        Product.is_active == True,
                        Product.stock_quantity >= quantity
                    )
                    .values(stock_quantity=Product.stock_quantity - quantity)
                )
                if result.rowcount != 1:
                    raise InsufficientStockError(
                        f'Insufficient stock for "{name}". Requested: {quantity}')

            self.session.exec(
                delete(CartItem).where(CartItem.user_id == user.id))

            self.session.commit()

        except InsufficientStockError as e:
            self.session.rollback()
            logger.warning(f"Checkout aborted for {user.id}: {e.detail}")
            raise
        except Exception as e:
            self.session.rollback()
            logger.error(f"Order creation failed for {user.id}: {e}")
            raise

        order = self.session.exec(
            self._with_items(select(Order).where(Order.id == order.id))
        ).one()

        logger.info(
            f"Order placed: {order.order_number} by {user.id}, total {order.total}")

        # One message per distinct seller, not per line
        seller_user_ids = {item.product.seller.user_id for item in order.items}
        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=seller_user_id,
                type=NotificationType.ORDER_STATUS,
                title="New Order Received",
                message=f"You have received a new order {order.order_number}",
                data={"order_id": str(order.id),
                      "order_number": order.order_number}
            )
            for seller_user_id in seller_user_ids
        ], background_tasks)

        return self._to_read(order)

    def list_orders(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None
    ) -> Page[OrderRead]:
        statement = select(Order).where(Order.buyer_id == user.id)
        if status:
            statement = statement.where(Order.status == status)
        statement = statement.order_by(col(Order.created_at).desc())

        rows, pagination = paginate(
            self.session, self._with_items(statement), page, limit)
        return Page[OrderRead](
            items=[self._to_read(o) for o in rows],
            pagination=pagination
        )

    def get_order(self, user: User, order_id: uuid.UUID) -> OrderRead:
        order = self.session.exec(
            self._with_items(
                select(Order).where(Order.id == order_id,
                                    Order.buyer_id == user.id)
            )
        ).first()
        if not order:
            raise NotFoundError("Order not found")
        return self._to_read(order)

    def cancel_order(self, user: User, order_id: uuid.UUID) -> OrderRead:
        """
        Buyer-only. Allowed from PENDING or CONFIRMED; every item's quantity
        goes back to stock in the same transaction as the status change.
        """
        order = self.session.exec(
            select(Order).where(Order.id == order_id,
                                Order.buyer_id == user.id)
        ).first()
        if not order:
            raise NotFoundError("Order not found")

        if order.status not in self.CANCELLABLE:
            raise InvalidStateError("Order cannot be cancelled at this stage")

        try:
            # Guarded on the status so a concurrent cancel cannot restock twice
            result = self.session.exec(
                update(Order)
                .where(Order.id == order.id, col(Order.status).in_(self.CANCELLABLE))
                .values(status=OrderStatus.CANCELLED)
            )
            if result.rowcount != 1:
                raise InvalidStateError(
                    "Order cannot be cancelled at this stage")

            for item in order.items:
                self.session.exec(
                    update(Product)
                    .where(Product.id == item.product_id)
                    .values(stock_quantity=Product.stock_quantity + item.quantity)
                )

            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(f"Order cancelled: {order.order_number} by {user.id}")

        order = self.session.exec(
            self._with_items(select(Order).where(Order.id == order_id))
        ).one()
        return self._to_read(order)

    # ==========================================================================
    # SELLER
    # ==========================================================================

    def get_seller_orders(
        self,
        user: User,
        page: int = 1,
        limit: int = 10,
        status: Optional[OrderStatus] = None
    ) -> Page[SellerOrderRead]:
        """Orders that contain the seller's products, showing only their lines."""
        seller = ProfileService(self.session).get_seller_profile_for(user)

        statement = select(Order).where(
            col(Order.id).in_(self._seller_order_ids(seller.id)))
        if status:
            statement = statement.where(Order.status == status)
        statement = statement.order_by(col(Order.created_at).desc())

        rows, pagination = paginate(
            self.session, self._with_items(statement), page, limit)
        return Page[SellerOrderRead](
            items=[self._to_seller_read(o, seller.id) for o in rows],
            pagination=pagination
        )

    def update_order_status(
        self,
        user: User,
        order_id: uuid.UUID,
        data: OrderStatusUpdate,
        background_tasks: Optional[BackgroundTasks] = None
    ) -> SellerOrderRead:
        if data.status not in self.SELLER_TARGETS:
            raise InvalidStateError("Invalid order status")

        seller = ProfileService(self.session).get_seller_profile_for(user)
        order = self.session.exec(
            select(Order).where(
                Order.id == order_id,
                col(Order.id).in_(self._seller_order_ids(seller.id))
            )
        ).first()
        if not order:
            raise NotFoundError("Order not found or access denied")

        if order.status in self.TERMINAL:
            raise InvalidStateError(
                f"Order is already {order.status.value.lower()}")

        old_status = order.status
        order.status = data.status
        self.session.add(order)
        self.session.commit()
        self.session.refresh(order)

        logger.info(
            f"Order {order.order_number}: {old_status.value} -> {data.status.value} "
            f"by seller {seller.id}")

        NotificationService(self.session).notify([
            NotificationCreate(
                user_id=order.buyer_id,
                type=NotificationType.ORDER_STATUS,
                title="Order Status Updated",
                message=(f"Your order {order.order_number} status has been "
                         f"updated to {data.status.value.lower()}"),
                data={"order_id": str(order.id),
                      "order_number": order.order_number,
                      "status": data.status.value}
            )
        ], background_tasks)

        return self._to_seller_read(order, seller.id)
