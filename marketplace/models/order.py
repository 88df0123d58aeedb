from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field

from marketplace.db.schema import OrderStatus
from marketplace.models.profile import SellerSummaryRead


class Address(SQLModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: str = Field(min_length=1, max_length=100)


class OrderCreate(SQLModel):
    """
    Checkout payload. The items always come from the buyer's cart.
    When 'billing_address' is omitted the shipping address is reused.
    """
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: str = Field(min_length=1, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=1000)


class OrderStatusUpdate(SQLModel):
    status: OrderStatus = Field(
        description="'CONFIRMED', 'PROCESSING', 'SHIPPED' or 'DELIVERED'."
    )


class OrderProductRead(SQLModel):
    id: UUID
    name: str
    sku: str
    unit: str
    seller: SellerSummaryRead


class OrderItemRead(SQLModel):
    id: UUID
    product_id: UUID
    quantity: int
    unit_price: float
    total_price: float
    is_wholesale: bool
    product: OrderProductRead


class OrderBuyerRead(SQLModel):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None


class OrderRead(SQLModel):
    id: UUID
    order_number: str
    buyer_id: UUID
    status: OrderStatus
    subtotal: float
    tax: float
    shipping: float
    total: float
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    payment_method: Optional[str] = None
    payment_status: str
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemRead] = []


class SellerOrderRead(OrderRead):
    """Order as seen by one seller: only that seller's lines are listed."""
    buyer: OrderBuyerRead
