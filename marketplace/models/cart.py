from datetime import datetime
from typing import List
from uuid import UUID
from sqlmodel import SQLModel, Field

from marketplace.models.profile import SellerSummaryRead


class CartItemCreate(SQLModel):
    product_id: UUID
    quantity: int = Field(default=1, ge=1)


class CartItemUpdate(SQLModel):
    quantity: int = Field(ge=1)


class CartProductRead(SQLModel):
    id: UUID
    name: str
    sku: str
    retail_price: float
    unit: str
    stock_quantity: int
    min_order_quantity: int
    is_active: bool
    seller: SellerSummaryRead


class CartItemRead(SQLModel):
    id: UUID
    product_id: UUID
    quantity: int
    line_total: float
    created_at: datetime
    product: CartProductRead


class CartSummary(SQLModel):
    """Totals computed over the items that survived the stock/active check."""
    subtotal: float
    tax: float
    shipping: float
    total: float
    item_count: int


class CartRead(SQLModel):
    items: List[CartItemRead] = []
    summary: CartSummary
