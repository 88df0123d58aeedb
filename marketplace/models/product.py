from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field

from marketplace.models.category import CategorySummaryRead
from marketplace.models.profile import SellerSummaryRead


class ProductBase(SQLModel):
    name: str = Field(
        min_length=2,
        max_length=200,
        description="Display name. Example: 'Heirloom Tomatoes'"
    )
    description: str = Field(min_length=10, max_length=5000)
    short_description: Optional[str] = Field(default=None, max_length=500)
    category_id: UUID
    sku: str = Field(
        min_length=1,
        max_length=50,
        description="Seller stock keeping unit, unique across the marketplace."
    )
    retail_price: float = Field(gt=0)
    wholesale_price: Optional[float] = Field(default=None, gt=0)
    min_order_quantity: int = Field(default=1, ge=1)
    unit: str = Field(min_length=1, max_length=20,
                      description="Selling unit. Example: 'kg'")
    stock_quantity: int = Field(default=0, ge=0)
    tags: List[str] = Field(default_factory=list)
    storage_info: Optional[str] = Field(default=None, max_length=500)
    shelf_life: Optional[str] = Field(default=None, max_length=100)
    origin: Optional[str] = Field(default=None, max_length=100)
    harvest_date: Optional[date] = None
    is_organic: bool = True
    is_fair_trade: bool = False
    is_gmo_free: bool = True


class ProductCreate(ProductBase):
    pass


class ProductUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(
        default=None, min_length=10, max_length=5000)
    short_description: Optional[str] = Field(default=None, max_length=500)
    category_id: Optional[UUID] = None
    sku: Optional[str] = Field(default=None, min_length=1, max_length=50)
    retail_price: Optional[float] = Field(default=None, gt=0)
    wholesale_price: Optional[float] = Field(default=None, gt=0)
    min_order_quantity: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=20)
    stock_quantity: Optional[int] = Field(default=None, ge=0)
    tags: Optional[List[str]] = None
    storage_info: Optional[str] = Field(default=None, max_length=500)
    shelf_life: Optional[str] = Field(default=None, max_length=100)
    origin: Optional[str] = Field(default=None, max_length=100)
    harvest_date: Optional[date] = None
    is_organic: Optional[bool] = None
    is_fair_trade: Optional[bool] = None
    is_gmo_free: Optional[bool] = None
    is_active: Optional[bool] = None


class StockUpdate(SQLModel):
    stock_quantity: int = Field(ge=0)


class ProductCertificationRead(SQLModel):
    id: UUID
    name: str
    issuer: str
    expiry_date: Optional[date] = None


class ProductRead(SQLModel):
    id: UUID
    seller_id: UUID
    category_id: UUID
    name: str
    description: str
    short_description: Optional[str] = None
    sku: str
    retail_price: float
    wholesale_price: Optional[float] = None
    min_order_quantity: int
    unit: str
    stock_quantity: int
    tags: List[str] = []
    storage_info: Optional[str] = None
    shelf_life: Optional[str] = None
    origin: Optional[str] = None
    harvest_date: Optional[date] = None
    is_organic: bool
    is_fair_trade: bool
    is_gmo_free: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    seller: SellerSummaryRead
    category: CategorySummaryRead
    certifications: List[ProductCertificationRead] = []
