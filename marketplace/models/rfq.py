from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field
from pydantic import field_validator

from marketplace.db.schema import RFQStatus
from marketplace.models.category import CategorySummaryRead
from marketplace.models.profile import SellerContactRead


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    # Stored timestamps are naive UTC
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# ==========================================================================
# RFQ
# ==========================================================================

class RFQCreate(SQLModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=20, max_length=2000)
    category_id: Optional[UUID] = Field(
        default=None,
        description="When omitted the RFQ is pushed to every verified seller."
    )
    quantity: int = Field(ge=1)
    unit: str = Field(min_length=1, max_length=20)
    budget: Optional[float] = Field(default=None, gt=0)
    location: Optional[str] = Field(default=None, max_length=200)
    delivery_date: Optional[datetime] = None
    expires_at: datetime
    requirements: Optional[Dict[str, Any]] = None

    @field_validator("delivery_date")
    @classmethod
    def normalize_delivery_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @field_validator("expires_at")
    @classmethod
    def check_expires_at(cls, value: datetime) -> datetime:
        value = to_naive_utc(value)
        if value <= datetime.utcnow():
            raise ValueError("Expiration date must be in the future")
        return value


class RFQUpdate(SQLModel):
    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    description: Optional[str] = Field(
        default=None, min_length=20, max_length=2000)
    category_id: Optional[UUID] = None
    quantity: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=20)
    budget: Optional[float] = Field(default=None, gt=0)
    location: Optional[str] = Field(default=None, max_length=200)
    delivery_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    requirements: Optional[Dict[str, Any]] = None

    @field_validator("delivery_date")
    @classmethod
    def normalize_delivery_date(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value)

    @field_validator("expires_at")
    @classmethod
    def check_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        value = to_naive_utc(value)
        if value is not None and value <= datetime.utcnow():
            raise ValueError("Expiration date must be in the future")
        return value


class RFQClose(SQLModel):
    selected_quote_id: Optional[UUID] = None


class RFQBuyerPublicRead(SQLModel):
    """What a seller who has not quoted yet may learn about the buyer."""
    company: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class RFQBuyerRead(RFQBuyerPublicRead):
    id: UUID
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None


class RFQRead(SQLModel):
    id: UUID
    rfq_number: str
    buyer_id: UUID
    category_id: Optional[UUID] = None
    title: str
    description: str
    quantity: int
    unit: str
    budget: Optional[float] = None
    location: Optional[str] = None
    delivery_date: Optional[datetime] = None
    expires_at: datetime
    requirements: Optional[Dict[str, Any]] = None
    status: RFQStatus
    created_at: datetime
    updated_at: datetime
    category: Optional[CategorySummaryRead] = None
    quotes_count: int = 0


class RFQPublicRead(RFQRead):
    buyer: RFQBuyerPublicRead


# ==========================================================================
# QUOTE
# ==========================================================================

class QuoteCreate(SQLModel):
    price: float = Field(gt=0)
    quantity: int = Field(ge=1)
    unit: str = Field(min_length=1, max_length=20)
    delivery_time: Optional[str] = Field(default=None, max_length=100)
    terms: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)


class QuoteUpdate(SQLModel):
    price: Optional[float] = Field(default=None, gt=0)
    quantity: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=20)
    delivery_time: Optional[str] = Field(default=None, max_length=100)
    terms: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)


class QuoteRead(SQLModel):
    id: UUID
    rfq_id: UUID
    seller_id: UUID
    price: float
    quantity: int
    unit: str
    delivery_time: Optional[str] = None
    terms: Optional[str] = None
    notes: Optional[str] = None
    is_selected: bool
    created_at: datetime
    updated_at: datetime
    seller: SellerContactRead


class RFQDetailRead(RFQRead):
    """Full view: owner, admins and sellers who already quoted."""
    buyer: RFQBuyerRead
    quotes: List[QuoteRead] = []


class QuoteRFQSummary(SQLModel):
    id: UUID
    rfq_number: str
    title: str
    status: RFQStatus
    expires_at: datetime


class SellerQuoteRead(QuoteRead):
    rfq: QuoteRFQSummary
