import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field
from pydantic import EmailStr, StringConstraints, field_validator, model_validator
from typing_extensions import Annotated

from marketplace.db.schema import UserRole, UserStatus, OrderStatus, RFQStatus
from marketplace.models.profile import (
    BuyerProfileCreate, BuyerProfileRead,
    SellerProfileCreate, SellerProfileRead
)


PASSWORD_RULE = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9])(?=.*[!@#$%^&*])")


def check_password_strength(value: str) -> str:
    if not PASSWORD_RULE.match(value):
        raise ValueError(
            "Password must contain at least one uppercase letter, one lowercase "
            "letter, one number, and one special character")
    return value


class UserSignin(SQLModel):
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Registered email address of the user.",
        max_length=255
    )
    password: str = Field(
        min_length=1,
        max_length=128,
        description="Plain text password."
    )


class UserCreate(SQLModel):
    """
    DTO for Registration.
    A Buyer may send 'buyer_profile' and a Seller may send 'seller_profile'
    to create the account and its profile in one step.
    """
    email: Annotated[EmailStr, StringConstraints(to_lower=True)] = Field(
        description="Unique email address for signin.",
        max_length=255
    )
    password: str = Field(
        min_length=8,
        max_length=128,
        description="Plain text password."
    )
    role: UserRole = Field(
        default=UserRole.BUYER,
        description="'BUYER' or 'SELLER'. Admin accounts cannot self-register."
    )
    buyer_profile: Optional[BuyerProfileCreate] = None
    seller_profile: Optional[SellerProfileCreate] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)

    @model_validator(mode='after')
    def validate_role(self) -> 'UserCreate':
        if self.role == UserRole.ADMIN:
            raise ValueError("Role must be 'BUYER' or 'SELLER'.")
        if self.buyer_profile and self.role != UserRole.BUYER:
            raise ValueError("Only buyers can register a buyer profile.")
        if self.seller_profile and self.role != UserRole.SELLER:
            raise ValueError("Only sellers can register a seller profile.")
        return self


class PasswordUpdate(SQLModel):
    current_password: str
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserRead(SQLModel):
    id: UUID
    email: str
    role: UserRole
    status: UserStatus
    created_at: datetime
    buyer_profile: Optional[BuyerProfileRead] = None
    seller_profile: Optional[SellerProfileRead] = None


class RegistrationRead(SQLModel):
    user: UserRead
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    message: str


class LoginRead(SQLModel):
    user: UserRead
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


# ==========================================================================
# ADMIN
# ==========================================================================

class UserStatusUpdate(SQLModel):
    status: UserStatus
    notes: Optional[str] = Field(default=None, max_length=500)


class UserOrderSummary(SQLModel):
    id: UUID
    order_number: str
    status: OrderStatus
    total: float
    created_at: datetime


class UserRFQSummary(SQLModel):
    id: UUID
    rfq_number: str
    title: str
    status: RFQStatus
    created_at: datetime


class UserDetailRead(UserRead):
    updated_at: datetime
    recent_orders: List[UserOrderSummary] = []
    recent_rfqs: List[UserRFQSummary] = []


class DashboardOverview(SQLModel):
    total_users: int
    total_buyers: int
    total_sellers: int
    pending_sellers: int
    total_products: int
    total_orders: int
    total_rfqs: int


class DashboardStatsRead(SQLModel):
    overview: DashboardOverview
    recent_orders: List[UserOrderSummary] = []
