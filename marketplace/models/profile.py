import re
from datetime import datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field
from pydantic import field_validator

from marketplace.models.category import CategoryRead


PHONE_RULE = re.compile(r"^[+]?[1-9][\d\s\-\(\)]{7,15}$")
COMPANY_TYPES = {"Individual", "Small Business", "Enterprise"}
EMPLOYEE_COUNTS = {"1-10", "11-50", "51-200", "201-500", "500+"}


def check_phone(value: Optional[str]) -> Optional[str]:
    if value and not PHONE_RULE.match(value):
        raise ValueError("Please provide a valid phone number")
    return value


# ==========================================================================
# BUYER
# ==========================================================================

class BuyerProfileBase(SQLModel):
    first_name: str = Field(min_length=2, max_length=50)
    last_name: str = Field(min_length=2, max_length=50)
    company: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)
    company_type: Optional[str] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return check_phone(value)

    @field_validator("company_type")
    @classmethod
    def check_company_type(cls, value: Optional[str]) -> Optional[str]:
        if value and value not in COMPANY_TYPES:
            raise ValueError(
                f"company_type must be one of {sorted(COMPANY_TYPES)}")
        return value


class BuyerProfileCreate(BuyerProfileBase):
    pass


class BuyerProfileUpdate(BuyerProfileBase):
    pass


class BuyerProfileRead(SQLModel):
    id: UUID
    user_id: UUID
    first_name: str
    last_name: str
    company: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    company_type: Optional[str] = None


# ==========================================================================
# SELLER
# ==========================================================================

class SellerProfileBase(SQLModel):
    company_name: str = Field(min_length=2, max_length=100)
    contact_person: str = Field(min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: str = Field(max_length=255)
    city: str = Field(max_length=100)
    state: str = Field(max_length=100)
    zip_code: str = Field(max_length=20)
    country: str = Field(max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    website: Optional[str] = Field(default=None, max_length=255)
    established_year: Optional[int] = Field(default=None, ge=1800)
    employee_count: Optional[str] = None
    business_license: Optional[str] = Field(default=None, max_length=100)
    tax_id: Optional[str] = Field(default=None, max_length=50)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return check_phone(value)

    @field_validator("employee_count")
    @classmethod
    def check_employee_count(cls, value: Optional[str]) -> Optional[str]:
        if value and value not in EMPLOYEE_COUNTS:
            raise ValueError(
                f"employee_count must be one of {sorted(EMPLOYEE_COUNTS)}")
        return value

    @field_validator("established_year")
    @classmethod
    def check_established_year(cls, value: Optional[int]) -> Optional[int]:
        if value and value > datetime.utcnow().year:
            raise ValueError("established_year cannot be in the future")
        return value


class SellerProfileCreate(SellerProfileBase):
    """
    Payload for creating the seller's business profile.
    'categories' is the list of Category IDs the seller trades in; RFQs
    posted in these categories are pushed to the seller once verified.
    """
    categories: List[UUID] = Field(min_length=1)


class SellerProfileUpdate(SQLModel):
    """
    Partial update. When 'categories' is supplied the full set of category
    links is replaced.
    """
    company_name: Optional[str] = Field(
        default=None, min_length=2, max_length=100)
    contact_person: Optional[str] = Field(
        default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    address: Optional[str] = Field(default=None, max_length=255)
    city: Optional[str] = Field(default=None, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    zip_code: Optional[str] = Field(default=None, max_length=20)
    country: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    website: Optional[str] = Field(default=None, max_length=255)
    established_year: Optional[int] = Field(default=None, ge=1800)
    employee_count: Optional[str] = None
    business_license: Optional[str] = Field(default=None, max_length=100)
    tax_id: Optional[str] = Field(default=None, max_length=50)
    categories: Optional[List[UUID]] = None

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return check_phone(value)


class SellerSummaryRead(SQLModel):
    id: UUID
    company_name: str
    is_verified: bool


class SellerContactRead(SellerSummaryRead):
    contact_person: str
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None


class PublicSellerProfileRead(SQLModel):
    """
    Storefront view. Licence, tax id and verification notes are never exposed.
    """
    id: UUID
    user_id: UUID
    company_name: str
    contact_person: str
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    description: Optional[str] = None
    website: Optional[str] = None
    established_year: Optional[int] = None
    employee_count: Optional[str] = None
    is_verified: bool
    categories: List[CategoryRead] = []
    created_at: datetime


class SellerProfileRead(PublicSellerProfileRead):
    business_license: Optional[str] = None
    tax_id: Optional[str] = None
    verification_notes: Optional[str] = None
