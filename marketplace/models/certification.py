from datetime import date, datetime
from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field
from pydantic import model_validator, field_validator

from marketplace.db.schema import CertificationStatus


class CertificationCreate(SQLModel):
    name: str = Field(
        min_length=2,
        max_length=200,
        description="Example: 'USDA Organic'"
    )
    description: Optional[str] = Field(default=None, max_length=1000)
    issuer: str = Field(min_length=2, max_length=200)
    issue_date: date
    expiry_date: Optional[date] = None
    document_url: str = Field(min_length=1, max_length=500)

    @model_validator(mode='after')
    def check_dates(self) -> 'CertificationCreate':
        if self.expiry_date and self.expiry_date <= self.issue_date:
            raise ValueError("Expiry date must be after issue date")
        return self


class CertificationUpdate(SQLModel):
    """Any accepted edit sends the certification back to review."""
    name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    issuer: Optional[str] = Field(default=None, min_length=2, max_length=200)
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    document_url: Optional[str] = Field(
        default=None, min_length=1, max_length=500)


class CertificationVerify(SQLModel):
    status: CertificationStatus
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("status")
    @classmethod
    def check_status(cls, value: CertificationStatus) -> CertificationStatus:
        if value == CertificationStatus.PENDING:
            raise ValueError("Status must be 'VERIFIED' or 'REJECTED'")
        return value


class CertificationBulkVerify(CertificationVerify):
    certification_ids: List[UUID] = Field(min_length=1)


class ProductLinkCreate(SQLModel):
    product_id: UUID


class LinkedProductRead(SQLModel):
    id: UUID
    name: str
    sku: str


class CertificationRead(SQLModel):
    id: UUID
    user_id: UUID
    name: str
    description: Optional[str] = None
    issuer: str
    issue_date: date
    expiry_date: Optional[date] = None
    document_url: str
    status: CertificationStatus
    verified_by: Optional[UUID] = None
    verified_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    products: List[LinkedProductRead] = []


class CertificationOwnerRead(SQLModel):
    id: UUID
    email: str
    company_name: Optional[str] = None


class AdminCertificationRead(CertificationRead):
    owner: CertificationOwnerRead


class IssuerCount(SQLModel):
    issuer: str
    count: int


class CertificationStatsRead(SQLModel):
    total: int
    pending: int
    verified: int
    rejected: int
    recent: List[AdminCertificationRead] = []
    top_issuers: List[IssuerCount] = []
