from typing import List, Optional
from uuid import UUID
from sqlmodel import SQLModel, Field


class CategoryCreate(SQLModel):
    name: str = Field(min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    parent_id: Optional[UUID] = None


class CategoryUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    parent_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class CategorySummaryRead(SQLModel):
    id: UUID
    name: str


class CategoryRead(SQLModel):
    id: UUID
    name: str
    description: Optional[str] = None
    parent_id: Optional[UUID] = None
    is_active: bool


class CategoryTreeRead(CategoryRead):
    children: List[CategoryRead] = []
