from typing import Generic, List, TypeVar
from pydantic import BaseModel
from sqlmodel import SQLModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """
    Envelope returned by every endpoint: {"success": true, "data": ...}.
    Errors use {"success": false, "error": {"message": ...}} (see core.errors).
    """
    success: bool = True
    data: T


class Pagination(SQLModel):
    page: int
    limit: int
    total: int
    pages: int


class Page(BaseModel, Generic[T]):
    items: List[T]
    pagination: Pagination


class MessageRead(SQLModel):
    message: str


class CountRead(SQLModel):
    message: str
    count: int
