"""
Shared response envelopes
Every response body carries a `success` flag
"""

from typing import Generic, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Successful response wrapping a payload"""
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaginatedEnvelope(Envelope[T], Generic[T]):
    pagination: Pagination


class MessageResponse(BaseModel):
    success: bool = True
    message: str
