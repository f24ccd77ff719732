"""Shared schema components."""

from typing import Optional, Dict, Any, TypeVar, Generic, List
from pydantic import BaseModel, Field
from datetime import datetime

T = TypeVar('T')


class BaseListResponse(BaseModel, Generic[T]):
    """Base class for paginated list responses."""

    items: List[T]
    total: int
    page: int
    size: int
    pages: int

    @classmethod
    def create(cls, items: List[T], total: int, page: int, size: int):
        pages = (total + size - 1) // size if total > 0 else 0
        return cls(items=items, total=total, page=page, size=size, pages=pages)


class MessageResponse(BaseModel):
    """Schema for simple message response."""

    success: bool = True
    message: str


class ErrorResponse(BaseModel):
    """Body returned for handled domain errors."""

    success: bool = False
    message: str
    error_code: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)
