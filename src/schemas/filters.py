"""Filter schemas for list endpoints."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator

from src.models.enums import TemplateType


class TemplateFilterParams(BaseModel):
    """Schema for card template filtering parameters."""

    # Pagination
    page: int = Field(1, ge=1, description="Page number")
    size: int = Field(20, ge=1, le=100, description="Page size (max 100)")

    # Scope filters
    school_id: Optional[str] = Field(None, description="Filter by school")
    session_id: Optional[str] = Field(None, description="Filter by academic session")
    class_id: Optional[str] = Field(None, description="Filter by class")
    type: Optional[TemplateType] = Field(None, description="Filter by template type: STUDENT, TEACHER or SCHOOLADMIN")

    # Status filters
    is_active: Optional[bool] = Field(None, description="Filter by active status")

    @field_validator('school_id', 'session_id', 'class_id')
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        """Treat empty query values as not given."""
        if value is not None:
            value = value.strip()
            if not value:
                return None
        return value
