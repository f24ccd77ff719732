"""Card template schemas for request/response validation."""

from typing import Any, Dict, List, Literal, Optional, Union
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from src.core.config import settings
from src.models.enums import ElementType, LayoutUnit, TemplateType
from src.schemas.shared import BaseListResponse
from src.utils.template_tags import normalize_tags


# ===== LAYOUT =====

class LayoutElement(BaseModel):
    """One drawable element of a card layout."""

    type: ElementType
    x: float = 0
    y: float = 0
    width: Optional[float] = Field(None, gt=0)
    height: Optional[float] = Field(None, gt=0)
    font_size: Optional[float] = Field(None, gt=0, alias="fontSize", description="Points, whatever the layout unit")
    font_family: Optional[str] = Field(None, alias="fontFamily")
    color: Optional[str] = None
    content: Optional[str] = None
    align: Optional[Literal["left", "center", "right"]] = None

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class LayoutConfig(BaseModel):
    """Page geometry plus an ordered list of elements."""

    width: float = Field(default_factory=lambda: settings.CARD_DEFAULT_WIDTH_MM, gt=0)
    height: float = Field(default_factory=lambda: settings.CARD_DEFAULT_HEIGHT_MM, gt=0)
    unit: LayoutUnit = LayoutUnit.MM
    elements: List[LayoutElement] = Field(default_factory=list)
    zones: Optional[Union[Literal["auto"], Dict[str, Optional[Dict[str, Any]]]]] = Field(
        None,
        description="Zone layout expanded into elements when no elements are given; each zone is an object"
    )

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_storage(self) -> Dict[str, Any]:
        """Dict in the stored JSON shape (camelCase element keys)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ===== REQUEST SCHEMAS =====

class TemplateCreateRequest(BaseModel):
    """Schema for creating a card template."""

    school_id: str = Field(..., max_length=36)
    session_id: Optional[str] = Field(None, max_length=36, description="Omit for a school-wide default")
    class_id: Optional[str] = Field(None, max_length=36, description="Omit for a session-wide default")
    type: TemplateType
    name: str = Field(..., min_length=1, max_length=100)
    version: Optional[int] = Field(None, ge=1, description="Auto-incremented within the scope when omitted")
    layout_config: LayoutConfig = Field(default_factory=LayoutConfig)
    data_tags: List[str] = Field(..., min_length=1)
    is_active: bool = True

    @field_validator("data_tags")
    @classmethod
    def dedupe_tags(cls, data_tags: List[str]) -> List[str]:
        return normalize_tags(data_tags)

    @model_validator(mode="after")
    def class_requires_session(self) -> "TemplateCreateRequest":
        if self.class_id and not self.session_id:
            raise ValueError("class_id requires session_id")
        return self


class TemplateUpdateRequest(BaseModel):
    """Schema for updating a card template. Only provided fields change."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    session_id: Optional[str] = Field(None, max_length=36)
    class_id: Optional[str] = Field(None, max_length=36)
    layout_config: Optional[LayoutConfig] = None
    data_tags: Optional[List[str]] = Field(None, min_length=1)
    is_active: Optional[bool] = None

    @field_validator("data_tags")
    @classmethod
    def dedupe_tags(cls, data_tags: Optional[List[str]]) -> Optional[List[str]]:
        return normalize_tags(data_tags) if data_tags is not None else None


class TemplateScope(BaseModel):
    """Scope tuple used for waterfall resolution."""

    school_id: Optional[str] = None
    session_id: Optional[str] = None
    class_id: Optional[str] = None
    type: Optional[TemplateType] = None


# ===== RESPONSE SCHEMAS =====

class TemplateResponse(BaseModel):
    """Schema for card template response."""

    id: str
    school_id: str
    session_id: Optional[str] = None
    class_id: Optional[str] = None
    type: TemplateType
    name: str
    version: int
    layout_config: Dict[str, Any]
    data_tags: List[str]
    is_active: bool
    scope_level: str
    created_at: datetime
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class TemplateListResponse(BaseListResponse[TemplateResponse]):
    """Schema for card template list response."""
    pass


class TemplateTagsResponse(BaseModel):
    """Whitelisted and engine-injected tags for a template type."""

    type: TemplateType
    data_tags: List[str]
    context_tags: List[str]
