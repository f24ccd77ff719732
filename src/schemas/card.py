"""Card entity, card data and render request schemas."""

from typing import Any, Dict, List, Optional
from datetime import date
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

from src.models.enums import BatchMode, TemplateType
from src.schemas.template import LayoutConfig


# ===== ENTITY REFERENCES (supplied by the records service) =====

class SchoolInfo(BaseModel):
    """School identity fields used on cards."""

    id: str
    name: Optional[str] = None
    address: Optional[str] = None
    contact_email: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SessionInfo(BaseModel):
    """Academic session reference."""

    id: str
    session_name: Optional[str] = None
    active_status: bool = True
    archived: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ClassInfo(BaseModel):
    id: str
    class_name: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CardEntity(BaseModel):
    """A student, teacher or school admin with references resolved to display fields.

    Unknown fields sent by the records service are kept on the object but
    never reach a card: only whitelisted tags are mapped.
    """

    id: str
    entity_type: TemplateType
    school: SchoolInfo
    session: Optional[SessionInfo] = None
    class_info: Optional[ClassInfo] = Field(None, alias="class")

    name: Optional[str] = None
    admission_no: Optional[str] = None
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    dob: Optional[date] = None
    blood_group: Optional[str] = None
    mobile: Optional[str] = None
    address: Optional[str] = None
    photo_url: Optional[str] = None
    aadhaar: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    @property
    def school_id(self) -> str:
        return self.school.id

    @property
    def session_id(self) -> Optional[str]:
        return self.session.id if self.session else None

    @property
    def class_id(self) -> Optional[str]:
        return self.class_info.id if self.class_info else None

    @property
    def stable_identifier(self) -> Optional[str]:
        """Admission number for students, e-mail for staff."""
        if self.entity_type == TemplateType.STUDENT:
            return self.admission_no
        return self.email


class CardContext(BaseModel):
    """Contextual fields merged into every card of a render call."""

    school: SchoolInfo
    session_name: Optional[str] = None
    admin_phone: Optional[str] = None


# ===== RENDER-READY DATA =====

class CardData(BaseModel):
    """Layout plus data dictionary for one page."""

    template_id: Optional[str] = None
    template_type: Optional[TemplateType] = None
    layout_config: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)
    allowed_tags: Optional[List[str]] = Field(
        None,
        description="Tags the layout may substitute; None allows every key in data"
    )


# ===== REQUESTS =====

class RenderCardRequest(BaseModel):
    """Ad-hoc render of a layout against sample data (design preview)."""

    layout_config: LayoutConfig = Field(default_factory=LayoutConfig)
    data: Dict[str, Any] = Field(default_factory=dict)


class BatchRenderRequest(BaseModel):
    """Bulk card generation request."""

    school_id: str = Field(..., max_length=36)
    entity_ids: List[str] = Field(..., min_length=1)
    mode: BatchMode = BatchMode.ARCHIVE


class EntityRef(BaseModel):
    """Pointer to one entity to render in a batch."""

    entity_type: TemplateType
    entity_id: str
    school_id: str
