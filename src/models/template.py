"""Card template model."""

from typing import Optional, List, Dict, Any
from sqlmodel import Field, SQLModel, Column, JSON
from sqlalchemy import Enum as SQLEnum, Index, UniqueConstraint
import uuid as uuid_lib

from src.models.base import BaseModel
from src.models.enums import TemplateType


class CardTemplate(BaseModel, SQLModel, table=True):
    """Versioned, scope-bound card layout for one entity type.

    The scope tuple is (school_id, session_id, class_id, type). A NULL
    session_id / class_id marks a broader default for that school.
    At most one row per scope tuple may have ``is_active`` set.
    """

    __tablename__ = "card_templates"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    school_id: str = Field(
        index=True,
        max_length=36,
        description="Owning school"
    )
    session_id: Optional[str] = Field(
        default=None,
        max_length=36,
        description="Academic session; NULL for a school-wide default"
    )
    class_id: Optional[str] = Field(
        default=None,
        max_length=36,
        description="Class override; NULL for a session-wide default"
    )
    type: TemplateType = Field(
        sa_column=Column(SQLEnum(TemplateType), nullable=False, index=True),
        description="STUDENT, TEACHER or SCHOOLADMIN"
    )

    name: str = Field(max_length=100, description="Template name")
    version: int = Field(default=1, ge=1, description="Version within the scope tuple and type")

    layout_config: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column(JSON, nullable=False),
        description="Page geometry plus drawable elements"
    )
    data_tags: List[str] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Whitelisted tags the layout may reference"
    )

    is_active: bool = Field(default=False, index=True)

    __table_args__ = (
        UniqueConstraint(
            'school_id', 'session_id', 'class_id', 'type', 'version',
            name='uq_card_templates_scope_version'
        ),
        Index('ix_card_templates_scope', 'school_id', 'session_id', 'class_id', 'type'),
    )

    @property
    def scope(self) -> tuple:
        """Exact scope tuple; at most one active template per tuple."""
        return (self.school_id, self.session_id, self.class_id, self.type)

    @property
    def scope_level(self) -> str:
        if self.session_id is None and self.class_id is None:
            return "school"
        if self.class_id is None:
            return "session"
        return "class"

    def __repr__(self) -> str:
        return f"<CardTemplate(id={self.id}, type={self.type}, scope_level={self.scope_level}, v{self.version}, active={self.is_active})>"
