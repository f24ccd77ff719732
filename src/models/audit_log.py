"""Audit log model."""

from typing import Optional, Dict, Any
from datetime import datetime
from sqlmodel import Field, SQLModel, Column, JSON
import uuid as uuid_lib

from src.models.enums import AuditStatus


class AuditLog(SQLModel, table=True):
    """Append-only record of card and template operations."""

    __tablename__ = "audit_logs"

    id: str = Field(
        default_factory=lambda: str(uuid_lib.uuid4()),
        primary_key=True,
        max_length=36
    )

    action: str = Field(max_length=64, index=True, description="e.g. GENERATE_PDF, CREATE_TEMPLATE")
    entity_type: str = Field(max_length=32, index=True, description="STUDENT, TEACHER, TEMPLATE ...")
    entity_id: Optional[str] = Field(default=None, max_length=36, index=True)
    school_id: Optional[str] = Field(default=None, max_length=36, index=True)

    performed_by: Optional[str] = Field(default=None, max_length=36)
    role: Optional[str] = Field(default=None, max_length=32)
    ip_address: Optional[str] = Field(default=None, max_length=45)
    user_agent: Optional[str] = Field(default=None, max_length=500)

    status: str = Field(default=AuditStatus.SUCCESS.value, max_length=10)
    error_message: Optional[str] = Field(default=None)
    event_metadata: Dict[str, Any] = Field(
        default_factory=dict,
        sa_column=Column("metadata", JSON, nullable=False),
    )

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)

    @property
    def is_success(self) -> bool:
        return self.status == AuditStatus.SUCCESS.value

    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, entity={self.entity_type}:{self.entity_id})>"
