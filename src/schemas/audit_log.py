"""Schemas for audit events."""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field

from src.models.enums import AuditStatus


class AuditActor(BaseModel):
    """Caller identity as forwarded by the upstream gateway."""

    user_id: Optional[str] = None
    role: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditEvent(BaseModel):
    """Schema for recording an audit event."""

    action: str = Field(..., max_length=64)
    entity_type: str = Field(..., max_length=32)
    entity_id: Optional[str] = None
    school_id: Optional[str] = None
    performed_by: Optional[str] = None
    role: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    status: AuditStatus = AuditStatus.SUCCESS
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def for_actor(cls, actor: Optional[AuditActor], **fields: Any) -> "AuditEvent":
        """Build an event stamped with the actor's identity."""
        if actor is not None:
            fields.setdefault("performed_by", actor.user_id)
            fields.setdefault("role", actor.role)
            fields.setdefault("ip_address", actor.ip_address)
            fields.setdefault("user_agent", actor.user_agent)
        return cls(**fields)
