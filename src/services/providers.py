"""Interfaces for the collaborators the card engine consumes."""

from abc import ABC, abstractmethod
from typing import Optional

from src.models.enums import TemplateType
from src.schemas.audit_log import AuditEvent
from src.schemas.card import CardEntity, SessionInfo


class EntityDataProvider(ABC):
    """Source of display-ready students, teachers and school admins."""

    @abstractmethod
    async def get_by_id(self, entity_type: TemplateType, entity_id: str, school_id: str) -> CardEntity:
        """Entity with class/session/school references resolved.

        Raises NotFoundError when the entity does not exist in that school.
        """
        pass

    @abstractmethod
    async def get_admin_phone(self, school_id: str) -> Optional[str]:
        """Phone number of the school's first active administrator, if any."""
        pass


class ActiveSessionProvider(ABC):
    """Guard that a school has a current, non-archived session."""

    @abstractmethod
    async def get_active(self, school_id: str) -> SessionInfo:
        """Raises PreconditionError when no usable session exists."""
        pass


class AuditSink(ABC):
    """Fire-and-forget audit recording."""

    @abstractmethod
    def record(self, event: AuditEvent) -> None:
        """Must return immediately and never raise."""
        pass
