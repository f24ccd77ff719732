"""Repository for audit log writes."""

from typing import List, Optional
from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.audit_log import AuditLog
from src.schemas.audit_log import AuditEvent


class AuditLogRepository:
    """Repository for audit log entries."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, event: AuditEvent) -> AuditLog:
        """Persist one audit event."""
        data = event.model_dump(mode="json", exclude={"metadata"})
        entry = AuditLog(**data, event_metadata=dict(event.metadata))

        self.session.add(entry)
        await self.session.commit()
        await self.session.refresh(entry)
        return entry

    async def list_for_entity(self, entity_type: str, entity_id: Optional[str] = None, limit: int = 50) -> List[AuditLog]:
        """Latest events for an entity type (optionally one entity)."""
        query = select(AuditLog).where(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(AuditLog.entity_id == entity_id)
        query = query.order_by(desc(AuditLog.created_at)).limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
