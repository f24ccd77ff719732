"""Card template repository."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, and_, update, func, desc, asc
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.template import CardTemplate

logger = logging.getLogger(__name__)

SCOPE_FIELDS = ("school_id", "session_id", "class_id", "type")

# Filter keys the repository accepts; anything else is a programming error.
FILTERABLE_FIELDS = set(SCOPE_FIELDS) | {"id", "is_active", "version", "name"}


def _conditions(filters: Dict[str, Any], include_deleted: bool = False) -> List[Any]:
    """Equality filters; a None value means IS NULL."""
    conditions = []
    for field, value in filters.items():
        if field not in FILTERABLE_FIELDS:
            raise ValueError(f"Unsupported template filter: {field}")
        column = getattr(CardTemplate, field)
        conditions.append(column.is_(None) if value is None else column == value)
    if not include_deleted:
        conditions.append(CardTemplate.deleted_at.is_(None))
    return conditions


def scope_filter(template: CardTemplate) -> Dict[str, Any]:
    """Exact scope tuple of a template as a filter dict."""
    return {field: getattr(template, field) for field in SCOPE_FIELDS}


class TemplateRepository:
    """Persistence for card templates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, template_id: str) -> Optional[CardTemplate]:
        """Get template by ID (not deleted)."""
        query = select(CardTemplate).where(
            and_(
                CardTemplate.id == template_id,
                CardTemplate.deleted_at.is_(None)
            )
        )
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_one(self, filters: Dict[str, Any]) -> Optional[CardTemplate]:
        """First template matching every filter, newest version first."""
        query = (
            select(CardTemplate)
            .where(and_(*_conditions(filters)))
            .order_by(desc(CardTemplate.version), desc(CardTemplate.created_at))
            .limit(1)
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def find_many(
        self,
        filters: Dict[str, Any],
        sort: Optional[Sequence[Tuple[str, str]]] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> List[CardTemplate]:
        """Templates matching filters, ordered by ``sort`` pairs of (field, 'asc'|'desc')."""
        query = select(CardTemplate).where(and_(*_conditions(filters)))

        for field, direction in (sort or [("created_at", "desc")]):
            column = getattr(CardTemplate, field)
            query = query.order_by(desc(column) if direction == "desc" else asc(column))

        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count(self, filters: Dict[str, Any]) -> int:
        query = select(func.count()).select_from(CardTemplate).where(and_(*_conditions(filters)))
        result = await self.session.execute(query)
        return result.scalar() or 0

    async def next_version(self, filters: Dict[str, Any]) -> int:
        """Highest version in the scope tuple plus one (deleted rows included)."""
        query = select(func.max(CardTemplate.version)).where(
            and_(*_conditions(filters, include_deleted=True))
        )
        result = await self.session.execute(query)
        latest = result.scalar()
        return (latest or 0) + 1

    async def update_many(
        self,
        filters: Dict[str, Any],
        patch: Dict[str, Any],
        exclude_id: Optional[str] = None,
        commit: bool = True,
    ) -> int:
        """Bulk update; returns affected row count."""
        conditions = _conditions(filters)
        if exclude_id is not None:
            conditions.append(CardTemplate.id != exclude_id)

        # "fetch" keeps already-loaded rows in this session in step.
        query = (
            update(CardTemplate)
            .where(and_(*conditions))
            .values(**patch)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(query)
        if commit:
            await self.session.commit()
        return result.rowcount or 0

    async def create(self, data: Dict[str, Any]) -> CardTemplate:
        """Insert a template; an active one sweeps its siblings in the same transaction."""
        template = CardTemplate(**data)
        return await self.save(template)

    async def save(self, template: CardTemplate, updated_by: Optional[str] = None) -> CardTemplate:
        """
        Persist a new or modified template as one transaction.

        When the template is active, every other active template with the
        identical scope tuple is deactivated before commit. Sibling rows are
        locked first (FOR UPDATE, where the database supports it) so two
        concurrent activations in one scope serialize instead of both
        ending up active.
        """
        try:
            if template.is_active:
                # Siblings go first so the target's own pending change is
                # not flushed while another row in the scope is still active.
                with self.session.no_autoflush:
                    await self._deactivate_siblings(template, updated_by)

            self.session.add(template)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(template)
        return template

    async def _deactivate_siblings(self, template: CardTemplate, updated_by: Optional[str]) -> int:
        scope = scope_filter(template)

        lock_query = (
            select(CardTemplate.id)
            .where(and_(*_conditions(scope)))
            .with_for_update()
        )
        await self.session.execute(lock_query)

        patch: Dict[str, Any] = {"is_active": False, "updated_at": datetime.utcnow()}
        if updated_by is not None:
            patch["updated_by"] = updated_by

        swept = await self.update_many(
            {**scope, "is_active": True},
            patch,
            exclude_id=template.id,
            commit=False,
        )
        if swept:
            logger.info(
                "Deactivated sibling templates",
                extra={"event": "template.siblings_deactivated", "template_id": template.id, "count": swept},
            )
        return swept

    async def soft_delete(self, template_id: str, deleted_by: Optional[str] = None) -> bool:
        """Soft delete template."""
        query = update(CardTemplate).where(
            and_(CardTemplate.id == template_id, CardTemplate.deleted_at.is_(None))
        ).values(
            deleted_at=datetime.utcnow(),
            deleted_by=deleted_by,
            is_active=False,
        )

        result = await self.session.execute(query)
        await self.session.commit()
        return (result.rowcount or 0) > 0

    async def version_exists(self, filters: Dict[str, Any], version: int) -> bool:
        """Whether the scope tuple already used a version (deleted rows included)."""
        query = select(func.count()).select_from(CardTemplate).where(
            and_(*_conditions(filters, include_deleted=True), CardTemplate.version == version)
        )
        result = await self.session.execute(query)
        return (result.scalar() or 0) > 0
