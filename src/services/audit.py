"""Audit sinks: fire-and-forget recording of card and template actions."""

import asyncio
import logging
from typing import Callable, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from src.repositories.audit_log import AuditLogRepository
from src.schemas.audit_log import AuditEvent
from src.services.providers import AuditSink

logger = logging.getLogger(__name__)


class DatabaseAuditSink(AuditSink):
    """
    Write audit events to the ``audit_logs`` table in the background.

    Each event is written on its own session so a failing audit write can
    never roll back or delay the request that produced it.
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from src.core.database import async_session
            session_factory = async_session
        self.session_factory = session_factory
        self._pending: Set[asyncio.Task] = set()

    def record(self, event: AuditEvent) -> None:
        try:
            task = asyncio.get_running_loop().create_task(self._write(event))
        except RuntimeError:
            logger.warning(f"No running event loop, audit event dropped: {event.action}")
            return

        # Hold a reference until the write finishes.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, event: AuditEvent) -> None:
        try:
            async with self.session_factory() as session:
                await AuditLogRepository(session).create(event)
        except Exception as e:
            logger.error(
                f"Failed to write audit log: {str(e)}",
                extra={"event": "audit.write_failed", "action": event.action, "entity_id": event.entity_id},
            )

    async def flush(self) -> None:
        """Wait for writes scheduled so far (used at shutdown and in tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
