"""Shared FastAPI dependencies: caller identity and service wiring."""

from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.database import get_db
from src.repositories.template import TemplateRepository
from src.schemas.audit_log import AuditActor
from src.services.audit import DatabaseAuditSink
from src.services.card import CardService
from src.services.providers import ActiveSessionProvider, AuditSink, EntityDataProvider
from src.services.records_client import RecordsServiceClient
from src.services.template import TemplateService
from src.services.template_resolver import TemplateResolver

_audit_sink: Optional[DatabaseAuditSink] = None


def _get_client_ip(request: Request) -> Optional[str]:
    """Get real client IP address."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    if request.client and request.client.host:
        return request.client.host

    return None


async def get_current_actor(request: Request) -> AuditActor:
    """
    Caller identity forwarded by the gateway.

    Authentication happens upstream; the service only records who acted.
    """
    return AuditActor(
        user_id=request.headers.get("X-User-Id"),
        role=request.headers.get("X-User-Role"),
        ip_address=_get_client_ip(request),
        user_agent=request.headers.get("User-Agent"),
    )


def get_audit_sink() -> AuditSink:
    global _audit_sink
    if _audit_sink is None:
        _audit_sink = DatabaseAuditSink()
    return _audit_sink


def get_entity_provider() -> EntityDataProvider:
    return RecordsServiceClient()


def get_session_provider() -> ActiveSessionProvider:
    return RecordsServiceClient()


async def get_template_resolver(session: AsyncSession = Depends(get_db)) -> TemplateResolver:
    return TemplateResolver(TemplateRepository(session))


async def get_template_service(
    session: AsyncSession = Depends(get_db),
    audit_sink: AuditSink = Depends(get_audit_sink),
) -> TemplateService:
    """Get template service dependency."""
    template_repo = TemplateRepository(session)
    return TemplateService(template_repo, audit_sink=audit_sink)


async def get_card_service(
    resolver: TemplateResolver = Depends(get_template_resolver),
    entity_provider: EntityDataProvider = Depends(get_entity_provider),
    session_provider: ActiveSessionProvider = Depends(get_session_provider),
    audit_sink: AuditSink = Depends(get_audit_sink),
) -> CardService:
    """Get card service dependency."""
    return CardService(resolver, entity_provider, session_provider, audit_sink=audit_sink)
