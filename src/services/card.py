"""Card generation service: single cards, card data and batches."""

import logging
from typing import Any, Dict, List, Optional

from src.models.enums import BatchMode, TemplateType
from src.schemas.audit_log import AuditActor, AuditEvent
from src.schemas.card import CardData, EntityRef
from src.services.batch_assembler import BatchAssembler, BatchResult
from src.services.card_data import CardDataMapper, load_card_context
from src.services.card_renderer import CardRenderer
from src.services.providers import ActiveSessionProvider, AuditSink, EntityDataProvider
from src.services.template_resolver import TemplateResolver

logger = logging.getLogger(__name__)


class RenderedCard:
    """PDF bytes of one card plus the name it should be served under."""

    def __init__(self, content: bytes, filename: str, template_id: Optional[str] = None):
        self.content = content
        self.filename = filename
        self.template_id = template_id


class CardService:
    """Resolve, map and render ID cards for students, teachers and admins."""

    def __init__(
        self,
        resolver: TemplateResolver,
        entity_provider: EntityDataProvider,
        session_provider: ActiveSessionProvider,
        audit_sink: Optional[AuditSink] = None,
        renderer: Optional[CardRenderer] = None,
        mapper: Optional[CardDataMapper] = None,
    ):
        self.resolver = resolver
        self.entity_provider = entity_provider
        self.session_provider = session_provider
        self.audit_sink = audit_sink
        self.renderer = renderer or CardRenderer()
        self.mapper = mapper or CardDataMapper()

    async def get_card_data(
        self,
        entity_type: TemplateType,
        entity_id: str,
        school_id: str,
    ) -> CardData:
        """Render-ready layout and data for one entity."""
        session = await self.session_provider.get_active(school_id)

        entity = await self.entity_provider.get_by_id(entity_type, entity_id, school_id)
        template = await self.resolver.resolve(
            entity.school_id, entity.session_id, entity.class_id, entity.entity_type
        )
        context = await load_card_context(entity, self.entity_provider, session.session_name)

        return self.mapper.build_card_data(entity, template, context)

    async def generate_card(
        self,
        entity_type: TemplateType,
        entity_id: str,
        school_id: str,
        actor: Optional[AuditActor] = None,
    ) -> RenderedCard:
        """PDF for one entity; requires an active session for the school."""
        entity_type = TemplateType(entity_type)
        card_data = await self.get_card_data(entity_type, entity_id, school_id)
        pdf_bytes = self.renderer.render([card_data])

        logger.info(
            "Card generated",
            extra={"event": "card.generated", "entity_id": entity_id, "template_id": card_data.template_id},
        )
        self._audit(
            AuditEvent.for_actor(
                actor,
                action="GENERATE_PDF",
                entity_type=entity_type.value,
                entity_id=entity_id,
                school_id=school_id,
                metadata={"count": 1, "template_id": card_data.template_id},
            )
        )

        return RenderedCard(
            content=pdf_bytes,
            filename=f"{entity_type.value.lower()}-id.pdf",
            template_id=card_data.template_id,
        )

    async def generate_batch(
        self,
        entity_type: TemplateType,
        school_id: str,
        entity_ids: List[str],
        mode: BatchMode = BatchMode.ARCHIVE,
        actor: Optional[AuditActor] = None,
    ) -> BatchResult:
        """Cards for many entities of one school as a combined PDF or ZIP."""
        session = await self.session_provider.get_active(school_id)

        refs = [
            EntityRef(entity_type=entity_type, entity_id=entity_id, school_id=school_id)
            for entity_id in entity_ids
        ]
        assembler = BatchAssembler(
            resolver=self.resolver,
            entity_provider=self.entity_provider,
            renderer=self.renderer,
            mapper=self.mapper,
            audit_sink=self.audit_sink,
        )
        return await assembler.render_batch(refs, mode, actor=actor, session_name=session.session_name)

    def render_preview(self, layout_config: Dict[str, Any], data: Dict[str, Any]) -> bytes:
        """Render an unsaved layout against sample data."""
        return self.renderer.render_card(layout_config, data)

    def _audit(self, event: AuditEvent) -> None:
        if self.audit_sink is not None:
            self.audit_sink.record(event)
