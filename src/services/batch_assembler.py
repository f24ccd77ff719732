"""Render cards for many entities into one PDF or a ZIP of PDFs."""

import io
import logging
import re
import zipfile
from typing import Dict, List, Optional, Sequence, Set

from src.core.config import settings
from src.core.exceptions import FatalBatchFailure, ValidationError
from src.models.enums import BatchMode, TemplateType
from src.schemas.audit_log import AuditActor, AuditEvent
from src.schemas.card import CardContext, CardData, CardEntity, EntityRef
from src.services.card_data import CardDataMapper, load_card_context
from src.services.card_renderer import CardRenderer, PreparedPage
from src.services.providers import AuditSink, EntityDataProvider
from src.services.template_resolver import TemplateResolver

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
ZIP_CONTENT_TYPE = "application/zip"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9]")


class BatchFailure:
    """One entity left out of a batch."""

    def __init__(self, entity_id: str, stage: str, reason: str):
        self.entity_id = entity_id
        self.stage = stage
        self.reason = reason

    def __repr__(self) -> str:
        return f"<BatchFailure(entity_id={self.entity_id}, stage={self.stage}, reason={self.reason})>"


class BatchResult:
    """Output of a batch render plus what was left out."""

    def __init__(
        self,
        buffer: bytes,
        content_type: str,
        suggested_filename: str,
        included: List[str],
        failed: List[BatchFailure],
    ):
        self.buffer = buffer
        self.content_type = content_type
        self.suggested_filename = suggested_filename
        self.included = included
        self.failed = failed


class _RenderedCard:
    def __init__(self, entity: CardEntity, card_data: CardData, page: PreparedPage, pdf_bytes: Optional[bytes] = None):
        self.entity = entity
        self.card_data = card_data
        self.page = page
        self.pdf_bytes = pdf_bytes


def sanitize_name(value: str) -> str:
    return _UNSAFE_CHARS.sub("_", value)


def archive_filename(entity: CardEntity, taken: Optional[Set[str]] = None) -> str:
    """
    ``<identifier>_<name>.pdf`` inside a batch archive.

    The identifier is the admission number for students and the e-mail for
    staff; without one the file is just ``<name>.pdf``. Names already in
    ``taken`` get a ``_<n>`` suffix and the chosen name is added to it.
    """
    safe_name = sanitize_name(entity.name or TemplateType(entity.entity_type).value.title())
    identifier = entity.stable_identifier
    stem = f"{identifier}_{safe_name}" if identifier else safe_name

    if taken is None:
        return f"{stem}.pdf"

    filename = f"{stem}.pdf"
    counter = 2
    while filename in taken:
        filename = f"{stem}_{counter}.pdf"
        counter += 1
    taken.add(filename)
    return filename


def batch_filename(entity_type: TemplateType, mode: BatchMode) -> str:
    extension = "zip" if mode == BatchMode.ARCHIVE else "pdf"
    return f"{TemplateType(entity_type).value.lower()}s-id-cards.{extension}"


class BatchAssembler:
    """
    Drive resolve -> map -> render over a list of entities.

    Entities are processed one at a time in input order. A failure at any
    stage excludes only that entity; the batch fails as a whole only when
    nothing could be rendered.
    """

    def __init__(
        self,
        resolver: TemplateResolver,
        entity_provider: EntityDataProvider,
        renderer: Optional[CardRenderer] = None,
        mapper: Optional[CardDataMapper] = None,
        audit_sink: Optional[AuditSink] = None,
        compression_level: Optional[int] = None,
    ):
        self.resolver = resolver
        self.entity_provider = entity_provider
        self.renderer = renderer or CardRenderer()
        self.mapper = mapper or CardDataMapper()
        self.audit_sink = audit_sink
        self.compression_level = (
            compression_level if compression_level is not None else settings.CARD_ARCHIVE_COMPRESSION_LEVEL
        )

    async def render_batch(
        self,
        entity_refs: Sequence[EntityRef],
        mode: BatchMode = BatchMode.ARCHIVE,
        actor: Optional[AuditActor] = None,
        session_name: Optional[str] = None,
    ) -> BatchResult:
        if not entity_refs:
            raise ValidationError("At least one entity is required")
        if len(entity_refs) > settings.CARD_BATCH_MAX_ENTITIES:
            raise ValidationError(
                f"A batch may contain at most {settings.CARD_BATCH_MAX_ENTITIES} entities",
                {"requested": len(entity_refs)},
            )

        mode = BatchMode(mode)
        contexts: Dict[str, CardContext] = {}
        rendered: List[_RenderedCard] = []
        failed: List[BatchFailure] = []

        for ref in entity_refs:
            card = await self._prepare(ref, mode, contexts, session_name, failed)
            if card is not None:
                rendered.append(card)

        if not rendered:
            logger.error(
                "Batch produced no cards",
                extra={"event": "card.batch_failed", "requested": len(entity_refs), "failed": len(failed)},
            )
            raise FatalBatchFailure(
                "Failed to generate cards for any of the requested entities",
                {"requested": len(entity_refs), "failed": len(failed)},
            )

        entity_type = TemplateType(entity_refs[0].entity_type)
        if mode == BatchMode.COMBINED:
            buffer = self.renderer.render_pages([card.page for card in rendered])
            content_type = PDF_CONTENT_TYPE
        else:
            buffer = self._build_archive(rendered)
            content_type = ZIP_CONTENT_TYPE

        result = BatchResult(
            buffer=buffer,
            content_type=content_type,
            suggested_filename=batch_filename(entity_type, mode),
            included=[card.entity.id for card in rendered],
            failed=failed,
        )

        logger.info(
            "Batch rendered",
            extra={
                "event": "card.batch_rendered",
                "mode": mode.value,
                "included": len(result.included),
                "failed": len(result.failed),
            },
        )

        if self.audit_sink is not None:
            self.audit_sink.record(
                AuditEvent.for_actor(
                    actor,
                    action="BULK_GENERATE_PDF",
                    entity_type=entity_type.value,
                    school_id=entity_refs[0].school_id,
                    metadata={"count": len(result.included), "failed": len(result.failed), "mode": mode.value},
                )
            )

        return result

    async def _prepare(
        self,
        ref: EntityRef,
        mode: BatchMode,
        contexts: Dict[str, CardContext],
        session_name: Optional[str],
        failed: List[BatchFailure],
    ) -> Optional[_RenderedCard]:
        stage = "fetch"
        try:
            entity = await self.entity_provider.get_by_id(ref.entity_type, ref.entity_id, ref.school_id)

            stage = "resolve"
            template = await self.resolver.resolve(
                entity.school_id, entity.session_id, entity.class_id, entity.entity_type
            )

            stage = "map"
            context = contexts.get(entity.school_id)
            if context is None:
                context = await load_card_context(entity, self.entity_provider, session_name)
                contexts[entity.school_id] = context
            card_data = self.mapper.build_card_data(entity, template, context)

            stage = "render"
            card = _RenderedCard(entity, card_data, self.renderer.prepare_page(card_data))
            if mode == BatchMode.ARCHIVE:
                card.pdf_bytes = self.renderer.render_pages([card.page])
            return card
        except Exception as e:
            logger.warning(
                f"Skipped entity in batch: {e}",
                extra={
                    "event": "card.batch_entity_failed",
                    "entity_id": ref.entity_id,
                    "entity_type": TemplateType(ref.entity_type).value,
                    "stage": stage,
                    "error_class": type(e).__name__,
                },
            )
            failed.append(BatchFailure(ref.entity_id, stage, type(e).__name__))
            return None

    def _build_archive(self, cards: List[_RenderedCard]) -> bytes:
        buffer = io.BytesIO()
        taken: Set[str] = set()

        with zipfile.ZipFile(
            buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compression_level
        ) as archive:
            for card in cards:
                archive.writestr(archive_filename(card.entity, taken), card.pdf_bytes)

        zip_bytes = buffer.getvalue()
        buffer.close()

        return zip_bytes
