"""ID card generation endpoints."""

from fastapi import APIRouter, Depends, Query, Response

from src.api.dependencies import get_card_service, get_current_actor
from src.models.enums import TemplateType
from src.schemas.audit_log import AuditActor
from src.schemas.card import BatchRenderRequest, CardData, RenderCardRequest
from src.services.card import CardService

router = APIRouter()


@router.post("/render", response_class=Response, summary="Render a layout preview")
async def render_preview(
    request: RenderCardRequest,
    service: CardService = Depends(get_card_service)
):
    """
    Render an unsaved layout against sample data.

    **Response**: Binary PDF with one page
    """
    pdf_bytes = service.render_preview(request.layout_config.to_storage(), request.data)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": 'inline; filename="card-preview.pdf"'}
    )


@router.get("/{entity_type}/{entity_id}/pdf", response_class=Response, summary="Generate ID card PDF")
async def generate_card_pdf(
    entity_type: TemplateType,
    entity_id: str,
    school_id: str = Query(..., description="School the entity belongs to"),
    actor: AuditActor = Depends(get_current_actor),
    service: CardService = Depends(get_card_service)
):
    """
    Generate the ID card of one student, teacher or school admin.

    **Response**: Binary PDF for download or preview
    **Requires**: an active academic session for the school
    """
    card = await service.generate_card(entity_type, entity_id, school_id, actor)
    return Response(
        content=card.content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{card.filename}"'}
    )


@router.get("/{entity_type}/{entity_id}/data", response_model=CardData, summary="Get card data")
async def get_card_data(
    entity_type: TemplateType,
    entity_id: str,
    school_id: str = Query(..., description="School the entity belongs to"),
    service: CardService = Depends(get_card_service)
):
    """Resolved layout and the whitelisted data one card renders from."""
    return await service.get_card_data(entity_type, entity_id, school_id)


@router.post("/{entity_type}/bulk", response_class=Response, summary="Generate ID cards in bulk")
async def generate_bulk_cards(
    entity_type: TemplateType,
    request: BatchRenderRequest,
    actor: AuditActor = Depends(get_current_actor),
    service: CardService = Depends(get_card_service)
):
    """
    Generate ID cards for many entities of one school.

    **Modes**: `archive` (ZIP of one PDF per entity) or `combined` (one PDF)
    **Partial failure**: entities that fail are left out; counts are in the
    `X-Cards-Included` and `X-Cards-Failed` headers
    """
    result = await service.generate_batch(
        entity_type, request.school_id, request.entity_ids, request.mode, actor
    )
    return Response(
        content=result.buffer,
        media_type=result.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{result.suggested_filename}"',
            "X-Cards-Included": str(len(result.included)),
            "X-Cards-Failed": str(len(result.failed)),
        }
    )
