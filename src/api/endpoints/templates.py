"""Card template management endpoints."""

from fastapi import APIRouter, Depends, status

from src.api.dependencies import get_current_actor, get_template_service
from src.models.enums import TemplateType
from src.schemas.audit_log import AuditActor
from src.schemas.filters import TemplateFilterParams
from src.schemas.shared import MessageResponse
from src.schemas.template import (
    TemplateCreateRequest,
    TemplateUpdateRequest,
    TemplateResponse,
    TemplateListResponse,
    TemplateScope,
    TemplateTagsResponse,
)
from src.services.template import TemplateService

router = APIRouter()


@router.get("/", response_model=TemplateListResponse, summary="List card templates")
async def get_templates(
    filters: TemplateFilterParams = Depends(),
    service: TemplateService = Depends(get_template_service)
):
    """
    List card templates with scope filters and pagination.

    Soft-deleted templates are never listed.
    """
    return await service.get_templates(filters)


@router.get("/resolve", response_model=TemplateResponse, summary="Resolve the template for a scope")
async def resolve_template(
    scope: TemplateScope = Depends(),
    service: TemplateService = Depends(get_template_service)
):
    """
    Return the active template that cards in this scope render with.

    Lookup order: class template, session default, school default.
    """
    return await service.resolve_template(scope)


@router.get("/tags/{template_type}", response_model=TemplateTagsResponse, summary="Get allowed tags")
async def get_template_tags(
    template_type: TemplateType,
    service: TemplateService = Depends(get_template_service)
):
    """Tags a template of this type may declare, plus the engine-injected context tags."""
    return service.get_template_tags(template_type)


@router.get("/{template_id}", response_model=TemplateResponse, summary="Get card template by ID")
async def get_template(
    template_id: str,
    service: TemplateService = Depends(get_template_service)
):
    return await service.get_template(template_id)


@router.post(
    "/",
    response_model=TemplateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create card template"
)
async def create_template(
    template_data: TemplateCreateRequest,
    actor: AuditActor = Depends(get_current_actor),
    service: TemplateService = Depends(get_template_service)
):
    """
    Create a card template.

    The version auto-increments within the scope when omitted. Templates
    are active by default, which deactivates the previously active template
    of the same scope.
    """
    return await service.create_template(template_data, actor)


@router.put("/{template_id}", response_model=TemplateResponse, summary="Update card template")
async def update_template(
    template_id: str,
    template_data: TemplateUpdateRequest,
    actor: AuditActor = Depends(get_current_actor),
    service: TemplateService = Depends(get_template_service)
):
    """Update name, layout, scope, data tags or activation of a template."""
    return await service.update_template(template_id, template_data, actor)


@router.post("/{template_id}/activate", response_model=TemplateResponse, summary="Activate card template")
async def activate_template(
    template_id: str,
    actor: AuditActor = Depends(get_current_actor),
    service: TemplateService = Depends(get_template_service)
):
    """Activate a template; other active templates of its scope are deactivated."""
    return await service.activate_template(template_id, actor)


@router.post("/{template_id}/deactivate", response_model=TemplateResponse, summary="Deactivate card template")
async def deactivate_template(
    template_id: str,
    actor: AuditActor = Depends(get_current_actor),
    service: TemplateService = Depends(get_template_service)
):
    return await service.deactivate_template(template_id, actor)


@router.delete("/{template_id}", response_model=MessageResponse, summary="Delete card template")
async def delete_template(
    template_id: str,
    actor: AuditActor = Depends(get_current_actor),
    service: TemplateService = Depends(get_template_service)
):
    """Soft delete an inactive template. Active templates must be deactivated first."""
    return await service.delete_template(template_id, actor)
