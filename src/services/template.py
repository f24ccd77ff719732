"""Card template management service."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from src.core.exceptions import ConflictError, NotFoundError, ValidationError
from src.models.enums import TemplateType
from src.models.template import CardTemplate
from src.repositories.template import TemplateRepository, scope_filter
from src.schemas.audit_log import AuditActor, AuditEvent
from src.schemas.filters import TemplateFilterParams
from src.schemas.shared import MessageResponse
from src.schemas.template import (
    TemplateCreateRequest, TemplateUpdateRequest, TemplateResponse,
    TemplateListResponse, TemplateScope, TemplateTagsResponse
)
from src.services.providers import AuditSink
from src.services.template_resolver import TemplateResolver
from src.utils.template_tags import CONTEXT_TAGS, get_allowed_tags, validate_template_tags

logger = logging.getLogger(__name__)


class TemplateService:
    """Create, update, activate and resolve card templates."""

    def __init__(
        self,
        template_repo: TemplateRepository,
        audit_sink: Optional[AuditSink] = None,
        resolver: Optional[TemplateResolver] = None,
    ):
        self.template_repo = template_repo
        self.audit_sink = audit_sink
        self.resolver = resolver or TemplateResolver(template_repo)

    async def create_template(
        self, template_data: TemplateCreateRequest, actor: Optional[AuditActor] = None
    ) -> TemplateResponse:
        """Create a template; an active one replaces the active sibling in its scope."""
        self._check_tags(template_data.data_tags, template_data.type)

        scope = {
            "school_id": template_data.school_id,
            "session_id": template_data.session_id,
            "class_id": template_data.class_id,
            "type": template_data.type,
        }

        version = template_data.version
        if version is None:
            version = await self.template_repo.next_version(scope)
        elif await self.template_repo.version_exists(scope, version):
            raise ConflictError(
                f"Version {version} already exists for this scope",
                {"version": version},
            )

        data: Dict[str, Any] = {
            **scope,
            "name": template_data.name,
            "version": version,
            "layout_config": template_data.layout_config.to_storage(),
            "data_tags": template_data.data_tags,
            "is_active": template_data.is_active,
            "created_by": actor.user_id if actor else None,
        }

        try:
            template = await self.template_repo.create(data)
        except IntegrityError:
            raise ConflictError("A template with this scope and version already exists", {"version": version})

        logger.info(
            "Template created",
            extra={"event": "template.created", "template_id": template.id, "version": template.version},
        )
        self._audit("CREATE_TEMPLATE", template, actor, {"version": template.version, "is_active": template.is_active})

        return TemplateResponse.model_validate(template)

    async def get_templates(self, filters: TemplateFilterParams) -> TemplateListResponse:
        """List templates with scope filters and pagination."""
        query_filters = filters.model_dump(exclude={"page", "size"}, exclude_none=True)

        total = await self.template_repo.count(query_filters)
        templates = await self.template_repo.find_many(
            query_filters,
            sort=[("created_at", "desc")],
            offset=(filters.page - 1) * filters.size,
            limit=filters.size,
        )

        return TemplateListResponse.create(
            items=[TemplateResponse.model_validate(t) for t in templates],
            total=total,
            page=filters.page,
            size=filters.size,
        )

    async def get_template(self, template_id: str) -> TemplateResponse:
        template = await self.get_template_or_404(template_id)
        return TemplateResponse.model_validate(template)

    async def get_template_or_404(self, template_id: str) -> CardTemplate:
        template = await self.template_repo.get_by_id(template_id)
        if not template:
            raise NotFoundError("Template not found", {"template_id": template_id})
        return template

    async def update_template(
        self,
        template_id: str,
        template_data: TemplateUpdateRequest,
        actor: Optional[AuditActor] = None,
    ) -> TemplateResponse:
        """Apply the provided fields; setting is_active sweeps the scope."""
        template = await self.get_template_or_404(template_id)
        changes = template_data.model_dump(exclude_unset=True)

        if "data_tags" in changes:
            if changes["data_tags"] is None:
                raise ValidationError("dataTags cannot be empty")
            self._check_tags(changes["data_tags"], template.type)

        if "layout_config" in changes:
            if template_data.layout_config is None:
                raise ValidationError("layoutConfig cannot be null")
            changes["layout_config"] = template_data.layout_config.to_storage()

        if "name" in changes and not changes["name"]:
            raise ValidationError("Template name cannot be empty")

        if "is_active" in changes and changes["is_active"] is None:
            changes.pop("is_active")

        session_id = changes.get("session_id", template.session_id)
        class_id = changes.get("class_id", template.class_id)
        if class_id and not session_id:
            raise ValidationError("class_id requires session_id")

        for field, value in changes.items():
            setattr(template, field, value)
        template.updated_at = datetime.utcnow()
        template.updated_by = actor.user_id if actor else None

        template = await self._save(template, actor)

        self._audit("UPDATE_TEMPLATE", template, actor, {"fields": sorted(changes)})
        return TemplateResponse.model_validate(template)

    async def activate_template(self, template_id: str, actor: Optional[AuditActor] = None) -> TemplateResponse:
        """Activate a template and deactivate its siblings in one transaction."""
        template = await self.get_template_or_404(template_id)

        template.is_active = True
        template.updated_at = datetime.utcnow()
        template.updated_by = actor.user_id if actor else None
        template = await self._save(template, actor)

        self._audit("ACTIVATE_TEMPLATE", template, actor, {"version": template.version})
        return TemplateResponse.model_validate(template)

    async def deactivate_template(self, template_id: str, actor: Optional[AuditActor] = None) -> TemplateResponse:
        template = await self.get_template_or_404(template_id)

        template.is_active = False
        template.updated_at = datetime.utcnow()
        template.updated_by = actor.user_id if actor else None
        template = await self._save(template, actor)

        self._audit("DEACTIVATE_TEMPLATE", template, actor, {"version": template.version})
        return TemplateResponse.model_validate(template)

    async def delete_template(self, template_id: str, actor: Optional[AuditActor] = None) -> MessageResponse:
        """Soft delete an inactive template."""
        template = await self.get_template_or_404(template_id)

        # Cannot delete active template
        if template.is_active:
            raise ConflictError(
                "Cannot delete an active template; deactivate it first",
                {"template_id": template_id},
            )

        success = await self.template_repo.soft_delete(template_id, actor.user_id if actor else None)
        if not success:
            raise NotFoundError("Template not found", {"template_id": template_id})

        self._audit("DELETE_TEMPLATE", template, actor, {"version": template.version})
        return MessageResponse(message="Template deleted successfully")

    async def resolve_template(self, scope: TemplateScope) -> TemplateResponse:
        """Waterfall lookup of the template a scope would render with."""
        template = await self.resolver.resolve_scope(scope)
        return TemplateResponse.model_validate(template)

    @staticmethod
    def get_template_tags(template_type: TemplateType) -> TemplateTagsResponse:
        return TemplateTagsResponse(
            type=template_type,
            data_tags=get_allowed_tags(template_type),
            context_tags=sorted(CONTEXT_TAGS),
        )

    # ===== HELPER METHODS =====

    @staticmethod
    def _check_tags(data_tags: Any, template_type: TemplateType) -> None:
        result = validate_template_tags(data_tags, template_type)
        if not result["valid"]:
            raise ValidationError(result["message"], {"invalid_tags": result["invalid_tags"]})

    async def _save(self, template: CardTemplate, actor: Optional[AuditActor]) -> CardTemplate:
        # Captured up front: a failed commit expires the instance.
        details = scope_filter_json(template)
        try:
            return await self.template_repo.save(template, actor.user_id if actor else None)
        except IntegrityError:
            raise ConflictError("Another template in this scope already uses this version", details)

    def _audit(
        self,
        action: str,
        template: CardTemplate,
        actor: Optional[AuditActor],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self.audit_sink is None:
            return
        self.audit_sink.record(
            AuditEvent.for_actor(
                actor,
                action=action,
                entity_type="TEMPLATE",
                entity_id=template.id,
                school_id=template.school_id,
                metadata=metadata or {},
            )
        )


def scope_filter_json(template: CardTemplate) -> Dict[str, Any]:
    scope = scope_filter(template)
    scope["type"] = TemplateType(scope["type"]).value
    scope["version"] = template.version
    return scope
