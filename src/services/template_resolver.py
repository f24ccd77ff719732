"""Waterfall resolution of the card template that applies to a scope."""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

from src.core.exceptions import ScopeResolutionError, ValidationError
from src.models.enums import TemplateType
from src.models.template import CardTemplate
from src.repositories.template import TemplateRepository
from src.schemas.template import TemplateScope

logger = logging.getLogger(__name__)


class ResolutionTier:
    """One level of the waterfall: a named filter over the scope tuple."""

    def __init__(
        self,
        name: str,
        requires: Tuple[str, ...],
        build_filter: Callable[[TemplateScope], Dict[str, Any]],
    ):
        self.name = name
        self.requires = requires
        self._build_filter = build_filter

    def applies(self, scope: TemplateScope) -> bool:
        """A tier is only tried when the scope carries every field it needs."""
        return all(getattr(scope, field) for field in self.requires)

    def build_filter(self, scope: TemplateScope) -> Dict[str, Any]:
        filters = self._build_filter(scope)
        filters["is_active"] = True
        return filters

    def __repr__(self) -> str:
        return f"<ResolutionTier {self.name}>"


# Most specific first; the first tier with an active template wins.
RESOLUTION_TIERS: Tuple[ResolutionTier, ...] = (
    ResolutionTier(
        "class",
        requires=("session_id", "class_id"),
        build_filter=lambda s: {
            "school_id": s.school_id,
            "session_id": s.session_id,
            "class_id": s.class_id,
            "type": s.type,
        },
    ),
    ResolutionTier(
        "session",
        requires=("session_id",),
        build_filter=lambda s: {
            "school_id": s.school_id,
            "session_id": s.session_id,
            "class_id": None,
            "type": s.type,
        },
    ),
    ResolutionTier(
        "school",
        requires=(),
        build_filter=lambda s: {
            "school_id": s.school_id,
            "session_id": None,
            "class_id": None,
            "type": s.type,
        },
    ),
)


class TemplateResolver:
    """Resolve the single active template for a scope tuple."""

    def __init__(self, template_repo: TemplateRepository, tiers: Tuple[ResolutionTier, ...] = RESOLUTION_TIERS):
        self.template_repo = template_repo
        self.tiers = tiers

    async def resolve(
        self,
        school_id: Optional[str],
        session_id: Optional[str] = None,
        class_id: Optional[str] = None,
        type: Optional[TemplateType] = None,
    ) -> CardTemplate:
        """Return the winning template or raise ScopeResolutionError."""
        scope = self.build_scope(school_id, session_id, class_id, type)

        for tier in self.tiers:
            if not tier.applies(scope):
                continue
            template = await self.template_repo.find_one(tier.build_filter(scope))
            if template is not None:
                logger.debug(
                    "Template resolved",
                    extra={"event": "template.resolved", "tier": tier.name, "template_id": template.id},
                )
                return template

        raise ScopeResolutionError(details=scope.model_dump(mode="json"))

    async def resolve_scope(self, scope: TemplateScope) -> CardTemplate:
        return await self.resolve(scope.school_id, scope.session_id, scope.class_id, scope.type)

    @staticmethod
    def build_scope(
        school_id: Optional[str],
        session_id: Optional[str],
        class_id: Optional[str],
        type: Optional[Any],
    ) -> TemplateScope:
        """Validate required scope fields."""
        if not school_id:
            raise ValidationError("School ID is required to resolve template")
        if not type:
            raise ValidationError("Template type is required to resolve template")
        try:
            template_type = TemplateType(type)
        except ValueError:
            raise ValidationError(
                f"Template type must be one of: {', '.join(TemplateType.get_all_values())}"
            )
        return TemplateScope(
            school_id=school_id,
            session_id=session_id or None,
            class_id=class_id or None,
            type=template_type,
        )
