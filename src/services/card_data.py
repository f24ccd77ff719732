"""Map an entity plus its resolved template to render-ready card data."""

import logging
from typing import Any, Callable, Dict, Optional

from src.core.exceptions import ValidationError
from src.models.enums import TemplateType
from src.models.template import CardTemplate
from src.schemas.card import CardContext, CardData, CardEntity
from src.services.providers import EntityDataProvider
from src.utils.template_tags import CONTEXT_TAGS

logger = logging.getLogger(__name__)


def _class_name(entity: CardEntity) -> Optional[str]:
    if entity.class_info is None:
        return None
    return entity.class_info.class_name or entity.class_info.id


def _iso_dob(entity: CardEntity) -> Optional[str]:
    return entity.dob.isoformat() if entity.dob else None


# Tag -> accessor. Tags missing here map to None; entity fields that no
# tag names are never copied.
TAG_ACCESSORS: Dict[str, Callable[[CardEntity], Any]] = {
    "studentName": lambda e: e.name,
    "name": lambda e: e.name,
    "teacherName": lambda e: e.name,
    "adminName": lambda e: e.name,
    "admissionNo": lambda e: e.admission_no,
    "class": _class_name,
    "className": _class_name,
    "fatherName": lambda e: e.father_name,
    "motherName": lambda e: e.mother_name,
    "dob": _iso_dob,
    "dateOfBirth": _iso_dob,
    "bloodGroup": lambda e: e.blood_group,
    "mobile": lambda e: e.mobile,
    "phone": lambda e: e.mobile,
    "address": lambda e: e.address,
    "photo": lambda e: e.photo_url,
    "photoUrl": lambda e: e.photo_url,
    "aadhaar": lambda e: e.aadhaar,
    "aadhar": lambda e: e.aadhaar,
    "email": lambda e: e.email,
    "username": lambda e: e.username,
    "classId": lambda e: e.class_id,
    "schoolId": lambda e: e.school_id,
    "schoolName": lambda e: e.school.name,
}


def map_tag(tag: str, entity: CardEntity) -> Any:
    accessor = TAG_ACCESSORS.get(tag)
    return accessor(entity) if accessor else None


def context_fields(entity: CardEntity, context: Optional[CardContext]) -> Dict[str, Any]:
    """
    Engine-injected fields; keys without a value are left out.

    The session printed is the entity's own; the active session named in
    ``context`` only fills in for entities without one.
    """
    school = context.school if context is not None else entity.school
    session_name = entity.session.session_name if entity.session is not None else None
    if not session_name and context is not None:
        session_name = context.session_name

    fields = {
        "schoolName": school.name,
        "schoolAddress": school.address,
        "schoolEmail": school.contact_email,
        "session": session_name,
        "sessionName": session_name,
        "adminPhone": context.admin_phone if context is not None else None,
    }
    return {key: value for key, value in fields.items() if value}


class CardDataMapper:
    """Build the tag -> value dictionary one card is rendered from."""

    def build_card_data(
        self,
        entity: CardEntity,
        template: CardTemplate,
        context: Optional[CardContext] = None,
    ) -> CardData:
        template_type = TemplateType(template.type)
        if template_type != entity.entity_type:
            raise ValidationError(
                "Template type does not match entity type",
                {"template_type": template_type.value, "entity_type": entity.entity_type.value},
            )
        if template.school_id != entity.school_id:
            raise ValidationError(
                "Template does not belong to the entity's school",
                {"template_id": template.id, "entity_id": entity.id},
            )

        data: Dict[str, Any] = {tag: map_tag(tag, entity) for tag in template.data_tags or []}
        data.update(context_fields(entity, context))

        return CardData(
            template_id=template.id,
            template_type=template_type,
            layout_config=dict(template.layout_config or {}),
            data=data,
            allowed_tags=list(template.data_tags or []) + sorted(CONTEXT_TAGS),
        )


async def load_card_context(
    entity: CardEntity,
    provider: EntityDataProvider,
    session_name: Optional[str] = None,
) -> CardContext:
    """
    Gather contextual fields for an entity's cards.

    The administrator phone is best effort: a failing lookup is logged and
    the card is rendered without it.
    """
    admin_phone = None
    try:
        admin_phone = await provider.get_admin_phone(entity.school_id)
    except Exception as e:
        logger.warning(
            f"Admin phone lookup failed: {e}",
            extra={"event": "card.admin_phone_unavailable", "school_id": entity.school_id},
        )

    return CardContext(school=entity.school, session_name=session_name, admin_phone=admin_phone)
