from datetime import datetime

import pytest

from src.core.exceptions import ScopeResolutionError, ValidationError
from src.models.enums import TemplateType
from src.schemas.template import TemplateScope
from src.services.template_resolver import RESOLUTION_TIERS, TemplateResolver

from tests.conftest import CLASS_ID, SCHOOL_ID, SESSION_ID


@pytest.fixture
def resolver(template_repo):
    return TemplateResolver(template_repo)


@pytest.fixture
async def three_tiers(make_template):
    school = await make_template(name="school default")
    session_default = await make_template(session_id=SESSION_ID, name="session default")
    class_level = await make_template(session_id=SESSION_ID, class_id=CLASS_ID, name="class level")
    return school, session_default, class_level


def test_tier_order_is_most_specific_first():
    assert [tier.name for tier in RESOLUTION_TIERS] == ["class", "session", "school"]


def test_class_tier_needs_session_and_class():
    class_tier = RESOLUTION_TIERS[0]
    assert class_tier.applies(TemplateScope(school_id=SCHOOL_ID, session_id=SESSION_ID, class_id=CLASS_ID))
    assert not class_tier.applies(TemplateScope(school_id=SCHOOL_ID, session_id=SESSION_ID))
    assert not class_tier.applies(TemplateScope(school_id=SCHOOL_ID, class_id=CLASS_ID))


def test_tier_filters_pin_broader_levels_to_null():
    scope = TemplateScope(
        school_id=SCHOOL_ID, session_id=SESSION_ID, class_id=CLASS_ID, type=TemplateType.STUDENT
    )
    class_tier, session_tier, school_tier = RESOLUTION_TIERS

    assert class_tier.build_filter(scope) == {
        "school_id": SCHOOL_ID,
        "session_id": SESSION_ID,
        "class_id": CLASS_ID,
        "type": TemplateType.STUDENT,
        "is_active": True,
    }
    assert session_tier.build_filter(scope)["class_id"] is None
    assert school_tier.build_filter(scope)["session_id"] is None
    assert school_tier.build_filter(scope)["class_id"] is None


async def test_class_level_template_wins(resolver, three_tiers):
    _, _, class_level = three_tiers

    template = await resolver.resolve(SCHOOL_ID, SESSION_ID, CLASS_ID, TemplateType.STUDENT)

    assert template.id == class_level.id


async def test_session_default_when_class_has_no_template(resolver, three_tiers):
    _, session_default, _ = three_tiers

    template = await resolver.resolve(SCHOOL_ID, SESSION_ID, "class-other", TemplateType.STUDENT)

    assert template.id == session_default.id


async def test_session_without_class_skips_class_tier(resolver, three_tiers):
    _, session_default, _ = three_tiers

    template = await resolver.resolve(SCHOOL_ID, SESSION_ID, None, TemplateType.STUDENT)

    assert template.id == session_default.id


async def test_no_session_returns_school_default(resolver, three_tiers):
    school, _, _ = three_tiers

    template = await resolver.resolve(SCHOOL_ID, None, CLASS_ID, TemplateType.STUDENT)

    assert template.id == school.id


async def test_falls_back_to_school_default(resolver, make_template):
    school = await make_template()

    template = await resolver.resolve(SCHOOL_ID, SESSION_ID, CLASS_ID, TemplateType.STUDENT)

    assert template.id == school.id


async def test_inactive_templates_never_resolve(resolver, make_template):
    await make_template(session_id=SESSION_ID, class_id=CLASS_ID, is_active=False)

    with pytest.raises(ScopeResolutionError) as exc_info:
        await resolver.resolve(SCHOOL_ID, SESSION_ID, CLASS_ID, TemplateType.STUDENT)

    assert exc_info.value.message == "no active template found for this scope"


async def test_soft_deleted_templates_never_resolve(resolver, session, make_template):
    template = await make_template()
    template.deleted_at = datetime.utcnow()
    await session.commit()

    assert template.is_active
    with pytest.raises(ScopeResolutionError):
        await resolver.resolve(SCHOOL_ID, None, None, TemplateType.STUDENT)


async def test_type_must_match(resolver, make_template):
    await make_template(type=TemplateType.TEACHER)

    with pytest.raises(ScopeResolutionError):
        await resolver.resolve(SCHOOL_ID, None, None, TemplateType.STUDENT)


async def test_other_schools_are_ignored(resolver, make_template):
    await make_template(school_id="school-2")

    with pytest.raises(ScopeResolutionError):
        await resolver.resolve(SCHOOL_ID, None, None, TemplateType.STUDENT)


@pytest.mark.parametrize("school_id, type", [(None, TemplateType.STUDENT), ("", "STUDENT"), (SCHOOL_ID, None)])
async def test_missing_required_scope_fields(resolver, school_id, type):
    with pytest.raises(ValidationError):
        await resolver.resolve(school_id, SESSION_ID, None, type)


async def test_unknown_type_is_rejected(resolver):
    with pytest.raises(ValidationError):
        await resolver.resolve(SCHOOL_ID, None, None, "PARENT")
