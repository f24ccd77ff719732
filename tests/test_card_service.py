import pytest

from src.core.exceptions import NotFoundError, PreconditionError, ScopeResolutionError
from src.models.enums import BatchMode, TemplateType
from src.schemas.audit_log import AuditActor
from src.services.card import CardService
from src.services.template_resolver import TemplateResolver

from tests.conftest import CLASS_ID, SCHOOL_ID, SESSION_ID, FakeSessionProvider, make_student

ACTOR = AuditActor(user_id="admin-1", role="SCHOOLADMIN", ip_address="10.0.0.1")


@pytest.fixture
def service(template_repo, entity_provider, session_provider, audit_sink):
    return CardService(TemplateResolver(template_repo), entity_provider, session_provider, audit_sink=audit_sink)


async def test_card_data_uses_most_specific_template(service, make_template):
    await make_template(name="school")
    class_template = await make_template(session_id=SESSION_ID, class_id=CLASS_ID, name="class")

    card = await service.get_card_data(TemplateType.STUDENT, "stu-1", SCHOOL_ID)

    assert card.template_id == class_template.id
    assert card.data["studentName"] == "Asha Rao"
    assert card.data["session"] == "2025-26"
    assert card.data["adminPhone"] == "9876543210"


async def test_card_prints_the_students_own_session(service, entity_provider, make_template):
    await make_template()
    entity_provider.add(make_student("stu-9", name="Kiran Das", session_name="2024-25"))

    card = await service.get_card_data(TemplateType.STUDENT, "stu-9", SCHOOL_ID)

    assert card.data["session"] == "2024-25"


async def test_generate_card(service, make_template, audit_sink):
    template = await make_template()

    card = await service.generate_card(TemplateType.STUDENT, "stu-1", SCHOOL_ID, ACTOR)

    assert card.content.startswith(b"%PDF")
    assert card.filename == "student-id.pdf"
    assert card.template_id == template.id
    assert audit_sink.actions() == ["GENERATE_PDF"]
    event = audit_sink.events[0]
    assert event.entity_id == "stu-1"
    assert event.ip_address == "10.0.0.1"
    assert event.metadata == {"count": 1, "template_id": template.id}


async def test_no_active_session_blocks_generation(template_repo, entity_provider, audit_sink, make_template):
    await make_template()
    service = CardService(TemplateResolver(template_repo), entity_provider, FakeSessionProvider(None), audit_sink)

    with pytest.raises(PreconditionError):
        await service.generate_card(TemplateType.STUDENT, "stu-1", SCHOOL_ID)
    with pytest.raises(PreconditionError):
        await service.generate_batch(TemplateType.STUDENT, SCHOOL_ID, ["stu-1"])
    assert audit_sink.events == []


async def test_missing_entity(service, make_template):
    await make_template()

    with pytest.raises(NotFoundError):
        await service.generate_card(TemplateType.STUDENT, "ghost", SCHOOL_ID)


async def test_entity_from_other_school_is_not_found(service, entity_provider, make_template):
    await make_template()
    entity_provider.add(make_student("stu-9"))

    with pytest.raises(NotFoundError):
        await service.get_card_data(TemplateType.STUDENT, "stu-9", "school-2")


async def test_no_template_for_scope(service):
    with pytest.raises(ScopeResolutionError):
        await service.generate_card(TemplateType.STUDENT, "stu-1", SCHOOL_ID)


async def test_generate_batch_combined(service, entity_provider, make_template, audit_sink):
    await make_template()
    entity_provider.add(make_student("stu-2", name="Ravi Kumar"))

    result = await service.generate_batch(
        TemplateType.STUDENT, SCHOOL_ID, ["stu-1", "stu-2"], BatchMode.COMBINED, ACTOR
    )

    assert result.content_type == "application/pdf"
    assert result.included == ["stu-1", "stu-2"]
    assert audit_sink.events[-1].metadata["mode"] == "combined"


def test_render_preview(service):
    pdf_bytes = service.render_preview(
        {"width": 85.6, "height": 53.98, "unit": "mm", "elements": [{"type": "text", "x": 1, "y": 1, "content": "{{name}}"}]},
        {"name": "Preview"},
    )

    assert pdf_bytes.startswith(b"%PDF")
