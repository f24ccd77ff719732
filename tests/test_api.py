import io
import zipfile

import httpx
import pytest

from main import app
from src.api import dependencies
from src.core.database import get_db

from tests.conftest import CLASS_ID, SCHOOL_ID, SESSION_ID, FakeEntityProvider, FakeSessionProvider, simple_layout

API = "/api/v1"
ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "SCHOOLADMIN", "X-Forwarded-For": "10.0.0.7"}


class ExplodingEntityProvider(FakeEntityProvider):
    async def get_by_id(self, entity_type, entity_id, school_id):
        raise RuntimeError("records service returned garbage")


@pytest.fixture
def overrides(session, audit_sink, entity_provider, session_provider):
    async def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_audit_sink] = lambda: audit_sink
    app.dependency_overrides[dependencies.get_entity_provider] = lambda: entity_provider
    app.dependency_overrides[dependencies.get_session_provider] = lambda: session_provider
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
async def client(overrides):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def template_payload(**overrides):
    payload = {
        "school_id": SCHOOL_ID,
        "type": "STUDENT",
        "name": "Student card",
        "layout_config": simple_layout("{{studentName}} / {{admissionNo}}"),
        "data_tags": ["studentName", "admissionNo"],
    }
    payload.update(overrides)
    return payload


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_create_and_get_template(client, audit_sink):
    response = await client.post(f"{API}/templates/", json=template_payload(), headers=ADMIN_HEADERS)

    assert response.status_code == 201
    body = response.json()
    assert body["version"] == 1
    assert body["is_active"]
    assert body["scope_level"] == "school"
    assert body["layout_config"]["elements"][0]["fontSize"] == 8

    fetched = await client.get(f"{API}/templates/{body['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Student card"

    event = audit_sink.events[0]
    assert (event.action, event.performed_by, event.ip_address) == ("CREATE_TEMPLATE", "admin-1", "10.0.0.7")


async def test_new_version_replaces_active_template(client):
    first = (await client.post(f"{API}/templates/", json=template_payload())).json()
    second = (await client.post(f"{API}/templates/", json=template_payload(name="Second"))).json()

    assert second["version"] == 2
    assert (await client.get(f"{API}/templates/{first['id']}")).json()["is_active"] is False

    listing = await client.get(f"{API}/templates/", params={"school_id": SCHOOL_ID, "is_active": "true"})
    assert [item["id"] for item in listing.json()["items"]] == [second["id"]]

    reactivated = await client.post(f"{API}/templates/{first['id']}/activate")
    assert reactivated.json()["is_active"] is True
    assert (await client.get(f"{API}/templates/{second['id']}")).json()["is_active"] is False


async def test_invalid_tags_use_error_envelope(client):
    response = await client.post(f"{API}/templates/", json=template_payload(data_tags=["salary"]))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "validation_error"
    assert body["details"]["invalid_tags"] == ["salary"]


async def test_class_without_session_is_rejected(client):
    response = await client.post(f"{API}/templates/", json=template_payload(class_id=CLASS_ID))

    assert response.status_code == 422


async def test_zone_sections_must_be_objects(client):
    layout = {"width": 85.6, "height": 54, "unit": "mm", "zones": {"header": "on"}}

    response = await client.post(f"{API}/templates/", json=template_payload(layout_config=layout))

    assert response.status_code == 422


async def test_zone_layout_is_accepted(client):
    layout = {"width": 85.6, "height": 54, "unit": "mm", "zones": {"header": {"enabled": True}, "footer": None}}

    response = await client.post(f"{API}/templates/", json=template_payload(layout_config=layout))

    assert response.status_code == 201
    assert response.json()["layout_config"]["zones"]["header"] == {"enabled": True}


async def test_duplicate_version_conflicts(client):
    await client.post(f"{API}/templates/", json=template_payload(version=1))

    response = await client.post(f"{API}/templates/", json=template_payload(version=1))

    assert response.status_code == 409
    assert response.json()["error_code"] == "conflict"


async def test_update_template(client):
    created = (await client.post(f"{API}/templates/", json=template_payload(is_active=False))).json()

    response = await client.put(f"{API}/templates/{created['id']}", json={"name": "Renamed"})

    assert response.status_code == 200
    assert response.json()["name"] == "Renamed"


async def test_delete_requires_deactivation(client):
    created = (await client.post(f"{API}/templates/", json=template_payload())).json()
    template_url = f"{API}/templates/{created['id']}"

    blocked = await client.delete(template_url)
    assert blocked.status_code == 409

    await client.post(f"{template_url}/deactivate")
    deleted = await client.delete(template_url)
    assert deleted.status_code == 200
    assert deleted.json()["success"] is True

    missing = await client.get(template_url)
    assert missing.status_code == 404
    assert missing.json()["error_code"] == "not_found"


async def test_resolve_endpoint(client, make_template):
    school = await make_template()
    await make_template(session_id="session-other")

    response = await client.get(
        f"{API}/templates/resolve",
        params={"school_id": SCHOOL_ID, "session_id": SESSION_ID, "class_id": CLASS_ID, "type": "STUDENT"},
    )

    assert response.status_code == 200
    assert response.json()["id"] == school.id


async def test_resolve_errors(client):
    missing_school = await client.get(f"{API}/templates/resolve", params={"type": "STUDENT"})
    assert missing_school.status_code == 400

    nothing_active = await client.get(f"{API}/templates/resolve", params={"school_id": SCHOOL_ID, "type": "STUDENT"})
    assert nothing_active.status_code == 404
    assert nothing_active.json()["message"] == "no active template found for this scope"


async def test_template_tags(client):
    response = await client.get(f"{API}/templates/tags/TEACHER")

    assert response.status_code == 200
    assert "teacherName" in response.json()["data_tags"]
    assert "schoolName" in response.json()["context_tags"]


async def test_card_pdf(client, make_template, audit_sink):
    await make_template()

    response = await client.get(f"{API}/cards/STUDENT/stu-1/pdf", params={"school_id": SCHOOL_ID}, headers=ADMIN_HEADERS)

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'inline; filename="student-id.pdf"'
    assert response.content.startswith(b"%PDF")
    assert audit_sink.actions() == ["GENERATE_PDF"]


async def test_card_data(client, make_template):
    template = await make_template(data_tags=["studentName", "dob"])

    response = await client.get(f"{API}/cards/STUDENT/stu-1/data", params={"school_id": SCHOOL_ID})

    assert response.status_code == 200
    body = response.json()
    assert body["template_id"] == template.id
    assert body["data"]["studentName"] == "Asha Rao"
    assert body["data"]["dob"] == "2010-04-05"
    assert "admissionNo" not in body["data"]


async def test_card_requires_active_session(client, overrides, make_template):
    await make_template()
    overrides[dependencies.get_session_provider] = lambda: FakeSessionProvider(None)

    response = await client.get(f"{API}/cards/STUDENT/stu-1/pdf", params={"school_id": SCHOOL_ID})

    assert response.status_code == 400
    assert response.json()["error_code"] == "precondition_failed"


async def test_unknown_entity_type(client):
    response = await client.get(f"{API}/cards/PARENT/p-1/pdf", params={"school_id": SCHOOL_ID})

    assert response.status_code == 422


async def test_bulk_archive_reports_partial_failure(client, make_template):
    await make_template()

    response = await client.post(
        f"{API}/cards/STUDENT/bulk",
        json={"school_id": SCHOOL_ID, "entity_ids": ["stu-1", "ghost"]},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/zip"
    assert response.headers["content-disposition"] == 'attachment; filename="students-id-cards.zip"'
    assert response.headers["x-cards-included"] == "1"
    assert response.headers["x-cards-failed"] == "1"
    with zipfile.ZipFile(io.BytesIO(response.content)) as archive:
        assert archive.namelist() == ["A12_Asha_Rao.pdf"]


async def test_bulk_combined(client, make_template):
    await make_template()

    response = await client.post(
        f"{API}/cards/STUDENT/bulk",
        json={"school_id": SCHOOL_ID, "entity_ids": ["stu-1"], "mode": "combined"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"


async def test_bulk_with_no_successes(client):
    response = await client.post(f"{API}/cards/STUDENT/bulk", json={"school_id": SCHOOL_ID, "entity_ids": ["ghost"]})

    assert response.status_code == 422
    assert response.json()["error_code"] == "batch_failed"


async def test_bulk_requires_entities(client):
    response = await client.post(f"{API}/cards/STUDENT/bulk", json={"school_id": SCHOOL_ID, "entity_ids": []})

    assert response.status_code == 422


async def test_render_preview(client):
    response = await client.post(
        f"{API}/cards/render",
        json={"layout_config": simple_layout(), "data": {"studentName": "Preview"}},
    )

    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


async def test_unexpected_errors_are_generic(overrides, make_template):
    await make_template()
    overrides[dependencies.get_entity_provider] = lambda: ExplodingEntityProvider()
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)

    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(f"{API}/cards/STUDENT/stu-1/pdf", params={"school_id": SCHOOL_ID})

    assert response.status_code == 500
    assert response.json()["message"] == "An unexpected error occurred"
    assert "garbage" not in response.text
