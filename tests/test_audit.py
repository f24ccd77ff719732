import logging

from src.repositories.audit_log import AuditLogRepository
from src.schemas.audit_log import AuditActor, AuditEvent
from src.services.audit import DatabaseAuditSink


def template_event(**fields):
    return AuditEvent.for_actor(
        AuditActor(user_id="admin-1", role="SCHOOLADMIN", ip_address="10.0.0.1", user_agent="pytest"),
        action="CREATE_TEMPLATE",
        entity_type="TEMPLATE",
        entity_id="tpl-1",
        school_id="school-1",
        metadata={"version": 1},
        **fields,
    )


def test_for_actor_stamps_identity():
    event = template_event()

    assert event.performed_by == "admin-1"
    assert event.role == "SCHOOLADMIN"
    assert event.user_agent == "pytest"


def test_for_actor_without_actor():
    event = AuditEvent.for_actor(None, action="GENERATE_PDF", entity_type="STUDENT")

    assert event.performed_by is None
    assert event.status == "SUCCESS"


async def test_events_are_written_in_background(session_factory):
    sink = DatabaseAuditSink(session_factory)

    sink.record(template_event())
    await sink.flush()

    async with session_factory() as session:
        entries = await AuditLogRepository(session).list_for_entity("TEMPLATE", "tpl-1")

    assert len(entries) == 1
    entry = entries[0]
    assert entry.action == "CREATE_TEMPLATE"
    assert entry.performed_by == "admin-1"
    assert entry.event_metadata == {"version": 1}
    assert entry.is_success


async def test_write_failure_is_logged_not_raised(caplog):
    def broken_factory():
        raise RuntimeError("database unavailable")

    sink = DatabaseAuditSink(broken_factory)

    with caplog.at_level(logging.ERROR, logger="src.services.audit"):
        sink.record(template_event())
        await sink.flush()

    assert any(getattr(record, "event", None) == "audit.write_failed" for record in caplog.records)


def test_record_without_event_loop_drops_event(caplog):
    sink = DatabaseAuditSink(lambda: None)

    with caplog.at_level(logging.WARNING, logger="src.services.audit"):
        sink.record(template_event())

    assert "audit event dropped" in caplog.text
