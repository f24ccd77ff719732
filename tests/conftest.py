import os
from datetime import date
from typing import Dict, List, Optional, Tuple

# Settings are read at import time; point them at throwaway resources.
os.environ.setdefault("DATABASE_URI", "sqlite+aiosqlite://")
os.environ.setdefault("LOG_DIRECTORY", "/tmp/idcard-service-test-logs")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from src import models  # noqa: F401
from src.core.exceptions import NotFoundError, PreconditionError
from src.models.enums import TemplateType
from src.models.template import CardTemplate
from src.repositories.template import TemplateRepository
from src.schemas.audit_log import AuditEvent
from src.schemas.card import CardEntity, ClassInfo, SchoolInfo, SessionInfo
from src.services.providers import ActiveSessionProvider, AuditSink, EntityDataProvider

SCHOOL_ID = "school-1"
SESSION_ID = "session-2025"
CLASS_ID = "class-10a"


class RecordingAuditSink(AuditSink):
    def __init__(self):
        self.events: List[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self.events.append(event)

    def actions(self) -> List[str]:
        return [event.action for event in self.events]


class FakeEntityProvider(EntityDataProvider):
    """In-memory entities keyed by (type, id); ids listed in `broken` raise."""

    def __init__(self, entities: Optional[List[CardEntity]] = None, admin_phone: Optional[str] = "9876543210"):
        self.entities: Dict[Tuple[TemplateType, str], CardEntity] = {}
        self.admin_phone = admin_phone
        self.admin_phone_error: Optional[Exception] = None
        self.broken: Dict[str, Exception] = {}
        for entity in entities or []:
            self.add(entity)

    def add(self, entity: CardEntity) -> CardEntity:
        self.entities[(entity.entity_type, entity.id)] = entity
        return entity

    async def get_by_id(self, entity_type, entity_id, school_id):
        if entity_id in self.broken:
            raise self.broken[entity_id]
        entity = self.entities.get((TemplateType(entity_type), entity_id))
        if entity is None or entity.school_id != school_id:
            raise NotFoundError("Entity not found", {"entity_id": entity_id})
        return entity

    async def get_admin_phone(self, school_id):
        if self.admin_phone_error is not None:
            raise self.admin_phone_error
        return self.admin_phone


class FakeSessionProvider(ActiveSessionProvider):
    def __init__(self, session: Optional[SessionInfo] = None):
        self.session = session

    async def get_active(self, school_id):
        if self.session is None:
            raise PreconditionError("No active session found for this school")
        return self.session


def make_school() -> SchoolInfo:
    return SchoolInfo(
        id=SCHOOL_ID,
        name="Green Valley Public School",
        address="Sector 12, Dwarka",
        contact_email="office@greenvalley.edu",
    )


def make_student(
    entity_id: str = "stu-1",
    name: Optional[str] = "Asha Rao",
    admission_no: Optional[str] = "A12",
    class_id: Optional[str] = CLASS_ID,
    session_id: Optional[str] = SESSION_ID,
    session_name: str = "2025-26",
    **extra,
) -> CardEntity:
    return CardEntity(
        id=entity_id,
        entity_type=TemplateType.STUDENT,
        school=make_school(),
        session=SessionInfo(id=session_id, session_name=session_name) if session_id else None,
        class_info=ClassInfo(id=class_id, class_name="10-A") if class_id else None,
        name=name,
        admission_no=admission_no,
        father_name="Ravi Rao",
        mother_name="Meena Rao",
        dob=date(2010, 4, 5),
        blood_group="B+",
        mobile="9000000001",
        address="12 Lake Road",
        photo_url="https://cdn.example.com/asha.jpg",
        **extra,
    )


def make_teacher(entity_id: str = "tch-1", name: str = "Vikram Singh", email: Optional[str] = "vikram@greenvalley.edu") -> CardEntity:
    return CardEntity(
        id=entity_id,
        entity_type=TemplateType.TEACHER,
        school=make_school(),
        name=name,
        email=email,
        mobile="9000000002",
    )


def simple_layout(content: str = "{{studentName}}") -> dict:
    return {
        "width": 85.6,
        "height": 53.98,
        "unit": "mm",
        "elements": [
            {"type": "text", "x": 5, "y": 5, "fontSize": 8, "content": content},
        ],
    }


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def template_repo(session):
    return TemplateRepository(session)


@pytest.fixture
def audit_sink():
    return RecordingAuditSink()


@pytest.fixture
def entity_provider():
    return FakeEntityProvider([make_student(), make_teacher()])


@pytest.fixture
def session_provider():
    return FakeSessionProvider(SessionInfo(id=SESSION_ID, session_name="2025-26"))


@pytest.fixture
def make_template(session):
    """Insert a template row directly, bypassing the activation sweep."""

    async def _make(
        school_id: str = SCHOOL_ID,
        session_id: Optional[str] = None,
        class_id: Optional[str] = None,
        type: TemplateType = TemplateType.STUDENT,
        version: int = 1,
        is_active: bool = True,
        name: Optional[str] = None,
        data_tags: Optional[List[str]] = None,
        layout_config: Optional[dict] = None,
    ) -> CardTemplate:
        template = CardTemplate(
            school_id=school_id,
            session_id=session_id,
            class_id=class_id,
            type=type,
            version=version,
            is_active=is_active,
            name=name or f"{type.value} v{version}",
            data_tags=data_tags or ["studentName", "admissionNo", "className"],
            layout_config=layout_config or simple_layout(),
        )
        session.add(template)
        await session.commit()
        await session.refresh(template)
        return template

    return _make
