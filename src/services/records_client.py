"""HTTP client for the school records service (entities and sessions)."""

import logging
from typing import Any, Dict, Optional

import httpx

from src.core.config import settings
from src.core.exceptions import NotFoundError, PreconditionError
from src.models.enums import TemplateType
from src.schemas.card import CardEntity, SessionInfo
from src.services.providers import ActiveSessionProvider, EntityDataProvider

logger = logging.getLogger(__name__)

ENTITY_PATHS = {
    TemplateType.STUDENT: "students",
    TemplateType.TEACHER: "teachers",
    TemplateType.SCHOOLADMIN: "users",
}


class RecordsServiceClient(EntityDataProvider, ActiveSessionProvider):
    """Reads entities and sessions from the records service REST API.

    Responses are expected as ``{"success": true, "data": {...}}``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.RECORDS_SERVICE_URL).rstrip("/")
        self.token = token if token is not None else settings.RECORDS_SERVICE_TOKEN
        self.timeout = timeout or settings.RECORDS_SERVICE_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """GET a resource; None on 404, raises httpx.HTTPError otherwise."""
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers=self._headers(),
            transport=self.transport,
        ) as client:
            response = await client.get(path, params=params)

        if response.status_code == 404:
            return None
        response.raise_for_status()

        payload = response.json()
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    async def get_by_id(self, entity_type: TemplateType, entity_id: str, school_id: str) -> CardEntity:
        entity_type = TemplateType(entity_type)
        data = await self._get(f"/{ENTITY_PATHS[entity_type]}/{entity_id}", params={"schoolId": school_id})
        if not data:
            raise NotFoundError(f"{entity_type.value.title()} not found", {"entity_id": entity_id})

        entity = CardEntity.model_validate({**data, "entity_type": entity_type})
        if entity.school_id != school_id:
            # Treated as absent so callers cannot probe other schools.
            raise NotFoundError(f"{entity_type.value.title()} not found", {"entity_id": entity_id})
        return entity

    async def get_admin_phone(self, school_id: str) -> Optional[str]:
        admins = await self._get(f"/schools/{school_id}/admins", params={"status": "ACTIVE"})
        for admin in admins or []:
            phone = admin.get("phone") or admin.get("mobile")
            if phone:
                return str(phone)
        return None

    async def get_active(self, school_id: str) -> SessionInfo:
        if not school_id:
            raise PreconditionError("School ID is required to get active session")

        data = await self._get(f"/schools/{school_id}/sessions/active")
        if not data:
            raise PreconditionError("No active session found for this school")

        session = SessionInfo.model_validate(data)
        if session.archived or not session.active_status:
            raise PreconditionError("Active session is archived or inactive")
        return session
