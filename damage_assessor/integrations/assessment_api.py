"""HTTP client for the assessment API.

Used by the assessment session to read saved decisions and to persist
every local change.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from damage_assessor.common.exceptions import AssessmentApiError
from damage_assessor.config import settings
from damage_assessor.core.assessments.schemas import (
    AssessmentRecord,
    AssessmentUpsert,
    StoredObjectRef,
)
from damage_assessor.integrations.base import BaseIntegration


class AssessmentApiClient(BaseIntegration):
    def __init__(
        self,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(
            "assessment_api",
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        resp = await self._client.request(method, path, **kwargs)
        if resp.is_error:
            raise AssessmentApiError(resp.status_code, resp.text)
        return resp.json()

    async def health_check(self) -> bool:
        try:
            data = await self._request("GET", "/health")
        except (httpx.HTTPError, AssessmentApiError) as e:
            self.logger.error("Assessment API health check failed: %s", e)
            return False
        return bool(data.get("ok"))

    async def list_assessments(self) -> list[AssessmentRecord]:
        data = await self._request("GET", "/assessments")
        return [AssessmentRecord.model_validate(item) for item in data]

    async def get_assessment(self, assessment_id: str) -> AssessmentRecord:
        data = await self._request("GET", f"/assessments/{quote(assessment_id, safe='')}")
        return AssessmentRecord.model_validate(data)

    async def upsert_assessment(self, payload: AssessmentUpsert) -> AssessmentRecord:
        body = payload.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request(
            "PUT", f"/assessments/{quote(payload.resolved_id, safe='')}", json=body
        )
        return AssessmentRecord.model_validate(data)

    async def upload_file(
        self, filename: str, content: bytes, content_type: str = "application/octet-stream"
    ) -> StoredObjectRef:
        data = await self._request("POST", "/upload", files={"file": (filename, content, content_type)})
        self.logger.info("Uploaded %s as %s", filename, data.get("key"))
        return StoredObjectRef.model_validate(data)
