"""Assessment records: approval decisions and metrics keyed by report id."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from damage_assessor.api.deps import get_assessment_store
from damage_assessor.common.exceptions import BadRequestError, NotFoundError
from damage_assessor.core.assessments.schemas import (
    AssessmentPayload,
    AssessmentRecord,
    AssessmentUpsert,
)
from damage_assessor.storage.assessments import AssessmentStore

router = APIRouter(prefix="/assessments", tags=["Assessments"])


# ---------- Endpoints ----------

@router.get("", response_model=list[AssessmentRecord], response_model_exclude_none=True)
async def list_assessments(store: AssessmentStore = Depends(get_assessment_store)):
    return await store.list()


@router.post("", response_model=AssessmentRecord, status_code=201, response_model_exclude_none=True)
async def create_assessment(
    body: AssessmentPayload,
    store: AssessmentStore = Depends(get_assessment_store),
):
    return await store.upsert(_to_upsert(body))


@router.get("/{assessment_id}", response_model=AssessmentRecord, response_model_exclude_none=True)
async def get_assessment(
    assessment_id: str,
    store: AssessmentStore = Depends(get_assessment_store),
):
    record = await store.get(assessment_id)
    if record is None:
        raise NotFoundError()
    return record


@router.put("/{assessment_id}", response_model=AssessmentRecord, response_model_exclude_none=True)
async def put_assessment(
    assessment_id: str,
    body: AssessmentPayload,
    store: AssessmentStore = Depends(get_assessment_store),
):
    return await store.upsert(_to_upsert(body, assessment_id))


def _to_upsert(body: AssessmentPayload, assessment_id: str | None = None) -> AssessmentUpsert:
    if not body.damage_id:
        raise BadRequestError("damageId is required")
    return AssessmentUpsert(
        id=assessment_id or body.id,
        damage_id=body.damage_id,
        approval=body.approval,
        metrics=body.metrics,
    )
