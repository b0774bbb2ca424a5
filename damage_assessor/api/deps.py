from functools import lru_cache

from fastapi import Depends

from damage_assessor.storage.assessments import AssessmentStore
from damage_assessor.storage.factory import create_assessment_store, create_object_store
from damage_assessor.storage.objects import ObjectStore


@lru_cache
def _assessment_store() -> AssessmentStore:
    return create_assessment_store()


@lru_cache
def _object_store() -> ObjectStore:
    return create_object_store()


def get_assessment_store() -> AssessmentStore:
    return _assessment_store()


def get_object_store() -> ObjectStore:
    return _object_store()


async def ensure_schema(store: AssessmentStore = Depends(get_assessment_store)) -> None:
    """Runs before every API request; handlers keep no state between requests."""
    await store.init()
