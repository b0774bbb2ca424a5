"""Backend selection, done once at process start from settings."""

from __future__ import annotations

from sqlalchemy.engine import make_url

from damage_assessor.common.logging import get_logger
from damage_assessor.config import Settings, settings
from damage_assessor.storage.assessments import (
    AssessmentStore,
    PostgresAssessmentStore,
    SQLiteAssessmentStore,
)
from damage_assessor.storage.objects import LocalObjectStore, ObjectStore, S3ObjectStore

logger = get_logger("storage.factory")


def create_assessment_store(config: Settings = settings) -> AssessmentStore:
    backend = make_url(config.DATABASE_URL).get_backend_name()
    if backend == "sqlite":
        logger.info("Assessment store: sqlite")
        return SQLiteAssessmentStore.from_url(config.DATABASE_URL)
    if backend == "postgresql":
        logger.info("Assessment store: postgresql")
        return PostgresAssessmentStore.from_url(config.DATABASE_URL, pool_size=config.DATABASE_POOL_SIZE)
    raise ValueError(f"Unsupported DATABASE_URL backend: {backend}")


def create_object_store(config: Settings = settings) -> ObjectStore:
    if config.STORAGE_BACKEND == "s3":
        logger.info("Object store: s3 bucket=%s", config.S3_BUCKET)
        return S3ObjectStore(
            bucket=config.S3_BUCKET,
            region=config.AWS_REGION,
            endpoint_url=config.S3_ENDPOINT_URL,
            access_key_id=config.AWS_ACCESS_KEY_ID,
            secret_access_key=config.AWS_SECRET_ACCESS_KEY,
        )
    if config.STORAGE_BACKEND == "local":
        logger.info("Object store: local path=%s", config.STORAGE_LOCAL_PATH)
        return LocalObjectStore(config.STORAGE_LOCAL_PATH)
    raise ValueError(f"Unsupported STORAGE_BACKEND: {config.STORAGE_BACKEND}")
