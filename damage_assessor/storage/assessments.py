"""Assessment persistence behind a storage-agnostic contract.

Both backends keep one row per id in the ``assessments`` table and upsert
with a single ``INSERT ... ON CONFLICT (id) DO UPDATE`` statement. The
update set never names ``created_at``, so concurrent upserts for one id all
apply, the last commit wins, and the original creation time survives.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from pathlib import Path
from typing import Any, ClassVar

from sqlalchemy import event, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from damage_assessor.common.logging import get_logger
from damage_assessor.core.assessments.schemas import (
    AssessmentMetrics,
    AssessmentRecord,
    AssessmentUpsert,
    SerializedApproval,
    utc_now_iso,
)
from damage_assessor.db.base import Base
from damage_assessor.db.models.assessment import Assessment

logger = get_logger("storage.assessments")

assessments_table = Assessment.__table__

# Columns replaced on conflict; created_at is deliberately absent.
UPSERT_UPDATE_COLUMNS = ("damage_id", "approval_json", "metrics_json", "updated_at")


class AssessmentStore(ABC):
    @abstractmethod
    async def init(self) -> None:
        """Create the schema if it does not exist. Cheap to call repeatedly."""

    @abstractmethod
    async def list(self) -> list[AssessmentRecord]:
        """All records, most recently updated first."""

    @abstractmethod
    async def get(self, assessment_id: str) -> AssessmentRecord | None:
        ...

    @abstractmethod
    async def upsert(self, data: AssessmentUpsert) -> AssessmentRecord:
        ...

    async def close(self) -> None:
        return None


def _to_record(row: Any) -> AssessmentRecord:
    return AssessmentRecord(
        id=row["id"],
        damage_id=row["damage_id"],
        approval=SerializedApproval.model_validate_json(row["approval_json"]) if row["approval_json"] else None,
        metrics=AssessmentMetrics.model_validate_json(row["metrics_json"]) if row["metrics_json"] else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _dump(model: SerializedApproval | AssessmentMetrics | None) -> str | None:
    if model is None:
        return None
    return model.model_dump_json(by_alias=True, exclude_none=True)


class SqlAssessmentStore(AssessmentStore):
    """SQLAlchemy implementation; subclasses pick the dialect's INSERT."""

    insert: ClassVar[Callable[..., Any]]

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    async def init(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[assessments_table])

    async def list(self) -> list[AssessmentRecord]:
        stmt = select(assessments_table).order_by(assessments_table.c.updated_at.desc())
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_to_record(row) for row in result.mappings()]

    async def get(self, assessment_id: str) -> AssessmentRecord | None:
        stmt = select(assessments_table).where(assessments_table.c.id == assessment_id)
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).mappings().one_or_none()
        return _to_record(row) if row is not None else None

    def upsert_statement(self, data: AssessmentUpsert, now: str):
        stmt = type(self).insert(assessments_table).values(
            id=data.resolved_id,
            damage_id=data.damage_id,
            approval_json=_dump(data.approval),
            metrics_json=_dump(data.metrics),
            created_at=now,
            updated_at=now,
        )
        return stmt.on_conflict_do_update(
            index_elements=[assessments_table.c.id],
            set_={name: stmt.excluded[name] for name in UPSERT_UPDATE_COLUMNS},
        ).returning(*assessments_table.c)

    async def upsert(self, data: AssessmentUpsert) -> AssessmentRecord:
        stmt = self.upsert_statement(data, utc_now_iso())
        async with self._session_factory() as session:
            row = (await session.execute(stmt)).mappings().one()
            await session.commit()
        logger.info("Upserted assessment %s (damage_id=%s)", row["id"], row["damage_id"])
        return _to_record(row)

    async def close(self) -> None:
        await self._engine.dispose()


class SQLiteAssessmentStore(SqlAssessmentStore):
    """Embedded store for local, single-process deployments."""

    insert = staticmethod(sqlite.insert)

    @classmethod
    def from_url(cls, url: str) -> SQLiteAssessmentStore:
        database = make_url(url).database
        if database and database != ":memory:":
            Path(database).parent.mkdir(parents=True, exist_ok=True)

        engine = create_async_engine(url)

        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        return cls(engine)


class PostgresAssessmentStore(SqlAssessmentStore):
    """Managed relational store for scaled deployments."""

    insert = staticmethod(postgresql.insert)

    @classmethod
    def from_url(cls, url: str, pool_size: int = 5) -> PostgresAssessmentStore:
        engine = create_async_engine(url, pool_size=pool_size, pool_pre_ping=True)
        return cls(engine)
