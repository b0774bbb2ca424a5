"""Saving and restoring the approvals and metrics of an assessment session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import Field

from damage_assessor.common.logging import get_logger
from damage_assessor.common.schemas import CamelModel
from damage_assessor.core.assessments.schemas import (
    AssessmentMetrics,
    SerializedApproval,
    utc_now_iso,
)

logger = get_logger("session.repository")


class SessionSnapshot(CamelModel):
    approvals: dict[str, SerializedApproval] = Field(default_factory=dict)
    metrics_by_id: dict[str, AssessmentMetrics] = Field(default_factory=dict)
    exported_at: str = Field(default_factory=utc_now_iso)


class SessionRepository(ABC):
    @abstractmethod
    def load(self) -> SessionSnapshot | None:
        """The saved snapshot, or ``None`` when nothing has been saved."""

    @abstractmethod
    def save(self, snapshot: SessionSnapshot) -> None:
        ...


class InMemorySessionRepository(SessionRepository):
    def __init__(self) -> None:
        self._snapshot: SessionSnapshot | None = None

    def load(self) -> SessionSnapshot | None:
        return self._snapshot

    def save(self, snapshot: SessionSnapshot) -> None:
        self._snapshot = snapshot.model_copy(deep=True)


class JsonFileSessionRepository(SessionRepository):
    """Session export file: ``{"approvals", "metricsById", "exportedAt"}``."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def load(self) -> SessionSnapshot | None:
        if not self.path.exists():
            return None
        return SessionSnapshot.model_validate_json(self.path.read_text(encoding="utf-8"))

    def save(self, snapshot: SessionSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            snapshot.model_dump_json(by_alias=True, exclude_none=True, indent=2), encoding="utf-8"
        )
        logger.info("Session saved to %s (%d approvals)", self.path, len(snapshot.approvals))
