"""In-memory state of one assessment session.

Every change is applied locally first and then persisted in the background
through the assessment API. A failed save is logged and the local change
stays; nothing is rolled back.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from damage_assessor.common.enums import ApprovalStatus
from damage_assessor.common.exceptions import AssessmentApiError, IngestionBusyError
from damage_assessor.common.logging import get_logger
from damage_assessor.common.schemas import CamelModel
from damage_assessor.core.assessments.schemas import (
    AssessmentMetrics,
    AssessmentRecord,
    AssessmentUpsert,
    PhotoSetApproval,
)
from damage_assessor.core.ingestion.pipeline import IngestionPipeline, ProgressCallback
from damage_assessor.core.ingestion.schemas import ColumnMapping, IngestionResult, PhotoSet
from damage_assessor.core.ingestion.sources import SourceFile
from damage_assessor.core.session.repository import SessionSnapshot
from damage_assessor.integrations.assessment_api import AssessmentApiClient

logger = get_logger("session.state")

STATUS_FILTER_ALL = "all"


@dataclass
class ResumeCandidate:
    """Saved decisions for report ids that are also in the fresh upload."""

    approvals: dict[str, PhotoSetApproval] = field(default_factory=dict)
    metrics: dict[str, AssessmentMetrics] = field(default_factory=dict)

    @property
    def overlap_count(self) -> int:
        return len(self.approvals) + len(self.metrics)


class DashboardSummary(CamelModel):
    total_reports: int = 0
    approved: int = 0
    queried: int = 0
    rejected: int = 0
    pending: int = 0
    details_matched: int = 0


def find_resume_candidate(
    records: Iterable[AssessmentRecord], report_ids: Iterable[str]
) -> ResumeCandidate | None:
    wanted = set(report_ids)
    candidate = ResumeCandidate()
    for record in records:
        if record.damage_id not in wanted:
            continue
        if record.approval is not None:
            candidate.approvals[record.damage_id] = record.approval.to_approval()
        if record.metrics is not None:
            candidate.metrics[record.damage_id] = record.metrics
    return candidate if candidate.overlap_count else None


class AssessmentSession:
    def __init__(
        self,
        api: AssessmentApiClient | None = None,
        pipeline: IngestionPipeline | None = None,
    ) -> None:
        self.api = api
        self.pipeline = pipeline or IngestionPipeline()
        self.photo_sets: list[PhotoSet] = []
        self.approvals: dict[str, PhotoSetApproval] = {}
        self.metrics: dict[str, AssessmentMetrics] = {}
        self.last_result: IngestionResult | None = None
        self.resume_candidate: ResumeCandidate | None = None
        self._pending: set[asyncio.Task] = set()
        self._ingesting = False

    @property
    def is_ingesting(self) -> bool:
        return self._ingesting or self.pipeline.is_running

    # ---------- Ingestion ----------

    async def ingest(
        self,
        files: Iterable[SourceFile],
        mapping: ColumnMapping | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult | None:
        """Load a new upload. Returns ``None`` if another ingestion is still running."""
        if self.is_ingesting:
            logger.warning("Ignoring file selection while an ingestion is in progress")
            return None
        self._ingesting = True
        try:
            return await self._ingest(files, mapping, on_progress)
        finally:
            self._ingesting = False

    async def _ingest(
        self,
        files: Iterable[SourceFile],
        mapping: ColumnMapping | None,
        on_progress: ProgressCallback | None,
    ) -> IngestionResult | None:
        try:
            result = await self.pipeline.run(files, mapping, on_progress)
        except IngestionBusyError:
            logger.warning("Ignoring file selection while an ingestion is in progress")
            return None

        self.photo_sets = result.photo_sets
        self.approvals = {}
        self.metrics = {}
        self.last_result = result
        self.resume_candidate = None

        for error in result.errors:
            logger.warning("Ingestion reported: %s", error)
        if not result.photo_sets:
            logger.warning("No damage reports found in the uploaded folder structure")
            return result

        logger.info("Processed %d damage reports", len(result.photo_sets))
        await self._load_saved_assessments()
        return result

    async def _load_saved_assessments(self) -> None:
        if self.api is None:
            return
        try:
            records = await self.api.list_assessments()
        except (httpx.HTTPError, AssessmentApiError, ValueError) as e:
            logger.warning("Failed to load saved assessments: %s", e)
            return
        self.resume_candidate = find_resume_candidate(records, (ps.report_id for ps in self.photo_sets))
        if self.resume_candidate:
            logger.info("Found %d saved entries for this upload", self.resume_candidate.overlap_count)

    def apply_resume(self) -> bool:
        """Overwrite local entries with the saved ones. Only on explicit request."""
        candidate = self.resume_candidate
        if candidate is None:
            return False
        self.approvals.update(candidate.approvals)
        self.metrics.update(candidate.metrics)
        self.resume_candidate = None
        return True

    def dismiss_resume(self) -> None:
        self.resume_candidate = None

    # ---------- Mutations ----------

    def set_approval(self, report_id: str, approval: PhotoSetApproval) -> PhotoSetApproval:
        previous = self.approvals.get(report_id)
        self.approvals[report_id] = approval
        if previous is None or previous.status != approval.status:
            logger.info("Assessment updated: %s for %s", approval.status.value, report_id)
        self._schedule_persist(report_id)
        return approval

    def apply_quick_status(self, report_id: str, status: ApprovalStatus) -> PhotoSetApproval:
        return self.update_approval_fields(report_id, status=status)

    def save_comments(self, report_id: str, comments: str) -> PhotoSetApproval:
        return self.update_approval_fields(report_id, comments=comments)

    def update_approval_fields(self, report_id: str, **changes: Any) -> PhotoSetApproval:
        """Replace the whole approval: existing fields plus ``changes``, fresh timestamp."""
        existing = self.approvals.get(report_id)
        data = existing.model_dump(exclude={"timestamp"}) if existing else {}
        data.update(changes)
        return self.set_approval(report_id, PhotoSetApproval(**data))

    def set_metrics(self, report_id: str, metrics: AssessmentMetrics) -> AssessmentMetrics:
        self.metrics[report_id] = metrics
        self._schedule_persist(report_id)
        return metrics

    def _schedule_persist(self, report_id: str) -> None:
        if self.api is None:
            return
        approval = self.approvals.get(report_id)
        payload = AssessmentUpsert(
            damage_id=report_id,
            approval=approval.to_serialized() if approval else None,
            metrics=self.metrics.get(report_id),
        )
        task = asyncio.create_task(self._persist(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, payload: AssessmentUpsert) -> None:
        try:
            await self.api.upsert_assessment(payload)
        except (httpx.HTTPError, AssessmentApiError, ValueError) as e:
            logger.warning("Failed to persist assessment %s: %s", payload.damage_id, e)

    async def drain(self) -> None:
        """Wait for every background save scheduled so far."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    # ---------- Views ----------

    def status_of(self, report_id: str) -> ApprovalStatus:
        approval = self.approvals.get(report_id)
        return approval.status if approval else ApprovalStatus.PENDING

    def filter_report_ids(self, status: str = STATUS_FILTER_ALL, search: str = "") -> list[str]:
        term = search.lower()
        return [
            ps.report_id
            for ps in self.photo_sets
            if (status == STATUS_FILTER_ALL or self.status_of(ps.report_id).value == status)
            and term in ps.report_id.lower()
        ]

    def dashboard_summary(self) -> DashboardSummary:
        summary = DashboardSummary(total_reports=len(self.photo_sets))
        for ps in self.photo_sets:
            status = self.status_of(ps.report_id)
            if status is ApprovalStatus.APPROVED:
                summary.approved += 1
            elif status is ApprovalStatus.QUERY:
                summary.queried += 1
            elif status is ApprovalStatus.REJECTED:
                summary.rejected += 1
            else:
                summary.pending += 1
            if ps.damage_details is not None:
                summary.details_matched += 1
        return summary

    # ---------- Export / import ----------

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            approvals={rid: a.to_serialized() for rid, a in self.approvals.items()},
            metrics_by_id=dict(self.metrics),
        )

    def restore(self, snapshot: SessionSnapshot) -> None:
        """Replace local approvals and metrics with an imported snapshot (not persisted)."""
        self.approvals = {rid: a.to_approval() for rid, a in snapshot.approvals.items()}
        self.metrics = dict(snapshot.metrics_by_id)
