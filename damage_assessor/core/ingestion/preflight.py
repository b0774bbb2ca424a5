"""Quick checks on an upload before the (slow) metadata pass runs."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from pydantic import Field

from damage_assessor.common.enums import PreflightIssue, Stage
from damage_assessor.common.schemas import CamelModel
from damage_assessor.core.ingestion.classifier import group_files
from damage_assessor.core.ingestion.details import TableReader, parse_details_file
from damage_assessor.core.ingestion.schemas import ColumnMapping
from damage_assessor.core.ingestion.sources import SourceFile
from damage_assessor.core.ingestion.tabular import read_table

MISSING_SAMPLE_SIZE = 5

_MISSING_STAGE_ISSUES = {
    Stage.DAMAGE: PreflightIssue.MISSING_DAMAGE_PHOTOS,
    Stage.PRECONDITION: PreflightIssue.MISSING_PRECONDITION_PHOTOS,
    Stage.COMPLETION: PreflightIssue.MISSING_COMPLETION_PHOTOS,
}


class FileSummary(CamelModel):
    total: int = 0
    images: int = 0
    details: int = 0
    other: int = 0


class Issue(CamelModel):
    issue: PreflightIssue
    damage_id: str = ""
    detail: str | None = None


class PreflightReport(CamelModel):
    report_count: int
    missing_by_type: dict[Stage, int]
    missing_sample: list[str] = Field(default_factory=list)
    details_file_name: str | None = None
    details_matched: int | None = None
    details_missing: int | None = None
    details_unmatched: int | None = None
    details_error: str | None = None
    issues: list[Issue] = Field(default_factory=list)


def summarize_files(files: Iterable[SourceFile]) -> FileSummary:
    summary = FileSummary()
    for file in files:
        summary.total += 1
        if file.is_image:
            summary.images += 1
        elif file.is_details_file:
            summary.details += 1
        else:
            summary.other += 1
    return summary


def build_preflight(
    files: Iterable[SourceFile],
    mapping: ColumnMapping | None = None,
    reader: TableReader = read_table,
) -> PreflightReport:
    files = list(files)
    grouped = group_files(files)

    missing_by_type = {stage: 0 for stage in Stage}
    missing_sample: list[str] = []
    issues: list[Issue] = []
    for report_id, buckets in grouped.items():
        missing = [stage for stage in Stage if not buckets.bucket(stage)]
        for stage in missing:
            missing_by_type[stage] += 1
        if missing and len(missing_sample) < MISSING_SAMPLE_SIZE:
            missing_sample.append(report_id)
        for stage, issue in _MISSING_STAGE_ISSUES.items():
            if stage in missing:
                issues.append(Issue(issue=issue, damage_id=report_id))

    details = parse_details_file(files, mapping, reader)
    report_ids = list(grouped)
    missing_details = [rid for rid in report_ids if rid not in details.details_by_id]
    unmatched_details = [rid for rid in details.details_by_id if rid not in grouped]

    if details.source_file_name:
        issues.extend(Issue(issue=PreflightIssue.MISSING_DETAILS_ROW, damage_id=rid) for rid in missing_details)
        issues.extend(
            Issue(issue=PreflightIssue.DETAILS_ROW_UNMATCHED, damage_id=rid) for rid in unmatched_details
        )
    if details.error:
        issues.append(Issue(issue=PreflightIssue.DETAILS_FILE_ERROR, detail=details.error))

    has_details = details.source_file_name is not None
    return PreflightReport(
        report_count=len(grouped),
        missing_by_type=missing_by_type,
        missing_sample=missing_sample,
        details_file_name=details.source_file_name,
        details_matched=len(report_ids) - len(missing_details) if has_details else None,
        details_missing=len(missing_details) if has_details else None,
        details_unmatched=len(unmatched_details) if has_details else None,
        details_error=details.error,
        issues=issues,
    )


def issues_to_csv(issues: Iterable[Issue]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["issue", "damageId", "detail"])
    for item in issues:
        writer.writerow([item.issue.value, item.damage_id, item.detail or ""])
    return buffer.getvalue()
