"""Turns an uploaded file list into per-report photo sets.

Steps: read the optional details file, classify every image by folder,
extract embedded metadata image by image (reporting progress), narrow the
precondition and completion photos by proximity, attach details and sort.
Problems with the details file end up in ``IngestionResult.errors``; a photo
whose metadata cannot be read keeps its file-modified time and no location.
"""

from __future__ import annotations

import asyncio
import locale
from collections.abc import Callable, Iterable

from damage_assessor.common.exceptions import IngestionBusyError
from damage_assessor.common.logging import get_logger
from damage_assessor.core.ingestion.classifier import StageBuckets, classify_files
from damage_assessor.core.ingestion.details import TableReader, parse_details_file
from damage_assessor.core.ingestion.metadata import ExifMetadataExtractor, MetadataExtractor
from damage_assessor.core.ingestion.proximity import select_photo_set
from damage_assessor.core.ingestion.schemas import (
    ColumnMapping,
    DetailsParseResult,
    DetailsSummary,
    ExtractedMetadata,
    IngestionProgress,
    IngestionResult,
    PhotoMetadata,
    PhotoSet,
)
from damage_assessor.core.ingestion.sources import SourceFile
from damage_assessor.core.ingestion.tabular import read_table

logger = get_logger("ingestion.pipeline")

ProgressCallback = Callable[[IngestionProgress], None]


def report_sort_key(report_id: str) -> tuple[str, str]:
    return locale.strxfrm(report_id.casefold()), report_id


def summarize_details(photo_sets: list[PhotoSet], details: DetailsParseResult) -> DetailsSummary | None:
    if details.source_file_name is None:
        return None
    report_ids = {ps.report_id for ps in photo_sets}
    missing = [ps.report_id for ps in photo_sets if ps.report_id not in details.details_by_id]
    unmatched = [rid for rid in details.details_by_id if rid not in report_ids]
    return DetailsSummary(
        source_file_name=details.source_file_name,
        matched_count=len(photo_sets) - len(missing),
        missing_in_details=missing,
        unmatched_in_details=unmatched,
    )


class IngestionPipeline:
    def __init__(
        self,
        extractor: MetadataExtractor | None = None,
        reader: TableReader = read_table,
    ) -> None:
        self._extractor = extractor or ExifMetadataExtractor()
        self._reader = reader
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    async def run(
        self,
        files: Iterable[SourceFile],
        mapping: ColumnMapping | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> IngestionResult:
        if self._running:
            raise IngestionBusyError("An ingestion run is already in progress")
        self._running = True
        try:
            return await self._run(list(files), mapping, on_progress)
        finally:
            self._running = False

    async def _run(
        self,
        files: list[SourceFile],
        mapping: ColumnMapping | None,
        on_progress: ProgressCallback | None,
    ) -> IngestionResult:
        errors: list[str] = []

        details = await asyncio.to_thread(parse_details_file, files, mapping, self._reader)
        if details.error:
            errors.append(details.error)

        classified = classify_files(files)
        total = len(classified)
        logger.info("Ingesting %d images from %d files", total, len(files))

        buckets: dict[str, StageBuckets[PhotoMetadata]] = {}
        for processed, item in enumerate(classified, start=1):
            photo = await self._extract(item.file)
            buckets.setdefault(item.report_id, StageBuckets()).add(item.stage, photo)
            if on_progress is not None:
                on_progress(IngestionProgress(processed=processed, total=total))

        photo_sets = [
            select_photo_set(report_id, photos).with_details(details.details_by_id.get(report_id))
            for report_id, photos in buckets.items()
        ]
        photo_sets.sort(key=lambda ps: report_sort_key(ps.report_id))

        summary = summarize_details(photo_sets, details)
        if summary and summary.unmatched_in_details:
            logger.info(
                "%d detail rows have no matching photo set", len(summary.unmatched_in_details)
            )

        return IngestionResult(
            photo_sets=photo_sets,
            details_source=details.source_file_name,
            details_summary=summary,
            errors=errors,
        )

    async def _extract(self, file: SourceFile) -> PhotoMetadata:
        try:
            extracted = await asyncio.to_thread(self._extractor.extract, file)
        except Exception as exc:
            logger.warning("Failed to extract metadata from %s: %s", file.relative_path, exc)
            extracted = ExtractedMetadata()

        return PhotoMetadata(
            name=file.name,
            relative_path=file.relative_path,
            url=file.url,
            location=extracted.location,
            orientation=extracted.orientation,
            timestamp=extracted.timestamp or file.last_modified,
        )
