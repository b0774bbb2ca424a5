"""
Ingest a local damage-report folder.

Runs the preflight checks and the full ingestion pipeline, then prints what
was found per damage report.

Usage:
    python -m damage_assessor.scripts.ingest FOLDER [--issues-csv PATH] [--session PATH]
"""

import argparse
import asyncio
import sys
from pathlib import Path

from damage_assessor.common.enums import Stage
from damage_assessor.common.logging import get_logger, setup_logging
from damage_assessor.core.ingestion.pipeline import IngestionPipeline
from damage_assessor.core.ingestion.preflight import build_preflight, issues_to_csv
from damage_assessor.core.ingestion.schemas import IngestionProgress
from damage_assessor.core.ingestion.sources import collect_folder
from damage_assessor.core.session.repository import JsonFileSessionRepository
from damage_assessor.core.session.state import AssessmentSession

logger = get_logger("scripts.ingest")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Ingest a damage-report photo folder.")
    parser.add_argument("folder", type=Path, help="root folder of the upload")
    parser.add_argument("--issues-csv", type=Path, help="write preflight issues to this CSV file")
    parser.add_argument("--session", type=Path, help="write an (empty) session export to this JSON file")
    return parser


def _log_progress(progress: IngestionProgress) -> None:
    if progress.total and (progress.processed == progress.total or progress.processed % 50 == 0):
        logger.info("Extracted metadata for %d/%d images", progress.processed, progress.total)


async def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if not args.folder.is_dir():
        print(f"Not a folder: {args.folder}", file=sys.stderr)
        return 2

    files = collect_folder(args.folder)
    preflight = build_preflight(files)
    print(f"Reports found: {preflight.report_count}")
    for stage in Stage:
        print(f"  missing {stage.value} photos: {preflight.missing_by_type[stage]}")
    if preflight.details_file_name:
        print(
            f"Details file {preflight.details_file_name}: {preflight.details_matched} matched, "
            f"{preflight.details_missing} missing, {preflight.details_unmatched} unmatched"
        )

    if args.issues_csv:
        args.issues_csv.write_text(issues_to_csv(preflight.issues), encoding="utf-8")
        print(f"Wrote {len(preflight.issues)} issues to {args.issues_csv}")

    session = AssessmentSession(pipeline=IngestionPipeline())
    result = await session.ingest(files, on_progress=_log_progress)
    if result is None:
        return 1

    print()
    print(f"{'damageId':<24}{'damage':>8}{'precond':>9}{'complete':>10}  details")
    for photo_set in result.photo_sets:
        print(
            f"{photo_set.report_id:<24}{len(photo_set.damage_photos):>8}"
            f"{len(photo_set.precondition_photos):>9}{len(photo_set.completion_photos):>10}"
            f"  {'yes' if photo_set.damage_details else '-'}"
        )
    for error in result.errors:
        print(f"error: {error}", file=sys.stderr)

    if args.session:
        JsonFileSessionRepository(args.session).save(session.snapshot())

    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
