"""Folder-name heuristics that turn upload paths into report ids and stages.

Expected layout: ``[Main Folder]/[Report ID]/[Photo Type]/[Images...]``.
Nothing here rejects a file: when a path does not follow the layout the
second-to-last segment stands in for the photo-type folder, and a folder
that names no stage puts the photo in the damage bucket.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from damage_assessor.common.enums import Stage
from damage_assessor.common.logging import get_logger
from damage_assessor.core.ingestion.sources import SourceFile

logger = get_logger("ingestion.classifier")

T = TypeVar("T")
U = TypeVar("U")

PRECONDITION_KEYWORDS = ("precondition", "pre-condition", "pre_condition", "before")
DAMAGE_KEYWORDS = ("damage",)
COMPLETION_KEYWORDS = ("completion", "after")

STAGE_PREFIXES = {
    Stage.PRECONDITION: "01-",
    Stage.DAMAGE: "02-",
    Stage.COMPLETION: "03-",
}

# Any of these marks a path segment as the photo-type folder.
STAGE_FOLDER_KEYWORDS = PRECONDITION_KEYWORDS + DAMAGE_KEYWORDS + COMPLETION_KEYWORDS
STAGE_FOLDER_PREFIXES = tuple(STAGE_PREFIXES.values())

FALLBACK_STAGE = Stage.DAMAGE


def _matches(keywords: tuple[str, ...], prefix: str) -> Callable[[str], bool]:
    def predicate(folder: str) -> bool:
        return folder.startswith(prefix) or any(k in folder for k in keywords)

    return predicate


# Evaluated in order, first match wins.
STAGE_RULES: tuple[tuple[Callable[[str], bool], Stage], ...] = (
    (_matches(DAMAGE_KEYWORDS, STAGE_PREFIXES[Stage.DAMAGE]), Stage.DAMAGE),
    (_matches(PRECONDITION_KEYWORDS, STAGE_PREFIXES[Stage.PRECONDITION]), Stage.PRECONDITION),
    (_matches(COMPLETION_KEYWORDS, STAGE_PREFIXES[Stage.COMPLETION]), Stage.COMPLETION),
)


@dataclass
class StageBuckets(Generic[T]):
    damage: list[T] = field(default_factory=list)
    precondition: list[T] = field(default_factory=list)
    completion: list[T] = field(default_factory=list)

    def bucket(self, stage: Stage) -> list[T]:
        return getattr(self, stage.value)

    def add(self, stage: Stage, item: T) -> None:
        self.bucket(stage).append(item)

    def map(self, fn: Callable[[T], U]) -> StageBuckets[U]:
        return StageBuckets(
            damage=[fn(i) for i in self.damage],
            precondition=[fn(i) for i in self.precondition],
            completion=[fn(i) for i in self.completion],
        )

    def __len__(self) -> int:
        return len(self.damage) + len(self.precondition) + len(self.completion)


@dataclass(frozen=True)
class PathClassification:
    report_id: str
    stage: Stage
    stage_folder: str | None
    stage_index: int | None
    keyword_matched: bool
    stage_defaulted: bool


@dataclass(frozen=True)
class ClassifiedFile:
    file: SourceFile
    report_id: str
    stage: Stage


def is_stage_folder(folder: str) -> bool:
    return any(k in folder for k in STAGE_FOLDER_KEYWORDS) or folder.startswith(STAGE_FOLDER_PREFIXES)


def locate_stage_folder(parts: list[str]) -> tuple[int | None, bool]:
    """Index of the photo-type folder and whether a keyword picked it."""
    for i, segment in enumerate(parts[:-1]):
        if is_stage_folder(segment.lower().strip()):
            return i, True
    if len(parts) >= 2:
        return len(parts) - 2, False
    return None, False


def resolve_report_id(parts: list[str], stage_index: int | None) -> str:
    if stage_index is not None and stage_index > 0:
        return parts[stage_index - 1]
    if len(parts) >= 2:
        return parts[1]
    return parts[0]


def match_stage(folder: str | None) -> Stage | None:
    if folder is None:
        return None
    for predicate, stage in STAGE_RULES:
        if predicate(folder):
            return stage
    return None


def classify_stage(folder: str | None) -> Stage:
    return match_stage(folder) or FALLBACK_STAGE


def classify_path(relative_path: str) -> PathClassification:
    parts = relative_path.split("/")
    stage_index, keyword_matched = locate_stage_folder(parts)
    stage_folder = parts[stage_index].lower().strip() if stage_index is not None else None
    matched = match_stage(stage_folder)
    return PathClassification(
        report_id=resolve_report_id(parts, stage_index),
        stage=matched or FALLBACK_STAGE,
        stage_folder=stage_folder,
        stage_index=stage_index,
        keyword_matched=keyword_matched,
        stage_defaulted=matched is None,
    )


def classify_files(files: Iterable[SourceFile]) -> list[ClassifiedFile]:
    """Classify every image in input order; other files are skipped."""
    classified: list[ClassifiedFile] = []
    for file in files:
        if not file.is_image:
            continue
        result = classify_path(file.relative_path)
        if result.stage_defaulted:
            logger.warning(
                "Unclear photo type folder %r for %s, defaulting to %s",
                result.stage_folder, file.relative_path, FALLBACK_STAGE.value,
            )
        logger.debug(
            "Classified %s | report=%s | stage=%s", file.relative_path, result.report_id, result.stage.value
        )
        classified.append(ClassifiedFile(file=file, report_id=result.report_id, stage=result.stage))
    return classified


def group_files(files: Iterable[SourceFile]) -> dict[str, StageBuckets[SourceFile]]:
    """Report id -> stage buckets, in order of first appearance."""
    grouped: dict[str, StageBuckets[SourceFile]] = {}
    for item in classify_files(files):
        grouped.setdefault(item.report_id, StageBuckets()).add(item.stage, item.file)
    return grouped
