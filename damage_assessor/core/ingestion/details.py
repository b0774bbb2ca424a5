"""Damage details from an optional spreadsheet shipped with the photo upload.

Column headers are free-form, so each details field is matched against a
list of candidate names after normalising case, whitespace, underscores and
hyphens. An explicit ``ColumnMapping`` overrides the guess field by field.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from damage_assessor.common.logging import get_logger
from damage_assessor.core.ingestion.schemas import (
    ColumnMapping,
    DamageDetails,
    DetailsHeadersResult,
    DetailsParseResult,
)
from damage_assessor.core.ingestion.sources import SourceFile
from damage_assessor.core.ingestion.tabular import TabularData, TabularReadError, read_table

logger = get_logger("ingestion.details")

TableReader = Callable[[SourceFile], TabularData]

HEADER_CANDIDATES: dict[str, tuple[str, ...]] = {
    "damage_id": ("damageid", "damage_id", "reportid", "report_id", "folderpath", "folder"),
    "damage_type": ("damagetype", "damage_type"),
    "treatment": ("treatment", "repair", "action"),
    "dimensions": ("dimensions", "dimension", "size"),
    "cost_aud": ("costaud", "cost", "estimate", "price", "amount"),
    "length": ("length", "len"),
    "width": ("width", "wid"),
    "height": ("height", "depth"),
}

DIMENSION_SEPARATOR = " x "
MISSING_DAMAGE_ID = "Missing required column: damageId."

_HEADER_NOISE = re.compile(r"[\s_-]")
_NON_NUMERIC = re.compile(r"[^0-9.\-]")
_LEADING_NUMBER = re.compile(r"-?(?:[0-9]+\.?[0-9]*|\.[0-9]+)")


def normalize_header(value: str) -> str:
    return _HEADER_NOISE.sub("", value.lower())


def find_header(headers: Iterable[str], candidates: Iterable[str]) -> str | None:
    normalized: dict[str, str] = {}
    for header in headers:
        normalized[normalize_header(header)] = header
    for candidate in candidates:
        header = normalized.get(normalize_header(candidate))
        if header is not None:
            return header
    return None


def suggest_column_mapping(headers: list[str]) -> ColumnMapping:
    return ColumnMapping(**{name: find_header(headers, cands) for name, cands in HEADER_CANDIDATES.items()})


def merge_mapping(inferred: ColumnMapping, explicit: ColumnMapping | None) -> ColumnMapping:
    if explicit is None:
        return inferred
    overrides = explicit.model_dump(exclude_none=True)
    return inferred.model_copy(update=overrides)


def cell_value(row: Mapping[str, Any], key: str | None) -> str | None:
    if not key:
        return None
    value = row.get(key)
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    text = str(value).strip()
    return text or None


def parse_cost(value: str | None) -> float | None:
    if value is None:
        return None
    match = _LEADING_NUMBER.match(_NON_NUMERIC.sub("", value))
    if not match:
        return None
    number = float(match.group())
    return number if math.isfinite(number) else None


def build_dimensions(row: Mapping[str, Any], mapping: ColumnMapping) -> str | None:
    explicit = cell_value(row, mapping.dimensions)
    if explicit:
        return explicit
    parts = [cell_value(row, key) for key in (mapping.length, mapping.width, mapping.height)]
    present = [p for p in parts if p]
    return DIMENSION_SEPARATOR.join(present) if present else None


def map_details(
    rows: Iterable[Mapping[str, Any]],
    headers: list[str],
    mapping: ColumnMapping | None = None,
) -> DetailsParseResult:
    resolved = merge_mapping(suggest_column_mapping(headers), mapping)
    if not resolved.damage_id:
        return DetailsParseResult(error=MISSING_DAMAGE_ID)

    details: dict[str, DamageDetails] = {}
    for row in rows:
        damage_id = cell_value(row, resolved.damage_id)
        if not damage_id:
            continue
        details[damage_id] = DamageDetails(
            damage_type=cell_value(row, resolved.damage_type),
            treatment=cell_value(row, resolved.treatment),
            dimensions=build_dimensions(row, resolved),
            cost_aud=parse_cost(cell_value(row, resolved.cost_aud)),
        )
    return DetailsParseResult(details_by_id=details)


def find_details_file(files: Iterable[SourceFile]) -> SourceFile | None:
    return next((f for f in files if f.is_details_file), None)


def read_details_headers(
    files: Iterable[SourceFile], reader: TableReader = read_table
) -> DetailsHeadersResult:
    details_file = find_details_file(files)
    if details_file is None:
        return DetailsHeadersResult()
    try:
        table = reader(details_file)
    except TabularReadError as exc:
        return DetailsHeadersResult(source_file_name=details_file.name, error=str(exc))
    return DetailsHeadersResult(headers=table.headers, source_file_name=details_file.name)


def parse_details_file(
    files: Iterable[SourceFile],
    mapping: ColumnMapping | None = None,
    reader: TableReader = read_table,
) -> DetailsParseResult:
    """Details keyed by report id from the first tabular file in ``files``."""
    details_file = find_details_file(files)
    if details_file is None:
        return DetailsParseResult()

    try:
        table = reader(details_file)
    except TabularReadError as exc:
        return DetailsParseResult(source_file_name=details_file.name, error=str(exc))

    result = map_details(table.rows, table.headers, mapping)
    if result.error:
        logger.warning("Details file %s rejected: %s", details_file.name, result.error)
    else:
        logger.info("Loaded %d detail rows from %s", len(result.details_by_id), details_file.name)
    return result.model_copy(update={"source_file_name": details_file.name})
