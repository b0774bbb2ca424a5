"""Spreadsheet / CSV reading for the optional damage details file."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import Any

import pandas as pd

from damage_assessor.common.logging import get_logger
from damage_assessor.core.ingestion.sources import SourceFile

logger = get_logger("ingestion.tabular")

NO_WORKSHEET = "No worksheet found in details file."
NO_ROWS = "Details file contains no rows."


class TabularReadError(Exception):
    pass


@dataclass
class TabularData:
    headers: list[str]
    rows: list[dict[str, Any]] = field(default_factory=list)


def _read_frame(file: SourceFile) -> pd.DataFrame:
    buffer = io.BytesIO(file.read_bytes())
    if file.name.lower().endswith(".csv"):
        try:
            return pd.read_csv(buffer, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        except pd.errors.EmptyDataError as exc:
            raise TabularReadError(NO_ROWS) from exc

    workbook = pd.ExcelFile(buffer)
    if not workbook.sheet_names:
        raise TabularReadError(NO_WORKSHEET)
    return workbook.parse(workbook.sheet_names[0], dtype=str, keep_default_na=False)


def read_table(file: SourceFile) -> TabularData:
    """Header row and data rows of the first worksheet.

    Raises ``TabularReadError`` with a user-facing message when the file
    cannot be read or holds no data rows.
    """
    try:
        frame = _read_frame(file)
    except TabularReadError:
        raise
    except Exception as exc:
        logger.warning("Unable to read details file %s: %s", file.relative_path, exc)
        raise TabularReadError(f"Unable to read details file: {exc}") from exc

    if frame.empty:
        raise TabularReadError(NO_ROWS)

    headers = [str(c) for c in frame.columns]
    frame.columns = headers
    return TabularData(headers=headers, rows=frame.to_dict(orient="records"))
