"""Uploaded files as seen by the ingestion pipeline.

A ``SourceFile`` mirrors what a browser folder upload hands over: a
slash-delimited path relative to the parent of the chosen folder (so the
first segment is the main folder name), a MIME type and a modification time.
"""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

DETAILS_EXTENSIONS = (".csv", ".xlsx", ".xls")
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(name: str) -> str:
    content_type, _ = mimetypes.guess_type(name)
    return content_type or DEFAULT_CONTENT_TYPE


@dataclass(frozen=True)
class SourceFile:
    relative_path: str
    content_type: str
    last_modified: datetime
    path: Path | None = None
    data: bytes | None = None

    @classmethod
    def from_bytes(
        cls,
        relative_path: str,
        data: bytes,
        content_type: str | None = None,
        last_modified: datetime | None = None,
    ) -> SourceFile:
        return cls(
            relative_path=relative_path,
            content_type=content_type or guess_content_type(relative_path),
            last_modified=last_modified or datetime.now(timezone.utc),
            data=data,
        )

    @property
    def name(self) -> str:
        return self.relative_path.rsplit("/", 1)[-1]

    @property
    def parts(self) -> list[str]:
        return self.relative_path.split("/")

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")

    @property
    def is_details_file(self) -> bool:
        return self.name.lower().endswith(DETAILS_EXTENSIONS)

    @property
    def url(self) -> str:
        if self.path is not None:
            return self.path.resolve().as_uri()
        return f"upload:{self.relative_path}"

    def read_bytes(self) -> bytes:
        if self.data is not None:
            return self.data
        if self.path is None:
            raise ValueError(f"No content available for {self.relative_path}")
        return self.path.read_bytes()


def collect_folder(folder: str | Path) -> list[SourceFile]:
    """List every file below ``folder`` the way a folder upload would."""
    root = Path(folder)
    if not root.is_dir():
        raise NotADirectoryError(str(root))

    files: list[SourceFile] = []
    for path in sorted(p for p in root.rglob("*") if p.is_file()):
        relative = f"{root.name}/{path.relative_to(root).as_posix()}"
        files.append(
            SourceFile(
                relative_path=relative,
                content_type=guess_content_type(path.name),
                last_modified=datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc),
                path=path,
            )
        )
    return files
