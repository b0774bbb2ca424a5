"""Photo and document upload into the object store."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, File, UploadFile
from starlette.datastructures import UploadFile as StarletteUploadFile

from damage_assessor.api.deps import get_object_store
from damage_assessor.common.exceptions import BadRequestError
from damage_assessor.core.assessments.schemas import StoredObjectRef
from damage_assessor.storage.objects import ObjectStore

router = APIRouter(tags=["Uploads"])


def build_object_key(filename: str) -> str:
    """``{uuid4}_{name}``; any directory part of the client filename is dropped."""
    name = filename.replace("\\", "/").rsplit("/", 1)[-1]
    return f"{uuid.uuid4()}_{name}"


@router.post("/upload", response_model=StoredObjectRef, status_code=201, response_model_exclude_none=True)
async def upload_file(
    file: UploadFile | None = File(None),
    store: ObjectStore = Depends(get_object_store),
):
    if not isinstance(file, StarletteUploadFile) or not file.filename:
        raise BadRequestError("Missing file")

    key = build_object_key(file.filename)
    data = await file.read()
    return await store.put(key, data, file.content_type)
