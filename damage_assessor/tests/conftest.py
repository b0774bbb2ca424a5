import io
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from damage_assessor.core.ingestion.sources import SourceFile
from damage_assessor.storage.assessments import SQLiteAssessmentStore
from damage_assessor.storage.objects import LocalObjectStore

FIXED_MTIME = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
async def assessment_store(tmp_path):
    store = SQLiteAssessmentStore.from_url(f"sqlite+aiosqlite:///{tmp_path}/db.sqlite")
    await store.init()
    yield store
    await store.close()


@pytest.fixture
def object_store(tmp_path):
    return LocalObjectStore(tmp_path / "objects")


@pytest.fixture
def app(assessment_store, object_store):
    from damage_assessor.api.deps import get_assessment_store, get_object_store
    from damage_assessor.main import app

    app.dependency_overrides[get_assessment_store] = lambda: assessment_store
    app.dependency_overrides[get_object_store] = lambda: object_store
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _jpeg_bytes(orientation: int | None = None) -> bytes:
    image = Image.new("RGB", (4, 4), color=(200, 80, 40))
    buffer = io.BytesIO()
    if orientation is None:
        image.save(buffer, format="JPEG")
    else:
        exif = Image.Exif()
        exif[0x0112] = orientation
        image.save(buffer, format="JPEG", exif=exif.tobytes())
    return buffer.getvalue()


@pytest.fixture
def make_jpeg():
    """Tiny JPEG bytes, optionally tagged with an EXIF orientation."""
    return _jpeg_bytes


@pytest.fixture
def make_image():
    def factory(path: str, data: bytes = b"not really a jpeg") -> SourceFile:
        return SourceFile.from_bytes(path, data, content_type="image/jpeg", last_modified=FIXED_MTIME)

    return factory


@pytest.fixture
def make_csv():
    def factory(path: str, text: str) -> SourceFile:
        return SourceFile.from_bytes(
            path, text.encode("utf-8"), content_type="text/csv", last_modified=FIXED_MTIME
        )

    return factory
