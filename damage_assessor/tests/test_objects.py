from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from damage_assessor.api.routes.uploads import build_object_key
from damage_assessor.config import Settings
from damage_assessor.storage.factory import create_assessment_store, create_object_store
from damage_assessor.storage.objects import LocalObjectStore, S3ObjectStore


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "GetObject")


@pytest.mark.asyncio
async def test_local_put_and_get(tmp_path):
    store = LocalObjectStore(tmp_path)
    ref = await store.put("abc_photo.jpg", b"data", "image/jpeg")
    assert ref.key == "abc_photo.jpg"
    assert await store.get("abc_photo.jpg") == b"data"
    assert await store.get("missing.jpg") is None


@pytest.mark.asyncio
async def test_local_rejects_keys_outside_base(tmp_path):
    store = LocalObjectStore(tmp_path / "objects")
    with pytest.raises(ValueError):
        await store.put("../escape.txt", b"x")
    assert await store.get("../escape.txt") is None


@pytest.mark.asyncio
async def test_s3_put_passes_content_type():
    client = MagicMock()
    store = S3ObjectStore(bucket="uploads", client=client)

    ref = await store.put("k_photo.jpg", b"data", "image/jpeg")

    assert ref.key == "k_photo.jpg"
    client.put_object.assert_called_once_with(
        Bucket="uploads", Key="k_photo.jpg", Body=b"data", ContentType="image/jpeg"
    )


@pytest.mark.asyncio
async def test_s3_get():
    client = MagicMock()
    client.get_object.return_value = {"Body": MagicMock(read=MagicMock(return_value=b"data"))}
    store = S3ObjectStore(bucket="uploads", client=client)

    assert await store.get("k") == b"data"
    client.get_object.assert_called_once_with(Bucket="uploads", Key="k")


@pytest.mark.asyncio
async def test_s3_missing_key_is_none():
    client = MagicMock()
    client.get_object.side_effect = _client_error("NoSuchKey")
    store = S3ObjectStore(bucket="uploads", client=client)

    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_s3_other_errors_propagate():
    client = MagicMock()
    client.get_object.side_effect = _client_error("AccessDenied")
    store = S3ObjectStore(bucket="uploads", client=client)

    with pytest.raises(ClientError):
        await store.get("k")


def test_object_key_drops_directories():
    key = build_object_key("C:\\Users\\me\\site\\IMG_0001.JPG")
    prefix, name = key.split("_", 1)
    assert name == "IMG_0001.JPG"
    assert len(prefix) == 36
    assert build_object_key("a.jpg") != build_object_key("a.jpg")


def test_factory_selects_backends(tmp_path):
    config = Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/db.sqlite",
        STORAGE_BACKEND="s3",
        S3_BUCKET="bucket-x",
        AWS_ACCESS_KEY_ID="test",
        AWS_SECRET_ACCESS_KEY="test",
    )
    assert type(create_assessment_store(config)).__name__ == "SQLiteAssessmentStore"
    object_store = create_object_store(config)
    assert isinstance(object_store, S3ObjectStore)
    assert object_store.bucket == "bucket-x"

    local = create_object_store(Settings(STORAGE_BACKEND="local", STORAGE_LOCAL_PATH=str(tmp_path)))
    assert isinstance(local, LocalObjectStore)


def test_factory_rejects_unknown_backends():
    with pytest.raises(ValueError):
        create_assessment_store(Settings(DATABASE_URL="mysql+aiomysql://u:p@localhost/db"))
    with pytest.raises(ValueError):
        create_object_store(Settings(STORAGE_BACKEND="ftp"))
