"""Key-addressed blob storage.

Local files for development; any S3-compatible bucket when configured.
Objects are write-once: there is no listing, update or delete here.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from damage_assessor.common.logging import get_logger
from damage_assessor.core.assessments.schemas import StoredObjectRef


class ObjectStore(ABC):
    def __init__(self, name: str) -> None:
        self.logger = get_logger(f"storage.objects.{name}")

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> StoredObjectRef:
        ...

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Object content, or ``None`` when the key is unknown."""


class LocalObjectStore(ObjectStore):
    def __init__(self, base_dir: str | Path) -> None:
        super().__init__("local")
        self._base_dir = Path(base_dir)

    def _path_for(self, key: str) -> Path:
        base = self._base_dir.resolve()
        path = (base / key).resolve()
        if base not in path.parents:
            raise ValueError(f"Object key escapes storage directory: {key!r}")
        return path

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> StoredObjectRef:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self.logger.info("Local upload: %s (%d bytes)", key, len(data))
        return StoredObjectRef(key=key)

    async def get(self, key: str) -> bytes | None:
        try:
            return self._path_for(key).read_bytes()
        except (OSError, ValueError):
            return None


class S3ObjectStore(ObjectStore):
    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client=None,
    ) -> None:
        super().__init__("s3")
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key_id or None,
            aws_secret_access_key=secret_access_key or None,
            config=Config(signature_version="s3v4"),
            region_name=region,
        )

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> StoredObjectRef:
        kwargs = {"Bucket": self.bucket, "Key": key, "Body": data}
        if content_type:
            kwargs["ContentType"] = content_type
        await asyncio.to_thread(self.client.put_object, **kwargs)
        self.logger.info("S3 upload: %s/%s (%d bytes)", self.bucket, key, len(data))
        return StoredObjectRef(key=key)

    async def get(self, key: str) -> bytes | None:
        try:
            response = await asyncio.to_thread(self.client.get_object, Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("NoSuchKey", "404"):
                return None
            self.logger.error("Error reading %s from S3: %s", key, e)
            raise
        return await asyncio.to_thread(response["Body"].read)
