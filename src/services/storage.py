"""
Blob storage for page snapshots and favicons.

Two backends share the async `BlobStore` interface:

- `LocalBlobStore` keeps objects on the local filesystem (development, single host).
- `S3BlobStore` talks to an S3-compatible bucket such as Cloudflare R2.

Backend failures are raised as `StorageError`. Reading or deleting a key that does
not exist is not an error.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class StorageError(Exception):
    """Raised when the blob store cannot complete an operation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


@dataclass
class StoredObject:
    """A blob read back from the store."""

    data: bytes
    content_type: str


class BlobStore:
    """Interface implemented by every storage backend."""

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        """Write `data` under `key`, replacing any existing object."""
        raise NotImplementedError

    async def get(self, key: str) -> StoredObject | None:
        """Read the object under `key`, or None if there is none."""
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        """Remove the object under `key`. Missing keys are ignored."""
        raise NotImplementedError

    async def list_keys(self, prefix: str = "") -> list[str]:
        """Return all keys starting with `prefix`, sorted."""
        raise NotImplementedError

    async def ping(self) -> None:
        """Check that the backend is reachable. Raises StorageError if not."""
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """
    Filesystem-backed store.

    Each object is a file at `<root>/<key>`; its content type is kept in a
    `<key>.meta.json` sidecar next to it.
    """

    META_SUFFIX = ".meta.json"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not key or not path.is_relative_to(self.root) or path == self.root:
            raise StorageError(f"Invalid storage key: {key!r}")
        return path

    def _meta_path(self, path: Path) -> Path:
        return path.with_name(path.name + self.META_SUFFIX)

    def _put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        self._meta_path(path).write_text(json.dumps({"content_type": content_type}))

    def _get(self, key: str) -> StoredObject | None:
        path = self._path(key)
        if not path.is_file():
            return None
        content_type = DEFAULT_CONTENT_TYPE
        meta_path = self._meta_path(path)
        if meta_path.is_file():
            content_type = json.loads(meta_path.read_text()).get(
                "content_type", DEFAULT_CONTENT_TYPE,
            )
        return StoredObject(data=path.read_bytes(), content_type=content_type)

    def _delete(self, key: str) -> None:
        path = self._path(key)
        path.unlink(missing_ok=True)
        self._meta_path(path).unlink(missing_ok=True)

    def _list_keys(self, prefix: str) -> list[str]:
        if not self.root.is_dir():
            return []
        keys = []
        for path in self.root.rglob("*"):
            if not path.is_file() or path.name.endswith(self.META_SUFFIX):
                continue
            key = path.relative_to(self.root).as_posix()
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(self._put, key, data, content_type)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e

    async def get(self, key: str) -> StoredObject | None:
        try:
            return await asyncio.to_thread(self._get, key)
        except (OSError, ValueError) as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete, key)
        except OSError as e:
            raise StorageError(f"Could not delete {key}: {e}") from e

    async def list_keys(self, prefix: str = "") -> list[str]:
        try:
            return await asyncio.to_thread(self._list_keys, prefix)
        except OSError as e:
            raise StorageError(f"Could not list {prefix!r}: {e}") from e

    async def ping(self) -> None:
        try:
            await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Storage directory unavailable: {e}") from e


class S3BlobStore(BlobStore):
    """
    Store backed by an S3-compatible bucket (AWS S3, Cloudflare R2, MinIO).

    boto3 is synchronous, so every call runs in a worker thread.
    """

    def __init__(self, client, bucket: str) -> None:  # noqa: ANN001
        self.client = client
        self.bucket = bucket

    @classmethod
    def from_settings(cls, settings: Settings) -> "S3BlobStore":
        """Build a client for the configured endpoint and bucket."""
        if not (
            settings.s3_endpoint_url
            and settings.s3_access_key_id
            and settings.s3_secret_access_key
            and settings.s3_bucket
        ):
            raise StorageError("S3 storage is not fully configured")
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=settings.s3_region,
            config=Config(signature_version="s3v4"),
        )
        return cls(client, settings.s3_bucket)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not write {key}: {e}") from e

    async def get(self, key: str) -> StoredObject | None:
        try:
            response = await asyncio.to_thread(
                self.client.get_object, Bucket=self.bucket, Key=key,
            )
            data = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            raise StorageError(f"Could not read {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Could not read {key}: {e}") from e
        return StoredObject(
            data=data,
            content_type=response.get("ContentType") or DEFAULT_CONTENT_TYPE,
        )

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(
                self.client.delete_object, Bucket=self.bucket, Key=key,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not delete {key}: {e}") from e

    async def list_keys(self, prefix: str = "") -> list[str]:
        def _list() -> list[str]:
            keys = []
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
            return sorted(keys)

        try:
            return await asyncio.to_thread(_list)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Could not list {prefix!r}: {e}") from e

    async def ping(self) -> None:
        try:
            await asyncio.to_thread(self.client.head_bucket, Bucket=self.bucket)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Bucket {self.bucket!r} unavailable: {e}") from e


def build_blob_store(settings: Settings) -> BlobStore:
    """Create the blob store selected by `settings.storage_backend`."""
    if settings.storage_backend == "s3":
        return S3BlobStore.from_settings(settings)
    logger.info("Using local blob storage at %s", settings.local_storage_dir)
    return LocalBlobStore(settings.local_storage_dir)


@lru_cache
def get_blob_store() -> BlobStore:
    """Get the cached blob store for the current settings (FastAPI dependency)."""
    return build_blob_store(get_settings())
