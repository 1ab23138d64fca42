"""Blob store contract and its S3-compatible implementation."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from callreview.errors import StorageError

logger = logging.getLogger(__name__)

_MISSING_CODES = {"404", "NoSuchKey", "NotFound"}


class BlobStore(ABC):
    """Opaque object storage used by the pipeline stages."""

    @abstractmethod
    async def exists(self, bucket: str, path: str) -> bool:
        ...

    @abstractmethod
    async def download(self, bucket: str, path: str, local_dest: str) -> None:
        ...

    @abstractmethod
    async def upload(self, bucket: str, path: str, local_src: str, content_type: str) -> None:
        ...

    @abstractmethod
    async def remove(self, bucket: str, path: str) -> None:
        ...

    @abstractmethod
    def uri(self, bucket: str, path: str) -> str:
        """Return the address the transcription provider fetches the object from."""


def build_storage_uri(endpoint: str, bucket: str, key: str) -> str:
    return f"{endpoint.rstrip('/')}/{bucket}/{key}"


class S3BlobStore(BlobStore):
    """boto3-backed blob store; blocking calls run in the threadpool."""

    def __init__(self, client, *, endpoint: str | None = None, region: str | None = None) -> None:
        self._client = client
        self._endpoint = endpoint
        self._region = region

    async def exists(self, bucket: str, path: str) -> bool:
        try:
            await run_in_threadpool(self._client.head_object, Bucket=bucket, Key=path)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_CODES:
                return False
            raise StorageError(f"Failed to stat s3://{bucket}/{path}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"Failed to stat s3://{bucket}/{path}: {exc}") from exc
        return True

    async def download(self, bucket: str, path: str, local_dest: str) -> None:
        try:
            await run_in_threadpool(self._client.download_file, bucket, path, local_dest)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to download s3://{bucket}/{path}: {exc}") from exc
        logger.debug("Downloaded s3://%s/%s to %s", bucket, path, local_dest)

    async def upload(self, bucket: str, path: str, local_src: str, content_type: str) -> None:
        try:
            await run_in_threadpool(
                self._client.upload_file,
                local_src,
                bucket,
                path,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload s3://{bucket}/{path}: {exc}") from exc
        logger.debug("Uploaded %s to s3://%s/%s (%s)", local_src, bucket, path, content_type)

    async def remove(self, bucket: str, path: str) -> None:
        try:
            await run_in_threadpool(self._client.delete_object, Bucket=bucket, Key=path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to remove s3://{bucket}/{path}: {exc}") from exc

    def uri(self, bucket: str, path: str) -> str:
        if self._endpoint:
            return build_storage_uri(self._endpoint, bucket, path)
        region = self._region or "us-east-1"
        if region == "us-east-1":
            return f"https://{bucket}.s3.amazonaws.com/{path}"
        return f"https://{bucket}.s3.{region}.amazonaws.com/{path}"


async def remove_if_exists(store: BlobStore, bucket: str, path: str) -> bool:
    """Delete ``path`` when present; returns whether anything was removed."""

    if not await store.exists(bucket, path):
        return False
    await store.remove(bucket, path)
    return True


__all__ = [
    "BlobStore",
    "S3BlobStore",
    "build_storage_uri",
    "remove_if_exists",
]
