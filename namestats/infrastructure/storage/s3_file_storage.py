"""S3 (and S3-compatible) storage for uploaded dataset files.

Object layout:
    <prefix><dataset_id>/original<ext>

boto3 is synchronous, so every call runs in a worker thread.
"""

import asyncio
import logging
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from io import BytesIO
from typing import BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from namestats.application.interfaces.file_storage import FileStorage
from namestats.domain.exceptions import StorageError, StoredFileNotFoundError
from namestats.infrastructure.storage.local_file_storage import _sanitise, _suffix

logger = logging.getLogger(__name__)

# Downloads larger than this spill from memory to a temp file
_SPOOL_MAX_BYTES = 8 * 1024 * 1024
_MISSING_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_missing(exc: ClientError) -> bool:
    return str(exc.response.get("Error", {}).get("Code")) in _MISSING_CODES


class S3FileStorage(FileStorage):
    """Infrastructure adapter for S3 object storage."""

    def __init__(
        self,
        bucket: str,
        prefix: str = "datasets/",
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = prefix.rstrip("/") + "/" if prefix else ""
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url or None,
        )
        logger.info("S3 storage: bucket=%s prefix=%s region=%s", bucket, self.prefix, region)

    async def save(self, dataset_id: str, filename: str, content: bytes | BinaryIO) -> str:
        key = f"{self.prefix}{_sanitise(dataset_id)}/original{_suffix(filename)}"
        body = BytesIO(content) if isinstance(content, bytes) else content

        try:
            await asyncio.to_thread(self._client.upload_fileobj, body, self.bucket, key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"could not upload s3://{self.bucket}/{key}: {exc}") from exc

        logger.info("Stored object: s3://%s/%s", self.bucket, key)
        return key

    @asynccontextmanager
    async def load(self, path: str) -> AsyncIterator[BinaryIO]:
        spool = tempfile.SpooledTemporaryFile(max_size=_SPOOL_MAX_BYTES, mode="w+b")
        try:
            try:
                await asyncio.to_thread(self._client.download_fileobj, self.bucket, path, spool)
            except ClientError as exc:
                if _is_missing(exc):
                    raise StoredFileNotFoundError(path) from exc
                raise StorageError(f"could not download s3://{self.bucket}/{path}: {exc}") from exc
            except BotoCoreError as exc:
                raise StorageError(f"could not download s3://{self.bucket}/{path}: {exc}") from exc

            spool.seek(0)
            yield spool
        finally:
            spool.close()

    async def delete(self, path: str) -> bool:
        if not await self.exists(path):
            return False
        try:
            await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"could not delete s3://{self.bucket}/{path}: {exc}") from exc
        logger.info("Deleted object: s3://%s/%s", self.bucket, path)
        return True

    async def exists(self, path: str) -> bool:
        try:
            await asyncio.to_thread(self._client.head_object, Bucket=self.bucket, Key=path)
        except ClientError as exc:
            if _is_missing(exc):
                return False
            raise StorageError(f"could not stat s3://{self.bucket}/{path}: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"could not stat s3://{self.bucket}/{path}: {exc}") from exc
        return True
