"""Unit tests for the local and S3 file storage adapters."""

from io import BytesIO
from pathlib import Path

import pytest
from botocore.exceptions import ClientError

from namestats.domain.exceptions import StorageError, StoredFileNotFoundError, is_permanent
from namestats.infrastructure.storage.local_file_storage import LocalFileStorage
from namestats.infrastructure.storage.s3_file_storage import S3FileStorage


# ── Fake S3 client ───────────────────────────────────────────────────

class FakeS3Client:
    """In-memory stand-in for the handful of boto3 S3 calls the adapter makes."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_with: Exception | None = None

    def _missing(self, operation: str) -> ClientError:
        return ClientError({"Error": {"Code": "404", "Message": "Not Found"}}, operation)

    def upload_fileobj(self, fileobj, bucket, key):
        if self.fail_with:
            raise self.fail_with
        self.objects[(bucket, key)] = fileobj.read()

    def download_fileobj(self, bucket, key, fileobj):
        if (bucket, key) not in self.objects:
            raise self._missing("GetObject")
        fileobj.write(self.objects[(bucket, key)])

    def head_object(self, Bucket, Key):
        if (Bucket, Key) not in self.objects:
            raise self._missing("HeadObject")
        return {"ContentLength": len(self.objects[(Bucket, Key)])}

    def delete_object(self, Bucket, Key):
        self.objects.pop((Bucket, Key), None)


# ── Fixtures ─────────────────────────────────────────────────────────

@pytest.fixture
def local(tmp_path):
    return LocalFileStorage(storage_path=str(tmp_path / "uploads"))


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def s3(s3_client):
    return S3FileStorage(bucket="names", prefix="datasets", client=s3_client)


# ── LocalFileStorage Tests ──────────────────────────────────────────

class TestLocalFileStorage:
    @pytest.mark.asyncio
    async def test_save_layout(self, local, tmp_path):
        path = await local.save("ds-1", "yob2023.TXT", b"Emma,F,15581\n")

        assert Path(path) == tmp_path / "uploads" / "ds-1" / "original.txt"
        assert Path(path).read_bytes() == b"Emma,F,15581\n"
        assert await local.exists(path)

    @pytest.mark.asyncio
    async def test_save_stream(self, local):
        path = await local.save("ds-2", "names.csv", BytesIO(b"Liam,M,19659\n"))
        assert Path(path).read_bytes() == b"Liam,M,19659\n"

    @pytest.mark.asyncio
    async def test_load_yields_binary_handle(self, local):
        path = await local.save("ds-1", "yob2023.txt", b"Emma,F,15581\n")

        async with local.load(path) as stream:
            assert stream.read() == b"Emma,F,15581\n"
        assert stream.closed

    @pytest.mark.asyncio
    async def test_load_missing_is_transient(self, local, tmp_path):
        with pytest.raises(StoredFileNotFoundError) as exc_info:
            async with local.load(str(tmp_path / "nope" / "original.txt")):
                pass
        assert not is_permanent(exc_info.value)

    @pytest.mark.asyncio
    async def test_delete(self, local):
        path = await local.save("ds-1", "yob2023.txt", b"x")

        assert await local.delete(path) is True
        assert not await local.exists(path)
        assert not Path(path).parent.exists()
        assert await local.delete(path) is False

    @pytest.mark.asyncio
    async def test_dataset_id_cannot_escape_root(self, local, tmp_path):
        path = await local.save("../../etc", "yob2023.txt", b"x")
        assert Path(path).resolve().is_relative_to((tmp_path / "uploads").resolve())


# ── S3FileStorage Tests ─────────────────────────────────────────────

class TestS3FileStorage:
    @pytest.mark.asyncio
    async def test_round_trip(self, s3, s3_client):
        key = await s3.save("ds-1", "yob2023.txt", b"Emma,F,15581\n")

        assert key == "datasets/ds-1/original.txt"
        assert ("names", key) in s3_client.objects
        async with s3.load(key) as stream:
            assert stream.read() == b"Emma,F,15581\n"

    @pytest.mark.asyncio
    async def test_missing_object(self, s3):
        assert not await s3.exists("datasets/none/original.txt")
        with pytest.raises(StoredFileNotFoundError):
            async with s3.load("datasets/none/original.txt"):
                pass

    @pytest.mark.asyncio
    async def test_upload_error_is_storage_error(self, s3, s3_client):
        s3_client.fail_with = ClientError(
            {"Error": {"Code": "SlowDown", "Message": "Reduce your request rate"}}, "PutObject"
        )
        with pytest.raises(StorageError):
            await s3.save("ds-1", "yob2023.txt", b"x")

    @pytest.mark.asyncio
    async def test_delete(self, s3):
        key = await s3.save("ds-1", "yob2023.txt", b"x")
        assert await s3.delete(key) is True
        assert await s3.delete(key) is False
