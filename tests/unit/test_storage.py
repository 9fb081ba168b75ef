# ============================================================================
# FILE: tests/unit/test_storage.py
# ============================================================================
"""
Unit tests for local and S3 document storage
"""

import io

import pytest
from botocore.exceptions import ClientError

from medical_docintel.storage.local_storage import LocalFileStorage
from medical_docintel.storage.s3_storage import S3Storage
from medical_docintel.utils.exceptions import (
    ConfigurationError,
    StorageError,
    StorageObjectNotFoundError,
)


# ============================================================================
# Local filesystem
# ============================================================================

@pytest.mark.asyncio
async def test_local_upload_download_delete(tmp_path):
    storage = LocalFileStorage(tmp_path / "uploads")

    key = await storage.upload(b"%PDF-1.4", "documents/abc.pdf", "application/pdf")

    assert key == "documents/abc.pdf"
    assert (tmp_path / "uploads" / "documents" / "abc.pdf").read_bytes() == b"%PDF-1.4"
    assert await storage.exists(key) is True
    assert await storage.download(key) == b"%PDF-1.4"

    await storage.delete(key)
    assert await storage.exists(key) is False
    # deleting again is not an error
    await storage.delete(key)


@pytest.mark.asyncio
async def test_local_download_missing(tmp_path):
    storage = LocalFileStorage(tmp_path)

    with pytest.raises(StorageObjectNotFoundError):
        await storage.download("documents/missing.pdf")


@pytest.mark.asyncio
async def test_local_rejects_path_traversal(tmp_path):
    storage = LocalFileStorage(tmp_path / "uploads")

    with pytest.raises(StorageError):
        await storage.upload(b"x", "../outside.txt")


def test_backend_name(tmp_path):
    assert LocalFileStorage(tmp_path).backend_name == "local"


# ============================================================================
# S3
# ============================================================================

def _client_error(code):
    return ClientError({"Error": {"Code": code, "Message": code}}, "Operation")


class FakeS3Client:
    def __init__(self):
        self.objects = {}
        self.put_calls = []

    def put_object(self, Bucket, Key, Body, ContentType):
        self.put_calls.append({"Bucket": Bucket, "Key": Key, "ContentType": ContentType})
        self.objects[Key] = Body

    def get_object(self, Bucket, Key):
        if Key not in self.objects:
            raise _client_error("NoSuchKey")
        return {"Body": io.BytesIO(self.objects[Key])}

    def delete_object(self, Bucket, Key):
        self.objects.pop(Key, None)

    def head_object(self, Bucket, Key):
        if Key not in self.objects:
            raise _client_error("404")
        return {}


@pytest.mark.asyncio
async def test_s3_round_trip(ocr_settings):
    client = FakeS3Client()
    storage = S3Storage(ocr_settings, client=client)

    await storage.upload(b"img", "documents/a.png", "image/png")

    assert client.put_calls[0]["Bucket"] == ocr_settings.S3_BUCKET
    assert client.put_calls[0]["ContentType"] == "image/png"
    assert await storage.download("documents/a.png") == b"img"
    assert await storage.exists("documents/a.png") is True
    assert await storage.exists("documents/b.png") is False


@pytest.mark.asyncio
async def test_s3_missing_key(ocr_settings):
    storage = S3Storage(ocr_settings, client=FakeS3Client())

    with pytest.raises(StorageObjectNotFoundError):
        await storage.download("documents/nope.pdf")


@pytest.mark.asyncio
async def test_s3_textract_staging(ocr_settings):
    client = FakeS3Client()
    storage = S3Storage(ocr_settings, client=client)

    bucket, key = await storage.stage_for_textract(b"%PDF", "proc-1", "application/pdf")

    assert bucket == ocr_settings.S3_BUCKET
    assert key == "textract-processing/proc-1.pdf"
    assert key in client.objects

    await storage.delete_staged(key)
    assert key not in client.objects


@pytest.mark.asyncio
async def test_s3_without_credentials(ocr_settings):
    storage = S3Storage(ocr_settings)

    with pytest.raises(ConfigurationError):
        await storage.download("documents/a.png")

    # staging cleanup only logs
    await storage.delete_staged("textract-processing/x.pdf")
