# ============================================================================
# src/medical_docintel/storage/s3_storage.py
# ============================================================================
"""
S3 storage.

Also stages multi-page documents for asynchronous Textract analysis, which
only reads from S3: objects go under textract-processing/ and are removed
once the Textract job has finished.
"""

import asyncio
from typing import Any, Optional, Tuple

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import OcrSettings
from ..ocr.base import PDF_MIME_TYPE
from ..utils.exceptions import ConfigurationError, StorageError, StorageObjectNotFoundError
from .base import BaseStorage

TEXTRACT_STAGING_PREFIX = "textract-processing"

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}


class S3Storage(BaseStorage):
    """
    Stores documents in an S3 bucket.

    boto3 is synchronous; every call runs via asyncio.to_thread.

    Args:
        settings: AWS credentials, region and bucket
        client: Pre-built S3 client (tests inject a fake)
    """

    def __init__(self, settings: OcrSettings, client: Any = None):
        super().__init__()
        self.settings = settings
        self.bucket = settings.S3_BUCKET
        self._client = client

    @property
    def backend_name(self) -> str:
        return "s3"

    def _get_client(self):
        if self._client is None:
            if not self.settings.aws_configured:
                raise ConfigurationError("AWS credentials not configured for S3 storage")
            self._client = boto3.client(
                "s3",
                region_name=self.settings.AWS_REGION,
                aws_access_key_id=self.settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=self.settings.AWS_SECRET_ACCESS_KEY,
            )
        return self._client

    async def upload(self, content: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        client = self._get_client()
        self.logger.info(f"Uploading {key} to s3://{self.bucket} ({len(content)} bytes)")
        try:
            await asyncio.to_thread(
                client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 upload failed for {key}: {e}") from e
        return key

    async def download(self, key: str) -> bytes:
        client = self._get_client()
        try:
            response = await asyncio.to_thread(client.get_object, Bucket=self.bucket, Key=key)
            body = await asyncio.to_thread(response["Body"].read)
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                raise StorageObjectNotFoundError(key) from e
            raise StorageError(f"S3 download failed for {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 download failed for {key}: {e}") from e

        self.logger.info(f"Downloaded {key} ({len(body)} bytes)")
        return body

    async def delete(self, key: str) -> None:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.delete_object, Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"S3 delete failed for {key}: {e}") from e
        self.logger.info(f"Deleted {key} from s3://{self.bucket}")

    async def exists(self, key: str) -> bool:
        client = self._get_client()
        try:
            await asyncio.to_thread(client.head_object, Bucket=self.bucket, Key=key)
            return True
        except ClientError as e:
            if _error_code(e) in _NOT_FOUND_CODES:
                return False
            raise StorageError(f"S3 head failed for {key}: {e}") from e

    # ------------------------------------------------------------------
    # Textract staging
    # ------------------------------------------------------------------

    async def stage_for_textract(
        self,
        content: bytes,
        processing_id: str,
        mime_type: str,
    ) -> Tuple[str, str]:
        """Upload content for async Textract and return (bucket, key)."""
        extension = "pdf" if mime_type == PDF_MIME_TYPE else "png"
        key = f"{TEXTRACT_STAGING_PREFIX}/{processing_id}.{extension}"
        await self.upload(content, key, content_type=mime_type)
        return self.bucket, key

    async def delete_staged(self, key: str) -> None:
        """Best-effort removal of a staged object; failures are only logged."""
        try:
            await self.delete(key)
        except (StorageError, ConfigurationError) as e:
            self.logger.warning(f"Failed to delete Textract staging object {key}: {e}")


def _error_code(error: ClientError) -> Optional[str]:
    return error.response.get("Error", {}).get("Code")
