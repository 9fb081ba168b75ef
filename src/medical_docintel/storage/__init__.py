# ============================================================================
# src/medical_docintel/storage/__init__.py
# ============================================================================
"""Document byte storage backends."""

from .base import BaseStorage
from .local_storage import LocalFileStorage
from .s3_storage import S3Storage, TEXTRACT_STAGING_PREFIX

__all__ = [
    'BaseStorage',
    'LocalFileStorage',
    'S3Storage',
    'TEXTRACT_STAGING_PREFIX',
]
