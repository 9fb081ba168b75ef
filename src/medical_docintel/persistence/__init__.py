# ============================================================================
# src/medical_docintel/persistence/__init__.py
# ============================================================================
"""Document records and stage-result persistence."""

from .base import DocumentRecord, DocumentRepository
from .sqlite_store import SQLiteDocumentRepository

__all__ = [
    'DocumentRecord',
    'DocumentRepository',
    'SQLiteDocumentRepository',
]
