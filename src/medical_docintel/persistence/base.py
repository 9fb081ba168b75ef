# ============================================================================
# src/medical_docintel/persistence/base.py
# ============================================================================
"""
Document Repository Interface

The pipeline's own record of a document:
- Document row: file info, status, progress, error, retry count
- Stage results keyed by document id: OCR (primary / secondary),
  classification, extraction
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional

from ..classifiers.document_classifier import ClassificationResult
from ..core.enums import DocumentType, ProcessingStatus
from ..extraction.models import ExtractionResult
from ..ocr.types import OcrResult


@dataclass
class DocumentRecord:
    document_id: str
    file_name: str
    mime_type: str
    storage_key: str
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = 0
    file_size: int = 0
    document_type_hint: Optional[DocumentType] = None
    document_type: Optional[DocumentType] = None
    requires_review: Optional[bool] = None
    error_message: Optional[str] = None
    retry_count: int = 0
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    processing_started_at: Optional[str] = None
    processing_completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["document_type_hint"] = self.document_type_hint.value if self.document_type_hint else None
        data["document_type"] = self.document_type.value if self.document_type else None
        return data


class DocumentRepository(ABC):
    """Abstract persistence for document records and stage results."""

    # Documents
    @abstractmethod
    def create_document(self, record: DocumentRecord) -> DocumentRecord:
        pass

    @abstractmethod
    def get_document(self, document_id: str) -> Optional[DocumentRecord]:
        pass

    @abstractmethod
    def list_documents(
        self,
        status: Optional[ProcessingStatus] = None,
        limit: int = 200,
        offset: int = 0,
    ) -> List[DocumentRecord]:
        pass

    @abstractmethod
    def list_unfinished(self) -> List[DocumentRecord]:
        """Documents whose status is not terminal, oldest first."""
        pass

    @abstractmethod
    def update_status(
        self,
        document_id: str,
        status: ProcessingStatus,
        progress: Optional[int] = None,
        error_message: Optional[str] = None,
        retry_count: Optional[int] = None,
    ) -> None:
        """
        Persist a status transition.

        error_message is cleared unless given; progress and retry_count
        are kept unless given.
        """
        pass

    # Stage results
    @abstractmethod
    def save_ocr_result(self, document_id: str, result: OcrResult, is_primary: bool = True) -> None:
        pass

    @abstractmethod
    def get_ocr_results(self, document_id: str) -> List[OcrResult]:
        """Stored OCR results, primary first."""
        pass

    @abstractmethod
    def save_classification(self, document_id: str, result: ClassificationResult) -> None:
        pass

    @abstractmethod
    def get_classification(self, document_id: str) -> Optional[ClassificationResult]:
        pass

    @abstractmethod
    def save_extraction(self, document_id: str, result: ExtractionResult) -> None:
        pass

    @abstractmethod
    def get_extraction(self, document_id: str) -> Optional[ExtractionResult]:
        pass

    @abstractmethod
    def clear_stage_results(self, document_id: str) -> None:
        """Drop OCR, classification and extraction results for a fresh run."""
        pass
