# ============================================================================
# FILE: tests/unit/test_sqlite_store.py
# ============================================================================
"""
Unit tests for the SQLite document repository
"""

import pytest

from conftest import make_ocr_result
from medical_docintel.classifiers.document_classifier import ClassificationResult
from medical_docintel.core.enums import ClassificationMethod, DocumentType, OcrEngine, ProcessingStatus
from medical_docintel.extraction.orchestrator import ExtractionOrchestrator
from medical_docintel.extraction.models import ExtractionResult
from medical_docintel.persistence.base import DocumentRecord
from medical_docintel.persistence.sqlite_store import SQLiteDocumentRepository
from medical_docintel.utils.exceptions import DocumentNotFoundError


def _record(document_id="doc-1", **kwargs):
    return DocumentRecord(
        document_id=document_id,
        file_name="report.pdf",
        mime_type="application/pdf",
        storage_key=f"documents/{document_id}.pdf",
        file_size=1024,
        **kwargs,
    )


def test_create_and_get_document(repository):
    repository.create_document(_record(document_type_hint=DocumentType.LAB_RESULT))

    record = repository.get_document("doc-1")

    assert record.file_name == "report.pdf"
    assert record.status == ProcessingStatus.PENDING
    assert record.progress == 0
    assert record.document_type_hint == DocumentType.LAB_RESULT
    assert record.document_type is None
    assert record.requires_review is None
    assert record.created_at is not None


def test_get_missing_document(repository):
    assert repository.get_document("nope") is None


def test_update_status_timestamps(repository):
    repository.create_document(_record())

    repository.update_status("doc-1", ProcessingStatus.PREPROCESSING, progress=10)
    started = repository.get_document("doc-1")
    assert started.processing_started_at is not None
    assert started.processing_completed_at is None

    repository.update_status("doc-1", ProcessingStatus.OCR_IN_PROGRESS, progress=30)
    repository.update_status("doc-1", ProcessingStatus.COMPLETED, progress=100)
    done = repository.get_document("doc-1")

    assert done.status == ProcessingStatus.COMPLETED
    assert done.progress == 100
    assert done.processing_started_at == started.processing_started_at
    assert done.processing_completed_at is not None


def test_update_status_error_and_retry_count(repository):
    repository.create_document(_record())

    repository.update_status("doc-1", ProcessingStatus.FAILED, error_message="OCR down", retry_count=1)
    failed = repository.get_document("doc-1")
    assert failed.error_message == "OCR down"
    assert failed.retry_count == 1

    # error cleared, progress and retry count kept
    repository.update_status("doc-1", ProcessingStatus.PENDING)
    pending = repository.get_document("doc-1")
    assert pending.error_message is None
    assert pending.retry_count == 1


def test_update_status_unknown_document(repository):
    with pytest.raises(DocumentNotFoundError):
        repository.update_status("nope", ProcessingStatus.PREPROCESSING)


def test_list_documents_and_unfinished(repository):
    repository.create_document(_record("a"))
    repository.create_document(_record("b"))
    repository.create_document(_record("c"))
    repository.update_status("b", ProcessingStatus.COMPLETED, progress=100)
    repository.update_status("c", ProcessingStatus.OCR_IN_PROGRESS, progress=30)

    assert len(repository.list_documents()) == 3
    assert [r.document_id for r in repository.list_documents(ProcessingStatus.COMPLETED)] == ["b"]
    assert sorted(r.document_id for r in repository.list_unfinished()) == ["a", "c"]


def test_ocr_results_primary_first(repository):
    repository.create_document(_record())
    primary = make_ocr_result("primary text", OcrEngine.AWS_TEXTRACT)
    secondary = make_ocr_result("secondary text", OcrEngine.MISTRAL_OCR)

    repository.save_ocr_result("doc-1", secondary, is_primary=False)
    repository.save_ocr_result("doc-1", primary)

    results = repository.get_ocr_results("doc-1")
    assert [r.engine for r in results] == [OcrEngine.AWS_TEXTRACT, OcrEngine.MISTRAL_OCR]
    assert results[0] == primary


def test_classification_sets_document_type(repository):
    repository.create_document(_record())
    classification = ClassificationResult(
        document_type=DocumentType.RADIOLOGY_REPORT,
        confidence=0.9,
        method=ClassificationMethod.PATTERN_MATCH,
        matched_patterns=["impression:"],
    )

    repository.save_classification("doc-1", classification)

    assert repository.get_classification("doc-1") == classification
    assert repository.get_document("doc-1").document_type == DocumentType.RADIOLOGY_REPORT


def test_extraction_sets_requires_review(repository):
    repository.create_document(_record())
    extraction = ExtractionResult(
        extracted_data=ExtractionOrchestrator.create_minimal_extracted_data(DocumentType.PRESCRIPTION, 5),
        requires_review=True,
    )

    repository.save_extraction("doc-1", extraction)

    stored = repository.get_extraction("doc-1")
    assert stored.document_type == DocumentType.PRESCRIPTION
    assert stored.to_dict() == extraction.to_dict()
    assert repository.get_document("doc-1").requires_review is True


def test_clear_stage_results(repository):
    repository.create_document(_record())
    repository.save_ocr_result("doc-1", make_ocr_result("text"))
    repository.save_classification("doc-1", ClassificationResult(
        DocumentType.LAB_RESULT, 0.9, ClassificationMethod.PATTERN_MATCH,
    ))

    repository.clear_stage_results("doc-1")

    assert repository.get_ocr_results("doc-1") == []
    assert repository.get_classification("doc-1") is None
    assert repository.get_extraction("doc-1") is None
    assert repository.get_document("doc-1").document_type is None


def test_data_survives_reopen(tmp_path):
    """A new repository on the same file sees earlier writes"""
    db_path = tmp_path / "nested" / "docs.db"
    SQLiteDocumentRepository(db_path).create_document(_record())

    reopened = SQLiteDocumentRepository(db_path)

    assert reopened.get_document("doc-1") is not None


def test_record_to_dict(repository):
    record = repository.create_document(_record(document_type_hint=DocumentType.REFERRAL))

    data = record.to_dict()

    assert data["status"] == "PENDING"
    assert data["document_type_hint"] == "REFERRAL"
    assert data["document_type"] is None
