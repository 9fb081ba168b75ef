# ============================================================================
# src/medical_docintel/utils/exceptions.py
# ============================================================================
"""
Custom exceptions for the document intelligence pipeline.

Retry policy is encoded in the hierarchy:
- OcrEngineUnavailableError / NoOcrEngineAvailableError: never retried
- JobError, JobTimeoutError, transport errors: retried by the queue
- FatalJobError: fails the job immediately
"""

from typing import Optional


class DocumentIntelligenceError(Exception):
    """Base exception for all pipeline errors."""
    pass


class ConfigurationError(DocumentIntelligenceError):
    """Invalid configuration."""
    pass


# ----------------------------------------------------------------------------
# Storage
# ----------------------------------------------------------------------------

class StorageError(DocumentIntelligenceError):
    """Error talking to the storage backend."""
    pass


class StorageObjectNotFoundError(StorageError):
    """Requested key does not exist in storage."""
    def __init__(self, key: str):
        super().__init__(f"Storage object not found: {key}")
        self.key = key


# ----------------------------------------------------------------------------
# OCR
# ----------------------------------------------------------------------------

class OcrError(DocumentIntelligenceError):
    """Error during OCR processing."""
    pass


class OcrEngineUnavailableError(OcrError):
    """OCR engine has no credentials or configuration."""
    def __init__(self, engine: str):
        super().__init__(f"OCR engine {engine} is not configured")
        self.engine = engine


class NoOcrEngineAvailableError(OcrError):
    """Neither the selected nor the fallback OCR engine is available."""
    def __init__(self, primary: Optional[str], fallback: Optional[str]):
        super().__init__(
            f"No OCR engines available. Primary: {primary}, Fallback: {fallback}"
        )
        self.primary = primary
        self.fallback = fallback


class OcrJobFailedError(OcrError):
    """Asynchronous OCR job finished in a FAILED state."""
    pass


class OcrTimeoutError(OcrError):
    """OCR call or polling exceeded its time limit."""
    pass


# ----------------------------------------------------------------------------
# Classification / LLM / extraction
# ----------------------------------------------------------------------------

class ClassificationError(DocumentIntelligenceError):
    """Error classifying document type."""
    pass


class InferenceError(DocumentIntelligenceError):
    """Error during LLM inference."""
    pass


class LLMUnavailableError(InferenceError):
    """No LLM provider is configured."""
    pass


class LLMResponseError(InferenceError):
    """LLM returned an empty, non-JSON or structurally invalid response."""
    pass


class ExtractionError(DocumentIntelligenceError):
    """Error during structured extraction."""
    pass


# ----------------------------------------------------------------------------
# Pipeline / jobs
# ----------------------------------------------------------------------------

class PipelineError(DocumentIntelligenceError):
    """Error in the job pipeline."""
    pass


class JobError(PipelineError):
    """Job attempt failed; the queue may retry it."""
    def __init__(self, message: str, document_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message)
        self.document_id = document_id
        self.stage = stage


class JobTimeoutError(JobError):
    """Job exceeded its global timeout."""
    pass


class FatalJobError(PipelineError):
    """Job cannot succeed on retry (misconfigured or missing record)."""
    pass


class DocumentNotFoundError(FatalJobError):
    """Document record referenced by a job does not exist."""
    def __init__(self, document_id: str):
        super().__init__(f"Document {document_id} not found")
        self.document_id = document_id


class InvalidDocumentError(FatalJobError):
    """Document bytes cannot be decoded (corrupt image or unsupported type)."""
    pass


class JobInterruptedError(PipelineError):
    """Job stopped at a stage boundary because the worker is shutting down."""
    def __init__(self, document_id: str, stage: str):
        super().__init__(f"Job for document {document_id} interrupted after stage {stage}")
        self.document_id = document_id
        self.stage = stage


class QueueClosedError(PipelineError):
    """Queue no longer accepts jobs."""
    pass


class JobFailedError(PipelineError):
    """
    Final failure of a queued job.

    Carries only the message so the queue backend can store it as the
    job result; the original error is chained as __cause__.
    """
    pass
