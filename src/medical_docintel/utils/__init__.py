# ============================================================================
# src/medical_docintel/utils/__init__.py
# ============================================================================
"""
Utility modules for the document intelligence pipeline.
"""

from .exceptions import (
    DocumentIntelligenceError,
    ConfigurationError,
    StorageError,
    StorageObjectNotFoundError,
    OcrError,
    OcrEngineUnavailableError,
    NoOcrEngineAvailableError,
    OcrJobFailedError,
    OcrTimeoutError,
    ClassificationError,
    InferenceError,
    LLMUnavailableError,
    LLMResponseError,
    ExtractionError,
    PipelineError,
    JobError,
    JobTimeoutError,
    FatalJobError,
    DocumentNotFoundError,
    InvalidDocumentError,
    JobInterruptedError,
    QueueClosedError,
)

from .logging import (
    setup_logging,
    get_logger,
    JsonFormatter,
    LogAdapter,
    job_logger,
)

from .metrics import (
    MetricsCollector,
    Timer,
)

__all__ = [
    # Exceptions
    'DocumentIntelligenceError',
    'ConfigurationError',
    'StorageError',
    'StorageObjectNotFoundError',
    'OcrError',
    'OcrEngineUnavailableError',
    'NoOcrEngineAvailableError',
    'OcrJobFailedError',
    'OcrTimeoutError',
    'ClassificationError',
    'InferenceError',
    'LLMUnavailableError',
    'LLMResponseError',
    'ExtractionError',
    'PipelineError',
    'JobError',
    'JobTimeoutError',
    'FatalJobError',
    'DocumentNotFoundError',
    'InvalidDocumentError',
    'JobInterruptedError',
    'QueueClosedError',
    # Logging
    'setup_logging',
    'get_logger',
    'JsonFormatter',
    'LogAdapter',
    'job_logger',
    # Metrics
    'MetricsCollector',
    'Timer',
]
