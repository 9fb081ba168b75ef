# ============================================================================
# src/medical_docintel/core/__init__.py
# ============================================================================
"""
Core module - shared enums, configuration loading, retry helpers
"""

from .enums import (
    DocumentType,
    OcrEngine,
    OcrBlockType,
    ClassificationMethod,
    ExtractionMethod,
    ProcessingStatus,
    ValidationErrorCode,
    WarningSeverity,
)
from .config import PipelineConfig, load_config, get_config, reload_config
from .retry import RetryConfig, backoff_delay, retry_async

__all__ = [
    'DocumentType',
    'OcrEngine',
    'OcrBlockType',
    'ClassificationMethod',
    'ExtractionMethod',
    'ProcessingStatus',
    'ValidationErrorCode',
    'WarningSeverity',
    'PipelineConfig',
    'load_config',
    'get_config',
    'reload_config',
    'RetryConfig',
    'backoff_delay',
    'retry_async',
]
