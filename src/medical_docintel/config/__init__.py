# ============================================================================
# src/medical_docintel/config/__init__.py
# ============================================================================
"""
Convenient imports for all settings classes
"""

from .ocr_config import OcrSettings
from .llm_config import LLMSettings
from .extraction_config import ExtractionSettings
from .worker_config import WorkerSettings
from .logging_config import LoggingSettings

__all__ = [
    'OcrSettings',
    'LLMSettings',
    'ExtractionSettings',
    'WorkerSettings',
    'LoggingSettings',
]
