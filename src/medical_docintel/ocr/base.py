# ============================================================================
# src/medical_docintel/ocr/base.py
# ============================================================================
"""
Base OCR Engine Interface

Every engine adapter implements:
- engine: which OcrEngine it is
- is_available(): credentials/config present (no network call)
- process_document(): bytes -> OcrResult

Adapters are stateless apart from their (lazily created) SDK clients, so one
instance is shared by all concurrent jobs.
"""

from abc import ABC, abstractmethod
from typing import Optional
import logging

from ..core.enums import OcrEngine
from .types import OcrOptions, OcrResult


PDF_MIME_TYPE = "application/pdf"


class BaseOcrEngine(ABC):
    """Abstract base class for OCR engine adapters."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def engine(self) -> OcrEngine:
        """Return the engine identifier."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True when the engine is configured and can be called."""
        pass

    @abstractmethod
    async def process_document(
        self,
        content: bytes,
        mime_type: str,
        options: Optional[OcrOptions] = None,
    ) -> OcrResult:
        """
        Run OCR on a document.

        Args:
            content: Raw file bytes (image or PDF)
            mime_type: MIME type of content
            options: Feature switches (tables, forms, queries)

        Raises:
            OcrEngineUnavailableError: engine not configured
            OcrError: engine call failed
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(engine={self.engine.value}, available={self.is_available()})"
