# ============================================================================
# src/medical_docintel/ocr/orchestrator.py
# ============================================================================
"""
OCR Orchestrator

Routes a document to the best available OCR engine:
1. Select an engine from availability and the document type hint
2. Substitute the configured fallback when the selection is unavailable
3. Retry once on the fallback when the selected engine raises

Ensemble mode runs the first two available engines and keeps both results.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..config import OcrSettings
from ..core.enums import DocumentType, OcrEngine
from ..utils.exceptions import NoOcrEngineAvailableError
from ..utils.metrics import MetricsCollector
from .base import BaseOcrEngine
from .types import EnsembleOcrResult, OcrOptions, OcrResult

logger = logging.getLogger(__name__)

# Document types whose tables are dense enough to prefer Textract
COMPLEX_TABLE_TYPES = {DocumentType.LAB_RESULT, DocumentType.PATHOLOGY_REPORT}


def select_ocr_engine(
    available: Iterable[OcrEngine],
    primary: OcrEngine,
    document_type: Optional[DocumentType] = None,
    has_complex_tables: bool = False,
) -> Optional[OcrEngine]:
    """
    Pick an engine.

    Only one engine available -> that engine. Both available -> Textract for
    lab results or table-heavy documents, otherwise the configured primary.
    None available -> None.
    """
    available = set(available)
    aws = OcrEngine.AWS_TEXTRACT in available
    mistral = OcrEngine.MISTRAL_OCR in available

    if aws and not mistral:
        return OcrEngine.AWS_TEXTRACT
    if mistral and not aws:
        return OcrEngine.MISTRAL_OCR
    if aws and mistral:
        if document_type == DocumentType.LAB_RESULT or has_complex_tables:
            return OcrEngine.AWS_TEXTRACT
        return primary
    return None


class OcrOrchestrator:
    """
    Engine selection with fallback.

    Args:
        engines: Engine adapters in registry order (Textract, then Mistral)
        settings: Primary / fallback / ensemble configuration
        metrics: Optional collector; fallbacks are counted as ocr.fallback
    """

    def __init__(
        self,
        engines: Iterable[BaseOcrEngine],
        settings: OcrSettings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.engines: Dict[OcrEngine, BaseOcrEngine] = {e.engine: e for e in engines}
        self.settings = settings
        self.metrics = metrics

    def get_available_engines(self) -> List[OcrEngine]:
        return [name for name, engine in self.engines.items() if engine.is_available()]

    def _engine_if_available(self, name: Optional[OcrEngine]) -> Optional[BaseOcrEngine]:
        engine = self.engines.get(name) if name is not None else None
        return engine if engine is not None and engine.is_available() else None

    def _count_fallback(self):
        if self.metrics:
            self.metrics.increment("ocr.fallback")

    async def process_document(
        self,
        content: bytes,
        mime_type: str,
        document_type_hint: Optional[DocumentType] = None,
        options: Optional[OcrOptions] = None,
    ) -> OcrResult:
        """
        Run OCR with the selected engine, falling back when needed.

        Raises:
            NoOcrEngineAvailableError: neither selection nor fallback usable
            Exception: the selected engine's error when no distinct fallback exists
        """
        has_complex_tables = document_type_hint in COMPLEX_TABLE_TYPES
        selected = select_ocr_engine(
            self.get_available_engines(),
            self.settings.PRIMARY_OCR_ENGINE,
            document_type_hint,
            has_complex_tables,
        )
        fallback = self.settings.FALLBACK_OCR_ENGINE

        logger.info(
            f"OCR engine selected: {selected.value if selected else None} "
            f"(hint={document_type_hint.value if document_type_hint else None}, "
            f"complex_tables={has_complex_tables})"
        )

        engine = self._engine_if_available(selected)
        if engine is None:
            fallback_engine = self._engine_if_available(fallback)
            if fallback_engine is not None:
                logger.warning(
                    f"OCR engine {selected.value if selected else None} unavailable, "
                    f"using fallback {fallback.value}"
                )
                self._count_fallback()
                return await fallback_engine.process_document(content, mime_type, options)

            raise NoOcrEngineAvailableError(
                selected.value if selected else None,
                fallback.value,
            )

        try:
            return await engine.process_document(content, mime_type, options)
        except Exception as e:
            fallback_engine = self._engine_if_available(fallback)
            if fallback_engine is None or fallback == selected:
                raise

            logger.warning(f"OCR engine {selected.value} failed ({e}), trying fallback {fallback.value}")
            self._count_fallback()
            return await fallback_engine.process_document(content, mime_type, options)

    async def process_with_ensemble(
        self,
        content: bytes,
        mime_type: str,
        options: Optional[OcrOptions] = None,
    ) -> EnsembleOcrResult:
        """
        Run the first two available engines.

        The first engine's failure propagates; the second one's is logged and
        the result carries no secondary.
        """
        available = [self.engines[name] for name in self.get_available_engines()]
        if not available:
            raise NoOcrEngineAvailableError(
                self.settings.PRIMARY_OCR_ENGINE.value,
                self.settings.FALLBACK_OCR_ENGINE.value,
            )

        primary = await available[0].process_document(content, mime_type, options)

        secondary = None
        if len(available) > 1:
            secondary_engine = available[1]
            try:
                secondary = await secondary_engine.process_document(content, mime_type, options)
            except Exception as e:
                logger.warning(f"Secondary OCR engine {secondary_engine.engine.value} failed in ensemble mode: {e}")

        return EnsembleOcrResult(primary=primary, secondary=secondary)
