# ============================================================================
# src/medical_docintel/extraction/orchestrator.py
# ============================================================================
"""
Extraction Orchestrator

OCR result + document type -> ExtractionResult:

1. ENRICH TEXT
   - Raw OCR text
   - Tables re-linearized as markdown
   - Form key/value pairs

2. LLM EXTRACTION
   - Extraction system prompt + per-type schema prompt
   - JSON mode, retried with exponential backoff

3. SCHEMA MAPPING
   - Required fields, normalization, metadata, warnings

4. SCORING
   - Overall confidence, low-confidence fields, review flag

extract() never raises: any failure yields the minimal payload for the
document type, flagged for review, with the error recorded.
"""

from typing import Any, Dict, List, Optional, Sequence
import logging
import time
from datetime import datetime, timezone

from ..config import ExtractionSettings
from ..core.enums import DocumentType, ExtractionMethod, OcrEngine, ValidationErrorCode, WarningSeverity
from ..core.retry import RetryConfig, retry_async
from ..llm.base import BaseLLMClient
from ..ocr.tables import table_to_markdown
from ..ocr.types import OcrResult
from ..utils.exceptions import LLMResponseError, LLMUnavailableError
from .models import (
    ExtractionBase,
    ExtractionMetadata,
    ExtractionResult,
    ValidationError,
    ValidationWarning,
    minimal_extraction,
)
from .prompts import EXTRACTION_SYSTEM_PROMPT, build_extraction_user_prompt
from .schema_mapper import SchemaMapper


def build_enriched_text(ocr_result: OcrResult) -> str:
    """Raw text followed by markdown tables and form fields, when present."""
    text = ocr_result.raw_text

    if ocr_result.tables:
        text += "\n\n--- EXTRACTED TABLES ---\n"
        for table in ocr_result.tables:
            if table.title:
                text += f"\nTable: {table.title}\n"
            markdown = table_to_markdown(table)
            if markdown:
                text += markdown + "\n"
            text += "\n"

    if ocr_result.key_value_pairs:
        text += "\n\n--- FORM FIELDS ---\n"
        for kvp in ocr_result.key_value_pairs:
            text += f"{kvp.key}: {kvp.value}\n"

    return text


class ExtractionOrchestrator:
    """
    Coordinates LLM extraction, schema mapping and confidence scoring.

    Args:
        settings: Thresholds, sampling parameters and retry count
        llm_client: Chat-completion client used for extraction
        schema_mapper: Validator/normalizer (built from settings if omitted)
        model: Model override for extraction calls
    """

    def __init__(
        self,
        settings: ExtractionSettings,
        llm_client: Optional[BaseLLMClient],
        schema_mapper: Optional[SchemaMapper] = None,
        model: Optional[str] = None,
    ):
        self.settings = settings
        self.llm_client = llm_client
        self.schema_mapper = schema_mapper or SchemaMapper(settings)
        self.model = model
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_available(self) -> bool:
        return self.llm_client is not None and self.llm_client.is_available()

    async def extract(
        self,
        ocr_result: OcrResult,
        document_type: DocumentType,
        confidence_threshold: Optional[float] = None,
        ocr_engines: Optional[Sequence[OcrEngine]] = None,
    ) -> ExtractionResult:
        start_time = time.time()
        threshold = (
            confidence_threshold
            if confidence_threshold is not None
            else self.settings.CONFIDENCE_THRESHOLD
        )
        engines = list(ocr_engines) if ocr_engines else [ocr_result.engine]

        self.logger.info(
            f"Starting extraction: type={document_type.value}, "
            f"engine={ocr_result.engine.value}, text_length={len(ocr_result.raw_text)}"
        )

        try:
            enriched_text = build_enriched_text(ocr_result)
            llm_response = await self._call_extraction_llm(enriched_text, document_type)

            validation = self.schema_mapper.parse_and_validate(
                llm_response,
                document_type,
                engines,
                _elapsed_ms(start_time),
                page_count=max(len(ocr_result.pages), 1),
            )

            if not validation.is_valid or validation.normalized_data is None:
                self.logger.warning(
                    f"Extraction validation failed for {document_type.value}: "
                    f"{[e.message for e in validation.errors]}"
                )
                return self._failed_result(
                    document_type, validation.errors, validation.warnings, _elapsed_ms(start_time)
                )

            field_confidences = {
                path: float(value)
                for path, value in (llm_response.get("field_confidences") or {}).items()
                if isinstance(value, (int, float)) and not isinstance(value, bool)
            }
            overall_confidence = self.schema_mapper.calculate_overall_confidence(field_confidences)
            low_confidence_fields = [
                path for path, value in field_confidences.items() if value < threshold
            ]
            requires_review = self.schema_mapper.should_require_review(
                overall_confidence, low_confidence_fields, validation.warnings
            )

            processing_time_ms = _elapsed_ms(start_time)
            self.logger.info(
                f"Extraction completed: type={document_type.value}, "
                f"confidence={overall_confidence:.2f}, "
                f"low_confidence_fields={len(low_confidence_fields)}, "
                f"requires_review={requires_review}, time={processing_time_ms}ms"
            )

            return ExtractionResult(
                extracted_data=validation.normalized_data,
                field_confidences=field_confidences,
                low_confidence_fields=low_confidence_fields,
                overall_confidence=overall_confidence,
                requires_review=requires_review,
                validation_warnings=validation.warnings,
                validation_errors=validation.errors,
                processing_time_ms=processing_time_ms,
                extraction_method=ExtractionMethod.LLM_ASSISTED,
            )

        except Exception as e:
            self.logger.error(f"Extraction failed for {document_type.value}: {e}")
            return self._failed_result(
                document_type,
                [ValidationError(
                    field="_extraction",
                    message=str(e) or "Extraction failed",
                    code=ValidationErrorCode.PARSE_ERROR,
                )],
                [],
                _elapsed_ms(start_time),
            )

    async def _call_extraction_llm(self, text: str, document_type: DocumentType) -> Dict[str, Any]:
        if not self.is_available():
            raise LLMUnavailableError("LLM is not configured for extraction")

        messages = [
            {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": build_extraction_user_prompt(
                    text, document_type, self.settings.EXTRACTION_MAX_TEXT_CHARS
                ),
            },
        ]

        async def _attempt() -> Dict[str, Any]:
            parsed = await self.llm_client.complete(
                messages,
                temperature=self.settings.EXTRACTION_TEMPERATURE,
                max_tokens=self.settings.EXTRACTION_MAX_TOKENS,
                json_mode=True,
                model=self.model,
            )
            if "extracted_data" not in parsed or parsed["extracted_data"] is None:
                raise LLMResponseError("LLM response missing extracted_data field")
            return parsed

        return await retry_async(
            _attempt,
            RetryConfig(
                max_attempts=self.settings.EXTRACTION_LLM_RETRIES,
                base_delay=self.settings.EXTRACTION_RETRY_BASE_DELAY_SECONDS,
                give_up_on=(LLMUnavailableError,),
            ),
            operation_name="Extraction LLM call",
        )

    def _failed_result(
        self,
        document_type: DocumentType,
        errors: List[ValidationError],
        warnings: List[ValidationWarning],
        processing_time_ms: int,
    ) -> ExtractionResult:
        return ExtractionResult(
            extracted_data=self.create_minimal_extracted_data(document_type, processing_time_ms),
            field_confidences={},
            low_confidence_fields=[],
            overall_confidence=0.0,
            requires_review=True,
            validation_warnings=list(warnings),
            validation_errors=list(errors),
            processing_time_ms=processing_time_ms,
            extraction_method=ExtractionMethod.LLM_ASSISTED,
        )

    @staticmethod
    def create_minimal_extracted_data(document_type: DocumentType, processing_time_ms: int) -> ExtractionBase:
        metadata = ExtractionMetadata(
            extracted_at=datetime.now(timezone.utc).isoformat(),
            ocr_engines=[],
            extraction_method=ExtractionMethod.LLM_ASSISTED.value,
            overall_confidence=0.0,
            processing_time_ms=processing_time_ms,
            page_count=1,
            warnings=[ValidationWarning(
                field="_extraction",
                message="Extraction failed - manual review required",
                severity=WarningSeverity.HIGH,
            )],
            low_confidence_fields=[],
        )
        return minimal_extraction(document_type, metadata)


def _elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)
