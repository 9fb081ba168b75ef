# ============================================================================
# src/medical_docintel/extraction/__init__.py
# ============================================================================
"""Structured extraction: payload models, prompts, schema mapping, orchestration."""

from .models import (
    EXTRACTION_MODELS,
    ExtractedData,
    ExtractionBase,
    ExtractionMetadata,
    ExtractionResult,
    SchemaValidationResult,
    ValidationError,
    ValidationWarning,
    dump_extracted_data,
    minimal_extraction,
    parse_extracted_data,
)
from .prompts import EXTRACTION_PROMPTS, EXTRACTION_SYSTEM_PROMPT, build_extraction_user_prompt
from .schema_mapper import REQUIRED_FIELDS, SchemaMapper, normalize_date
from .orchestrator import ExtractionOrchestrator, build_enriched_text

__all__ = [
    "EXTRACTION_MODELS",
    "ExtractedData",
    "ExtractionBase",
    "ExtractionMetadata",
    "ExtractionResult",
    "SchemaValidationResult",
    "ValidationError",
    "ValidationWarning",
    "dump_extracted_data",
    "minimal_extraction",
    "parse_extracted_data",
    "EXTRACTION_PROMPTS",
    "EXTRACTION_SYSTEM_PROMPT",
    "build_extraction_user_prompt",
    "REQUIRED_FIELDS",
    "SchemaMapper",
    "normalize_date",
    "ExtractionOrchestrator",
    "build_enriched_text",
]
