# ============================================================================
# src/medical_docintel/config/extraction_config.py
# ============================================================================
"""
Classification & Extraction Settings
- Review thresholds and critical fields
- Pattern-match acceptance threshold / LLM fallback switch
- LLM sampling parameters and retry count
- Image preprocessing switches
"""

from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings


class ExtractionSettings(BaseSettings):
    CONFIDENCE_THRESHOLD: float = Field(
        default=0.85,
        ge=0.0, le=1.0,
        description="Field / overall confidence below this flags the document for review"
    )
    REVIEW_TRIGGER_FIELDS: List[str] = Field(
        default_factory=lambda: ["patient.name", "patient.dateOfBirth"],
        description="Low confidence on any field path containing one of these forces review"
    )

    # Classification
    PATTERN_MATCH_MIN_CONFIDENCE: float = Field(
        default=0.75,
        ge=0.0, le=1.0,
        description="Pattern-match confidence accepted without asking the LLM"
    )
    LLM_FALLBACK_ENABLED: bool = Field(
        default=True,
        description="Ask the LLM when pattern matching is not confident"
    )
    CLASSIFICATION_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    CLASSIFICATION_MAX_TEXT_CHARS: int = Field(
        default=8000,
        ge=100,
        description="OCR text sent to the classification prompt"
    )

    # Extraction
    EXTRACTION_TEMPERATURE: float = Field(default=0.1, ge=0.0, le=2.0)
    EXTRACTION_MAX_TOKENS: int = Field(default=8192, ge=256)
    EXTRACTION_LLM_RETRIES: int = Field(
        default=2,
        ge=1,
        description="Attempts for the extraction LLM call"
    )
    EXTRACTION_RETRY_BASE_DELAY_SECONDS: float = Field(
        default=1.0,
        ge=0.0,
        description="Backoff base; attempt n waits base * 2^n"
    )
    EXTRACTION_MAX_TEXT_CHARS: int = Field(
        default=12000,
        ge=100,
        description="Document text sent to the extraction prompt"
    )

    # Preprocessing
    AUTO_ROTATE: bool = Field(default=True, description="Apply EXIF orientation")
    ENHANCE_CONTRAST: bool = Field(default=True, description="Autocontrast images before OCR")
    TARGET_DPI: int = Field(default=300, ge=72, le=1200, description="Upscale target for low-DPI images")
