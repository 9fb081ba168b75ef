# ============================================================================
# src/medical_docintel/config/ocr_config.py
# ============================================================================
"""
OCR Engine Settings
- Primary / fallback engine selection
- Ensemble mode
- AWS Textract credentials, S3 staging bucket, polling
- Mistral OCR credentials and model
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings

from ..core.enums import OcrEngine


class OcrSettings(BaseSettings):
    PRIMARY_OCR_ENGINE: OcrEngine = Field(
        default=OcrEngine.MISTRAL_OCR,
        description="Engine used when both are available and no table-heavy hint applies"
    )
    FALLBACK_OCR_ENGINE: OcrEngine = Field(
        default=OcrEngine.AWS_TEXTRACT,
        description="Engine substituted when the selected engine is unavailable or fails"
    )
    ENABLE_ENSEMBLE_MODE: bool = Field(
        default=False,
        description="Run the first two available engines and keep both results"
    )
    OCR_PROCESSING_TIMEOUT_SECONDS: float = Field(
        default=120.0,
        gt=0,
        description="Upper bound for a single OCR stage (including fallback)"
    )

    # AWS
    AWS_ACCESS_KEY_ID: Optional[str] = Field(default=None, description="AWS access key")
    AWS_SECRET_ACCESS_KEY: Optional[str] = Field(default=None, description="AWS secret key")
    AWS_REGION: str = Field(default="us-east-1", description="AWS region for Textract and S3")
    S3_BUCKET: str = Field(
        default="medflow-documents",
        description="Bucket used to stage multi-page documents for async Textract"
    )
    TEXTRACT_POLL_INTERVAL_SECONDS: float = Field(
        default=5.0,
        gt=0,
        description="Delay between GetDocumentAnalysis polls"
    )
    TEXTRACT_MAX_POLL_ATTEMPTS: int = Field(
        default=60,
        ge=1,
        description="Polls before an async Textract job is declared timed out"
    )

    # Mistral
    MISTRAL_API_KEY: Optional[str] = Field(default=None, description="Mistral API key")
    MISTRAL_BASE_URL: str = Field(default="https://api.mistral.ai/v1", description="Mistral API root")
    MISTRAL_OCR_MODEL: str = Field(default="mistral-ocr-latest", description="Mistral OCR model")
    MISTRAL_OCR_CONFIDENCE: float = Field(
        default=0.75,
        ge=0.0, le=1.0,
        description="Mistral OCR reports no confidence; this fixed value is used instead"
    )
    MISTRAL_INCLUDE_IMAGES: bool = Field(
        default=False,
        description="Ask Mistral OCR to return embedded images as base64"
    )

    @property
    def aws_configured(self) -> bool:
        return bool(self.AWS_ACCESS_KEY_ID and self.AWS_SECRET_ACCESS_KEY)

    @property
    def mistral_configured(self) -> bool:
        return bool(self.MISTRAL_API_KEY)
