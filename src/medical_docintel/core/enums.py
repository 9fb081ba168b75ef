# ============================================================================
# src/medical_docintel/core/enums.py
# ============================================================================
"""
Pipeline Enums
- Document types (closed set of 14)
- OCR engines and block types
- Classification / extraction methods
- Document processing status
- Validation error codes and warning severities
"""

from enum import Enum


class DocumentType(str, Enum):
    # Enumeration order is the classifier's tie-break order
    LAB_RESULT = "LAB_RESULT"
    DISCHARGE_SUMMARY = "DISCHARGE_SUMMARY"
    CONSULTATION_NOTE = "CONSULTATION_NOTE"
    PRESCRIPTION = "PRESCRIPTION"
    RADIOLOGY_REPORT = "RADIOLOGY_REPORT"
    PATHOLOGY_REPORT = "PATHOLOGY_REPORT"
    OPERATIVE_NOTE = "OPERATIVE_NOTE"
    PROGRESS_NOTE = "PROGRESS_NOTE"
    CONSENT_FORM = "CONSENT_FORM"
    PATIENT_INTAKE = "PATIENT_INTAKE"
    INSURANCE_FORM = "INSURANCE_FORM"
    REFERRAL = "REFERRAL"
    CLINICAL_TRIAL = "CLINICAL_TRIAL"
    UNKNOWN = "UNKNOWN"


class OcrEngine(str, Enum):
    AWS_TEXTRACT = "AWS_TEXTRACT"
    MISTRAL_OCR = "MISTRAL_OCR"


class OcrBlockType(str, Enum):
    LINE = "LINE"
    WORD = "WORD"
    PARAGRAPH = "PARAGRAPH"
    TABLE = "TABLE"
    FORM_FIELD = "FORM_FIELD"


class ClassificationMethod(str, Enum):
    PATTERN_MATCH = "PATTERN_MATCH"
    LLM = "LLM"


class ExtractionMethod(str, Enum):
    LLM_ASSISTED = "LLM_ASSISTED"


class ProcessingStatus(str, Enum):
    PENDING = "PENDING"
    PREPROCESSING = "PREPROCESSING"
    OCR_IN_PROGRESS = "OCR_IN_PROGRESS"
    EXTRACTION_IN_PROGRESS = "EXTRACTION_IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED)


class ValidationErrorCode(str, Enum):
    MISSING_REQUIRED = "MISSING_REQUIRED"
    INVALID_FORMAT = "INVALID_FORMAT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    PARSE_ERROR = "PARSE_ERROR"


class WarningSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
