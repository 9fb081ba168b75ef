# ============================================================================
# src/medical_docintel/extraction/schema_mapper.py
# ============================================================================
"""
Schema Mapper

Turns the LLM's extraction JSON into a typed, normalized payload:
- Required-field check per document type (dotted camelCase paths)
- Date, patient and type-specific value normalization
- Extraction metadata (confidence, engines, timing)
- Placeholder and critical-field warnings
- Coercion into the document type's pydantic model
"""

import copy
import logging
import re
import reprlib
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError as PydanticValidationError

from ..config import ExtractionSettings
from ..core.enums import DocumentType, ExtractionMethod, OcrEngine, ValidationErrorCode, WarningSeverity
from .models import EXTRACTION_MODELS, Coercion, SchemaValidationResult, ValidationError, ValidationWarning


REQUIRED_FIELDS: Dict[DocumentType, List[str]] = {
    DocumentType.LAB_RESULT: ["patient", "testResults"],
    DocumentType.DISCHARGE_SUMMARY: [
        "patient", "admission", "admission.date", "discharge", "discharge.date", "diagnoses",
    ],
    DocumentType.CONSULTATION_NOTE: [
        "patient", "consultDate", "consultingProvider", "reasonForConsult", "diagnoses",
    ],
    DocumentType.PRESCRIPTION: ["patient", "prescriber", "prescriptionDate", "medications"],
    DocumentType.RADIOLOGY_REPORT: [
        "patient", "radiologist", "studyDate", "studyType", "findings", "impression",
    ],
    DocumentType.PATHOLOGY_REPORT: [
        "patient", "pathologist", "specimenCollectionDate", "reportDate",
        "specimenType", "specimenSource", "diagnosis",
    ],
    DocumentType.OPERATIVE_NOTE: [
        "patient", "procedureDate", "surgeon", "preoperativeDiagnosis",
        "postoperativeDiagnosis", "procedures",
    ],
    DocumentType.PROGRESS_NOTE: ["patient", "provider", "noteDate"],
    DocumentType.CONSENT_FORM: ["patient", "consentType"],
    DocumentType.PATIENT_INTAKE: ["patient"],
    DocumentType.INSURANCE_FORM: ["patient"],
    DocumentType.REFERRAL: ["patient", "referringProvider", "reasonForReferral"],
    DocumentType.CLINICAL_TRIAL: ["patient"],
    DocumentType.UNKNOWN: ["patient"],
}

# Substring match against the key, case-sensitive
DATE_KEY_PATTERNS = ("date", "Date", "dob", "DOB")

DEFAULT_CONFIDENCE = 0.75
DEFAULT_ITEM_CONFIDENCE = 0.8

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
_SLASH_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_DASH_DATE_RE = re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4})$")
_SHORT_YEAR_DATE_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{2})$")
_MONTH_NAME_DATE_RE = re.compile(r"^(\w+)\s+(\d{1,2}),?\s*(\d{4})$", re.ASCII)

MONTHS = {
    "january": "01", "jan": "01",
    "february": "02", "feb": "02",
    "march": "03", "mar": "03",
    "april": "04", "apr": "04",
    "may": "05",
    "june": "06", "jun": "06",
    "july": "07", "jul": "07",
    "august": "08", "aug": "08",
    "september": "09", "sep": "09", "sept": "09",
    "october": "10", "oct": "10",
    "november": "11", "nov": "11",
    "december": "12", "dec": "12",
}

GENDER_MAP = {
    "m": "MALE", "male": "MALE",
    "f": "FEMALE", "female": "FEMALE",
    "o": "OTHER", "other": "OTHER",
    "u": "UNKNOWN", "unknown": "UNKNOWN",
}

LAB_FLAG_MAP = {
    "h": "HIGH", "high": "HIGH",
    "l": "LOW", "low": "LOW",
    "ch": "CRITICAL_HIGH",
    "cl": "CRITICAL_LOW",
    "a": "ABNORMAL", "abnormal": "ABNORMAL", "*": "ABNORMAL",
    "n": "NORMAL", "normal": "NORMAL",
}

ADMISSION_SOURCE_MAP = {
    "er": "EMERGENCY", "ed": "EMERGENCY", "emergency": "EMERGENCY",
    "transfer": "TRANSFER",
    "elective": "ELECTIVE",
    "observation": "OBSERVATION", "obs": "OBSERVATION",
}

DISCHARGE_CONDITION_MAP = {
    "stable": "STABLE",
    "improved": "IMPROVED",
    "unchanged": "UNCHANGED",
    "deteriorated": "DETERIORATED", "worse": "DETERIORATED",
}

ROUTE_MAP = {
    "po": "ORAL", "oral": "ORAL", "by mouth": "ORAL",
    "iv": "IV", "intravenous": "IV",
    "im": "IM", "intramuscular": "IM",
    "topical": "TOPICAL",
    "inhaled": "INHALATION", "inhalation": "INHALATION",
    "sc": "SUBCUTANEOUS", "sq": "SUBCUTANEOUS", "subq": "SUBCUTANEOUS",
    "subcutaneous": "SUBCUTANEOUS",
}

LATERALITY_MAP = {
    "left": "LEFT", "l": "LEFT",
    "right": "RIGHT", "r": "RIGHT",
    "bilateral": "BILATERAL", "both": "BILATERAL",
    "n/a": "N/A", "na": "N/A",
}

# Ordered: first substring hit wins
STUDY_TYPE_SYNONYMS = (
    ("ct scan", "CT"),
    ("cat scan", "CT"),
    ("computed tomography", "CT"),
    ("magnetic resonance", "MRI"),
    ("x-ray", "X-Ray"),
    ("xray", "X-Ray"),
    ("radiograph", "X-Ray"),
    ("us", "Ultrasound"),
    ("sono", "Ultrasound"),
    ("sonogram", "Ultrasound"),
)

PLACEHOLDER_PATTERNS = [
    re.compile(r"xxx+", re.IGNORECASE),
    re.compile(r"n/a", re.IGNORECASE),
    re.compile(r"unknown", re.IGNORECASE),
    re.compile(r"tbd", re.IGNORECASE),
    re.compile(r"\?+"),
]

CRITICAL_PATIENT_FIELDS = ("patient.name", "patient.dateOfBirth")


def normalize_date(value: str) -> str:
    """
    Rewrite common US date spellings to ISO 8601.

    >>> normalize_date("3/5/2024"), normalize_date("03/05/99"), normalize_date("March 5, 2024")
    ('2024-03-05', '1999-03-05', '2024-03-05')

    Anything unrecognized, including strings already starting with an ISO
    date, is returned unchanged.
    """
    if not value or _ISO_DATE_RE.match(value):
        return value

    for pattern in (_SLASH_DATE_RE, _DASH_DATE_RE):
        match = pattern.match(value)
        if match:
            month, day, year = match.groups()
            return f"{year}-{month.zfill(2)}-{day.zfill(2)}"

    match = _SHORT_YEAR_DATE_RE.match(value)
    if match:
        month, day, year = match.groups()
        century = "19" if int(year) > 50 else "20"
        return f"{century}{year}-{month.zfill(2)}-{day.zfill(2)}"

    match = _MONTH_NAME_DATE_RE.match(value)
    if match:
        month = MONTHS.get(match.group(1).lower())
        if month:
            return f"{match.group(3)}-{month}-{match.group(2).zfill(2)}"

    return value


def _numeric_confidences(field_confidences: Optional[Dict[str, Any]]) -> Dict[str, float]:
    return {
        path: float(value)
        for path, value in (field_confidences or {}).items()
        if isinstance(value, (int, float)) and not isinstance(value, bool)
    }


class SchemaMapper:
    """
    Validates and normalizes LLM extraction output.

    Args:
        settings: Confidence threshold and review trigger fields
    """

    def __init__(self, settings: ExtractionSettings):
        self.settings = settings
        self.logger = logging.getLogger(self.__class__.__name__)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse_and_validate(
        self,
        llm_response: Dict[str, Any],
        document_type: DocumentType,
        ocr_engines: Sequence[OcrEngine],
        processing_time_ms: int,
        page_count: int = 1,
    ) -> SchemaValidationResult:
        errors: List[ValidationError] = []
        warnings: List[ValidationWarning] = []

        raw_data = llm_response.get("extracted_data")
        if not isinstance(raw_data, dict):
            errors.append(ValidationError(
                field="_root",
                message="Failed to parse extraction data: extracted_data is not an object",
                code=ValidationErrorCode.PARSE_ERROR,
            ))
            return SchemaValidationResult(is_valid=False, errors=errors, warnings=warnings)

        for path in REQUIRED_FIELDS.get(document_type, REQUIRED_FIELDS[DocumentType.UNKNOWN]):
            if not self.has_field(raw_data, path):
                errors.append(ValidationError(
                    field=path,
                    message=f'Required field "{path}" is missing',
                    code=ValidationErrorCode.MISSING_REQUIRED,
                ))

        if errors:
            self.logger.warning(
                f"Schema validation failed for {document_type.value}: "
                f"missing {[e.field for e in errors]}"
            )
            return SchemaValidationResult(is_valid=False, errors=errors, warnings=warnings)

        try:
            data = self.normalize_data(raw_data, document_type)
            data["_metadata"] = self._create_metadata(
                llm_response, ocr_engines, processing_time_ms, page_count, warnings
            )
            self._add_validation_warnings(data, warnings)

            coerced: List[Coercion] = []
            model = EXTRACTION_MODELS[document_type].model_validate(data, context={"coerced": coerced})
        except (PydanticValidationError, TypeError, ValueError, AttributeError) as e:
            self.logger.error(f"Schema mapping error for {document_type.value}: {e}")
            errors.append(ValidationError(
                field="_root",
                message=f"Failed to parse extraction data: {e}",
                code=ValidationErrorCode.PARSE_ERROR,
            ))
            return SchemaValidationResult(is_valid=False, errors=errors, warnings=warnings)

        coercion_warnings = [self._coercion_warning(*c) for c in coerced]
        if coercion_warnings:
            self.logger.warning(
                f"Kept {document_type.value} extraction with {len(coercion_warnings)} off-type value(s): "
                f"{[w.field for w in coercion_warnings]}"
            )
            warnings.extend(coercion_warnings)
            model.metadata.warnings.extend(coercion_warnings)

        return SchemaValidationResult(
            is_valid=True,
            errors=errors,
            warnings=warnings,
            normalized_data=model,
        )

    @staticmethod
    def has_field(data: Dict[str, Any], path: str) -> bool:
        """Dotted path present, not null, and not an empty list."""
        current: Any = data
        for part in path.split("."):
            if not isinstance(current, dict):
                return False
            current = current.get(part)
        if current is None:
            return False
        if isinstance(current, list) and not current:
            return False
        return True

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def normalize_data(self, raw_data: Dict[str, Any], document_type: DocumentType) -> Dict[str, Any]:
        data = copy.deepcopy(raw_data)
        data["documentType"] = document_type.value

        self._normalize_dates(data)

        if isinstance(data.get("patient"), dict):
            self._normalize_patient(data["patient"])

        if document_type == DocumentType.LAB_RESULT:
            self._normalize_lab_result(data)
        elif document_type == DocumentType.DISCHARGE_SUMMARY:
            self._normalize_discharge_summary(data)
        elif document_type == DocumentType.PRESCRIPTION:
            self._normalize_prescription(data)
        elif document_type == DocumentType.RADIOLOGY_REPORT:
            self._normalize_radiology_report(data)

        return data

    def _normalize_dates(self, obj: Dict[str, Any]) -> None:
        for key, value in obj.items():
            if isinstance(value, dict):
                self._normalize_dates(value)
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict):
                        self._normalize_dates(item)
            elif isinstance(value, str) and any(p in key for p in DATE_KEY_PATTERNS):
                obj[key] = normalize_date(value)

    def _normalize_patient(self, patient: Dict[str, Any]) -> None:
        gender = patient.get("gender")
        if isinstance(gender, str) and gender:
            patient["gender"] = GENDER_MAP.get(gender.lower(), gender)

        name = patient.get("name")
        if isinstance(name, str) and name:
            patient["name"] = re.sub(r"\b\w", lambda m: m.group(0).upper(), name.lower())

    def _normalize_lab_result(self, data: Dict[str, Any]) -> None:
        for result in _dict_items(data.get("testResults")):
            flag = result.get("flag")
            if isinstance(flag, str) and flag:
                result["flag"] = LAB_FLAG_MAP.get(flag.lower(), flag)
            result.setdefault("confidence", DEFAULT_ITEM_CONFIDENCE)

    def _normalize_discharge_summary(self, data: Dict[str, Any]) -> None:
        admission = data.get("admission")
        if isinstance(admission, dict) and isinstance(admission.get("source"), str):
            source = admission["source"]
            admission["source"] = ADMISSION_SOURCE_MAP.get(source.lower(), source)

        discharge = data.get("discharge")
        if isinstance(discharge, dict) and isinstance(discharge.get("condition"), str):
            condition = discharge["condition"]
            discharge["condition"] = DISCHARGE_CONDITION_MAP.get(condition.lower(), condition)

        for diagnosis in _dict_items(data.get("diagnoses")):
            diagnosis.setdefault("confidence", DEFAULT_ITEM_CONFIDENCE)

    def _normalize_prescription(self, data: Dict[str, Any]) -> None:
        for medication in _dict_items(data.get("medications")):
            route = medication.get("route")
            if isinstance(route, str) and route:
                medication["route"] = ROUTE_MAP.get(route.lower(), route)
            medication.setdefault("confidence", DEFAULT_ITEM_CONFIDENCE)

    def _normalize_radiology_report(self, data: Dict[str, Any]) -> None:
        laterality = data.get("laterality")
        if isinstance(laterality, str) and laterality:
            data["laterality"] = LATERALITY_MAP.get(laterality.lower(), laterality)

        study_type = data.get("studyType")
        if isinstance(study_type, str) and study_type:
            lower = study_type.lower()
            for pattern, canonical in STUDY_TYPE_SYNONYMS:
                if pattern in lower:
                    data["studyType"] = canonical
                    break

    # ------------------------------------------------------------------
    # Metadata and warnings
    # ------------------------------------------------------------------

    def _create_metadata(
        self,
        llm_response: Dict[str, Any],
        ocr_engines: Sequence[OcrEngine],
        processing_time_ms: int,
        page_count: int,
        warnings: List[ValidationWarning],
    ) -> Dict[str, Any]:
        confidences = _numeric_confidences(llm_response.get("field_confidences"))
        return {
            "extractedAt": datetime.now(timezone.utc).isoformat(),
            "ocrEngines": [OcrEngine(e).value for e in ocr_engines],
            "extractionMethod": ExtractionMethod.LLM_ASSISTED.value,
            "overallConfidence": self.calculate_overall_confidence(confidences),
            "processingTimeMs": processing_time_ms,
            "pageCount": page_count,
            # Same list object as the result's warnings
            "warnings": warnings,
            "lowConfidenceFields": [
                path for path, value in confidences.items()
                if value < self.settings.CONFIDENCE_THRESHOLD
            ],
        }

    def _add_validation_warnings(self, data: Dict[str, Any], warnings: List[ValidationWarning]) -> None:
        self._check_placeholders(data, "", warnings)

        if data.get("patient"):
            low_fields = data["_metadata"]["lowConfidenceFields"]
            if any(f in low_fields for f in CRITICAL_PATIENT_FIELDS):
                warnings.append(ValidationWarning(
                    field="patient",
                    message="Critical patient identification fields have low confidence",
                    severity=WarningSeverity.HIGH,
                ))

    @staticmethod
    def _coercion_warning(path: str, raw: Any, action: str) -> ValidationWarning:
        return ValidationWarning(
            field=path,
            message=f"Unexpected value {reprlib.repr(raw)}: {action}",
            severity=WarningSeverity.MEDIUM,
            code=ValidationErrorCode.INVALID_FORMAT,
        )

    def _check_placeholders(self, obj: Dict[str, Any], path: str, warnings: List[ValidationWarning]) -> None:
        # Lists are not scanned
        for key, value in obj.items():
            current_path = f"{path}.{key}" if path else key
            if isinstance(value, str):
                if any(p.fullmatch(value) for p in PLACEHOLDER_PATTERNS):
                    warnings.append(ValidationWarning(
                        field=current_path,
                        message=f'Field contains placeholder value: "{value}"',
                        severity=WarningSeverity.LOW,
                    ))
            elif isinstance(value, dict):
                self._check_placeholders(value, current_path, warnings)

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------

    def calculate_overall_confidence(self, field_confidences: Dict[str, Any]) -> float:
        values = list(_numeric_confidences(field_confidences).values())
        if not values:
            return DEFAULT_CONFIDENCE
        return sum(values) / len(values)

    def should_require_review(
        self,
        overall_confidence: float,
        low_confidence_fields: Sequence[str],
        validation_warnings: Sequence[ValidationWarning],
    ) -> bool:
        if overall_confidence < self.settings.CONFIDENCE_THRESHOLD:
            return True

        critical = self.settings.REVIEW_TRIGGER_FIELDS
        if any(c in f for f in low_confidence_fields for c in critical):
            return True

        return any(w.severity == WarningSeverity.HIGH for w in validation_warnings)


def _dict_items(value: Any) -> List[Dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]
