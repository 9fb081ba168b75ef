# ============================================================================
# src/medical_docintel/extraction/models.py
# ============================================================================
"""
Extraction payload models.

One pydantic model per document type, each tagged with a literal
documentType and carrying an ExtractionMetadata (`_metadata` on the wire).
Python attributes are snake_case; JSON keys are camelCase aliases so the
payloads line up with the schemas in the extraction prompts.

Fields a document type requires default to empty values (``""``, ``[]``,
empty sub-objects); everything else defaults to None. Building a variant
from metadata alone therefore gives the minimal, schema-conformant payload
used when extraction fails.

Enum-like fields (gender, flag, route, ...) are plain strings: values the
normalizer does not recognize are kept as the LLM returned them.
"""

import re
from dataclasses import dataclass, field
from types import UnionType
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple, Type, Union, get_args, get_origin

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationInfo, model_validator
from pydantic.alias_generators import to_camel
from typing_extensions import Annotated

from ..core.enums import DocumentType, ExtractionMethod, ValidationErrorCode, WarningSeverity


class SchemaModel(BaseModel):
    """Base for all payload models: camelCase aliases, unknown keys kept."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    # Field a bare string is stored in when it arrives in place of this object
    string_field: ClassVar[Optional[str]] = None
    # Field that keeps an unparseable scalar of a dropped sibling
    raw_value_field: ClassVar[Optional[str]] = None


# ----------------------------------------------------------------------------
# Lenient input
# ----------------------------------------------------------------------------
#
# LLM output routinely puts a string where an object or number is expected
# ("referenceRange": "70-100 mg/dL", "low": "<5", "confidence": "high").
# Before a payload is validated every declared field is checked against its
# annotation and off-type values are reshaped or dropped, so one odd
# optional value never invalidates the whole extraction. Each change is
# recorded as (path, raw value, action) in the "coerced" list of the
# validation context, which the schema mapper turns into warnings.

_DROP = object()

_NUMBER_RE = re.compile(r"^\s*[-+]?(\d+(\.\d*)?|\.\d+)([eE][-+]?\d+)?\s*$")
_INTEGER_RE = re.compile(r"^\s*[-+]?\d+\s*$")
_BOOL_STRINGS = frozenset({"0", "off", "f", "false", "n", "no", "1", "on", "t", "true", "y", "yes"})
_SCALARS = (str, int, float, bool)

Coercion = Tuple[str, Any, str]


def _union_members(annotation: Any) -> Tuple[Any, ...]:
    if get_origin(annotation) in (Union, UnionType):
        return tuple(a for a in get_args(annotation) if a is not type(None))
    return (annotation,)


def _field_key(model_cls: Type["SchemaModel"], name: str) -> str:
    return model_cls.model_fields[name].alias or name


def _lenient_scalar(expected: Any, value: Any) -> Any:
    """value if pydantic will accept it for a scalar annotation, else _DROP."""
    if expected is str:
        return value if isinstance(value, (str, int, float)) and not isinstance(value, bool) else _DROP
    if expected is bool:
        if isinstance(value, bool) or (isinstance(value, int) and value in (0, 1)):
            return value
        return value if isinstance(value, str) and value.strip().lower() in _BOOL_STRINGS else _DROP
    if expected in (int, float):
        if isinstance(value, bool):
            return _DROP
        if expected is int and isinstance(value, float):
            return value if value.is_integer() else _DROP
        if isinstance(value, (int, float)):
            return value
        pattern = _INTEGER_RE if expected is int else _NUMBER_RE
        return value if isinstance(value, str) and pattern.match(value) else _DROP
    return value


def _lenient_value(annotation: Any, value: Any, path: str, coerced: List[Coercion]) -> Any:
    if value is None or isinstance(value, BaseModel):
        return value

    members = _union_members(annotation)
    if len(members) > 1:
        if all(m in _SCALARS for m in members) and not isinstance(value, _SCALARS):
            coerced.append((path, value, "dropped"))
            return _DROP
        return value

    expected = members[0]
    origin = get_origin(expected)

    if isinstance(expected, type) and issubclass(expected, SchemaModel):
        if isinstance(value, dict):
            return lenient_input(expected, value, path, coerced)
        if isinstance(value, str) and expected.string_field:
            key = _field_key(expected, expected.string_field)
            coerced.append((path, value, f"kept as {path}.{key}"))
            return {key: value}
        coerced.append((path, value, "dropped"))
        return _DROP

    if origin is list:
        item_type = (get_args(expected) or (Any,))[0]
        if isinstance(value, (str, dict)):
            coerced.append((path, value, "wrapped in a list"))
            value = [value]
        elif not isinstance(value, list):
            coerced.append((path, value, "dropped"))
            return _DROP
        items = []
        for index, item in enumerate(value):
            fixed = _lenient_value(item_type, item, f"{path}[{index}]", coerced)
            if fixed is not _DROP:
                items.append(fixed)
        return items

    if origin is dict:
        if isinstance(value, dict):
            return value
        if isinstance(value, str):
            coerced.append((path, value, f"kept as {path}.text"))
            return {"text": value}
        coerced.append((path, value, "dropped"))
        return _DROP

    if expected is str and isinstance(value, list) and all(isinstance(v, _SCALARS) for v in value):
        coerced.append((path, value, "joined into one string"))
        return "; ".join(str(v) for v in value)

    fixed = _lenient_scalar(expected, value)
    if fixed is _DROP:
        coerced.append((path, value, "dropped"))
    return fixed


def lenient_input(
    model_cls: Type["SchemaModel"],
    data: Dict[str, Any],
    path: str = "",
    coerced: Optional[List[Coercion]] = None,
) -> Dict[str, Any]:
    """
    Copy of data with off-type values for model_cls's fields reshaped.

    Strings become sub-objects through the target model's string_field,
    values that cannot be parsed are dropped (the field falls back to its
    default) or, for models with a raw_value_field, moved there when it is
    empty. Undeclared keys are left alone.
    """
    coerced = coerced if coerced is not None else []
    result = dict(data)

    for name, info in model_cls.model_fields.items():
        key = info.alias if info.alias in result else name
        if key not in result:
            continue
        field_path = f"{path}.{info.alias or name}" if path else (info.alias or name)
        raw = result[key]
        fixed = _lenient_value(info.annotation, raw, field_path, coerced)
        if fixed is not _DROP:
            result[key] = fixed
            continue

        del result[key]
        raw_key = _field_key(model_cls, model_cls.raw_value_field) if model_cls.raw_value_field else None
        if raw_key and isinstance(raw, _SCALARS) and not result.get(raw_key):
            result[raw_key] = str(raw)
            target = f"{path}.{raw_key}" if path else raw_key
            coerced[-1] = (field_path, raw, f"kept as {target}")

    return result


# ----------------------------------------------------------------------------
# Validation issues
# ----------------------------------------------------------------------------

class ValidationWarning(SchemaModel):
    field: str
    message: str
    severity: WarningSeverity
    suggested_value: Optional[str] = None
    code: Optional[ValidationErrorCode] = None


class ValidationError(SchemaModel):
    field: str
    message: str
    code: ValidationErrorCode


# ----------------------------------------------------------------------------
# Common building blocks
# ----------------------------------------------------------------------------

class AddressInfo(SchemaModel):
    string_field: ClassVar[Optional[str]] = "street"

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class PatientInfo(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: Optional[str] = None
    date_of_birth: Optional[str] = None
    patient_id: Optional[str] = None
    gender: Optional[str] = None
    address: Optional[AddressInfo] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class ProviderInfo(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: Optional[str] = None
    npi: Optional[str] = None
    specialty: Optional[str] = None
    organization: Optional[str] = None
    phone: Optional[str] = None
    fax: Optional[str] = None


class FacilityInfo(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: Optional[str] = None
    address: Optional[AddressInfo] = None
    phone: Optional[str] = None
    fax: Optional[str] = None


class MedicationEntry(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: str = ""
    generic_name: Optional[str] = None
    brand_name: Optional[str] = None
    rxnorm_code: Optional[str] = None
    dosage: Optional[str] = None
    strength: Optional[str] = None
    unit: Optional[str] = None
    frequency: Optional[str] = None
    route: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    prescribed_by: Optional[str] = None
    instructions: Optional[str] = None
    confidence: Optional[float] = None


class DiagnosisEntry(SchemaModel):
    string_field: ClassVar[Optional[str]] = "description"

    description: str = ""
    icd_code: Optional[str] = None
    snomed_code: Optional[str] = None
    type: Optional[str] = None
    onset_date: Optional[str] = None
    resolved_date: Optional[str] = None
    status: Optional[str] = None
    confidence: Optional[float] = None


class ProcedureEntry(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: str = ""
    cpt_code: Optional[str] = None
    icd_pcs_code: Optional[str] = None
    snomed_code: Optional[str] = None
    date: Optional[str] = None
    performed_by: Optional[str] = None
    facility: Optional[str] = None
    notes: Optional[str] = None
    confidence: Optional[float] = None


class AllergyEntry(SchemaModel):
    string_field: ClassVar[Optional[str]] = "allergen"

    allergen: str = ""
    reaction: Optional[str] = None
    severity: Optional[str] = None
    onset_date: Optional[str] = None
    confidence: Optional[float] = None


class VitalSigns(SchemaModel):
    blood_pressure_systolic: Optional[float] = None
    blood_pressure_diastolic: Optional[float] = None
    heart_rate: Optional[float] = None
    respiratory_rate: Optional[float] = None
    temperature: Optional[float] = None
    temperature_unit: Optional[str] = None
    oxygen_saturation: Optional[float] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    height: Optional[float] = None
    height_unit: Optional[str] = None
    bmi: Optional[float] = None
    recorded_at: Optional[str] = None


class FollowUpInstruction(SchemaModel):
    provider: Optional[str] = None
    specialty: Optional[str] = None
    facility: Optional[str] = None
    timeframe: Optional[str] = None
    reason: Optional[str] = None
    phone: Optional[str] = None
    appointment_scheduled: Optional[bool] = None
    appointment_date: Optional[str] = None
    confidence: Optional[float] = None


class ExtractionMetadata(SchemaModel):
    extracted_at: str = ""
    ocr_engines: List[str] = Field(default_factory=list)
    extraction_method: str = ExtractionMethod.LLM_ASSISTED.value
    overall_confidence: float = 0.0
    processing_time_ms: int = 0
    page_count: int = 1
    warnings: List[ValidationWarning] = Field(default_factory=list)
    low_confidence_fields: List[str] = Field(default_factory=list)


class ExtractionBase(SchemaModel):
    patient: PatientInfo = Field(default_factory=PatientInfo)
    metadata: ExtractionMetadata = Field(default_factory=ExtractionMetadata, alias="_metadata")

    @model_validator(mode="before")
    @classmethod
    def reshape_off_type_values(cls, data: Any, info: ValidationInfo) -> Any:
        if not isinstance(data, dict):
            return data
        context = info.context if isinstance(info.context, dict) else {}
        return lenient_input(cls, data, coerced=context.get("coerced"))


# ----------------------------------------------------------------------------
# LAB_RESULT
# ----------------------------------------------------------------------------

class ReferenceRange(SchemaModel):
    string_field: ClassVar[Optional[str]] = "text"
    raw_value_field: ClassVar[Optional[str]] = "text"

    low: Optional[float] = None
    high: Optional[float] = None
    text: Optional[str] = None


class LabTestResult(SchemaModel):
    string_field: ClassVar[Optional[str]] = "test_name"

    test_name: str = ""
    loinc_code: Optional[str] = None
    value: Optional[Union[float, str]] = None
    unit: Optional[str] = None
    reference_range: Optional[ReferenceRange] = None
    flag: Optional[str] = None
    status: Optional[str] = None
    performed_date: Optional[str] = None
    notes: Optional[str] = None
    confidence: Optional[float] = None


class LabPanel(SchemaModel):
    panel_name: str = ""
    loinc_code: Optional[str] = None
    test_names: List[str] = Field(default_factory=list)


class LabResultExtraction(ExtractionBase):
    document_type: Literal["LAB_RESULT"] = "LAB_RESULT"
    ordering_provider: Optional[ProviderInfo] = None
    laboratory: Optional[FacilityInfo] = None
    collection_date: Optional[str] = None
    received_date: Optional[str] = None
    report_date: Optional[str] = None
    order_number: Optional[str] = None
    accession_number: Optional[str] = None
    specimen_type: Optional[str] = None
    specimen_source: Optional[str] = None
    test_results: List[LabTestResult] = Field(default_factory=list)
    panels: Optional[List[LabPanel]] = None
    clinical_notes: Optional[str] = None


# ----------------------------------------------------------------------------
# DISCHARGE_SUMMARY
# ----------------------------------------------------------------------------

class AdmissionInfo(SchemaModel):
    date: str = ""
    time: Optional[str] = None
    source: Optional[str] = None
    reason: str = ""
    admitting_diagnosis: Optional[str] = None


class DischargeInfo(SchemaModel):
    date: str = ""
    time: Optional[str] = None
    disposition: str = ""
    condition: Optional[str] = None


class MedicationChange(SchemaModel):
    medication: str = ""
    change_type: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    reason: Optional[str] = None
    confidence: Optional[float] = None


class MedicationReconciliation(SchemaModel):
    on_admission: Optional[List[MedicationEntry]] = None
    on_discharge: List[MedicationEntry] = Field(default_factory=list)
    discontinued: Optional[List[MedicationEntry]] = None
    changed: Optional[List[MedicationChange]] = None


class DischargeInstructions(SchemaModel):
    activity: Optional[str] = None
    diet: Optional[str] = None
    wound_care: Optional[str] = None
    medications: Optional[str] = None
    warning_signs_to_watch: Optional[List[str]] = None
    other: Optional[str] = None


class DischargeSummaryExtraction(ExtractionBase):
    document_type: Literal["DISCHARGE_SUMMARY"] = "DISCHARGE_SUMMARY"
    admission: AdmissionInfo = Field(default_factory=AdmissionInfo)
    discharge: DischargeInfo = Field(default_factory=DischargeInfo)
    length_of_stay_days: Optional[float] = None
    attending_physician: Optional[ProviderInfo] = None
    consultants: Optional[List[ProviderInfo]] = None
    facility: Optional[FacilityInfo] = None
    unit: Optional[str] = None
    diagnoses: List[DiagnosisEntry] = Field(default_factory=list)
    procedures: List[ProcedureEntry] = Field(default_factory=list)
    medications: MedicationReconciliation = Field(default_factory=MedicationReconciliation)
    allergies: Optional[List[AllergyEntry]] = None
    hospital_course: Optional[str] = None
    significant_findings: Optional[List[str]] = None
    discharge_instructions: Optional[DischargeInstructions] = None
    follow_up: Optional[List[FollowUpInstruction]] = None
    discharge_vitals: Optional[VitalSigns] = None


# ----------------------------------------------------------------------------
# CONSULTATION_NOTE
# ----------------------------------------------------------------------------

class ConsultationNoteExtraction(ExtractionBase):
    document_type: Literal["CONSULTATION_NOTE"] = "CONSULTATION_NOTE"
    consult_date: str = ""
    consultation_type: Optional[str] = None
    requesting_provider: Optional[ProviderInfo] = None
    consulting_provider: ProviderInfo = Field(default_factory=ProviderInfo)
    facility: Optional[FacilityInfo] = None
    reason_for_consult: str = ""
    chief_complaint: Optional[str] = None
    history_of_present_illness: Optional[str] = None
    past_medical_history: Optional[str] = None
    past_surgical_history: Optional[str] = None
    family_history: Optional[str] = None
    social_history: Optional[str] = None
    review_of_systems: Optional[Dict[str, Any]] = None
    physical_exam: Optional[Dict[str, Any]] = None
    diagnoses: List[DiagnosisEntry] = Field(default_factory=list)
    differential_diagnoses: Optional[List[DiagnosisEntry]] = None
    plan: Optional[str] = None
    recommended_tests: Optional[List[str]] = None
    recommended_procedures: Optional[List[ProcedureEntry]] = None
    recommended_medications: Optional[List[MedicationEntry]] = None
    follow_up: Optional[List[FollowUpInstruction]] = None


# ----------------------------------------------------------------------------
# PRESCRIPTION
# ----------------------------------------------------------------------------

class PrescriptionMedication(MedicationEntry):
    quantity: Optional[float] = None
    quantity_unit: Optional[str] = None
    days_supply: Optional[float] = None
    refills: Optional[float] = None
    refills_remaining: Optional[float] = None
    dispense_as_written: Optional[bool] = None
    prior_authorization_number: Optional[str] = None


class PrescriptionExtraction(ExtractionBase):
    document_type: Literal["PRESCRIPTION"] = "PRESCRIPTION"
    prescriber: ProviderInfo = Field(default_factory=ProviderInfo)
    pharmacy: Optional[FacilityInfo] = None
    prescription_date: str = ""
    medications: List[PrescriptionMedication] = Field(default_factory=list)
    dea_number: Optional[str] = None


# ----------------------------------------------------------------------------
# RADIOLOGY_REPORT
# ----------------------------------------------------------------------------

class RadiologyFinding(SchemaModel):
    anatomic_location: Optional[str] = None
    finding: Optional[str] = None
    size: Optional[str] = None
    characteristics: Optional[List[str]] = None
    impression: Optional[str] = None
    confidence: Optional[float] = None


class RadiologyReportExtraction(ExtractionBase):
    document_type: Literal["RADIOLOGY_REPORT"] = "RADIOLOGY_REPORT"
    ordering_provider: Optional[ProviderInfo] = None
    radiologist: ProviderInfo = Field(default_factory=ProviderInfo)
    facility: Optional[FacilityInfo] = None
    study_date: str = ""
    study_type: str = ""
    body_part: Optional[str] = None
    laterality: Optional[str] = None
    accession_number: Optional[str] = None
    order_number: Optional[str] = None
    indication: Optional[str] = None
    clinical_history: Optional[str] = None
    comparison: Optional[str] = None
    technique: Optional[str] = None
    contrast_used: Optional[bool] = None
    contrast_type: Optional[str] = None
    findings: str = ""
    structured_findings: Optional[List[RadiologyFinding]] = None
    impression: str = ""
    recommendations: Optional[List[str]] = None
    critical_finding: Optional[bool] = None
    critical_finding_communicated: Optional[bool] = None
    critical_finding_communicated_to: Optional[str] = None
    critical_finding_communicated_at: Optional[str] = None


# ----------------------------------------------------------------------------
# PATHOLOGY_REPORT
# ----------------------------------------------------------------------------

class PathologyStaging(SchemaModel):
    tnm_stage: Optional[str] = None
    t_stage: Optional[str] = None
    n_stage: Optional[str] = None
    m_stage: Optional[str] = None
    grade: Optional[str] = None
    margin_status: Optional[str] = None
    lymphovascular_invasion: Optional[bool] = None
    perineural_invasion: Optional[bool] = None


class Biomarker(SchemaModel):
    name: str = ""
    result: Optional[str] = None
    interpretation: Optional[str] = None


class PathologyReportExtraction(ExtractionBase):
    document_type: Literal["PATHOLOGY_REPORT"] = "PATHOLOGY_REPORT"
    ordering_provider: Optional[ProviderInfo] = None
    pathologist: ProviderInfo = Field(default_factory=ProviderInfo)
    facility: Optional[FacilityInfo] = None
    specimen_collection_date: str = ""
    specimen_received_date: Optional[str] = None
    report_date: str = ""
    accession_number: Optional[str] = None
    specimen_type: str = ""
    specimen_source: str = ""
    clinical_history: Optional[str] = None
    preoperative_diagnosis: Optional[str] = None
    gross_description: Optional[str] = None
    microscopic_description: Optional[str] = None
    diagnosis: str = ""
    diagnoses: Optional[List[DiagnosisEntry]] = None
    staging: Optional[PathologyStaging] = None
    biomarkers: Optional[List[Biomarker]] = None
    additional_testing_recommended: Optional[List[str]] = None


# ----------------------------------------------------------------------------
# OPERATIVE_NOTE
# ----------------------------------------------------------------------------

class ImplantInfo(SchemaModel):
    name: str = ""
    manufacturer: Optional[str] = None
    serial_number: Optional[str] = None
    lot_number: Optional[str] = None


class OperativeNoteExtraction(ExtractionBase):
    document_type: Literal["OPERATIVE_NOTE"] = "OPERATIVE_NOTE"
    procedure_date: str = ""
    procedure_start_time: Optional[str] = None
    procedure_end_time: Optional[str] = None
    surgeon: ProviderInfo = Field(default_factory=ProviderInfo)
    assistant: Optional[ProviderInfo] = None
    anesthesiologist: Optional[ProviderInfo] = None
    facility: Optional[FacilityInfo] = None
    operating_room: Optional[str] = None
    preoperative_diagnosis: str = ""
    postoperative_diagnosis: str = ""
    procedures: List[ProcedureEntry] = Field(default_factory=list)
    anesthesia_type: Optional[str] = None
    indication: Optional[str] = None
    findings: Optional[str] = None
    technique_description: Optional[str] = None
    specimens_removed: Optional[List[str]] = None
    complications: Optional[str] = None
    estimated_blood_loss: Optional[str] = None
    implants_used: Optional[List[ImplantInfo]] = None
    drains: Optional[List[str]] = None
    closure_type: Optional[str] = None
    dressing_type: Optional[str] = None
    condition_at_end: Optional[str] = None
    disposition_from_or: Optional[str] = Field(default=None, alias="dispositionFromOR")


# ----------------------------------------------------------------------------
# PROGRESS_NOTE
# ----------------------------------------------------------------------------

class ObjectiveFindings(SchemaModel):
    vitals: Optional[VitalSigns] = None
    physical_exam: Optional[str] = None
    lab_results: Optional[str] = None
    imaging: Optional[str] = None


class ProgressNoteExtraction(ExtractionBase):
    document_type: Literal["PROGRESS_NOTE"] = "PROGRESS_NOTE"
    provider: ProviderInfo = Field(default_factory=ProviderInfo)
    facility: Optional[FacilityInfo] = None
    note_date: str = ""
    note_time: Optional[str] = None
    note_type: Optional[str] = None
    subjective: Optional[str] = None
    objective: Optional[ObjectiveFindings] = None
    assessment: Optional[str] = None
    plan: Optional[str] = None
    narrative_note: Optional[str] = None
    diagnoses: Optional[List[DiagnosisEntry]] = None
    medications: Optional[List[MedicationEntry]] = None
    new_orders: Optional[List[str]] = None


# ----------------------------------------------------------------------------
# CONSENT_FORM
# ----------------------------------------------------------------------------

class PatientSignature(SchemaModel):
    signed: bool = False
    signature_date: Optional[str] = None
    signature_time: Optional[str] = None
    signed_by: Optional[str] = None
    relationship: Optional[str] = None


class WitnessSignature(SchemaModel):
    signed: bool = False
    signature_date: Optional[str] = None
    witness_name: Optional[str] = None


class ProviderSignature(SchemaModel):
    signed: bool = False
    signature_date: Optional[str] = None
    provider_name: Optional[str] = None


class ConsentFormExtraction(ExtractionBase):
    document_type: Literal["CONSENT_FORM"] = "CONSENT_FORM"
    consent_type: str = ""
    consent_for: Optional[str] = None
    provider: Optional[ProviderInfo] = None
    facility: Optional[FacilityInfo] = None
    risks_disclosed: Optional[List[str]] = None
    benefits_disclosed: Optional[List[str]] = None
    alternatives_disclosed: Optional[List[str]] = None
    patient_signature: Optional[PatientSignature] = None
    witness_signature: Optional[WitnessSignature] = None
    provider_signature: Optional[ProviderSignature] = None
    interpreter_used: Optional[bool] = None
    interpreter_language: Optional[str] = None


# ----------------------------------------------------------------------------
# PATIENT_INTAKE
# ----------------------------------------------------------------------------

class EmergencyContact(SchemaModel):
    string_field: ClassVar[Optional[str]] = "name"

    name: Optional[str] = None
    relationship: Optional[str] = None
    phone: Optional[str] = None


class InsuranceInfo(SchemaModel):
    string_field: ClassVar[Optional[str]] = "provider"

    provider: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None


class SocialHistory(SchemaModel):
    smoking: Optional[str] = None
    alcohol: Optional[str] = None
    occupation: Optional[str] = None


class PatientIntakeExtraction(ExtractionBase):
    document_type: Literal["PATIENT_INTAKE"] = "PATIENT_INTAKE"
    emergency_contact: Optional[EmergencyContact] = None
    insurance: Optional[InsuranceInfo] = None
    primary_care_physician: Optional[ProviderInfo] = None
    medical_history: Optional[List[str]] = None
    surgical_history: Optional[List[str]] = None
    allergies: Optional[List[AllergyEntry]] = None
    current_medications: Optional[List[MedicationEntry]] = None
    family_history: Optional[Dict[str, Any]] = None
    social_history: Optional[SocialHistory] = None


# ----------------------------------------------------------------------------
# INSURANCE_FORM
# ----------------------------------------------------------------------------

class InsuranceFormExtraction(ExtractionBase):
    document_type: Literal["INSURANCE_FORM"] = "INSURANCE_FORM"
    insurance_provider: Optional[str] = None
    policy_number: Optional[str] = None
    group_number: Optional[str] = None
    subscriber_name: Optional[str] = None
    subscriber_dob: Optional[str] = Field(default=None, alias="subscriberDOB")
    subscriber_relationship: Optional[str] = None
    claim_number: Optional[str] = None
    authorization_number: Optional[str] = None
    service_date: Optional[str] = None
    diagnosis_codes: Optional[List[str]] = None
    procedure_codes: Optional[List[str]] = None
    amount_billed: Optional[float] = None
    amount_approved: Optional[float] = None
    patient_responsibility: Optional[float] = None


# ----------------------------------------------------------------------------
# REFERRAL
# ----------------------------------------------------------------------------

class ReferralExtraction(ExtractionBase):
    document_type: Literal["REFERRAL"] = "REFERRAL"
    referral_date: Optional[str] = None
    referring_provider: ProviderInfo = Field(default_factory=ProviderInfo)
    referred_to_provider: Optional[ProviderInfo] = None
    referred_to_specialty: Optional[str] = None
    urgency: Optional[str] = None
    reason_for_referral: str = ""
    clinical_history: Optional[str] = None
    current_medications: Optional[List[MedicationEntry]] = None
    relevant_diagnoses: Optional[List[DiagnosisEntry]] = None
    relevant_test_results: Optional[str] = None
    questions_for_specialist: Optional[List[str]] = None
    preferred_appointment_timeframe: Optional[str] = None


# ----------------------------------------------------------------------------
# CLINICAL_TRIAL
# ----------------------------------------------------------------------------

class AdverseEvent(SchemaModel):
    description: str = ""
    onset_date: Optional[str] = None
    resolved_date: Optional[str] = None
    severity: Optional[str] = None
    seriousness: Optional[str] = None
    relatedness: Optional[str] = None
    outcome: Optional[str] = None
    action_taken: Optional[str] = None
    confidence: Optional[float] = None


class ClinicalTrialExtraction(ExtractionBase):
    document_type: Literal["CLINICAL_TRIAL"] = "CLINICAL_TRIAL"
    trial_name: Optional[str] = None
    trial_id: Optional[str] = None
    sponsor: Optional[str] = None
    principal_investigator: Optional[ProviderInfo] = None
    site: Optional[FacilityInfo] = None
    enrollment_date: Optional[str] = None
    randomization_date: Optional[str] = None
    treatment_arm: Optional[str] = None
    consent_date: Optional[str] = None
    consent_version: Optional[str] = None
    visit_date: Optional[str] = None
    visit_number: Optional[str] = None
    visit_type: Optional[str] = None
    adverse_events: Optional[List[AdverseEvent]] = None
    concomitant_medications: Optional[List[MedicationEntry]] = None
    participation_status: Optional[str] = None
    withdrawal_date: Optional[str] = None
    withdrawal_reason: Optional[str] = None


# ----------------------------------------------------------------------------
# UNKNOWN
# ----------------------------------------------------------------------------

class UnknownDocumentExtraction(ExtractionBase):
    document_type: Literal["UNKNOWN"] = "UNKNOWN"
    provider: Optional[ProviderInfo] = None
    facility: Optional[FacilityInfo] = None
    document_date: Optional[str] = None
    content: Optional[str] = None
    diagnoses: Optional[List[DiagnosisEntry]] = None
    medications: Optional[List[MedicationEntry]] = None
    procedures: Optional[List[ProcedureEntry]] = None
    notes: Optional[str] = None


# ----------------------------------------------------------------------------
# Tagged union and registry
# ----------------------------------------------------------------------------

EXTRACTION_MODELS: Dict[DocumentType, Type[ExtractionBase]] = {
    DocumentType.LAB_RESULT: LabResultExtraction,
    DocumentType.DISCHARGE_SUMMARY: DischargeSummaryExtraction,
    DocumentType.CONSULTATION_NOTE: ConsultationNoteExtraction,
    DocumentType.PRESCRIPTION: PrescriptionExtraction,
    DocumentType.RADIOLOGY_REPORT: RadiologyReportExtraction,
    DocumentType.PATHOLOGY_REPORT: PathologyReportExtraction,
    DocumentType.OPERATIVE_NOTE: OperativeNoteExtraction,
    DocumentType.PROGRESS_NOTE: ProgressNoteExtraction,
    DocumentType.CONSENT_FORM: ConsentFormExtraction,
    DocumentType.PATIENT_INTAKE: PatientIntakeExtraction,
    DocumentType.INSURANCE_FORM: InsuranceFormExtraction,
    DocumentType.REFERRAL: ReferralExtraction,
    DocumentType.CLINICAL_TRIAL: ClinicalTrialExtraction,
    DocumentType.UNKNOWN: UnknownDocumentExtraction,
}

ExtractedData = Annotated[
    Union[
        LabResultExtraction,
        DischargeSummaryExtraction,
        ConsultationNoteExtraction,
        PrescriptionExtraction,
        RadiologyReportExtraction,
        PathologyReportExtraction,
        OperativeNoteExtraction,
        ProgressNoteExtraction,
        ConsentFormExtraction,
        PatientIntakeExtraction,
        InsuranceFormExtraction,
        ReferralExtraction,
        ClinicalTrialExtraction,
        UnknownDocumentExtraction,
    ],
    Field(discriminator="document_type"),
]

_EXTRACTED_DATA_ADAPTER = TypeAdapter(ExtractedData)


def parse_extracted_data(data: Dict[str, Any]) -> ExtractionBase:
    """Load a stored payload into its variant, chosen by documentType."""
    return _EXTRACTED_DATA_ADAPTER.validate_python(data)


def minimal_extraction(document_type: DocumentType, metadata: ExtractionMetadata) -> ExtractionBase:
    """Empty payload for a document type: required sub-objects present but blank."""
    return EXTRACTION_MODELS[document_type](metadata=metadata)


def dump_extracted_data(data: ExtractionBase) -> Dict[str, Any]:
    """Wire form: camelCase keys, `_metadata`, nulls dropped."""
    return data.model_dump(mode="json", by_alias=True, exclude_none=True)


# ----------------------------------------------------------------------------
# Results
# ----------------------------------------------------------------------------

@dataclass
class SchemaValidationResult:
    is_valid: bool
    errors: List[ValidationError] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)
    normalized_data: Optional[ExtractionBase] = None


@dataclass
class ExtractionResult:
    extracted_data: ExtractionBase
    field_confidences: Dict[str, float] = field(default_factory=dict)
    low_confidence_fields: List[str] = field(default_factory=list)
    overall_confidence: float = 0.0
    requires_review: bool = True
    validation_warnings: List[ValidationWarning] = field(default_factory=list)
    validation_errors: List[ValidationError] = field(default_factory=list)
    processing_time_ms: int = 0
    extraction_method: ExtractionMethod = ExtractionMethod.LLM_ASSISTED

    @property
    def document_type(self) -> DocumentType:
        return DocumentType(self.extracted_data.document_type)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extracted_data": dump_extracted_data(self.extracted_data),
            "field_confidences": dict(self.field_confidences),
            "low_confidence_fields": list(self.low_confidence_fields),
            "overall_confidence": self.overall_confidence,
            "requires_review": self.requires_review,
            "validation_warnings": [w.model_dump(mode="json", exclude_none=True) for w in self.validation_warnings],
            "validation_errors": [e.model_dump(mode="json") for e in self.validation_errors],
            "processing_time_ms": self.processing_time_ms,
            "extraction_method": self.extraction_method.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractionResult":
        return cls(
            extracted_data=parse_extracted_data(data["extracted_data"]),
            field_confidences=dict(data.get("field_confidences", {})),
            low_confidence_fields=list(data.get("low_confidence_fields", [])),
            overall_confidence=data.get("overall_confidence", 0.0),
            requires_review=data.get("requires_review", True),
            validation_warnings=[ValidationWarning.model_validate(w) for w in data.get("validation_warnings", [])],
            validation_errors=[ValidationError.model_validate(e) for e in data.get("validation_errors", [])],
            processing_time_ms=data.get("processing_time_ms", 0),
            extraction_method=ExtractionMethod(data.get("extraction_method", ExtractionMethod.LLM_ASSISTED.value)),
        )
