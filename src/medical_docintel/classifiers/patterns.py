# ============================================================================
# src/medical_docintel/classifiers/patterns.py
# ============================================================================
"""
Classification pattern tables.

Patterns are literal phrases matched case-insensitively against the full OCR
text. UNKNOWN has no patterns. PATTERN_WEIGHTS boosts high-specificity
phrases (keys are lower-case); every other pattern weighs 1.0.
"""

from typing import Dict, List

from ..core.enums import DocumentType


DOCUMENT_PATTERNS: Dict[DocumentType, List[str]] = {
    DocumentType.LAB_RESULT: [
        'reference range',
        'specimen',
        'collection date',
        'lab result',
        'laboratory report',
        'CBC',
        'complete blood count',
        'BMP',
        'basic metabolic panel',
        'comprehensive metabolic',
        'lipid panel',
        'hemoglobin',
        'hematocrit',
        'WBC',
        'RBC',
        'platelet',
        'glucose',
        'creatinine',
        'urinalysis',
        'blood gas',
        'electrolytes',
        'K/uL',
        'mg/dL',
        'mEq/L',
        'g/dL',
        'accession',
    ],
    DocumentType.DISCHARGE_SUMMARY: [
        'discharge summary',
        'admission date',
        'discharge date',
        'hospital course',
        'discharge instructions',
        'discharge diagnosis',
        'discharge medications',
        'admission diagnosis',
        'length of stay',
        'discharge disposition',
        'discharge condition',
        'follow-up appointments',
        'attending physician',
        'admitted to',
        'discharged to',
        'discharge plan',
    ],
    DocumentType.CONSULTATION_NOTE: [
        'consultation',
        'consult note',
        'reason for consultation',
        'consulting physician',
        'thank you for this consultation',
        'thank you for referring',
        'appreciate the consultation',
        'consultation requested',
        'consultative opinion',
        'recommendations',
        'assessment and plan',
        'differential diagnosis',
    ],
    DocumentType.PRESCRIPTION: [
        'rx',
        'prescription',
        'dispense',
        'refill',
        'sig:',
        'take by mouth',
        'tablets',
        'capsules',
        'DEA',
        'NPI',
        'quantity:',
        'days supply',
        'substitution',
        'dispense as written',
        'may substitute',
        'prn',
        'refills:',
        'pharmacy',
    ],
    DocumentType.RADIOLOGY_REPORT: [
        'radiology report',
        'imaging report',
        'impression:',
        'findings:',
        'technique:',
        'comparison:',
        'CT scan',
        'MRI',
        'X-ray',
        'ultrasound',
        'radiologist',
        'contrast',
        'no acute',
        'unremarkable',
        'examination:',
        'clinical indication',
        'fluoroscopy',
        'mammogram',
        'DEXA',
        'nuclear medicine',
    ],
    DocumentType.PATHOLOGY_REPORT: [
        'pathology report',
        'surgical pathology',
        'gross description',
        'microscopic description',
        'microscopic examination',
        'specimen received',
        'specimen submitted',
        'diagnosis:',
        'biopsy',
        'histologic',
        'immunohistochemistry',
        'tumor grade',
        'margin status',
        'pathologist',
        'cytology',
        'frozen section',
        'TNM staging',
    ],
    DocumentType.OPERATIVE_NOTE: [
        'operative report',
        'operative note',
        'surgical report',
        'preoperative diagnosis',
        'postoperative diagnosis',
        'procedure performed',
        'operation performed',
        'anesthesia:',
        'surgeon:',
        'estimated blood loss',
        'specimens removed',
        'drains',
        'complications:',
        'sponge count',
        'instrument count',
        'disposition from OR',
    ],
    DocumentType.PROGRESS_NOTE: [
        'progress note',
        'daily note',
        'SOAP',
        'subjective:',
        'objective:',
        'assessment:',
        'plan:',
        'vital signs',
        'chief complaint',
        'history of present illness',
        'review of systems',
        'physical exam',
        'current medications',
        'problem list',
        'hospital day',
    ],
    DocumentType.CONSENT_FORM: [
        'consent',
        'informed consent',
        'i consent to',
        'i understand',
        'risks and benefits',
        'patient signature',
        'witness signature',
        'authorization',
        'i hereby authorize',
        'alternatives explained',
        'right to refuse',
        'voluntary',
        'date of signature',
    ],
    DocumentType.PATIENT_INTAKE: [
        'patient registration',
        'new patient',
        'intake form',
        'demographic',
        'emergency contact',
        'insurance information',
        'medical history',
        'allergies list',
        'current medications list',
        'family history',
        'social history',
        'primary care physician',
    ],
    DocumentType.INSURANCE_FORM: [
        'insurance',
        'policy number',
        'group number',
        'member ID',
        'claim',
        'prior authorization',
        'pre-certification',
        'benefits',
        'coverage',
        'subscriber',
        'explanation of benefits',
        'EOB',
        'copay',
        'deductible',
    ],
    DocumentType.REFERRAL: [
        'referral',
        'refer this patient',
        'referring physician',
        'referred to',
        'reason for referral',
        'please evaluate',
        'please see',
        'consultation requested',
        'specialist evaluation',
        'urgent referral',
    ],
    DocumentType.CLINICAL_TRIAL: [
        'clinical trial',
        'research study',
        'protocol',
        'investigator',
        'sponsor',
        'informed consent for research',
        'NCT',
        'IRB',
        'adverse event',
        'study visit',
        'randomization',
        'placebo',
        'study drug',
        'inclusion criteria',
        'exclusion criteria',
    ],
    DocumentType.UNKNOWN: [],
}


PATTERN_WEIGHTS: Dict[str, float] = {
    'discharge summary': 3.0,
    'operative report': 3.0,
    'operative note': 3.0,
    'pathology report': 3.0,
    'radiology report': 3.0,
    'laboratory report': 3.0,
    'consultation': 2.0,
    'progress note': 2.0,
    'informed consent': 2.5,
    'clinical trial': 3.0,
    'reference range': 2.0,
    'gross description': 2.5,
    'microscopic description': 2.5,
}


# LLM type labels that are not canonical DocumentType names
TYPE_SYNONYMS: Dict[str, DocumentType] = {
    'LAB': DocumentType.LAB_RESULT,
    'LABS': DocumentType.LAB_RESULT,
    'LABORATORY': DocumentType.LAB_RESULT,
    'DISCHARGE': DocumentType.DISCHARGE_SUMMARY,
    'CONSULT': DocumentType.CONSULTATION_NOTE,
    'CONSULTATION': DocumentType.CONSULTATION_NOTE,
    'RX': DocumentType.PRESCRIPTION,
    'XRAY': DocumentType.RADIOLOGY_REPORT,
    'IMAGING': DocumentType.RADIOLOGY_REPORT,
    'RADIOLOGY': DocumentType.RADIOLOGY_REPORT,
    'PATHOLOGY': DocumentType.PATHOLOGY_REPORT,
    'BIOPSY': DocumentType.PATHOLOGY_REPORT,
    'SURGERY': DocumentType.OPERATIVE_NOTE,
    'OPERATIVE': DocumentType.OPERATIVE_NOTE,
    'PROGRESS': DocumentType.PROGRESS_NOTE,
    'SOAP': DocumentType.PROGRESS_NOTE,
    'CONSENT': DocumentType.CONSENT_FORM,
    'INTAKE': DocumentType.PATIENT_INTAKE,
    'REGISTRATION': DocumentType.PATIENT_INTAKE,
    'INSURANCE': DocumentType.INSURANCE_FORM,
    'REFERRAL_LETTER': DocumentType.REFERRAL,
    'TRIAL': DocumentType.CLINICAL_TRIAL,
    'RESEARCH': DocumentType.CLINICAL_TRIAL,
}
