# ============================================================================
# FILE: tests/unit/test_document_classifier.py
# ============================================================================
"""
Unit tests for pattern classification and the LLM fallback
"""

import pytest

from conftest import FakeLLMClient
from medical_docintel.classifiers.document_classifier import (
    ClassificationResult,
    DocumentClassifier,
    map_to_document_type,
)
from medical_docintel.core.enums import ClassificationMethod, DocumentType


def test_classify_lab_report_by_patterns(extraction_settings, sample_lab_text):
    """Lab report scores high on pattern match"""
    classifier = DocumentClassifier(extraction_settings)

    result = classifier.classify_by_patterns(sample_lab_text)

    assert result.document_type == DocumentType.LAB_RESULT
    assert result.confidence >= 0.75
    assert result.confidence <= 0.99
    assert "reference range" in result.matched_patterns
    assert "CBC" in result.matched_patterns


def test_classify_radiology_by_patterns(extraction_settings, sample_radiology_text):
    classifier = DocumentClassifier(extraction_settings)

    result = classifier.classify_by_patterns(sample_radiology_text)

    assert result.document_type == DocumentType.RADIOLOGY_REPORT
    assert "impression:" in result.matched_patterns


def test_classify_by_patterns_no_match(extraction_settings):
    classifier = DocumentClassifier(extraction_settings)

    result = classifier.classify_by_patterns("zzz qqq")

    assert result.document_type == DocumentType.UNKNOWN
    assert result.confidence == 0.0
    assert result.matched_patterns == []


@pytest.mark.asyncio
async def test_confident_pattern_match_skips_llm(extraction_settings, sample_lab_text):
    llm = FakeLLMClient([{"document_type": "PRESCRIPTION", "confidence": 0.9}])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify(sample_lab_text)

    assert result.method == ClassificationMethod.PATTERN_MATCH
    assert result.document_type == DocumentType.LAB_RESULT
    assert llm.calls == []


@pytest.mark.asyncio
async def test_ambiguous_text_uses_llm(extraction_settings):
    """Low pattern confidence -> LLM result with normalized labels"""
    llm = FakeLLMClient([{
        "document_type": "lab-result",
        "confidence": 0.82,
        "alternative_types": [{"type": "XRAY", "confidence": 0.1}, "junk"],
        "reasoning": "Contains analyte values",
    }])
    classifier = DocumentClassifier(extraction_settings, llm, model="classify-model")

    result = await classifier.classify("zzz qqq")

    assert result.method == ClassificationMethod.LLM
    assert result.document_type == DocumentType.LAB_RESULT
    assert result.confidence == pytest.approx(0.82)
    assert [a.type for a in result.alternative_types] == [DocumentType.RADIOLOGY_REPORT]
    assert result.reasoning == "Contains analyte values"

    call = llm.calls[0]
    assert call["model"] == "classify-model"
    assert call["json_mode"] is True
    assert call["messages"][0]["role"] == "system"
    assert "zzz qqq" in call["messages"][-1]["content"]


@pytest.mark.asyncio
async def test_llm_failure_keeps_pattern_result(extraction_settings):
    llm = FakeLLMClient([RuntimeError("provider down")])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify("glucose 95")

    assert len(llm.calls) == 1
    assert result.method == ClassificationMethod.PATTERN_MATCH
    assert result.document_type == DocumentType.LAB_RESULT
    assert result.confidence < 0.75


@pytest.mark.asyncio
async def test_llm_reply_without_document_type_keeps_pattern_result(extraction_settings):
    llm = FakeLLMClient([{"confidence": 0.9}])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify("zzz qqq")

    assert result.method == ClassificationMethod.PATTERN_MATCH
    assert result.document_type == DocumentType.UNKNOWN


@pytest.mark.asyncio
async def test_llm_confidence_is_clamped(extraction_settings):
    llm = FakeLLMClient([{"document_type": "BIOPSY", "confidence": 7}])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify("zzz qqq")

    assert result.document_type == DocumentType.PATHOLOGY_REPORT
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_disabled_fallback_never_calls_llm(extraction_settings):
    extraction_settings.LLM_FALLBACK_ENABLED = False
    llm = FakeLLMClient([{"document_type": "LAB_RESULT", "confidence": 0.9}])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify("zzz qqq")

    assert llm.calls == []
    assert result.document_type == DocumentType.UNKNOWN


@pytest.mark.asyncio
async def test_unavailable_llm_is_skipped(extraction_settings):
    llm = FakeLLMClient([{"document_type": "LAB_RESULT"}], available=False)
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify("zzz qqq")

    assert llm.calls == []
    assert result.method == ClassificationMethod.PATTERN_MATCH


@pytest.mark.asyncio
async def test_user_hint_is_not_applied(extraction_settings, sample_lab_text):
    classifier = DocumentClassifier(extraction_settings)

    result = await classifier.classify(sample_lab_text, user_hint=DocumentType.PRESCRIPTION)

    assert result.document_type == DocumentType.LAB_RESULT


@pytest.mark.parametrize("label,expected", [
    ("LAB_RESULT", DocumentType.LAB_RESULT),
    ("lab-result", DocumentType.LAB_RESULT),
    ("Discharge Summary", DocumentType.DISCHARGE_SUMMARY),
    ("  xray ", DocumentType.RADIOLOGY_REPORT),
    ("SOAP", DocumentType.PROGRESS_NOTE),
    ("something else", DocumentType.UNKNOWN),
    (None, DocumentType.UNKNOWN),
    (42, DocumentType.UNKNOWN),
])
def test_map_to_document_type(label, expected):
    assert map_to_document_type(label) == expected


def test_classification_result_round_trip():
    result = ClassificationResult(
        document_type=DocumentType.REFERRAL,
        confidence=0.6,
        method=ClassificationMethod.LLM,
        reasoning="letter",
    )

    data = result.to_dict()

    assert data["document_type"] == "REFERRAL"
    assert data["method"] == "LLM"
    assert ClassificationResult.from_dict(data) == result


DISCHARGE_TEXT = """DISCHARGE SUMMARY
Admission Date: 03/01/2024
Discharge Date: 03/05/2024
Hospital Course: Treated with IV antibiotics.
Discharge Diagnosis: Community acquired pneumonia
Discharge Disposition: Home
Attending Physician: Dr. A. Smith
"""


@pytest.mark.asyncio
async def test_discharge_summary_classified_without_llm(extraction_settings):
    llm = FakeLLMClient([{"document_type": "LAB_RESULT", "confidence": 0.9}])
    classifier = DocumentClassifier(extraction_settings, llm)

    result = await classifier.classify(DISCHARGE_TEXT)

    assert result.document_type == DocumentType.DISCHARGE_SUMMARY
    assert result.method == ClassificationMethod.PATTERN_MATCH
    assert result.confidence >= 0.75
    assert llm.calls == []


def test_adding_matched_phrase_never_lowers_score(extraction_settings):
    classifier = DocumentClassifier(extraction_settings)
    base = classifier.classify_by_patterns(DISCHARGE_TEXT)

    for extra in ("discharge summary", "length of stay", "discharge instructions"):
        boosted = classifier.classify_by_patterns(f"{DISCHARGE_TEXT}\n{extra.title()}: noted")
        assert boosted.document_type == DocumentType.DISCHARGE_SUMMARY
        assert boosted.score >= base.score
        assert boosted.confidence >= base.confidence
