# ============================================================================
# FILE: tests/unit/test_ocr_orchestrator.py
# ============================================================================
"""
Unit tests for OCR engine selection, fallback and ensemble mode
"""

import pytest

from conftest import FakeOcrEngine
from medical_docintel.core.enums import DocumentType, OcrEngine
from medical_docintel.ocr.orchestrator import OcrOrchestrator, select_ocr_engine
from medical_docintel.utils.exceptions import NoOcrEngineAvailableError, OcrError
from medical_docintel.utils.metrics import MetricsCollector

AWS = OcrEngine.AWS_TEXTRACT
MISTRAL = OcrEngine.MISTRAL_OCR


# ============================================================================
# select_ocr_engine
# ============================================================================

def test_select_only_aws_available():
    assert select_ocr_engine([AWS], MISTRAL) == AWS


def test_select_only_mistral_available():
    assert select_ocr_engine([MISTRAL], AWS, DocumentType.LAB_RESULT, True) == MISTRAL


def test_select_both_prefers_textract_for_lab_results():
    assert select_ocr_engine([AWS, MISTRAL], MISTRAL, DocumentType.LAB_RESULT) == AWS


def test_select_both_prefers_textract_for_complex_tables():
    assert select_ocr_engine([AWS, MISTRAL], MISTRAL, DocumentType.PATHOLOGY_REPORT, True) == AWS


def test_select_both_uses_primary_otherwise():
    assert select_ocr_engine([AWS, MISTRAL], MISTRAL, DocumentType.PRESCRIPTION) == MISTRAL
    assert select_ocr_engine([AWS, MISTRAL], AWS, None) == AWS


def test_select_none_available():
    assert select_ocr_engine([], MISTRAL) is None


# ============================================================================
# process_document
# ============================================================================

def _orchestrator(ocr_settings, aws, mistral, metrics=None):
    return OcrOrchestrator([aws, mistral], ocr_settings, metrics)


@pytest.mark.asyncio
async def test_process_document_uses_selected_engine(ocr_settings):
    aws = FakeOcrEngine(AWS, text="from textract")
    mistral = FakeOcrEngine(MISTRAL, text="from mistral")
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    result = await orchestrator.process_document(b"x", "image/png", DocumentType.LAB_RESULT)

    assert result.engine == AWS
    assert result.raw_text == "from textract"
    assert mistral.calls == 0


@pytest.mark.asyncio
async def test_process_document_falls_back_on_failure(ocr_settings):
    """Selected engine raises -> one retry on the fallback"""
    metrics = MetricsCollector()
    aws = FakeOcrEngine(AWS, text="from textract")
    mistral = FakeOcrEngine(MISTRAL, error=OcrError("mistral down"))
    orchestrator = _orchestrator(ocr_settings, aws, mistral, metrics)

    result = await orchestrator.process_document(b"x", "image/png", DocumentType.PRESCRIPTION)

    assert result.engine == AWS
    assert mistral.calls == 1
    assert aws.calls == 1
    assert metrics.get_counter("ocr.fallback") == 1


@pytest.mark.asyncio
async def test_process_document_reraises_without_distinct_fallback(ocr_settings):
    aws = FakeOcrEngine(AWS, available=False)
    mistral = FakeOcrEngine(MISTRAL, error=OcrError("mistral down"))
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    with pytest.raises(OcrError, match="mistral down"):
        await orchestrator.process_document(b"x", "image/png")


@pytest.mark.asyncio
async def test_process_document_fallback_same_as_selected_reraises(ocr_settings):
    ocr_settings.FALLBACK_OCR_ENGINE = MISTRAL
    aws = FakeOcrEngine(AWS, available=False)
    mistral = FakeOcrEngine(MISTRAL, error=OcrError("boom"))
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    with pytest.raises(OcrError, match="boom"):
        await orchestrator.process_document(b"x", "image/png")
    assert mistral.calls == 1


@pytest.mark.asyncio
async def test_process_document_no_engines(ocr_settings):
    aws = FakeOcrEngine(AWS, available=False)
    mistral = FakeOcrEngine(MISTRAL, available=False)
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    with pytest.raises(NoOcrEngineAvailableError) as exc_info:
        await orchestrator.process_document(b"x", "image/png")

    assert str(exc_info.value) == "No OCR engines available. Primary: None, Fallback: AWS_TEXTRACT"


def test_get_available_engines_in_registry_order(ocr_settings):
    aws = FakeOcrEngine(AWS)
    mistral = FakeOcrEngine(MISTRAL)
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    assert orchestrator.get_available_engines() == [AWS, MISTRAL]

    aws.available = False
    assert orchestrator.get_available_engines() == [MISTRAL]


# ============================================================================
# Ensemble
# ============================================================================

@pytest.mark.asyncio
async def test_ensemble_runs_both_engines(ocr_settings):
    aws = FakeOcrEngine(AWS, text="a")
    mistral = FakeOcrEngine(MISTRAL, text="m")
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    ensemble = await orchestrator.process_with_ensemble(b"x", "image/png")

    assert ensemble.primary.engine == AWS
    assert ensemble.secondary.engine == MISTRAL
    assert [r.engine for r in ensemble.results] == [AWS, MISTRAL]


@pytest.mark.asyncio
async def test_ensemble_secondary_failure_is_not_raised(ocr_settings):
    aws = FakeOcrEngine(AWS, text="a")
    mistral = FakeOcrEngine(MISTRAL, error=OcrError("down"))
    orchestrator = _orchestrator(ocr_settings, aws, mistral)

    ensemble = await orchestrator.process_with_ensemble(b"x", "image/png")

    assert ensemble.primary.engine == AWS
    assert ensemble.secondary is None
    assert len(ensemble.results) == 1


@pytest.mark.asyncio
async def test_ensemble_without_engines(ocr_settings):
    orchestrator = _orchestrator(
        ocr_settings,
        FakeOcrEngine(AWS, available=False),
        FakeOcrEngine(MISTRAL, available=False),
    )

    with pytest.raises(NoOcrEngineAvailableError):
        await orchestrator.process_with_ensemble(b"x", "image/png")
