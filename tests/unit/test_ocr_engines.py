# ============================================================================
# FILE: tests/unit/test_ocr_engines.py
# ============================================================================
"""
Unit tests for the Textract and Mistral OCR adapters (no network)
"""

import pytest

from medical_docintel.core.enums import OcrBlockType, OcrEngine
from medical_docintel.ocr.mistral_engine import MistralOcrEngine, parse_mistral_response
from medical_docintel.ocr.textract_engine import TextractEngine, parse_textract_blocks
from medical_docintel.ocr.types import OcrOptions
from medical_docintel.utils.exceptions import (
    OcrEngineUnavailableError,
    OcrJobFailedError,
    OcrTimeoutError,
)


# ============================================================================
# Textract
# ============================================================================

def _textract_blocks():
    return [
        {"Id": "p1", "BlockType": "PAGE", "Relationships": [
            {"Type": "CHILD", "Ids": ["l1", "l2", "t1"]},
        ]},
        {"Id": "l1", "BlockType": "LINE", "Text": "Patient: John Doe", "Confidence": 99.0},
        {"Id": "l2", "BlockType": "LINE", "Text": "Hemoglobin 14.2", "Confidence": 97.0},
        {"Id": "w1", "BlockType": "WORD", "Text": "Patient:", "Confidence": 99.0},
        {"Id": "w2", "BlockType": "WORD", "Text": "John", "Confidence": 99.0},
        {"Id": "w3", "BlockType": "WORD", "Text": "Doe", "Confidence": 99.0},
        {"Id": "w4", "BlockType": "WORD", "Text": "Hemoglobin", "Confidence": 95.0},
        {"Id": "w5", "BlockType": "WORD", "Text": "14.2", "Confidence": 95.0},
        {"Id": "t1", "BlockType": "TABLE", "Page": 1, "Confidence": 90.0, "Relationships": [
            {"Type": "CHILD", "Ids": ["c1", "c2"]},
        ]},
        {"Id": "c1", "BlockType": "CELL", "RowIndex": 1, "ColumnIndex": 1, "Confidence": 90.0,
         "Relationships": [{"Type": "CHILD", "Ids": ["w4"]}]},
        {"Id": "c2", "BlockType": "CELL", "RowIndex": 2, "ColumnIndex": 1, "Confidence": 90.0,
         "Relationships": [{"Type": "CHILD", "Ids": ["w5"]}]},
        {"Id": "k1", "BlockType": "KEY_VALUE_SET", "EntityTypes": ["KEY"], "Confidence": 88.0,
         "Relationships": [
             {"Type": "CHILD", "Ids": ["w1"]},
             {"Type": "VALUE", "Ids": ["v1"]},
         ]},
        {"Id": "v1", "BlockType": "KEY_VALUE_SET", "EntityTypes": ["VALUE"], "Confidence": 86.0,
         "Relationships": [{"Type": "CHILD", "Ids": ["w2", "w3"]}]},
    ]


def test_parse_textract_blocks():
    """Lines, words, tables and key/value pairs are all picked up"""
    parsed = parse_textract_blocks(_textract_blocks())

    assert parsed["raw_text"] == "Patient: John Doe\nHemoglobin 14.2"
    assert parsed["word_count"] == 5
    assert 0.0 < parsed["overall_confidence"] <= 1.0

    assert len(parsed["pages"]) == 1
    page = parsed["pages"][0]
    assert page.page_number == 1
    assert [b.type for b in page.blocks] == [OcrBlockType.LINE, OcrBlockType.LINE]
    assert len(page.tables) == 1

    table = parsed["tables"][0]
    assert table.row_count == 2
    assert table.column_count == 1
    assert [c.text for c in table.cells] == ["Hemoglobin", "14.2"]
    assert table.cells[0].is_header is True
    assert table.cells[1].row_index == 1

    kv = parsed["key_value_pairs"]
    assert len(kv) == 1
    assert kv[0].key == "Patient:"
    assert kv[0].value == "John Doe"
    assert kv[0].key_confidence == pytest.approx(0.88)


def test_parse_textract_blocks_without_page_blocks():
    """Sync responses without PAGE blocks still produce one page"""
    parsed = parse_textract_blocks([
        {"Id": "l1", "BlockType": "LINE", "Text": "Only line", "Confidence": 90.0},
    ])

    assert len(parsed["pages"]) == 1
    assert parsed["pages"][0].text == "Only line"


def test_parse_textract_blocks_empty():
    parsed = parse_textract_blocks([])

    assert parsed["raw_text"] == ""
    assert parsed["overall_confidence"] == 0.0
    assert parsed["pages"] == ()


class FakeTextractClient:
    def __init__(self, statuses=("SUCCEEDED",), blocks=None):
        self.statuses = list(statuses)
        self.blocks = blocks if blocks is not None else _textract_blocks()
        self.analyze_calls = []
        self.start_calls = []
        self.get_calls = []

    def analyze_document(self, **kwargs):
        self.analyze_calls.append(kwargs)
        return {"Blocks": self.blocks}

    def start_document_analysis(self, **kwargs):
        self.start_calls.append(kwargs)
        return {"JobId": "job-1"}

    def get_document_analysis(self, **kwargs):
        self.get_calls.append(kwargs)
        if "NextToken" in kwargs:
            return {"JobStatus": "SUCCEEDED", "Blocks": self.blocks[5:]}
        status = self.statuses.pop(0) if self.statuses else "IN_PROGRESS"
        if status == "SUCCEEDED":
            return {"JobStatus": status, "Blocks": self.blocks[:5], "NextToken": "page-2"}
        return {"JobStatus": status, "StatusMessage": "bad document"}


class FakeStaging:
    def __init__(self):
        self.staged = []
        self.deleted = []

    async def stage_for_textract(self, content, processing_id, mime_type):
        key = f"textract-processing/{processing_id}.pdf"
        self.staged.append(key)
        return "bucket", key

    async def delete_staged(self, key):
        self.deleted.append(key)


@pytest.mark.asyncio
async def test_textract_sync_analysis_for_images(ocr_settings):
    client = FakeTextractClient()
    engine = TextractEngine(ocr_settings, client=client)

    result = await engine.process_document(b"png-bytes", "image/png", OcrOptions(enable_forms=False))

    assert result.engine == OcrEngine.AWS_TEXTRACT
    assert "Hemoglobin 14.2" in result.raw_text
    assert client.analyze_calls[0]["FeatureTypes"] == ["TABLES"]
    assert client.analyze_calls[0]["Document"] == {"Bytes": b"png-bytes"}


@pytest.mark.asyncio
async def test_textract_queries_feature(ocr_settings):
    client = FakeTextractClient()
    engine = TextractEngine(ocr_settings, client=client)

    await engine.process_document(b"img", "image/jpeg", OcrOptions(queries=("What is the patient name?",)))

    call = client.analyze_calls[0]
    assert call["FeatureTypes"] == ["TABLES", "FORMS", "QUERIES"]
    assert call["QueriesConfig"] == {"Queries": [{"Text": "What is the patient name?"}]}


@pytest.mark.asyncio
async def test_textract_async_analysis_paginates_and_cleans_up(ocr_settings):
    """PDFs go through S3 staging, polling and NextToken pagination"""
    ocr_settings.TEXTRACT_POLL_INTERVAL_SECONDS = 0.01
    client = FakeTextractClient(statuses=("IN_PROGRESS", "SUCCEEDED"))
    staging = FakeStaging()
    engine = TextractEngine(ocr_settings, staging=staging, client=client)

    result = await engine.process_document(b"%PDF", "application/pdf")

    assert result.raw_text == "Patient: John Doe\nHemoglobin 14.2"
    assert len(result.tables) == 1
    assert client.start_calls[0]["DocumentLocation"]["S3Object"]["Bucket"] == "bucket"
    assert client.get_calls[-1] == {"JobId": "job-1", "NextToken": "page-2"}
    assert staging.deleted == staging.staged


@pytest.mark.asyncio
async def test_textract_failed_job_still_deletes_staged_object(ocr_settings):
    client = FakeTextractClient(statuses=("FAILED",))
    staging = FakeStaging()
    engine = TextractEngine(ocr_settings, staging=staging, client=client)

    with pytest.raises(OcrJobFailedError):
        await engine.process_document(b"%PDF", "application/pdf")

    assert staging.deleted == staging.staged


@pytest.mark.asyncio
async def test_textract_poll_timeout(ocr_settings):
    ocr_settings.TEXTRACT_POLL_INTERVAL_SECONDS = 0.001
    ocr_settings.TEXTRACT_MAX_POLL_ATTEMPTS = 3
    client = FakeTextractClient(statuses=())
    staging = FakeStaging()
    engine = TextractEngine(ocr_settings, staging=staging, client=client)

    with pytest.raises(OcrTimeoutError):
        await engine.process_document(b"%PDF", "application/pdf")

    assert len(client.get_calls) == 3
    assert staging.deleted == staging.staged


@pytest.mark.asyncio
async def test_textract_unavailable_without_credentials(ocr_settings):
    engine = TextractEngine(ocr_settings)

    assert engine.is_available() is False
    with pytest.raises(OcrEngineUnavailableError):
        await engine.process_document(b"img", "image/png")


# ============================================================================
# Mistral OCR
# ============================================================================

def test_parse_mistral_response_pages():
    response = {
        "pages": [
            {
                "markdown": "# Lab Report\n\n| Test | Result |\n|---|---|\n| WBC | 7.2 |\n",
                "dimensions": {"width": 1700, "height": 2200},
            },
            {"markdown": "Page two text"},
        ]
    }

    parsed = parse_mistral_response(response, confidence=0.75)

    assert len(parsed["pages"]) == 2
    assert parsed["pages"][0].width == 1700
    assert parsed["pages"][1].width == 1
    assert parsed["overall_confidence"] == 0.75
    assert len(parsed["tables"]) == 1
    assert parsed["tables"][0].id == "mistral-table-1-0"
    assert parsed["key_value_pairs"] == ()
    assert parsed["raw_text"].startswith("# Lab Report")
    assert parsed["raw_text"].endswith("Page two text")
    assert parsed["word_count"] == len(parsed["raw_text"].split())

    lines = parsed["pages"][0].blocks
    assert all(b.type == OcrBlockType.LINE for b in lines)
    assert lines[0].text == "# Lab Report"


def test_parse_mistral_response_top_level_text():
    parsed = parse_mistral_response({"text": "Single page body"}, confidence=0.6)

    assert len(parsed["pages"]) == 1
    assert parsed["raw_text"] == "Single page body"
    assert parsed["pages"][0].blocks[0].confidence == 0.6


def test_parse_mistral_response_empty():
    parsed = parse_mistral_response({}, confidence=0.75)

    assert parsed["raw_text"] == ""
    assert parsed["pages"] == ()
    assert parsed["word_count"] == 0


@pytest.mark.asyncio
async def test_mistral_engine_builds_payload(ocr_settings):
    """Images are sent as image_url data URLs, PDFs as document_url"""
    ocr_settings.MISTRAL_API_KEY = "test-key"
    engine = MistralOcrEngine(ocr_settings)
    payloads = []

    async def fake_call_api(payload):
        payloads.append(payload)
        return {"pages": [{"markdown": "Hello world"}]}

    engine._call_api = fake_call_api

    image_result = await engine.process_document(b"\x89PNG", "image/png")
    await engine.process_document(b"%PDF", "application/pdf")

    assert image_result.engine == OcrEngine.MISTRAL_OCR
    assert image_result.engine_version == ocr_settings.MISTRAL_OCR_MODEL
    assert image_result.raw_text == "Hello world"
    assert payloads[0]["document"]["type"] == "image_url"
    assert payloads[0]["document"]["image_url"].startswith("data:image/png;base64,")
    assert payloads[1]["document"]["type"] == "document_url"
    assert payloads[0]["model"] == ocr_settings.MISTRAL_OCR_MODEL


@pytest.mark.asyncio
async def test_mistral_engine_unavailable_without_key(ocr_settings):
    engine = MistralOcrEngine(ocr_settings)

    assert engine.is_available() is False
    with pytest.raises(OcrEngineUnavailableError):
        await engine.process_document(b"img", "image/png")
