# ============================================================================
# FILE: tests/conftest.py
# ============================================================================
"""
Pytest configuration and shared fixtures for testing.

Fakes stand in for the network-facing collaborators (OCR engines, LLM
client, storage); everything else is the real implementation.
"""

import asyncio
import io
import json
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest
from arq.connections import ArqRedis
from fakeredis import FakeServer
from fakeredis.aioredis import FakeConnection
from PIL import Image
from redis.asyncio import ConnectionPool

from medical_docintel.config import (
    ExtractionSettings,
    LLMSettings,
    LoggingSettings,
    OcrSettings,
    WorkerSettings,
)
from medical_docintel.core.config import PipelineConfig
from medical_docintel.core.enums import DocumentType, OcrBlockType, OcrEngine
from medical_docintel.llm.base import BaseLLMClient
from medical_docintel.ocr.base import BaseOcrEngine
from medical_docintel.ocr.types import OcrBlock, OcrOptions, OcrPage, OcrResult
from medical_docintel.persistence.base import DocumentRecord
from medical_docintel.persistence.sqlite_store import SQLiteDocumentRepository
from medical_docintel.pipeline.factory import Pipeline, build_pipeline
from medical_docintel.storage.base import BaseStorage
from medical_docintel.utils.exceptions import StorageObjectNotFoundError


# ============================================================================
# Fakes
# ============================================================================

class FakeOcrEngine(BaseOcrEngine):
    """OCR engine returning canned text, or raising a configured error."""

    def __init__(
        self,
        engine: OcrEngine,
        text: str = "",
        available: bool = True,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        super().__init__()
        self._engine = engine
        self.text = text
        self.available = available
        self.error = error
        self.delay = delay
        self.calls = 0

    @property
    def engine(self) -> OcrEngine:
        return self._engine

    def is_available(self) -> bool:
        return self.available

    async def process_document(
        self,
        content: bytes,
        mime_type: str,
        options: Optional[OcrOptions] = None,
    ) -> OcrResult:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return make_ocr_result(self.text, self._engine)


class FakeLLMClient(BaseLLMClient):
    """
    Chat client replaying scripted replies.

    Each reply is a string (returned as the message text), a dict (dumped to
    JSON) or an exception (raised). The last reply repeats once the script
    runs out.
    """

    def __init__(self, replies: Sequence[Union[str, Dict[str, Any], Exception]] = (), available: bool = True):
        super().__init__(model="fake-model", timeout=5.0)
        self.replies = list(replies)
        self.available = available
        self.calls: List[Dict[str, Any]] = []

    def is_available(self) -> bool:
        return self.available

    async def _create_completion(self, messages, model, temperature, max_tokens, json_mode) -> str:
        self.calls.append({
            "messages": messages,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "json_mode": json_mode,
        })
        index = min(len(self.calls) - 1, len(self.replies) - 1)
        reply = self.replies[index] if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply


class InMemoryStorage(BaseStorage):
    def __init__(self):
        super().__init__()
        self.objects: Dict[str, bytes] = {}

    @property
    def backend_name(self) -> str:
        return "memory"

    async def upload(self, content: bytes, key: str, content_type: str = "application/octet-stream") -> str:
        self.objects[key] = content
        return key

    async def download(self, key: str) -> bytes:
        if key not in self.objects:
            raise StorageObjectNotFoundError(key)
        return self.objects[key]

    async def delete(self, key: str) -> None:
        self.objects.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self.objects


def make_ocr_result(text: str, engine: OcrEngine = OcrEngine.MISTRAL_OCR, confidence: float = 0.9) -> OcrResult:
    lines = [line for line in text.splitlines() if line.strip()]
    blocks = tuple(
        OcrBlock(id=f"line-{i}", type=OcrBlockType.LINE, text=line.strip(), confidence=confidence)
        for i, line in enumerate(lines)
    )
    return OcrResult(
        engine=engine,
        raw_text=text,
        pages=(OcrPage(page_number=1, width=1, height=1, text=text, blocks=blocks),),
        overall_confidence=confidence,
        word_count=len(text.split()),
        processing_time_ms=5,
    )


# ============================================================================
# Sample documents
# ============================================================================

SAMPLE_LAB_TEXT = """
Quest Diagnostics Laboratory Report

Patient: JOHN DOE
DOB: 01/15/1980
Collection Date: 03/05/2024
Specimen: Whole blood

COMPLETE BLOOD COUNT (CBC)

Test                Result      Reference Range    Flag
WBC                 7.2         4.5-11.0 K/uL
RBC                 4.8         4.5-5.5 M/uL
Hemoglobin          14.2        13.5-17.5 g/dL
Hematocrit          42.1        38.8-50.0 %
Platelets           245         150-400 K/uL
"""

SAMPLE_RADIOLOGY_TEXT = """
RADIOLOGY REPORT

Examination: Chest X-Ray PA and Lateral
CLINICAL INDICATION: Cough
COMPARISON: None available

FINDINGS:
The lungs are clear without focal consolidation, effusion, or pneumothorax.

IMPRESSION:
No acute cardiopulmonary process.
"""

LAB_EXTRACTION_REPLY = {
    "extracted_data": {
        "documentType": "LAB_RESULT",
        "patient": {"name": "JOHN DOE", "dateOfBirth": "01/15/1980", "gender": "m"},
        "collectionDate": "3/5/2024",
        "specimenType": "Whole blood",
        "testResults": [
            {"testName": "WBC", "value": 7.2, "unit": "K/uL", "flag": "n"},
            {"testName": "Hemoglobin", "value": 14.2, "unit": "g/dL", "flag": "N", "confidence": 0.97},
        ],
    },
    "field_confidences": {
        "patient.name": 0.95,
        "patient.dateOfBirth": 0.9,
        "testResults": 0.92,
    },
}


@pytest.fixture
def sample_lab_text():
    """Sample lab report text for testing"""
    return SAMPLE_LAB_TEXT


@pytest.fixture
def sample_radiology_text():
    """Sample radiology report text"""
    return SAMPLE_RADIOLOGY_TEXT


@pytest.fixture
def lab_extraction_reply():
    return json.loads(json.dumps(LAB_EXTRACTION_REPLY))


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture
def ocr_settings():
    """OCR settings with no credentials, independent of the environment."""
    return OcrSettings(
        AWS_ACCESS_KEY_ID=None,
        AWS_SECRET_ACCESS_KEY=None,
        MISTRAL_API_KEY=None,
        ENABLE_ENSEMBLE_MODE=False,
        OCR_PROCESSING_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def extraction_settings():
    return ExtractionSettings(
        EXTRACTION_RETRY_BASE_DELAY_SECONDS=0.0,
        LLM_FALLBACK_ENABLED=True,
    )


@pytest.fixture
def worker_settings(tmp_path):
    return WorkerSettings(
        WORKER_CONCURRENCY=2,
        RATE_LIMIT_MAX_JOBS=100,
        RATE_LIMIT_PERIOD_SECONDS=1.0,
        JOB_MAX_ATTEMPTS=3,
        JOB_BACKOFF_SECONDS=0.0,
        JOB_TIMEOUT_SECONDS=10.0,
        SHUTDOWN_GRACE_SECONDS=5.0,
        QUEUE_NAME="test:queue",
        QUEUE_POLL_DELAY_SECONDS=0.01,
        DATABASE_PATH=tmp_path / "documents.db",
        STORAGE_BACKEND="local",
        LOCAL_STORAGE_ROOT=tmp_path / "uploads",
    )


@pytest.fixture
def pipeline_config(ocr_settings, extraction_settings, worker_settings):
    return PipelineConfig(
        ocr=ocr_settings,
        llm=LLMSettings(LLM_PROVIDER="mistral", MISTRAL_API_KEY=None),
        extraction=extraction_settings,
        worker=worker_settings,
        logging=LoggingSettings(),
    )


# ============================================================================
# Collaborators
# ============================================================================

@pytest.fixture
def repository(tmp_path):
    return SQLiteDocumentRepository(tmp_path / "documents.db")


@pytest.fixture
def storage():
    return InMemoryStorage()


def fake_arq_redis(server: FakeServer) -> ArqRedis:
    """arq connection to an in-memory Redis; connections to one server share data."""
    pool = ConnectionPool(connection_class=FakeConnection, server=server)
    return ArqRedis(connection_pool=pool, default_queue_name="test:queue")


@pytest.fixture
def redis_server(monkeypatch):
    async def _no_info(redis, log_func):
        log_func("redis_version=fake")

    # arq logs INFO sections at worker start
    monkeypatch.setattr("arq.worker.log_redis_info", _no_info)
    return FakeServer()


# ============================================================================
# Pipeline
# ============================================================================

def png_bytes(size=(120, 80)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, "white").save(buffer, format="PNG")
    return buffer.getvalue()


async def register_document(
    pipeline: Pipeline,
    document_id: str = "doc-1",
    content: Optional[bytes] = None,
    mime_type: str = "image/png",
    hint: Optional[DocumentType] = None,
) -> DocumentRecord:
    """Upload bytes and create the PENDING record, as the upload endpoint does."""
    content = content if content is not None else png_bytes()
    key = f"documents/{document_id}.png"
    await pipeline.storage.upload(content, key, mime_type)
    return pipeline.repository.create_document(DocumentRecord(
        document_id=document_id,
        file_name=f"{document_id}.png",
        mime_type=mime_type,
        storage_key=key,
        file_size=len(content),
        document_type_hint=hint,
    ))


@pytest.fixture
def pipeline_factory(pipeline_config, repository, storage, redis_server):
    """
    Build a pipeline around fakes.

    Defaults: Mistral OCR returns the sample lab report, Textract is
    unavailable, and the LLM answers every call with the lab extraction.
    Every pipeline built by one factory shares the same in-memory Redis, so
    a second build behaves like a restarted process.
    """
    def _build(
        ocr_text: str = SAMPLE_LAB_TEXT,
        llm_replies: Sequence[Union[str, Dict[str, Any], Exception]] = (LAB_EXTRACTION_REPLY,),
        mistral: Optional[FakeOcrEngine] = None,
        textract: Optional[FakeOcrEngine] = None,
        llm: Optional[FakeLLMClient] = None,
    ) -> Pipeline:
        mistral = mistral or FakeOcrEngine(OcrEngine.MISTRAL_OCR, text=ocr_text)
        textract = textract or FakeOcrEngine(OcrEngine.AWS_TEXTRACT, available=False)
        llm = llm or FakeLLMClient(list(llm_replies))
        return build_pipeline(
            pipeline_config,
            repository=repository,
            storage=storage,
            ocr_engines=[textract, mistral],
            llm_client=llm,
            redis=fake_arq_redis(redis_server),
        )

    return _build
