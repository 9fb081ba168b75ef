# ============================================================================
# src/medical_docintel/api/app.py
# ============================================================================
"""
FastAPI application for the document pipeline.

Uploads are written to storage, registered in the repository and queued.
Status and results are read back from the repository; the arq worker for the
Redis queue is started and drained by the app lifespan.

Endpoints:
    GET  /api/health
    POST /api/documents                  upload + register + enqueue
    POST /api/documents/{id}/process     (re-)enqueue an existing document
    GET  /api/documents/{id}/status
    GET  /api/documents/{id}/result
    GET  /api/jobs
    GET  /api/metrics
"""

import logging
import mimetypes
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from redis.exceptions import RedisError

from ..core.enums import DocumentType, ProcessingStatus
from ..persistence.base import DocumentRecord
from ..pipeline.factory import Pipeline
from ..pipeline.jobs import JobState
from ..pipeline.preprocessing import SUPPORTED_MIME_TYPES
from ..utils.exceptions import QueueClosedError

logger = logging.getLogger(__name__)

DOCUMENT_KEY_PREFIX = "documents"


def _resolve_mime_type(upload: UploadFile) -> str:
    content_type = (upload.content_type or "").lower()
    if content_type in SUPPORTED_MIME_TYPES:
        return content_type
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return (guessed or content_type or "application/octet-stream").lower()


def _parse_hint(value: Optional[str]) -> Optional[DocumentType]:
    if not value:
        return None
    try:
        return DocumentType(value.strip().upper())
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown document type: {value}")


def create_app(pipeline: Pipeline, recover_on_startup: bool = True) -> FastAPI:
    """
    Build the app around an assembled pipeline.

    Args:
        pipeline: Output of build_pipeline()
        recover_on_startup: Re-enqueue unfinished documents when the app starts
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await pipeline.queue.start()
        if recover_on_startup:
            await pipeline.queue.recover()
        yield
        logger.info("Shutting down job queue")
        await pipeline.aclose()

    app = FastAPI(
        title="Medical Document Intelligence API",
        description="OCR, classification and structured extraction for medical documents",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.pipeline = pipeline

    def _get_record(document_id: str) -> DocumentRecord:
        record = pipeline.repository.get_document(document_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Document not found")
        return record

    async def _enqueue(record: DocumentRecord) -> str:
        try:
            return await pipeline.queue.enqueue(record.document_id, record.storage_key)
        except QueueClosedError:
            raise HTTPException(status_code=503, detail="Queue is shutting down")
        except RedisError as e:
            logger.error(f"Could not enqueue {record.document_id}: {e}")
            raise HTTPException(status_code=503, detail="Queue unavailable")

    # ------------------------------------------------------------------
    # Health / metrics
    # ------------------------------------------------------------------

    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        """Health check for monitoring."""
        engines = pipeline.ocr_orchestrator.get_available_engines()
        return {
            "status": "healthy" if engines else "degraded",
            "ocr_engines": [e.value for e in engines],
            "llm_available": pipeline.extraction_orchestrator.is_available(),
            "storage_backend": pipeline.storage.backend_name,
            "queue": {"closed": pipeline.queue.closed, "jobs": await pipeline.queue.counts()},
        }

    @app.get("/api/metrics")
    async def metrics() -> Dict[str, Any]:
        data = pipeline.metrics.get_all_metrics()
        data["jobs"] = await pipeline.queue.counts()
        return data

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    @app.post("/api/documents", status_code=202)
    async def upload_document(
        file: UploadFile = File(...),
        document_type: Optional[str] = Form(None),
    ) -> Dict[str, Any]:
        """
        Upload a document and queue it for processing.

        document_type is an optional hint (e.g. LAB_RESULT) used for OCR
        engine selection and as the classifier's user hint.
        """
        mime_type = _resolve_mime_type(file)
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise HTTPException(status_code=415, detail=f"Unsupported file type: {mime_type}")
        hint = _parse_hint(document_type)

        content = await file.read()
        if not content:
            raise HTTPException(status_code=400, detail="Empty file")

        document_id = str(uuid.uuid4())
        suffix = Path(file.filename or "").suffix.lower() or (mimetypes.guess_extension(mime_type) or "")
        storage_key = f"{DOCUMENT_KEY_PREFIX}/{document_id}{suffix}"

        await pipeline.storage.upload(content, storage_key, content_type=mime_type)
        record = pipeline.repository.create_document(DocumentRecord(
            document_id=document_id,
            file_name=file.filename or f"{document_id}{suffix}",
            mime_type=mime_type,
            storage_key=storage_key,
            file_size=len(content),
            document_type_hint=hint,
        ))
        job_id = await _enqueue(record)

        logger.info(f"Uploaded {record.file_name} as {document_id} ({len(content)} bytes, {mime_type})")
        return {
            "document_id": document_id,
            "job_id": job_id,
            "file_name": record.file_name,
            "status": record.status.value,
        }

    @app.post("/api/documents/{document_id}/process", status_code=202)
    async def process_document(document_id: str, reset: bool = False) -> Dict[str, Any]:
        """
        Queue an existing document.

        Idempotent while its job is pending. A finished document is
        re-queued; reset=true discards stored OCR/classification/extraction
        results so every stage runs again.
        """
        record = _get_record(document_id)
        job = await pipeline.queue.get_job(document_id)

        if job is None or not job.state.is_pending:
            if reset:
                pipeline.repository.clear_stage_results(document_id)
            if record.status.is_terminal:
                pipeline.repository.update_status(document_id, ProcessingStatus.PENDING, progress=0)

        job_id = await _enqueue(record)
        job = await pipeline.queue.get_job(job_id)
        return {"document_id": document_id, "job_id": job_id, "state": job.state.value}

    @app.get("/api/documents/{document_id}/status")
    async def document_status(document_id: str) -> Dict[str, Any]:
        record = _get_record(document_id)
        job = await pipeline.queue.get_job(document_id)
        data = record.to_dict()
        data["job"] = job.to_dict() if job else None
        return data

    @app.get("/api/documents/{document_id}/result")
    async def document_result(document_id: str) -> Dict[str, Any]:
        """Classification and extraction for a processed document."""
        record = _get_record(document_id)
        extraction = pipeline.repository.get_extraction(document_id)
        if extraction is None:
            raise HTTPException(
                status_code=409,
                detail=f"Result not available (status={record.status.value})",
            )

        classification = pipeline.repository.get_classification(document_id)
        ocr_results = pipeline.repository.get_ocr_results(document_id)
        return {
            "document_id": document_id,
            "status": record.status.value,
            "classification": classification.to_dict() if classification else None,
            "ocr": [
                {
                    "engine": r.engine.value,
                    "overall_confidence": r.overall_confidence,
                    "word_count": r.word_count,
                    "page_count": len(r.pages),
                    "table_count": len(r.tables),
                }
                for r in ocr_results
            ],
            "extraction": extraction.to_dict(),
        }

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    @app.get("/api/jobs")
    async def list_jobs(state: Optional[str] = None) -> Dict[str, Any]:
        job_state = None
        if state:
            try:
                job_state = JobState(state.lower())
            except ValueError:
                raise HTTPException(status_code=422, detail=f"Unknown job state: {state}")
        jobs = await pipeline.queue.list_jobs(job_state)
        return {"jobs": [j.to_dict() for j in jobs], "total": len(jobs)}

    return app
