# ============================================================================
# src/medical_docintel/pipeline/worker.py
# ============================================================================
"""
Document Worker

Drives one document through the pipeline:

    PENDING -> PREPROCESSING -> OCR_IN_PROGRESS -> EXTRACTION_IN_PROGRESS
            -> COMPLETED | FAILED

Progress checkpoints (persisted before the next stage starts):
    10  download started          PREPROCESSING
    20  document preprocessed     PREPROCESSING
    30  OCR started               OCR_IN_PROGRESS
    70  OCR result saved          OCR_IN_PROGRESS
    75  classification saved      OCR_IN_PROGRESS
    80  extraction started        EXTRACTION_IN_PROGRESS
    90  extraction saved          EXTRACTION_IN_PROGRESS
    100 completed                 COMPLETED

Stored OCR and classification results are reused when a document is
processed again (retry or crash recovery), so expensive calls are not
repeated.

Retrying is the queue's job. On a failed attempt the worker persists
FAILED, the error message and the incremented retry count, then re-raises.
Shutdown is honoured at stage boundaries by raising JobInterruptedError,
which leaves the document in its last non-terminal status.
"""

import asyncio
import logging
from typing import Callable, List, Optional, Tuple

from ..classifiers.document_classifier import ClassificationResult, DocumentClassifier
from ..config import OcrSettings, WorkerSettings
from ..core.enums import OcrEngine, ProcessingStatus
from ..extraction.models import ExtractionResult
from ..extraction.orchestrator import ExtractionOrchestrator
from ..ocr.orchestrator import OcrOrchestrator
from ..ocr.types import OcrResult
from ..persistence.base import DocumentRecord, DocumentRepository
from ..storage.base import BaseStorage
from ..utils.exceptions import (
    DocumentNotFoundError,
    JobInterruptedError,
    JobTimeoutError,
    OcrTimeoutError,
)
from ..utils.logging import LogAdapter, job_logger
from ..utils.metrics import MetricsCollector, Timer
from .jobs import Job
from .preprocessing import DocumentPreprocessor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]


class DocumentWorker:
    """
    Runs the pipeline stages for a single job.

    Args:
        repository: Document records and stage results
        storage: Source document bytes
        preprocessor: Image/PDF preparation
        ocr_orchestrator: Engine selection, fallback and ensemble
        classifier: Document type classification
        extraction_orchestrator: Structured extraction
        ocr_settings: Ensemble switch and OCR stage timeout
        worker_settings: Job timeout
        metrics: Stage timers and job counters
    """

    def __init__(
        self,
        repository: DocumentRepository,
        storage: BaseStorage,
        preprocessor: DocumentPreprocessor,
        ocr_orchestrator: OcrOrchestrator,
        classifier: DocumentClassifier,
        extraction_orchestrator: ExtractionOrchestrator,
        ocr_settings: OcrSettings,
        worker_settings: WorkerSettings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.repository = repository
        self.storage = storage
        self.preprocessor = preprocessor
        self.ocr_orchestrator = ocr_orchestrator
        self.classifier = classifier
        self.extraction_orchestrator = extraction_orchestrator
        self.ocr_settings = ocr_settings
        self.worker_settings = worker_settings
        self.metrics = metrics or MetricsCollector()
        self._shutdown = asyncio.Event()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def request_shutdown(self) -> None:
        """In-flight jobs stop at their next stage boundary."""
        self._shutdown.set()

    @property
    def shutting_down(self) -> bool:
        return self._shutdown.is_set()

    def _check_shutdown(self, document_id: str, stage: str) -> None:
        if self._shutdown.is_set():
            raise JobInterruptedError(document_id, stage)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def process(self, job: Job, on_progress: Optional[ProgressCallback] = None) -> ExtractionResult:
        """
        Run all stages for job.

        Raises:
            DocumentNotFoundError: no record for job.document_id (not retried)
            JobInterruptedError: shutdown requested (not retried)
            JobTimeoutError: JOB_TIMEOUT_SECONDS exceeded
            Exception: any stage failure, after FAILED has been persisted
        """
        log = job_logger(logger, job.document_id, attempt=job.attempts_made + 1)
        log.info("Starting document processing")

        try:
            with Timer(self.metrics, "job.total"):
                result = await asyncio.wait_for(
                    self._run_stages(job, log, on_progress),
                    timeout=self.worker_settings.JOB_TIMEOUT_SECONDS,
                )
        except JobInterruptedError as e:
            self.metrics.increment("jobs.interrupted")
            log.warning(str(e))
            raise
        except DocumentNotFoundError:
            self.metrics.increment("jobs.failed")
            log.error("Document record not found")
            raise
        except asyncio.TimeoutError as e:
            error = JobTimeoutError(
                f"Job exceeded {self.worker_settings.JOB_TIMEOUT_SECONDS}s timeout",
                document_id=job.document_id,
            )
            self._record_failure(job, error, log)
            raise error from e
        except Exception as e:
            self._record_failure(job, e, log)
            raise

        self.metrics.increment("jobs.completed")
        log.info(
            f"Document processing completed: type={result.document_type.value}, "
            f"confidence={result.overall_confidence:.2f}, review={result.requires_review}"
        )
        return result

    def _record_failure(self, job: Job, error: Exception, log: LogAdapter) -> None:
        self.metrics.increment("jobs.failed")
        log.error(f"Document processing failed: {type(error).__name__}: {error}")

        record = self.repository.get_document(job.document_id)
        retry_count = (record.retry_count if record else job.attempts_made) + 1
        self.repository.update_status(
            job.document_id,
            ProcessingStatus.FAILED,
            error_message=str(error) or type(error).__name__,
            retry_count=retry_count,
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _advance(
        self,
        job: Job,
        status: ProcessingStatus,
        progress: int,
        on_progress: Optional[ProgressCallback],
    ) -> None:
        self.repository.update_status(job.document_id, status, progress=progress)
        job.progress = progress
        if on_progress:
            on_progress(progress)

    async def _run_stages(
        self,
        job: Job,
        log: LogAdapter,
        on_progress: Optional[ProgressCallback],
    ) -> ExtractionResult:
        record = self.repository.get_document(job.document_id)
        if record is None:
            raise DocumentNotFoundError(job.document_id)

        stored_ocr = self.repository.get_ocr_results(job.document_id)
        if stored_ocr:
            log.info(f"Reusing stored OCR result from {stored_ocr[0].engine.value}")
            primary = stored_ocr[0]
            engines = [r.engine for r in stored_ocr]
        else:
            primary, engines = await self._ocr_stage(job, record, log, on_progress)
            self._check_shutdown(job.document_id, "ocr")

        classification = self.repository.get_classification(job.document_id)
        if classification is None:
            classification = await self._classification_stage(job, record, primary, log, on_progress)
        else:
            log.info(f"Reusing stored classification {classification.document_type.value}")
        self._check_shutdown(job.document_id, "classification")

        extraction = await self._extraction_stage(job, primary, classification, engines, log, on_progress)

        self._advance(job, ProcessingStatus.COMPLETED, 100, on_progress)
        return extraction

    async def _ocr_stage(
        self,
        job: Job,
        record: DocumentRecord,
        log: LogAdapter,
        on_progress: Optional[ProgressCallback],
    ) -> Tuple[OcrResult, List[OcrEngine]]:
        self._advance(job, ProcessingStatus.PREPROCESSING, 10, on_progress)

        with Timer(self.metrics, "stage.download"):
            log.info(f"Downloading {job.storage_key}")
            content = await self.storage.download(job.storage_key)

        with Timer(self.metrics, "stage.preprocessing"):
            document = await self.preprocessor.preprocess(content, record.mime_type)
        log.info(
            f"Preprocessed: mime={document.mime_type}, pages={document.page_count}, "
            f"quality={document.quality_score:.2f}"
        )
        self._advance(job, ProcessingStatus.PREPROCESSING, 20, on_progress)
        self._check_shutdown(job.document_id, "preprocessing")

        self._advance(job, ProcessingStatus.OCR_IN_PROGRESS, 30, on_progress)
        timeout = self.ocr_settings.OCR_PROCESSING_TIMEOUT_SECONDS

        with Timer(self.metrics, "stage.ocr"):
            try:
                if self.ocr_settings.ENABLE_ENSEMBLE_MODE:
                    ensemble = await asyncio.wait_for(
                        self.ocr_orchestrator.process_with_ensemble(document.content, document.mime_type),
                        timeout=timeout,
                    )
                    results = ensemble.results
                else:
                    result = await asyncio.wait_for(
                        self.ocr_orchestrator.process_document(
                            document.content,
                            document.mime_type,
                            document_type_hint=record.document_type_hint,
                        ),
                        timeout=timeout,
                    )
                    results = [result]
            except asyncio.TimeoutError as e:
                raise OcrTimeoutError(f"OCR exceeded {timeout}s") from e

        for index, result in enumerate(results):
            self.repository.save_ocr_result(job.document_id, result, is_primary=(index == 0))

        primary = results[0]
        log.info(
            f"OCR complete: engine={primary.engine.value}, words={primary.word_count}, "
            f"confidence={primary.overall_confidence:.2f}"
        )
        self._advance(job, ProcessingStatus.OCR_IN_PROGRESS, 70, on_progress)
        return primary, [r.engine for r in results]

    async def _classification_stage(
        self,
        job: Job,
        record: DocumentRecord,
        ocr_result: OcrResult,
        log: LogAdapter,
        on_progress: Optional[ProgressCallback],
    ) -> ClassificationResult:
        with Timer(self.metrics, "stage.classification"):
            classification = await self.classifier.classify(
                ocr_result.raw_text, user_hint=record.document_type_hint
            )
        self.repository.save_classification(job.document_id, classification)
        log.info(
            f"Classified as {classification.document_type.value} "
            f"({classification.method.value}, confidence={classification.confidence:.2f})"
        )
        self._advance(job, ProcessingStatus.OCR_IN_PROGRESS, 75, on_progress)
        return classification

    async def _extraction_stage(
        self,
        job: Job,
        ocr_result: OcrResult,
        classification: ClassificationResult,
        engines: List[OcrEngine],
        log: LogAdapter,
        on_progress: Optional[ProgressCallback],
    ) -> ExtractionResult:
        self._advance(job, ProcessingStatus.EXTRACTION_IN_PROGRESS, 80, on_progress)

        with Timer(self.metrics, "stage.extraction"):
            extraction = await self.extraction_orchestrator.extract(
                ocr_result,
                classification.document_type,
                ocr_engines=engines,
            )
        self.repository.save_extraction(job.document_id, extraction)
        if extraction.validation_errors:
            log.warning(
                f"Extraction finished with errors: {[e.field for e in extraction.validation_errors]}"
            )
        self._advance(job, ProcessingStatus.EXTRACTION_IN_PROGRESS, 90, on_progress)
        return extraction
