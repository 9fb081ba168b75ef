# ============================================================================
# src/medical_docintel/pipeline/factory.py
# ============================================================================
"""
Pipeline assembly.

build_pipeline(config) is the single place where clients are constructed:
storage, repository, OCR engines, the shared LLM client, classifier,
extraction orchestrator, worker and queue. Nothing else reads settings to
create a client.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from arq.connections import ArqRedis

from ..classifiers.document_classifier import DocumentClassifier
from ..config import OcrSettings, WorkerSettings
from ..core.config import PipelineConfig
from ..extraction.orchestrator import ExtractionOrchestrator
from ..llm.base import BaseLLMClient
from ..llm.client import create_llm_client
from ..ocr.base import BaseOcrEngine
from ..ocr.mistral_engine import MistralOcrEngine
from ..ocr.orchestrator import OcrOrchestrator
from ..ocr.textract_engine import TextractEngine
from ..persistence.base import DocumentRepository
from ..persistence.sqlite_store import SQLiteDocumentRepository
from ..storage.base import BaseStorage
from ..storage.local_storage import LocalFileStorage
from ..storage.s3_storage import S3Storage
from ..utils.exceptions import ConfigurationError
from ..utils.metrics import MetricsCollector
from .preprocessing import DocumentPreprocessor
from .queue import JobQueue
from .worker import DocumentWorker

logger = logging.getLogger(__name__)


@dataclass
class Pipeline:
    """Every long-lived component, wired together."""
    config: PipelineConfig
    metrics: MetricsCollector
    repository: DocumentRepository
    storage: BaseStorage
    ocr_engines: List[BaseOcrEngine]
    ocr_orchestrator: OcrOrchestrator
    llm_client: Optional[BaseLLMClient]
    classifier: DocumentClassifier
    extraction_orchestrator: ExtractionOrchestrator
    preprocessor: DocumentPreprocessor
    worker: DocumentWorker
    queue: JobQueue

    async def aclose(self) -> None:
        """Drain the queue and release HTTP sessions."""
        await self.queue.close()
        await self.close_clients()

    async def close_clients(self) -> None:
        for engine in self.ocr_engines:
            close = getattr(engine, "close", None)
            if close is not None:
                await close()
        if self.llm_client is not None:
            await self.llm_client.close()


def build_storage(ocr_settings: OcrSettings, worker_settings: WorkerSettings) -> BaseStorage:
    backend = worker_settings.STORAGE_BACKEND
    if backend == "local":
        return LocalFileStorage(worker_settings.LOCAL_STORAGE_ROOT)
    if backend == "s3":
        return S3Storage(ocr_settings)
    raise ConfigurationError(f"Unknown storage backend: {backend}")


def build_ocr_engines(settings: OcrSettings, storage: BaseStorage) -> List[BaseOcrEngine]:
    """Engines in registry order: Textract, then Mistral OCR."""
    staging = storage if isinstance(storage, S3Storage) else S3Storage(settings)
    return [
        TextractEngine(settings, staging=staging),
        MistralOcrEngine(settings),
    ]


def build_pipeline(
    config: PipelineConfig,
    repository: Optional[DocumentRepository] = None,
    storage: Optional[BaseStorage] = None,
    ocr_engines: Optional[List[BaseOcrEngine]] = None,
    llm_client: Optional[BaseLLMClient] = None,
    redis: Optional[ArqRedis] = None,
) -> Pipeline:
    """
    Construct the pipeline from config.

    Components passed explicitly replace the ones built from config, which
    is how tests inject fakes.
    """
    metrics = MetricsCollector()

    if repository is None:
        config.worker.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
        repository = SQLiteDocumentRepository(config.worker.DATABASE_PATH)
    if storage is None:
        storage = build_storage(config.ocr, config.worker)
    if ocr_engines is None:
        ocr_engines = build_ocr_engines(config.ocr, storage)
    if llm_client is None:
        llm_client = create_llm_client(config.llm)

    ocr_orchestrator = OcrOrchestrator(ocr_engines, config.ocr, metrics)
    classifier = DocumentClassifier(
        config.extraction,
        llm_client=llm_client,
        model=config.llm.CLASSIFICATION_MODEL,
    )
    extraction_orchestrator = ExtractionOrchestrator(
        config.extraction,
        llm_client,
        model=config.llm.EXTRACTION_MODEL,
    )
    preprocessor = DocumentPreprocessor(config.extraction)

    worker = DocumentWorker(
        repository=repository,
        storage=storage,
        preprocessor=preprocessor,
        ocr_orchestrator=ocr_orchestrator,
        classifier=classifier,
        extraction_orchestrator=extraction_orchestrator,
        ocr_settings=config.ocr,
        worker_settings=config.worker,
        metrics=metrics,
    )
    queue = JobQueue(worker, repository, config.worker, redis=redis, metrics=metrics)

    available = ocr_orchestrator.get_available_engines()
    logger.info(
        f"Pipeline built: storage={storage.backend_name}, "
        f"ocr_engines={[e.value for e in available] or 'none'}, "
        f"llm_available={llm_client.is_available()}"
    )
    if not available:
        logger.warning("No OCR engine is configured; every job will fail at the OCR stage")

    return Pipeline(
        config=config,
        metrics=metrics,
        repository=repository,
        storage=storage,
        ocr_engines=ocr_engines,
        ocr_orchestrator=ocr_orchestrator,
        llm_client=llm_client,
        classifier=classifier,
        extraction_orchestrator=extraction_orchestrator,
        preprocessor=preprocessor,
        worker=worker,
        queue=queue,
    )
