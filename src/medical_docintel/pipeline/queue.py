# ============================================================================
# src/medical_docintel/pipeline/queue.py
# ============================================================================
"""
Redis-backed job queue (arq).

- Job id == document id; enqueue() is idempotent while the job is pending
  and re-queues a document whose previous job has finished
- An arq worker runs up to WORKER_CONCURRENCY jobs on the current event
  loop; every job start passes the sliding-window rate limiter
- Failed attempts are deferred in Redis with exponential backoff up to
  JOB_MAX_ATTEMPTS (fatal errors and missing OCR engines are never retried)
- close() stops polling, asks the worker to stop at the next stage boundary
  and waits up to SHUTDOWN_GRACE_SECONDS for in-flight jobs; interrupted
  and cancelled jobs stay queued in Redis for the next worker
- recover() re-enqueues documents whose repository status is not terminal

Queued and deferred jobs live in Redis, so a scheduled retry survives a
restart. The worker can also run on its own:

    arq medical_docintel.pipeline.queue.ArqWorkerSettings
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from arq import Retry, Worker
from arq.connections import ArqRedis, RedisSettings, create_pool
from arq.constants import result_key_prefix, retry_key_prefix
from arq.jobs import Job as ArqJob
from arq.jobs import JobStatus

from ..config import WorkerSettings
from ..core.retry import backoff_delay
from ..persistence.base import DocumentRepository
from ..utils.exceptions import (
    FatalJobError,
    JobFailedError,
    JobInterruptedError,
    NoOcrEngineAvailableError,
    OcrEngineUnavailableError,
    QueueClosedError,
)
from ..utils.metrics import MetricsCollector
from .jobs import Job, JobState
from .rate_limiter import SlidingWindowRateLimiter
from .worker import DocumentWorker

logger = logging.getLogger(__name__)

JOB_FUNCTION = "process_document"

# arq's hard limit sits above the worker's own JOB_TIMEOUT_SECONDS so that a
# slow job fails through DocumentWorker (status persisted, retried) first
ARQ_TIMEOUT_MARGIN_SECONDS = 30.0

# Failures that cannot succeed on another attempt
NON_RETRYABLE_ERRORS = (FatalJobError, OcrEngineUnavailableError, NoOcrEngineAvailableError)

_PENDING_STATES = {
    JobStatus.deferred: JobState.DELAYED,
    JobStatus.queued: JobState.WAITING,
    JobStatus.in_progress: JobState.ACTIVE,
}


async def process_document(ctx: Dict[str, Any], document_id: str, storage_key: str) -> Dict[str, Any]:
    """arq job function: one attempt at one document."""
    queue: "JobQueue" = ctx["job_queue"]
    return await queue.run_attempt(document_id, storage_key, ctx["job_try"])


class JobQueue:
    """
    Args:
        worker: Runs one job attempt
        repository: Source of unfinished documents for recover()
        settings: Redis, concurrency, rate limit, retry and shutdown settings
        redis: arq connection (created from REDIS_URL on first use if omitted)
        rate_limiter: Job-start limiter (built from settings if omitted)
        metrics: Shared collector (the worker's if omitted)
    """

    def __init__(
        self,
        worker: DocumentWorker,
        repository: DocumentRepository,
        settings: WorkerSettings,
        redis: Optional[ArqRedis] = None,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.worker = worker
        self.repository = repository
        self.settings = settings
        self.queue_name = settings.QUEUE_NAME
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(
            settings.RATE_LIMIT_MAX_JOBS,
            settings.RATE_LIMIT_PERIOD_SECONDS,
        )
        self.metrics = metrics or worker.metrics
        self.logger = logging.getLogger(self.__class__.__name__)

        self._redis = redis
        self._owns_redis = redis is None
        self._arq_worker: Optional[Worker] = None
        self._runner: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def get_redis(self) -> ArqRedis:
        if self._redis is None:
            self._redis = await create_pool(
                RedisSettings.from_dsn(self.settings.REDIS_URL),
                default_queue_name=self.queue_name,
            )
        return self._redis

    # ------------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------------

    async def enqueue(self, document_id: str, storage_key: str) -> str:
        """
        Queue a document for processing and return the job id.

        A job that is still waiting, active or delayed is left as it is.

        Raises:
            QueueClosedError: close() has been called
        """
        if self._closed:
            raise QueueClosedError("Queue is closed")

        redis = await self.get_redis()
        status = await ArqJob(document_id, redis, _queue_name=self.queue_name).status()
        if status == JobStatus.complete:
            # arq refuses a job id whose result is still stored
            await redis.delete(result_key_prefix + document_id)
        elif status != JobStatus.not_found:
            self.logger.debug(f"Job {document_id} already {status.value}")
            return document_id

        queued = await redis.enqueue_job(
            JOB_FUNCTION,
            document_id,
            storage_key,
            _job_id=document_id,
            _queue_name=self.queue_name,
        )
        if queued is None:
            self.logger.debug(f"Job {document_id} was queued concurrently")
        else:
            self.logger.info(f"Enqueued job {document_id}")
        return document_id

    async def recover(self) -> List[str]:
        """Re-enqueue every document whose status is not terminal."""
        job_ids = []
        for record in self.repository.list_unfinished():
            self.logger.info(
                f"Recovering document {record.document_id} "
                f"(status={record.status.value}, progress={record.progress})"
            )
            job_ids.append(await self.enqueue(record.document_id, record.storage_key))
        if job_ids:
            self.logger.info(f"Recovered {len(job_ids)} unfinished document(s)")
        return job_ids

    # ------------------------------------------------------------------
    # Job views
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> Optional[Job]:
        redis = await self.get_redis()
        arq_job = ArqJob(job_id, redis, _queue_name=self.queue_name)
        status = await arq_job.status()
        record = self.repository.get_document(job_id)
        progress = record.progress if record else 0

        if status == JobStatus.complete:
            result = await arq_job.result_info()
            if result is None or result.function != JOB_FUNCTION:
                return None
            return Job(
                job_id=job_id,
                document_id=result.args[0],
                storage_key=result.args[1],
                state=JobState.COMPLETED if result.success else JobState.FAILED,
                attempts_made=result.job_try,
                progress=progress,
                failed_reason=None if result.success else str(result.result),
                created_at=result.enqueue_time.isoformat(),
                finished_at=result.finish_time.isoformat(),
            )

        if status == JobStatus.not_found:
            return None

        definition = await arq_job.info()
        if definition is None:
            return None
        state = _PENDING_STATES[status]
        tries = int(await redis.get(retry_key_prefix + job_id) or 0)
        return Job(
            job_id=job_id,
            document_id=definition.args[0],
            storage_key=definition.args[1],
            state=state,
            attempts_made=max(tries - 1, 0) if state == JobState.ACTIVE else tries,
            progress=progress,
            failed_reason=record.error_message if record and tries else None,
            created_at=definition.enqueue_time.isoformat(),
        )

    async def list_jobs(self, state: Optional[JobState] = None) -> List[Job]:
        redis = await self.get_redis()
        job_ids = [j.decode() for j in await redis.zrange(self.queue_name, 0, -1)]
        for key in await redis.keys(result_key_prefix + "*"):
            job_id = key.decode()[len(result_key_prefix):]
            if job_id not in job_ids:
                job_ids.append(job_id)

        jobs = [job for job in [await self.get_job(j) for j in job_ids] if job is not None]
        if state is not None:
            jobs = [j for j in jobs if j.state == state]
        return jobs

    async def counts(self) -> Dict[str, int]:
        counts = {state.value: 0 for state in JobState}
        for job in await self.list_jobs():
            counts[job.state.value] += 1
        return counts

    async def wait_for_job(self, job_id: str, timeout: Optional[float] = None) -> Job:
        """
        Wait until the job is COMPLETED or FAILED.

        Returns early with the pending job once the queue is closed.

        Raises:
            KeyError: no such job
        """
        async def _poll() -> Job:
            while True:
                job = await self.get_job(job_id)
                if job is None:
                    raise KeyError(job_id)
                if not job.state.is_pending or self._closed:
                    return job
                await asyncio.sleep(self.settings.QUEUE_POLL_DELAY_SECONDS)

        return await asyncio.wait_for(_poll(), timeout=timeout)

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._arq_worker is not None:
            return
        if self._closed:
            raise QueueClosedError("Queue is closed")

        self._arq_worker = Worker(
            functions=[process_document],
            queue_name=self.queue_name,
            redis_pool=await self.get_redis(),
            ctx={"job_queue": self},
            max_jobs=self.settings.WORKER_CONCURRENCY,
            job_timeout=self.settings.JOB_TIMEOUT_SECONDS + ARQ_TIMEOUT_MARGIN_SECONDS,
            max_tries=self.settings.JOB_MAX_ATTEMPTS,
            keep_result=self.settings.JOB_KEEP_RESULT_SECONDS,
            poll_delay=self.settings.QUEUE_POLL_DELAY_SECONDS,
            handle_signals=False,
        )
        self._runner = asyncio.create_task(self._arq_worker.async_run(), name="docintel-arq-worker")
        self.logger.info(
            f"Job queue started: queue={self.queue_name}, "
            f"concurrency={self.settings.WORKER_CONCURRENCY}, "
            f"rate_limit={self.settings.RATE_LIMIT_MAX_JOBS}/"
            f"{self.settings.RATE_LIMIT_PERIOD_SECONDS}s"
        )

    async def run_attempt(self, document_id: str, storage_key: str, attempt: int) -> Dict[str, Any]:
        """
        Run attempt number `attempt` (1-based) through the document worker.

        Raises:
            Retry: transient failure or shutdown with attempts left
            JobFailedError: the job is finished without success
        """
        await self.rate_limiter.acquire()
        job = Job(
            job_id=document_id,
            document_id=document_id,
            storage_key=storage_key,
            state=JobState.ACTIVE,
            attempts_made=attempt - 1,
        )
        max_attempts = self.settings.JOB_MAX_ATTEMPTS

        try:
            result = await self.worker.process(job)
        except JobInterruptedError as e:
            if attempt < max_attempts:
                raise Retry(defer=0) from e
            raise JobFailedError(str(e)) from e
        except NON_RETRYABLE_ERRORS as e:
            self.logger.error(f"Job {document_id} failed permanently: {e}")
            raise JobFailedError(str(e)) from e
        except Exception as e:
            reason = str(e) or type(e).__name__
            if attempt < max_attempts:
                delay = backoff_delay(attempt - 1, self.settings.JOB_BACKOFF_SECONDS)
                self.metrics.increment("jobs.retried")
                self.logger.warning(
                    f"Job {document_id} attempt {attempt} failed: {reason}. Retrying in {delay:.1f}s"
                )
                raise Retry(defer=delay) from e
            self.logger.error(f"Job {document_id} failed after {attempt} attempt(s): {reason}")
            raise JobFailedError(reason) from e

        return {
            "document_id": document_id,
            "document_type": result.document_type.value,
            "requires_review": result.requires_review,
        }

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self, grace_seconds: Optional[float] = None) -> None:
        """
        Stop accepting jobs and drain in-flight work.

        Waiting and delayed jobs stay in Redis. Jobs still running after the
        grace period are cancelled, which arq puts back on the queue.
        """
        if self._closed:
            return
        self._closed = True
        self.worker.request_shutdown()
        grace = grace_seconds if grace_seconds is not None else self.settings.SHUTDOWN_GRACE_SECONDS

        arq_worker = self._arq_worker
        if arq_worker is not None:
            if arq_worker.main_task is not None:
                arq_worker.main_task.cancel()

            running = [t for t in arq_worker.tasks.values() if not t.done()]
            if running:
                self.logger.info(f"Waiting up to {grace}s for {len(running)} job(s)")
                _, pending = await asyncio.wait(running, timeout=grace)
                if pending:
                    self.logger.warning(f"Cancelling {len(pending)} job(s) after grace period")
                    for task in pending:
                        task.cancel()

            # cancelled jobs are put back on the queue by arq
            await asyncio.gather(*arq_worker.tasks.values(), return_exceptions=True)
            await asyncio.gather(self._runner, return_exceptions=True)

        if self._redis is not None and self._owns_redis:
            await self._redis.aclose()

        self.logger.info("Job queue closed")


async def _startup(ctx: Dict[str, Any]) -> None:
    from ..core.config import get_config
    from .factory import build_pipeline

    pipeline = build_pipeline(get_config(), redis=ctx["redis"])
    ctx["pipeline"] = pipeline
    ctx["job_queue"] = pipeline.queue
    logger.info("arq worker ready")


async def _shutdown(ctx: Dict[str, Any]) -> None:
    pipeline = ctx.get("pipeline")
    if pipeline is not None:
        pipeline.worker.request_shutdown()
        await pipeline.close_clients()


class ArqWorkerSettings:
    """Standalone worker: arq medical_docintel.pipeline.queue.ArqWorkerSettings"""

    _settings = WorkerSettings()

    redis_settings = RedisSettings.from_dsn(_settings.REDIS_URL)
    queue_name = _settings.QUEUE_NAME
    functions = [process_document]
    on_startup = _startup
    on_shutdown = _shutdown
    max_jobs = _settings.WORKER_CONCURRENCY
    job_timeout = _settings.JOB_TIMEOUT_SECONDS + ARQ_TIMEOUT_MARGIN_SECONDS
    max_tries = _settings.JOB_MAX_ATTEMPTS
    keep_result = _settings.JOB_KEEP_RESULT_SECONDS
    poll_delay = _settings.QUEUE_POLL_DELAY_SECONDS
