# ============================================================================
# FILE: tests/unit/test_queue.py
# ============================================================================
"""
Unit tests for the arq job queue: retries, recovery, shutdown and restart
"""

import asyncio

import pytest
import pytest_asyncio

from conftest import FakeOcrEngine, register_document
from medical_docintel.core.enums import OcrEngine, ProcessingStatus
from medical_docintel.pipeline.jobs import JobState
from medical_docintel.pipeline.queue import JOB_FUNCTION, process_document
from medical_docintel.utils.exceptions import OcrError, QueueClosedError


class FlakyOcrEngine(FakeOcrEngine):
    """Fails the first `failures` calls, then returns text."""

    def __init__(self, failures: int, text: str):
        super().__init__(OcrEngine.MISTRAL_OCR, text=text)
        self.failures = failures

    async def process_document(self, content, mime_type, options=None):
        if self.calls < self.failures:
            self.calls += 1
            raise OcrError("engine down")
        return await super().process_document(content, mime_type, options)


async def wait_for_state(queue, job_id, state, timeout=5.0):
    async def _poll():
        while True:
            job = await queue.get_job(job_id)
            if job is not None and job.state == state:
                return job
            await asyncio.sleep(0.01)

    return await asyncio.wait_for(_poll(), timeout=timeout)


@pytest_asyncio.fixture
async def started():
    """Start a pipeline's queue and always close it afterwards."""
    pipelines = []

    async def _start(pipeline):
        pipelines.append(pipeline)
        await pipeline.queue.start()
        return pipeline.queue

    yield _start

    for pipeline in pipelines:
        await pipeline.queue.close(grace_seconds=1)


def test_job_function_name():
    assert process_document.__name__ == JOB_FUNCTION


@pytest.mark.asyncio
async def test_enqueue_is_idempotent_while_pending(pipeline_factory):
    queue = pipeline_factory().queue

    first = await queue.enqueue("doc-1", "documents/doc-1.png")
    second = await queue.enqueue("doc-1", "documents/doc-1.png")

    assert first == second == "doc-1"
    assert (await queue.counts())["waiting"] == 1
    assert [j.job_id for j in await queue.list_jobs(JobState.WAITING)] == ["doc-1"]

    job = await queue.get_job("doc-1")
    assert job.storage_key == "documents/doc-1.png"
    assert job.attempts_made == 0


@pytest.mark.asyncio
async def test_unknown_job(pipeline_factory):
    queue = pipeline_factory().queue

    assert await queue.get_job("nope") is None
    with pytest.raises(KeyError):
        await queue.wait_for_job("nope")


@pytest.mark.asyncio
async def test_job_runs_to_completion(pipeline_factory, started):
    pipeline = pipeline_factory()
    record = await register_document(pipeline)
    queue = await started(pipeline)

    job_id = await queue.enqueue(record.document_id, record.storage_key)
    job = await queue.wait_for_job(job_id, timeout=10)

    assert job.state == JobState.COMPLETED
    assert job.attempts_made == 1
    assert job.progress == 100
    assert job.finished_at is not None
    assert pipeline.repository.get_document(record.document_id).status == ProcessingStatus.COMPLETED
    assert [j.job_id for j in await queue.list_jobs(JobState.COMPLETED)] == [job_id]


@pytest.mark.asyncio
async def test_completed_job_can_be_enqueued_again(pipeline_factory, started):
    pipeline = pipeline_factory()
    record = await register_document(pipeline)
    queue = await started(pipeline)
    await queue.wait_for_job(await queue.enqueue(record.document_id, record.storage_key), timeout=10)
    await queue.close(grace_seconds=1)

    # a queue without a running worker leaves the new job waiting
    idle = pipeline_factory().queue
    await idle.enqueue(record.document_id, record.storage_key)

    job = await idle.get_job(record.document_id)
    assert job.state == JobState.WAITING
    assert job.finished_at is None


@pytest.mark.asyncio
async def test_failed_attempt_is_retried(pipeline_factory, started, sample_lab_text):
    """First attempt fails, second succeeds; the record shows one retry"""
    pipeline = pipeline_factory(mistral=FlakyOcrEngine(failures=1, text=sample_lab_text))
    record = await register_document(pipeline)
    queue = await started(pipeline)

    job = await queue.wait_for_job(await queue.enqueue(record.document_id, record.storage_key), timeout=10)

    assert job.state == JobState.COMPLETED
    assert job.attempts_made == 2
    assert pipeline.metrics.get_counter("jobs.retried") == 1

    stored = pipeline.repository.get_document(record.document_id)
    assert stored.status == ProcessingStatus.COMPLETED
    assert stored.retry_count == 1
    assert stored.error_message is None


@pytest.mark.asyncio
async def test_attempts_exhausted(pipeline_factory, started):
    mistral = FakeOcrEngine(OcrEngine.MISTRAL_OCR, error=OcrError("engine down"))
    pipeline = pipeline_factory(mistral=mistral)
    record = await register_document(pipeline)
    queue = await started(pipeline)

    job = await queue.wait_for_job(await queue.enqueue(record.document_id, record.storage_key), timeout=10)

    assert job.state == JobState.FAILED
    assert job.attempts_made == 3
    assert job.failed_reason == "engine down"
    assert mistral.calls == 3
    assert pipeline.metrics.get_counter("jobs.retried") == 2

    stored = pipeline.repository.get_document(record.document_id)
    assert stored.status == ProcessingStatus.FAILED
    assert stored.retry_count == 3


@pytest.mark.asyncio
async def test_deferred_retry_survives_restart(pipeline_factory, pipeline_config, started, sample_lab_text):
    """A retry scheduled before shutdown runs on the next worker"""
    pipeline_config.worker.JOB_BACKOFF_SECONDS = 0.5
    pipeline = pipeline_factory(mistral=FlakyOcrEngine(failures=1, text=sample_lab_text))
    record = await register_document(pipeline)
    await pipeline.queue.start()
    job_id = await pipeline.queue.enqueue(record.document_id, record.storage_key)

    delayed = await wait_for_state(pipeline.queue, job_id, JobState.DELAYED)
    assert delayed.attempts_made == 1
    assert delayed.failed_reason == "engine down"
    await pipeline.queue.close(grace_seconds=1)

    restarted = pipeline_factory()
    queue = await started(restarted)
    job = await queue.wait_for_job(job_id, timeout=10)

    assert job.state == JobState.COMPLETED
    assert job.attempts_made == 2
    stored = restarted.repository.get_document(record.document_id)
    assert stored.status == ProcessingStatus.COMPLETED
    assert stored.retry_count == 1


@pytest.mark.asyncio
async def test_corrupt_document_is_not_retried(pipeline_factory, started):
    pipeline = pipeline_factory()
    record = await register_document(pipeline, content=b"definitely not a png")
    queue = await started(pipeline)

    job = await queue.wait_for_job(await queue.enqueue(record.document_id, record.storage_key), timeout=10)

    assert job.state == JobState.FAILED
    assert job.attempts_made == 1
    assert pipeline.metrics.get_counter("jobs.retried") == 0


@pytest.mark.asyncio
async def test_missing_ocr_engines_are_not_retried(pipeline_factory, started):
    pipeline = pipeline_factory(mistral=FakeOcrEngine(OcrEngine.MISTRAL_OCR, available=False))
    record = await register_document(pipeline)
    queue = await started(pipeline)

    job = await queue.wait_for_job(await queue.enqueue(record.document_id, record.storage_key), timeout=10)

    assert job.state == JobState.FAILED
    assert job.attempts_made == 1
    assert "No OCR engines available" in job.failed_reason


@pytest.mark.asyncio
async def test_recover_unfinished_documents(pipeline_factory, started):
    """Documents left mid-pipeline by a crash are picked up again"""
    pipeline = pipeline_factory()
    pending = await register_document(pipeline, "pending")
    mid_ocr = await register_document(pipeline, "mid-ocr")
    done = await register_document(pipeline, "done")
    pipeline.repository.update_status(mid_ocr.document_id, ProcessingStatus.OCR_IN_PROGRESS, progress=30)
    pipeline.repository.update_status(done.document_id, ProcessingStatus.COMPLETED, progress=100)

    recovered = await pipeline.queue.recover()

    assert sorted(recovered) == ["mid-ocr", "pending"]

    queue = await started(pipeline)
    for job_id in recovered:
        job = await queue.wait_for_job(job_id, timeout=10)
        assert job.state == JobState.COMPLETED
    assert pipeline.repository.get_document(pending.document_id).status == ProcessingStatus.COMPLETED


@pytest.mark.asyncio
async def test_close_interrupts_in_flight_job(pipeline_factory, started, sample_lab_text):
    """In-flight work stops at the next stage boundary and resumes after restart"""
    mistral = FakeOcrEngine(OcrEngine.MISTRAL_OCR, text=sample_lab_text, delay=0.3)
    pipeline = pipeline_factory(mistral=mistral)
    record = await register_document(pipeline)
    queue = pipeline.queue
    await queue.start()

    job_id = await queue.enqueue(record.document_id, record.storage_key)
    await wait_for_state(queue, job_id, JobState.ACTIVE)
    await asyncio.sleep(0.1)  # into the OCR call
    await queue.close(grace_seconds=5)

    job = await queue.wait_for_job(job_id, timeout=1)
    assert job.state == JobState.WAITING
    assert queue.closed is True

    stored = pipeline.repository.get_document(record.document_id)
    assert stored.status == ProcessingStatus.OCR_IN_PROGRESS
    assert stored.progress == 70

    with pytest.raises(QueueClosedError):
        await queue.enqueue("doc-2", "documents/doc-2.png")

    restarted = pipeline_factory()
    job = await (await started(restarted)).wait_for_job(job_id, timeout=10)

    assert job.state == JobState.COMPLETED
    assert job.attempts_made == 2
    assert mistral.calls == 1


@pytest.mark.asyncio
async def test_close_cancels_after_grace_period(pipeline_factory):
    mistral = FakeOcrEngine(OcrEngine.MISTRAL_OCR, text="slow", delay=10.0)
    pipeline = pipeline_factory(mistral=mistral)
    record = await register_document(pipeline)
    queue = pipeline.queue
    await queue.start()

    job_id = await queue.enqueue(record.document_id, record.storage_key)
    await wait_for_state(queue, job_id, JobState.ACTIVE)
    await queue.close(grace_seconds=0.1)

    # waiters are released even though the job never finished
    job = await queue.wait_for_job(job_id, timeout=1)
    assert job.state.is_pending
    stored = pipeline.repository.get_document(record.document_id)
    assert not stored.status.is_terminal
