# ============================================================================
# src/medical_docintel/pipeline/__init__.py
# ============================================================================
"""
Pipeline module - preprocessing, worker state machine, job queue, assembly
"""

from .jobs import Job, JobState
from .preprocessing import DocumentPreprocessor, PreprocessedDocument, extract_pdf_pages
from .rate_limiter import SlidingWindowRateLimiter
from .worker import DocumentWorker
from .queue import JobQueue
from .factory import Pipeline, build_pipeline

__all__ = [
    "Job",
    "JobState",
    "DocumentPreprocessor",
    "PreprocessedDocument",
    "extract_pdf_pages",
    "SlidingWindowRateLimiter",
    "DocumentWorker",
    "JobQueue",
    "Pipeline",
    "build_pipeline",
]
