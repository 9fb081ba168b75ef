# ============================================================================
# src/medical_docintel/config/worker_config.py
# ============================================================================
"""
Worker & Queue Settings
- Concurrency and job-start rate limit
- Job retry / backoff / timeout
- Redis connection and polling for the arq job queue
- Persistence and storage backends
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class WorkerSettings(BaseSettings):
    WORKER_CONCURRENCY: int = Field(
        default=5,
        ge=1, le=64,
        description="Documents processed concurrently"
    )
    RATE_LIMIT_MAX_JOBS: int = Field(
        default=10,
        ge=1,
        description="Job starts allowed per rate-limit window"
    )
    RATE_LIMIT_PERIOD_SECONDS: float = Field(default=1.0, gt=0)

    JOB_MAX_ATTEMPTS: int = Field(default=3, ge=1, description="Attempts per job before FAILED")
    JOB_BACKOFF_SECONDS: float = Field(
        default=2.0,
        ge=0.0,
        description="Retry delay base; attempt n (1-based) waits base * 2^(n-1)"
    )
    JOB_TIMEOUT_SECONDS: float = Field(
        default=600.0,
        gt=0,
        description="Global per-job timeout"
    )
    SHUTDOWN_GRACE_SECONDS: float = Field(
        default=300.0,
        gt=0,
        description="How long close() waits for in-flight jobs to reach a stage boundary"
    )

    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis instance holding the job queue"
    )
    QUEUE_NAME: str = Field(default="docintel:queue", min_length=1)
    QUEUE_POLL_DELAY_SECONDS: float = Field(
        default=0.5,
        gt=0,
        description="How often the worker polls Redis for due jobs"
    )
    JOB_KEEP_RESULT_SECONDS: float = Field(
        default=3600.0,
        ge=0,
        description="How long finished job results stay queryable"
    )

    DATABASE_PATH: Path = Field(
        default=Path("data/documents.db"),
        description="SQLite database for document records and stage results"
    )
    STORAGE_BACKEND: str = Field(
        default="local",
        pattern="^(local|s3)$",
        description="Where source documents live"
    )
    LOCAL_STORAGE_ROOT: Path = Field(
        default=Path("data/uploads"),
        description="Root directory for the local storage backend"
    )
