# ============================================================================
# src/medical_docintel/pipeline/jobs.py
# ============================================================================
"""
Queue-side job bookkeeping.

A Job is the queue's view of one document's processing: its state, attempt
count and progress. The document's processing status lives in the
repository; the two are updated independently.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class JobState(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    DELAYED = "delayed"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_pending(self) -> bool:
        return self in (JobState.WAITING, JobState.ACTIVE, JobState.DELAYED)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Job:
    job_id: str
    document_id: str
    storage_key: str
    state: JobState = JobState.WAITING
    attempts_made: int = 0
    progress: int = 0
    failed_reason: Optional[str] = None
    created_at: str = field(default_factory=_now)
    finished_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "document_id": self.document_id,
            "storage_key": self.storage_key,
            "state": self.state.value,
            "attempts_made": self.attempts_made,
            "progress": self.progress,
            "failed_reason": self.failed_reason,
            "created_at": self.created_at,
            "finished_at": self.finished_at,
        }
