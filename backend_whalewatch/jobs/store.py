"""
Job store: queued -> analyzing -> completed | failed.

Status only moves forward; terminal states are never left. The store is an
interface so a durable backend can replace the in-memory map without touching
the worker or the API.
"""

from __future__ import annotations

import secrets
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any

from backend_whalewatch.analysis_engine.models import WhaleTransaction
from backend_whalewatch.whalewatch_logging import get_logger

logger = get_logger(__name__)

JOB_TTL_SEC = 3600.0


class JobStatus(str, Enum):
    QUEUED = "queued"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_STATUS_RANK = {
    JobStatus.QUEUED: 0,
    JobStatus.ANALYZING: 1,
    JobStatus.COMPLETED: 2,
    JobStatus.FAILED: 2,
}


def is_forward_transition(current: JobStatus, new: JobStatus) -> bool:
    """True if a job in current may move to new. Terminal jobs never change."""
    if current.is_terminal:
        return False
    return _STATUS_RANK[new] >= _STATUS_RANK[current]


@dataclass
class AnalysisJob:
    id: str
    status: JobStatus
    whale: WhaleTransaction
    created_at: float
    """Unix seconds."""
    result: dict[str, Any] | None = None
    reasoning: str | None = None
    metadata: dict[str, Any] | None = None
    error: str | None = None
    completed_at: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Polling view of the job."""
        out: dict[str, Any] = {
            "job_id": self.id,
            "status": self.status.value,
            "whale": self.whale.to_dict(),
            "created_at": self.created_at,
        }
        if self.result is not None:
            out["result"] = self.result
        if self.reasoning is not None:
            out["reasoning"] = self.reasoning
        if self.metadata is not None:
            out["metadata"] = self.metadata
        if self.error is not None:
            out["error"] = self.error
        if self.completed_at is not None:
            out["completed_at"] = self.completed_at
        return out


_UPDATABLE_FIELDS = frozenset(f.name for f in fields(AnalysisJob)) - {"id", "whale", "created_at"}


def new_job_id(now: float) -> str:
    return f"job_{int(now * 1000)}_{secrets.token_hex(4)}"


class JobStore(ABC):
    """Keyed store of analysis jobs."""

    @abstractmethod
    def create_job(self, whale: WhaleTransaction) -> AnalysisJob:
        ...

    @abstractmethod
    def get_job(self, job_id: str) -> AnalysisJob | None:
        ...

    @abstractmethod
    def update_job(self, job_id: str, **updates: Any) -> AnalysisJob | None:
        ...

    @abstractmethod
    def __len__(self) -> int:
        ...

    @abstractmethod
    def sweep_expired(self, now: float | None = None) -> int:
        ...

    def mark_analyzing(self, job_id: str) -> AnalysisJob | None:
        return self.update_job(job_id, status=JobStatus.ANALYZING)

    def mark_completed(
        self,
        job_id: str,
        result: dict[str, Any],
        reasoning: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AnalysisJob | None:
        return self.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            result=result,
            reasoning=reasoning,
            metadata=metadata,
        )

    def mark_failed(self, job_id: str, error: str) -> AnalysisJob | None:
        return self.update_job(job_id, status=JobStatus.FAILED, error=error)


class InMemoryJobStore(JobStore):
    """
    Process-local store guarded by a lock.

    Jobs older than JOB_TTL_SEC are swept lazily on create_job. get_job hands
    out copies so callers cannot mutate stored state.
    """

    def __init__(self, ttl_sec: float = JOB_TTL_SEC, clock: Callable[[], float] = time.time) -> None:
        self._ttl_sec = ttl_sec
        self._clock = clock
        self._jobs: dict[str, AnalysisJob] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create_job(self, whale: WhaleTransaction) -> AnalysisJob:
        now = self._clock()
        self.sweep_expired(now)
        job = AnalysisJob(id=new_job_id(now), status=JobStatus.QUEUED, whale=whale, created_at=now)
        with self._lock:
            self._jobs[job.id] = job
        logger.info("job_created", job_id=job.id, tx_hash=whale.tx_hash, amount=whale.amount)
        return replace(job)

    def get_job(self, job_id: str) -> AnalysisJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job) if job is not None else None

    def update_job(self, job_id: str, **updates: Any) -> AnalysisJob | None:
        """
        Merge updates into the job. Unknown id is a no-op (returns None).

        Raises:
            ValueError: an update names a field that cannot be changed.
        """
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update job fields: {sorted(unknown)}")
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                logger.warning("job_update_unknown_id", job_id=job_id)
                return None
            new_status = JobStatus(updates.get("status") or job.status)
            if job.status.is_terminal or "status" in updates:
                if not is_forward_transition(job.status, new_status):
                    logger.warning(
                        "job_backward_transition_ignored",
                        job_id=job_id,
                        current=job.status.value,
                        requested=new_status.value,
                    )
                    return replace(job)
                updates["status"] = new_status
                if new_status.is_terminal and job.completed_at is None:
                    updates.setdefault("completed_at", self._clock())
            updated = replace(job, **updates)
            self._jobs[job_id] = updated
            return replace(updated)

    def sweep_expired(self, now: float | None = None) -> int:
        """Drop jobs created more than ttl ago; returns how many were removed."""
        cutoff = (self._clock() if now is None else now) - self._ttl_sec
        with self._lock:
            expired = [job_id for job_id, job in self._jobs.items() if job.created_at < cutoff]
            for job_id in expired:
                del self._jobs[job_id]
        if expired:
            logger.info("jobs_expired", count=len(expired))
        return len(expired)


_store: JobStore | None = None
_store_lock = threading.Lock()


def get_job_store() -> JobStore:
    """Process-wide job store."""
    global _store
    with _store_lock:
        if _store is None:
            _store = InMemoryJobStore()
        return _store


def reset_job_store() -> None:
    global _store
    with _store_lock:
        _store = None
