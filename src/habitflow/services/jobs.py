"""In-memory tracking for notification runs started in the background.

The trigger endpoint hands a fan-out to :func:`enqueue` and answers 202 with
the job id; callers then poll :func:`get_job` for the status and, once the run
finished, the fan-out summary.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from threading import Lock, Thread
from typing import Any, Callable, Dict, Iterable, Optional
from uuid import uuid4

from ..logging_config import get_logger
from ..timeutil import utcnow

__all__ = [
    "Job",
    "JobStatus",
    "enqueue",
    "get_job",
    "list_jobs",
    "set_async_execution",
    "clear_jobs",
]

logger = get_logger("services.jobs")

MAX_TRACKED_JOBS = 100


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Job:
    """One background run and, when finished, its outcome."""

    id: str
    name: str
    target: Callable[..., Any] = field(repr=False)
    kwargs: Dict[str, Any] = field(default_factory=dict, repr=False)
    status: JobStatus = JobStatus.QUEUED
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    result: Any = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def run(self) -> None:
        self.status = JobStatus.RUNNING
        self.started_at = utcnow()
        try:
            self.result = self.target(**self.kwargs)
        except Exception as exc:  # reported through the job status
            self.status = JobStatus.FAILED
            self.error = str(exc) or exc.__class__.__name__
            logger.exception("Background job failed", extra={"job_id": self.id, "job_name": self.name})
        else:
            self.status = JobStatus.SUCCEEDED
            logger.info("Background job finished", extra={"job_id": self.id, "job_name": self.name})
        finally:
            self.finished_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        result = self.result.to_dict() if hasattr(self.result, "to_dict") else self.result
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "error": self.error,
            "result": result,
            "metadata": self.metadata,
        }


class _JobRegistry:
    """Bounded, insertion-ordered store; the oldest job is evicted first."""

    def __init__(self, limit: int = MAX_TRACKED_JOBS) -> None:
        self.limit = limit
        self.run_async = True
        self._jobs: "OrderedDict[str, Job]" = OrderedDict()
        self._lock = Lock()

    def add(self, job: Job) -> None:
        with self._lock:
            self._jobs[job.id] = job
            while len(self._jobs) > self.limit:
                self._jobs.popitem(last=False)

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def snapshot(self) -> list[Job]:
        with self._lock:
            return list(self._jobs.values())

    def clear(self) -> None:
        with self._lock:
            self._jobs.clear()


_registry = _JobRegistry()


def set_async_execution(enabled: bool) -> None:
    """Run jobs in daemon threads (True) or inline in the caller (False)."""

    _registry.run_async = enabled


def clear_jobs() -> None:
    _registry.clear()


def enqueue(
    name: str,
    target: Callable[..., Any],
    *,
    metadata: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> Job:
    """Start ``target(**kwargs)`` and return the tracked job.

    The target's return value is kept on ``Job.result``.
    """

    job = Job(id=uuid4().hex, name=name, target=target, kwargs=kwargs, metadata=metadata or {})
    _registry.add(job)

    if _registry.run_async:
        Thread(target=job.run, name=f"HabitFlowJob-{job.id}", daemon=True).start()
    else:
        job.run()
    return job


def get_job(job_id: str) -> Optional[Dict[str, Any]]:
    """Return the serialized job, or ``None`` when unknown or evicted."""

    job = _registry.get(job_id)
    return job.to_dict() if job else None


def list_jobs(limit: Optional[int] = None) -> Iterable[Dict[str, Any]]:
    """Return tracked jobs, newest first."""

    jobs = sorted(_registry.snapshot(), key=lambda job: job.created_at, reverse=True)
    if limit is not None:
        jobs = jobs[:limit]
    return [job.to_dict() for job in jobs]
