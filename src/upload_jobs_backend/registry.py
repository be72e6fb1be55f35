"""
In-memory job registry.

The registry is the sole owner of job state. Every read hands out a deep copy
and every write goes through :meth:`JobRegistry.mutate`, which applies a
caller-supplied function to the live record while holding the registry lock.
A transition therefore updates ``status`` together with its dependent
timestamps and payloads in one step, and readers never observe a record
half-way through a transition.
"""

from __future__ import annotations

import copy
import itertools
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from uuid import uuid4

from .errors import InvalidTransitionError
from .models import FileDescriptor, JobStatus
from .utils import utcnow

_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING},
    JobStatus.RUNNING: {JobStatus.DONE, JobStatus.ERROR},
    JobStatus.DONE: set(),
    JobStatus.ERROR: set(),
}


@dataclass
class JobRecord:
    """
    Internal representation of a submitted job.

    Attributes:
        id: Unique job identifier (UUID4 string)
        sequence: Registry-local insertion counter, used to order jobs that
            share a creation timestamp
        status: Current lifecycle state
        files: Descriptors of the uploaded files, in upload order
        flags: Processing flags supplied by the caller
        created_at: Submission timestamp (UTC)
        started_at: Set once when the job starts running
        completed_at: Set once when the job reaches done or error
        result: Rendered payload, only for done jobs
        error: Failure description, only for errored jobs
    """

    id: str
    sequence: int
    status: JobStatus
    files: Tuple[FileDescriptor, ...]
    flags: Tuple[str, ...]
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def _require_transition(self, target: JobStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.id, self.status.value, target.value)

    def mark_running(self, at: datetime) -> None:
        self._require_transition(JobStatus.RUNNING)
        self.status = JobStatus.RUNNING
        self.started_at = at

    def mark_done(self, at: datetime, result: Dict[str, Any]) -> None:
        self._require_transition(JobStatus.DONE)
        self.status = JobStatus.DONE
        self.completed_at = max(at, self.started_at) if self.started_at else at
        self.result = result

    def mark_error(self, at: datetime, message: str) -> None:
        self._require_transition(JobStatus.ERROR)
        self.status = JobStatus.ERROR
        self.completed_at = max(at, self.started_at) if self.started_at else at
        self.error = message


class JobRegistry:
    """
    Thread-safe store of job records keyed by job id.

    All methods acquire a single lock, so they are safe to call from HTTP
    handlers and lifecycle worker threads at the same time.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._jobs: Dict[str, JobRecord] = {}
        self._lock = Lock()
        self._sequence = itertools.count()
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def create(self, files: Sequence[FileDescriptor], flags: Sequence[str]) -> JobRecord:
        """
        Register a new pending job and return a snapshot of it.

        Identifiers come from :func:`uuid.uuid4`, which draws from the
        operating system's random source.
        """
        with self._lock:
            job_id = str(uuid4())
            while job_id in self._jobs:
                job_id = str(uuid4())
            record = JobRecord(
                id=job_id,
                sequence=next(self._sequence),
                status=JobStatus.PENDING,
                files=tuple(files),
                flags=tuple(flags),
                created_at=self._clock(),
            )
            self._jobs[job_id] = record
            return copy.deepcopy(record)

    def get(self, job_id: str) -> Optional[JobRecord]:
        """Return a snapshot of the job, or None if it is not registered."""
        with self._lock:
            record = self._jobs.get(job_id)
            return copy.deepcopy(record) if record else None

    def mutate(self, job_id: str, fn: Callable[[JobRecord], None]) -> bool:
        """
        Apply ``fn`` to the live record under the registry lock.

        Returns:
            True if the job existed and ``fn`` ran, False if the job is absent
            (for example after :meth:`clear`).

        Raises:
            Whatever ``fn`` raises; transition helpers on :class:`JobRecord`
            validate before assigning, so a failed transition leaves the
            record unchanged.
        """
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                return False
            fn(record)
            return True

    def list_all(self) -> list[JobRecord]:
        """Return snapshots of every job in insertion order."""
        with self._lock:
            return [copy.deepcopy(record) for record in self._jobs.values()]

    def clear(self) -> list[str]:
        """Remove every job and return the ids that were removed."""
        with self._lock:
            removed = list(self._jobs)
            self._jobs.clear()
            return removed
