"""Read-only views of job records for API responses."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from .models import HistoryEntry, JobStatus, StatusView
from .registry import JobRecord

DEFAULT_PROGRESS_CAP = 95


def estimate_progress(
    started_at: datetime,
    now: datetime,
    expected_total: float,
    cap: int = DEFAULT_PROGRESS_CAP,
) -> int:
    """
    Estimate completion percentage of a running job from elapsed time.

    The estimate never reaches 100 so a running job is not mistaken for a
    finished one; only the terminal transition ends the job.
    """
    elapsed = (now - started_at).total_seconds()
    percent = math.floor(100 * elapsed / expected_total)
    return max(0, min(percent, cap))


def project_status(
    record: JobRecord,
    now: datetime,
    expected_total: float,
    cap: int = DEFAULT_PROGRESS_CAP,
) -> StatusView:
    progress: Optional[int] = None
    if record.status is JobStatus.RUNNING and record.started_at is not None:
        progress = estimate_progress(record.started_at, now, expected_total, cap)

    return StatusView(
        job_id=record.id,
        status=record.status,
        created_at=record.created_at,
        files=list(record.files),
        flags=list(record.flags),
        started_at=record.started_at,
        completed_at=record.completed_at,
        error=record.error,
        progress=progress,
    )


def summarize(record: JobRecord) -> HistoryEntry:
    return HistoryEntry(
        job_id=record.id,
        status=record.status,
        created_at=record.created_at,
        completed_at=record.completed_at,
        file_count=len(record.files),
        flags=list(record.flags),
    )
