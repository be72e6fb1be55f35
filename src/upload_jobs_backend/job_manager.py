"""
Job orchestration for the upload jobs API.

The JobManager composes the pieces that make up the job lifecycle:
- JobRegistry: thread-safe owner of all job records
- JobLifecycleController: background execution of each job's state machine
- Status projection and history listing: read-only views for clients

HTTP handlers talk only to the JobManager, which translates registry
outcomes into domain errors (JobNotFoundError, JobNotReadyError).
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from .configuration import Settings
from .errors import JobNotFoundError, JobNotReadyError
from .history import list_history
from .lifecycle import JobLifecycleController, LifecyclePolicy
from .models import FileDescriptor, HistoryPage, JobStatus, ResultView, StatusView
from .projection import project_status
from .registry import JobRecord, JobRegistry
from .renderer import ResultRenderer, SimulatedResultRenderer
from .utils import utcnow

logger = logging.getLogger(__name__)


class JobManager:
    """
    Central coordinator for job submission and polling.

    Attributes:
        settings: Validated runtime settings
        registry: The job registry shared with the lifecycle controller
        renderer: Result renderer used for results and downloads
        controller: Background lifecycle executor
    """

    def __init__(
        self,
        settings: Settings,
        renderer: Optional[ResultRenderer] = None,
        policy: Optional[LifecyclePolicy] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the job manager.

        Args:
            settings: Runtime settings (timing, progress estimate, pool size)
            renderer: Result renderer (default: SimulatedResultRenderer)
            policy: Lifecycle policy (default: derived from settings)
            clock: Source of the current UTC time
        """
        self.settings = settings
        self._clock = clock
        self.registry = JobRegistry(clock=clock)
        self.renderer = renderer or SimulatedResultRenderer()
        self.controller = JobLifecycleController(
            self.registry,
            self.renderer,
            policy=policy or LifecyclePolicy.from_settings(settings),
            max_workers=settings.max_workers,
            clock=clock,
        )

    def submit(self, files: Sequence[FileDescriptor], flags: Sequence[str]) -> JobRecord:
        """
        Register a new job and schedule its lifecycle.

        Returns:
            Snapshot of the job as registered (status pending)
        """
        record = self.registry.create(files, flags)
        self.controller.schedule(record.id)
        logger.info("Job %s submitted with %d file(s), flags=%s", record.id, len(record.files), list(record.flags))
        return record

    def _require(self, job_id: str) -> JobRecord:
        record = self.registry.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return record

    def get_status(self, job_id: str) -> StatusView:
        record = self._require(job_id)
        return project_status(
            record,
            now=self._clock(),
            expected_total=self.settings.expected_duration_seconds,
            cap=self.settings.progress_cap,
        )

    def get_result(self, job_id: str) -> ResultView:
        """
        Get the rendered result of a finished job.

        Raises:
            JobNotFoundError: If the job is not registered
            JobNotReadyError: If the job has not reached the done state
        """
        record = self._require(job_id)
        if record.status is not JobStatus.DONE:
            raise JobNotReadyError(job_id, record.status.value)
        return ResultView(
            job_id=record.id,
            status=record.status,
            result=record.result,
            completed_at=record.completed_at,
        )

    def list_history(self, limit: int, offset: int) -> HistoryPage:
        return list_history(self.registry.list_all(), limit=limit, offset=offset)

    def clear(self) -> int:
        """
        Drop every job. Pending timers of the removed jobs are cancelled;
        a settle step already running finds its job gone and writes nothing.
        """
        removed = self.registry.clear()
        self.controller.abandon(removed)
        logger.info("Cleared %d job(s)", len(removed))
        return len(removed)

    def shutdown(self) -> None:
        self.controller.shutdown()
