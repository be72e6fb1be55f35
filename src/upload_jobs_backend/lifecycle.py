"""
Background execution of the job state machine.

Each submitted job is driven by timers: one for the admission delay, after
which the job moves to ``running``, and one for the simulated processing
time. Only the settle step (failure coin, result rendering, terminal write)
runs on the thread pool, so waiting jobs never occupy a worker. Every write
goes through :meth:`JobRegistry.mutate`; when the job has disappeared (the
registry was cleared) the step abandons the job quietly.
"""

from __future__ import annotations

import logging
import random
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from threading import Event, Lock, Timer
from typing import Callable, Dict, Iterable, Optional

from .configuration import Settings
from .registry import JobRegistry
from .renderer import ResultRenderer
from .utils import utcnow

logger = logging.getLogger(__name__)

SIMULATED_FAILURE_MESSAGE = "Processing failed due to simulated error"


@dataclass
class LifecyclePolicy:
    """
    Timing and outcome policy for lifecycle tasks.

    Attributes:
        admission_delay: Seconds between submission and the start of execution
        min_duration: Lower bound of the processing time, in seconds
        max_duration: Upper bound of the processing time, in seconds
        failure_probability: Chance that a job settles as ``error``
        rng: Random source for durations and outcomes
    """

    admission_delay: float = 1.0
    min_duration: float = 5.0
    max_duration: float = 10.0
    failure_probability: float = 0.1
    rng: random.Random = field(default_factory=random.Random)

    def __post_init__(self) -> None:
        if self.admission_delay < 0:
            raise ValueError("admission_delay must be non-negative")
        if self.min_duration < 0 or self.min_duration > self.max_duration:
            raise ValueError("duration bounds must satisfy 0 <= min_duration <= max_duration")
        if not 0.0 <= self.failure_probability <= 1.0:
            raise ValueError("failure_probability must be within [0, 1]")

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecyclePolicy":
        return cls(
            admission_delay=settings.admission_delay_seconds,
            min_duration=settings.min_duration_seconds,
            max_duration=settings.max_duration_seconds,
            failure_probability=settings.failure_probability,
        )

    def sample_duration(self) -> float:
        return self.rng.uniform(self.min_duration, self.max_duration)

    def should_fail(self) -> bool:
        return self.rng.random() < self.failure_probability


class JobLifecycleController:
    """
    Drives registered jobs through pending -> running -> done/error.

    Thread Safety:
        Timers and pool workers touch job state only through the registry's
        atomic accessors. No registry lock is held while a job waits, and no
        pool worker is held either; the pool (``max_workers``) only bounds
        how many settle steps render at once.
    """

    def __init__(
        self,
        registry: JobRegistry,
        renderer: ResultRenderer,
        policy: Optional[LifecyclePolicy] = None,
        max_workers: int = 64,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._registry = registry
        self._renderer = renderer
        self.policy = policy or LifecyclePolicy()
        self._clock = clock
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="job-lifecycle")
        self._stopping = Event()
        self._lock = Lock()
        # job id -> set once the job's lifecycle has ended or been abandoned
        self._finished: Dict[str, Event] = {}
        self._timers: Dict[str, Timer] = {}

    def schedule(self, job_id: str) -> None:
        """Start the admission timer for a freshly registered job."""
        with self._lock:
            if self._stopping.is_set():
                logger.warning("Job %s not scheduled; controller is shut down", job_id)
                return
            self._finished[job_id] = Event()
            self._start_timer(job_id, self.policy.admission_delay, self._start)

    def _start_timer(self, job_id: str, delay: float, action: Callable[[str], None]) -> None:
        # Caller holds self._lock.
        timer = Timer(delay, action, args=(job_id,))
        timer.daemon = True
        self._timers[job_id] = timer
        timer.start()

    def _is_tracked(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._finished

    def _finish(self, job_id: str) -> None:
        with self._lock:
            timer = self._timers.pop(job_id, None)
            finished = self._finished.pop(job_id, None)
        if timer is not None:
            timer.cancel()
        if finished is not None:
            finished.set()

    def abandon(self, job_ids: Iterable[str]) -> None:
        """Cancel the timers of jobs that were removed from the registry."""
        for job_id in job_ids:
            self._finish(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> bool:
        """
        Block until the job's lifecycle has ended or been abandoned.

        Returns:
            True if the lifecycle is over (or was never tracked), False if the
            timeout expired first.
        """
        with self._lock:
            finished = self._finished.get(job_id)
        if finished is None:
            return True
        return finished.wait(timeout)

    def active_count(self) -> int:
        with self._lock:
            return len(self._finished)

    def shutdown(self) -> None:
        """Cancel every timer, abandon tracked jobs and stop the pool."""
        with self._lock:
            self._stopping.set()
            job_ids = list(self._finished)
        self.abandon(job_ids)
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _start(self, job_id: str) -> None:
        if not self._is_tracked(job_id):
            return

        if not self._registry.mutate(job_id, lambda record: record.mark_running(self._clock())):
            logger.debug("Job %s no longer registered; skipping execution", job_id)
            self._finish(job_id)
            return
        logger.info("Job %s started", job_id)

        with self._lock:
            if job_id not in self._finished:
                return
            self._start_timer(job_id, self.policy.sample_duration(), self._dispatch_settle)

    def _dispatch_settle(self, job_id: str) -> None:
        with self._lock:
            if job_id not in self._finished:
                return
            self._timers.pop(job_id, None)
            if self._stopping.is_set():
                return
            future = self._executor.submit(self._settle, job_id)
        future.add_done_callback(lambda done: self._on_settled(job_id, done))

    def _on_settled(self, job_id: str, future: Future) -> None:
        self._finish(job_id)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("Settling job %s crashed", job_id, exc_info=exc)

    def _settle(self, job_id: str) -> None:
        snapshot = self._registry.get(job_id)
        if snapshot is None:
            logger.debug("Job %s cleared while running; discarding outcome", job_id)
            return

        if self.policy.should_fail():
            self._settle_error(job_id, SIMULATED_FAILURE_MESSAGE)
            return

        try:
            result = self._renderer.render(snapshot.flags, snapshot.files)
        except Exception as exc:
            logger.exception("Rendering result for job %s failed", job_id)
            self._settle_error(job_id, f"Result rendering failed: {exc}")
            return

        if self._registry.mutate(job_id, lambda record: record.mark_done(self._clock(), result)):
            logger.info("Job %s completed", job_id)
        else:
            logger.debug("Job %s cleared before completion", job_id)

    def _settle_error(self, job_id: str, message: str) -> None:
        if self._registry.mutate(job_id, lambda record: record.mark_error(self._clock(), message)):
            logger.info("Job %s failed: %s", job_id, message)
        else:
            logger.debug("Job %s cleared before failure was recorded", job_id)
