"""Custom exception classes for the upload jobs backend."""

from __future__ import annotations


class UploadJobsError(Exception):
    """Base exception for all application errors."""

    pass


class UploadValidationError(UploadJobsError):
    """The submitted upload is malformed or empty."""

    pass


class UploadTooLargeError(UploadJobsError):
    """The combined size of the uploaded files exceeds the configured ceiling."""

    def __init__(self, total_bytes: int, max_bytes: int) -> None:
        self.total_bytes = total_bytes
        self.max_bytes = max_bytes
        super().__init__(f"Upload exceeds the {max_bytes} byte limit")


class JobNotFoundError(UploadJobsError):
    """No job with the requested identifier is registered."""

    def __init__(self, job_id: str) -> None:
        self.job_id = job_id
        super().__init__("Job not found")


class JobNotReadyError(UploadJobsError):
    """A result was requested before the job reached the done state."""

    def __init__(self, job_id: str, status: str) -> None:
        self.job_id = job_id
        self.status = status
        super().__init__("Job not completed")


class InvalidTransitionError(UploadJobsError):
    """A job was asked to move to a state its current state cannot reach."""

    def __init__(self, job_id: str, current: str, target: str) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id} cannot move from {current} to {target}")
