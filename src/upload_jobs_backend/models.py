from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


class FileDescriptor(BaseModel):
    """Metadata of one uploaded file; the wire names follow the upload form."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(alias="originalname")
    media_type: str = Field(alias="mimetype")
    size: int = Field(ge=0)


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class SubmitResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str
    message: str
    file_count: int = Field(alias="fileCount")
    flags: List[str]


class StatusView(BaseModel):
    job_id: str
    status: JobStatus
    created_at: datetime
    files: List[FileDescriptor]
    flags: List[str]
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    progress: Optional[int] = None


class ResultView(BaseModel):
    job_id: str
    status: JobStatus
    result: Dict[str, Any]
    completed_at: datetime


class HistoryEntry(BaseModel):
    job_id: str
    status: JobStatus
    created_at: datetime
    completed_at: Optional[datetime] = None
    file_count: int
    flags: List[str]


class HistoryPage(BaseModel):
    jobs: List[HistoryEntry]
    total: int
    limit: int
    offset: int


class MessageResponse(BaseModel):
    message: str
