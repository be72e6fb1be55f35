from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from .configuration import configure_logging, load_settings
from .errors import JobNotFoundError, JobNotReadyError, UploadTooLargeError, UploadValidationError
from .job_manager import JobManager
from .middleware import RequestLoggingMiddleware
from .models import HealthResponse, HistoryPage, MessageResponse, ResultView, StatusView, SubmitResponse
from .uploads import describe_uploads, parse_flags
from .utils import sanitize_filename, utcnow

logger = logging.getLogger(__name__)

settings = load_settings()
configure_logging(settings.log_level)

job_manager = JobManager(settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Upload jobs API listening on %s:%d", settings.host, settings.port)
    yield
    logger.info("Shutting down; abandoning %d in-flight job(s)", job_manager.controller.active_count())
    job_manager.shutdown()


app = FastAPI(title="Upload Jobs API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


def get_job_manager() -> JobManager:
    return job_manager


# ==================== Exception Handlers ====================


@app.exception_handler(UploadValidationError)
async def upload_validation_handler(request: Request, exc: UploadValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc)})


@app.exception_handler(UploadTooLargeError)
async def upload_too_large_handler(request: Request, exc: UploadTooLargeError) -> JSONResponse:
    return JSONResponse(status_code=413, content={"error": str(exc), "max_bytes": exc.max_bytes})


@app.exception_handler(JobNotFoundError)
async def job_not_found_handler(request: Request, exc: JobNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc)})


@app.exception_handler(JobNotReadyError)
async def job_not_ready_handler(request: Request, exc: JobNotReadyError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": str(exc), "status": exc.status})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unknown paths and unsupported methods share the generic not-found body.
    if exc.status_code in (404, 405):
        return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ==================== Routes ====================


@app.get("/health", response_model=HealthResponse)
def healthcheck() -> HealthResponse:
    return HealthResponse(status="ok", timestamp=utcnow())


@app.post("/upload", response_model=SubmitResponse)
async def upload(
    files: Optional[List[UploadFile]] = File(None),
    flags: Optional[str] = Form(None),
    manager: JobManager = Depends(get_job_manager),
) -> SubmitResponse:
    parsed_flags = parse_flags(flags)
    descriptors = await describe_uploads(files or [], manager.settings.max_upload_bytes)
    record = manager.submit(descriptors, parsed_flags)
    return SubmitResponse(
        job_id=record.id,
        message="Files uploaded successfully",
        file_count=len(record.files),
        flags=list(record.flags),
    )


@app.get("/status/{job_id}", response_model=StatusView, response_model_exclude_none=True)
def job_status(job_id: str, manager: JobManager = Depends(get_job_manager)) -> StatusView:
    return manager.get_status(job_id)


@app.get("/result/{job_id}", response_model=ResultView)
def job_result(job_id: str, manager: JobManager = Depends(get_job_manager)) -> ResultView:
    return manager.get_result(job_id)


def _non_negative_int(raw: Optional[str], default: int) -> int:
    """Parse a query integer; unparsable or negative values give ``default``, 0 is kept."""
    try:
        value = int(raw) if raw is not None else default
    except ValueError:
        return default
    return value if value >= 0 else default


@app.get("/history", response_model=HistoryPage)
def history(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    manager: JobManager = Depends(get_job_manager),
) -> HistoryPage:
    return manager.list_history(
        limit=_non_negative_int(limit, manager.settings.history_default_limit),
        offset=_non_negative_int(offset, 0),
    )


@app.get("/download/{filename}")
def download(filename: str, manager: JobManager = Depends(get_job_manager)) -> Response:
    body = manager.renderer.render_download(filename)
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{sanitize_filename(filename)}"'},
    )


@app.delete("/jobs", response_model=MessageResponse)
def clear_jobs(manager: JobManager = Depends(get_job_manager)) -> MessageResponse:
    manager.clear()
    return MessageResponse(message="All jobs cleared")


def run() -> None:
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
