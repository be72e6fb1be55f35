"""
Upload Jobs Backend - asynchronous job submission API

This package provides a FastAPI-based web service where clients upload a set
of files with processing flags, receive a job id, and poll until the job's
result is available. It enables:

- Multipart uploads with a per-request size ceiling
- Background execution of each job through pending -> running -> done/error
- Status polling with an estimated progress percentage
- Paginated, newest-first job history
- Synthesized result payloads and download bodies

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - job_manager: Facade used by the endpoints
    - registry: Thread-safe job store and record transitions
    - lifecycle: Background state machine and timing/failure policy
    - projection / history: Read-only views for status and history
    - renderer: Result and download payload generation
    - uploads: Multipart intake and flag decoding
    - configuration: OmegaConf-backed settings

Usage:
    Run the API server with:
        uvicorn upload_jobs_backend.main:app --host 0.0.0.0 --port 3001

    Or use the console script:
        upload-jobs-api

Jobs live in process memory only; restarting the server forgets them.
"""
