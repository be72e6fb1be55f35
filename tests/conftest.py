"""
Pytest configuration and fixtures for the upload jobs backend tests.
"""

import os
import random
import time

import pytest
from fastapi.testclient import TestClient

# Keep the module-level manager fast and deterministic before the app is imported
os.environ["UPLOAD_JOBS_ADMISSION_DELAY_SECONDS"] = "0"
os.environ["UPLOAD_JOBS_MIN_DURATION_SECONDS"] = "0"
os.environ["UPLOAD_JOBS_MAX_DURATION_SECONDS"] = "0"
os.environ["UPLOAD_JOBS_FAILURE_PROBABILITY"] = "0"
os.environ["UPLOAD_JOBS_LOG_LEVEL"] = "WARNING"

from upload_jobs_backend.configuration import load_settings
from upload_jobs_backend.job_manager import JobManager
from upload_jobs_backend.lifecycle import LifecyclePolicy
from upload_jobs_backend.main import app, get_job_manager
from upload_jobs_backend.models import FileDescriptor
from upload_jobs_backend.renderer import SimulatedResultRenderer


def make_settings(**overrides):
    """Settings built from defaults only, ignoring the environment and config files."""
    return load_settings(overrides=overrides, environ={}, use_config_file=False)


@pytest.fixture
def manager_factory():
    """Build JobManagers with deterministic policies; all are shut down afterwards."""
    created = []

    def factory(
        admission_delay=0.0,
        min_duration=0.0,
        max_duration=0.0,
        failure_probability=0.0,
        renderer=None,
        **settings_overrides,
    ):
        policy = LifecyclePolicy(
            admission_delay=admission_delay,
            min_duration=min_duration,
            max_duration=max_duration,
            failure_probability=failure_probability,
            rng=random.Random(1234),
        )
        manager = JobManager(
            make_settings(**settings_overrides),
            renderer=renderer or SimulatedResultRenderer(rng=random.Random(99)),
            policy=policy,
        )
        created.append(manager)
        return manager

    yield factory

    for manager in created:
        manager.shutdown()


@pytest.fixture
def manager(manager_factory):
    """A manager whose jobs run instantly and always succeed."""
    return manager_factory()


@pytest.fixture
def client(manager):
    """Test client wired to the per-test manager."""
    app.dependency_overrides[get_job_manager] = lambda: manager
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds or the timeout expires."""

    def _wait(predicate, timeout=5.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return _wait


@pytest.fixture
def sample_files():
    return [
        FileDescriptor(name="report.pdf", media_type="application/pdf", size=1200),
        FileDescriptor(name="photo.png", media_type="image/png", size=800),
        FileDescriptor(name="notes.pdf", media_type="application/pdf", size=50),
    ]


@pytest.fixture
def upload_payload():
    """Multipart files for the /upload endpoint."""
    return [
        ("files", ("report.pdf", b"%PDF-1.4 minimal", "application/pdf")),
        ("files", ("data.csv", b"a,b\n1,2\n", "text/csv")),
    ]
