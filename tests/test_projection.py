"""
Tests for status projection and history listing.
"""

from datetime import datetime, timedelta, timezone

import pytest

from upload_jobs_backend.history import list_history
from upload_jobs_backend.models import JobStatus
from upload_jobs_backend.projection import estimate_progress, project_status, summarize
from upload_jobs_backend.registry import JobRegistry

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += timedelta(seconds=seconds)


class TestEstimateProgress:
    @pytest.mark.parametrize(
        "elapsed, expected",
        [(0, 0), (0.07, 0), (0.75, 10), (3.75, 50), (7.0, 93), (7.5, 95), (60, 95)],
    )
    def test_progress_from_elapsed(self, elapsed, expected):
        assert estimate_progress(T0, T0 + timedelta(seconds=elapsed), expected_total=7.5) == expected

    def test_clock_skew_never_negative(self):
        assert estimate_progress(T0, T0 - timedelta(seconds=2), expected_total=7.5) == 0

    def test_progress_is_monotonic(self):
        values = [
            estimate_progress(T0, T0 + timedelta(milliseconds=step * 250), expected_total=7.5)
            for step in range(60)
        ]
        assert values == sorted(values)
        assert all(0 <= value <= 95 for value in values)


class TestProjectStatus:
    def test_pending_view_has_only_base_fields(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, ["convert"])

        view = project_status(record, now=T0, expected_total=7.5)

        assert view.job_id == record.id
        assert view.status is JobStatus.PENDING
        assert view.created_at == T0
        assert view.files == sample_files
        assert view.flags == ["convert"]
        assert view.started_at is None
        assert view.completed_at is None
        assert view.error is None
        assert view.progress is None

    def test_running_view_includes_progress(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, [])
        registry.mutate(record.id, lambda r: r.mark_running(T0))

        view = project_status(registry.get(record.id), now=T0 + timedelta(seconds=3.75), expected_total=7.5)

        assert view.status is JobStatus.RUNNING
        assert view.started_at == T0
        assert view.progress == 50

    def test_custom_cap(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, [])
        registry.mutate(record.id, lambda r: r.mark_running(T0))

        view = project_status(registry.get(record.id), now=T0 + timedelta(seconds=100), expected_total=7.5, cap=80)

        assert view.progress == 80

    def test_error_view_has_error_and_no_progress(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, [])
        registry.mutate(record.id, lambda r: r.mark_running(T0))
        registry.mutate(record.id, lambda r: r.mark_error(T0 + timedelta(seconds=6), "nope"))

        view = project_status(registry.get(record.id), now=T0 + timedelta(seconds=7), expected_total=7.5)

        assert view.error == "nope"
        assert view.completed_at == T0 + timedelta(seconds=6)
        assert view.progress is None

    def test_projection_does_not_mutate(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, [])
        before = registry.get(record.id)

        project_status(record, now=T0 + timedelta(hours=1), expected_total=7.5)

        assert registry.get(record.id) == before

    def test_summarize_omits_heavy_fields(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        record = registry.create(sample_files, ["analyze", "extract"])

        entry = summarize(record).model_dump()

        assert entry == {
            "job_id": record.id,
            "status": JobStatus.PENDING,
            "created_at": T0,
            "completed_at": None,
            "file_count": 3,
            "flags": ["analyze", "extract"],
        }


class TestListHistory:
    @pytest.fixture
    def five_jobs(self, sample_files):
        clock = FakeClock(T0)
        registry = JobRegistry(clock=clock)
        ids = {}
        for name in "ABCDE":
            ids[name] = registry.create(sample_files, [name]).id
            clock.advance(1)
        return registry, ids

    def test_first_page_newest_first(self, five_jobs):
        registry, ids = five_jobs
        page = list_history(registry.list_all(), limit=2, offset=0)

        assert [entry.job_id for entry in page.jobs] == [ids["E"], ids["D"]]
        assert page.total == 5
        assert page.limit == 2
        assert page.offset == 0

    def test_second_page(self, five_jobs):
        registry, ids = five_jobs
        page = list_history(registry.list_all(), limit=2, offset=2)

        assert [entry.job_id for entry in page.jobs] == [ids["C"], ids["B"]]
        assert page.total == 5

    def test_offset_past_end_is_empty(self, five_jobs):
        registry, _ = five_jobs
        page = list_history(registry.list_all(), limit=10, offset=50)

        assert page.jobs == []
        assert page.total == 5

    def test_zero_limit_is_empty(self, five_jobs):
        registry, _ = five_jobs
        assert list_history(registry.list_all(), limit=0, offset=0).jobs == []

    def test_identical_timestamps_newest_registration_first(self, sample_files):
        registry = JobRegistry(clock=lambda: T0)
        ids = [registry.create(sample_files, []).id for _ in range(4)]

        page = list_history(registry.list_all(), limit=10, offset=0)

        assert [entry.job_id for entry in page.jobs] == list(reversed(ids))
