"""Tests for import_job_service: the job state machine and job queries."""

import pytest

from knowledge_base.models import ImportJobStatus
from knowledge_base.services import import_job_service as jobs
from knowledge_base.services.exceptions import (
    ImportJobNotFound,
    JobTrackingError,
    ValidationError,
)
from knowledge_base.services.import_types import ImportStats


class TestJobLifecycle:
    """Tests for create_job(), begin_job(), finish_job() and fail_job()."""

    def test_create_job_is_pending(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        job = jobs.get_job(job_id)

        assert job["status"] == ImportJobStatus.PENDING.value
        assert job["file_name"] == "export.csv"
        assert job["created_by"] == "admin-1"
        assert job["stats"] == {"total": 0, "success": 0, "failed": 0}
        assert job["errors"] == []
        assert job["has_errors"] is False
        assert job["started_at"] is None
        assert job["completed_at"] is None

    def test_begin_job(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=7)
        job = jobs.get_job(job_id)

        assert job["status"] == ImportJobStatus.PROCESSING.value
        assert job["started_at"] is not None
        assert job["stats"]["total"] == 7

    def test_finish_with_successes_completes(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=3)
        errors = [{"error": "Content is required", "row": 2}]

        status = jobs.finish_job(job_id, ImportStats(total=3, success=2, failed=1), errors)
        job = jobs.get_job(job_id)

        assert status == ImportJobStatus.COMPLETED.value
        assert job["status"] == status
        assert job["stats"] == {"total": 3, "success": 2, "failed": 1}
        assert job["errors"] == errors
        assert job["has_errors"] is True
        assert job["completed_at"] is not None

    def test_finish_without_successes_fails(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=1)

        status = jobs.finish_job(job_id, ImportStats(total=1, failed=1), [])

        assert status == ImportJobStatus.FAILED.value

    def test_finish_requires_processing(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        with pytest.raises(JobTrackingError, match="from 'pending' to 'completed'"):
            jobs.finish_job(job_id, ImportStats(total=1, success=1), [])

    def test_begin_twice_is_rejected(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id)
        with pytest.raises(JobTrackingError):
            jobs.begin_job(job_id)

    def test_terminal_state_is_never_left(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=1)
        jobs.finish_job(job_id, ImportStats(total=1, success=1), [])

        with pytest.raises(JobTrackingError):
            jobs.begin_job(job_id)
        with pytest.raises(JobTrackingError):
            jobs.finish_job(job_id, ImportStats(total=1), [])

        assert jobs.get_job(job_id)["status"] == ImportJobStatus.COMPLETED.value

    def test_fail_job_appends_synthetic_error(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=2)

        status = jobs.fail_job(
            job_id,
            "disk full",
            stats=ImportStats(total=2, success=1, failed=1),
            errors=[{"error": "Title is required", "row": 1}],
        )
        job = jobs.get_job(job_id)

        assert status == ImportJobStatus.FAILED.value
        assert job["errors"] == [
            {"error": "Title is required", "row": 1},
            {"error": "Import failed: disk full"},
        ]
        assert job["stats"] == {"total": 2, "success": 1, "failed": 1}
        assert job["completed_at"] is not None

    def test_fail_pending_job(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        assert jobs.fail_job(job_id, "boom") == ImportJobStatus.FAILED.value
        assert jobs.get_job(job_id)["errors"] == [{"error": "Import failed: boom"}]

    def test_fail_terminal_job_is_a_no_op(self, test_db):
        job_id = jobs.create_job("export.csv", "admin-1")
        jobs.begin_job(job_id, total=1)
        jobs.finish_job(job_id, ImportStats(total=1, success=1), [])
        before = jobs.get_job(job_id)

        status = jobs.fail_job(job_id, "late error")
        after = jobs.get_job(job_id)

        assert status == ImportJobStatus.COMPLETED.value
        assert after["errors"] == []
        assert after["completed_at"] == before["completed_at"]

    def test_missing_job(self, test_db):
        with pytest.raises(ImportJobNotFound):
            jobs.begin_job(999)
        with pytest.raises(ImportJobNotFound):
            jobs.fail_job(999, "boom")


class TestJobQueries:
    """Tests for get_job() and list_jobs()."""

    def test_get_missing_job(self, test_db):
        with pytest.raises(ImportJobNotFound, match="999"):
            jobs.get_job(999)

    def test_list_newest_first_without_errors(self, test_db):
        first = jobs.create_job("one.csv", "admin-1")
        second = jobs.create_job("two.csv", "admin-1")
        third = jobs.create_job("three.csv", "admin-1")

        listing = jobs.list_jobs(limit=2)

        assert listing["total"] == 3
        assert listing["limit"] == 2
        assert listing["offset"] == 0
        assert [j["id"] for j in listing["jobs"]] == [third, second]
        assert all("errors" not in j for j in listing["jobs"])
        assert all("has_errors" in j for j in listing["jobs"])

        page_two = jobs.list_jobs(limit=2, offset=2)
        assert [j["id"] for j in page_two["jobs"]] == [first]

    def test_empty_listing(self, test_db):
        assert jobs.list_jobs() == {"jobs": [], "total": 0, "limit": 10, "offset": 0}

    @pytest.mark.parametrize("limit, offset", [(0, 0), (5, -1)])
    def test_invalid_paging(self, test_db, limit, offset):
        with pytest.raises(ValidationError):
            jobs.list_jobs(limit=limit, offset=offset)
