"""
Unit tests for scheduled orphan cleanup.
"""

from unittest.mock import MagicMock

import pytest

from backend.src.config.settings import AppSettings
from backend.src.services import orphan_cleanup_service
from backend.src.services.cleanup_scheduler import CLEANUP_JOB_ID, CleanupScheduler
from backend.src.services.exceptions import StorageError


@pytest.fixture
def settings():
    return AppSettings(UPDATEHUB_CLEANUP_CRON="30 3 * * *", UPDATEHUB_ORPHAN_MIN_AGE_MINUTES=0)


@pytest.fixture
def session_factory(test_db_session, mocker):
    # The job closes its session; keep the shared test session usable
    mocker.patch.object(test_db_session, "close")
    return lambda: test_db_session


class TestRunOnce:
    """Tests for CleanupScheduler.run_once()."""

    def test_executes_deletions(self, settings, memory_storage, session_factory):
        memory_storage.put("orphan-key")

        result = CleanupScheduler(settings, memory_storage, session_factory).run_once()

        assert result.dry_run is False
        assert result.deleted_files == ["orphan-key"]
        assert memory_storage.objects == {}

    def test_skips_when_pass_in_progress(self, settings, memory_storage, session_factory):
        memory_storage.put("orphan-key")
        assert orphan_cleanup_service._reconcile_lock.acquire(blocking=False)
        try:
            result = CleanupScheduler(settings, memory_storage, session_factory).run_once()
        finally:
            orphan_cleanup_service._reconcile_lock.release()

        assert result is None
        assert "orphan-key" in memory_storage.objects

    def test_storage_failure_logged(self, settings, memory_storage, session_factory, mocker):
        mocker.patch.object(
            memory_storage, "list_objects", side_effect=StorageError("list_objects", "boom")
        )

        assert CleanupScheduler(settings, memory_storage, session_factory).run_once() is None

    def test_closes_session(self, settings, memory_storage):
        session = MagicMock()
        session.query.return_value.all.return_value = []

        CleanupScheduler(settings, memory_storage, lambda: session).run_once()

        session.close.assert_called_once()


class TestScheduling:
    """Tests for job registration."""

    def test_registers_cron_job(self, settings, memory_storage, session_factory, mocker):
        cleanup = CleanupScheduler(settings, memory_storage, session_factory)
        start = mocker.patch.object(cleanup.scheduler, "start")

        cleanup.start()

        job = cleanup.scheduler.get_job(CLEANUP_JOB_ID)
        assert job is not None
        fields = {f.name: str(f) for f in job.trigger.fields}
        assert fields["minute"] == "30"
        assert fields["hour"] == "3"
        start.assert_called_once()
