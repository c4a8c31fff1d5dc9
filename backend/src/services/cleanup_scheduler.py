"""
Scheduled orphan reconciliation.

Runs OrphanReconciler in execute mode on a crontab schedule
(UPDATEHUB_CLEANUP_CRON, daily at 02:00 by default). The job opens its
own database session; an overlapping on-demand pass makes the scheduled
run skip rather than wait.
"""

from typing import Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings
from backend.src.services.exceptions import ConflictError, StorageError
from backend.src.services.orphan_cleanup_service import CleanupResult, OrphanReconciler
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("scheduler")

CLEANUP_JOB_ID = "orphan_cleanup"


class CleanupScheduler:
    """
    Owns the APScheduler instance running the reconciliation job.

    Usage:
        >>> cleanup = CleanupScheduler(settings, storage, SessionLocal)
        >>> cleanup.start()
        >>> ...
        >>> cleanup.stop()
    """

    def __init__(
        self,
        settings: AppSettings,
        storage: ObjectStorage,
        session_factory: Callable[[], Session],
    ):
        self.settings = settings
        self.storage = storage
        self.session_factory = session_factory
        self.scheduler = AsyncIOScheduler(timezone="UTC")

    def run_once(self) -> Optional[CleanupResult]:
        """
        Execute one reconciliation pass.

        Returns:
            CleanupResult, or None if the pass was skipped or failed
        """
        db = self.session_factory()
        try:
            reconciler = OrphanReconciler(
                db, self.storage, self.settings.orphan_min_age_minutes
            )
            result = reconciler.reconcile(dry_run=False)
        except ConflictError:
            logger.info("Scheduled cleanup skipped: another pass is running")
            return None
        except StorageError as e:
            logger.error("Scheduled cleanup failed", extra={"error": str(e)})
            return None
        finally:
            db.close()

        logger.info(
            "Scheduled cleanup finished",
            extra={
                "orphaned": len(result.orphaned_files),
                "deleted": len(result.deleted_files),
                "errors": len(result.errors),
                "missing": len(result.missing_files),
            }
        )
        return result

    def start(self) -> None:
        """Register the job and start the scheduler."""
        trigger = CronTrigger.from_crontab(self.settings.cleanup_cron, timezone="UTC")
        self.scheduler.add_job(
            self.run_once,
            trigger=trigger,
            id=CLEANUP_JOB_ID,
            name="Orphaned object cleanup",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info(
                "Cleanup scheduler started",
                extra={"cron": self.settings.cleanup_cron}
            )

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Cleanup scheduler stopped")
