"""
Orphan reconciliation between object storage and release file records.

Stored objects no ReleaseFile references anymore (failed uploads,
abandoned upload handshakes, best-effort deletes that did not complete)
are found by diffing a full bucket listing against the referenced keys.

Safety rules:
- Objects younger than the minimum age are skipped: an upload whose file
  record has not been registered yet looks exactly like an orphan
- In execute mode every candidate is re-checked against the database just
  before it is deleted
- One pass at a time: a process lock, plus a PostgreSQL advisory lock so
  schedulers in several workers or hosts do not overlap; a concurrent
  request fails fast
- Referenced keys missing from storage are reported and logged at error
  level, never modified
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Set

from sqlalchemy import text
from sqlalchemy.orm import Session

from backend.src.models import ReleaseFile
from backend.src.services.exceptions import ConflictError, StorageError
from backend.src.services.storage_service import ObjectStorage
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

DEFAULT_MIN_AGE_MINUTES = 60

_reconcile_lock = threading.Lock()

# Shared by every process using the same database
RECONCILE_ADVISORY_LOCK_ID = 0x55484F52  # "UHOR"


@dataclass
class CleanupResult:
    """
    Outcome of a reconciliation pass.

    Attributes:
        orphaned_files: Keys stored but unreferenced (old enough to act on)
        deleted_files: Keys actually deleted (execute mode only)
        errors: One message per key whose deletion failed
        skipped_files: Unreferenced keys left alone (too young or re-referenced)
        missing_files: Keys referenced by file records but absent from storage
        dry_run: Whether the pass only reported
    """
    orphaned_files: List[str] = field(default_factory=list)
    deleted_files: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)
    missing_files: List[str] = field(default_factory=list)
    dry_run: bool = True

    def to_dict(self) -> dict:
        return {
            "orphaned_files": self.orphaned_files,
            "deleted_files": self.deleted_files,
            "errors": self.errors,
            "skipped_files": self.skipped_files,
            "missing_files": self.missing_files,
            "dry_run": self.dry_run,
        }


class OrphanReconciler:
    """
    Finds and optionally deletes orphaned stored objects.

    Usage:
        >>> reconciler = OrphanReconciler(db_session, storage)
        >>> preview = reconciler.reconcile(dry_run=True)
        >>> result = reconciler.reconcile(dry_run=False)
    """

    def __init__(
        self,
        db: Session,
        storage: ObjectStorage,
        min_age_minutes: int = DEFAULT_MIN_AGE_MINUTES,
    ):
        self.db = db
        self.storage = storage
        self.min_age_minutes = min_age_minutes

    def reconcile(self, dry_run: bool = True) -> CleanupResult:
        """
        Diff storage against file records and delete orphans unless dry_run.

        Args:
            dry_run: Report only, delete nothing

        Returns:
            CleanupResult

        Raises:
            ConflictError: If another pass is already running
            StorageError: If the bucket cannot be listed
        """
        if not _reconcile_lock.acquire(blocking=False):
            logger.warning("Reconciliation already in progress")
            raise ConflictError("Cleanup already in progress")
        try:
            if not self._acquire_database_lock():
                logger.warning("Reconciliation already in progress in another process")
                raise ConflictError("Cleanup already in progress")
            try:
                return self._run(dry_run)
            finally:
                self._release_database_lock()
        finally:
            _reconcile_lock.release()

    def _uses_advisory_lock(self) -> bool:
        return self.db.get_bind().dialect.name == "postgresql"

    def _acquire_database_lock(self) -> bool:
        # Transaction-level lock: the pass only reads, so it holds until
        # _release_database_lock ends the transaction (or the connection drops)
        if not self._uses_advisory_lock():
            return True
        return bool(self.db.execute(
            text("SELECT pg_try_advisory_xact_lock(:lock_id)"),
            {"lock_id": RECONCILE_ADVISORY_LOCK_ID},
        ).scalar())

    def _release_database_lock(self) -> None:
        if self._uses_advisory_lock():
            self.db.rollback()

    def _run(self, dry_run: bool) -> CleanupResult:
        result = CleanupResult(dry_run=dry_run)

        # Referenced keys are read before listing so an upload registered
        # mid-pass is still protected by the re-check or the age guard
        referenced = self._referenced_keys()
        objects = self.storage.list_objects()
        cutoff = datetime.utcnow() - timedelta(minutes=self.min_age_minutes)

        stored_keys: Set[str] = set()
        for obj in objects:
            stored_keys.add(obj.key)
            if obj.key in referenced:
                continue
            if obj.last_modified is None or obj.last_modified > cutoff:
                result.skipped_files.append(obj.key)
                continue
            result.orphaned_files.append(obj.key)

        result.missing_files = sorted(referenced - stored_keys)
        if result.missing_files:
            logger.error(
                f"{len(result.missing_files)} referenced objects missing from storage",
                extra={"missing_files": result.missing_files[:50]}
            )

        if not dry_run:
            for key in result.orphaned_files:
                if self._is_referenced(key):
                    result.skipped_files.append(key)
                    continue
                try:
                    self.storage.delete_object(key)
                    result.deleted_files.append(key)
                except StorageError as e:
                    logger.error(
                        "Failed to delete orphaned object",
                        extra={"storage_key": key, "error": str(e)}
                    )
                    result.errors.append(f"Failed to delete {key}: {e}")

        logger.info(
            "Reconciliation complete",
            extra={
                "dry_run": dry_run,
                "stored": len(objects),
                "referenced": len(referenced),
                "orphaned": len(result.orphaned_files),
                "deleted": len(result.deleted_files),
                "skipped": len(result.skipped_files),
                "missing": len(result.missing_files),
                "errors": len(result.errors),
            }
        )
        return result

    def _referenced_keys(self) -> Set[str]:
        return {key for (key,) in self.db.query(ReleaseFile.storage_key).all()}

    def _is_referenced(self, key: str) -> bool:
        return self.db.query(ReleaseFile.id).filter(
            ReleaseFile.storage_key == key
        ).first() is not None
