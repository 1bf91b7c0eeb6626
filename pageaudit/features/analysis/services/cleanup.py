"""
Retention cleanup for finished analyses.

Anonymous runs are kept for ANONYMOUS_ANALYSIS_RETENTION_DAYS and runs owned
by a user for ANALYSIS_RETENTION_DAYS. Stored objects are kept only while
their run is still executing.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.orm import Session

from pageaudit.features.analysis.services import repository
from pageaudit.platform.config import settings
from pageaudit.platform.storage import LocalObjectStorage

logger = logging.getLogger(__name__)


class AnalysisCleanup:
    def __init__(
        self,
        db: Session,
        storage: Optional[LocalObjectStorage] = None,
        anonymous_retention_days: Optional[int] = None,
        retention_days: Optional[int] = None,
    ):
        self.db = db
        self.storage = storage or LocalObjectStorage()
        self.anonymous_retention_days = anonymous_retention_days or settings.ANONYMOUS_ANALYSIS_RETENTION_DAYS
        self.retention_days = retention_days or settings.ANALYSIS_RETENTION_DAYS

    def purge_expired(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or datetime.utcnow()
        anonymous = repository.expired_analysis_ids(
            self.db, now - timedelta(days=self.anonymous_retention_days), anonymous_only=True
        )
        expired = repository.expired_analysis_ids(self.db, now - timedelta(days=self.retention_days))

        deleted = repository.purge_analyses(self.db, anonymous + expired)
        storage_deleted = self.purge_orphaned_storage()

        logger.info(
            f"Cleanup removed {deleted} analyses ({len(anonymous)} anonymous) "
            f"and {storage_deleted} storage prefixes"
        )
        return {
            "analyses_deleted": deleted,
            "anonymous_deleted": len(anonymous),
            "storage_deleted": storage_deleted,
        }

    def purge_orphaned_storage(self) -> int:
        """Remove stored objects of runs that are finished or no longer exist."""
        prefixes = self.storage.list_prefixes()
        executing = repository.executing_analysis_ids(self.db, prefixes)

        removed = 0
        for prefix in prefixes:
            if prefix in executing:
                continue
            try:
                if self.storage.delete_prefix(prefix):
                    removed += 1
            except OSError as e:
                logger.error(f"Could not remove storage prefix {prefix}: {e}")
        return removed
