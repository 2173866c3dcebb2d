"""
Row-level cleanup and batch counter reconciliation.
"""

from typing import Optional
from datetime import datetime, timedelta

from modules.generation.config import GenerationConfig, get_generation_config
from modules.generation.storage.job_storage import IGenerationStore, utcnow
from shared.utils.logger import setup_logger

logger = setup_logger(__name__)


class DocumentCleanupScheduler:
    """
    Removes expired generation jobs and old documents, and keeps batch
    counters in line with their member requests.
    """

    def __init__(self, store: IGenerationStore, config: Optional[GenerationConfig] = None):
        self.store = store
        self.config = config or get_generation_config()

    async def cleanup_expired_jobs(self, now: Optional[datetime] = None) -> int:
        """Delete terminal requests past their expires_at, with their items."""
        deleted = await self.store.delete_expired_requests(now or utcnow())
        logger.info(f"Cleaned up {deleted} expired generation jobs")
        return deleted

    async def cleanup_old_documents(self, now: Optional[datetime] = None) -> int:
        """Delete documents older than the document retention window."""
        cutoff = (now or utcnow()) - timedelta(days=self.config.document_retention_days)
        deleted = await self.store.delete_documents_created_before(cutoff)
        logger.info(f"Cleaned up {deleted} old documents (older than {self.config.document_retention_days} days)")
        return deleted

    async def run(self, now: Optional[datetime] = None) -> None:
        await self.cleanup_expired_jobs(now)
        await self.cleanup_old_documents(now)

    async def reconcile_batches(self) -> int:
        """Recompute counters of batches that have not completed yet."""
        refreshed = await self.store.reconcile_batches()
        if refreshed:
            logger.debug(f"Reconciled {refreshed} unfinished batch(es)")
        return refreshed
