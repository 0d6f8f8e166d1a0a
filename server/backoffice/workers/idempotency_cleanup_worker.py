"""Background worker for purging expired idempotency records."""

import logging

from ..core.database import async_session_factory
from ..services.idempotency_service import IdempotencyService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class IdempotencyCleanupWorker(BaseWorker):
    """Background worker that deletes idempotency records past their TTL."""

    def __init__(self, interval_seconds: int = 3600):
        super().__init__(name="IdempotencyCleanup", interval_seconds=interval_seconds)

    async def process(self) -> None:
        """Delete expired idempotency records."""
        async with async_session_factory() as db:
            try:
                await IdempotencyService(db).cleanup_expired_records()
            except Exception as e:
                await db.rollback()
                logger.error(
                    f"Error cleaning up idempotency records: {e!s}",
                    exc_info=True,
                    extra={"worker": self.name}
                )
                raise
