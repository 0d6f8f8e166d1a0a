"""Background workers for the travel back-office."""

from .idempotency_cleanup_worker import IdempotencyCleanupWorker
from .reconciliation_worker import ReconciliationWorker

__all__ = ["IdempotencyCleanupWorker", "ReconciliationWorker"]
