"""Background worker for ledger reconciliation."""

import logging

from ..core.database import async_session_factory
from ..core.observability import metrics_collector
from ..services.ledger_service import LedgerService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class ReconciliationWorker(BaseWorker):
    """
    Background worker that compares entity balances with their transactions.

    Publishes the drift of every agent and partner as a gauge so that a
    balance edited outside the ledger shows up on dashboards. It never
    corrects balances itself.
    """

    def __init__(self, interval_seconds: int = 900):
        """
        Initialize the reconciliation worker.

        Args:
            interval_seconds: How often to reconcile (default: 900s)
        """
        super().__init__(name="Reconciliation", interval_seconds=interval_seconds)

    async def process(self) -> None:
        """Reconcile all agents and partners."""
        async with async_session_factory() as db:
            reports = await LedgerService(db).reconcile_all()

        inconsistent = 0
        for report in reports:
            metrics_collector.set_ledger_drift(
                report.entity_type.ledger.value,
                report.entity_id,
                float(report.drift),
            )
            if not report.is_consistent:
                inconsistent += 1

        if inconsistent:
            logger.warning(
                f"Found {inconsistent} inconsistent ledger balances",
                extra={
                    "checked_count": len(reports),
                    "inconsistent_count": inconsistent,
                    "worker": self.name,
                }
            )
