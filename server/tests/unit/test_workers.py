"""Unit tests for background workers."""

from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.observability import REGISTRY
from backoffice.models.enums import LedgerKind
from backoffice.services.ledger_service import LedgerService
from backoffice.workers import reconciliation_worker
from backoffice.workers.base import BaseWorker
from backoffice.workers.manager import WorkerManager
from backoffice.workers.reconciliation_worker import ReconciliationWorker


class FlakyWorker(BaseWorker):
    def __init__(self):
        super().__init__(name="Flaky", interval_seconds=60)
        self.fail = True

    async def process(self) -> None:
        if self.fail:
            raise RuntimeError("partner API timeout")


@pytest.mark.asyncio
async def test_failed_run_is_recorded_not_raised():
    worker = FlakyWorker()

    await worker.run_once()
    assert worker.runs == 1
    assert worker.last_error == "partner API timeout"

    worker.fail = False
    await worker.run_once()
    assert worker.runs == 2
    assert worker.last_error is None
    assert worker.status()["last_run_at"] is not None


@pytest.mark.asyncio
async def test_start_and_stop():
    worker = FlakyWorker()
    worker.fail = False

    await worker.start()
    assert worker.is_running

    await worker.stop()
    assert not worker.is_running
    assert worker.status()["running"] is False


def test_manager_registers_workers():
    manager = WorkerManager()

    status = manager.get_worker_status()

    assert set(status) == {"reconciliation", "idempotency_cleanup"}
    assert all(entry["running"] is False for entry in status.values())


@pytest.mark.asyncio
async def test_reconciliation_worker_publishes_drift(test_engine, test_session, agent, monkeypatch):
    """Test a tampered balance is reported as drift on the gauge."""
    entity = await LedgerService(test_session).get_entity(LedgerKind.AGENT, agent.id)
    entity.balance = Decimal("12.50")
    await test_session.commit()

    monkeypatch.setattr(
        reconciliation_worker,
        "async_session_factory",
        async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False),
    )

    worker = ReconciliationWorker(interval_seconds=60)
    await worker.run_once()

    assert worker.last_error is None
    drift = REGISTRY.get_sample_value(
        "backoffice_ledger_drift",
        {"ledger": LedgerKind.AGENT.value, "entity_id": str(agent.id)},
    )
    assert drift == 12.5
