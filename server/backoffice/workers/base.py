"""Base worker class for periodic back-office jobs."""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """
    Abstract base class for periodic background jobs.

    ``process`` runs every ``interval_seconds``. A failing run is logged,
    remembered in ``last_error`` and retried on the next tick; it never
    stops the loop.
    """

    def __init__(self, name: str, interval_seconds: int = 60):
        self.name = name
        self.interval_seconds = interval_seconds
        self.runs = 0
        self.last_run_at: Optional[datetime] = None
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @abstractmethod
    async def process(self) -> None:
        """Do one unit of work."""

    async def run_once(self) -> None:
        """Run ``process`` once and record the outcome."""
        started = time.monotonic()
        try:
            await self.process()
        except Exception as e:
            self.last_error = str(e)
            logger.error(
                f"{self.name} worker run failed",
                exc_info=True,
                extra={"worker": self.name, "error": str(e)}
            )
        else:
            self.last_error = None
            logger.debug(
                f"{self.name} worker run completed",
                extra={"worker": self.name, "duration_seconds": round(time.monotonic() - started, 3)}
            )
        finally:
            self.runs += 1
            self.last_run_at = datetime.utcnow()

    async def start(self) -> None:
        if self.is_running:
            logger.warning(f"{self.name} worker is already running")
            return

        self._task = asyncio.create_task(self._loop(), name=f"worker:{self.name}")
        logger.info(f"{self.name} worker started with {self.interval_seconds}s interval")

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        if not self.is_running:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

        logger.info(f"{self.name} worker stopped")

    async def _loop(self) -> None:
        while True:
            started = time.monotonic()
            await self.run_once()
            await asyncio.sleep(max(0.0, self.interval_seconds - (time.monotonic() - started)))

    def status(self) -> dict[str, Any]:
        return {
            "running": self.is_running,
            "interval_seconds": self.interval_seconds,
            "runs": self.runs,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_error": self.last_error,
        }
