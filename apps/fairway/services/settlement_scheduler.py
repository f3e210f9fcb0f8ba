"""
Settlement scheduler: runs a settlement sweep on a fixed interval.

Background worker for deployments without an external scheduler. Each tick
runs one full sweep; overlapping sweeps from other processes are safe because
tournaments are claimed with a compare-and-swap.
"""

import asyncio
import contextlib
import logging
from typing import Callable, Optional

from fairway.models.schemas import SweepSummary
from fairway.services.settlement_service import SettlementService
from fairway.utils.constants import POLL_INTERVAL_SECONDS

logger = logging.getLogger(__name__)


class SettlementScheduler:
    """Background service that periodically settles finished tournaments."""

    def __init__(
        self,
        service_factory: Callable[[], SettlementService],
        poll_interval_seconds: int = POLL_INTERVAL_SECONDS,
    ):
        self._service_factory = service_factory
        self._poll_interval_seconds = poll_interval_seconds
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self.last_summary: Optional[SweepSummary] = None

    @property
    def running(self) -> bool:
        return self._worker_task is not None and not self._worker_task.done()

    def start(self) -> None:
        """Start the background settlement worker."""
        if not self.running:
            self._stop_event.clear()
            self._worker_task = asyncio.create_task(self._poll_loop())
            logger.info(
                f"Settlement worker started (interval {self._poll_interval_seconds}s)"
            )

    def stop(self) -> None:
        """Stop the background settlement worker."""
        self._stop_event.set()
        if self._worker_task and not self._worker_task.done():
            self._worker_task.cancel()
            logger.info("Settlement worker stopped")

    async def shutdown(self) -> None:
        """Stop the worker and wait until its task has finished."""
        self.stop()
        if self._worker_task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker_task

    async def run_once(self) -> SweepSummary:
        """Run a single sweep and remember its summary."""
        service = self._service_factory()
        self.last_summary = await service.run_sweep()
        return self.last_summary

    async def _poll_loop(self) -> None:
        """Main loop: run a sweep, then sleep. Repeats until stopped."""
        while not self._stop_event.is_set():
            try:
                await self.run_once()
            except Exception as e:
                logger.error(f"Error in settlement worker: {e}", exc_info=True)

            # Wait for poll interval or until stop is signalled
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self._poll_interval_seconds
                )
                # If wait_for returns normally, stop_event was set → exit
                break
            except asyncio.TimeoutError:
                # Timeout means interval elapsed, loop again
                pass
