"""
Tests for the periodic settlement worker.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from fairway.api.main import app, lifespan
from fairway.database.models import TournamentStatus
from fairway.models.schemas import SweepSummary
from fairway.services.settlement_scheduler import SettlementScheduler
from fairway.services.settings_service import SettlementSettings
from fairway.services.settlement_service import SettlementService


@pytest.fixture
def service_factory(gateway, settings, clock):
    return lambda: SettlementService(gateway, settings, clock=clock)


@pytest.mark.asyncio
async def test_run_once_settles_and_keeps_summary(store, service_factory):
    store.add_tournament("t1")
    scheduler = SettlementScheduler(service_factory, poll_interval_seconds=3600)

    summary = await scheduler.run_once()

    assert summary.succeeded == 1
    assert scheduler.last_summary is summary
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED


@pytest.mark.asyncio
async def test_start_runs_a_sweep_and_stop_ends_worker(store, service_factory):
    store.add_tournament("t1")
    scheduler = SettlementScheduler(service_factory, poll_interval_seconds=3600)

    scheduler.start()
    await asyncio.sleep(0.05)

    assert scheduler.running is True
    assert scheduler.last_summary is not None
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED

    scheduler.stop()
    await asyncio.sleep(0.05)
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_start_is_idempotent(service_factory):
    scheduler = SettlementScheduler(service_factory, poll_interval_seconds=3600)

    scheduler.start()
    first_task = scheduler._worker_task
    scheduler.start()

    assert scheduler._worker_task is first_task
    scheduler.stop()
    await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_worker_survives_failing_sweep(store, gateway, settings, clock):
    store.add_tournament("t1")
    attempts = []

    def flaky_factory():
        attempts.append(1)
        if len(attempts) == 1:
            raise RuntimeError("database unavailable")
        return SettlementService(gateway, settings, clock=clock)

    scheduler = SettlementScheduler(flaky_factory, poll_interval_seconds=0)
    scheduler.start()
    await asyncio.sleep(0.05)
    scheduler.stop()
    await asyncio.sleep(0.05)

    assert len(attempts) >= 2
    assert scheduler.last_summary is not None
    assert store.tournaments["t1"].status == TournamentStatus.FINISHED


@pytest.mark.asyncio
async def test_each_run_uses_a_fresh_service():
    services = []

    def factory():
        service = MagicMock()
        service.run_sweep = AsyncMock(return_value=SweepSummary(tournaments_found=len(services)))
        services.append(service)
        return service

    scheduler = SettlementScheduler(factory, poll_interval_seconds=3600)
    await scheduler.run_once()
    summary = await scheduler.run_once()

    assert len(services) == 2
    services[1].run_sweep.assert_awaited_once()
    assert summary.tournaments_found == 1


def _blocking_factory(started: asyncio.Event):
    """Factory for services whose sweep never finishes on its own."""

    async def hang():
        started.set()
        await asyncio.Event().wait()

    def factory():
        service = MagicMock()
        service.run_sweep = AsyncMock(side_effect=hang)
        return service

    return factory


@pytest.mark.asyncio
async def test_shutdown_waits_for_cancelled_sweep():
    started = asyncio.Event()
    scheduler = SettlementScheduler(_blocking_factory(started), poll_interval_seconds=3600)

    scheduler.start()
    await asyncio.wait_for(started.wait(), timeout=1)
    task = scheduler._worker_task
    await scheduler.shutdown()

    assert task.done()
    assert task.cancelled()
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_shutdown_without_start_is_a_no_op(service_factory):
    scheduler = SettlementScheduler(service_factory, poll_interval_seconds=3600)
    await scheduler.shutdown()
    assert scheduler.running is False


@pytest.mark.asyncio
async def test_lifespan_stops_worker_before_disposing_engine():
    started = asyncio.Event()
    scheduler = SettlementScheduler(_blocking_factory(started), poll_interval_seconds=3600)
    running_at_dispose = []

    async def dispose():
        running_at_dispose.append(scheduler.running)

    with patch("fairway.api.main.db") as mock_db, \
         patch("fairway.api.main.load_settings", return_value=SettlementSettings(scheduler_enabled=True)), \
         patch("fairway.api.main.build_scheduler", return_value=scheduler):
        mock_db.init_database = AsyncMock()
        mock_db.engine.dispose = AsyncMock(side_effect=dispose)

        async with lifespan(app):
            await asyncio.wait_for(started.wait(), timeout=1)
            assert scheduler.running is True

    assert running_at_dispose == [False]
    assert scheduler._worker_task.cancelled()
