import asyncio

import pytest

from conftest import FakeService, no_sleep
from opencode_sidecar.app.health import HEALTH_JOB_ID, HealthMonitor
from opencode_sidecar.retry import RetryingClient


@pytest.mark.asyncio
async def test_check_logs_failures_and_keeps_going() -> None:
    service = FakeService({"health": ConnectionError("refused")})
    monitor = HealthMonitor(RetryingClient(sleep=no_sleep), service.health)

    assert await monitor.check() is False
    assert await monitor.check() is False
    assert monitor.failures == 2
    assert len(service.called("health")) == 2


@pytest.mark.asyncio
async def test_check_is_a_single_attempt() -> None:
    service = FakeService({"health": {"error": {"name": "Unavailable"}}})
    monitor = HealthMonitor(RetryingClient(sleep=no_sleep), service.health)

    assert await monitor.check() is False
    assert len(service.called("health")) == 1


@pytest.mark.asyncio
async def test_check_success() -> None:
    service = FakeService({"health": {"data": {"healthy": True}}})
    monitor = HealthMonitor(RetryingClient(sleep=no_sleep), service.health)

    assert await monitor.check() is True
    assert monitor.failures == 0


@pytest.mark.asyncio
async def test_start_schedules_interval_job_until_stopped() -> None:
    service = FakeService({"health": {"data": {"healthy": True}}})
    monitor = HealthMonitor(RetryingClient(sleep=no_sleep), service.health, interval_seconds=0.05)

    monitor.start()
    monitor.start()
    try:
        assert monitor.running
        assert monitor.scheduler.get_job(HEALTH_JOB_ID) is not None
        for _ in range(100):
            if service.called("health"):
                break
            await asyncio.sleep(0.02)
    finally:
        monitor.stop()

    assert service.called("health")
    assert not monitor.running
