"""Periodic liveness probe against the running service."""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.schedulers.base import BaseScheduler
from loguru import logger

from opencode_sidecar.retry import SINGLE_ATTEMPT_POLICY, Operation, RetryingClient, RetryPolicy

HEALTH_JOB_ID = "sidecar-health"


class HealthMonitor:
    """Run the health call on a fixed interval; failures are only logged."""

    def __init__(
        self,
        client: RetryingClient,
        probe: Operation,
        *,
        interval_seconds: float = 30.0,
        policy: RetryPolicy = SINGLE_ATTEMPT_POLICY,
        scheduler: BaseScheduler | None = None,
    ) -> None:
        self.client = client
        self.probe = probe
        self.interval_seconds = interval_seconds
        self.policy = policy
        self.failures = 0
        self.scheduler = scheduler or AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return bool(self.scheduler.running)

    def start(self) -> None:
        if self.running:
            return
        self.scheduler.add_job(
            self.check,
            "interval",
            seconds=self.interval_seconds,
            id=HEALTH_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        self.scheduler.start()
        logger.info("sidecar.health.start interval={}s", self.interval_seconds)

    def stop(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("sidecar.health.stop failures={}", self.failures)

    async def check(self) -> bool:
        try:
            await self.client.call(self.probe, policy=self.policy)
        except Exception as exc:
            self.failures += 1
            logger.warning("sidecar.health.failed failures={} error={}", self.failures, exc)
            return False
        return True
