"""Sidecar process runtime."""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import AsyncIterable
from contextlib import suppress
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TextIO

from loguru import logger

from opencode_sidecar.app.health import HealthMonitor
from opencode_sidecar.bus import ResponseBus
from opencode_sidecar.config import SidecarSettings
from opencode_sidecar.core.dispatcher import CommandDispatcher
from opencode_sidecar.retry import SINGLE_ATTEMPT_POLICY, RetryingClient, RetryPolicy

if TYPE_CHECKING:
    from opencode_sidecar.launcher import LaunchResult

STDIN_LIMIT = 16 * 1024 * 1024
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class SidecarContext:
    """Everything a command handler needs, built once at startup."""

    settings: SidecarSettings
    base_url: str
    directory: str
    service: Any
    client: RetryingClient
    probe_policy: RetryPolicy
    health_policy: RetryPolicy = SINGLE_ATTEMPT_POLICY
    launch: LaunchResult | None = None
    started_at: int | None = None

    @property
    def launched(self) -> bool:
        return self.launch is not None

    async def close(self) -> None:
        """Stop the launched service, if any, and release the HTTP client."""
        if self.launch is not None:
            self.launch.terminate()
        await self.service.aclose()


async def open_stdin_reader(limit: int = STDIN_LIMIT) -> asyncio.StreamReader:
    loop = asyncio.get_running_loop()
    reader = asyncio.StreamReader(limit=limit)
    await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader), sys.stdin)
    return reader


def _install_signal_handlers(stop: asyncio.Event) -> list[signal.Signals]:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []

    def _on_signal(signum: signal.Signals) -> None:
        logger.info("sidecar.signal received={}, shutting down", signum.name)
        stop.set()

    for signum in SHUTDOWN_SIGNALS:
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(signum, _on_signal, signum)
            installed.append(signum)
    return installed


def _remove_signal_handlers(installed: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for signum in installed:
        loop.remove_signal_handler(signum)


async def run_sidecar(
    settings: SidecarSettings,
    *,
    stdin: AsyncIterable[bytes | str] | None = None,
    stdout: TextIO | None = None,
    context: SidecarContext | None = None,
) -> None:
    """Serve requests until stdin closes or a shutdown signal arrives."""

    from opencode_sidecar.app.bootstrap import build_context

    if context is None:
        context = await build_context(settings)
    bus = ResponseBus(stdout or sys.stdout)
    dispatcher = CommandDispatcher(context, bus)
    monitor = HealthMonitor(
        context.client,
        context.service.health,
        interval_seconds=settings.health_interval_seconds,
        policy=context.health_policy,
    )
    stop = asyncio.Event()
    installed = _install_signal_handlers(stop)

    bus.start()
    monitor.start()
    serve_task: asyncio.Task[None] | None = None
    stop_task = asyncio.create_task(stop.wait())
    try:
        lines = stdin if stdin is not None else await open_stdin_reader()
        logger.info("sidecar.ready base_url={} directory={}", context.base_url, context.directory)
        serve_task = asyncio.create_task(dispatcher.serve(lines))
        await asyncio.wait({serve_task, stop_task}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [task for task in (serve_task, stop_task) if task is not None and not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        dispatcher.cancel_inflight()
        await dispatcher.drain()
        monitor.stop()
        await context.close()
        await bus.close()
        _remove_signal_handlers(installed)
        logger.info("sidecar.stopped")

    if serve_task is not None and serve_task.done() and not serve_task.cancelled():
        serve_task.result()
