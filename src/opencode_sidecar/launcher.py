"""Launch the service binary and discover its listening address."""

from __future__ import annotations

import asyncio
import os
import re
from collections import deque
from collections.abc import Mapping
from contextlib import suppress
from dataclasses import dataclass, field

from loguru import logger

from opencode_sidecar.errors import LaunchError, LaunchExited, LaunchTimeout

LISTENING_PREFIX = "opencode server listening"
URL_PATTERN = re.compile(r"on\s+(https?://\S+)")
MAX_OUTPUT_LINES = 500
EXIT_DRAIN_SECONDS = 0.5
REAP_TIMEOUT_SECONDS = 2.0


def resolve_port(port: int | None = None, configured: object = None) -> int:
    """Pick the port to bind: explicit value, then configured value, then 0."""

    if isinstance(port, int) and not isinstance(port, bool):
        return port
    if isinstance(configured, int) and not isinstance(configured, bool):
        return configured
    if isinstance(configured, str):
        with suppress(ValueError):
            return int(configured.strip(), 10)
    return 0


class OutputBuffer:
    """Combined stdout/stderr transcript kept for diagnostics."""

    def __init__(self, max_lines: int = MAX_OUTPUT_LINES) -> None:
        self._lines: deque[str] = deque(maxlen=max_lines)

    def append(self, line: str) -> None:
        self._lines.append(line)

    def text(self) -> str:
        return "".join(self._lines)


@dataclass
class LaunchResult:
    """A running service and the address it announced."""

    url: str
    process: asyncio.subprocess.Process
    output: OutputBuffer
    _drains: list[asyncio.Task[None]] = field(default_factory=list, repr=False)
    _terminated: bool = field(default=False, repr=False)

    @property
    def pid(self) -> int:
        return self.process.pid

    def terminate(self) -> None:
        """Signal the service to stop; later calls do nothing."""
        if self._terminated:
            return
        self._terminated = True
        if self.process.returncode is not None:
            return
        logger.info("sidecar.launch.terminate pid={}", self.process.pid)
        with suppress(ProcessLookupError):
            self.process.terminate()


class ServiceLauncher:
    """Spawn ``<binary> serve`` and wait for its listening line."""

    def __init__(self, binary: str = "opencode", *, env: Mapping[str, str] | None = None, port: object = None) -> None:
        self.binary = binary
        self.env = dict(env) if env is not None else None
        self.configured_port = port

    def command(self, hostname: str, port: int) -> list[str]:
        return [self.binary, "serve", f"--hostname={hostname}", f"--port={port}"]

    async def launch(
        self, hostname: str = "127.0.0.1", port: int | None = None, timeout_seconds: float = 10.0
    ) -> LaunchResult:
        port = resolve_port(port, self.configured_port)
        argv = self.command(hostname, port)
        logger.info("sidecar.launch.start binary={} hostname={} port={}", self.binary, hostname, port)
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env={**os.environ, **(self.env or {})},
            )
        except OSError as exc:
            raise LaunchError(f"Failed to start {self.binary}: {exc}") from exc

        output = OutputBuffer()
        discovered: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        stdout_task = asyncio.create_task(self._drain_stdout(process, output, discovered))
        stderr_task = asyncio.create_task(self._drain(process.stderr, output))
        exit_task = asyncio.create_task(self._watch_exit(process, output, discovered, [stdout_task, stderr_task]))
        drains = [stdout_task, stderr_task, exit_task]

        try:
            async with asyncio.timeout(timeout_seconds):
                url = await asyncio.shield(discovered)
        except TimeoutError:
            await self._abort(process, drains)
            raise LaunchTimeout(timeout_seconds, output=output.text()) from None
        except LaunchError:
            await self._abort(process, drains)
            raise

        logger.info("sidecar.launch.ready url={} pid={}", url, process.pid)
        return LaunchResult(url=url, process=process, output=output, _drains=drains)

    @staticmethod
    async def _drain(stream: asyncio.StreamReader | None, output: OutputBuffer) -> None:
        if stream is None:
            return
        async for raw in stream:
            output.append(raw.decode("utf-8", errors="replace"))

    @staticmethod
    async def _drain_stdout(
        process: asyncio.subprocess.Process, output: OutputBuffer, discovered: asyncio.Future[str]
    ) -> None:
        if process.stdout is None:
            return
        async for raw in process.stdout:
            line = raw.decode("utf-8", errors="replace")
            output.append(line)
            if discovered.done() or not line.startswith(LISTENING_PREFIX):
                continue
            match = URL_PATTERN.search(line)
            if match is None:
                discovered.set_exception(LaunchError(f"Failed to parse server url from output: {line.strip()}"))
            else:
                discovered.set_result(match.group(1))

    @staticmethod
    async def _watch_exit(
        process: asyncio.subprocess.Process,
        output: OutputBuffer,
        discovered: asyncio.Future[str],
        streams: list[asyncio.Task[None]],
    ) -> None:
        returncode = await process.wait()
        # A forked child may keep the pipes open after the service itself exits.
        _, pending = await asyncio.wait(streams, timeout=EXIT_DRAIN_SECONDS)
        for task in pending:
            task.cancel()
        if not discovered.done():
            discovered.set_exception(LaunchExited(returncode, output=output.text()))
        else:
            logger.info("sidecar.service.exited code={}", returncode)

    @staticmethod
    async def _abort(process: asyncio.subprocess.Process, drains: list[asyncio.Task[None]]) -> None:
        if process.returncode is None:
            with suppress(ProcessLookupError):
                process.kill()
        for task in drains:
            task.cancel()
        await asyncio.gather(*drains, return_exceptions=True)
        with suppress(TimeoutError):
            async with asyncio.timeout(REAP_TIMEOUT_SECONDS):
                await process.wait()
