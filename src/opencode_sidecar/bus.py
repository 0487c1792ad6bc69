"""Single-writer output channel for protocol responses."""

from __future__ import annotations

import asyncio
from typing import TextIO

from loguru import logger

from opencode_sidecar.protocol import Response, encode_response


class ResponseBus:
    """Queue responses from concurrent handlers and write them from one task.

    Lines never interleave on the stream; their order follows handler
    completion, not request arrival.
    """

    def __init__(self, stream: TextIO) -> None:
        self._stream = stream
        self._queue: asyncio.Queue[Response | None] = asyncio.Queue()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run(), name="sidecar-response-writer")

    async def publish(self, response: Response) -> None:
        await self._queue.put(response)

    async def close(self) -> None:
        """Flush queued responses and stop the writer task."""
        if self._task is None:
            return
        await self._queue.put(None)
        await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            response = await self._queue.get()
            if response is None:
                return
            line = encode_response(response)
            try:
                self._stream.write(line + "\n")
                self._stream.flush()
            except (OSError, ValueError):
                logger.exception("sidecar.write.failed line={}", line)
