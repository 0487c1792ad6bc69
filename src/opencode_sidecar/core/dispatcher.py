"""Route protocol requests to command handlers."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, Mapping
from typing import TYPE_CHECKING

from loguru import logger

from opencode_sidecar.core.commands import COMMAND_HANDLERS, Handler
from opencode_sidecar.errors import ProtocolError, SidecarError, UnknownCommandError
from opencode_sidecar.protocol import Command, ErrorResponse, Response, SuccessResponse, parse_request

if TYPE_CHECKING:
    from opencode_sidecar.app.runtime import SidecarContext
    from opencode_sidecar.bus import ResponseBus

DEFAULT_ERROR_CODE = "UNKNOWN_ERROR"


def error_response(exc: BaseException) -> ErrorResponse:
    """Convert any handler failure into a protocol error."""

    code = getattr(exc, "code", None)
    message = str(exc) or type(exc).__name__
    return ErrorResponse(message=message, code=code if isinstance(code, str) and code else DEFAULT_ERROR_CODE)


class CommandDispatcher:
    """Read request lines and answer each with exactly one response.

    Each line is handled in its own task, so slow commands do not block
    later ones and responses may leave in a different order than requests
    arrived.
    """

    def __init__(
        self,
        context: SidecarContext,
        bus: ResponseBus,
        *,
        handlers: Mapping[Command, Handler] = COMMAND_HANDLERS,
    ) -> None:
        self.context = context
        self.bus = bus
        self._handlers = dict(handlers)
        self._inflight: set[asyncio.Task[Response]] = set()

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def dispatch_line(self, line: str) -> Response:
        """Handle one line and publish its response."""
        response = await self._respond(line)
        await self.bus.publish(response)
        return response

    async def _respond(self, line: str) -> Response:
        try:
            request = parse_request(line)
        except ProtocolError as exc:
            logger.warning("sidecar.request.invalid error={}", exc)
            return error_response(exc)

        command = Command.lookup(request.cmd)
        handler = self._handlers.get(command) if command is not None else None
        if command is None or handler is None:
            return error_response(UnknownCommandError(f"Unknown command: {request.cmd}"))

        with logger.contextualize(cmd=command.value):
            logger.debug(
                "sidecar.request session={} directory={} args={}",
                request.session_path,
                request.directory,
                sorted(request.args),
            )
            try:
                data = await handler(self.context, request)
            except SidecarError as exc:
                logger.warning("sidecar.command.rejected code={} error={}", exc.code, exc)
                return error_response(exc)
            except Exception as exc:
                logger.exception("sidecar.command.failed error={}", exc)
                return error_response(exc)
            logger.debug("sidecar.response ok")
        return SuccessResponse(cmd=command.value, data=data)

    def submit(self, line: str) -> asyncio.Task[Response]:
        """Schedule one line without waiting for its response."""
        task = asyncio.create_task(self.dispatch_line(line))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task

    async def serve(self, lines: AsyncIterable[bytes | str]) -> None:
        """Dispatch every line until the input ends."""

        async for raw in lines:
            line = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            self.submit(line.rstrip("\r\n"))
        logger.info("sidecar.input.closed inflight={}", self.inflight)
        await self.drain()

    def cancel_inflight(self) -> None:
        for task in list(self._inflight):
            task.cancel()

    async def drain(self) -> None:
        """Wait for commands still in flight."""
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)
