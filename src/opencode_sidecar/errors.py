"""Application-level exception types for the sidecar."""

from __future__ import annotations

from typing import Any


class SidecarError(Exception):
    """Base exception for the sidecar; ``code`` is reported on the protocol."""

    code = "UNKNOWN_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ProtocolError(SidecarError):
    """Raised when an input line is not a JSON request object."""

    code = "PARSE_ERROR"


class UnknownCommandError(SidecarError):
    """Raised when a request names a command outside the dispatch table."""

    code = "UNKNOWN_CMD"


class InvalidArgumentError(SidecarError):
    """Raised when a handler is missing a required correlating field."""

    code = "INVALID_ARGUMENT"


class DownstreamError(SidecarError):
    """Raised when the service answers with an error envelope."""

    def __init__(self, message: str, *, error: Any = None, name: str | None = None) -> None:
        super().__init__(message)
        self.error = error
        self.name = name


class LaunchError(SidecarError):
    """Base exception for service launch failures."""

    code = "LAUNCH_FAILED"

    def __init__(self, message: str, *, output: str = "") -> None:
        super().__init__(message)
        self.output = output


class LaunchTimeout(LaunchError):
    """Raised when no listening line appears before the startup deadline."""

    def __init__(self, timeout_seconds: float, *, output: str = "") -> None:
        message = f"Timeout waiting for server to start after {timeout_seconds:g}s"
        if output.strip():
            message += f"\nServer output: {output}"
        super().__init__(message, output=output)
        self.timeout_seconds = timeout_seconds


class LaunchExited(LaunchError):
    """Raised when the service exits before announcing its address."""

    def __init__(self, returncode: int | None, *, output: str = "") -> None:
        message = f"Server exited with code {returncode}"
        if output.strip():
            message += f"\nServer output: {output}"
        super().__init__(message, output=output)
        self.returncode = returncode
