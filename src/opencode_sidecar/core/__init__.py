"""Command routing core."""

from opencode_sidecar.core.commands import COMMAND_HANDLERS
from opencode_sidecar.core.dispatcher import CommandDispatcher, error_response

__all__ = ["COMMAND_HANDLERS", "CommandDispatcher", "error_response"]
