"""OpenCode sidecar - supervise the server, speak JSON over stdio."""

from .app import SidecarContext, build_context, run_sidecar
from .core import CommandDispatcher
from .launcher import LaunchResult, ServiceLauncher
from .retry import RetryingClient, RetryPolicy

__version__ = "0.1.0"

__all__ = [
    "CommandDispatcher",
    "LaunchResult",
    "RetryPolicy",
    "RetryingClient",
    "ServiceLauncher",
    "SidecarContext",
    "build_context",
    "run_sidecar",
]
