"""Runtime bootstrap helpers."""

from __future__ import annotations

import os
import time

from loguru import logger

from opencode_sidecar.app.runtime import SidecarContext
from opencode_sidecar.config import SidecarSettings
from opencode_sidecar.errors import LaunchError
from opencode_sidecar.integrations.opencode_client import OpencodeClient
from opencode_sidecar.launcher import LaunchResult, ServiceLauncher
from opencode_sidecar.retry import RetryingClient, RetryPolicy

CREDENTIAL_ENV_VARS = ("AZURE_RESOURCE_NAME", "AZURE_COGNITIVE_SERVICES_RESOURCE_NAME")


def retry_policy(settings: SidecarSettings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.max_retries,
        delay_seconds=settings.retry_delay_seconds,
        backoff_multiplier=settings.retry_backoff,
    )


def probe_policy(settings: SidecarSettings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.probe_attempts - 1,
        delay_seconds=settings.probe_delay_seconds,
        backoff_multiplier=1.0,
    )


async def launch_service(settings: SidecarSettings, launcher: ServiceLauncher | None = None) -> LaunchResult | None:
    """Start the service, or return None to fall back to ``settings.fallback_url``."""

    if not settings.launch:
        logger.info("sidecar.launch.skipped fallback={}", settings.fallback_url)
        return None
    logger.info("sidecar.env credentials={}", {name: bool(os.environ.get(name)) for name in CREDENTIAL_ENV_VARS})
    launcher = launcher or ServiceLauncher(settings.cli_path, port=settings.port)
    try:
        return await launcher.launch(settings.hostname, timeout_seconds=settings.startup_timeout_seconds)
    except LaunchError as exc:
        logger.warning("sidecar.launch.failed, using existing server at {}: {}", settings.fallback_url, exc)
        return None


async def build_context(settings: SidecarSettings, *, launcher: ServiceLauncher | None = None) -> SidecarContext:
    """Launch (or fall back) and build the context shared by every handler."""

    launch = await launch_service(settings, launcher)
    base_url = launch.url if launch is not None else settings.fallback_url
    directory = settings.resolve_directory()
    service = OpencodeClient(base_url, directory=directory, timeout=settings.request_timeout_seconds)
    logger.info("sidecar.client.ready base_url={} directory={}", base_url, directory)
    return SidecarContext(
        settings=settings,
        base_url=base_url,
        directory=directory,
        service=service,
        client=RetryingClient(retry_policy(settings)),
        probe_policy=probe_policy(settings),
        launch=launch,
        started_at=int(time.time() * 1000) if launch is not None else None,
    )
