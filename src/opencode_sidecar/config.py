"""Configuration management for the sidecar."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_FALLBACK_URL = "http://127.0.0.1:4096"
TAURI_DIR_NAME = "src-tauri"


class SidecarSettings(BaseSettings):
    """Sidecar settings, read from ``OPENCODE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OPENCODE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Service launch
    cli_path: str = Field(default="opencode", description="Service binary, resolved via PATH when bare")
    hostname: str = Field(default="127.0.0.1", description="Hostname passed to the service")
    port: int = Field(default=0, description="Explicit port; 0 lets the OS assign one")
    startup_timeout_seconds: float = Field(default=10.0, description="Deadline for address discovery")
    launch: bool = Field(default=True, description="Spawn the service instead of using the fallback URL")
    fallback_url: str = Field(default=DEFAULT_FALLBACK_URL, description="Base URL used when launch fails")
    directory: str | None = Field(default=None, description="Working directory sent to the service")

    # Downstream calls
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base delay between attempts")
    retry_backoff: float = Field(default=2.0, ge=1, description="Delay multiplier per attempt")
    probe_attempts: int = Field(default=10, ge=1, description="Attempts for the startup health probe")
    probe_delay_seconds: float = Field(default=0.25, ge=0, description="Fixed delay for the health probe")
    request_timeout_seconds: float | None = Field(default=None, description="Optional per-request HTTP timeout")
    health_interval_seconds: float = Field(default=30.0, gt=0, description="Liveness probe interval")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(default="text", description="Log format (text or json)")

    @field_validator("port", mode="before")
    @classmethod
    def _coerce_port(cls, value: Any) -> int:
        if isinstance(value, bool):
            return 0
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip(), 10)
        except (TypeError, ValueError):
            return 0

    def resolve_directory(self, cwd: Path | None = None) -> str:
        """Directory forwarded to the service for every call."""
        if self.directory:
            return self.directory
        cwd = cwd or Path.cwd()
        if cwd.name == TAURI_DIR_NAME:
            return str(cwd.parent)
        return str(cwd)


def load_settings(**overrides: Any) -> SidecarSettings:
    """Load settings from the environment, applying non-None overrides."""

    updates = {key: value for key, value in overrides.items() if value is not None}
    return SidecarSettings(**updates)
