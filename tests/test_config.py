from pathlib import Path

import pytest

from opencode_sidecar.app.bootstrap import probe_policy, retry_policy
from opencode_sidecar.config import DEFAULT_FALLBACK_URL, SidecarSettings, load_settings


def test_defaults() -> None:
    settings = SidecarSettings()

    assert settings.port == 0
    assert settings.cli_path == "opencode"
    assert settings.hostname == "127.0.0.1"
    assert settings.fallback_url == DEFAULT_FALLBACK_URL
    assert settings.startup_timeout_seconds == 10.0
    assert settings.health_interval_seconds == 30.0


@pytest.mark.parametrize(("raw", "expected"), [("4100", 4100), (" 4200 ", 4200), ("abc", 0), ("", 0)])
def test_port_from_environment(monkeypatch: pytest.MonkeyPatch, raw: str, expected: int) -> None:
    monkeypatch.setenv("OPENCODE_PORT", raw)
    assert SidecarSettings().port == expected


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENCODE_CLI_PATH", "/opt/opencode/bin/opencode")
    monkeypatch.setenv("OPENCODE_DIRECTORY", "/projects/site")

    settings = SidecarSettings()

    assert settings.cli_path == "/opt/opencode/bin/opencode"
    assert settings.resolve_directory() == "/projects/site"


def test_load_settings_prefers_explicit_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPENCODE_PORT", "4100")

    settings = load_settings(port=5000, hostname=None)

    assert settings.port == 5000
    assert settings.hostname == "127.0.0.1"


def test_directory_skips_tauri_folder(tmp_path: Path) -> None:
    tauri = tmp_path / "src-tauri"
    tauri.mkdir()

    assert SidecarSettings().resolve_directory(tauri) == str(tmp_path)
    assert SidecarSettings().resolve_directory(tmp_path) == str(tmp_path)


def test_policies_follow_settings() -> None:
    settings = SidecarSettings(max_retries=2, retry_delay_seconds=0.5, retry_backoff=3, probe_attempts=4)

    assert retry_policy(settings).schedule() == [0.5, 1.5]
    assert probe_policy(settings).schedule() == [0.25, 0.25, 0.25]
