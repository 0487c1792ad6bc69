from __future__ import annotations

import asyncio
import stat
import sys
from pathlib import Path

import pytest

from opencode_sidecar.errors import LaunchError, LaunchExited, LaunchTimeout
from opencode_sidecar.launcher import ServiceLauncher, resolve_port

pytestmark = pytest.mark.skipif(sys.platform == "win32", reason="uses POSIX shell scripts as the service binary")


def _script(tmp_path: Path, body: str) -> str:
    path = tmp_path / "fake-opencode"
    path.write_text("#!/bin/sh\n" + body + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR)
    return str(path)


@pytest.mark.asyncio
async def test_launch_discovers_url(tmp_path: Path) -> None:
    binary = _script(
        tmp_path,
        'echo "booting"\n'
        'echo "warming up" >&2\n'
        'echo "opencode server listening on http://127.0.0.1:4096"\n'
        'echo "opencode server listening on http://127.0.0.1:9999"\n'
        "exec sleep 30",
    )

    result = await ServiceLauncher(binary).launch(timeout_seconds=5)
    try:
        assert result.url == "http://127.0.0.1:4096"
        assert "booting" in result.output.text()
    finally:
        result.terminate()
        result.terminate()
        await result.process.wait()
    assert result.process.returncode is not None


@pytest.mark.asyncio
async def test_launch_passes_serve_flags(tmp_path: Path) -> None:
    binary = _script(
        tmp_path,
        'echo "args: $*"\necho "opencode server listening on http://0.0.0.0:4100"\nexec sleep 30',
    )

    result = await ServiceLauncher(binary).launch("0.0.0.0", 4100, timeout_seconds=5)
    try:
        assert "args: serve --hostname=0.0.0.0 --port=4100" in result.output.text()
        assert result.url == "http://0.0.0.0:4100"
    finally:
        result.terminate()
        await result.process.wait()


@pytest.mark.asyncio
async def test_launch_times_out_with_output(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "still starting"\nexec sleep 30')

    with pytest.raises(LaunchTimeout) as exc_info:
        await ServiceLauncher(binary).launch(timeout_seconds=0.5)

    assert "still starting" in exc_info.value.output
    assert "still starting" in str(exc_info.value)


@pytest.mark.asyncio
async def test_launch_reports_early_exit(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "config invalid" >&2\nexit 3')

    with pytest.raises(LaunchExited) as exc_info:
        await ServiceLauncher(binary).launch(timeout_seconds=5)

    assert exc_info.value.returncode == 3
    assert "config invalid" in exc_info.value.output
    assert "Server exited with code 3" in str(exc_info.value)


@pytest.mark.asyncio
async def test_launch_reports_exit_while_forked_child_holds_pipes(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "config invalid"\nsleep 20 &\nexit 3')
    loop = asyncio.get_running_loop()
    started = loop.time()

    with pytest.raises(LaunchExited) as exc_info:
        await ServiceLauncher(binary).launch(timeout_seconds=10)

    assert loop.time() - started < 5
    assert exc_info.value.returncode == 3
    assert "config invalid" in exc_info.value.output


@pytest.mark.asyncio
async def test_launch_timeout_reaps_the_process(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    binary = _script(tmp_path, "exec sleep 30")
    spawned: list[asyncio.subprocess.Process] = []
    spawn = asyncio.create_subprocess_exec

    async def _recording_spawn(*args, **kwargs):
        process = await spawn(*args, **kwargs)
        spawned.append(process)
        return process

    monkeypatch.setattr(asyncio, "create_subprocess_exec", _recording_spawn)

    with pytest.raises(LaunchTimeout):
        await ServiceLauncher(binary).launch(timeout_seconds=0.3)

    assert len(spawned) == 1
    assert spawned[0].returncode is not None


@pytest.mark.asyncio
async def test_launch_rejects_unparseable_listening_line(tmp_path: Path) -> None:
    binary = _script(tmp_path, 'echo "opencode server listening somewhere"\nexec sleep 30')

    with pytest.raises(LaunchError, match="Failed to parse server url"):
        await ServiceLauncher(binary).launch(timeout_seconds=5)


@pytest.mark.asyncio
async def test_launch_missing_binary(tmp_path: Path) -> None:
    with pytest.raises(LaunchError, match="Failed to start"):
        await ServiceLauncher(str(tmp_path / "missing")).launch(timeout_seconds=1)


def test_resolve_port_precedence() -> None:
    assert resolve_port(4100, "5000") == 4100
    assert resolve_port(None, "5000") == 5000
    assert resolve_port(None, 5001) == 5001
    assert resolve_port(None, "not-a-port") == 0
    assert resolve_port(None, None) == 0
