from __future__ import annotations

import inspect
from collections.abc import Callable
from typing import Any

import pytest

from opencode_sidecar.app.runtime import SidecarContext
from opencode_sidecar.config import SidecarSettings
from opencode_sidecar.retry import RetryingClient, RetryPolicy


class FakeService:
    """Stand-in for the HTTP client; every method returns a canned envelope."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self.closed = False

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)

        async def operation(*args: Any, **kwargs: Any) -> Any:
            self.calls.append((name, args, kwargs))
            result = self.responses.get(name, {"data": None})
            if isinstance(result, BaseException):
                raise result
            if callable(result):
                result = result(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
            return result

        operation.__name__ = name
        return operation

    def called(self, name: str) -> list[tuple[tuple[Any, ...], dict[str, Any]]]:
        return [(args, kwargs) for called, args, kwargs in self.calls if called == name]

    async def aclose(self) -> None:
        self.closed = True


async def no_sleep(_delay: float) -> None:
    return None


def make_context(service: Any, *, policy: RetryPolicy | None = None) -> SidecarContext:
    return SidecarContext(
        settings=SidecarSettings(launch=False, health_interval_seconds=3600),
        base_url="http://127.0.0.1:4096",
        directory="/work",
        service=service,
        client=RetryingClient(policy or RetryPolicy(max_retries=0, delay_seconds=0), sleep=no_sleep),
        probe_policy=RetryPolicy(max_retries=2, delay_seconds=0, backoff_multiplier=1.0),
    )


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    for name in ("PORT", "CLI_PATH", "DIRECTORY", "LAUNCH", "FALLBACK_URL", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"OPENCODE_{name}", raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def service() -> FakeService:
    return FakeService()


@pytest.fixture
def context(service: FakeService) -> SidecarContext:
    return make_context(service)
