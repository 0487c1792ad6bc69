"""Line-delimited JSON request and response shapes."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, TypeAlias

from opencode_sidecar.errors import ProtocolError


class Command(StrEnum):
    """Every command the dispatcher routes."""

    HEALTH = "health"
    SERVER_INFO = "serverInfo"
    CONFIG = "config"
    CREATE_SESSION = "createSession"
    GET_SESSION = "getSession"
    LIST_SESSIONS = "listSessions"
    PROMPT = "prompt"
    PROMPT_ASYNC = "promptAsync"
    FIND_FILES = "findFiles"
    LIST_MESSAGES = "listMessages"
    DELETE_SESSION = "deleteSession"
    SET_AUTH = "setAuth"
    GET_PROVIDERS = "getProviders"
    PROVIDER_LIST = "providerList"
    PROVIDER_AUTH = "providerAuth"
    PROVIDER_OAUTH_AUTHORIZE = "providerOauthAuthorize"
    PROVIDER_OAUTH_CALLBACK = "providerOauthCallback"
    REMOVE_AUTH = "removeAuth"
    UPDATE_CONFIG = "updateConfig"
    DISPOSE = "dispose"

    @classmethod
    def lookup(cls, name: Any) -> Command | None:
        try:
            return cls(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class Request:
    """One parsed input line."""

    cmd: Any
    session_path: str | None = None
    directory: str | None = None
    args: dict[str, Any] = field(default_factory=dict)

    def arg(self, key: str, default: Any = None) -> Any:
        return self.args.get(key, default)


def parse_request(line: str) -> Request:
    """Parse one input line into a request, splitting common fields off."""

    try:
        payload = json.loads(line)
    except ValueError as exc:
        raise ProtocolError(f"Invalid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise ProtocolError(f"Invalid JSON: expected an object, got {type(payload).__name__}")

    payload = dict(payload)
    cmd = payload.pop("cmd", None)
    session_path = payload.pop("sessionPath", None)
    directory = payload.pop("directory", None)
    return Request(
        cmd=cmd,
        session_path=session_path if isinstance(session_path, str) and session_path else None,
        directory=directory if isinstance(directory, str) and directory else None,
        args=payload,
    )


@dataclass(frozen=True)
class SuccessResponse:
    cmd: str
    data: Any = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "success", "cmd": self.cmd}
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass(frozen=True)
class ErrorResponse:
    message: str
    code: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "error", "message": self.message}
        if self.code is not None:
            payload["code"] = self.code
        return payload


Response: TypeAlias = SuccessResponse | ErrorResponse


def encode_response(response: Response) -> str:
    """Serialize one response as a single JSON line without the newline."""

    return json.dumps(response.to_payload(), ensure_ascii=False, separators=(",", ":"), default=str)
