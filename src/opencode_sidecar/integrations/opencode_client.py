"""HTTP client for the OpenCode service API.

Every call returns an envelope, ``{"data": ...}`` on success or
``{"error": ...}`` when the service rejects the request. Transport failures
raise ``httpx.HTTPError`` so callers can retry them.
"""

from __future__ import annotations

from typing import Any, TypeAlias
from urllib.parse import quote

import httpx

DIRECTORY_HEADER = "x-opencode-directory"
USER_AGENT = "opencode-sidecar/0.1"

Envelope: TypeAlias = dict[str, Any]


def _segment(value: str) -> str:
    return quote(value, safe="")


def _compact(payload: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def to_envelope(response: httpx.Response) -> Envelope:
    body = _decode_body(response)
    if response.is_success:
        return {"data": body}
    if isinstance(body, dict) and body:
        return {"error": body}
    message = body if isinstance(body, str) and body else response.reason_phrase
    return {"error": {"name": "HTTPError", "data": {"message": f"HTTP {response.status_code}: {message}"}}}


class OpencodeClient:
    """Thin async wrapper over the service's REST surface."""

    def __init__(
        self,
        base_url: str,
        *,
        directory: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.directory = directory
        headers = {"User-Agent": USER_AGENT}
        if directory:
            headers[DIRECTORY_HEADER] = directory
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        directory: str | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Envelope:
        query = _compact({**(params or {}), "directory": directory})
        response = await self._http.request(method, path, params=query or None, json=json)
        return to_envelope(response)

    # global

    async def health(self) -> Envelope:
        return await self._request("GET", "/global/health")

    async def global_config_update(self, config: dict[str, Any]) -> Envelope:
        return await self._request("PATCH", "/global/config", json=config)

    async def global_dispose(self) -> Envelope:
        return await self._request("POST", "/global/dispose")

    # config and providers

    async def config_get(self, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", "/config", directory=directory)

    async def config_providers(self, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", "/config/providers", directory=directory)

    async def provider_list(self, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", "/provider", directory=directory)

    async def provider_auth(self, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", "/provider/auth", directory=directory)

    async def provider_oauth_authorize(
        self, provider_id: str, method: int, *, directory: str | None = None
    ) -> Envelope:
        return await self._request(
            "POST",
            f"/provider/{_segment(provider_id)}/oauth/authorize",
            directory=directory,
            json={"method": method},
        )

    async def provider_oauth_callback(
        self, provider_id: str, method: int, code: str | None = None, *, directory: str | None = None
    ) -> Envelope:
        return await self._request(
            "POST",
            f"/provider/{_segment(provider_id)}/oauth/callback",
            directory=directory,
            json=_compact({"method": method, "code": code}),
        )

    # auth

    async def auth_set(self, provider_id: str, auth: dict[str, Any]) -> Envelope:
        return await self._request("PUT", f"/auth/{_segment(provider_id)}", json=auth)

    async def auth_remove(self, provider_id: str) -> Envelope:
        return await self._request("DELETE", f"/auth/{_segment(provider_id)}")

    # sessions

    async def session_create(self, title: str, *, directory: str | None = None) -> Envelope:
        return await self._request("POST", "/session", directory=directory, json={"title": title})

    async def session_get(self, session_id: str, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", f"/session/{_segment(session_id)}", directory=directory)

    async def session_list(self, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", "/session", directory=directory)

    async def session_delete(self, session_id: str, *, directory: str | None = None) -> Envelope:
        return await self._request("DELETE", f"/session/{_segment(session_id)}", directory=directory)

    async def session_messages(self, session_id: str, *, directory: str | None = None) -> Envelope:
        return await self._request("GET", f"/session/{_segment(session_id)}/message", directory=directory)

    async def session_prompt(self, session_id: str, body: dict[str, Any], *, directory: str | None = None) -> Envelope:
        return await self._request(
            "POST", f"/session/{_segment(session_id)}/message", directory=directory, json=_compact(body)
        )

    async def session_prompt_async(
        self, session_id: str, body: dict[str, Any], *, directory: str | None = None
    ) -> Envelope:
        return await self._request(
            "POST", f"/session/{_segment(session_id)}/prompt_async", directory=directory, json=_compact(body)
        )

    # files

    async def find_files(
        self,
        query: str,
        *,
        dirs: str | None = None,
        type: str | None = None,  # noqa: A002
        limit: int | None = None,
        directory: str | None = None,
    ) -> Envelope:
        return await self._request(
            "GET",
            "/find/file",
            directory=directory,
            params=_compact({"query": query, "dirs": dirs, "type": type, "limit": limit}),
        )
