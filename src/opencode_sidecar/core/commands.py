"""Command handlers and the dispatch table."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from opencode_sidecar.envelope import field_of
from opencode_sidecar.errors import InvalidArgumentError
from opencode_sidecar.normalize import (
    extract_message_text,
    iso_timestamp,
    message_summary,
    normalize_prompt_parts,
    provider_list_summary,
    session_summary,
    split_model,
    to_ui_providers,
)
from opencode_sidecar.protocol import Command, Request

if TYPE_CHECKING:
    from opencode_sidecar.app.runtime import SidecarContext

Handler: TypeAlias = "Callable[[SidecarContext, Request], Awaitable[Any]]"

UNTITLED_SESSION = "Untitled Session"


def _require_session(request: Request) -> str:
    if not request.session_path:
        raise InvalidArgumentError("sessionPath is required")
    return request.session_path


def _require_provider_method(request: Request) -> tuple[str, int]:
    provider_id = request.arg("providerID")
    method = request.arg("method")
    if not provider_id or not isinstance(provider_id, str) or not isinstance(method, int) or isinstance(method, bool):
        raise InvalidArgumentError("providerID and method are required")
    return provider_id, method


def _providers_payload(raw: Any) -> dict[str, Any]:
    return to_ui_providers(field_of(raw, "providers"), field_of(raw, "default"))


def _prompt_body(request: Request) -> dict[str, Any]:
    message = request.arg("message")
    return {
        "messageID": request.arg("messageID"),
        "model": split_model(request.arg("model")),
        "system": request.arg("system"),
        "parts": normalize_prompt_parts(request.arg("parts"), message if isinstance(message, str) else None),
    }


async def _health(ctx: SidecarContext, request: Request) -> Any:
    health = await ctx.client.call(ctx.service.health, policy=ctx.probe_policy)
    return {"healthy": field_of(health, "healthy"), "version": field_of(health, "version")}


async def _server_info(ctx: SidecarContext, request: Request) -> Any:
    return {"baseUrl": ctx.base_url, "startedAt": ctx.started_at}


async def _config(ctx: SidecarContext, request: Request) -> Any:
    config, providers = await asyncio.gather(
        ctx.client.call(ctx.service.config_get, directory=request.directory),
        ctx.client.call(ctx.service.config_providers, directory=request.directory),
    )
    return {"config": config, **_providers_payload(providers)}


async def _get_providers(ctx: SidecarContext, request: Request) -> Any:
    providers = await ctx.client.call(ctx.service.config_providers, directory=request.directory)
    return _providers_payload(providers)


async def _provider_list(ctx: SidecarContext, request: Request) -> Any:
    providers = await ctx.client.call(ctx.service.provider_list, directory=request.directory)
    return provider_list_summary(providers)


async def _provider_auth(ctx: SidecarContext, request: Request) -> Any:
    methods = await ctx.client.call(ctx.service.provider_auth, directory=request.directory)
    return methods or {}


async def _provider_oauth_authorize(ctx: SidecarContext, request: Request) -> Any:
    provider_id, method = _require_provider_method(request)
    return await ctx.client.call(
        ctx.service.provider_oauth_authorize, provider_id, method, directory=request.directory
    )


async def _provider_oauth_callback(ctx: SidecarContext, request: Request) -> Any:
    provider_id, method = _require_provider_method(request)
    success = await ctx.client.call(
        ctx.service.provider_oauth_callback, provider_id, method, request.arg("code"), directory=request.directory
    )
    return {"success": success}


async def _set_auth(ctx: SidecarContext, request: Request) -> Any:
    provider = request.arg("provider")
    api_key = request.arg("apiKey")
    if not provider or not api_key:
        raise InvalidArgumentError("provider and apiKey are required")
    success = await ctx.client.call(ctx.service.auth_set, provider, {"type": "api", "key": api_key})
    return {"success": success, "provider": provider}


async def _remove_auth(ctx: SidecarContext, request: Request) -> Any:
    provider_id = request.arg("providerID")
    if not provider_id:
        raise InvalidArgumentError("providerID is required")
    success = await ctx.client.call(ctx.service.auth_remove, provider_id)
    return {"success": success}


async def _update_config(ctx: SidecarContext, request: Request) -> Any:
    config = request.arg("config")
    if not isinstance(config, Mapping):
        raise InvalidArgumentError("config is required")
    return await ctx.client.call(ctx.service.global_config_update, dict(config))


async def _dispose(ctx: SidecarContext, request: Request) -> Any:
    return await ctx.client.call(ctx.service.global_dispose)


async def _create_session(ctx: SidecarContext, request: Request) -> Any:
    title = request.arg("name") or request.arg("description") or UNTITLED_SESSION
    session = await ctx.client.call(ctx.service.session_create, title, directory=request.directory)
    return {
        "sessionPath": field_of(session, "id") or field_of(session, "path") or field_of(session, "slug"),
        "session": session_summary(session),
    }


async def _get_session(ctx: SidecarContext, request: Request) -> Any:
    session_path = _require_session(request)
    session = await ctx.client.call(ctx.service.session_get, session_path, directory=request.directory)
    return {"session": session_summary(session)}


async def _list_sessions(ctx: SidecarContext, request: Request) -> Any:
    sessions = await ctx.client.call(ctx.service.session_list, directory=request.directory)
    return {"sessions": [session_summary(session) for session in sessions or ()]}


async def _prompt(ctx: SidecarContext, request: Request) -> Any:
    session_path = _require_session(request)
    result = await ctx.client.call(
        ctx.service.session_prompt, session_path, _prompt_body(request), directory=request.directory
    )
    info = field_of(result, "info")
    return {
        "messageId": field_of(info, "id"),
        "sessionId": field_of(info, "sessionID"),
        "message": request.arg("message"),
        "response": extract_message_text(field_of(result, "parts"), "assistant"),
        "model": request.arg("model"),
        "timestamp": iso_timestamp(),
    }


async def _prompt_async(ctx: SidecarContext, request: Request) -> Any:
    session_path = _require_session(request)
    await ctx.client.call(
        ctx.service.session_prompt_async, session_path, _prompt_body(request), directory=request.directory
    )
    return {"queued": True, "sessionId": session_path}


async def _find_files(ctx: SidecarContext, request: Request) -> Any:
    query = request.arg("query")
    return await ctx.client.call(
        ctx.service.find_files,
        query.strip() if isinstance(query, str) else "",
        dirs=request.arg("dirs"),
        type=request.arg("type"),
        limit=request.arg("limit"),
        directory=request.directory,
    )


async def _list_messages(ctx: SidecarContext, request: Request) -> Any:
    session_path = _require_session(request)
    messages = await ctx.client.call(ctx.service.session_messages, session_path, directory=request.directory)
    return {"messages": [message_summary(message) for message in messages or ()]}


async def _delete_session(ctx: SidecarContext, request: Request) -> Any:
    session_path = _require_session(request)
    success = await ctx.client.call(ctx.service.session_delete, session_path, directory=request.directory)
    return {"success": success, "sessionPath": session_path}


COMMAND_HANDLERS: dict[Command, Handler] = {
    Command.HEALTH: _health,
    Command.SERVER_INFO: _server_info,
    Command.CONFIG: _config,
    Command.CREATE_SESSION: _create_session,
    Command.GET_SESSION: _get_session,
    Command.LIST_SESSIONS: _list_sessions,
    Command.PROMPT: _prompt,
    Command.PROMPT_ASYNC: _prompt_async,
    Command.FIND_FILES: _find_files,
    Command.LIST_MESSAGES: _list_messages,
    Command.DELETE_SESSION: _delete_session,
    Command.SET_AUTH: _set_auth,
    Command.GET_PROVIDERS: _get_providers,
    Command.PROVIDER_LIST: _provider_list,
    Command.PROVIDER_AUTH: _provider_auth,
    Command.PROVIDER_OAUTH_AUTHORIZE: _provider_oauth_authorize,
    Command.PROVIDER_OAUTH_CALLBACK: _provider_oauth_callback,
    Command.REMOVE_AUTH: _remove_auth,
    Command.UPDATE_CONFIG: _update_config,
    Command.DISPOSE: _dispose,
}

_unhandled = set(Command) - COMMAND_HANDLERS.keys()
if _unhandled:  # pragma: no cover - guards edits to Command
    raise RuntimeError(f"commands without handlers: {sorted(_unhandled)}")
