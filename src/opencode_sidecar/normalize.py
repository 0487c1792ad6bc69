"""Pure helpers that reshape service payloads for the UI."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from opencode_sidecar.envelope import field_of

ASSISTANT_ROLE = "assistant"


def _is_visible_text(part: Any) -> bool:
    return (
        field_of(part, "type") == "text"
        and isinstance(field_of(part, "text"), str)
        and not field_of(part, "synthetic")
        and not field_of(part, "ignored")
    )


def extract_message_text(parts: Sequence[Any] | None, role: str | None = None) -> str:
    """Extract the display text of one conversational turn.

    Only non-synthetic, non-ignored ``text`` parts count. Assistant turns
    surface their last text part; every other role surfaces the longest one,
    the first of equal length winning.
    """

    candidates = [part for part in parts or () if _is_visible_text(part)]
    if not candidates:
        return ""
    if role == ASSISTANT_ROLE:
        chosen = candidates[-1]
    else:
        chosen = max(candidates, key=lambda part: len(field_of(part, "text")))
    return field_of(chosen, "text")


def model_ref(provider_id: str, model_id: str) -> str:
    return f"{provider_id}/{model_id}"


def to_ui_providers(
    providers: Iterable[Any] | None, defaults: Mapping[str, str] | None = None
) -> dict[str, Any]:
    """Flatten a provider catalog into ``providerID/modelID`` strings."""

    ui_providers: list[dict[str, Any]] = []
    for provider in providers or ():
        provider_id = field_of(provider, "id")
        models = field_of(provider, "models") or {}
        ui_providers.append(
            {
                "name": field_of(provider, "name") or provider_id,
                "models": [model_ref(provider_id, model_id) for model_id in models],
            }
        )
    ui_defaults = {provider_id: model_ref(provider_id, model_id) for provider_id, model_id in (defaults or {}).items()}
    return {"providers": ui_providers, "defaults": ui_defaults}


def split_model(model: Any) -> dict[str, str] | None:
    """Split ``provider/model`` on the first slash; anything else is dropped."""

    if not isinstance(model, str) or "/" not in model:
        return None
    provider_id, model_id = model.split("/", 1)
    return {"providerID": provider_id, "modelID": model_id}


def normalize_prompt_parts(parts: Any, message: str | None) -> list[Any]:
    """Guarantee an outgoing parts list carries at least one text part."""

    normalized = list(parts) if isinstance(parts, list) else []
    if not any(isinstance(part, Mapping) and "type" in part for part in normalized):
        normalized = []
    if not any(isinstance(part, Mapping) and part.get("type") == "text" for part in normalized):
        normalized.insert(0, {"type": "text", "text": message or ""})
    return normalized


def iso_timestamp(epoch_ms: Any = None) -> str:
    """Render epoch milliseconds as ISO-8601 UTC; ``now`` when absent."""

    if isinstance(epoch_ms, (int, float)) and not isinstance(epoch_ms, bool) and epoch_ms:
        moment = datetime.fromtimestamp(epoch_ms / 1000, tz=UTC)
    else:
        moment = datetime.now(tz=UTC)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def session_summary(session: Any) -> dict[str, Any]:
    return {
        "path": field_of(session, "path") or field_of(session, "id") or field_of(session, "slug"),
        "name": field_of(session, "name") or field_of(session, "title"),
        "model": field_of(session, "model"),
        "created": field_of(field_of(session, "time"), "created"),
    }


def message_summary(message: Any) -> dict[str, Any]:
    info = field_of(message, "info") or {}
    role = field_of(info, "role")
    return {
        "id": field_of(info, "id"),
        "role": role,
        "timestamp": iso_timestamp(field_of(field_of(info, "time"), "created")),
        "text": extract_message_text(field_of(message, "parts"), role),
    }


def provider_list_summary(payload: Any) -> dict[str, Any]:
    """Summarize the full provider listing without model metadata."""

    return {
        "all": [
            {
                "id": field_of(provider, "id"),
                "name": field_of(provider, "name") or field_of(provider, "id"),
                "env": field_of(provider, "env") or [],
                "source": field_of(provider, "source"),
                "modelCount": len(field_of(provider, "models") or {}),
            }
            for provider in field_of(payload, "all") or ()
        ],
        "default": field_of(payload, "default") or {},
        "connected": field_of(payload, "connected") or [],
    }
