"""Utilities for reading and unwrapping service response envelopes."""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from opencode_sidecar.errors import DownstreamError

GENERIC_ERROR_MESSAGE = "OpenCode request failed"


def field_of(message: Any, key: str, default: Any = None) -> Any:
    """Read a field from mapping-like or attribute-based payloads."""

    if isinstance(message, Mapping):
        return message.get(key, default)
    return getattr(message, key, default)


def error_message(error: Any) -> str:
    """Pick the most specific human-readable message from an envelope error."""

    detail = field_of(field_of(error, "data"), "message")
    if isinstance(detail, str) and detail:
        return detail
    name = field_of(error, "name")
    if isinstance(name, str) and name:
        return name
    try:
        serialized = json.dumps(error, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        serialized = ""
    return serialized or GENERIC_ERROR_MESSAGE


def unwrap_data(result: Any) -> Any:
    """Return the ``data`` of an envelope, raising on an ``error`` envelope.

    Payloads that are not enveloped are returned unchanged.
    """

    if isinstance(result, Mapping):
        error = result.get("error")
        if error is not None:
            name = field_of(error, "name")
            raise DownstreamError(
                error_message(error),
                error=error,
                name=name if isinstance(name, str) else None,
            )
        if "data" in result:
            return result["data"]
    return result
