"""Runtime logging helpers."""

from __future__ import annotations

import sys
from typing import Literal

import loguru
from loguru import logger

LogFormat = Literal["text", "json"]

_TEXT_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<6} | {name}:{function}:{line} | {extra[cmd]} | {message}"
_CONFIGURED: tuple[str, str] | None = None


def _inject_context(record: loguru.Record) -> None:
    record["extra"].setdefault("cmd", "-")


def configure_logging(level: str = "INFO", fmt: str = "text") -> None:
    """Configure process-level logging once.

    All records go to stderr; stdout carries the response protocol.
    """

    global _CONFIGURED
    level = level.upper()
    if _CONFIGURED == (level, fmt):
        return

    logger.remove()
    if fmt == "json":
        logger.add(sys.stderr, level=level, serialize=True, backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=level, format=_TEXT_FORMAT, backtrace=False, diagnose=False)
    logger.configure(patcher=_inject_context)
    _CONFIGURED = (level, fmt)
