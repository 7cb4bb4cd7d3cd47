from __future__ import annotations

import json
import logging
import sys
import time
from typing import Any, Dict


Json = Dict[str, Any]

_ROOT_LOGGER = "maelnode"


def _now_ms() -> int:
    return int(time.time() * 1000)


def configure_logging(level_name: str = "INFO") -> None:
    """Send maelnode JSONL events to stderr.

    stdout carries protocol envelopes, so diagnostics never go there.
    Safe to call multiple times; later calls only adjust the level.
    """
    level = getattr(logging, str(level_name or "INFO").strip().upper(), logging.INFO)

    logger = logging.getLogger(_ROOT_LOGGER)
    if getattr(logger, "_maelnode_configured", False):  # type: ignore[attr-defined]
        logger.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter("%(message)s"))

    logger.addHandler(handler)
    logger.setLevel(level)
    setattr(logger, "_maelnode_configured", True)  # type: ignore[attr-defined]


def log_event(
    logger: logging.Logger,
    event: str,
    *,
    level: int = logging.INFO,
    exc_info: bool = False,
    **fields: Any,
) -> None:
    """Emit a single JSONL log event."""
    if not logger.isEnabledFor(level):
        return
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    payload.update(fields)
    try:
        logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False), exc_info=exc_info)
    except (TypeError, ValueError):
        parts = [f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())]
        logger.log(level, " ".join(parts), exc_info=exc_info)
