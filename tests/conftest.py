from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

# Ensure local "src/" takes precedence over any globally-installed "maelnode" package.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

src_str = str(SRC)
if src_str not in sys.path:
    sys.path.insert(0, src_str)

from maelnode.runtime.metrics import reset_metrics  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_metrics() -> None:
    reset_metrics()


@pytest.fixture
def restore_maelnode_logger():
    logger = logging.getLogger("maelnode")
    handlers = list(logger.handlers)
    level = logger.level
    configured = getattr(logger, "_maelnode_configured", None)
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)
    if configured is None:
        if hasattr(logger, "_maelnode_configured"):
            delattr(logger, "_maelnode_configured")
    else:
        setattr(logger, "_maelnode_configured", configured)


def log_events(caplog: pytest.LogCaptureFixture) -> List[Dict[str, Any]]:
    out: List[Dict[str, Any]] = []
    for rec in caplog.records:
        try:
            ev = json.loads(rec.getMessage())
        except ValueError:
            continue
        if isinstance(ev, dict):
            ev["_level"] = rec.levelno
            out.append(ev)
    return out


@pytest.fixture
def events(caplog: pytest.LogCaptureFixture):
    """Capture maelnode JSONL events at DEBUG; call the fixture value to read them."""
    caplog.set_level(logging.DEBUG, logger="maelnode")
    return lambda: log_events(caplog)
