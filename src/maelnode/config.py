from __future__ import annotations

import os
from dataclasses import dataclass


def _env_str(name: str, default: str = "") -> str:
    v = os.environ.get(name)
    return str(default if v is None else v).strip()


def _env_bool(name: str, default: bool) -> bool:
    raw = str(os.environ.get(name, "")).strip().lower()
    if not raw:
        return bool(default)
    if raw in {"1", "true", "yes", "y", "on"}:
        return True
    if raw in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True, slots=True)
class RuntimeConfig:
    """Process settings around the node; the dispatch core reads none of these."""

    log_level: str = "INFO"
    metrics_enabled: bool = False


def load_runtime_config() -> RuntimeConfig:
    return RuntimeConfig(
        log_level=(_env_str("MAELNODE_LOG_LEVEL", "INFO").upper() or "INFO"),
        metrics_enabled=_env_bool("MAELNODE_METRICS_ENABLED", False),
    )
