from __future__ import annotations

from typing import Callable, Dict

from maelnode.apps import echo
from maelnode.net.node import Node

AppInstaller = Callable[[Node], None]

APPS: Dict[str, AppInstaller] = {
    "echo": echo.install,
}

__all__ = ["APPS", "AppInstaller"]
