"""Run a node over stdin/stdout.

Usage:
  python -m maelnode [echo]

Env:
  MAELNODE_LOG_LEVEL=DEBUG
  MAELNODE_METRICS_ENABLED=1   (log a metrics snapshot at end of input)
  MAELNODE_DOTENV_PATH=./.env
"""

from __future__ import annotations

import argparse
import logging
from typing import List, Optional

from maelnode.apps import APPS
from maelnode.config import load_runtime_config
from maelnode.env import load_dotenv_if_present
from maelnode.net.net_logging import configure_logging, log_event
from maelnode.net.node import Node
from maelnode.net.transport import LineTransport
from maelnode.runtime.metrics import snapshot


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="maelnode", description="Line-delimited JSON node runtime.")
    ap.add_argument("app", nargs="?", default="echo", choices=sorted(APPS), help="application to install")
    args = ap.parse_args(argv)

    load_dotenv_if_present()
    cfg = load_runtime_config()
    configure_logging(cfg.log_level)

    node = Node(transport=LineTransport.stdio())
    APPS[args.app](node)
    node.run()

    if cfg.metrics_enabled:
        log_event(logging.getLogger("maelnode.app"), "metrics", **snapshot())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
