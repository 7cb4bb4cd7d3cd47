from __future__ import annotations

from maelnode.net.messages import Envelope, ErrorCode
from maelnode.net.node import Node


def install(node: Node) -> None:
    """Answer every ``echo`` with ``echo_ok`` carrying the same value."""

    @node.on("echo")
    def _echo(request: Envelope) -> None:
        if "echo" not in (request.body.model_extra or {}):
            node.reply_error(request, ErrorCode.MALFORMED_REQUEST, "echo field is required")
            return
        node.reply(request, {"type": "echo_ok", "echo": request.body.get("echo")})
