from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, Tuple

from maelnode.net.messages import INIT, Envelope
from maelnode.net.net_logging import log_event

Handler = Callable[[Envelope], None]


class HandlerRegistry:
    """Message type -> handler.

    At most one handler per type; registering again replaces the earlier one.
    Types without a handler are not an error: ``dispatch`` just reports False.
    Handler exceptions propagate to the caller.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}
        self._logger = logging.getLogger("maelnode.net")

    def register(self, msg_type: str, handler: Handler) -> None:
        if not isinstance(msg_type, str) or not msg_type:
            raise ValueError("message type must be a non-empty string")
        if msg_type == INIT:
            raise ValueError("init is handled by the node runtime")
        if not callable(handler):
            raise TypeError("handler must be callable")
        if msg_type in self._handlers:
            log_event(self._logger, "handler_replaced", level=logging.DEBUG, type=msg_type)
        self._handlers[msg_type] = handler

    def unregister(self, msg_type: str) -> bool:
        return self._handlers.pop(msg_type, None) is not None

    def get(self, msg_type: str) -> Optional[Handler]:
        return self._handlers.get(msg_type)

    def dispatch(self, envelope: Envelope) -> bool:
        handler = self._handlers.get(envelope.body.type)
        if handler is None:
            return False
        handler(envelope)
        return True

    def types(self) -> Tuple[str, ...]:
        return tuple(sorted(self._handlers))

    def __contains__(self, msg_type: object) -> bool:
        return msg_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
