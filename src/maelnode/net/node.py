from __future__ import annotations

import logging
from concurrent.futures import Future
from typing import Any, Dict, Iterable, Optional

from maelnode.net.codec import build_envelope, decode_envelope, encode_envelope
from maelnode.net.errors import (
    IdentityAlreadyInitialized,
    NodeNotInitialized,
    ParseError,
    RPCError,
    SchemaError,
)
from maelnode.net.handlers import Handler, HandlerRegistry
from maelnode.net.identity import NodeIdentity
from maelnode.net.messages import ERROR, INIT, INIT_OK, Envelope, ErrorCode, InitBody, MsgId
from maelnode.net.msg_ids import MessageIdGenerator
from maelnode.net.net_logging import log_event
from maelnode.net.replies import ReplyCallback, ReplyTable
from maelnode.net.transport import LineTransport, Transport
from maelnode.runtime.metrics import inc_counter

Json = Dict[str, Any]


class Node:
    """Envelope dispatch loop plus the outbound API handlers use.

    Inbound, one line at a time and in arrival order:
      - replies (``in_reply_to`` set) go to the reply table
      - ``init`` sets the node identity once and answers ``init_ok``
      - everything else goes to the handler registered for its type

    No failure while handling a line stops the loop. Bad lines, unmatched
    replies, duplicate inits and handler exceptions are logged and skipped.
    """

    def __init__(
        self,
        *,
        transport: Optional[Transport] = None,
        identity: Optional[NodeIdentity] = None,
        handlers: Optional[HandlerRegistry] = None,
        replies: Optional[ReplyTable] = None,
        msg_ids: Optional[MessageIdGenerator] = None,
    ) -> None:
        self.transport = transport if transport is not None else LineTransport.stdio()
        self.identity = identity if identity is not None else NodeIdentity()
        self.handlers = handlers if handlers is not None else HandlerRegistry()
        self.replies = replies if replies is not None else ReplyTable()
        self.msg_ids = msg_ids if msg_ids is not None else MessageIdGenerator()

        self._logger = logging.getLogger("maelnode.net")

    # -------------------------
    # Identity
    # -------------------------

    @property
    def node_id(self) -> str:
        return self.identity.node_id

    @property
    def node_ids(self) -> frozenset:
        return self.identity.node_ids

    @property
    def pending_replies(self) -> int:
        return self.replies.size()

    # -------------------------
    # Setup
    # -------------------------

    def register_handler(self, msg_type: str, handler: Handler) -> None:
        self.handlers.register(msg_type, handler)

    def on(self, msg_type: str, handler: Optional[Handler] = None) -> Any:
        """Register a handler; usable directly or as ``@node.on("type")``."""
        if handler is None:
            def _decorator(fn: Handler) -> Handler:
                self.register_handler(msg_type, fn)
                return fn

            return _decorator
        self.register_handler(msg_type, handler)
        return handler

    # -------------------------
    # Main loop
    # -------------------------

    def run(self, lines: Optional[Iterable[str]] = None) -> None:
        """Process lines until end of input."""
        source = self.transport.lines() if lines is None else lines
        log_event(self._logger, "node_loop_started", handlers=list(self.handlers.types()))
        for line in source:
            self.handle_line(line)
        oldest = self.replies.oldest()
        log_event(
            self._logger,
            "node_loop_stopped",
            node_id=self.node_id,
            pending_replies=self.pending_replies,
            oldest_pending_dest=oldest.dest if oldest is not None else None,
            oldest_pending_age_ms=self.replies.oldest_age_ms(),
        )

    def handle_line(self, line: bytes | str) -> None:
        inc_counter("envelopes_received_total", 1)
        try:
            envelope = decode_envelope(line)
        except ParseError as e:
            inc_counter("parse_errors_total", 1)
            log_event(self._logger, "envelope_parse_error", level=logging.WARNING, code=e.code, error=str(e))
            return
        except SchemaError as e:
            inc_counter("schema_errors_total", 1)
            log_event(self._logger, "envelope_schema_error", level=logging.WARNING, code=e.code, error=str(e))
            return
        self.dispatch(envelope)

    def dispatch(self, envelope: Envelope) -> None:
        try:
            if envelope.body.in_reply_to is not None:
                self._on_reply(envelope)
                return

            if envelope.body.type == INIT:
                self._on_init(envelope)
                return

            if not self.handlers.dispatch(envelope):
                inc_counter("unhandled_types_total", 1)
                log_event(
                    self._logger,
                    "unhandled_message_type",
                    level=logging.DEBUG,
                    type=envelope.body.type,
                    src=envelope.src,
                )
        except Exception as e:
            inc_counter("handler_faults_total", 1)
            log_event(
                self._logger,
                "handler_fault",
                level=logging.ERROR,
                exc_info=True,
                type=envelope.body.type,
                src=envelope.src,
                msg_id=envelope.body.msg_id,
                error=repr(e),
            )

    def _on_reply(self, envelope: Envelope) -> None:
        if self.replies.resolve(envelope):
            return
        inc_counter("unmatched_replies_total", 1)
        log_event(
            self._logger,
            "unmatched_reply",
            level=logging.WARNING,
            src=envelope.src,
            type=envelope.body.type,
            in_reply_to=envelope.body.in_reply_to,
        )

    def _on_init(self, envelope: Envelope) -> None:
        body = envelope.body
        assert isinstance(body, InitBody)
        try:
            snap = self.identity.initialize(body.node_id, body.node_ids)
        except IdentityAlreadyInitialized as e:
            inc_counter("duplicate_inits_total", 1)
            log_event(
                self._logger,
                "duplicate_init",
                level=logging.ERROR,
                src=envelope.src,
                current=e.current,
                attempted=e.attempted,
            )
            return
        log_event(self._logger, "node_initialized", node_id=snap.node_id, node_ids=sorted(snap.node_ids))
        self.reply(envelope, {"type": INIT_OK})

    # -------------------------
    # Outbound
    # -------------------------

    def send(
        self,
        dest: str,
        body: Json,
        on_success: Optional[ReplyCallback] = None,
        on_failure: Optional[ReplyCallback] = None,
    ) -> Optional[MsgId]:
        """Send a body to ``dest``; returns the msg_id it went out with.

        With callbacks, a fresh msg_id is allocated and the continuation is
        stored before the line is written. Non-reply bodies without a msg_id
        get one too, so peers can answer them.
        """
        payload = dict(body)
        wants_reply = on_success is not None or on_failure is not None
        if payload.get("msg_id") is None and (wants_reply or payload.get("in_reply_to") is None):
            payload["msg_id"] = self.msg_ids.next_id()
        msg_id = payload.get("msg_id")

        envelope = self._envelope(dest, payload)
        line = encode_envelope(envelope)

        if not wants_reply:
            self._write(line)
            return msg_id

        self.replies.await_reply(
            msg_id,
            on_success if on_success is not None else self._ignore_reply,
            on_failure if on_failure is not None else self._log_failed_reply,
            dest=dest,
        )
        try:
            self._write(line)
        except Exception:
            self.replies.discard(msg_id)
            raise
        return msg_id

    def rpc(self, dest: str, body: Json) -> "Future[Envelope]":
        """Send a request and return a future for its reply.

        The future fails with RPCError on an ``error`` reply. Replies are
        processed by this loop, so never block on the future from a handler;
        chain with ``add_done_callback`` instead.
        """
        fut: "Future[Envelope]" = Future()

        def _ok(reply: Envelope) -> None:
            if fut.set_running_or_notify_cancel():
                fut.set_result(reply)

        def _err(reply: Envelope) -> None:
            if fut.set_running_or_notify_cancel():
                fut.set_exception(RPCError.from_envelope(reply))

        self.send(dest, body, on_success=_ok, on_failure=_err)
        return fut

    def reply(self, request: Envelope, body: Json) -> None:
        """Answer ``request``: back to its sender, correlated to its msg_id."""
        if request.body.msg_id is None:
            raise ValueError("cannot reply to a message without msg_id")
        payload = dict(body)
        payload["in_reply_to"] = request.body.msg_id
        self._write(encode_envelope(self._envelope(request.src, payload)))

    def reply_error(self, request: Envelope, code: ErrorCode | int, text: Optional[str] = None) -> None:
        payload: Json = {"type": ERROR, "code": int(code)}
        if text is not None:
            payload["text"] = str(text)
        self.reply(request, payload)

    def _envelope(self, dest: str, body: Json) -> Envelope:
        src = self.node_id
        if not src:
            raise NodeNotInitialized("node has no identity yet; wait for init")
        return build_envelope(src, dest, body)

    def _write(self, line: str) -> None:
        self.transport.write_line(line)
        inc_counter("envelopes_sent_total", 1)

    # -------------------------
    # Default continuations
    # -------------------------

    def _ignore_reply(self, reply: Envelope) -> None:
        return

    def _log_failed_reply(self, reply: Envelope) -> None:
        log_event(
            self._logger,
            "request_failed",
            level=logging.WARNING,
            src=reply.src,
            in_reply_to=reply.body.in_reply_to,
            code=reply.body.get("code"),
            text=reply.body.get("text"),
        )

