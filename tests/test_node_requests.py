from __future__ import annotations

import json
import threading
from typing import List

import pytest

from maelnode.net.errors import NodeNotInitialized, RPCError, SchemaError
from maelnode.net.identity import NodeIdentity
from maelnode.net.messages import Envelope, ErrorCode
from maelnode.net.node import Node
from maelnode.net.transport_memory import MemoryTransport
from maelnode.runtime.metrics import counter


def _ready_node() -> tuple[Node, MemoryTransport]:
    ident = NodeIdentity()
    ident.initialize("n1", ["n1", "n2", "n3"])
    t = MemoryTransport()
    return Node(transport=t, identity=ident), t


def _reply_line(in_reply_to, body_type: str = "read_ok", **fields) -> str:
    body = {"type": body_type, "in_reply_to": in_reply_to}
    body.update(fields)
    return json.dumps({"src": "n2", "dest": "n1", "body": body})


class _FailingTransport(MemoryTransport):
    def write_line(self, line: str) -> None:
        raise OSError("stdout closed")


def test_send_with_callback_allocates_id_and_waits() -> None:
    node, t = _ready_node()
    ok: List[Envelope] = []

    msg_id = node.send("n2", {"type": "read"}, on_success=ok.append)

    assert msg_id == 1
    assert t.sent_json() == [{"src": "n1", "dest": "n2", "body": {"type": "read", "msg_id": 1}}]
    assert node.pending_replies == 1

    node.handle_line(_reply_line(1, value=3))
    assert len(ok) == 1
    assert ok[0].body.get("value") == 3
    assert node.pending_replies == 0

    # duplicate reply is dropped
    node.handle_line(_reply_line(1, value=4))
    assert len(ok) == 1
    assert counter("unmatched_replies_total") == 1


def test_error_reply_goes_to_on_failure() -> None:
    node, t = _ready_node()
    ok: List[Envelope] = []
    err: List[Envelope] = []

    msg_id = node.send("n2", {"type": "read"}, on_success=ok.append, on_failure=err.append)
    node.handle_line(_reply_line(msg_id, body_type="error", code=20, text="missing"))

    assert ok == []
    assert len(err) == 1
    assert err[0].body.code == 20
    assert node.pending_replies == 0


def test_error_reply_without_code_still_fails_the_request() -> None:
    node, t = _ready_node()
    ok: List[Envelope] = []
    err: List[Envelope] = []

    msg_id = node.send("n2", {"type": "read"}, on_success=ok.append, on_failure=err.append)
    node.handle_line(_reply_line(msg_id, body_type="error", text="x"))

    assert ok == []
    assert len(err) == 1
    assert err[0].body.code is None
    assert node.pending_replies == 0
    assert counter("schema_errors_total") == 0


def test_rpc_error_without_code_is_indefinite() -> None:
    node, t = _ready_node()
    fut = node.rpc("n2", {"type": "write"})

    node.handle_line(_reply_line(1, body_type="error"))
    exc = fut.exception(timeout=0)
    assert isinstance(exc, RPCError)
    assert exc.error_code is ErrorCode.CRASH
    assert not exc.definite


def test_error_reply_without_failure_callback_is_logged(events) -> None:
    node, t = _ready_node()
    ok: List[Envelope] = []
    msg_id = node.send("n2", {"type": "read"}, on_success=ok.append)

    node.handle_line(_reply_line(msg_id, body_type="error", code=11))
    assert ok == []
    failed = [e for e in events() if e["event"] == "request_failed"]
    assert len(failed) == 1
    assert failed[0]["code"] == 11


def test_fire_and_forget_send_gets_msg_id_but_no_pending_entry() -> None:
    node, t = _ready_node()
    msg_id = node.send("n3", {"type": "gossip", "message": 5})

    assert msg_id == 1
    assert t.sent_json()[0]["body"] == {"type": "gossip", "message": 5, "msg_id": 1}
    assert node.pending_replies == 0


def test_send_keeps_caller_msg_id_and_reply_shape() -> None:
    node, t = _ready_node()
    assert node.send("n2", {"type": "x", "msg_id": "custom"}) == "custom"
    assert node.send("n2", {"type": "x_ok", "in_reply_to": 4}) is None

    bodies = [m["body"] for m in t.sent_json()]
    assert bodies == [{"type": "x", "msg_id": "custom"}, {"type": "x_ok", "in_reply_to": 4}]
    assert node.msg_ids.last_issued == 0


def test_concurrent_requests_from_one_handler_get_distinct_ids() -> None:
    node, t = _ready_node()
    got: List[Envelope] = []

    @node.on("fan_out")
    def _fan_out(env: Envelope) -> None:
        for peer in sorted(node.identity.other_node_ids()):
            node.send(peer, {"type": "read"}, on_success=got.append)

    node.handle_line('{"src":"c1","dest":"n1","body":{"type":"fan_out","msg_id":1}}')
    sent = t.sent_json()
    assert [(m["dest"], m["body"]["msg_id"]) for m in sent] == [("n2", 1), ("n3", 2)]

    # replies may arrive in any order
    node.handle_line(json.dumps({"src": "n3", "dest": "n1", "body": {"type": "read_ok", "in_reply_to": 2}}))
    node.handle_line(json.dumps({"src": "n2", "dest": "n1", "body": {"type": "read_ok", "in_reply_to": 1}}))
    assert [e.src for e in got] == ["n3", "n2"]
    assert node.pending_replies == 0


def test_threaded_senders_never_share_an_id() -> None:
    node, t = _ready_node()

    def _worker() -> None:
        for _ in range(50):
            node.send("n2", {"type": "read"}, on_success=lambda env: None)

    threads = [threading.Thread(target=_worker) for _ in range(4)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    ids = [m["body"]["msg_id"] for m in t.sent_json()]
    assert len(ids) == 200
    assert len(set(ids)) == 200
    assert node.pending_replies == 200


def test_rpc_future_resolves_with_reply() -> None:
    node, t = _ready_node()
    fut = node.rpc("n2", {"type": "read"})
    assert not fut.done()

    node.handle_line(_reply_line(1, value=9))
    assert fut.done()
    assert fut.result(timeout=0).body.get("value") == 9


def test_rpc_future_fails_with_rpc_error() -> None:
    node, t = _ready_node()
    fut = node.rpc("n2", {"type": "cas"})

    node.handle_line(_reply_line(1, body_type="error", code=22, text="from mismatch"))
    exc = fut.exception(timeout=0)
    assert isinstance(exc, RPCError)
    assert exc.code == 22
    assert exc.error_code is ErrorCode.PRECONDITION_FAILED
    assert exc.definite
    assert exc.text == "from mismatch"


def test_cancelled_rpc_future_ignores_late_reply() -> None:
    node, t = _ready_node()
    fut = node.rpc("n2", {"type": "read"})
    assert fut.cancel()

    node.handle_line(_reply_line(1))
    assert fut.cancelled()
    assert counter("handler_faults_total") == 0
    assert node.pending_replies == 0


def test_reply_error_stamps_correlation() -> None:
    node, t = _ready_node()
    req = Envelope.model_validate({"src": "c1", "dest": "n1", "body": {"type": "write", "msg_id": 7}})

    node.reply_error(req, ErrorCode.TEMPORARILY_UNAVAILABLE, "leader unknown")
    assert t.sent == ['{"src":"n1","dest":"c1","body":{"type":"error","code":11,"text":"leader unknown","in_reply_to":7}}']


def test_reply_overrides_caller_in_reply_to() -> None:
    node, t = _ready_node()
    req = Envelope.model_validate({"src": "c1", "dest": "n1", "body": {"type": "read", "msg_id": 8}})

    node.reply(req, {"type": "read_ok", "in_reply_to": 999, "value": 1})
    assert t.sent_json()[0]["body"] == {"type": "read_ok", "value": 1, "in_reply_to": 8}


def test_cannot_reply_to_a_reply() -> None:
    node, t = _ready_node()
    reply = Envelope.model_validate({"src": "n2", "dest": "n1", "body": {"type": "read_ok", "in_reply_to": 1}})
    with pytest.raises(ValueError):
        node.reply(reply, {"type": "ack"})


def test_send_before_init_raises() -> None:
    node = Node(transport=MemoryTransport())
    with pytest.raises(NodeNotInitialized):
        node.send("n2", {"type": "read"}, on_success=lambda env: None)
    assert node.pending_replies == 0


def test_invalid_body_leaves_no_pending_entry() -> None:
    node, t = _ready_node()
    with pytest.raises(SchemaError):
        node.send("n2", {"value": 1}, on_success=lambda env: None)
    assert node.pending_replies == 0
    assert t.sent == []


def test_write_failure_discards_pending_entry() -> None:
    ident = NodeIdentity()
    ident.initialize("n1", ["n1", "n2"])
    node = Node(transport=_FailingTransport(), identity=ident)

    with pytest.raises(OSError):
        node.send("n2", {"type": "read"}, on_success=lambda env: None)
    assert node.pending_replies == 0


def test_loop_stop_reports_oldest_outstanding_request(events) -> None:
    node, t = _ready_node()
    node.send("n3", {"type": "read"}, on_success=lambda env: None)
    node.send("n2", {"type": "read"}, on_success=lambda env: None)

    node.run([])
    stopped = [e for e in events() if e["event"] == "node_loop_stopped"]
    assert len(stopped) == 1
    assert stopped[0]["pending_replies"] == 2
    assert stopped[0]["oldest_pending_dest"] == "n3"
    assert stopped[0]["oldest_pending_age_ms"] >= 0
