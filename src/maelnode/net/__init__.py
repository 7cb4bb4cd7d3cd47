"""
maelnode: network package

  - messages: envelope and body schemas (pydantic), error codes
  - codec: line <-> Envelope, ParseError / SchemaError classification
  - identity: node id + cluster roster, set once by init
  - msg_ids: process-unique increasing message ids
  - handlers: message type -> handler registry
  - replies: msg_id -> pending continuation table
  - transport / transport_memory: line I/O
  - node: dispatch loop wiring all components together

Applications should depend on net.node (register handlers, send, reply)
and keep their own logic separate.
"""

from __future__ import annotations

__all__ = [
    "messages",
    "codec",
    "identity",
    "msg_ids",
    "handlers",
    "replies",
    "transport",
    "transport_memory",
    "node",
]
