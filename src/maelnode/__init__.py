"""
Public API:
- Node: dispatch loop + send/reply/rpc
- Envelope, MessageBody, InitBody, ErrorBody, ErrorCode: wire types
- LineTransport, MemoryTransport: line I/O
- NodeIdentity, MessageIdGenerator, HandlerRegistry, ReplyTable: node state
"""

from maelnode.net.errors import (
    DuplicatePendingReply,
    IdentityAlreadyInitialized,
    NodeError,
    NodeNotInitialized,
    ParseError,
    RPCError,
    SchemaError,
)
from maelnode.net.handlers import HandlerRegistry
from maelnode.net.identity import NodeIdentity
from maelnode.net.messages import Envelope, ErrorBody, ErrorCode, InitBody, MessageBody
from maelnode.net.msg_ids import MessageIdGenerator
from maelnode.net.node import Node
from maelnode.net.replies import ReplyTable
from maelnode.net.transport import LineTransport
from maelnode.net.transport_memory import MemoryTransport

__all__ = [
    "Node",
    "Envelope",
    "MessageBody",
    "InitBody",
    "ErrorBody",
    "ErrorCode",
    "NodeIdentity",
    "MessageIdGenerator",
    "HandlerRegistry",
    "ReplyTable",
    "LineTransport",
    "MemoryTransport",
    "NodeError",
    "ParseError",
    "SchemaError",
    "IdentityAlreadyInitialized",
    "NodeNotInitialized",
    "DuplicatePendingReply",
    "RPCError",
]

__version__ = "0.1.0"
